from loguru import logger

from .bedrock import ping_bedrock
from .config import VERSION, BedrockPingOptions, JavaPingOptions
from .errors import (
    BufferUnderflowError,
    ConnStatus,
    InvalidArgumentError,
    MalformedResponseError,
    MalformedVarIntError,
    MinePingError,
    PingTimeoutError,
    PrematureCloseError,
    TransportError,
    VarIntError,
    VarIntTooLargeError,
)
from .java import ping_java
from .models import BedrockPingResponse, JavaPingResponse

__version__ = VERSION

# Library logging stays silent until the application calls logger.enable("mineping").
logger.disable("mineping")

__all__ = [
    "BedrockPingOptions",
    "BedrockPingResponse",
    "BufferUnderflowError",
    "ConnStatus",
    "InvalidArgumentError",
    "JavaPingOptions",
    "JavaPingResponse",
    "MalformedResponseError",
    "MalformedVarIntError",
    "MinePingError",
    "PingTimeoutError",
    "PrematureCloseError",
    "TransportError",
    "VarIntError",
    "VarIntTooLargeError",
    "ping_bedrock",
    "ping_java",
]
