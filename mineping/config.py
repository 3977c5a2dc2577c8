from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidArgumentError

VERSION = "1.0.0"
DEFAULT_JAVA_PORT = 25565
"""Default TCP port for Java Edition status queries"""
DEFAULT_BEDROCK_PORT_V4 = 19132
"""Default UDP port for Bedrock/MCPE servers over IPv4"""
DEFAULT_BEDROCK_PORT_V6 = 19133
"""Default UDP port for Bedrock/MCPE servers over IPv6"""
DEFAULT_TIMEOUT = 5000
"""Default request timeout (milliseconds)"""


class PingOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    port: int | None = Field(default=None, ge=1, le=65535)
    """Server port. Defaults to the edition's well-known port"""
    timeout: int = Field(default=DEFAULT_TIMEOUT, gt=0)
    """Time budget for the whole request, in milliseconds"""
    use_ipv6: bool = Field(default=False)
    """Open the socket with the IPv6 address family"""


class JavaPingOptions(PingOptions):
    protocol_version: int = Field(default=-1, ge=-(2**31), le=2**31 - 1)
    """Protocol version sent in the handshake. `-1` asks the server to pick"""

    @property
    def effective_port(self) -> int:
        return self.port or DEFAULT_JAVA_PORT


class BedrockPingOptions(PingOptions):
    @property
    def effective_port(self) -> int:
        if self.port:
            return self.port
        return DEFAULT_BEDROCK_PORT_V6 if self.use_ipv6 else DEFAULT_BEDROCK_PORT_V4


OptionsT = TypeVar("OptionsT", bound=PingOptions)


def build_options(
    model: type[OptionsT], options: OptionsT | None, overrides: dict[str, Any]
) -> OptionsT:
    """
    Build an options model from either a ready instance or keyword arguments.

    :raises InvalidArgumentError: on unknown names or out-of-range values
    """
    if options is not None and overrides:
        raise InvalidArgumentError("Pass either an options object or keyword options, not both")
    if options is not None:
        if not isinstance(options, model):
            raise InvalidArgumentError(
                f"Expected {model.__name__}, got {type(options).__name__}"
            )
        return options
    try:
        return model(**overrides)
    except ValidationError as e:
        raise InvalidArgumentError(str(e)) from e
