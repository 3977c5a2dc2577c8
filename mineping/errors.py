from enum import Enum


class ConnStatus(Enum):
    """
    Possible outcomes of a status query
    - `SUCCESS`: the query succeeded (request and response parsed)
    - `CONNFAIL`: no socket connection could be made. Server offline, wrong host or port?
    - `TIMEOUT`: no complete response arrived in time. (Server overloaded? Firewall rules?)
    - `UNKNOWN`: a connection was made, but the server spoke something we could not parse
    """

    def __str__(self) -> str:
        return str(self.name)

    SUCCESS = 0
    """The query succeeded (request and response parsed)"""

    CONNFAIL = -1
    """No socket connection could be made (server offline, wrong host or port?)"""

    TIMEOUT = -2
    """No complete response arrived in time"""

    UNKNOWN = -3
    """A connection was made, but the response was not understood"""


class MinePingError(Exception):
    """Base class for every error raised by mineping."""

    status: ConnStatus = ConnStatus.UNKNOWN


class InvalidArgumentError(MinePingError, ValueError):
    """Raised before any I/O when the caller passes a bad host or option."""


class VarIntError(MinePingError):
    pass


class BufferUnderflowError(VarIntError):
    """
    The buffer ended before the varint did.

    This is recoverable: the caller should wait for more bytes.
    """


class VarIntTooLargeError(VarIntError):
    """The value does not fit in a 5 byte varint."""


class MalformedResponseError(MinePingError):
    """The server answered with something that is not a valid status response."""


class MalformedVarIntError(VarIntError, MalformedResponseError):
    """A varint that is still continuing after 5 bytes."""


class TransportError(MinePingError):
    """Connection refused, host unreachable, DNS failure or any other socket error."""

    status = ConnStatus.CONNFAIL

    @classmethod
    def from_exception(cls, exc: BaseException) -> "TransportError":
        error = cls(str(exc) or exc.__class__.__name__)
        error.__cause__ = exc
        return error


class PingTimeoutError(MinePingError, TimeoutError):
    status = ConnStatus.TIMEOUT


class PrematureCloseError(MinePingError):
    """The TCP connection was closed before a response was assembled."""
