"""
Bedrock Edition status query over RakNet Unconnected Ping/Pong.

See https://minecraft.wiki/w/RakNet#Unconnected_Ping
"""

import asyncio
import os
import socket
import struct
from time import perf_counter

from loguru import logger

from .config import BedrockPingOptions, build_options
from .errors import MalformedResponseError, MinePingError, TransportError
from .models import BedrockPingResponse
from .request import RequestState, StatusRequest
from .utils import check_host

RAKNET_MAGIC = bytes.fromhex("00ffff00fefefefefdfdfdfd12345678")
UNCONNECTED_PING_ID = 0x01
UNCONNECTED_PONG_ID = 0x1C
PING_FRAME_SIZE = 33

# response packet:
# byte - 0x1C - Unconnected Pong
# long - timestamp
# long - server GUID
# 16 byte - magic
# short - Server ID string length
# string - Server ID string
MOTD_LENGTH_OFFSET = 33
MOTD_OFFSET = 35

MOTD_FIELDS = (
    "edition",
    "name",
    "protocol",
    "version",
    "online",
    "max",
    "guid",
    "sub_name",
    "gamemode",
    "nintendo_limited",
    "port_v4",
    "port_v6",
    "editor_mode",
)
MIN_MOTD_FIELDS = 5

START_TIME = perf_counter()
"""Reference point of the ping timestamps, the protocol does not care about the epoch"""


def current_timestamp() -> int:
    """Milliseconds since `START_TIME`."""
    return round((perf_counter() - START_TIME) * 1000)


def create_unconnected_ping_frame(timestamp: int, client_guid: bytes | None = None) -> bytes:
    """
    Build the 33 byte `Unconnected Ping` frame.

    :param timestamp: ping time in milliseconds
    :param client_guid: 8 byte client GUID, random if omitted
    """
    if client_guid is None:
        client_guid = os.urandom(8)
    if len(client_guid) != 8:
        raise ValueError("Client GUID must be 8 bytes")

    return (
        struct.pack("<Bq", UNCONNECTED_PING_ID, timestamp)
        + RAKNET_MAGIC
        + client_guid
    )


def extract_motd(packet: bytes) -> str:
    """
    Pull the MOTD string out of an `Unconnected Pong` packet.

    :raises MalformedResponseError: for short packets, wrong packet ids or
        a MOTD length running past the end of the datagram
    """
    if len(packet) < MOTD_OFFSET:
        raise MalformedResponseError(
            f"Received a {len(packet)} byte datagram, too short for an Unconnected Pong"
        )
    if packet[0] != UNCONNECTED_PONG_ID:
        raise MalformedResponseError(f"Received unexpected packet 0x{packet[0]:02x}")

    (length,) = struct.unpack_from(">H", packet, MOTD_LENGTH_OFFSET)
    end = MOTD_OFFSET + length
    if end > len(packet):
        raise MalformedResponseError(
            f"MOTD length {length} exceeds the {len(packet)} byte datagram"
        )

    try:
        return packet[MOTD_OFFSET:end].decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedResponseError(f"MOTD is not valid UTF-8: {e}") from e


def parse_motd(motd: str) -> dict[str, str]:
    """
    Split a MOTD into its positional fields.

    Fields past the first five are optional, older servers leave them out.
    """
    components = motd.split(";")
    if len(components) < MIN_MOTD_FIELDS:
        raise MalformedResponseError(
            f"Invalid MOTD: expected at least {MIN_MOTD_FIELDS} fields, got {len(components)}"
        )
    return dict(zip(MOTD_FIELDS, components))


def parse_unconnected_pong(packet: bytes) -> BedrockPingResponse:
    record = parse_motd(extract_motd(packet))
    try:
        return BedrockPingResponse.from_motd(record)
    except ValueError as e:
        raise MalformedResponseError(f"Invalid MOTD field: {e}") from e


class BedrockStatusProtocol(StatusRequest, asyncio.DatagramProtocol):
    """One ping, one pong. A datagram is accepted or rejected as a whole."""

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        if not self._adopt_transport(transport):
            return

        frame = create_unconnected_ping_frame(current_timestamp())
        logger.debug("sending unconnected ping to {}:{}", *self.address)
        transport.sendto(frame)  # type: ignore
        self.state = RequestState.AWAITING_RESPONSE

    def datagram_received(self, data: bytes, addr) -> None:
        if self.done:
            return
        logger.debug("received {} byte datagram from {}", len(data), addr)

        try:
            response = parse_unconnected_pong(data)
        except MinePingError as e:
            self.fail(e)
        else:
            self.resolve(response)

    def error_received(self, exc: Exception) -> None:
        self.fail(TransportError.from_exception(exc))

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            self.fail(TransportError.from_exception(exc))


async def ping_bedrock(
    host: str, options: BedrockPingOptions | None = None, **kwargs
) -> BedrockPingResponse:
    """
    Ping a Minecraft Bedrock/Education Edition server.

    :param host: server address
    :param options: a `BedrockPingOptions`, or pass its fields as keyword arguments
    :raises InvalidArgumentError: for a missing host or invalid options, before any I/O
    :raises MinePingError: for every failure once the request has started
    """
    check_host(host)
    options = build_options(BedrockPingOptions, options, kwargs)
    port = options.effective_port
    logger.debug("pinging Bedrock server {} with options: {}", host, options)

    loop = asyncio.get_running_loop()
    request = BedrockStatusProtocol((host, port), options.timeout)
    request.attach(
        loop.create_datagram_endpoint(
            lambda: request,
            remote_addr=(host, port),
            family=socket.AF_INET6 if options.use_ipv6 else socket.AF_INET,
        )
    )
    return await request.wait()
