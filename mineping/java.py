"""
Java Edition Server List Ping (Minecraft 1.7+).

Protocol:
    send Handshake (next state: status)
    send Status Request
    receive Status Response, a varint framed JSON document

See https://minecraft.wiki/w/Java_Edition_protocol/Server_List_Ping
"""

import asyncio
import socket

from loguru import logger
import ujson

from .config import JavaPingOptions, build_options
from .errors import (
    BufferUnderflowError,
    MalformedResponseError,
    MinePingError,
    PrematureCloseError,
    TransportError,
)
from .models import JavaPingResponse
from .request import RequestState, StatusRequest
from .utils import check_host, resolve_srv
from .varint import (
    concat_packets,
    decode_varint,
    encode_string,
    encode_ushort,
    encode_varint,
)

HANDSHAKE_PACKET_ID = 0x00
STATUS_REQUEST_PACKET_ID = 0x00
STATUS_RESPONSE_PACKET_ID = 0x00
NEXT_STATE_STATUS = 1


def create_handshake_packet(host: str, port: int, protocol_version: int) -> bytes:
    """
    Build the framed Handshake packet.

    :param host: the virtual host the client claims to connect to
    :param port: the port the client connects to
    :param protocol_version: protocol version, `-1` when pinging to determine the version
    """
    host_bytes = encode_string(host)
    return concat_packets(
        [
            encode_varint(HANDSHAKE_PACKET_ID),
            encode_varint(protocol_version),
            encode_varint(len(host_bytes)),
            host_bytes,
            encode_ushort(port),
            encode_varint(NEXT_STATE_STATUS),
        ]
    )


def create_status_request_packet() -> bytes:
    return concat_packets([encode_varint(STATUS_REQUEST_PACKET_ID)])


def process_response(
    buffer: bytes | bytearray,
) -> tuple[JavaPingResponse, bytes] | None:
    """
    Try to parse one Status Response from the start of `buffer`.

    :returns: the response and the bytes following the packet,
        or None if the packet has not fully arrived yet
    :raises MalformedResponseError: if the data can never become a valid response
    """
    try:
        packet_length, offset = decode_varint(buffer, 0)
        if packet_length < 0:
            raise MalformedResponseError(f"Invalid packet length: {packet_length}")

        packet_end = offset + packet_length
        if len(buffer) < packet_end:
            logger.debug("packet incomplete, waiting for more data")
            return None

        packet_id, read = decode_varint(buffer, offset)
        if packet_id != STATUS_RESPONSE_PACKET_ID:
            raise MalformedResponseError(
                f"Unexpected packet ID: {packet_id}. Expected 0x00."
            )
        offset += read

        json_length, read = decode_varint(buffer, offset)
        offset += read
    except BufferUnderflowError:
        logger.debug("buffer underflow while parsing VarInt, waiting for more data")
        return None

    if json_length < 0 or offset + json_length > packet_end:
        raise MalformedResponseError(
            f"JSON length {json_length} does not fit in a packet of {packet_length} bytes"
        )

    try:
        payload = ujson.loads(bytes(buffer[offset : offset + json_length]).decode("utf-8"))
    except (UnicodeDecodeError, ujson.JSONDecodeError) as e:
        raise MalformedResponseError(f"Invalid JSON in status response: {e}") from e

    logger.debug("received raw JSON response")
    return JavaPingResponse.from_status(payload), bytes(buffer[packet_end:])


class JavaStatusProtocol(StatusRequest, asyncio.Protocol):
    """
    Drives one status request over a stream transport.

    Incoming bytes are appended to a per-request buffer that is reparsed
    after every append, so responses split across reads are reassembled.
    """

    def __init__(
        self,
        virtual_host: str,
        address: tuple[str, int],
        protocol_version: int,
        timeout: int,
    ) -> None:
        super().__init__(address, timeout)
        self.virtual_host = virtual_host
        self.protocol_version = protocol_version
        self.buffer = bytearray()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        if not self._adopt_transport(transport):
            return

        sock = transport.get_extra_info("socket")
        if sock is not None:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        try:
            handshake = create_handshake_packet(
                self.virtual_host, self.address[1], self.protocol_version
            )
            status_request = create_status_request_packet()
        except MinePingError as e:
            self.fail(e)
            return

        logger.debug("sending handshake and status request to {}:{}", *self.address)
        transport.write(handshake)  # type: ignore
        transport.write(status_request)  # type: ignore
        self.state = RequestState.AWAITING_RESPONSE

    def data_received(self, data: bytes) -> None:
        if self.done:
            return
        self.buffer += data
        logger.debug(
            "received {} bytes of data, total buffer size is now {} bytes",
            len(data),
            len(self.buffer),
        )

        try:
            result = process_response(self.buffer)
        except MinePingError as e:
            self.fail(e)
            return

        if result is None:
            return
        response, remainder = result
        self.buffer = bytearray(remainder)
        logger.debug("successfully parsed full response")
        self.resolve(response)

    def connection_lost(self, exc: Exception | None) -> None:
        if self.done:
            return
        if exc is not None:
            self.fail(TransportError.from_exception(exc))
        else:
            logger.debug("socket for {}:{} closed prematurely", *self.address)
            self.fail(PrematureCloseError("Socket closed unexpectedly without a response."))


async def ping_java(
    host: str, options: JavaPingOptions | None = None, **kwargs
) -> JavaPingResponse:
    """
    Ping a Minecraft Java Edition server.

    Looks up the `_minecraft._tcp` SRV record first; without one the
    configured port (default 25565) is used.

    :param host: server address
    :param options: a `JavaPingOptions`, or pass its fields as keyword arguments
    :raises InvalidArgumentError: for a missing host or invalid options, before any I/O
    :raises MinePingError: for every failure once the request has started
    """
    check_host(host)
    options = build_options(JavaPingOptions, options, kwargs)
    logger.debug("pinging Java server {} with options: {}", host, options)

    loop = asyncio.get_running_loop()
    started = loop.time()

    target_host, target_port = host, options.effective_port
    srv = await resolve_srv(host, options.timeout)
    if srv is not None:
        target_host, target_port = srv

    # The lookup is charged against the same time budget.
    remaining = max(options.timeout - round((loop.time() - started) * 1000), 1)
    request = JavaStatusProtocol(
        host, (target_host, target_port), options.protocol_version, remaining
    )
    logger.debug("creating TCP connection to {}:{}", target_host, target_port)
    request.attach(
        loop.create_connection(
            lambda: request,
            target_host,
            target_port,
            family=socket.AF_INET6 if options.use_ipv6 else 0,
        )
    )
    return await request.wait()
