"""
Varint codec and packet framing for the Java Edition protocol.

See https://minecraft.wiki/w/Java_Edition_protocol/Data_types#VarInt_and_VarLong
"""

import struct

from .errors import (
    BufferUnderflowError,
    InvalidArgumentError,
    MalformedVarIntError,
    VarIntTooLargeError,
)

VARINT_MAX_BYTES = 5
"""VarInts are never longer than 5 bytes"""

_INT32_MIN = -(1 << 31)
_UINT32_LIMIT = 1 << 32


def encode_varint(value: int) -> bytes:
    """
    Encode an integer as a varint.

    Negative values are written as their unsigned 32-bit two's-complement
    pattern, so `-1` takes the full 5 bytes.

    :param value: integer in the range [-2**31, 2**32)
    :raises VarIntTooLargeError: if the value does not fit in 5 bytes
    """
    if 0 <= value < 0x80:
        return bytes((value,))

    if not _INT32_MIN <= value < _UINT32_LIMIT:
        raise VarIntTooLargeError(f"Value {value} does not fit in a VarInt")

    value &= 0xFFFFFFFF
    ordinal = bytearray()

    while True:
        byte = value & 0x7F
        value >>= 7

        if value == 0:
            ordinal.append(byte)
            break

        ordinal.append(byte | 0x80)

    return bytes(ordinal)


def decode_varint(buffer: bytes | bytearray, offset: int = 0) -> tuple[int, int]:
    """
    Decode a varint starting at `offset`.

    :returns: tuple of the decoded (signed 32-bit) value and the number of bytes read
    :raises BufferUnderflowError: if the buffer ends before the varint does
    :raises MalformedVarIntError: if the varint is longer than 5 bytes
    """
    if offset >= len(buffer):
        raise BufferUnderflowError("Buffer underflow while decoding VarInt")

    first = buffer[offset]
    if not first & 0x80:
        return first, 1

    value = 0
    for i in range(VARINT_MAX_BYTES):
        position = offset + i
        if position >= len(buffer):
            raise BufferUnderflowError("Buffer underflow while decoding VarInt")

        byte = buffer[position]
        value |= (byte & 0x7F) << 7 * i

        if not byte & 0x80:
            value &= 0xFFFFFFFF
            if value & 0x80000000:
                value -= _UINT32_LIMIT
            return value, i + 1

    raise MalformedVarIntError("VarInt is too big")


def varint_length(value: int) -> int:
    """
    Number of bytes `encode_varint` writes for `value`.

    :raises VarIntTooLargeError: if `encode_varint` would reject the value
    """
    if not _INT32_MIN <= value < _UINT32_LIMIT:
        raise VarIntTooLargeError(f"Value {value} does not fit in a VarInt")
    if value < 0:
        return VARINT_MAX_BYTES
    for length in range(1, VARINT_MAX_BYTES):
        if value < 1 << 7 * length:
            return length
    return VARINT_MAX_BYTES


def encode_string(value: str) -> bytes:
    return value.encode("utf-8")


def encode_ushort(value: int) -> bytes:
    """Encode an unsigned short, big-endian."""
    if not 0 <= value <= 0xFFFF:
        raise InvalidArgumentError(f"Value {value} is not an unsigned short")
    return struct.pack(">H", value)


def concat_packets(chunks: list[bytes]) -> bytes:
    """Join `chunks` and prepend the total length as a varint."""
    payload = b"".join(chunks)
    return encode_varint(len(payload)) + payload
