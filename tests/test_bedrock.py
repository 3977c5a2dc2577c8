import asyncio
import struct
import unittest
from unittest.mock import MagicMock, patch

from mineping.bedrock import (
    PING_FRAME_SIZE,
    RAKNET_MAGIC,
    BedrockStatusProtocol,
    create_unconnected_ping_frame,
    extract_motd,
    parse_motd,
    parse_unconnected_pong,
    ping_bedrock,
)
from mineping.errors import (
    ConnStatus,
    InvalidArgumentError,
    MalformedResponseError,
    PingTimeoutError,
    TransportError,
)
from mineping.request import RequestState

THIRD_PARTY_MOTD = (
    "MCPE;§l§bＯａｓｙｓ§fＰＥ  §eГриф§7, §cДуэли§7, §aКейсы;0;1337;1070;1999;"
    "-138584171542148188;oasys-pe.ru;Adventure;1"
)
BDS_MOTD = (
    "MCPE;Dedicated Server;800;1.21.84;0;10;11546321190880321782;"
    "Bedrock level;Survival;1;19132;19133;0;"
)
MINIMAL_MOTD = "MCPE;Minimal;712;1.20.80;3;20;12345;world;Creative"


def create_mock_pong_packet(motd, packet_id=0x1C):
    motd_bytes = motd.encode("utf-8")
    return (
        struct.pack("<Bqq", packet_id, 123456, 987654)
        + RAKNET_MAGIC
        + struct.pack(">H", len(motd_bytes))
        + motd_bytes
    )


class TestFrames(unittest.TestCase):
    def test_ping_frame_layout(self):
        frame = create_unconnected_ping_frame(1234, b"\x01\x02\x03\x04\x05\x06\x07\x08")
        self.assertEqual(len(frame), PING_FRAME_SIZE)
        self.assertEqual(frame[0], 0x01)
        self.assertEqual(struct.unpack_from("<q", frame, 1)[0], 1234)
        self.assertEqual(frame[9:25], RAKNET_MAGIC)
        self.assertEqual(frame[25:], b"\x01\x02\x03\x04\x05\x06\x07\x08")

    def test_ping_frame_random_guid(self):
        first = create_unconnected_ping_frame(0)
        second = create_unconnected_ping_frame(0)
        self.assertEqual(len(first), PING_FRAME_SIZE)
        self.assertNotEqual(first[25:], second[25:])

    def test_extract_motd(self):
        self.assertEqual(extract_motd(create_mock_pong_packet(BDS_MOTD)), BDS_MOTD)

    def test_extract_ignores_trailing_bytes(self):
        packet = create_mock_pong_packet("MCPE;a;1;1.0;0") + b"\x00\x00"
        self.assertEqual(extract_motd(packet), "MCPE;a;1;1.0;0")

    def test_rejects_bad_datagrams(self):
        cases = {
            "empty": b"",
            "undersized": b"\x1c" + b"\x00" * 20,
            "wrong id": create_mock_pong_packet(BDS_MOTD, packet_id=0x1D),
            "overrun": create_mock_pong_packet(BDS_MOTD)[:-5],
        }
        for name, packet in cases.items():
            with self.subTest(name):
                with self.assertRaises(MalformedResponseError):
                    extract_motd(packet)

    def test_parse_motd_requires_five_fields(self):
        with self.assertRaises(MalformedResponseError):
            parse_motd("MCPE;name;1;1.0")
        record = parse_motd("MCPE;name;1;1.0;4")
        self.assertEqual(record["online"], "4")
        self.assertNotIn("max", record)


class TestParsePong(unittest.TestCase):
    def test_third_party_server(self):
        result = parse_unconnected_pong(create_mock_pong_packet(THIRD_PARTY_MOTD))
        self.assertEqual(
            result.model_dump(),
            {
                "edition": "MCPE",
                "name": "§l§bＯａｓｙｓ§fＰＥ  §eГриф§7, §cДуэли§7, §aКейсы",
                "level_name": "oasys-pe.ru",
                "gamemode": "Adventure",
                "version": {"protocol": 0, "minecraft": "1337"},
                "players": {"online": 1070, "max": 1999},
                "port": {"v4": None, "v6": None},
                "guid": -138584171542148188,
                "is_nintendo_limited": False,
                "is_editor_mode_enabled": None,
            },
        )
        self.assertEqual(result.stripped_motd, "ＯａｓｙｓＰＥ  Гриф, Дуэли, Кейсы")

    def test_full_bds_motd(self):
        result = parse_unconnected_pong(create_mock_pong_packet(BDS_MOTD))
        self.assertEqual(
            result.model_dump(),
            {
                "edition": "MCPE",
                "name": "Dedicated Server",
                "level_name": "Bedrock level",
                "gamemode": "Survival",
                "version": {"protocol": 800, "minecraft": "1.21.84"},
                "players": {"online": 0, "max": 10},
                "port": {"v4": 19132, "v6": 19133},
                "guid": 11546321190880321782,
                "is_nintendo_limited": False,
                "is_editor_mode_enabled": False,
            },
        )

    def test_nintendo_limited_and_editor_mode(self):
        motd = "MCPE;Server;800;1.21.84;0;10;1;level;Survival;0;19132;19133;1"
        result = parse_unconnected_pong(create_mock_pong_packet(motd))
        self.assertIs(result.is_nintendo_limited, True)
        self.assertIs(result.is_editor_mode_enabled, True)

    def test_minimal_motd(self):
        result = parse_unconnected_pong(create_mock_pong_packet(MINIMAL_MOTD))
        self.assertEqual(result.guid, 12345)
        self.assertEqual(result.level_name, "world")
        self.assertEqual(result.gamemode, "Creative")
        self.assertIsNone(result.is_nintendo_limited)
        self.assertIsNone(result.port.v4)
        self.assertIsNone(result.port.v6)
        self.assertIsNone(result.is_editor_mode_enabled)

    def test_empty_text_fields_become_none(self):
        motd = "MCPE;Srv;800;1.21;0;10;1;;;1;19132;19133;0;"
        result = parse_unconnected_pong(create_mock_pong_packet(motd))
        self.assertIsNone(result.level_name)
        self.assertIsNone(result.gamemode)
        self.assertEqual(result.port.v4, 19132)
        self.assertEqual(result.status, ConnStatus.SUCCESS)

    def test_non_numeric_field(self):
        with self.assertRaises(MalformedResponseError):
            parse_unconnected_pong(create_mock_pong_packet("MCPE;name;abc;1.0;0;10"))


class TestBedrockStatusProtocol(unittest.IsolatedAsyncioTestCase):
    def make_protocol(self, timeout=5000):
        return BedrockStatusProtocol(("play.example.com", 19132), timeout)

    async def test_ping_and_pong(self):
        protocol = self.make_protocol()
        transport = MagicMock()
        protocol.connection_made(transport)

        transport.sendto.assert_called_once()
        frame = transport.sendto.call_args.args[0]
        self.assertEqual(len(frame), PING_FRAME_SIZE)
        self.assertEqual(frame[9:25], RAKNET_MAGIC)
        self.assertEqual(protocol.state, RequestState.AWAITING_RESPONSE)

        protocol.datagram_received(create_mock_pong_packet(BDS_MOTD), ("127.0.0.1", 19132))
        result = await protocol.wait()

        self.assertEqual(result.name, "Dedicated Server")
        transport.close.assert_called_once()

    async def test_timeout(self):
        protocol = self.make_protocol(timeout=50)
        transport = MagicMock()
        protocol.connection_made(transport)

        with self.assertRaisesRegex(PingTimeoutError, "Socket timeout"):
            await protocol.wait()
        transport.close.assert_called_once()

    async def test_generic_socket_error(self):
        protocol = self.make_protocol()
        protocol.connection_made(MagicMock())
        protocol.error_received(OSError("EHOSTUNREACH"))

        with self.assertRaisesRegex(TransportError, "EHOSTUNREACH"):
            await protocol.wait()

    async def test_only_rejects_once(self):
        protocol = self.make_protocol()
        transport = MagicMock()
        protocol.connection_made(transport)

        protocol.error_received(OSError("First error"))
        protocol.datagram_received(b"", ("127.0.0.1", 19132))

        with self.assertRaisesRegex(TransportError, "First error"):
            await protocol.wait()
        transport.close.assert_called_once()

    async def test_bad_datagram_is_a_single_rejection(self):
        for packet in (b"", b"\x1c\x00", create_mock_pong_packet(BDS_MOTD, packet_id=0x01)):
            with self.subTest(packet=packet[:4]):
                protocol = self.make_protocol()
                transport = MagicMock()
                protocol.connection_made(transport)
                protocol.datagram_received(packet, ("127.0.0.1", 19132))
                protocol.datagram_received(create_mock_pong_packet(BDS_MOTD), ("127.0.0.1", 19132))

                with self.assertRaises(MalformedResponseError):
                    await protocol.wait()
                transport.close.assert_called_once()


class EchoPongProtocol(asyncio.DatagramProtocol):
    def __init__(self, motd):
        self.motd = motd
        self.pings = []

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.pings.append(data)
        if self.motd is not None:
            self.transport.sendto(create_mock_pong_packet(self.motd), addr)


class TestPingBedrock(unittest.IsolatedAsyncioTestCase):
    async def start_server(self, motd):
        loop = asyncio.get_running_loop()
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: EchoPongProtocol(motd), local_addr=("127.0.0.1", 0)
        )
        self.addCleanup(transport.close)
        return transport.get_extra_info("sockname")[1], protocol

    async def test_ping(self):
        port, server = await self.start_server(BDS_MOTD)
        result = await ping_bedrock("127.0.0.1", port=port)

        self.assertEqual(result.version.minecraft, "1.21.84")
        self.assertEqual(result.guid, 11546321190880321782)
        self.assertEqual(len(server.pings), 1)
        self.assertEqual(server.pings[0][0], 0x01)
        self.assertEqual(len(server.pings[0]), PING_FRAME_SIZE)

    async def test_timeout_when_server_is_silent(self):
        port, _ = await self.start_server(None)
        with self.assertRaisesRegex(PingTimeoutError, "Socket timeout"):
            await ping_bedrock("127.0.0.1", port=port, timeout=100)

    async def test_missing_host(self):
        loop = asyncio.get_running_loop()
        with patch.object(loop, "create_datagram_endpoint") as endpoint:
            with self.assertRaisesRegex(InvalidArgumentError, "Host argument is required"):
                await ping_bedrock("")
            with self.assertRaises(InvalidArgumentError):
                await ping_bedrock(None)
        endpoint.assert_not_called()


if __name__ == "__main__":
    unittest.main()
