"""
Public response shapes of both editions.

The Java model follows the Status Response JSON
(https://minecraft.wiki/w/Java_Edition_protocol/Server_List_Ping#Status_Response),
the Bedrock model is built from the positional MOTD record of an Unconnected Pong.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConnStatus, MalformedResponseError
from .utils import strip_motd_formatting


class PlayerSample(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    id: str | None = None
    """Missing for text-only lines some servers put in the sample"""


class JavaVersion(BaseModel):
    name: str
    """Version name, servers are free to put anything here"""
    protocol: int
    """Protocol version number"""


class JavaPlayers(BaseModel):
    max: int
    online: int
    sample: list[PlayerSample] | None = None
    """A sample of online players, may be empty or missing even if `online` > 0"""


class JavaPingResponse(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    version: JavaVersion
    players: JavaPlayers | None = None
    description: str | dict | list | None = None
    """The MOTD, either plain text or a chat component"""
    favicon: str | None = None
    """A `data:image/png;base64,...` URI of the 64x64 server icon"""
    enforces_secure_chat: bool | None = Field(default=None, alias="enforcesSecureChat")
    prevents_chat_reports: bool | None = Field(default=None, alias="preventsChatReports")

    @classmethod
    def from_status(cls, raw: Any) -> "JavaPingResponse":
        """
        Build the response from the decoded status JSON.

        :raises MalformedResponseError: if the JSON does not look like a status response
        """
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid status response: {e}") from e

    @property
    def stripped_motd(self) -> str:
        return strip_motd_formatting(self.description)

    @property
    def status(self) -> ConnStatus:
        return ConnStatus.SUCCESS


class BedrockVersion(BaseModel):
    protocol: int
    minecraft: str


class BedrockPlayers(BaseModel):
    online: int
    max: int | None = None


class BedrockPorts(BaseModel):
    v4: int | None = None
    v6: int | None = None


class BedrockPingResponse(BaseModel):
    edition: str
    """MCPE or MCEE"""
    name: str
    level_name: str | None = None
    gamemode: str | None = None
    version: BedrockVersion
    players: BedrockPlayers
    port: BedrockPorts
    guid: int | None = None
    """Server GUID, anywhere in the signed or unsigned 64-bit range"""
    is_nintendo_limited: bool | None = None
    is_editor_mode_enabled: bool | None = None

    @classmethod
    def from_motd(cls, record: dict[str, str]) -> "BedrockPingResponse":
        """
        Build the response from a positional MOTD record, see `bedrock.parse_motd`.

        :raises ValueError: if a numeric field is not a number
        """
        editor_mode = _optional_int(record.get("editor_mode"))
        return cls(
            edition=record["edition"],
            name=record["name"],
            level_name=record.get("sub_name") or None,
            gamemode=record.get("gamemode") or None,
            version=BedrockVersion(
                protocol=int(record["protocol"]),
                minecraft=record["version"],
            ),
            players=BedrockPlayers(
                online=int(record["online"]),
                max=_optional_int(record.get("max")),
            ),
            port=BedrockPorts(
                v4=_optional_int(record.get("port_v4")),
                v6=_optional_int(record.get("port_v6")),
            ),
            guid=_optional_int(record.get("guid")),
            is_nintendo_limited=_nintendo_limited(record.get("nintendo_limited")),
            is_editor_mode_enabled=None if editor_mode is None else bool(editor_mode),
        )

    @property
    def stripped_motd(self) -> str:
        return strip_motd_formatting(self.name)

    @property
    def status(self) -> ConnStatus:
        return ConnStatus.SUCCESS


def _optional_int(value: str | None) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _nintendo_limited(value: str | None) -> bool | None:
    # "0" means limited, "1" means not limited.
    if value == "0":
        return True
    if value == "1":
        return False
    return None
