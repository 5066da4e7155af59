from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, ValidationError

from app.domain.common.types import Difficulty, Mode, ZonePhase


# =========================
# Incoming (Client -> Server)
# =========================

class InBase(BaseModel):
    type: str


# ---- Lifecycle ----

class InJoin(InBase):
    type: Literal["join"] = "join"
    username: str = Field(min_length=1, max_length=24)


class InReconnect(InBase):
    type: Literal["reconnect"] = "reconnect"
    pid: str = Field(min_length=1, max_length=64)


class InLeave(InBase):
    type: Literal["leave"] = "leave"


class InHeartbeat(InBase):
    type: Literal["heartbeat"] = "heartbeat"


class InSnapshot(InBase):
    type: Literal["snapshot"] = "snapshot"


# ---- Gameplay ----

class InUpdateLocation(InBase):
    type: Literal["update_location"] = "update_location"
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class InAttemptTag(InBase):
    type: Literal["attempt_tag"] = "attempt_tag"


# ---- Host-only ----

class InStartGame(InBase):
    type: Literal["start_game"] = "start_game"
    # partial GameSettings merged over the lobby settings
    settings: Optional[Dict[str, Any]] = None


class InStartSolo(InBase):
    type: Literal["start_solo"] = "start_solo"
    opponents: int = Field(default=3, ge=1, le=7)
    difficulty: Difficulty = "medium"
    settings: Optional[Dict[str, Any]] = None


class InEndGame(InBase):
    type: Literal["end_game"] = "end_game"


class InTransferHost(InBase):
    type: Literal["transfer_host"] = "transfer_host"
    target_pid: str = Field(min_length=1)


class InUpdateSettings(InBase):
    type: Literal["update_settings"] = "update_settings"
    settings: Dict[str, Any]


IncomingMessage = Union[
    InJoin,
    InReconnect,
    InLeave,
    InHeartbeat,
    InSnapshot,
    InUpdateLocation,
    InAttemptTag,
    InStartGame,
    InStartSolo,
    InEndGame,
    InTransferHost,
    InUpdateSettings,
]


# =========================
# Outgoing (Server -> Client)
# =========================

class OutBase(BaseModel):
    type: str


class OutError(OutBase):
    type: Literal["error"] = "error"
    code: str
    message: str


class OutHello(OutBase):
    type: Literal["hello"] = "hello"
    pid: str


class OutPong(OutBase):
    type: Literal["pong"] = "pong"
    ts: int


class OutPlayersUpdated(OutBase):
    type: Literal["players_updated"] = "players_updated"
    players: List[Dict[str, Any]]


class OutYouAreHost(OutBase):
    """
    Private notice. `targets` is stripped by the transport and the event is
    delivered only to those pids.
    """
    type: Literal["you_are_host"] = "you_are_host"
    targets: List[str]


class OutSessionSnapshot(OutBase):
    type: Literal["session_snapshot"] = "session_snapshot"
    game: Dict[str, Any]
    settings: Dict[str, Any]
    players: List[Dict[str, Any]]
    zone: Optional[Dict[str, Any]] = None


class OutGameStarted(OutBase):
    type: Literal["game_started"] = "game_started"
    mode: Mode
    game: Dict[str, Any]
    settings: Dict[str, Any]
    players: List[Dict[str, Any]]
    tagger_pid: Optional[str] = None
    zone: Optional[Dict[str, Any]] = None


class OutGameEnded(OutBase):
    type: Literal["game_ended"] = "game_ended"
    reason: str
    game_no: int
    players: List[Dict[str, Any]] = Field(default_factory=list)


class OutTimeUpdate(OutBase):
    type: Literal["time_update"] = "time_update"
    remaining_sec: int


class OutSettingsUpdated(OutBase):
    type: Literal["settings_updated"] = "settings_updated"
    settings: Dict[str, Any]


class OutTagResult(OutBase):
    type: Literal["tag_result"] = "tag_result"
    success: bool
    code: str
    message: str
    remaining_sec: int = 0


class OutPlayerTagged(OutBase):
    type: Literal["player_tagged"] = "player_tagged"
    tagger_pid: str
    tagger_name: str
    tagged_pid: str
    tagged_name: str
    distance_m: float
    ts: int


class OutTaggerChanged(OutBase):
    type: Literal["tagger_changed"] = "tagger_changed"
    pid: Optional[str] = None
    name: Optional[str] = None
    reason: str


class OutZoneUpdated(OutBase):
    type: Literal["zone_updated"] = "zone_updated"
    phase: ZonePhase
    center: Dict[str, float]
    radius: float
    seconds_left: int
    cycle: int
    target_center: Optional[Dict[str, float]] = None
    target_radius: Optional[float] = None


OutgoingEvent = Union[
    OutError,
    OutHello,
    OutPong,
    OutPlayersUpdated,
    OutYouAreHost,
    OutSessionSnapshot,
    OutGameStarted,
    OutGameEnded,
    OutTimeUpdate,
    OutSettingsUpdated,
    OutTagResult,
    OutPlayerTagged,
    OutTaggerChanged,
    OutZoneUpdated,
]


# =========================
# Parser helpers
# =========================

_INCOMING_BY_TYPE = {
    "join": InJoin,
    "reconnect": InReconnect,
    "leave": InLeave,
    "heartbeat": InHeartbeat,
    "snapshot": InSnapshot,
    "update_location": InUpdateLocation,
    "attempt_tag": InAttemptTag,
    "start_game": InStartGame,
    "start_solo": InStartSolo,
    "end_game": InEndGame,
    "transfer_host": InTransferHost,
    "update_settings": InUpdateSettings,
}


def parse_incoming(payload: Dict[str, Any]) -> IncomingMessage:
    """
    Convert raw dict -> validated message model.
    Raises ValidationError if invalid.
    """
    if not isinstance(payload, dict):
        raise ValueError("Message must be a JSON object")

    t = payload.get("type")
    if not isinstance(t, str):
        raise ValidationError.from_exception_data(
            title="IncomingMessage",
            line_errors=[{"loc": ("type",), "input": t, "ctx": {"error": "Missing/invalid type"}, "type": "value_error"}],
        )

    cls = _INCOMING_BY_TYPE.get(t)
    if cls is None:
        raise ValidationError.from_exception_data(
            title="IncomingMessage",
            line_errors=[{"loc": ("type",), "input": t, "ctx": {"error": f"Unknown message type: {t}"}, "type": "value_error"}],
        )

    return cls.model_validate(payload)


def zone_event(zone) -> OutZoneUpdated:
    return OutZoneUpdated(**zone.model_dump(include={
        "phase", "center", "radius", "seconds_left", "cycle", "target_center", "target_radius",
    }))
