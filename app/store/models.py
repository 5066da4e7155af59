from __future__ import annotations

from typing import Optional, Any, Dict
from pydantic import BaseModel, Field, model_validator

from app.domain.common.types import Difficulty, GameState, Mode, TaggerLeavePolicy, ZonePhase


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class PlayerStore(BaseModel):
    """
    Host and tagger are NOT stored here: the registry keeps one host pid and
    one tagger pid, and views derive is_host / is_it from those.
    """
    pid: str
    name: str
    location: Optional[Coordinates] = None
    joined_seq: int
    joined_at: int
    last_seen: int
    connected: bool = True
    score: int = 0
    is_ai: bool = False
    difficulty: Optional[Difficulty] = None


class GameSettings(BaseModel):
    # Duration
    duration_sec: int = Field(default=300, ge=60, le=3600)

    # Tagging
    tag_radius_m: float = Field(default=50.0, gt=0, le=500)
    tag_cooldown_ms: int = Field(default=30000, ge=0, le=600000)
    auto_tag_on_move: bool = False
    min_players: int = Field(default=2, ge=1, le=50)
    tagger_leave_policy: TaggerLeavePolicy = "reassign"

    # Safe zone (battle royale)
    zone_enabled: bool = True
    zone_center: Optional[Coordinates] = None
    initial_circle_size: float = Field(default=100.0, ge=50, le=20000)
    circle_shrink_percent: float = Field(default=30.0, ge=10, le=50)
    shrink_duration_sec: int = Field(default=30, ge=1, le=600)
    shrink_interval_sec: int = Field(default=30, ge=5, le=3600)
    warning_sec: int = Field(default=10, ge=0, le=3600)
    min_radius: float = Field(default=10.0, ge=1)

    @model_validator(mode="after")
    def _check_zone_timing(self) -> "GameSettings":
        if self.warning_sec >= self.shrink_interval_sec:
            raise ValueError("warning_sec must be shorter than shrink_interval_sec")
        if self.min_radius > self.initial_circle_size:
            raise ValueError("min_radius cannot exceed initial_circle_size")
        return self


class ZoneStore(BaseModel):
    phase: ZonePhase = "WAITING"
    center: Coordinates
    radius: float
    seconds_left: int = 0
    cycle: int = 0

    # pending circle, announced during WARNING, reached at the end of SHRINKING
    target_center: Optional[Coordinates] = None
    target_radius: Optional[float] = None

    # shrink animation bookkeeping
    start_center: Optional[Coordinates] = None
    start_radius: Optional[float] = None
    shrink_elapsed_ms: int = 0

    def public(self) -> Dict[str, Any]:
        return self.model_dump(
            include={"phase", "center", "radius", "seconds_left", "cycle", "target_center", "target_radius"}
        )


class GameStore(BaseModel):
    state: GameState = "LOBBY"
    mode: Mode = "MULTI"
    game_no: int = 0
    settings: GameSettings = Field(default_factory=GameSettings)
    started_at: int = 0
    duration_remaining: int = 0
    last_tag_ms: Optional[int] = None
    end_reason: Optional[str] = None
    zone: Optional[ZoneStore] = None

    @property
    def in_progress(self) -> bool:
        return self.state == "IN_GAME"

    def public(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "mode": self.mode,
            "game_no": self.game_no,
            "started_at": self.started_at,
            "duration_remaining": self.duration_remaining,
            "last_tag_ms": self.last_tag_ms,
            "tag_cooldown_ms": self.settings.tag_cooldown_ms,
            "end_reason": self.end_reason,
        }
