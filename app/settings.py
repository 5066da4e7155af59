# app/settings.py
from __future__ import annotations

from pydantic import BaseModel
import os

from app.domain.common.types import TaggerLeavePolicy
from app.store.models import GameSettings


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "y", "on")


class Settings(BaseModel):
    APP_NAME: str = "geotag-server"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Dev
    LOG_LEVEL: str = "INFO"

    # WebSocket origin policy (comma-separated). Native mobile clients send no Origin.
    WS_ALLOWED_ORIGINS: str = "http://localhost:8081,http://127.0.0.1:8081,null"
    # Dev helper: allow any private LAN IP on WS_LAN_ORIGIN_PORT
    WS_ALLOW_LAN_ORIGINS: bool = True
    WS_LAN_ORIGIN_PORT: int = 8081

    # Game defaults (host can override per game)
    TAG_RADIUS_M: float = 50.0
    TAG_COOLDOWN_MS: int = 30000
    MIN_PLAYERS: int = 2
    TAGGER_LEAVE_POLICY: TaggerLeavePolicy = "reassign"

    # Connections
    RECONNECT_GRACE_SEC: int = 10
    SWEEP_INTERVAL_SEC: int = 10
    LOCATION_BROADCAST_MS: int = 1000

    # Timers
    ZONE_TICK_MS: int = 50
    OPPONENT_TICK_MS: int = 1000


def get_settings() -> Settings:
    return Settings(
        APP_NAME=os.getenv("APP_NAME", "geotag-server"),
        HOST=os.getenv("HOST", "0.0.0.0"),
        PORT=int(os.getenv("PORT", "3000")),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),

        WS_ALLOWED_ORIGINS=os.getenv(
            "WS_ALLOWED_ORIGINS",
            "http://localhost:8081,http://127.0.0.1:8081,null",
        ),
        WS_ALLOW_LAN_ORIGINS=_env_bool("WS_ALLOW_LAN_ORIGINS", "true"),
        WS_LAN_ORIGIN_PORT=int(os.getenv("WS_LAN_ORIGIN_PORT", "8081")),

        TAG_RADIUS_M=float(os.getenv("TAG_RADIUS_M", "50")),
        TAG_COOLDOWN_MS=int(os.getenv("TAG_COOLDOWN_MS", "30000")),
        MIN_PLAYERS=int(os.getenv("MIN_PLAYERS", "2")),
        TAGGER_LEAVE_POLICY=os.getenv("TAGGER_LEAVE_POLICY", "reassign"),

        RECONNECT_GRACE_SEC=int(os.getenv("RECONNECT_GRACE_SEC", "10")),
        SWEEP_INTERVAL_SEC=int(os.getenv("SWEEP_INTERVAL_SEC", "10")),
        LOCATION_BROADCAST_MS=int(os.getenv("LOCATION_BROADCAST_MS", "1000")),

        ZONE_TICK_MS=int(os.getenv("ZONE_TICK_MS", "50")),
        OPPONENT_TICK_MS=int(os.getenv("OPPONENT_TICK_MS", "1000")),
    )


def default_game_settings(settings: Settings) -> GameSettings:
    return GameSettings(
        tag_radius_m=settings.TAG_RADIUS_M,
        tag_cooldown_ms=settings.TAG_COOLDOWN_MS,
        min_players=settings.MIN_PLAYERS,
        tagger_leave_policy=settings.TAGGER_LEAVE_POLICY,
    )
