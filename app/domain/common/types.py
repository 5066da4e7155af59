# app/domain/common/types.py
from __future__ import annotations

from typing import Literal

Mode = Literal["MULTI", "SOLO"]
GameState = Literal["LOBBY", "IN_GAME", "GAME_END"]
ZonePhase = Literal["WAITING", "WARNING", "SHRINKING"]
Difficulty = Literal["easy", "medium", "hard"]
TaggerLeavePolicy = Literal["reassign", "none"]

EndReason = Literal["TIME_UP", "HOST_ENDED", "EMPTY", "NO_HUMANS", "ADMIN"]
TagCode = Literal["TAGGED", "NOT_IN_GAME", "NOT_TAGGER", "COOLDOWN", "NO_LOCATION", "NO_TARGET", "UNKNOWN_PLAYER"]
