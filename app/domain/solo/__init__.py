from __future__ import annotations

from .handlers import handle_start_solo
from .opponents import ChaseFleeSource, OpponentSource, move_opponents, spawn_opponents

__all__ = [
    "handle_start_solo",
    "ChaseFleeSource",
    "OpponentSource",
    "move_opponents",
    "spawn_opponents",
]
