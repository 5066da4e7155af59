# app/domain/common/fsm.py
from __future__ import annotations

from app.domain.common.types import GameState, ZonePhase


def can_transition_to(current: GameState, target: GameState) -> bool:
    """
    Validate game state transitions.
    """
    transitions: dict[GameState, list[GameState]] = {
        "LOBBY": ["IN_GAME"],
        "IN_GAME": ["GAME_END"],
        "GAME_END": ["IN_GAME", "LOBBY"],
    }
    return target in transitions.get(current, [])


def next_zone_phase(current: ZonePhase) -> ZonePhase:
    """
    Safe-zone cycle: WAITING -> WARNING -> SHRINKING -> WAITING.
    """
    cycle: dict[ZonePhase, ZonePhase] = {
        "WAITING": "WARNING",
        "WARNING": "SHRINKING",
        "SHRINKING": "WAITING",
    }
    return cycle[current]
