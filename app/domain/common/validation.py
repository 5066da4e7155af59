# app/domain/common/validation.py
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError

from app.store.models import GameSettings, PlayerStore


def is_stale(player: Optional[PlayerStore], cutoff_ts: int) -> bool:
    """Check if a disconnected player has outlived the reconnect grace period."""
    return player is not None and not player.connected and player.last_seen <= cutoff_ts


def merge_settings(current: GameSettings, partial: Optional[Dict[str, Any]]) -> Tuple[Optional[GameSettings], str]:
    """
    Merge a partial settings dict over `current` and re-validate the whole model.
    Returns (settings, err_message); settings is None when invalid.
    """
    if not partial:
        return current, ""

    unknown = sorted(set(partial) - set(GameSettings.model_fields))
    if unknown:
        return None, f"Unknown settings: {', '.join(unknown)}"

    merged = {**current.model_dump(), **partial}
    try:
        return GameSettings.model_validate(merged), ""
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        loc = ".".join(str(x) for x in first.get("loc", ()))
        msg = first.get("msg", str(e))
        return None, f"{loc}: {msg}" if loc else msg
