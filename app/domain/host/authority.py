# app/domain/host/authority.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence, Tuple

from app.store.models import PlayerStore

if TYPE_CHECKING:
    from app.store.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


def elect_host(players: Sequence[PlayerStore]) -> Optional[str]:
    """
    Earliest-joined remaining player wins. Connected humans go first, then
    humans in their reconnect grace, and AI opponents only when no human is left.
    """
    humans = [p for p in players if not p.is_ai]
    pool = [p for p in humans if p.connected] or humans or list(players)
    if not pool:
        return None
    return min(pool, key=lambda p: p.joined_seq).pid


def require_host(repo: "SessionRegistry", pid: Optional[str]) -> bool:
    return repo.is_host(pid)


def transfer_host(repo: "SessionRegistry", requester_pid: Optional[str], target_pid: str) -> Tuple[bool, str, str]:
    """
    Returns (ok, err_code, err_message).
    """
    if not require_host(repo, requester_pid):
        return False, "NOT_HOST", "Only the host can transfer host"

    target = repo.get_player(target_pid)
    if target is None:
        return False, "TARGET_NOT_FOUND", f"Player {target_pid} not found"
    if target.is_ai:
        return False, "BAD_TARGET", "AI opponents cannot be host"
    if not target.connected:
        return False, "BAD_TARGET", f"{target.name} is disconnected"

    repo.set_host(target.pid)
    logger.info("host transferred %s -> %s", requester_pid, target.pid)
    return True, "", ""
