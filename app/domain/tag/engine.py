# app/domain/tag/engine.py
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Optional, Tuple

from app.domain.common.geo import distance_meters
from app.domain.common.types import TagCode
from app.store.models import GameStore, PlayerStore
from app.store.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


@dataclass
class TagOutcome:
    code: TagCode
    message: str
    tagger: Optional[PlayerStore] = None
    tagged: Optional[PlayerStore] = None
    distance_m: Optional[float] = None
    remaining_ms: int = 0

    @property
    def success(self) -> bool:
        return self.code == "TAGGED"

    @property
    def remaining_sec(self) -> int:
        return math.ceil(self.remaining_ms / 1000) if self.remaining_ms > 0 else 0


def cooldown_remaining_ms(game: GameStore, now_ms: int) -> int:
    """
    Session-wide cooldown: counts from the last successful tag by anyone.
    """
    if game.last_tag_ms is None:
        return 0
    return max(0, game.settings.tag_cooldown_ms - (now_ms - game.last_tag_ms))


def nearest_in_range(
    repo: SessionRegistry,
    tagger: PlayerStore,
    radius_m: float,
) -> Optional[Tuple[PlayerStore, float]]:
    """
    Closest other player with a known location within radius_m.
    Exact ties keep registry (join) order.
    """
    if tagger.location is None:
        return None

    best: Optional[Tuple[PlayerStore, float]] = None
    for p in repo.list_players():
        if p.pid == tagger.pid or p.location is None:
            continue
        d = distance_meters(tagger.location, p.location)
        if d > radius_m:
            continue
        if best is None or d < best[1]:
            best = (p, d)
    return best


def attempt_tag(repo: SessionRegistry, game: GameStore, tagger_pid: Optional[str], now_ms: int) -> TagOutcome:
    """
    Tagger -> runner hand-off.
    Checks in order: known player, game running, caller is it, cooldown,
    caller location, nearest runner in range. Only the last step mutates.
    """
    tagger = repo.get_player(tagger_pid)
    if tagger is None:
        return TagOutcome(code="UNKNOWN_PLAYER", message="Unknown player")

    if not game.in_progress:
        return TagOutcome(code="NOT_IN_GAME", message="No game in progress", tagger=tagger)

    if not repo.is_tagger(tagger.pid):
        return TagOutcome(code="NOT_TAGGER", message="You are not it", tagger=tagger)

    remaining = cooldown_remaining_ms(game, now_ms)
    if remaining > 0:
        outcome = TagOutcome(code="COOLDOWN", message="", tagger=tagger, remaining_ms=remaining)
        outcome.message = f"Still cooling down, {outcome.remaining_sec}s left"
        logger.debug("tag rejected: cooldown pid=%s remaining_ms=%d", tagger.pid, remaining)
        return outcome

    if tagger.location is None:
        return TagOutcome(code="NO_LOCATION", message="Your location is not known yet", tagger=tagger)

    hit = nearest_in_range(repo, tagger, game.settings.tag_radius_m)
    if hit is None:
        logger.debug("tag rejected: no one in range pid=%s", tagger.pid)
        return TagOutcome(code="NO_TARGET", message="No one in range", tagger=tagger)

    tagged, distance = hit
    repo.set_tagger(tagged.pid)
    repo.add_score(tagger.pid)
    game.last_tag_ms = now_ms

    logger.info("%s tagged %s at %.1fm", tagger.name, tagged.name, distance)
    return TagOutcome(
        code="TAGGED",
        message=f"You tagged {tagged.name}!",
        tagger=tagger,
        tagged=tagged,
        distance_m=distance,
    )


def pick_random_tagger(
    repo: SessionRegistry,
    rng: random.Random,
    exclude: Optional[str] = None,
) -> Optional[str]:
    """
    Uniform pick among current players. Players waiting out their reconnect
    grace are only picked when nobody else is left.
    """
    pool = [p for p in repo.list_players() if p.pid != exclude]
    connected = [p for p in pool if p.connected]
    pool = connected or pool
    if not pool:
        return None
    return rng.choice(pool).pid
