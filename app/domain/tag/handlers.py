# app/domain/tag/handlers.py
from __future__ import annotations

from typing import List, Optional, Tuple

from app.domain.common.session import GameSession
from app.domain.tag.engine import TagOutcome, attempt_tag
from app.transport.protocols import (
    InAttemptTag,
    OutgoingEvent,
    OutPlayersUpdated,
    OutPlayerTagged,
    OutTagResult,
)
from app.util.timeutil import now_ms

Result = Tuple[List[OutgoingEvent], List[OutgoingEvent]]


def tag_result(outcome: TagOutcome) -> OutTagResult:
    return OutTagResult(
        success=outcome.success,
        code=outcome.code,
        message=outcome.message,
        remaining_sec=outcome.remaining_sec,
    )


def tag_broadcast(session: GameSession, outcome: TagOutcome, ts: int) -> List[OutgoingEvent]:
    """
    Room events for a successful tag.
    """
    return [
        OutPlayerTagged(
            tagger_pid=outcome.tagger.pid,
            tagger_name=outcome.tagger.name,
            tagged_pid=outcome.tagged.pid,
            tagged_name=outcome.tagged.name,
            distance_m=round(outcome.distance_m, 2),
            ts=ts,
        ),
        OutPlayersUpdated(players=session.repo.snapshot(session.game.zone)),
    ]


async def handle_attempt_tag(*, app, pid: Optional[str], msg: InAttemptTag) -> Result:
    session: GameSession = app.state.session
    ts = now_ms()

    outcome = attempt_tag(session.repo, session.game, pid, ts)
    if outcome.code == "UNKNOWN_PLAYER":
        # stale / never-joined connection: ignore
        return [], []

    if not outcome.success:
        return [tag_result(outcome)], []

    return [tag_result(outcome)], tag_broadcast(session, outcome, ts)
