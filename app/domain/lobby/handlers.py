from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from app.domain.common.session import GameSession
from app.domain.common.validation import merge_settings
from app.domain.host.authority import require_host
from app.domain.lifecycle.handlers import build_snapshot, players_event, remove_player
from app.domain.tag.engine import attempt_tag
from app.domain.tag.handlers import tag_broadcast, tag_result
from app.store.models import Coordinates
from app.transport.protocols import (
    InHeartbeat,
    InJoin,
    InLeave,
    InReconnect,
    InSnapshot,
    InUpdateLocation,
    InUpdateSettings,
    OutError,
    OutgoingEvent,
    OutPong,
    OutSettingsUpdated,
    OutYouAreHost,
)
from app.util.timeutil import now_ms, now_ts

logger = logging.getLogger(__name__)

Result = Tuple[List[OutgoingEvent], List[OutgoingEvent]]


async def handle_join(*, app, pid: Optional[str], msg: InJoin) -> Result:
    if not pid:
        return [OutError(code="NO_PID", message="Missing pid")], []

    name = msg.username.strip()
    if not name:
        return [OutError(code="BAD_MESSAGE", message="Username cannot be blank")], []

    session: GameSession = app.state.session
    _, became_host = session.repo.join(pid, name, now_ts())

    to_room: List[OutgoingEvent] = [players_event(session)]
    if became_host:
        to_room.append(OutYouAreHost(targets=[pid]))
    return [build_snapshot(session)], to_room


async def handle_reconnect(*, app, pid: Optional[str], msg: InReconnect) -> Result:
    """
    The transport has already re-bound this socket to msg.pid; this only
    revives the player if it is still inside its grace period.
    """
    session: GameSession = app.state.session
    repo = session.repo

    p = repo.set_connected(msg.pid, True, now_ts())
    if p is None:
        return [OutError(code="NOT_JOINED", message="Session expired, join again")], []

    logger.info("player reconnected pid=%s name=%s", p.pid, p.name)
    to_room: List[OutgoingEvent] = [players_event(session)]
    if repo.is_host(p.pid):
        to_room.append(OutYouAreHost(targets=[p.pid]))
    return [build_snapshot(session)], to_room


async def handle_leave(*, app, pid: Optional[str], msg: InLeave) -> Result:
    session: GameSession = app.state.session
    return [], await remove_player(session, pid)


async def handle_heartbeat(*, app, pid: Optional[str], msg: InHeartbeat) -> Result:
    session: GameSession = app.state.session
    ts = now_ts()
    p = session.repo.get_player(pid)
    if p is not None:
        p.last_seen = ts
    return [OutPong(ts=ts)], []


async def handle_snapshot(*, app, pid: Optional[str], msg: InSnapshot) -> Result:
    session: GameSession = app.state.session
    return [build_snapshot(session)], []


async def handle_update_location(*, app, pid: Optional[str], msg: InUpdateLocation) -> Result:
    session: GameSession = app.state.session
    repo = session.repo
    game = session.game
    ts = now_ms()

    p = repo.update_location(pid, Coordinates(latitude=msg.latitude, longitude=msg.longitude), ts // 1000)
    if p is None:
        return [], []

    if game.in_progress and game.settings.auto_tag_on_move and repo.is_tagger(p.pid):
        outcome = attempt_tag(repo, game, p.pid, ts)
        if outcome.success:
            session.last_roster_push_ms = ts
            return [tag_result(outcome)], tag_broadcast(session, outcome, ts)

    # roster pushes are throttled; every client still gets the latest on the next one
    if ts - session.last_roster_push_ms < session.config.LOCATION_BROADCAST_MS:
        return [], []
    session.last_roster_push_ms = ts
    return [], [players_event(session)]


async def handle_update_settings(*, app, pid: Optional[str], msg: InUpdateSettings) -> Result:
    session: GameSession = app.state.session
    repo = session.repo
    game = session.game

    if repo.get_player(pid) is None:
        return [], []
    if not require_host(repo, pid):
        return [OutError(code="NOT_HOST", message="Only the host can change settings")], []
    if game.in_progress:
        return [OutError(code="BAD_STATE", message="Settings are locked while a game is running")], []

    settings, err = merge_settings(game.settings, msg.settings)
    if settings is None:
        return [OutError(code="BAD_SETTINGS", message=err)], []

    game.settings = settings
    return [], [OutSettingsUpdated(settings=settings.model_dump())]
