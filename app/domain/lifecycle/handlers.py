# app/domain/lifecycle/handlers.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from app.domain.common.fsm import can_transition_to
from app.domain.common.session import GameSession
from app.domain.common.types import EndReason, Mode
from app.domain.common.validation import is_stale, merge_settings
from app.domain.host.authority import require_host
from app.domain.tag.engine import pick_random_tagger
from app.domain.zone.controller import ZoneController, pick_anchor
from app.transport.protocols import (
    InEndGame,
    InStartGame,
    OutError,
    OutGameEnded,
    OutGameStarted,
    OutgoingEvent,
    OutPlayersUpdated,
    OutSessionSnapshot,
    OutTaggerChanged,
    OutTimeUpdate,
    OutYouAreHost,
    zone_event,
)
from app.util.timeutil import now_ts

logger = logging.getLogger(__name__)

# Returns: (to_sender, to_room)
Result = Tuple[List[OutgoingEvent], List[OutgoingEvent]]

# (task name, factory(session, generation)) for extra per-game loops
Runner = Tuple[str, Callable[[GameSession, int], Awaitable[None]]]


def players_event(session: GameSession) -> OutPlayersUpdated:
    return OutPlayersUpdated(players=session.repo.snapshot(session.game.zone))


def build_snapshot(session: GameSession) -> OutSessionSnapshot:
    game = session.game
    return OutSessionSnapshot(
        game=game.public(),
        settings=game.settings.model_dump(),
        players=session.repo.snapshot(game.zone),
        zone=game.zone.public() if game.zone else None,
    )


# -------------------------
# Game start / end
# -------------------------

async def begin_game(
    session: GameSession,
    *,
    mode: Mode,
    tagger_pid: Optional[str],
    runners: Sequence[Runner] = (),
) -> List[OutgoingEvent]:
    """
    Reset per-game state, pick up the zone, and start every timer.
    Caller has already validated host / player count / settings.
    """
    await session.timers.cancel_all()

    repo = session.repo
    game = session.game
    settings = game.settings

    game.state = "IN_GAME"
    game.mode = mode
    game.game_no += 1
    game.started_at = now_ts()
    game.duration_remaining = settings.duration_sec
    game.last_tag_ms = None
    game.end_reason = None
    game.zone = None

    repo.reset_scores()
    repo.set_tagger(tagger_pid)

    if settings.zone_enabled:
        anchor = pick_anchor(repo, settings)
        if anchor is not None:
            game.zone = ZoneController.start(settings, anchor, session.rng).zone
        else:
            logger.warning("no player location known, game %d runs without a safe zone", game.game_no)

    gen = session.timers.generation
    session.timers.spawn(run_countdown(session, gen), "countdown")
    if game.zone is not None:
        session.timers.spawn(run_zone(session, gen), "zone")
    for name, factory in runners:
        session.timers.spawn(factory(session, gen), name)

    tagger = repo.get_player(tagger_pid)
    logger.info(
        "game %d started mode=%s players=%d tagger=%s",
        game.game_no, mode, repo.count(), tagger.name if tagger else None,
    )

    zone_public = game.zone.public() if game.zone else None
    events: List[OutgoingEvent] = [
        OutGameStarted(
            mode=mode,
            game=game.public(),
            settings=settings.model_dump(),
            players=repo.snapshot(game.zone),
            tagger_pid=tagger_pid,
            zone=zone_public,
        ),
        players_event(session),
    ]
    if game.zone is not None:
        events.append(zone_event(game.zone))
    return events


async def end_game(session: GameSession, reason: EndReason) -> List[OutgoingEvent]:
    """
    Idempotent: a second call (or a stale tick) after the game ended is a no-op.
    """
    game = session.game
    repo = session.repo
    if not can_transition_to(game.state, "GAME_END"):
        return []

    await session.timers.cancel_all()

    game.state = "GAME_END"
    game.end_reason = reason
    game.duration_remaining = 0
    final_players = repo.snapshot(game.zone)
    game.zone = None
    repo.set_tagger(None)

    # AI opponents only live for one game
    for p in repo.list_players():
        if p.is_ai:
            repo.remove(p.pid)

    logger.info("game %d ended reason=%s", game.game_no, reason)
    return [
        OutGameEnded(reason=reason, game_no=game.game_no, players=final_players),
        players_event(session),
    ]


# -------------------------
# Timers
# -------------------------

async def tick_duration(session: GameSession) -> List[OutgoingEvent]:
    game = session.game
    if not game.in_progress:
        return []

    game.duration_remaining = max(0, game.duration_remaining - 1)
    events: List[OutgoingEvent] = [OutTimeUpdate(remaining_sec=game.duration_remaining)]
    if game.duration_remaining == 0:
        events.extend(await end_game(session, "TIME_UP"))
    return events


async def run_countdown(session: GameSession, generation: int) -> None:
    while True:
        await asyncio.sleep(1)
        async with session.lock:
            if not session.timers.is_current(generation) or not session.game.in_progress:
                return
            events = await tick_duration(session)
        await session.notifier.publish(events)
        if not session.game.in_progress:
            return


async def run_zone(session: GameSession, generation: int) -> None:
    loop = asyncio.get_running_loop()
    fine_sec = max(1, session.config.ZONE_TICK_MS) / 1000
    last = loop.time()

    while True:
        zone = session.game.zone
        shrinking = zone is not None and zone.phase == "SHRINKING"
        await asyncio.sleep(fine_sec if shrinking else 1.0)

        async with session.lock:
            game = session.game
            if not session.timers.is_current(generation) or not game.in_progress or game.zone is None:
                return
            now = loop.time()
            ctrl = ZoneController(game.settings, game.zone, session.rng)
            if game.zone.phase == "SHRINKING":
                changed = ctrl.step(int((now - last) * 1000))
            else:
                changed = ctrl.tick()
            last = now
            events = [zone_event(game.zone)] if changed else []
        await session.notifier.publish(events)


# -------------------------
# Departures
# -------------------------

def reassign_tagger(session: GameSession, reason: str) -> OutTaggerChanged:
    repo = session.repo
    if session.game.settings.tagger_leave_policy == "none":
        repo.set_tagger(None)
        return OutTaggerChanged(pid=None, name=None, reason=reason)

    new_pid = pick_random_tagger(repo, session.rng)
    repo.set_tagger(new_pid)
    p = repo.get_player(new_pid)
    logger.info("tagger reassigned to %s (%s)", p.name if p else None, reason)
    return OutTaggerChanged(pid=new_pid, name=p.name if p else None, reason=reason)


async def remove_player(session: GameSession, pid: Optional[str]) -> List[OutgoingEvent]:
    """
    Shared by leave, disconnect (no grace) and the stale sweep.
    """
    repo = session.repo
    removal = repo.remove(pid)
    if removal is None:
        return []

    events: List[OutgoingEvent] = []
    if removal.new_host_pid:
        events.append(OutYouAreHost(targets=[removal.new_host_pid]))

    if session.game.in_progress:
        if not repo.humans():
            reason: EndReason = "EMPTY" if repo.count() == 0 else "NO_HUMANS"
            events.extend(await end_game(session, reason))
            return events
        if removal.was_tagger:
            events.append(reassign_tagger(session, "TAGGER_LEFT"))

    events.append(players_event(session))
    return events


async def sweep_stale(session: GameSession, ts: int) -> List[OutgoingEvent]:
    cutoff = ts - session.config.RECONNECT_GRACE_SEC
    stale = [p.pid for p in session.repo.list_players() if is_stale(p, cutoff)]
    events: List[OutgoingEvent] = []
    for pid in stale:
        logger.info("sweeping stale player pid=%s", pid)
        events.extend(await remove_player(session, pid))
    return events


async def run_sweeper(session: GameSession) -> None:
    """
    App-level loop (not tied to a game).
    """
    interval = max(1, session.config.SWEEP_INTERVAL_SEC)
    while True:
        await asyncio.sleep(interval)
        async with session.lock:
            events = await sweep_stale(session, now_ts())
        await session.notifier.publish(events)


# -------------------------
# Handlers
# -------------------------

async def handle_disconnect(*, app, pid: Optional[str]) -> Result:
    session: GameSession = app.state.session
    if session.config.RECONNECT_GRACE_SEC <= 0:
        return [], await remove_player(session, pid)

    p = session.repo.set_connected(pid, False, now_ts())
    if p is None:
        return [], []
    logger.info("player disconnected pid=%s name=%s (grace %ss)", p.pid, p.name, session.config.RECONNECT_GRACE_SEC)
    return [], [players_event(session)]


async def handle_start_game(*, app, pid: Optional[str], msg: InStartGame) -> Result:
    session: GameSession = app.state.session
    repo = session.repo
    game = session.game

    if repo.get_player(pid) is None:
        return [OutError(code="NOT_JOINED", message="Join the game first")], []
    if not require_host(repo, pid):
        return [OutError(code="NOT_HOST", message="Only the host can start the game")], []
    if not can_transition_to(game.state, "IN_GAME"):
        return [OutError(code="BAD_STATE", message="Game already in progress")], []

    settings, err = merge_settings(game.settings, msg.settings)
    if settings is None:
        return [OutError(code="BAD_SETTINGS", message=err)], []

    if repo.count() < settings.min_players:
        return [OutError(
            code="NOT_ENOUGH_PLAYERS",
            message=f"Need at least {settings.min_players} players to start",
        )], []

    game.settings = settings
    tagger_pid = pick_random_tagger(repo, session.rng)
    return [], await begin_game(session, mode="MULTI", tagger_pid=tagger_pid)


async def handle_end_game(*, app, pid: Optional[str], msg: InEndGame) -> Result:
    session: GameSession = app.state.session
    repo = session.repo

    if repo.get_player(pid) is None:
        return [], []
    if not require_host(repo, pid):
        return [OutError(code="NOT_HOST", message="Only the host can end the game")], []
    if not session.game.in_progress:
        return [OutError(code="BAD_STATE", message="No game in progress")], []

    return [], await end_game(session, "HOST_ENDED")
