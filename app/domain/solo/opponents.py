# app/domain/solo/opponents.py
from __future__ import annotations

import asyncio
import math
import random
from typing import Dict, List, Optional, Protocol, Sequence

from app.domain.common.geo import distance_meters, offset_coordinates, planar_vector, polar_offset
from app.domain.common.session import GameSession
from app.domain.lifecycle.handlers import Runner, players_event
from app.domain.tag.engine import attempt_tag
from app.domain.tag.handlers import tag_broadcast
from app.store.models import Coordinates, PlayerStore, ZoneStore
from app.store.session_registry import SessionRegistry
from app.transport.protocols import OutgoingEvent
from app.util.timeutil import now_ms

AI_NAMES = [
    "Hunter", "Runner", "Speedy", "Tactician", "Tracker",
    "Shadow", "Dodger", "Phantom", "Chaser", "Navigator",
]

# meters per second
SPEED_MPS = {"easy": 1.5, "medium": 2.5, "hard": 3.5}
CHASE_BOOST = 1.5
SPAWN_MIN_M = 50.0
SPAWN_MAX_M = 150.0


class OpponentSource(Protocol):
    """
    Anything that can produce the next coordinates for AI opponents.
    Output goes through the same location-update path as human clients.
    """

    def next_positions(
        self,
        players: Sequence[PlayerStore],
        tagger_pid: Optional[str],
        zone: Optional[ZoneStore],
        dt_sec: float,
    ) -> Dict[str, Coordinates]:
        ...


def _step_towards(origin: Coordinates, target: Coordinates, step_m: float, away: bool = False) -> Coordinates:
    north, east = planar_vector(origin, target)
    dist = math.hypot(north, east)
    if dist < 1e-6:
        return origin
    if not away:
        step_m = min(step_m, dist)
    sign = -1.0 if away else 1.0
    return offset_coordinates(origin, sign * north / dist * step_m, sign * east / dist * step_m)


class ChaseFleeSource:
    """
    AI tagger heads for the nearest player; AI runners move straight away
    from the tagger. Anyone drifting out of the zone walks back to its center.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    def next_positions(
        self,
        players: Sequence[PlayerStore],
        tagger_pid: Optional[str],
        zone: Optional[ZoneStore],
        dt_sec: float,
    ) -> Dict[str, Coordinates]:
        tagger = next((p for p in players if p.pid == tagger_pid and p.location is not None), None)
        out: Dict[str, Coordinates] = {}

        for ai in players:
            if not ai.is_ai or ai.location is None:
                continue
            step = SPEED_MPS.get(ai.difficulty or "medium", SPEED_MPS["medium"]) * dt_sec

            if zone is not None and distance_meters(ai.location, zone.center) > zone.radius:
                out[ai.pid] = _step_towards(ai.location, zone.center, step)
                continue

            if tagger is not None and ai.pid == tagger.pid:
                prey = self._nearest(ai, players)
                nxt = _step_towards(ai.location, prey.location, step * CHASE_BOOST) if prey else ai.location
            elif tagger is not None:
                nxt = _step_towards(ai.location, tagger.location, step, away=True)
            else:
                nxt = polar_offset(ai.location, step, self.rng.uniform(0.0, 2 * math.pi))

            # a little wobble so runners don't move on rails
            out[ai.pid] = polar_offset(nxt, self.rng.uniform(0.0, 0.3 * step), self.rng.uniform(0.0, 2 * math.pi))
        return out

    @staticmethod
    def _nearest(me: PlayerStore, players: Sequence[PlayerStore]) -> Optional[PlayerStore]:
        best: Optional[PlayerStore] = None
        best_d = math.inf
        for p in players:
            if p.pid == me.pid or p.location is None:
                continue
            d = distance_meters(me.location, p.location)
            if d < best_d:
                best, best_d = p, d
        return best


def spawn_opponents(
    repo: SessionRegistry,
    around: Coordinates,
    count: int,
    difficulty: str,
    rng: random.Random,
    ts: int,
    game_no: int,
) -> List[PlayerStore]:
    spawned: List[PlayerStore] = []
    for i in range(count):
        loc = polar_offset(around, rng.uniform(SPAWN_MIN_M, SPAWN_MAX_M), rng.uniform(0.0, 2 * math.pi))
        player, _ = repo.join(
            f"ai-{game_no}-{i}",
            f"AI-{rng.choice(AI_NAMES)}",
            ts,
            is_ai=True,
            difficulty=difficulty,
            location=loc,
        )
        spawned.append(player)
    return spawned


def move_opponents(session: GameSession, source: OpponentSource, dt_sec: float, ts_ms: int) -> List[OutgoingEvent]:
    repo = session.repo
    game = session.game

    positions = source.next_positions(repo.list_players(), repo.tagger_pid, game.zone, dt_sec)
    for pid, coords in positions.items():
        repo.update_location(pid, coords, ts_ms // 1000)

    tagger = repo.get_player(repo.tagger_pid)
    if tagger is not None and tagger.is_ai:
        outcome = attempt_tag(repo, game, tagger.pid, ts_ms)
        if outcome.success:
            return tag_broadcast(session, outcome, ts_ms)
    return [players_event(session)] if positions else []


def opponent_runner(source: OpponentSource) -> Runner:
    async def run(session: GameSession, generation: int) -> None:
        interval = max(1, session.config.OPPONENT_TICK_MS) / 1000
        while True:
            await asyncio.sleep(interval)
            async with session.lock:
                if not session.timers.is_current(generation) or not session.game.in_progress:
                    return
                events = move_opponents(session, source, interval, now_ms())
            await session.notifier.publish(events)

    return "opponents", run
