# app/domain/solo/handlers.py
from __future__ import annotations

from typing import List, Optional, Tuple

from app.domain.common.fsm import can_transition_to
from app.domain.common.session import GameSession
from app.domain.common.validation import merge_settings
from app.domain.host.authority import require_host
from app.domain.lifecycle.handlers import begin_game
from app.domain.solo.opponents import ChaseFleeSource, opponent_runner, spawn_opponents
from app.transport.protocols import InStartSolo, OutError, OutgoingEvent
from app.util.timeutil import now_ts

Result = Tuple[List[OutgoingEvent], List[OutgoingEvent]]


async def handle_start_solo(*, app, pid: Optional[str], msg: InStartSolo) -> Result:
    """
    Single-player variant: AI opponents fill the roster and the host starts as it.
    """
    session: GameSession = app.state.session
    repo = session.repo
    game = session.game

    player = repo.get_player(pid)
    if player is None:
        return [OutError(code="NOT_JOINED", message="Join the game first")], []
    if not require_host(repo, pid):
        return [OutError(code="NOT_HOST", message="Only the host can start the game")], []
    if not can_transition_to(game.state, "IN_GAME"):
        return [OutError(code="BAD_STATE", message="Game already in progress")], []
    if player.location is None:
        return [OutError(code="NO_LOCATION", message="Share your location before starting a solo game")], []

    settings, err = merge_settings(game.settings, msg.settings)
    if settings is None:
        return [OutError(code="BAD_SETTINGS", message=err)], []
    game.settings = settings

    spawn_opponents(
        repo,
        around=player.location,
        count=msg.opponents,
        difficulty=msg.difficulty,
        rng=session.rng,
        ts=now_ts(),
        game_no=game.game_no + 1,
    )

    runner = opponent_runner(ChaseFleeSource(session.rng))
    return [], await begin_game(session, mode="SOLO", tagger_pid=player.pid, runners=[runner])
