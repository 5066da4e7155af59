# app/domain/host/handlers.py
from __future__ import annotations

from typing import List, Optional, Tuple

from app.domain.common.session import GameSession
from app.domain.host.authority import transfer_host
from app.transport.protocols import (
    InTransferHost,
    OutError,
    OutgoingEvent,
    OutPlayersUpdated,
    OutYouAreHost,
)

Result = Tuple[List[OutgoingEvent], List[OutgoingEvent]]


async def handle_transfer_host(*, app, pid: Optional[str], msg: InTransferHost) -> Result:
    session: GameSession = app.state.session
    repo = session.repo

    if repo.get_player(pid) is None:
        return [], []

    ok, code, message = transfer_host(repo, pid, msg.target_pid)
    if not ok:
        return [OutError(code=code, message=message)], []

    return [], [
        OutYouAreHost(targets=[msg.target_pid]),
        OutPlayersUpdated(players=repo.snapshot(session.game.zone)),
    ]
