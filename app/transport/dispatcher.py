# app/transport/dispatcher.py
from __future__ import annotations

from typing import Any, Dict, List, Tuple, Optional

from pydantic import ValidationError

from app.transport.protocols import (
    parse_incoming,
    OutError,
    OutgoingEvent,
    InJoin,
    InReconnect,
    InLeave,
    InHeartbeat,
    InSnapshot,
    InUpdateLocation,
    InAttemptTag,
    InStartGame,
    InStartSolo,
    InEndGame,
    InTransferHost,
    InUpdateSettings,
)
from app.domain.common.events import dump_events
from app.domain.lobby.handlers import (
    handle_join,
    handle_reconnect,
    handle_leave,
    handle_heartbeat,
    handle_snapshot,
    handle_update_location,
    handle_update_settings,
)
from app.domain.lifecycle.handlers import handle_start_game, handle_end_game
from app.domain.host.handlers import handle_transfer_host
from app.domain.tag.handlers import handle_attempt_tag
from app.domain.solo import handle_start_solo

DispatchResult = Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]
# (to_sender_events, to_room_events), each event is JSON dict

_HANDLERS = {
    InJoin: handle_join,
    InReconnect: handle_reconnect,
    InLeave: handle_leave,
    InHeartbeat: handle_heartbeat,
    InSnapshot: handle_snapshot,
    InUpdateLocation: handle_update_location,
    InAttemptTag: handle_attempt_tag,
    InStartGame: handle_start_game,
    InStartSolo: handle_start_solo,
    InEndGame: handle_end_game,
    InTransferHost: handle_transfer_host,
    InUpdateSettings: handle_update_settings,
}


async def dispatch_message(
    *,
    app,
    pid: Optional[str],
    raw: Dict[str, Any],
) -> DispatchResult:
    """
    Transport layer calls this.
    - Parses + validates raw JSON
    - Routes to the correct domain handler, one event at a time
    - Returns (to_sender, to_room) events as JSON dicts

    NOTE: This file contains NO game rules.
    """
    try:
        msg = parse_incoming(raw)
    except (ValidationError, ValueError) as e:
        err = OutError(code="BAD_MESSAGE", message=str(e)).model_dump()
        return [err], []

    handler = _HANDLERS.get(type(msg))
    if handler is None:
        # protocol exists but we didn't route it yet
        err = OutError(code="NOT_IMPLEMENTED", message=f"Handler not implemented for type={msg.type}").model_dump()
        return [err], []

    session = app.state.session
    async with session.lock:
        to_sender, to_room = await handler(app=app, pid=pid, msg=msg)
    return _dump(to_sender), _dump(to_room)


def _dump(events: List[OutgoingEvent]) -> List[Dict[str, Any]]:
    """
    Convert pydantic events -> JSON dicts.
    """
    return dump_events(events)
