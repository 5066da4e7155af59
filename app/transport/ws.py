# app/transport/ws.py
from __future__ import annotations

import json
import logging
import uuid
import ipaddress
from urllib.parse import urlparse

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.settings import get_settings
from app.domain.common.events import dump_events
from app.domain.lifecycle.handlers import handle_disconnect
from app.transport.dispatcher import dispatch_message
from app.transport.protocols import OutError, OutHello
from app.transport.ws_manager import WSManager

logger = logging.getLogger(__name__)

router = APIRouter()


def _is_private_ip(host: str) -> bool:
    """Return True if host is a private IP (192.168.x.x, 10.x.x.x, 172.16-31.x.x)."""
    try:
        ip = ipaddress.ip_address(host)
        return ip.is_private
    except ValueError:
        return False


async def _check_origin_or_close(websocket: WebSocket) -> bool:
    settings = get_settings()
    allowed = {o.strip() for o in settings.WS_ALLOWED_ORIGINS.split(",") if o.strip()}

    origin = websocket.headers.get("origin")
    if origin is None or "*" in allowed or origin in allowed:
        return True
    if settings.WS_ALLOW_LAN_ORIGINS:
        o = urlparse(origin)
        if _is_private_ip(o.hostname or "") and o.port == settings.WS_LAN_ORIGIN_PORT:
            return True
    await websocket.close(code=1008)
    return False


async def _disconnect_pid(app, wsman: WSManager, pid: str) -> None:
    session = app.state.session
    async with session.lock:
        _, to_room = await handle_disconnect(app=app, pid=pid)
    await wsman.deliver(dump_events(to_room))


async def rebind_connection(app, wsman: WSManager, old_pid: str, new_pid: str, websocket) -> None:
    """
    Reconnect: the socket takes over new_pid. A player this socket had
    already joined as is treated as disconnected.
    """
    joined = app.state.session.repo.get_player(old_pid) is not None
    await wsman.replace_pid(old_pid, new_pid, websocket)
    if joined:
        await _disconnect_pid(app, wsman, old_pid)


async def release_connection(app, wsman: WSManager, pid: str, websocket) -> None:
    """
    Runs on every exit from the socket loop.
    """
    try:
        # a newer socket may own this pid after a reconnect
        if await wsman.owns(pid, websocket):
            await _disconnect_pid(app, wsman, pid)
    finally:
        await wsman.remove(pid, websocket)


@router.websocket("/ws")
async def ws_game(websocket: WebSocket):
    if not await _check_origin_or_close(websocket):
        return

    await websocket.accept()

    pid = uuid.uuid4().hex[:10]
    wsman: WSManager = websocket.app.state.wsman
    await wsman.add(pid, websocket)
    await websocket.send_json(OutHello(pid=pid).model_dump())

    try:
        while True:
            text = await websocket.receive_text()
            try:
                raw = json.loads(text)
            except ValueError:
                await websocket.send_json(OutError(code="BAD_MESSAGE", message="Invalid JSON").model_dump())
                continue

            # Reconnect: replace pid mapping with existing pid from client
            if isinstance(raw, dict) and raw.get("type") == "reconnect" and isinstance(raw.get("pid"), str):
                new_pid = raw.get("pid")
                if new_pid and new_pid != pid:
                    await rebind_connection(websocket.app, wsman, pid, new_pid, websocket)
                    pid = new_pid
                    await websocket.send_json(OutHello(pid=pid).model_dump())

            to_sender, to_room = await dispatch_message(
                app=websocket.app,
                pid=pid,
                raw=raw,
            )

            # unicast
            for e in to_sender:
                await websocket.send_json(e)

            # room events (targets -> only those pids)
            await wsman.deliver(to_room)

    except WebSocketDisconnect:
        pass
    except Exception:
        # e.g. a binary frame makes receive_text raise KeyError
        logger.warning("socket loop for pid=%s ended abnormally", pid, exc_info=True)

    finally:
        await release_connection(websocket.app, wsman, pid, websocket)
