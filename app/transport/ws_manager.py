# app/transport/ws_manager.py
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import WebSocket


@dataclass
class Conn:
    pid: str
    ws: WebSocket


class WSManager:
    """
    In-memory connection registry.
    - pid -> websocket (one shared game per process)
    Transport-only: no game rules.
    """
    def __init__(self) -> None:
        self._conns: Dict[str, Conn] = {}
        self._lock = asyncio.Lock()

    async def add(self, pid: str, ws: WebSocket) -> None:
        async with self._lock:
            self._conns[pid] = Conn(pid=pid, ws=ws)

    async def replace_pid(self, old_pid: str, new_pid: str, ws: WebSocket) -> None:
        async with self._lock:
            current = self._conns.get(old_pid)
            if current is not None and current.ws is ws:
                self._conns.pop(old_pid, None)
            self._conns[new_pid] = Conn(pid=new_pid, ws=ws)

    async def remove(self, pid: str, ws: Optional[WebSocket] = None) -> None:
        async with self._lock:
            conn = self._conns.get(pid)
            if conn is None:
                return
            # a reconnect may already have taken this pid over
            if ws is not None and conn.ws is not ws:
                return
            self._conns.pop(pid, None)

    async def owns(self, pid: str, ws: WebSocket) -> bool:
        async with self._lock:
            conn = self._conns.get(pid)
            return conn is not None and conn.ws is ws

    async def send_to_pid(self, pid: str, event: dict) -> None:
        async with self._lock:
            conn = self._conns.get(pid)
        if conn is None:
            return
        try:
            await conn.ws.send_json(event)
        except Exception:
            # dead socket; ws.py will cleanup on disconnect
            pass

    async def broadcast(self, event: dict, exclude_pid: Optional[str] = None) -> None:
        # copy conns under lock, send outside lock
        async with self._lock:
            conns = list(self._conns.values())

        for c in conns:
            if exclude_pid and c.pid == exclude_pid:
                continue
            try:
                await c.ws.send_json(event)
            except Exception:
                # if a socket is dead, ignore; ws.py will cleanup on disconnect
                pass

    async def deliver(self, events: List[Dict[str, Any]]) -> None:
        """
        Fan out room events. Events carrying `targets` go only to those pids
        (the key itself is stripped); everything else goes to everyone.
        Also the Notifier listener for timer-driven events.
        """
        for e in events:
            if isinstance(e, dict) and "targets" in e:
                targets = e.get("targets") or []
                payload = {k: v for k, v in e.items() if k != "targets"}
                for t in targets:
                    await self.send_to_pid(t, payload)
                continue
            await self.broadcast(e)

    async def size(self) -> int:
        async with self._lock:
            return len(self._conns)
