# app/domain/common/events.py
from __future__ import annotations

"""
Internal notification channel.
Timer-driven code (countdown, zone, opponents, sweeps) has no sender to reply
to, so it publishes here; the transport subscribes and fans events out.
Events are defined in app/transport/protocols.py as OutgoingEvent types.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Sequence

logger = logging.getLogger(__name__)

Listener = Callable[[List[Dict[str, Any]]], Awaitable[None]]


def dump_events(events: Sequence[Any]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for e in events:
        out.append(e if isinstance(e, dict) else e.model_dump())
    return out


class Notifier:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def publish(self, events: Sequence[Any]) -> None:
        if not events:
            return
        payload = dump_events(events)
        for listener in list(self._listeners):
            try:
                await listener(payload)
            except Exception:
                logger.warning("notifier listener failed", exc_info=True)
