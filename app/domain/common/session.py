# app/domain/common/session.py
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Optional

from app.domain.common.events import Notifier
from app.domain.lifecycle.timers import GameTimers
from app.settings import Settings, default_game_settings
from app.store.models import GameStore
from app.store.session_registry import SessionRegistry


@dataclass
class GameSession:
    """
    The one shared game this process serves. Handlers get it from
    app.state.session and mutate state only through repo / engine calls,
    one event at a time under `lock`.
    """
    config: Settings
    repo: SessionRegistry
    game: GameStore
    notifier: Notifier = field(default_factory=Notifier)
    timers: GameTimers = field(default_factory=GameTimers)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    rng: random.Random = field(default_factory=random.Random)
    last_roster_push_ms: int = 0


def create_session(config: Settings, rng: Optional[random.Random] = None) -> GameSession:
    return GameSession(
        config=config,
        repo=SessionRegistry(),
        game=GameStore(settings=default_game_settings(config)),
        rng=rng or random.Random(),
    )
