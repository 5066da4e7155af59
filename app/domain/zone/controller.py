# app/domain/zone/controller.py
from __future__ import annotations

import logging
import math
import random
from typing import Optional

from app.domain.common.fsm import next_zone_phase
from app.domain.common.geo import interpolate, polar_offset
from app.store.models import Coordinates, GameSettings, ZoneStore
from app.store.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

# keeps the next circle inside the current one with some margin
SAFETY_FACTOR = 0.7


def pick_anchor(repo: SessionRegistry, settings: GameSettings) -> Optional[Coordinates]:
    """
    Zone center at game start: configured center, else the host, else the
    first player with a known location.
    """
    if settings.zone_center is not None:
        return settings.zone_center
    host = repo.get_player(repo.host_pid)
    if host is not None and host.location is not None:
        return host.location
    for p in repo.list_players():
        if p.location is not None:
            return p.location
    return None


class ZoneController:
    """
    Shrinking safe-zone state machine, driven by two clocks:
    - tick(): one call per second while WAITING / WARNING
    - step(dt_ms): fine-grained calls while SHRINKING
    The controller holds no state of its own; everything lives on the
    ZoneStore so snapshots always see the current geometry.
    """

    def __init__(self, settings: GameSettings, zone: ZoneStore, rng: Optional[random.Random] = None) -> None:
        self.settings = settings
        self.zone = zone
        self.rng = rng or random.Random()

    @classmethod
    def start(cls, settings: GameSettings, center: Coordinates, rng: Optional[random.Random] = None) -> "ZoneController":
        zone = ZoneStore(
            phase="WAITING",
            center=center,
            radius=float(settings.initial_circle_size),
            seconds_left=settings.shrink_interval_sec - settings.warning_sec,
        )
        return cls(settings, zone, rng)

    @property
    def waiting_seconds(self) -> int:
        return self.settings.shrink_interval_sec - self.settings.warning_sec

    def plan_next(self) -> None:
        """
        Pick the next circle: smaller by circle_shrink_percent (floored at
        min_radius) and offset so it stays fully inside the current one.
        """
        z = self.zone
        shrunk = z.radius * (1 - self.settings.circle_shrink_percent / 100.0)
        new_radius = min(z.radius, max(self.settings.min_radius, shrunk))

        max_offset = max(0.0, (z.radius - new_radius) * SAFETY_FACTOR)
        distance = self.rng.random() * max_offset
        bearing = self.rng.uniform(0.0, 2 * math.pi)

        z.target_radius = new_radius
        z.target_center = polar_offset(z.center, distance, bearing) if distance > 0 else z.center

    def tick(self) -> bool:
        """
        One-second tick. Returns True when the zone changed.
        """
        z = self.zone
        if z.phase == "SHRINKING":
            return False

        z.seconds_left = max(0, z.seconds_left - 1)
        if z.seconds_left > 0:
            return True

        if z.phase == "WAITING":
            self.plan_next()
            z.phase = next_zone_phase(z.phase)
            z.seconds_left = self.settings.warning_sec
            logger.debug("zone warning: target radius=%.1f", z.target_radius)
            if z.seconds_left == 0:
                self._begin_shrink()
            return True

        self._begin_shrink()
        return True

    def step(self, dt_ms: int) -> bool:
        """
        Advance the shrink animation. Returns True when the zone changed.
        """
        z = self.zone
        if z.phase != "SHRINKING" or z.target_radius is None or z.target_center is None:
            return False

        total_ms = self.settings.shrink_duration_sec * 1000
        z.shrink_elapsed_ms = min(total_ms, z.shrink_elapsed_ms + max(0, int(dt_ms)))
        frac = z.shrink_elapsed_ms / total_ms

        if frac >= 1.0:
            self._commit()
            return True

        start_radius = z.start_radius if z.start_radius is not None else z.radius
        start_center = z.start_center or z.center
        radius = start_radius + (z.target_radius - start_radius) * frac
        # never below the target, never above the last value
        z.radius = min(z.radius, max(z.target_radius, radius))
        z.center = interpolate(start_center, z.target_center, frac)
        z.seconds_left = math.ceil((total_ms - z.shrink_elapsed_ms) / 1000)
        return True

    def _begin_shrink(self) -> None:
        z = self.zone
        if z.target_radius is None:
            self.plan_next()
        z.phase = "SHRINKING"
        z.start_center = z.center
        z.start_radius = z.radius
        z.shrink_elapsed_ms = 0
        z.seconds_left = self.settings.shrink_duration_sec
        logger.debug("zone shrinking: %.1f -> %.1f", z.radius, z.target_radius)

    def _commit(self) -> None:
        z = self.zone
        z.radius = min(z.radius, z.target_radius)
        z.center = z.target_center
        z.target_radius = None
        z.target_center = None
        z.start_radius = None
        z.start_center = None
        z.shrink_elapsed_ms = 0
        z.phase = next_zone_phase(z.phase)
        z.seconds_left = self.waiting_seconds
        z.cycle += 1
        logger.debug("zone cycle %d committed radius=%.1f", z.cycle, z.radius)
