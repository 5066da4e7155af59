from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from app.domain.common.geo import distance_meters
from app.domain.host.authority import elect_host
from app.store.models import Coordinates, PlayerStore, ZoneStore

logger = logging.getLogger(__name__)


@dataclass
class Removal:
    player: PlayerStore
    was_host: bool
    was_tagger: bool
    new_host_pid: Optional[str] = None


class SessionRegistry:
    """
    Authoritative in-memory roster for the single shared game.
    - pid -> player, dict order == join order
    - one host pid, one tagger pid (is_host / is_it are derived from these)
    Every write to host, tagger or location goes through this class.
    """

    def __init__(self) -> None:
        self._players: Dict[str, PlayerStore] = {}
        self._seq = 0
        self.host_pid: Optional[str] = None
        self.tagger_pid: Optional[str] = None

    # ----------------------------
    # Reads
    # ----------------------------
    def get_player(self, pid: Optional[str]) -> Optional[PlayerStore]:
        if pid is None:
            return None
        return self._players.get(pid)

    def list_players(self) -> List[PlayerStore]:
        return list(self._players.values())

    def humans(self) -> List[PlayerStore]:
        return [p for p in self._players.values() if not p.is_ai]

    def count(self) -> int:
        return len(self._players)

    def is_host(self, pid: Optional[str]) -> bool:
        return pid is not None and pid in self._players and self.host_pid == pid

    def is_tagger(self, pid: Optional[str]) -> bool:
        return pid is not None and pid in self._players and self.tagger_pid == pid

    def player_view(self, p: PlayerStore, zone: Optional[ZoneStore] = None) -> Dict[str, Any]:
        view = p.model_dump()
        view["is_host"] = p.pid == self.host_pid
        view["is_it"] = p.pid == self.tagger_pid
        in_zone = None
        if zone is not None and p.location is not None:
            in_zone = distance_meters(p.location, zone.center) <= zone.radius
        view["in_zone"] = in_zone
        return view

    def snapshot(self, zone: Optional[ZoneStore] = None) -> List[Dict[str, Any]]:
        return [self.player_view(p, zone) for p in self._players.values()]

    # ----------------------------
    # Writes
    # ----------------------------
    def join(
        self,
        pid: str,
        name: str,
        ts: int,
        *,
        is_ai: bool = False,
        difficulty: Optional[str] = None,
        location: Optional[Coordinates] = None,
    ) -> Tuple[PlayerStore, bool]:
        """
        Returns (player, became_host).
        Re-joining with a known pid only renames the player.
        """
        existing = self._players.get(pid)
        if existing is not None:
            existing.name = name
            existing.connected = True
            existing.last_seen = ts
            return existing, False

        became_host = not self._players
        self._seq += 1
        player = PlayerStore(
            pid=pid,
            name=name,
            location=location,
            joined_seq=self._seq,
            joined_at=ts,
            last_seen=ts,
            is_ai=is_ai,
            difficulty=difficulty,
        )
        self._players[pid] = player
        if became_host:
            self.host_pid = pid
        logger.info("player joined pid=%s name=%s host=%s", pid, name, became_host)
        return player, became_host

    def update_location(self, pid: Optional[str], coords: Coordinates, ts: int) -> Optional[PlayerStore]:
        p = self.get_player(pid)
        if p is None:
            return None
        p.location = coords
        p.last_seen = ts
        return p

    def set_connected(self, pid: Optional[str], connected: bool, ts: int) -> Optional[PlayerStore]:
        p = self.get_player(pid)
        if p is None:
            return None
        p.connected = connected
        p.last_seen = ts
        return p

    def remove(self, pid: Optional[str]) -> Optional[Removal]:
        """
        Drop a player. Host moves to the earliest-joined remaining player;
        the tagger slot is cleared (refilling it is the tag engine's call).
        """
        p = self._players.pop(pid, None) if pid is not None else None
        if p is None:
            return None

        was_host = self.host_pid == p.pid
        was_tagger = self.tagger_pid == p.pid
        if was_tagger:
            self.tagger_pid = None

        new_host = None
        if was_host:
            new_host = elect_host(self.list_players())
            self.host_pid = new_host
            if new_host:
                logger.info("host reassigned to pid=%s", new_host)
        logger.info("player removed pid=%s name=%s", p.pid, p.name)
        return Removal(player=p, was_host=was_host, was_tagger=was_tagger, new_host_pid=new_host)

    def set_host(self, pid: str) -> bool:
        if pid not in self._players:
            return False
        self.host_pid = pid
        return True

    def set_tagger(self, pid: Optional[str]) -> bool:
        if pid is not None and pid not in self._players:
            return False
        self.tagger_pid = pid
        return True

    def add_score(self, pid: str, points: int = 1) -> None:
        p = self._players.get(pid)
        if p is not None:
            p.score += points

    def reset_scores(self) -> None:
        for p in self._players.values():
            p.score = 0
