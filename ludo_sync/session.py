"""
Match hosting: one serialization domain per match.

Each MatchSession owns its engine and a lock; commands for a match are applied
one at a time in arrival order. Matches share nothing but the read-only config.
Sessions are in-memory only.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from .game import GameEngine, Snapshot
from .protocol import Command, Event, command_from_json, handle, to_json


@dataclass
class MatchSession:
    match_id: str
    engine: GameEngine
    created_at: float = field(default_factory=time.time)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def is_finished(self) -> bool:
        return self.engine.game_won

    def submit(self, command: Command) -> List[Event]:
        with self._lock:
            return handle(self.engine, command)

    def submit_json(self, payload: str) -> List[str]:
        """Decode a wire command, apply it, and encode the resulting events.

        Raises ProtocolError for payloads that are not a valid command.
        """
        command = command_from_json(payload)
        return [to_json(evt) for evt in self.submit(command)]

    def snapshot(self) -> Snapshot:
        with self._lock:
            return self.engine.get_snapshot()


class MatchRegistry:
    """Tracks live matches by id."""

    def __init__(self) -> None:
        self._matches: Dict[str, MatchSession] = {}
        self._lock = threading.Lock()

    def create_match(
        self,
        player_count: int,
        seed: Optional[int] = None,
        match_id: Optional[str] = None,
    ) -> MatchSession:
        match_id = match_id or str(uuid.uuid4())
        session = MatchSession(
            match_id=match_id, engine=GameEngine.create(player_count, seed=seed)
        )
        with self._lock:
            if match_id in self._matches:
                raise ValueError(f"Match {match_id} already exists")
            self._matches[match_id] = session
        logger.info(f"Created match {match_id} for {player_count} players")
        return session

    def get_match(self, match_id: str) -> Optional[MatchSession]:
        with self._lock:
            return self._matches.get(match_id)

    def end_match(self, match_id: str) -> Optional[MatchSession]:
        with self._lock:
            session = self._matches.pop(match_id, None)
        if session is not None:
            state = "finished" if session.is_finished else "abandoned"
            logger.info(f"Ended match {match_id} ({state})")
        return session

    def list_active_matches(self) -> List[str]:
        with self._lock:
            return [mid for mid, s in self._matches.items() if not s.is_finished]

    def __len__(self) -> int:
        with self._lock:
            return len(self._matches)
