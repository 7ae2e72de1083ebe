"""In-process per-user session storage.

Sessions live for the lifetime of the process. All reads and writes of a
session go through ``SessionStore.locked`` so events from the same user are
handled one at a time.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import IntEnum
from typing import AsyncIterator, Optional

from app.services.dataset_service import Record


class Stage(IntEnum):
    IDLE = 0
    AREA = 1
    RENT = 2
    TYPE = 3
    NET = 4
    WATER = 5
    ELECTRICITY = 6
    BROWSING = 7
    FETCHING = 8


QUESTION_STAGES = [stage for stage in Stage if Stage.IDLE < stage < Stage.BROWSING]


@dataclass
class Session:
    user_id: str
    stage: Stage = Stage.IDLE
    criteria: dict[str, str] = field(default_factory=dict)
    cursor: int = 0
    dataset: Optional[tuple[Record, ...]] = None
    # bumped whenever a search is started or abandoned; fetch results carry it
    generation: int = 0

    @property
    def started(self) -> bool:
        return self.stage != Stage.IDLE

    def record_answer(self, field_name: str, value: str) -> None:
        self.criteria[field_name] = value

    def clear_search(self) -> None:
        """Drop criteria, dataset and cursor and invalidate any fetch in flight."""
        self.criteria = {}
        self.dataset = None
        self.cursor = 0
        self.generation += 1


class SessionStore:
    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def locked(self, user_id: str) -> AsyncIterator[Session]:
        """Yield the user's session, creating it on first use, under the user's lock."""
        async with self._lock_for(user_id):
            session = self._sessions.get(user_id)
            if session is None:
                session = self._sessions[user_id] = Session(user_id=user_id)
            yield session

    def peek(self, user_id: str) -> Optional[Session]:
        """Read-only access for diagnostics and tests. Do not mutate the result."""
        return self._sessions.get(user_id)
