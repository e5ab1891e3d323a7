"""Per-conversation turn history with per-key exchange serialization."""

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Callable

from sqlalchemy.orm import Session

from infinet_ai.logging_config import get_logger
from infinet_ai.models import ConversationTurnRecord

logger = get_logger("session_store")

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConversationTurn:
    role: str
    content: str
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if self.role not in (ROLE_USER, ROLE_ASSISTANT):
            raise ValueError(f"Unknown turn role: {self.role}")


def session_key(channel: str, conversation_id: str) -> str:
    return f"{channel}:{conversation_id}"


class SessionStore(ABC):
    """Storage for conversation turns, keyed by ``<channel>:<conversationId>``.

    ``exclusive(key)`` serializes whole exchanges for one key so that the
    read-history / generate / append sequence of two messages from the same
    sender never interleaves. Different keys never block each other.
    Turns are only ever appended.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def exclusive(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] <= 0:
                self._lock_users.pop(key, None)
                self._locks.pop(key, None)

    @abstractmethod
    async def get(self, key: str) -> list[ConversationTurn]:
        """Full turn sequence, empty for an unknown key."""

    @abstractmethod
    async def append(self, key: str, turn: ConversationTurn) -> None:
        """Append one turn; creates the session on first use."""

    async def exists(self, key: str) -> bool:
        return bool(await self.get(key))

    async def recent(self, key: str, n: int) -> list[ConversationTurn]:
        """At most ``n`` most recent turns, oldest first."""
        if n <= 0:
            return []
        return (await self.get(key))[-n:]

    async def append_exchange(self, key: str, user_text: str, assistant_text: str) -> None:
        await self.append(key, ConversationTurn(role=ROLE_USER, content=user_text))
        await self.append(key, ConversationTurn(role=ROLE_ASSISTANT, content=assistant_text))


class InMemorySessionStore(SessionStore):
    def __init__(self):
        super().__init__()
        self._sessions: dict[str, list[ConversationTurn]] = {}

    async def get(self, key: str) -> list[ConversationTurn]:
        return list(self._sessions.get(key, ()))

    async def append(self, key: str, turn: ConversationTurn) -> None:
        self._sessions.setdefault(key, []).append(turn)

    async def recent(self, key: str, n: int) -> list[ConversationTurn]:
        if n <= 0:
            return []
        return list(self._sessions.get(key, ())[-n:])


class SqlSessionStore(SessionStore):
    """SQLAlchemy-backed store. Blocking queries run in a worker thread."""

    def __init__(self, session_factory: Callable[[], Session]):
        super().__init__()
        self._session_factory = session_factory

    def _load(self, key: str, limit: int | None) -> list[ConversationTurn]:
        db = self._session_factory()
        try:
            query = db.query(ConversationTurnRecord).filter(ConversationTurnRecord.session_key == key)
            if limit is None:
                rows = query.order_by(ConversationTurnRecord.id.asc()).all()
            else:
                rows = list(reversed(query.order_by(ConversationTurnRecord.id.desc()).limit(limit).all()))
            return [ConversationTurn(role=row.role, content=row.content, timestamp=row.created_at) for row in rows]
        finally:
            db.close()

    def _store(self, key: str, turn: ConversationTurn) -> None:
        db = self._session_factory()
        try:
            db.add(
                ConversationTurnRecord(
                    session_key=key,
                    role=turn.role,
                    content=turn.content,
                    created_at=turn.timestamp,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist turn", extra={"context": {"session_key": key}})
            raise
        finally:
            db.close()

    async def get(self, key: str) -> list[ConversationTurn]:
        return await asyncio.to_thread(self._load, key, None)

    async def recent(self, key: str, n: int) -> list[ConversationTurn]:
        if n <= 0:
            return []
        return await asyncio.to_thread(self._load, key, n)

    async def append(self, key: str, turn: ConversationTurn) -> None:
        await asyncio.to_thread(self._store, key, turn)
