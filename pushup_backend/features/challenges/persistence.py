"""
Persistence collaborators for challenge records.

Both stores keep one serialized document per user and share the same contract:
``load`` returns the record or None, ``save`` writes the complete record or raises
PersistenceError. Neither retries; that is left to the caller.
"""

import copy
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from pushup_backend.core.config import Settings
from pushup_backend.core.database import create_all_tables, get_db_session, init_engine, pushup_challenges
from pushup_backend.core.errors import PersistenceError
from pushup_backend.features.challenges.documents import from_document, to_document
from pushup_backend.models.challenge import ChallengeRecord


class ChallengeStore(Protocol):
    def load(self, user_id: str) -> Optional[ChallengeRecord]:
        ...

    def save(self, user_id: str, record: ChallengeRecord) -> None:
        ...

    def ping(self) -> bool:
        ...


class InMemoryChallengeStore:
    """Document-store stand-in: keeps serialized documents, so loads round-trip like the real thing."""

    def __init__(self):
        self._documents: Dict[str, dict] = {}

    def load(self, user_id: str) -> Optional[ChallengeRecord]:
        document = self._documents.get(user_id)
        if document is None:
            return None
        return from_document(document)

    def save(self, user_id: str, record: ChallengeRecord) -> None:
        self._documents[user_id] = to_document(record)

    def raw_document(self, user_id: str) -> Optional[dict]:
        document = self._documents.get(user_id)
        return copy.deepcopy(document) if document is not None else None

    def put_raw_document(self, user_id: str, document: dict) -> None:
        self._documents[user_id] = copy.deepcopy(document)

    def ping(self) -> bool:
        return True


class SqlChallengeStore:
    """
    PostgreSQL/SQLite-backed challenge persistence.

    Provides same interface as the in-memory store but with durability.
    """

    def load(self, user_id: str) -> Optional[ChallengeRecord]:
        try:
            with get_db_session() as session:
                row = session.execute(
                    select(pushup_challenges.c.document).where(pushup_challenges.c.user_id == user_id)
                ).first()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not load challenge for {user_id}") from exc

        if row is None:
            return None
        return from_document(row.document)

    def save(self, user_id: str, record: ChallengeRecord) -> None:
        document = to_document(record)
        now = datetime.now(timezone.utc)
        try:
            with get_db_session() as session:
                exists = session.execute(
                    select(pushup_challenges.c.user_id).where(pushup_challenges.c.user_id == user_id)
                ).first()
                if exists:
                    session.execute(
                        update(pushup_challenges)
                        .where(pushup_challenges.c.user_id == user_id)
                        .values(document=document, updated_at=now)
                    )
                else:
                    session.execute(
                        insert(pushup_challenges).values(user_id=user_id, document=document, updated_at=now)
                    )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not save challenge for {user_id}") from exc

    def ping(self) -> bool:
        try:
            with get_db_session() as session:
                session.execute(select(pushup_challenges.c.user_id).limit(1))
            return True
        except SQLAlchemyError:
            return False


def build_challenge_store(settings: Settings) -> ChallengeStore:
    """Pick the store named by CHALLENGE_STORE."""
    kind = (settings.CHALLENGE_STORE or "memory").lower()
    if kind == "sql":
        init_engine(settings.DATABASE_URL)
        create_all_tables()
        return SqlChallengeStore()
    return InMemoryChallengeStore()
