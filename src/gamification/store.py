"""
Progression stores

The award transaction only needs two operations from persistence:

- load(user_id): the stored document and its version
- conditional_write(user_id, expected_version, snapshot): compare-and-swap

Any store offering an atomic per-document compare-and-swap works. Two are
provided: an in-memory store (tests, local simulation) and a PostgreSQL
store backed by a JSONB document with an integer version column.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple
import asyncio
import logging

import psycopg

from src.db.queries import progression as progression_queries
from src.exceptions import RecordNotFoundError, wrap_external_exception
from src.models.progression import ProgressionSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredDocument:
    """Raw progression document plus its compare-and-swap version"""
    data: dict
    version: int


class ProgressionStore(ABC):
    """Persistence collaborator for progression snapshots"""

    @abstractmethod
    async def load(self, user_id: str) -> Optional[StoredDocument]:
        """
        Load a user's progression document

        Returns:
            None if the user exists but has no progression yet

        Raises:
            RecordNotFoundError: no user context exists
        """

    @abstractmethod
    async def conditional_write(
        self,
        user_id: str,
        expected_version: Optional[int],
        snapshot: ProgressionSnapshot
    ) -> bool:
        """
        Write the snapshot only if the stored version still matches

        expected_version=None means "create only if absent".

        Returns:
            True on commit, False on conflict (nothing written)
        """


def _not_found(user_id: str) -> RecordNotFoundError:
    return RecordNotFoundError(
        message=f"User not found: {user_id}",
        record_type="User",
        record_id=user_id,
        user_id=user_id,
        operation="load_progression",
    )


class InMemoryProgressionStore(ProgressionStore):
    """
    Dict-backed store

    Documents are kept as JSON-compatible dicts so callers never share
    mutable state with the store. Each operation yields to the event loop
    once, like a real driver would, so concurrent awards interleave.
    """

    def __init__(self):
        self._users: Set[str] = set()
        self._documents: Dict[str, Tuple[dict, int]] = {}
        self.write_attempts = 0

    def register_user(self, user_id: str) -> None:
        """Create a user context with no progression yet"""
        self._users.add(user_id)

    def seed(self, user_id: str, data, version: int = 1) -> None:
        """Store a document directly (snapshot or raw dict)"""
        self._users.add(user_id)
        if isinstance(data, ProgressionSnapshot):
            data = data.model_dump(mode="json")
        self._documents[user_id] = (data, version)

    def get_snapshot(self, user_id: str) -> Optional[ProgressionSnapshot]:
        """Parsed view of the stored document (test helper)"""
        entry = self._documents.get(user_id)
        return ProgressionSnapshot.model_validate(entry[0]) if entry else None

    async def load(self, user_id: str) -> Optional[StoredDocument]:
        await asyncio.sleep(0)

        if user_id not in self._users:
            raise _not_found(user_id)

        entry = self._documents.get(user_id)
        if entry is None:
            return None

        data, version = entry
        return StoredDocument(data=dict(data), version=version)

    async def conditional_write(
        self,
        user_id: str,
        expected_version: Optional[int],
        snapshot: ProgressionSnapshot
    ) -> bool:
        await asyncio.sleep(0)
        self.write_attempts += 1

        if user_id not in self._users:
            raise _not_found(user_id)

        # No await between check and set: atomic within the event loop
        current = self._documents.get(user_id)
        current_version = current[1] if current else None
        if current_version != expected_version:
            return False

        new_version = 1 if expected_version is None else expected_version + 1
        self._documents[user_id] = (snapshot.model_dump(mode="json"), new_version)
        return True


class PostgresProgressionStore(ProgressionStore):
    """Store backed by the user_progression table"""

    async def load(self, user_id: str) -> Optional[StoredDocument]:
        try:
            row = await progression_queries.get_progression_document(user_id)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="load_progression", user_id=user_id)

        if row is None:
            raise _not_found(user_id)

        if row["data"] is None:
            return None

        return StoredDocument(data=row["data"], version=row["version"])

    async def conditional_write(
        self,
        user_id: str,
        expected_version: Optional[int],
        snapshot: ProgressionSnapshot
    ) -> bool:
        data = snapshot.model_dump(mode="json")
        try:
            if expected_version is None:
                return await progression_queries.insert_progression_document(user_id, data)
            return await progression_queries.update_progression_document(user_id, expected_version, data)
        except psycopg.Error as e:
            raise wrap_external_exception(
                e,
                operation="conditional_write",
                user_id=user_id,
                context={"expected_version": expected_version}
            )
