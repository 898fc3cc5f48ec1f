"""Repository for interacting with the `session_metadata` table."""

from __future__ import annotations

from typing import Dict, Optional, Sequence
from uuid import UUID

from lifewrap.db import ConnectionFactory
from lifewrap.db.repositories import BaseRepository
from lifewrap.models.recording import SessionMetadata


class SessionMetadataRepository(BaseRepository[SessionMetadata]):
    """Data access object for user-editable session metadata, keyed by ``session_id``."""

    table_name = "session_metadata"
    model_type = SessionMetadata
    primary_key = "session_id"
    insert_fields = (
        "session_id",
        "title",
        "notes",
        "is_favorite",
        "category",
    )
    update_fields = (
        "title",
        "notes",
        "is_favorite",
        "category",
    )

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        super().__init__(connection_factory)

    def find_for_session(self, session_id: UUID) -> Optional[SessionMetadata]:
        """Return the metadata row for a session, if the user ever edited one."""

        return self.find_by_id(session_id)

    def find_many(self, session_ids: Sequence[UUID]) -> Dict[UUID, SessionMetadata]:
        """Return metadata for several sessions keyed by session id."""

        if not session_ids:
            return {}
        rows = self.fetch_all(
            "session_id = ANY(%(ids)s::uuid[])",
            {"ids": [str(session_id) for session_id in session_ids]},
        )
        return {row.session_id: row for row in rows}

    def save(self, metadata: SessionMetadata) -> SessionMetadata:
        """Insert or replace the metadata for one session."""

        payload = self._serialize(metadata, fields=self.insert_fields, include_none=True)
        columns, placeholders = self._build_insert_clause(payload)
        assignments = ", ".join(f"{field} = EXCLUDED.{field}" for field in self.update_fields)
        row = self._fetch_one(
            f"INSERT INTO {self.table_name} ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT (session_id) DO UPDATE SET {assignments} RETURNING *",
            payload,
        )
        return self.model_type.model_validate(row)


__all__ = ["SessionMetadataRepository"]
