"""Repository for interacting with the `summaries` table."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from lifewrap.db import ConnectionFactory
from lifewrap.db.repositories import BaseRepository, RecordNotFoundError
from lifewrap.models.summary import PeriodType, Summary

_UPSERT_PERIOD_QUERY = """
    INSERT INTO summaries (
        id, period_type, period_start, period_end, text, topics_json, entities_json,
        engine_tier, source_ids, input_hash
    )
    VALUES (
        %(id)s, %(period_type)s, %(period_start)s, %(period_end)s, %(text)s, %(topics_json)s,
        %(entities_json)s, %(engine_tier)s, %(source_ids)s, %(input_hash)s
    )
    ON CONFLICT (period_type, period_start) WHERE session_id IS NULL
    DO UPDATE SET
        text = EXCLUDED.text,
        period_end = EXCLUDED.period_end,
        topics_json = EXCLUDED.topics_json,
        entities_json = EXCLUDED.entities_json,
        engine_tier = EXCLUDED.engine_tier,
        source_ids = EXCLUDED.source_ids,
        input_hash = EXCLUDED.input_hash,
        updated_at = NOW()
    RETURNING *
"""


class SummaryRepository(BaseRepository[Summary]):
    """Data access object encapsulating summary persistence logic."""

    table_name = "summaries"
    model_type = Summary
    insert_fields = (
        "id",
        "period_type",
        "period_start",
        "period_end",
        "text",
        "created_at",
        "session_id",
        "topics_json",
        "entities_json",
        "engine_tier",
        "source_ids",
        "input_hash",
    )

    def __init__(self, connection_factory: ConnectionFactory) -> None:
        super().__init__(connection_factory)

    def find_for_session(self, session_id: UUID) -> Optional[Summary]:
        """Return the single summary stored for a session, if any."""

        try:
            return self.fetch_one("session_id = %(session_id)s", {"session_id": str(session_id)})
        except RecordNotFoundError:
            return None

    def find_containing(self, period_type: PeriodType, moment: datetime) -> Optional[Summary]:
        """Return the aggregate summary of ``period_type`` whose range contains ``moment``."""

        try:
            return self.fetch_one(
                "period_type = %(period_type)s AND period_start <= %(moment)s "
                "AND period_end > %(moment)s AND session_id IS NULL",
                {"period_type": period_type.value, "moment": moment},
            )
        except RecordNotFoundError:
            return None

    def list_in_range(self, period_type: PeriodType, start: datetime, end: datetime) -> list[Summary]:
        """Return summaries of one type whose ``period_start`` lies in ``[start, end)``, oldest first."""

        session_clause = "session_id IS NOT NULL" if period_type is PeriodType.SESSION else "session_id IS NULL"
        return self.fetch_all(
            f"period_type = %(period_type)s AND period_start >= %(start)s AND period_start < %(end)s "
            f"AND {session_clause}",
            {"period_type": period_type.value, "start": start, "end": end},
            order_by="period_start ASC",
        )

    def upsert_period(
        self,
        *,
        period_type: PeriodType,
        text: str,
        start: datetime,
        end: datetime,
        topics_json: Optional[str] = None,
        entities_json: Optional[str] = None,
        engine_tier: Optional[str] = None,
        source_ids: Optional[str] = None,
        input_hash: Optional[str] = None,
    ) -> Summary:
        """Insert an aggregate summary or update the existing row for the same period in place."""

        row = self._fetch_one(
            _UPSERT_PERIOD_QUERY,
            {
                "id": str(uuid4()),
                "period_type": period_type.value,
                "period_start": start,
                "period_end": end,
                "text": text,
                "topics_json": topics_json,
                "entities_json": entities_json,
                "engine_tier": engine_tier,
                "source_ids": source_ids,
                "input_hash": input_hash,
            },
        )
        return self.model_type.model_validate(row)


__all__ = ["SummaryRepository"]
