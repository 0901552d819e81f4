"""Check history store.

One row per check attempt in `check_history`. Records are created as
`pending` when a check is submitted and updated in place once the outcome
is known; nothing is deleted except through `delete_check`.

Every write is its own short transaction. Callers on the check path treat
failures here as non-fatal (see CheckCoordinator).
"""

import math
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, func, select

from src.db.models import Base, CheckHistory
from src.db.session import create_engine_and_sessionmaker
from src.schemas.history import CheckRecord, CheckRecordPatch, HistoryStatistics, ProfileCount
from src.utils.logging import log, get_logger

MODULE = "history"
logger = get_logger()

DEFAULT_PAGE_SIZE = 50


def _to_record(row: CheckHistory) -> CheckRecord:
    return CheckRecord(
        id=row.id,
        timestamp=row.timestamp,
        content=row.content or "",
        content_type=row.content_type or "text",
        file_name=row.file_name,
        profile_id=row.profile_id or "",
        profile_name=row.profile_name or "",
        language=row.language or "en",
        status=row.status or "pending",
        check_id=row.check_id,
        score=row.score,
        duration=row.duration,
        issues=row.issues or [],
    )


class HistoryStore:
    """Async store for check history over SQLAlchemy."""

    def __init__(self, database_url: str, max_records: int = 1000):
        self.database_url = database_url
        self.max_records = max_records
        self.engine, self.session_factory = create_engine_and_sessionmaker(database_url)
        self.initialized = False

    async def initialize(self) -> None:
        """Create the schema if it does not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self.initialized = True
        log.info(logger, MODULE, "init_done", "History store ready")

    async def close(self) -> None:
        await self.engine.dispose()
        self.initialized = False

    def _require_initialized(self) -> None:
        if not self.initialized:
            raise RuntimeError("History store is not initialized")

    async def save_check_record(self, patch: CheckRecordPatch) -> str:
        """Insert a record, or update the provided fields of an existing one.

        Returns the record id (generated when the patch has none).
        """
        self._require_initialized()
        fields = patch.model_dump(exclude_unset=True)
        record_id = fields.pop("id", None) or str(uuid.uuid4())

        if "issues" in fields:
            fields["issues"] = fields["issues"] or []
            fields["issue_count"] = len(fields["issues"])
        for key in ("goals", "metrics"):
            if key in fields:
                fields[key] = fields[key] or []

        async with self.session_factory() as session:
            async with session.begin():
                row = await session.get(CheckHistory, record_id)
                if row is None:
                    if not fields.get("timestamp"):
                        fields["timestamp"] = datetime.now(timezone.utc)
                    row = CheckHistory(id=record_id)
                    session.add(row)
                    action = "insert"
                else:
                    if fields.get("timestamp") is None:
                        fields.pop("timestamp", None)
                    action = "update"
                for key, value in fields.items():
                    setattr(row, key, value)

        log.debug(logger, MODULE, f"record_{action}", "Check record saved",
                  record_id=record_id, status=fields.get("status"))
        return record_id

    async def get_check_history(
        self, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0
    ) -> list[CheckRecord]:
        """Records newest first."""
        self._require_initialized()
        limit = max(0, min(limit, self.max_records))
        offset = max(0, offset)

        async with self.session_factory() as session:
            result = await session.execute(
                select(CheckHistory)
                .order_by(CheckHistory.timestamp.desc())
                .limit(limit)
                .offset(offset)
            )
            return [_to_record(row) for row in result.scalars().all()]

    async def get_check_by_id(self, record_id: str) -> Optional[CheckRecord]:
        self._require_initialized()
        async with self.session_factory() as session:
            row = await session.get(CheckHistory, record_id)
            return _to_record(row) if row is not None else None

    async def delete_check(self, record_id: str) -> bool:
        """Delete a record. Returns False when there was nothing to delete."""
        self._require_initialized()
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(CheckHistory).where(CheckHistory.id == record_id)
                )
        deleted = result.rowcount > 0
        log.info(logger, MODULE, "record_delete", "Check record deleted",
                 record_id=record_id, deleted=deleted)
        return deleted

    async def get_statistics(self) -> HistoryStatistics:
        """Total checks, average score over scored checks, checks per profile."""
        self._require_initialized()
        async with self.session_factory() as session:
            total = await session.scalar(select(func.count()).select_from(CheckHistory))
            average = await session.scalar(
                select(func.avg(CheckHistory.score)).where(CheckHistory.score.is_not(None))
            )
            count = func.count().label("count")
            by_profile = await session.execute(
                select(CheckHistory.profile_name, count)
                .group_by(CheckHistory.profile_name)
                .order_by(count.desc(), CheckHistory.profile_name)
            )
            profiles = [ProfileCount(profile=name or "", count=n) for name, n in by_profile.all()]

        return HistoryStatistics(
            total_checks=total or 0,
            # Half up, not banker's rounding
            average_score=math.floor(float(average) + 0.5) if average is not None else 0,
            checks_by_profile=profiles,
        )
