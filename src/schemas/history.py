"""Schemas for persisted check history."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field

from src.schemas.results import CamelModel

RecordStatus = Literal["pending", "completed", "failed"]


class CheckRecord(CamelModel):
    """One check attempt as stored in the history database."""
    id: str
    timestamp: datetime
    content: str = ""
    content_type: Literal["file", "text"] = "text"
    file_name: Optional[str] = None
    profile_id: str = ""
    profile_name: str = ""
    language: str = "en"
    status: RecordStatus = "pending"
    check_id: Optional[str] = None
    score: Optional[int] = None
    duration: Optional[int] = Field(None, description="Milliseconds from submission to outcome")
    issues: list[dict[str, Any]] = Field(default_factory=list)


class CheckRecordPatch(CamelModel):
    """Fields to write for a record. Unset fields are left untouched on update."""
    id: Optional[str] = None
    timestamp: Optional[datetime] = None
    content: Optional[str] = None
    content_type: Optional[Literal["file", "text"]] = None
    file_name: Optional[str] = None
    profile_id: Optional[str] = None
    profile_name: Optional[str] = None
    language: Optional[str] = None
    status: Optional[RecordStatus] = None
    check_id: Optional[str] = None
    score: Optional[int] = None
    duration: Optional[int] = None
    issues: Optional[list[dict[str, Any]]] = None
    goals: Optional[list[dict[str, Any]]] = None
    metrics: Optional[list[dict[str, Any]]] = None


class ProfileCount(CamelModel):
    profile: str
    count: int


class HistoryStatistics(CamelModel):
    total_checks: int = 0
    average_score: int = 0
    checks_by_profile: list[ProfileCount] = Field(default_factory=list)


class CheckHistoryPage(CamelModel):
    """Paginated list of history records, newest first."""
    records: list[CheckRecord]
    limit: int
    offset: int
