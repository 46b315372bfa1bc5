"""Pydantic models for the durable interview record.

This is the audit artifact: its JSON shape is what the storage backends
write and what GET /interviews/{id} returns, so field names are stable.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InterviewStatus(str, Enum):
    STARTING = "starting"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (InterviewStatus.COMPLETED, InterviewStatus.FAILED)


class InterviewResponse(BaseModel):
    """One answered question."""

    seq: Optional[int] = None  # 0-based position of the question in the call
    question: str
    answer: str
    timestamp: datetime = Field(default_factory=_utcnow)


class InterviewRecord(BaseModel):
    """Durable record of one phone interview. Never deleted."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    phone_number: str
    topic: str
    status: InterviewStatus = InterviewStatus.STARTING
    call_id: Optional[str] = None
    responses: list[InterviewResponse] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
