"""Dict-backed repository for tests and single-run deployments."""

from __future__ import annotations

from typing import Any, Optional

from interviewer.models.interview import InterviewRecord, InterviewResponse
from interviewer.storage.base import InterviewRepository


class InMemoryInterviewRepository(InterviewRepository):
    def __init__(self) -> None:
        self._records: dict[str, InterviewRecord] = {}

    async def insert(self, record: InterviewRecord) -> None:
        if record.id in self._records:
            raise KeyError(f"Interview {record.id} already exists")
        self._records[record.id] = record.model_copy(deep=True)

    async def get(self, record_id: str) -> Optional[InterviewRecord]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def find_by_call_id(self, call_id: str) -> Optional[InterviewRecord]:
        for record in self._records.values():
            if record.call_id == call_id:
                return record.model_copy(deep=True)
        return None

    async def update(self, record_id: str, **fields: Any) -> Optional[InterviewRecord]:
        record = self._records.get(record_id)
        if record is None:
            return None
        for key, value in fields.items():
            if not hasattr(record, key) or key == "id":
                raise AttributeError(f"Cannot update field {key!r}")
            setattr(record, key, value)
        return record.model_copy(deep=True)

    async def push_response(
        self, record_id: str, response: InterviewResponse
    ) -> Optional[InterviewRecord]:
        record = self._records.get(record_id)
        if record is None:
            return None
        record.responses.append(response.model_copy())
        return record.model_copy(deep=True)

    async def list_all(self) -> list[InterviewRecord]:
        return [r.model_copy(deep=True) for r in self._records.values()]
