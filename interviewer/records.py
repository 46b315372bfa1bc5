"""Interview record lifecycle on top of an InterviewRepository.

starting ──attach_call──▶ in-progress ──finalize──▶ completed | failed

Failures are never swallowed here: a missing record raises
RecordNotFoundError and any storage error surfaces as UpstreamFailure.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, TypeVar

from interviewer.errors import RecordNotFoundError, UpstreamFailure
from interviewer.models.interview import InterviewRecord, InterviewResponse, InterviewStatus
from interviewer.storage.base import InterviewRepository

log = logging.getLogger("interviewer.records")

T = TypeVar("T")


class InterviewRecordManager:
    def __init__(self, repository: InterviewRepository) -> None:
        self._repo = repository

    async def _call(self, op: str, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            log.error("Persistence %s failed: %s", op, e)
            raise UpstreamFailure("persistence", f"{op} failed: {e}") from e

    # ── Lifecycle ─────────────────────────────────────────────

    async def create_record(self, phone_number: str, topic: str) -> str:
        """Create a record in status 'starting' and return its id."""
        record = InterviewRecord(phone_number=phone_number, topic=topic)
        await self._call("insert", self._repo.insert, record)
        log.info("Interview %s created (topic=%r)", record.id, topic)
        return record.id

    async def attach_call(self, record_id: str, call_id: str) -> InterviewRecord:
        """Bind the placed call to the record and mark it in progress.

        A record that already reached a terminal status keeps it.
        """
        current = await self.get(record_id)
        fields: dict[str, Any] = {"call_id": call_id}
        if not current.status.is_terminal:
            fields["status"] = InterviewStatus.IN_PROGRESS
        record = await self._call("update", self._repo.update, record_id, **fields)
        if record is None:
            raise RecordNotFoundError(record_id)
        log.info("Interview %s attached to call %s", record_id, call_id)
        return record

    async def append_response(
        self, record_id: str, question: str, answer: str, seq: Optional[int] = None,
    ) -> InterviewRecord:
        """Append one question/answer pair, preserving order."""
        response = InterviewResponse(seq=seq, question=question, answer=answer)
        record = await self._call("push_response", self._repo.push_response, record_id, response)
        if record is None:
            raise RecordNotFoundError(record_id)
        log.info("Interview %s: response %d recorded", record_id, len(record.responses))
        return record

    async def finalize(self, record_id: str, outcome: InterviewStatus) -> bool:
        """Move the record to a terminal status.

        First writer wins: a record that is already completed or failed is
        left untouched. Returns True if this call changed the status.
        """
        if not outcome.is_terminal:
            raise ValueError(f"finalize() needs a terminal status, got {outcome.value!r}")

        record = await self.get(record_id)
        if record.status.is_terminal:
            log.info(
                "Interview %s already %s, not marking %s",
                record_id, record.status.value, outcome.value,
            )
            return False

        await self._call(
            "update", self._repo.update, record_id,
            status=outcome, completed_at=datetime.now(timezone.utc),
        )
        log.info("Interview %s finalized: %s (%d responses)",
                 record_id, outcome.value, len(record.responses))
        return True

    # ── Lookups ───────────────────────────────────────────────

    async def get(self, record_id: str) -> InterviewRecord:
        record = await self._call("get", self._repo.get, record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    async def find_by_call(self, call_id: str) -> Optional[InterviewRecord]:
        return await self._call("find_by_call_id", self._repo.find_by_call_id, call_id)

    async def list_records(self) -> list[InterviewRecord]:
        return await self._call("list_all", self._repo.list_all)
