"""Abstract base class for interview record storage.

Defines the upsert/append contract the record manager relies on. Any
backend (in-memory, JSONL file, a document database) implements this ABC.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from interviewer.models.interview import InterviewRecord, InterviewResponse


class InterviewRepository(ABC):
    """Abstract interview record store.

    Backends return copies: mutating a returned record never changes what
    is stored. All writes go through ``insert``, ``update`` and
    ``push_response``.
    """

    @abstractmethod
    async def insert(self, record: InterviewRecord) -> None:
        """Store a new record. Raises KeyError if the id already exists."""

    @abstractmethod
    async def get(self, record_id: str) -> Optional[InterviewRecord]:
        """Return the record with this id, or None."""

    @abstractmethod
    async def find_by_call_id(self, call_id: str) -> Optional[InterviewRecord]:
        """Return the record attached to this call, or None."""

    @abstractmethod
    async def update(self, record_id: str, **fields: Any) -> Optional[InterviewRecord]:
        """Set top-level fields on a record.

        Returns:
            The updated record, or None if no record has this id.
        """

    @abstractmethod
    async def push_response(
        self, record_id: str, response: InterviewResponse
    ) -> Optional[InterviewRecord]:
        """Append one response to the record's list, atomically.

        Returns:
            The updated record, or None if no record has this id.
        """

    @abstractmethod
    async def list_all(self) -> list[InterviewRecord]:
        """All records, oldest first."""
