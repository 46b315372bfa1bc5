"""JSONL-file repository: one interview record per line.

The whole file is rewritten on each mutation (write to a temp file, then
rename), under an asyncio lock. The file is always a complete snapshot.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from interviewer.models.interview import InterviewRecord, InterviewResponse
from interviewer.storage.memory import InMemoryInterviewRepository

log = logging.getLogger("interviewer.storage.jsonl")


class JsonlInterviewRepository(InMemoryInterviewRepository):
    """Keeps records in memory and mirrors every write to a JSONL file."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)
        self._write_lock = asyncio.Lock()
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return
        for lineno, line in enumerate(self._path.read_text(encoding="utf-8").splitlines(), 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = InterviewRecord.model_validate(json.loads(line))
            except (json.JSONDecodeError, ValueError) as e:
                log.warning("Skipping unreadable line %d in %s: %s", lineno, self._path, e)
                continue
            self._records[record.id] = record
        log.info("Loaded %d interview record(s) from %s", len(self._records), self._path)

    def _write(self, lines: list[str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            for line in lines:
                f.write(line + "\n")
        os.replace(tmp, self._path)

    async def _flush(self) -> None:
        async with self._write_lock:
            # Snapshot on the event loop; only the file I/O runs in a thread.
            lines = [r.model_dump_json() for r in self._records.values()]
            await asyncio.to_thread(self._write, lines)

    async def insert(self, record: InterviewRecord) -> None:
        await super().insert(record)
        await self._flush()

    async def update(self, record_id: str, **fields: Any) -> Optional[InterviewRecord]:
        updated = await super().update(record_id, **fields)
        if updated is not None:
            await self._flush()
        return updated

    async def push_response(
        self, record_id: str, response: InterviewResponse
    ) -> Optional[InterviewRecord]:
        updated = await super().push_response(record_id, response)
        if updated is not None:
            await self._flush()
        return updated
