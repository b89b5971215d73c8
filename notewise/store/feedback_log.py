"""Append-only feedback log.

Writes FeedbackRecord entries as JSON Lines (one JSON object per line).
Records are never rewritten or deleted; this file is the source of truth
for human corrections.
"""

import logging
from datetime import datetime
from pathlib import Path

from notewise.schemas.feedback import FeedbackRecord

logger = logging.getLogger(__name__)


class FeedbackLog:
    """Append-only JSONL log of human corrections.

    Usage::

        log = FeedbackLog("/path/to/feedback.jsonl")
        log.append(record)

        prior = log.count_matching_target(record.corrected.target, exclude_id=record.id)
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: FeedbackRecord) -> None:
        """Append a single record. Errors propagate: losing a record is not acceptable."""
        with self._path.open("a") as f:
            f.write(record.model_dump_json() + "\n")
        logger.debug(
            "Feedback %s note=%s corrections=%s author=%s",
            record.id,
            record.note_id,
            ",".join(record.correction_types),
            record.author,
        )

    def read_records(
        self,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[FeedbackRecord]:
        """Read records, oldest first, optionally filtered by timestamp.

        Args:
            since: Only return records created after this timestamp.
            limit: Keep only the newest ``limit`` records after filtering.
        """
        if not self._path.exists():
            return []

        records: list[FeedbackRecord] = []
        with self._path.open() as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                record = FeedbackRecord.model_validate_json(line)
                if since and record.created_at <= since:
                    continue
                records.append(record)

        if limit is not None:
            records = records[-limit:]
        return records

    def count_matching_target(
        self,
        target: tuple[str, str | None, str | None],
        *,
        exclude_id: str | None = None,
    ) -> int:
        """Count records whose corrected (type, client, project) equals ``target``."""
        return sum(
            1
            for record in self.read_records()
            if record.id != exclude_id and record.corrected.target == target
        )
