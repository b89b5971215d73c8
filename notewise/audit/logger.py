"""Append-only audit log of filing decisions.

Writes AuditEntry records as JSON Lines (one JSON object per line).
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

from notewise.schemas.classification import AuditEntry, ClassificationOutcome

logger = logging.getLogger(__name__)


class AuditLog:
    """Append-only JSONL audit log.

    Usage::

        audit = AuditLog("/path/to/audit.jsonl")
        audit.log_auto_filed(outcome, title="Weekly sync")

        entries = audit.read_entries(since=some_datetime)
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: AuditEntry) -> None:
        """Append a single audit entry to the log file."""
        with self._path.open("a") as f:
            f.write(entry.model_dump_json() + "\n")
        logger.debug(
            "Audit: %s note=%s title=%s applied=%s",
            entry.action,
            entry.note_ref,
            entry.title,
            entry.applied,
        )

    def log_auto_filed(self, outcome: ClassificationOutcome, *, title: str) -> AuditEntry:
        entry = self._build_entry("auto_filed", outcome, title, applied=True)
        self.log(entry)
        return entry

    def log_queued_for_review(self, outcome: ClassificationOutcome, *, title: str) -> AuditEntry:
        entry = self._build_entry("queued_for_review", outcome, title, applied=False)
        self.log(entry)
        return entry

    def log_review_approved(self, outcome: ClassificationOutcome, *, title: str) -> AuditEntry:
        entry = self._build_entry("review_approved", outcome, title, applied=True)
        self.log(entry)
        return entry

    def log_review_corrected(self, outcome: ClassificationOutcome, *, title: str) -> AuditEntry:
        """Log that a reviewer replaced the proposed classification."""
        entry = self._build_entry("review_corrected", outcome, title, applied=False)
        self.log(entry)
        return entry

    def read_entries(
        self,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        """Read audit entries, oldest first, optionally filtered by timestamp."""
        if not self._path.exists():
            return []

        entries: list[AuditEntry] = []
        with self._path.open() as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entry = AuditEntry.model_validate_json(line)
                if since and entry.timestamp <= since:
                    continue
                entries.append(entry)

        if limit is not None:
            entries = entries[-limit:]
        return entries

    def _build_entry(
        self,
        action: str,
        outcome: ClassificationOutcome,
        title: str,
        *,
        applied: bool,
    ) -> AuditEntry:
        result = outcome.classification
        return AuditEntry(
            timestamp=datetime.now(UTC),
            action=action,
            note_ref=outcome.note_ref,
            title=title,
            type=result.type,
            confidence=result.confidence,
            classification_method=result.classification_method,
            route=outcome.route,
            folder_path=outcome.suggested_actions.folder_path,
            matched_rule_id=result.matched_rule_id,
            applied=applied,
        )
