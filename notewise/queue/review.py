"""SQLite-backed review queue for classifications below the auto-file threshold.

Holds both popup-grade (review) and low-confidence (uncategorized) outcomes;
the route column tells them apart.
"""

import json
import logging
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path

from notewise.schemas.classification import (
    ClassificationOutcome,
    FilingRoute,
    ReviewQueueItem,
    ReviewStatus,
)
from notewise.schemas.meeting import MeetingInput

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS review_queue (
    id              TEXT PRIMARY KEY,
    created_at      TEXT NOT NULL,
    note_ref        TEXT,
    title           TEXT NOT NULL,
    attendees_json  TEXT NOT NULL,
    route           TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'pending',
    outcome_json    TEXT NOT NULL,
    reviewed_at     TEXT,
    reviewed_by     TEXT
)
"""

_INSERT = """
INSERT INTO review_queue
    (id, created_at, note_ref, title, attendees_json, route, status, outcome_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_BY_ID = "SELECT * FROM review_queue WHERE id = ?"
_SELECT_PENDING = "SELECT * FROM review_queue WHERE status = 'pending' ORDER BY created_at ASC, rowid ASC"
_SELECT_PENDING_BY_ROUTE = (
    "SELECT * FROM review_queue WHERE status = 'pending' AND route = ? ORDER BY created_at ASC, rowid ASC"
)

_UPDATE_STATUS = """
UPDATE review_queue SET status = ?, reviewed_at = ?, reviewed_by = ? WHERE id = ?
"""


def _row_to_item(row: sqlite3.Row) -> ReviewQueueItem:
    return ReviewQueueItem(
        id=row["id"],
        created_at=datetime.fromisoformat(row["created_at"]),
        title=row["title"],
        attendees=json.loads(row["attendees_json"]),
        outcome=ClassificationOutcome.model_validate_json(row["outcome_json"]),
        status=ReviewStatus(row["status"]),
        reviewed_at=(
            datetime.fromisoformat(row["reviewed_at"]) if row["reviewed_at"] else None
        ),
        reviewed_by=row["reviewed_by"],
    )


class ReviewQueue:
    """Queue of classifications awaiting a human decision.

    Usage::

        queue = ReviewQueue("/path/to/review.db")
        queue.add(outcome, meeting)

        for item in queue.list_pending(FilingRoute.SHOW_POPUP):
            print(item.title)

        queue.approve(item_id, reviewer="alice@example.com")
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_CREATE_TABLE)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "ReviewQueue":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def add(self, outcome: ClassificationOutcome, meeting: MeetingInput) -> ReviewQueueItem:
        """Queue a classification outcome for review."""
        item_id = str(uuid.uuid4())
        now = datetime.now(UTC)
        attendees = [a.email for a in meeting.attendees]

        self._conn.execute(
            _INSERT,
            (
                item_id,
                now.isoformat(),
                outcome.note_ref,
                meeting.title,
                json.dumps(attendees),
                outcome.route.value,
                ReviewStatus.PENDING.value,
                outcome.model_dump_json(),
            ),
        )
        self._conn.commit()

        logger.info(
            "Queued meeting %r for review (queue_id=%s, route=%s)",
            meeting.title,
            item_id,
            outcome.route.value,
        )
        return ReviewQueueItem(
            id=item_id,
            created_at=now,
            title=meeting.title,
            attendees=attendees,
            outcome=outcome,
        )

    def get(self, item_id: str) -> ReviewQueueItem | None:
        row = self._conn.execute(_SELECT_BY_ID, (item_id,)).fetchone()
        if row is None:
            return None
        return _row_to_item(row)

    def list_pending(self, route: FilingRoute | None = None) -> list[ReviewQueueItem]:
        """List pending items, oldest first, optionally for one route."""
        if route is None:
            rows = self._conn.execute(_SELECT_PENDING).fetchall()
        else:
            rows = self._conn.execute(_SELECT_PENDING_BY_ROUTE, (route.value,)).fetchall()
        return [_row_to_item(r) for r in rows]

    def count_pending(self) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM review_queue WHERE status = 'pending'"
        ).fetchone()
        return row[0]

    def approve(self, item_id: str, *, reviewer: str) -> ReviewQueueItem:
        """Accept the proposed classification.

        Raises:
            ValueError: If the item doesn't exist or isn't pending.
        """
        return self._set_status(item_id, ReviewStatus.APPROVED, reviewer)

    def mark_corrected(self, item_id: str, *, reviewer: str) -> ReviewQueueItem:
        """Mark an item as corrected by the reviewer.

        Raises:
            ValueError: If the item doesn't exist or isn't pending.
        """
        return self._set_status(item_id, ReviewStatus.CORRECTED, reviewer)

    def _set_status(self, item_id: str, status: ReviewStatus, reviewer: str) -> ReviewQueueItem:
        item = self.get(item_id)
        if item is None:
            raise ValueError(f"Queue item not found: {item_id}")
        if item.status != ReviewStatus.PENDING:
            raise ValueError(
                f"Cannot mark item {item_id} {status.value}: "
                f"current status is {item.status.value}"
            )

        now = datetime.now(UTC)
        self._conn.execute(_UPDATE_STATUS, (status.value, now.isoformat(), reviewer, item_id))
        self._conn.commit()

        logger.info("Review item %s: %s by %s", item_id, status.value, reviewer)

        item.status = status
        item.reviewed_at = now
        item.reviewed_by = reviewer
        return item
