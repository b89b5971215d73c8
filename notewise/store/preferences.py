"""SQLite-backed per-user preferences: filing thresholds and learned patterns.

One row per user, keyed by email. Patterns are stored as a JSON array and
rewritten whole on update (read-modify-write, no transaction across users).
"""

import json
import logging
import sqlite3
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import TypeVar

from notewise.feedback.patterns import LearnedPatternBuffer
from notewise.schemas.feedback import LearnedPattern, UserSettings

logger = logging.getLogger(__name__)

R = TypeVar("R")

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS user_preferences (
    user_id         TEXT PRIMARY KEY,
    settings_json   TEXT NOT NULL,
    patterns_json   TEXT NOT NULL DEFAULT '[]',
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
)
"""

_SELECT = "SELECT * FROM user_preferences WHERE user_id = ?"

_UPSERT_SETTINGS = """
INSERT INTO user_preferences (user_id, settings_json, created_at, updated_at)
VALUES (?, ?, ?, ?)
ON CONFLICT(user_id) DO UPDATE SET settings_json = excluded.settings_json,
                                   updated_at = excluded.updated_at
"""

_UPSERT_PATTERNS = """
INSERT INTO user_preferences (user_id, settings_json, patterns_json, created_at, updated_at)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(user_id) DO UPDATE SET patterns_json = excluded.patterns_json,
                                   updated_at = excluded.updated_at
"""


class PreferencesStore:
    """Per-user settings and learned patterns.

    Usage::

        prefs = PreferencesStore("/path/to/preferences.db")
        thresholds = prefs.get_settings("alice@example.com").thresholds()

        prefs.update_patterns("alice@example.com", lambda buf: buf.record(text, action, now=now))
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

    def __enter__(self) -> "PreferencesStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get_settings(self, user_id: str) -> UserSettings:
        """Return the user's settings, or defaults if they have none stored."""
        row = self._conn.execute(_SELECT, (user_id.lower(),)).fetchone()
        if row is None:
            return UserSettings()
        return UserSettings.model_validate_json(row["settings_json"])

    def save_settings(self, user_id: str, settings: UserSettings) -> None:
        now = datetime.now(UTC).isoformat()
        self._conn.execute(
            _UPSERT_SETTINGS,
            (user_id.lower(), settings.model_dump_json(), now, now),
        )
        self._conn.commit()
        logger.info("Saved settings for %s", user_id)

    def get_patterns(self, user_id: str) -> list[LearnedPattern]:
        row = self._conn.execute(_SELECT, (user_id.lower(),)).fetchone()
        if row is None:
            return []
        return [LearnedPattern.model_validate(p) for p in json.loads(row["patterns_json"])]

    def update_patterns(
        self,
        user_id: str,
        update: Callable[[LearnedPatternBuffer], R],
    ) -> R:
        """Load the user's pattern buffer, apply ``update``, and write it back.

        Returns whatever ``update`` returns.
        """
        buffer = LearnedPatternBuffer(self.get_patterns(user_id))
        result = update(buffer)

        now = datetime.now(UTC).isoformat()
        patterns_json = json.dumps([p.model_dump(mode="json") for p in buffer])
        self._conn.execute(
            _UPSERT_PATTERNS,
            (user_id.lower(), UserSettings().model_dump_json(), patterns_json, now, now),
        )
        self._conn.commit()
        logger.debug("User %s now has %d learned pattern(s)", user_id, len(buffer))
        return result
