"""JSON-file directory of clients, projects and classification rules.

Loads the directory from a JSON file, parses each client, project and rule
document on its own so one malformed entry is skipped instead of poisoning
the whole file, and writes rule statistics back with atomic saves. An
unreadable file degrades to an empty directory.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from notewise.schemas.directory import Client, ClientStatus, Project, ProjectStatus
from notewise.schemas.rules import Rule, RuleStatsDelta, RuleStatus

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class DirectoryFile(BaseModel):
    """Top-level schema for the directory.json file.

    Entries stay raw here; they are validated one by one in DirectoryStore
    and written back untouched on save.
    """

    clients: list[Any] = Field(default_factory=list)
    projects: list[Any] = Field(default_factory=list)
    rules: list[Any] = Field(default_factory=list)


def _parse_entries(model: type[T], raws: list[Any], kind: str) -> tuple[list[T], list[str]]:
    """Validate each raw document, returning the parsed ones and the ids skipped."""
    parsed: list[T] = []
    skipped: list[str] = []
    for index, raw in enumerate(raws):
        try:
            parsed.append(model.model_validate(raw))
        except ValidationError as exc:
            entry_id = raw.get("id", f"#{index}") if isinstance(raw, dict) else f"#{index}"
            skipped.append(entry_id)
            logger.warning(
                "Skipping malformed %s %s: %d validation error(s): %s",
                kind,
                entry_id,
                exc.error_count(),
                exc.errors()[0]["msg"],
            )
    return parsed, skipped


class DirectoryStore:
    """Directory snapshot source and rule-stats sink backed by one JSON file.

    Usage::

        store = DirectoryStore.load("data/directory.json")
        rules = store.list_active_rules()
        store.record_rule_stats("rule_standup", RuleStatsDelta(times_corrected=1))
    """

    def __init__(self, data: DirectoryFile, path: Path) -> None:
        self._data = data
        self._path = path
        self._clients, skipped_clients = _parse_entries(Client, data.clients, "client")
        self._projects, skipped_projects = _parse_entries(Project, data.projects, "project")
        self._skipped_entries = skipped_clients + skipped_projects
        self._rules: list[Rule] = []
        self._skipped: list[str] = []
        self._parse_rules()

    @classmethod
    def load(cls, path: str | Path) -> "DirectoryStore":
        """Load the directory from a JSON file.

        If the file does not exist or cannot be read as a directory, returns
        an empty directory.
        """
        path = Path(path)
        if not path.exists():
            logger.info("Directory file not found at %s, using an empty directory", path)
            return cls(DirectoryFile(), path)

        try:
            data = DirectoryFile.model_validate(json.loads(path.read_text()))
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Could not read directory %s, using an empty directory: %s", path, exc)
            return cls(DirectoryFile(), path)

        store = cls(data, path)
        logger.info(
            "Loaded directory from %s: %d client(s), %d project(s), %d rule(s), %d skipped",
            path,
            len(store._clients),
            len(store._projects),
            len(store._rules),
            len(store._skipped) + len(store._skipped_entries),
        )
        return store

    def _parse_rules(self) -> None:
        """Validate each raw rule document, keeping file order as registration order."""
        self._rules, self._skipped = _parse_entries(Rule, self._data.rules, "rule")

    # --- Directory snapshot ---

    def list_active_clients(self) -> list[Client]:
        return [c for c in self._clients if c.status == ClientStatus.ACTIVE]

    def list_active_projects(self) -> list[Project]:
        return [p for p in self._projects if p.status == ProjectStatus.ACTIVE]

    def list_active_rules(self, include_testing: bool = False) -> list[Rule]:
        allowed = {RuleStatus.ACTIVE}
        if include_testing:
            allowed.add(RuleStatus.TESTING)
        return [r for r in self._rules if r.status in allowed]

    def list_rules(self) -> list[Rule]:
        """Every rule that parsed, whatever its status."""
        return list(self._rules)

    def get_rule(self, rule_id: str) -> Rule | None:
        return next((r for r in self._rules if r.id == rule_id), None)

    @property
    def skipped_rules(self) -> list[str]:
        """Ids of rule documents that failed validation."""
        return list(self._skipped)

    @property
    def skipped_entries(self) -> list[str]:
        """Ids of client and project documents that failed validation."""
        return list(self._skipped_entries)

    # --- Rule stats sink ---

    def record_rule_stats(self, rule_id: str, delta: RuleStatsDelta) -> None:
        """Apply a stats increment to a rule and persist it.

        Raises:
            ValueError: If no rule document has this id.
        """
        raw = next((r for r in self._data.rules if isinstance(r, dict) and r.get("id") == rule_id), None)
        if raw is None:
            raise ValueError(f"Rule not found: {rule_id}")

        stats = raw.setdefault("stats", {})
        stats["times_applied"] = stats.get("times_applied", 0) + delta.times_applied
        stats["times_corrected"] = stats.get("times_corrected", 0) + delta.times_corrected
        if delta.last_applied is not None:
            stats["last_applied"] = delta.last_applied.isoformat()

        self._parse_rules()
        self.save()
        logger.debug("Rule %s stats now %s", rule_id, stats)

    def save(self) -> None:
        """Atomic write: temp file + rename to prevent corruption."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(self._data.model_dump(mode="json"), indent=2) + "\n"

        fd, tmp_path = tempfile.mkstemp(dir=str(self._path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.replace(tmp_path, str(self._path))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
