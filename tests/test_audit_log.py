"""Tests for the JSONL filing audit log."""

from datetime import UTC, datetime, timedelta

from notewise.audit.logger import AuditLog
from notewise.schemas.classification import (
    ClassificationMethod,
    ClassificationOutcome,
    ClassificationResult,
    ClassificationType,
    FilingRoute,
    SuggestedActions,
)


def _make_outcome(route: FilingRoute = FilingRoute.AUTO_FILE) -> ClassificationOutcome:
    return ClassificationOutcome(
        note_ref="note-7",
        classification=ClassificationResult(
            type=ClassificationType.INTERNAL,
            internal_team="Engineering",
            confidence=0.9,
            matched_rule_id="rule_standup",
            classification_method=ClassificationMethod.RULE,
        ),
        auto_apply=route == FilingRoute.AUTO_FILE,
        route=route,
        suggested_actions=SuggestedActions(folder_path="Meeting Notes/Internal/Engineering"),
    )


class TestLogActions:
    def test_log_auto_filed(self, tmp_path):
        audit = AuditLog(tmp_path / "audit.jsonl")
        entry = audit.log_auto_filed(_make_outcome(), title="Daily Standup")

        assert entry.action == "auto_filed"
        assert entry.applied is True
        assert entry.note_ref == "note-7"
        assert entry.folder_path == "Meeting Notes/Internal/Engineering"
        assert entry.matched_rule_id == "rule_standup"

    def test_log_queued_for_review(self, tmp_path):
        audit = AuditLog(tmp_path / "audit.jsonl")
        entry = audit.log_queued_for_review(_make_outcome(FilingRoute.SHOW_POPUP), title="Sync")

        assert entry.action == "queued_for_review"
        assert entry.applied is False
        assert entry.route == FilingRoute.SHOW_POPUP

    def test_log_review_approved(self, tmp_path):
        audit = AuditLog(tmp_path / "audit.jsonl")
        entry = audit.log_review_approved(_make_outcome(FilingRoute.SHOW_POPUP), title="Sync")
        assert entry.action == "review_approved"
        assert entry.applied is True

    def test_log_review_corrected(self, tmp_path):
        audit = AuditLog(tmp_path / "audit.jsonl")
        entry = audit.log_review_corrected(_make_outcome(FilingRoute.SHOW_POPUP), title="Sync")
        assert entry.action == "review_corrected"
        assert entry.applied is False


class TestReadEntries:
    def test_missing_file(self, tmp_path):
        assert AuditLog(tmp_path / "nope.jsonl").read_entries() == []

    def test_read_back_in_order(self, tmp_path):
        audit = AuditLog(tmp_path / "audit.jsonl")
        audit.log_queued_for_review(_make_outcome(FilingRoute.SHOW_POPUP), title="a")
        audit.log_review_approved(_make_outcome(FilingRoute.SHOW_POPUP), title="a")

        entries = audit.read_entries()
        assert [e.action for e in entries] == ["queued_for_review", "review_approved"]
        assert entries[0].type == ClassificationType.INTERNAL

    def test_since_filter(self, tmp_path):
        audit = AuditLog(tmp_path / "audit.jsonl")
        audit.log_auto_filed(_make_outcome(), title="old")
        future = datetime.now(UTC) + timedelta(hours=1)
        assert audit.read_entries(since=future) == []

    def test_limit(self, tmp_path):
        audit = AuditLog(tmp_path / "audit.jsonl")
        for title in ("a", "b", "c"):
            audit.log_auto_filed(_make_outcome(), title=title)
        assert [e.title for e in audit.read_entries(limit=2)] == ["b", "c"]
