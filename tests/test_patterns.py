"""Tests for the learned-pattern ring buffer and pattern descriptions."""

from datetime import UTC, datetime, timedelta

import pytest

from notewise.feedback.patterns import (
    MAX_CONFIDENCE,
    MAX_PATTERNS,
    LearnedPatternBuffer,
    describe_action,
    describe_pattern,
)
from notewise.schemas.classification import ClassificationType
from notewise.schemas.feedback import ClassificationSnapshot, MeetingSnapshot

NOW = datetime(2026, 3, 1, tzinfo=UTC)


class TestLearnedPatternBuffer:
    def test_new_pattern(self):
        buffer = LearnedPatternBuffer()
        pattern, created = buffer.record("attendees from acme.com", "classify as client: Acme", now=NOW)
        assert created is True
        assert pattern.confidence == pytest.approx(0.7)
        assert pattern.times_applied == 0
        assert len(buffer) == 1

    def test_reinforce_is_case_insensitive(self):
        buffer = LearnedPatternBuffer()
        buffer.record("Attendees from acme.com", "a", now=NOW)
        pattern, created = buffer.record("attendees from ACME.com", "b", now=NOW + timedelta(days=1))
        assert created is False
        assert pattern.confidence == pytest.approx(0.75)
        assert pattern.times_applied == 1
        assert pattern.action == "b"
        assert pattern.last_applied == NOW + timedelta(days=1)
        assert len(buffer) == 1

    def test_confidence_capped(self):
        buffer = LearnedPatternBuffer()
        for _ in range(20):
            pattern, _created = buffer.record("p", "a", now=NOW)
        assert pattern.confidence == pytest.approx(MAX_CONFIDENCE)

    def test_evicts_oldest_at_capacity(self):
        buffer = LearnedPatternBuffer()
        for i in range(MAX_PATTERNS + 1):
            buffer.record(f"pattern {i}", "a", now=NOW)
        assert len(buffer) == MAX_PATTERNS
        assert buffer.find("pattern 0") is None
        assert buffer.find("pattern 1") is not None
        assert buffer.to_list()[-1].pattern == f"pattern {MAX_PATTERNS}"

    def test_reinforcing_does_not_evict(self):
        buffer = LearnedPatternBuffer(capacity=2)
        buffer.record("a", "x", now=NOW)
        buffer.record("b", "x", now=NOW)
        buffer.record("a", "x", now=NOW)
        assert [p.pattern for p in buffer] == ["a", "b"]

    def test_truncates_oversized_input(self):
        buffer = LearnedPatternBuffer(capacity=3)
        for name in "abcd":
            buffer.record(name, "x", now=NOW)
        reloaded = LearnedPatternBuffer(buffer.to_list() + buffer.to_list(), capacity=3)
        assert len(reloaded) == 3
        assert reloaded.capacity == 3


class TestDescribePattern:
    def test_domains_and_keywords(self):
        meeting = MeetingSnapshot(
            title="Acme Quarterly Business Review",
            attendees=["alice@internal.co", "john@acme.com", "jane@acme.com"],
        )
        assert describe_pattern(meeting, "internal.co") == (
            'attendees from acme.com and title contains "Acme, Quarterly, Business"'
        )

    def test_short_words_skipped(self):
        meeting = MeetingSnapshot(title="Q3 on the API", attendees=[])
        assert describe_pattern(meeting, "internal.co") is None

    def test_internal_only(self):
        meeting = MeetingSnapshot(title="", attendees=["alice@internal.co"])
        assert describe_pattern(meeting, "internal.co") is None


class TestDescribeAction:
    def test_client_with_project(self):
        snapshot = ClassificationSnapshot(
            type=ClassificationType.CLIENT,
            client_id="client_acme",
            client_name="Acme",
            project_id="proj_cloud",
            project_name="Cloud Migration",
        )
        assert describe_action(snapshot) == "classify as client: Acme / Cloud Migration"

    def test_internal_default_team(self):
        snapshot = ClassificationSnapshot(type=ClassificationType.INTERNAL)
        assert describe_action(snapshot) == "classify as internal: General"

    def test_other_types(self):
        snapshot = ClassificationSnapshot(type=ClassificationType.PERSONAL)
        assert describe_action(snapshot) == "classify as personal"
