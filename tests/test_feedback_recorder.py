"""Tests for the feedback recorder (notewise/feedback/recorder.py)."""

from unittest.mock import MagicMock

import pytest

from notewise.feedback.recorder import (
    FeedbackError,
    FeedbackRecorder,
    build_rule_suggestion,
    determine_correction_types,
)
from notewise.schemas.classification import ClassificationResult, ClassificationType
from notewise.schemas.directory import EntityRef
from notewise.schemas.feedback import ClassificationSnapshot, CorrectionType
from notewise.schemas.meeting import Attendee, MeetingInput
from notewise.schemas.rules import RuleStatsDelta, RuleStatus
from notewise.store.feedback_log import FeedbackLog
from notewise.store.preferences import PreferencesStore

INTERNAL = "internal.co"


def _make_meeting(title: str, *emails: str) -> MeetingInput:
    return MeetingInput(title=title, attendees=[Attendee(email=e) for e in emails])


_ORIGINAL = ClassificationResult(
    type=ClassificationType.EXTERNAL,
    confidence=0.4,
)

_CORRECTED = ClassificationSnapshot(
    type=ClassificationType.CLIENT,
    client_id="client_acme",
    client_name="Acme",
    project_id="proj_cloud",
    project_name="Cloud Migration",
    confidence=1.0,
)

_MEETING = _make_meeting("Migration cutover planning", "alice@internal.co", "john@acme.com")


@pytest.fixture()
def feedback_log(tmp_path) -> FeedbackLog:
    return FeedbackLog(tmp_path / "feedback.jsonl")


@pytest.fixture()
def prefs(tmp_path):
    with PreferencesStore(tmp_path / "preferences.db") as store:
        yield store


def _record(recorder: FeedbackRecorder, original=_ORIGINAL, corrected=_CORRECTED, meeting=_MEETING):
    return recorder.record_feedback(
        note_id="note-1",
        original=original,
        corrected=corrected,
        meeting=meeting,
        author="Alice@internal.co",
    )


class TestDetermineCorrectionTypes:
    def test_type_and_client(self):
        original = ClassificationSnapshot(type=ClassificationType.EXTERNAL)
        types = determine_correction_types(original, _CORRECTED)
        assert types == [
            CorrectionType.TYPE_CHANGE,
            CorrectionType.CLIENT_CHANGE,
            CorrectionType.PROJECT_CHANGE,
        ]

    def test_project_only(self):
        original = _CORRECTED.model_copy(update={"project_id": "proj_data_platform"})
        assert determine_correction_types(original, _CORRECTED) == [CorrectionType.PROJECT_CHANGE]

    def test_team(self):
        original = ClassificationSnapshot(type=ClassificationType.INTERNAL, internal_team="Sales")
        corrected = ClassificationSnapshot(type=ClassificationType.INTERNAL, internal_team="Engineering")
        assert determine_correction_types(original, corrected) == [CorrectionType.TEAM_CHANGE]

    def test_identical_is_other(self):
        assert determine_correction_types(_CORRECTED, _CORRECTED) == [CorrectionType.OTHER]


class TestRecordFeedback:
    def test_record_written(self, feedback_log):
        outcome = _record(FeedbackRecorder(feedback_log, internal_domain=INTERNAL))
        assert feedback_log.read_records() == [outcome.record]
        assert outcome.record.author == "alice@internal.co"
        assert outcome.record.meeting.attendees == ["alice@internal.co", "john@acme.com"]
        assert CorrectionType.TYPE_CHANGE in outcome.correction_types
        assert outcome.rule_stats_updated is False
        assert outcome.pattern_updated is False
        assert outcome.new_rule_suggested is False

    def test_append_failure_is_hard_error(self, tmp_path):
        log = MagicMock()
        log.append.side_effect = OSError("read-only file system")
        with pytest.raises(FeedbackError):
            _record(FeedbackRecorder(log, internal_domain=INTERNAL))

    def test_matched_rule_corrected(self, feedback_log):
        sink = MagicMock()
        original = ClassificationResult(
            type=ClassificationType.INTERNAL,
            internal_team="Engineering",
            confidence=0.9,
            matched_rule_id="rule_standup",
        )
        outcome = _record(FeedbackRecorder(feedback_log, stats_sink=sink, internal_domain=INTERNAL), original)
        assert outcome.rule_stats_updated is True
        sink.record_rule_stats.assert_called_once_with("rule_standup", RuleStatsDelta(times_corrected=1))

    def test_stats_failure_is_advisory(self, feedback_log):
        sink = MagicMock()
        sink.record_rule_stats.side_effect = ValueError("Rule not found: rule_gone")
        original = ClassificationResult(
            type=ClassificationType.INTERNAL, confidence=0.9, matched_rule_id="rule_gone"
        )
        outcome = _record(FeedbackRecorder(feedback_log, stats_sink=sink, internal_domain=INTERNAL), original)
        assert outcome.rule_stats_updated is False
        assert outcome.warnings == ["rule stats not updated for rule_gone"]
        assert len(feedback_log.read_records()) == 1

    def test_pattern_learned(self, feedback_log, prefs):
        recorder = FeedbackRecorder(feedback_log, preferences=prefs, internal_domain=INTERNAL)
        outcome = _record(recorder)
        assert outcome.pattern_updated is True
        (pattern,) = prefs.get_patterns("alice@internal.co")
        assert pattern.pattern == 'attendees from acme.com and title contains "Migration, cutover, planning"'
        assert pattern.action == "classify as client: Acme / Cloud Migration"

        _record(recorder)
        (pattern,) = prefs.get_patterns("alice@internal.co")
        assert pattern.confidence == pytest.approx(0.75)

    def test_pattern_failure_is_advisory(self, feedback_log):
        prefs = MagicMock()
        prefs.update_patterns.side_effect = OSError("database is locked")
        outcome = _record(FeedbackRecorder(feedback_log, preferences=prefs, internal_domain=INTERNAL))
        assert outcome.pattern_updated is False
        assert "learned pattern not updated" in outcome.warnings

    def test_no_meeting_no_pattern(self, feedback_log, prefs):
        recorder = FeedbackRecorder(feedback_log, preferences=prefs, internal_domain=INTERNAL)
        outcome = _record(recorder, meeting=None)
        assert outcome.pattern_updated is False
        assert prefs.get_patterns("alice@internal.co") == []


class TestRuleSuggestion:
    def test_fourth_identical_correction_suggests(self, feedback_log):
        recorder = FeedbackRecorder(feedback_log, internal_domain=INTERNAL)
        outcomes = [_record(recorder) for _ in range(4)]

        assert [o.new_rule_suggested for o in outcomes] == [False, False, False, True]
        suggestion = outcomes[-1].rule_suggestion
        assert suggestion.occurrences == 3
        assert suggestion.rule.name == "Auto-suggested: Acme Rule"
        assert suggestion.rule.status == RuleStatus.TESTING
        assert suggestion.rule.actions.client.value == "client_acme"
        assert suggestion.rule.actions.project.value == "proj_cloud"

    def test_different_targets_do_not_count(self, feedback_log):
        recorder = FeedbackRecorder(feedback_log, internal_domain=INTERNAL)
        other = _CORRECTED.model_copy(update={"project_id": "proj_data_platform"})
        for _ in range(3):
            _record(recorder, corrected=other)
        assert _record(recorder).new_rule_suggested is False

    def test_uncategorized_never_suggested(self):
        corrected = ClassificationSnapshot(type=ClassificationType.UNCATEGORIZED)
        assert build_rule_suggestion(corrected, 5) is None

    def test_internal_suggestion_keeps_team(self):
        corrected = ClassificationSnapshot(type=ClassificationType.INTERNAL, internal_team="Sales")
        suggestion = build_rule_suggestion(corrected, 3)
        assert suggestion.rule.name == "Auto-suggested: Sales Rule"
        assert suggestion.rule.actions.team.value == "Sales"

    def test_accepts_result_as_corrected(self, feedback_log):
        recorder = FeedbackRecorder(feedback_log, internal_domain=INTERNAL)
        corrected = ClassificationResult(
            type=ClassificationType.CLIENT,
            client=EntityRef(id="client_acme", name="Acme"),
            confidence=1.0,
        )
        outcome = _record(recorder, corrected=corrected)
        assert outcome.record.corrected.client_id == "client_acme"
