"""Feedback recorder: closes the loop when a human overrides a classification.

Only writing the FeedbackRecord is authoritative. Rule stats, learned
patterns and rule suggestions are advisory: their failures are logged and
reported on the FeedbackOutcome, never raised.
"""

import logging
import uuid
from datetime import UTC, datetime

from notewise.config import INTERNAL_DOMAIN
from notewise.engine.classifier import RuleStatsSink
from notewise.feedback.patterns import describe_action, describe_pattern
from notewise.schemas.classification import ClassificationResult, ClassificationType
from notewise.schemas.feedback import (
    ClassificationSnapshot,
    CorrectionType,
    FeedbackOutcome,
    FeedbackRecord,
    MeetingSnapshot,
    RuleDraft,
    RuleSuggestion,
)
from notewise.schemas.meeting import MeetingInput
from notewise.schemas.rules import ActionSet, Explicit, RuleStatsDelta
from notewise.store.feedback_log import FeedbackLog
from notewise.store.preferences import PreferencesStore

logger = logging.getLogger(__name__)

# Prior identical corrections needed before a rule is suggested.
RULE_SUGGESTION_THRESHOLD = 3


class FeedbackError(Exception):
    """The feedback record itself could not be written."""


def determine_correction_types(
    original: ClassificationSnapshot,
    corrected: ClassificationSnapshot,
) -> list[CorrectionType]:
    corrections: list[CorrectionType] = []
    if original.type != corrected.type:
        corrections.append(CorrectionType.TYPE_CHANGE)
    if original.client_id != corrected.client_id:
        corrections.append(CorrectionType.CLIENT_CHANGE)
    if original.project_id != corrected.project_id:
        corrections.append(CorrectionType.PROJECT_CHANGE)
    if original.internal_team != corrected.internal_team:
        corrections.append(CorrectionType.TEAM_CHANGE)
    return corrections or [CorrectionType.OTHER]


def _snapshot(value: ClassificationSnapshot | ClassificationResult) -> ClassificationSnapshot:
    if isinstance(value, ClassificationResult):
        return ClassificationSnapshot.from_result(value)
    return value


def _meeting_snapshot(meeting: MeetingSnapshot | MeetingInput | None) -> MeetingSnapshot | None:
    if isinstance(meeting, MeetingInput):
        return MeetingSnapshot(
            title=meeting.title,
            attendees=[a.email for a in meeting.attendees if a.email],
        )
    return meeting


def build_rule_suggestion(corrected: ClassificationSnapshot, occurrences: int) -> RuleSuggestion | None:
    """Rule skeleton for a repeated correction. None for uncategorized targets."""
    if corrected.type == ClassificationType.UNCATEGORIZED:
        return None

    actions = ActionSet(
        classify_as=corrected.type.value,
        client=Explicit(value=corrected.client_id) if corrected.client_id else None,
        project=Explicit(value=corrected.project_id) if corrected.project_id else None,
        team=Explicit(value=corrected.internal_team) if corrected.internal_team else None,
    )
    label = corrected.client_name or corrected.internal_team or corrected.type.value.capitalize()
    return RuleSuggestion(
        reason=f"Similar correction made {occurrences} times",
        occurrences=occurrences,
        rule=RuleDraft(
            name=f"Auto-suggested: {label} Rule",
            description="Rule suggested based on repeated user corrections",
            actions=actions,
        ),
    )


class FeedbackRecorder:
    """Records corrections and updates the advisory learning state.

    Usage::

        recorder = FeedbackRecorder(FeedbackLog(path), stats_sink=directory, preferences=prefs)
        outcome = recorder.record_feedback(
            note_id="note-1",
            original=outcome.classification,
            corrected=corrected,
            meeting=meeting,
            author="alice@example.com",
        )
    """

    def __init__(
        self,
        feedback_log: FeedbackLog,
        *,
        stats_sink: RuleStatsSink | None = None,
        preferences: PreferencesStore | None = None,
        internal_domain: str = INTERNAL_DOMAIN,
        suggestion_threshold: int = RULE_SUGGESTION_THRESHOLD,
    ) -> None:
        self._log = feedback_log
        self._stats_sink = stats_sink
        self._preferences = preferences
        self._internal_domain = internal_domain.lower()
        self._suggestion_threshold = suggestion_threshold

    def record_feedback(
        self,
        note_id: str | None,
        original: ClassificationSnapshot | ClassificationResult,
        corrected: ClassificationSnapshot | ClassificationResult,
        meeting: MeetingSnapshot | MeetingInput | None,
        author: str,
    ) -> FeedbackOutcome:
        """Record one correction.

        Raises:
            FeedbackError: If the FeedbackRecord could not be appended.
        """
        original = _snapshot(original)
        corrected = _snapshot(corrected)
        now = datetime.now(UTC)

        record = FeedbackRecord(
            id=str(uuid.uuid4()),
            note_id=note_id,
            original=original,
            corrected=corrected,
            correction_types=determine_correction_types(original, corrected),
            meeting=_meeting_snapshot(meeting),
            author=author.lower(),
            created_at=now,
        )
        try:
            self._log.append(record)
        except OSError as exc:
            raise FeedbackError(f"Could not write feedback for note {note_id}: {exc}") from exc

        logger.info(
            "Recorded feedback %s for note %s: %s -> %s (%s)",
            record.id,
            note_id,
            original.type.value,
            corrected.type.value,
            ", ".join(record.correction_types),
        )

        outcome = FeedbackOutcome(record=record)
        if original.matched_rule_id:
            outcome.rule_stats_updated = self._bump_rule(original.matched_rule_id, outcome)
        if record.meeting is not None:
            outcome.pattern_updated = self._learn_pattern(record, now, outcome)
        suggestion = self._check_rule_suggestion(record, outcome)
        if suggestion is not None:
            outcome.new_rule_suggested = True
            outcome.rule_suggestion = suggestion
        return outcome

    def _bump_rule(self, rule_id: str, outcome: FeedbackOutcome) -> bool:
        if self._stats_sink is None:
            return False
        try:
            self._stats_sink.record_rule_stats(rule_id, RuleStatsDelta(times_corrected=1))
        except Exception as exc:
            logger.warning("Failed to update rule stats for %s: %s", rule_id, exc)
            outcome.warnings.append(f"rule stats not updated for {rule_id}")
            return False
        return True

    def _learn_pattern(self, record: FeedbackRecord, now: datetime, outcome: FeedbackOutcome) -> bool:
        if self._preferences is None:
            return False
        pattern = describe_pattern(record.meeting, self._internal_domain)
        if pattern is None:
            return False
        action = describe_action(record.corrected)
        try:
            stored, created = self._preferences.update_patterns(
                record.author,
                lambda buffer: buffer.record(pattern, action, now=now),
            )
        except Exception as exc:
            logger.warning("Failed to update learned pattern for %s: %s", record.author, exc)
            outcome.warnings.append("learned pattern not updated")
            return False
        logger.info(
            "%s pattern for %s: %s -> %s (confidence=%.2f)",
            "Created" if created else "Reinforced",
            record.author,
            stored.pattern,
            stored.action,
            stored.confidence,
        )
        return True

    def _check_rule_suggestion(
        self, record: FeedbackRecord, outcome: FeedbackOutcome
    ) -> RuleSuggestion | None:
        try:
            prior = self._log.count_matching_target(record.corrected.target, exclude_id=record.id)
        except Exception as exc:
            logger.warning("Could not check for rule suggestion: %s", exc)
            outcome.warnings.append("rule suggestion check failed")
            return None
        if prior < self._suggestion_threshold:
            return None
        logger.info("Suggesting a rule for %s after %d prior corrections", record.corrected.target, prior)
        return build_rule_suggestion(record.corrected, prior)
