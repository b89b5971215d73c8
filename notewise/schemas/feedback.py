"""Schemas for the feedback / learning loop.

A FeedbackRecord is the source of truth for a human correction. Everything
else produced while recording it (rule stats, learned patterns, rule
suggestions) is advisory and reported separately on FeedbackOutcome.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from notewise.schemas.classification import (
    ClassificationResult,
    ClassificationType,
    Thresholds,
)
from notewise.schemas.rules import ActionSet, ConditionGroup, RuleStatus


class CorrectionType(StrEnum):
    TYPE_CHANGE = "type_change"
    CLIENT_CHANGE = "client_change"
    PROJECT_CHANGE = "project_change"
    TEAM_CHANGE = "team_change"
    OTHER = "other"


class ClassificationSnapshot(BaseModel):
    """Flattened classification as the reviewer saw or corrected it."""

    model_config = ConfigDict(frozen=True)

    type: ClassificationType
    client_id: str | None = None
    client_name: str | None = None
    project_id: str | None = None
    project_name: str | None = None
    internal_team: str | None = None
    confidence: float = 0.0
    matched_rule_id: str | None = None

    @classmethod
    def from_result(cls, result: ClassificationResult) -> "ClassificationSnapshot":
        return cls(
            type=result.type,
            client_id=result.client.id if result.client else None,
            client_name=result.client.name if result.client else None,
            project_id=result.project.id if result.project else None,
            project_name=result.project.name if result.project else None,
            internal_team=result.internal_team,
            confidence=result.confidence,
            matched_rule_id=result.matched_rule_id,
        )

    @property
    def target(self) -> tuple[str, str | None, str | None]:
        """The (type, client, project) a correction points at."""
        return (self.type.value, self.client_id, self.project_id)


class MeetingSnapshot(BaseModel):
    """Just enough of the meeting to learn from: title and attendee emails."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    attendees: list[str] = Field(default_factory=list)


class FeedbackRecord(BaseModel):
    """Immutable, append-only log entry for one human correction."""

    model_config = ConfigDict(frozen=True)

    id: str
    note_id: str | None = None
    original: ClassificationSnapshot
    corrected: ClassificationSnapshot
    correction_types: list[CorrectionType]
    meeting: MeetingSnapshot | None = None
    author: str
    created_at: datetime


class LearnedPattern(BaseModel):
    """A per-user heuristic inferred from repeated corrections. Advisory only."""

    pattern: str
    action: str
    confidence: float = Field(default=0.7, ge=0.0, le=0.95)
    times_applied: int = 0
    last_applied: datetime | None = None
    created_at: datetime


class UserSettings(BaseModel):
    """Per-user overrides of the filing thresholds."""

    auto_file_threshold: float = Field(default=0.90, ge=0.0, le=1.0)
    show_popup_threshold: float = Field(default=0.70, ge=0.0, le=1.0)

    def thresholds(self) -> Thresholds:
        return Thresholds(
            auto_file=self.auto_file_threshold,
            show_popup=self.show_popup_threshold,
        )


class RuleDraft(BaseModel):
    """Skeleton of a proposed rule. Conditions are left for the author to refine."""

    name: str
    description: str
    priority: int = 50
    conditions: ConditionGroup = Field(
        default_factory=lambda: ConditionGroup(operator="OR", rules=[])
    )
    actions: ActionSet
    status: RuleStatus = RuleStatus.TESTING


class RuleSuggestion(BaseModel):
    """Advisory proposal to create a rule after repeated identical corrections."""

    reason: str
    occurrences: int
    rule: RuleDraft


class FeedbackOutcome(BaseModel):
    """The authoritative record plus the advisory side effects of recording it."""

    record: FeedbackRecord
    rule_stats_updated: bool = False
    pattern_updated: bool = False
    new_rule_suggested: bool = False
    rule_suggestion: RuleSuggestion | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def correction_types(self) -> list[CorrectionType]:
        return self.record.correction_types
