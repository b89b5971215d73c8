"""Schemas for user-editable classification rules.

Rule documents are parsed at the boundary: every condition is one variant
of a closed union keyed by ``field``, and each variant only admits the
operators that make sense for it. A document with an unknown field or
operator fails validation and is skipped by the directory store instead
of silently never matching.
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class RuleStatus(StrEnum):
    """Lifecycle state of a rule."""

    ACTIVE = "active"
    DISABLED = "disabled"
    TESTING = "testing"  # evaluated in dry runs only


ConditionValue = str | list[str]


# --- Conditions ---


class TitleCondition(BaseModel):
    field: Literal["title"] = "title"
    operator: Literal["contains", "equals", "starts_with", "contains_any"]
    value: ConditionValue


class DescriptionCondition(BaseModel):
    field: Literal["description"] = "description"
    operator: Literal["contains", "equals", "starts_with"]
    value: ConditionValue


class AttendeeDomainsCondition(BaseModel):
    field: Literal["attendee_domains"] = "attendee_domains"
    operator: Literal["contains", "intersects"]
    value: ConditionValue


class OrganizerCondition(BaseModel):
    field: Literal["organizer"] = "organizer"
    operator: Literal["equals", "ends_with"]
    value: ConditionValue


class AllAttendeesDomainCondition(BaseModel):
    field: Literal["all_attendees_domain"] = "all_attendees_domain"
    operator: Literal["equals"]
    value: ConditionValue


Condition = Annotated[
    TitleCondition
    | DescriptionCondition
    | AttendeeDomainsCondition
    | OrganizerCondition
    | AllAttendeesDomainCondition,
    Field(discriminator="field"),
]


class ConditionGroup(BaseModel):
    """A flat AND/OR group of conditions."""

    operator: Literal["AND", "OR"] = "AND"
    rules: list[Condition] = Field(default_factory=list)

    @field_validator("operator", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


# --- Detection modes ---


class Explicit(BaseModel):
    """A fixed value chosen by the rule author."""

    kind: Literal["explicit"] = "explicit"
    value: str


class DetectFromDomain(BaseModel):
    kind: Literal["from_domain"] = "from_domain"


class DetectFromKeywords(BaseModel):
    kind: Literal["from_keywords"] = "from_keywords"


class AutoDetect(BaseModel):
    kind: Literal["auto"] = "auto"


Detection = Annotated[
    Explicit | DetectFromDomain | DetectFromKeywords | AutoDetect,
    Field(discriminator="kind"),
]


def _fold_detection(data: dict, key: str, id_key: str, mode_key: str) -> None:
    """Fold the legacy ``<x>_id`` / ``<x>_detection`` pair into one Detection."""
    raw = data.pop(key, None)
    explicit_id = data.pop(id_key, None) if id_key != key else None
    mode = data.pop(mode_key, None)

    if isinstance(raw, dict):
        data[key] = raw
    elif isinstance(raw, str) and raw:
        data[key] = {"kind": "auto"} if raw == "auto" else {"kind": "explicit", "value": raw}
    elif explicit_id:
        data[key] = {"kind": "explicit", "value": explicit_id}
    elif mode:
        data[key] = {"kind": mode}
    elif raw not in (None, ""):
        data[key] = raw


class ActionSet(BaseModel):
    """What a matching rule does to the classification and suggestions.

    Accepts both the normalized shape (``client: {"kind": "from_domain"}``)
    and the stored document shape (``client_id``, ``client_detection``,
    ``team``, ``team_detection``...).
    """

    classify_as: Literal["client", "internal", "external", "personal"]
    client: Detection | None = None
    project: Detection | None = None
    team: Detection | None = None
    folder_path: str | None = None
    folder_template: str | None = None
    share_with: list[str] = Field(default_factory=list)
    add_tags: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _fold_legacy_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        _fold_detection(data, "client", "client_id", "client_detection")
        _fold_detection(data, "project", "project_id", "project_detection")
        _fold_detection(data, "team", "team", "team_detection")
        return data


# --- Rules ---


class RuleStats(BaseModel):
    times_applied: int = 0
    times_corrected: int = 0
    last_applied: datetime | None = None


class RuleStatsDelta(BaseModel):
    """Increment applied to a rule's statistics by a write-only sink."""

    times_applied: int = 0
    times_corrected: int = 0
    last_applied: datetime | None = None


class Rule(BaseModel):
    """A prioritized, named condition group with actions and usage stats."""

    id: str
    name: str
    description: str = ""
    priority: int = 0
    conditions: ConditionGroup
    actions: ActionSet
    confidence_boost: float = Field(default=0.0, ge=0.0, le=0.5)
    status: RuleStatus = RuleStatus.ACTIVE
    stats: RuleStats = Field(default_factory=RuleStats)


class RuleMatch(BaseModel):
    """Diagnostic result of evaluating one rule against one meeting."""

    matched: bool
    matched_conditions: list[str] = Field(default_factory=list)
    failed_conditions: list[str] = Field(default_factory=list)
