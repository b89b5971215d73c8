"""Schemas for the classification pipeline.

Covers the full lifecycle:
  meeting facts -> signals -> confidence score -> filing route -> review queue / audit log
"""

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field

from notewise.schemas.directory import EntityRef


class ClassificationType(StrEnum):
    CLIENT = "client"
    INTERNAL = "internal"
    EXTERNAL = "external"
    PERSONAL = "personal"
    UNCATEGORIZED = "uncategorized"


class ClassificationMethod(StrEnum):
    """Which signal decided the classification type."""

    RULE = "rule"
    DOMAIN = "domain"
    KEYWORD = "keyword"
    AI = "ai"
    DEFAULT = "default"


class FilingRoute(StrEnum):
    """Where a classified meeting goes, determined by the confidence thresholds."""

    AUTO_FILE = "auto_file"
    SHOW_POPUP = "show_popup"
    UNCATEGORIZED = "uncategorized"


class ReviewStatus(StrEnum):
    """Status of an item in the review queue."""

    PENDING = "pending"
    APPROVED = "approved"
    CORRECTED = "corrected"


# --- Engine output ---


class ClassificationResult(BaseModel):
    """The engine's verdict for one meeting."""

    type: ClassificationType = ClassificationType.UNCATEGORIZED
    client: EntityRef | None = None
    project: EntityRef | None = None
    internal_team: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    matched_rule_id: str | None = None
    ai_reasoning: str | None = None
    classification_method: ClassificationMethod = ClassificationMethod.DEFAULT


class AIClassification(BaseModel):
    """LLM executor output: meeting classification.

    This is the schema the LLM must conform to. Client and project ids are
    checked against the directory before they are trusted.
    """

    type: ClassificationType
    client_id: str | None = None
    project_id: str | None = None
    internal_team: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


class SuggestedActions(BaseModel):
    """Filing suggestions handed to the storage collaborator."""

    folder_path: str
    share_with: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)


class ClassificationOutcome(BaseModel):
    """Authoritative classification plus routing and advisory effects."""

    note_ref: str | None = None
    classification: ClassificationResult
    auto_apply: bool = False
    route: FilingRoute = FilingRoute.UNCATEGORIZED
    suggested_actions: SuggestedActions
    rule_stats_recorded: bool = False
    warnings: list[str] = Field(default_factory=list)


class Thresholds(BaseModel):
    """Confidence cutoffs for auto-filing and the review popup."""

    auto_file: float = Field(default=0.90, ge=0.0, le=1.0)
    show_popup: float = Field(default=0.70, ge=0.0, le=1.0)


# --- Review queue ---


class ReviewQueueItem(BaseModel):
    """An item in the human review queue."""

    id: str = Field(description="Unique queue item ID")
    created_at: datetime
    title: str
    attendees: list[str] = Field(default_factory=list)
    outcome: ClassificationOutcome
    status: ReviewStatus = ReviewStatus.PENDING
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None


# --- Audit ---


class AuditEntry(BaseModel):
    """A record of a filing decision taken (or queued) by the system."""

    timestamp: datetime
    action: Literal["auto_filed", "queued_for_review", "review_approved", "review_corrected"]
    note_ref: str | None = None
    title: str
    type: ClassificationType
    confidence: float
    classification_method: ClassificationMethod
    route: FilingRoute
    folder_path: str
    matched_rule_id: str | None = None
    applied: bool
