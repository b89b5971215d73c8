"""Confidence scorer: merges local signals into one classification.

The first applicable signal decides the type (domain client, matched rule,
keyword client, all-internal, external); confidence accumulates from every
signal that agrees with that type and is clamped to [0, 1].
"""

import logging
import re

from pydantic import BaseModel

from notewise.config import (
    AI_FALLBACK_FLOOR,
    WEIGHT_DOMAIN_MATCH,
    WEIGHT_EXTERNAL_MATCH,
    WEIGHT_INTERNAL_MATCH,
    WEIGHT_KEYWORD_MATCH,
    WEIGHT_PROJECT_DEFAULT,
    WEIGHT_PROJECT_MATCH,
    WEIGHT_RULE_MATCH,
)
from notewise.engine.selection import (
    DomainMatch,
    KeywordMatch,
    ProjectMatch,
    find_project_for_client,
)
from notewise.schemas.classification import (
    ClassificationMethod,
    ClassificationResult,
    ClassificationType,
)
from notewise.schemas.directory import Client, EntityRef, Project
from notewise.schemas.meeting import MeetingFacts
from notewise.schemas.rules import (
    ActionSet,
    AutoDetect,
    DetectFromDomain,
    DetectFromKeywords,
    Explicit,
    Rule,
)

logger = logging.getLogger(__name__)


class ScoringWeights(BaseModel):
    """Additive confidence weights. Tunable; only their ordering is meaningful."""

    domain_match: float = WEIGHT_DOMAIN_MATCH
    keyword_match: float = WEIGHT_KEYWORD_MATCH
    project_match: float = WEIGHT_PROJECT_MATCH
    project_default: float = WEIGHT_PROJECT_DEFAULT
    rule_match: float = WEIGHT_RULE_MATCH
    internal_match: float = WEIGHT_INTERNAL_MATCH
    external_match: float = WEIGHT_EXTERNAL_MATCH
    ai_floor: float = AI_FALLBACK_FLOOR

    def project_bonus(self, match: ProjectMatch | None) -> float:
        if match is None:
            return 0.0
        if match.matched_by == "keywords":
            return self.project_match
        return self.project_default


class Signals(BaseModel):
    """Local signals found for one meeting."""

    domain: DomainMatch | None = None
    keyword: KeywordMatch | None = None
    rule: Rule | None = None


class ResolvedActions(BaseModel):
    """A rule's ActionSet with every detection mode turned into a concrete value."""

    client: Client | None = None
    project: ProjectMatch | None = None
    team: str | None = None


# Ordered: first match wins.
_TEAM_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        "Engineering",
        re.compile(r"standup|sprint|retro|architecture|code review|tech|engineering|developer"),
    ),
    ("Sales", re.compile(r"pipeline|opportunity|deal|prospect|sales|revenue|quota")),
    ("All Hands", re.compile(r"all hands|company|town hall|quarterly")),
]


def detect_internal_team(facts: MeetingFacts) -> str | None:
    """Guess the internal team from title and description keywords."""
    for team, pattern in _TEAM_PATTERNS:
        if pattern.search(facts.search_text):
            return team
    return None


def clamp(value: float) -> float:
    """Clamp to [0, 1], rounded so stacked weights compare cleanly against thresholds."""
    return round(min(1.0, max(0.0, value)), 4)


def resolve_actions(
    actions: ActionSet,
    facts: MeetingFacts,
    signals: Signals,
    clients: list[Client],
    projects: list[Project],
) -> ResolvedActions:
    """Resolve client/project/team detection modes in one place."""
    client: Client | None = None
    detection = actions.client
    if detection is None and actions.classify_as == "client":
        detection = AutoDetect()

    if isinstance(detection, Explicit):
        client = next((c for c in clients if c.id == detection.value), None)
        if client is None:
            logger.warning("Rule action names unknown client %s", detection.value)
    elif isinstance(detection, DetectFromDomain):
        client = signals.domain.client if signals.domain else None
    elif isinstance(detection, DetectFromKeywords):
        client = signals.keyword.client if signals.keyword else None
    elif isinstance(detection, AutoDetect):
        if signals.domain:
            client = signals.domain.client
        elif signals.keyword:
            client = signals.keyword.client

    project: ProjectMatch | None = None
    if isinstance(actions.project, Explicit):
        found = next((p for p in projects if p.id == actions.project.value), None)
        if found is not None:
            project = ProjectMatch(project=found, matched_by="default")
            if client is None:
                client = next((c for c in clients if c.id == found.client_id), None)
    elif client is not None:
        project = find_project_for_client(client.id, facts, projects)

    team: str | None = None
    if isinstance(actions.team, Explicit):
        team = actions.team.value
    elif isinstance(actions.team, AutoDetect) or (
        actions.team is None and actions.classify_as == "internal"
    ):
        team = detect_internal_team(facts)

    return ResolvedActions(client=client, project=project, team=team)


def _ref(entity: Client | Project | None) -> EntityRef | None:
    if entity is None:
        return None
    return EntityRef(id=entity.id, name=entity.name)


def score(
    facts: MeetingFacts,
    signals: Signals,
    *,
    clients: list[Client],
    projects: list[Project],
    internal_domain: str,
    weights: ScoringWeights | None = None,
) -> ClassificationResult:
    """Combine local signals into a ClassificationResult."""
    w = weights or ScoringWeights()
    rule = signals.rule

    if signals.domain is not None:
        client = signals.domain.client
        project = find_project_for_client(client.id, facts, projects)
        confidence = w.domain_match + w.project_bonus(project)
        matched_rule_id = None
        if rule is not None and rule.actions.classify_as == "client":
            resolved = resolve_actions(rule.actions, facts, signals, clients, projects)
            if resolved.client is None or resolved.client.id == client.id:
                confidence += rule.confidence_boost
                matched_rule_id = rule.id
                if project is None and resolved.project is not None:
                    project = resolved.project
        return ClassificationResult(
            type=ClassificationType.CLIENT,
            client=_ref(client),
            project=_ref(project.project if project else None),
            confidence=clamp(confidence),
            matched_rule_id=matched_rule_id,
            classification_method=ClassificationMethod.DOMAIN,
        )

    if rule is not None:
        resolved = resolve_actions(rule.actions, facts, signals, clients, projects)
        classify_as = ClassificationType(rule.actions.classify_as)
        confidence = w.rule_match + rule.confidence_boost
        result = ClassificationResult(
            type=classify_as,
            matched_rule_id=rule.id,
            internal_team=resolved.team,
            classification_method=ClassificationMethod.RULE,
        )
        if classify_as == ClassificationType.CLIENT:
            result.client = _ref(resolved.client)
            if resolved.project is not None:
                result.project = _ref(resolved.project.project)
                if resolved.project.matched_by == "keywords":
                    confidence += w.project_match
        result.confidence = clamp(confidence)
        return result

    if signals.keyword is not None:
        match = signals.keyword
        if match.level == "project":
            project = ProjectMatch(project=match.project, matched_by="keywords")
        else:
            project = find_project_for_client(match.client.id, facts, projects)
        return ClassificationResult(
            type=ClassificationType.CLIENT,
            client=_ref(match.client),
            project=_ref(project.project if project else None),
            confidence=clamp(w.keyword_match + w.project_bonus(project)),
            classification_method=ClassificationMethod.KEYWORD,
        )

    if facts.all_internal(internal_domain):
        return ClassificationResult(
            type=ClassificationType.INTERNAL,
            internal_team=detect_internal_team(facts),
            confidence=clamp(w.internal_match),
            classification_method=ClassificationMethod.DOMAIN,
        )

    if facts.external_domains(internal_domain):
        return ClassificationResult(
            type=ClassificationType.EXTERNAL,
            confidence=clamp(w.external_match),
            classification_method=ClassificationMethod.DOMAIN,
        )

    return ClassificationResult()
