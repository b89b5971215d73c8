"""Meeting classifier: the engine's entry point.

Reads one directory snapshot, collects rule/domain/keyword signals, scores
them, asks the AI collaborator only when local confidence is weak, and
applies the filing thresholds. A call always returns an outcome: every
collaborator failure degrades to the best local signal, and the worst case
is ``uncategorized`` with confidence 0.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import ValidationError

from notewise.config import AI_TIMEOUT_SECONDS, FOLDER_ROOT, INTERNAL_DOMAIN
from notewise.engine.decision import DEFAULT_THRESHOLDS, decide
from notewise.engine.scoring import ScoringWeights, Signals, clamp, score
from notewise.engine.selection import find_client_by_domain, find_keyword_match, select_rule
from notewise.schemas.classification import (
    AIClassification,
    ClassificationMethod,
    ClassificationOutcome,
    ClassificationResult,
    ClassificationType,
    Thresholds,
)
from notewise.schemas.directory import Client, EntityRef, Project
from notewise.schemas.meeting import MeetingFacts, MeetingInput
from notewise.schemas.rules import Rule, RuleStatsDelta

logger = logging.getLogger(__name__)


class Directory(Protocol):
    """Read-only snapshot source for clients, projects and rules."""

    def list_active_clients(self) -> list[Client]: ...

    def list_active_projects(self) -> list[Project]: ...

    def list_active_rules(self, include_testing: bool = False) -> list[Rule]: ...


class AIClassifier(Protocol):
    async def classify(
        self,
        facts: MeetingFacts,
        clients: list[Client],
        projects: list[Project],
    ) -> AIClassification: ...


class RuleStatsSink(Protocol):
    def record_rule_stats(self, rule_id: str, delta: RuleStatsDelta) -> None: ...


def merge_ai_result(
    local: ClassificationResult,
    ai: AIClassification,
    *,
    clients: list[Client],
    projects: list[Project],
) -> ClassificationResult:
    """Adopt the AI verdict only if it names a category and raises confidence."""
    if ai.type == ClassificationType.UNCATEGORIZED:
        logger.info("AI could not categorize the meeting, keeping local result")
        return local

    confidence = clamp(ai.confidence)
    if confidence <= local.confidence:
        logger.info(
            "AI confidence %.2f does not beat local %.2f, keeping local result",
            confidence,
            local.confidence,
        )
        return local

    client = next((c for c in clients if c.id == ai.client_id), None)
    project = next((p for p in projects if p.id == ai.project_id), None)
    if project is not None and client is None:
        client = next((c for c in clients if c.id == project.client_id), None)
    if project is not None and client is not None and project.client_id != client.id:
        project = None

    is_client = ai.type == ClassificationType.CLIENT
    return ClassificationResult(
        type=ai.type,
        client=EntityRef(id=client.id, name=client.name) if is_client and client else None,
        project=EntityRef(id=project.id, name=project.name) if is_client and project else None,
        internal_team=ai.internal_team if ai.type == ClassificationType.INTERNAL else None,
        confidence=confidence,
        ai_reasoning=ai.reasoning or None,
        classification_method=ClassificationMethod.AI,
    )


class Classifier:
    """Classifies meetings against a directory snapshot.

    Usage::

        classifier = Classifier(DirectoryStore.load(path), ai=ai, stats_sink=store)
        outcome = await classifier.classify(meeting, note_ref="note-1")
        if outcome.auto_apply:
            ...
    """

    def __init__(
        self,
        directory: Directory,
        *,
        ai: AIClassifier | None = None,
        stats_sink: RuleStatsSink | None = None,
        internal_domain: str = INTERNAL_DOMAIN,
        weights: ScoringWeights | None = None,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
        folder_root: str = FOLDER_ROOT,
        ai_timeout: float = AI_TIMEOUT_SECONDS,
    ) -> None:
        self._directory = directory
        self._ai = ai
        self._stats_sink = stats_sink
        self._internal_domain = internal_domain.lower()
        self._weights = weights or ScoringWeights()
        self._thresholds = thresholds
        self._folder_root = folder_root
        self._ai_timeout = ai_timeout

    async def classify_payload(
        self,
        payload: dict[str, Any],
        note_ref: str | None = None,
        *,
        thresholds: Thresholds | None = None,
    ) -> ClassificationOutcome:
        """Validate a raw meeting payload, then classify it.

        A payload that doesn't validate (e.g. a malformed attendee list)
        is classified as uncategorized rather than rejected.
        """
        try:
            meeting = MeetingInput.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Malformed meeting payload for %s: %s", note_ref, exc)
            return self._fallback_outcome(
                note_ref, thresholds, warning=f"malformed meeting payload: {exc.error_count()} error(s)"
            )
        return await self.classify(meeting, note_ref, thresholds=thresholds)

    async def classify(
        self,
        meeting: MeetingInput,
        note_ref: str | None = None,
        *,
        thresholds: Thresholds | None = None,
        dry_run: bool = False,
    ) -> ClassificationOutcome:
        """Classify one meeting.

        Args:
            meeting: The meeting metadata.
            note_ref: Optional reference to the note being filed (for logs).
            thresholds: Per-user threshold overrides.
            dry_run: Include ``testing`` rules and skip rule-stat writes.
        """
        try:
            return await self._classify(meeting, note_ref, thresholds or self._thresholds, dry_run)
        except Exception:
            logger.exception("Classification failed for %s, falling back to uncategorized", note_ref)
            return self._fallback_outcome(note_ref, thresholds, warning="classification failed")

    async def _classify(
        self,
        meeting: MeetingInput,
        note_ref: str | None,
        thresholds: Thresholds,
        dry_run: bool,
    ) -> ClassificationOutcome:
        facts = MeetingFacts.from_meeting(meeting)
        warnings: list[str] = []

        if not facts.search_text and not facts.attendee_emails:
            logger.info("Meeting %s has no title, description or attendees", note_ref)
            return self._fallback_outcome(note_ref, thresholds, warning="empty meeting")

        clients = self._read("clients", self._directory.list_active_clients, warnings)
        projects = self._read("projects", self._directory.list_active_projects, warnings)
        rules = self._read(
            "rules", lambda: self._directory.list_active_rules(include_testing=dry_run), warnings
        )

        rule = select_rule(rules, facts, dry_run=dry_run)
        signals = Signals(
            domain=find_client_by_domain(facts, clients, self._internal_domain),
            keyword=find_keyword_match(facts, clients, projects),
            rule=rule,
        )
        result = score(
            facts,
            signals,
            clients=clients,
            projects=projects,
            internal_domain=self._internal_domain,
            weights=self._weights,
        )

        if result.confidence <= self._weights.ai_floor and self._ai is not None:
            ai_result = await self._ask_ai(facts, clients, projects, warnings)
            if ai_result is not None:
                result = merge_ai_result(result, ai_result, clients=clients, projects=projects)

        outcome = decide(
            result,
            rule=rule,
            facts=facts,
            projects=projects,
            internal_domain=self._internal_domain,
            thresholds=thresholds,
            folder_root=self._folder_root,
            note_ref=note_ref,
        )

        if not dry_run and result.matched_rule_id and self._stats_sink is not None:
            outcome.rule_stats_recorded = self._record_applied(result.matched_rule_id, warnings)

        outcome.warnings = warnings
        return outcome

    def _read(self, what: str, fetch, warnings: list[str]) -> list:
        try:
            return fetch()
        except Exception as exc:
            logger.warning("Could not read %s from directory: %s", what, exc)
            warnings.append(f"directory {what} unavailable")
            return []

    async def _ask_ai(
        self,
        facts: MeetingFacts,
        clients: list[Client],
        projects: list[Project],
        warnings: list[str],
    ) -> AIClassification | None:
        try:
            return await asyncio.wait_for(
                self._ai.classify(facts, clients, projects),
                timeout=self._ai_timeout,
            )
        except TimeoutError:
            logger.warning("AI classification timed out after %.1fs", self._ai_timeout)
            warnings.append("ai fallback timed out")
        except Exception as exc:
            logger.warning("AI classification failed: %s", exc)
            warnings.append("ai fallback failed")
        return None

    def _record_applied(self, rule_id: str, warnings: list[str]) -> bool:
        try:
            self._stats_sink.record_rule_stats(
                rule_id,
                RuleStatsDelta(times_applied=1, last_applied=datetime.now(UTC)),
            )
        except Exception as exc:
            logger.warning("Failed to record stats for rule %s: %s", rule_id, exc)
            warnings.append(f"rule stats not recorded for {rule_id}")
            return False
        return True

    def _fallback_outcome(
        self,
        note_ref: str | None,
        thresholds: Thresholds | None,
        *,
        warning: str,
    ) -> ClassificationOutcome:
        outcome = decide(
            ClassificationResult(),
            rule=None,
            facts=MeetingFacts(),
            projects=[],
            internal_domain=self._internal_domain,
            thresholds=thresholds or self._thresholds,
            folder_root=self._folder_root,
            note_ref=note_ref,
        )
        outcome.warnings = [warning]
        return outcome
