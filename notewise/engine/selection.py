"""Rule selection and static directory signals (attendee domains, keywords)."""

import logging
from typing import Literal

from pydantic import BaseModel

from notewise.engine.matcher import match_rule
from notewise.schemas.directory import Client, ClientStatus, Project, ProjectStatus
from notewise.schemas.meeting import MeetingFacts
from notewise.schemas.rules import Rule, RuleStatus

logger = logging.getLogger(__name__)


class DomainMatch(BaseModel):
    client: Client
    domain: str


class KeywordMatch(BaseModel):
    """A keyword hit. Project-level hits are more specific than client-level ones."""

    client: Client
    project: Project | None = None
    keyword: str
    level: Literal["project", "client"]


class ProjectMatch(BaseModel):
    project: Project
    matched_by: Literal["keywords", "default"]


def select_rule(
    rules: list[Rule],
    facts: MeetingFacts,
    *,
    dry_run: bool = False,
) -> Rule | None:
    """Return the highest-priority matching rule, or None.

    Only active rules take part, plus testing rules when ``dry_run`` is set.
    Ties on priority keep the earliest rule in ``rules``.
    """
    allowed = {RuleStatus.ACTIVE}
    if dry_run:
        allowed.add(RuleStatus.TESTING)

    best: Rule | None = None
    for rule in rules:
        if rule.status not in allowed:
            continue
        if not match_rule(rule, facts).matched:
            continue
        if best is None or rule.priority > best.priority:
            best = rule

    if best is not None:
        logger.debug("Selected rule %s (%s, priority=%d)", best.id, best.name, best.priority)
    return best


def _active_clients(clients: list[Client]) -> list[Client]:
    return sorted(
        (c for c in clients if c.status == ClientStatus.ACTIVE),
        key=lambda c: c.id,
    )


def _first_keyword(text: str, keywords: list[str]) -> str | None:
    if not text:
        return None
    for keyword in keywords:
        needle = keyword.strip().lower()
        if needle and needle in text:
            return needle
    return None


def find_client_by_domain(
    facts: MeetingFacts,
    clients: list[Client],
    internal_domain: str,
) -> DomainMatch | None:
    """First active client (by id) owning one of the external attendee domains."""
    external = facts.external_domains(internal_domain)
    if not external:
        return None
    for client in _active_clients(clients):
        for domain in external:
            if domain in client.domains:
                return DomainMatch(client=client, domain=domain)
    return None


def find_keyword_match(
    facts: MeetingFacts,
    clients: list[Client],
    projects: list[Project],
) -> KeywordMatch | None:
    """Look for project keywords first, then client keywords, in title + description."""
    text = facts.search_text
    active = {c.id: c for c in _active_clients(clients)}

    for project in sorted(projects, key=lambda p: p.id):
        if project.status != ProjectStatus.ACTIVE or project.client_id not in active:
            continue
        keyword = _first_keyword(text, project.keywords)
        if keyword:
            return KeywordMatch(
                client=active[project.client_id],
                project=project,
                keyword=keyword,
                level="project",
            )

    for client in active.values():
        keyword = _first_keyword(text, client.keywords)
        if keyword:
            return KeywordMatch(client=client, keyword=keyword, level="client")
    return None


def find_project_for_client(
    client_id: str,
    facts: MeetingFacts,
    projects: list[Project],
) -> ProjectMatch | None:
    """Project keyword match within the client, else its only active project."""
    candidates = sorted(
        (p for p in projects if p.client_id == client_id and p.status == ProjectStatus.ACTIVE),
        key=lambda p: p.id,
    )
    for project in candidates:
        if _first_keyword(facts.search_text, project.keywords):
            return ProjectMatch(project=project, matched_by="keywords")
    if len(candidates) == 1:
        return ProjectMatch(project=candidates[0], matched_by="default")
    return None
