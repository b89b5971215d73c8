"""AI classifier executor: classifies a meeting via LLM.

Stateless apart from the client it wraps: receives meeting facts and the
directory snapshot, returns an AIClassification. Only called by the
classifier when local signals are weak.
"""

import json
import logging

from notewise.integrations.ollama import OllamaClient
from notewise.schemas.classification import AIClassification
from notewise.schemas.directory import Client, Project
from notewise.schemas.meeting import MeetingFacts

logger = logging.getLogger(__name__)

# Keep long descriptions from blowing the context window.
MAX_DESCRIPTION_CHARS = 2000

SYSTEM_PROMPT = """\
You are a meeting classification assistant for an organization whose email \
domain is {internal_domain}.

Classify each meeting as one of:

- **client**: a meeting with, or about, one of the known clients below
- **internal**: only people from {internal_domain}; name the team if obvious \
("Engineering", "Sales", "All Hands")
- **external**: people from outside the organization who are not known clients
- **personal**: private appointments
- **uncategorized**: not enough information

## Rules

1. If an attendee domain matches a client's domains, it is a client meeting.
2. If the title or description mentions a client or project keyword, prefer \
that client and project.
3. Only use client_id / project_id values from the lists you are given.
4. Be conservative with confidence (0.0-1.0). Use lower scores when unsure.
5. Give a one-sentence reasoning.
"""

USER_PROMPT = """\
Classify this meeting.

## Known clients
{clients}

## Known projects
{projects}

## Meeting
- Title: {title}
- Description: {description}
- Organizer: {organizer}
- Attendees: {attendees}
- External domains: {external_domains}
"""


def _build_user_prompt(
    facts: MeetingFacts,
    clients: list[Client],
    projects: list[Project],
    internal_domain: str,
) -> str:
    client_context = [
        {"id": c.id, "name": c.name, "domains": c.domains, "keywords": c.keywords}
        for c in clients
    ]
    project_context = [
        {"id": p.id, "client_id": p.client_id, "name": p.name, "keywords": p.keywords}
        for p in projects
    ]
    description = facts.description or "(none)"
    if len(description) > MAX_DESCRIPTION_CHARS:
        description = description[:MAX_DESCRIPTION_CHARS] + " [... truncated ...]"

    return USER_PROMPT.format(
        clients=json.dumps(client_context, indent=2),
        projects=json.dumps(project_context, indent=2),
        title=facts.title or "(no title)",
        description=description,
        organizer=facts.organizer or "(unknown)",
        attendees=", ".join(facts.attendee_emails) or "(none)",
        external_domains=", ".join(facts.external_domains(internal_domain)) or "(none)",
    )


class OllamaMeetingClassifier:
    """AIClassifier backed by a local Ollama model."""

    def __init__(self, ollama: OllamaClient, *, model: str, internal_domain: str) -> None:
        self._ollama = ollama
        self._model = model
        self._internal_domain = internal_domain

    async def classify(
        self,
        facts: MeetingFacts,
        clients: list[Client],
        projects: list[Project],
    ) -> AIClassification:
        logger.info("Asking %s to classify meeting: %s", self._model, facts.title)
        classification, _raw = await self._ollama.generate_structured(
            model=self._model,
            schema_class=AIClassification,
            system=SYSTEM_PROMPT.format(internal_domain=self._internal_domain),
            prompt=_build_user_prompt(facts, clients, projects, self._internal_domain),
        )
        logger.info(
            "AI verdict: type=%s client=%s confidence=%.2f",
            classification.type.value,
            classification.client_id,
            classification.confidence,
        )
        return classification
