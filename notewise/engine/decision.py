"""Classification decision: thresholds, filing route and suggested actions.

No I/O. Turns a ClassificationResult into a ClassificationOutcome the
router and storage collaborators can act on.
"""

import logging

from notewise.config import AUTO_FILE_THRESHOLD, FOLDER_ROOT, SHOW_POPUP_THRESHOLD
from notewise.schemas.classification import (
    ClassificationOutcome,
    ClassificationResult,
    ClassificationType,
    FilingRoute,
    SuggestedActions,
    Thresholds,
)
from notewise.schemas.directory import Project
from notewise.schemas.meeting import MeetingFacts, email_domain
from notewise.schemas.rules import Rule

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLDS = Thresholds(
    auto_file=AUTO_FILE_THRESHOLD,
    show_popup=SHOW_POPUP_THRESHOLD,
)

# Folder conventions by type when no rule supplies a folder.
_TYPE_FOLDERS: dict[ClassificationType, str] = {
    ClassificationType.CLIENT: "Clients/{client}/{project}",
    ClassificationType.INTERNAL: "Internal/{team}",
    ClassificationType.EXTERNAL: "External",
    ClassificationType.PERSONAL: "Personal",
    ClassificationType.UNCATEGORIZED: "Uncategorized",
}


def determine_route(confidence: float, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> FilingRoute:
    """Map confidence to a filing route."""
    if confidence >= thresholds.auto_file:
        return FilingRoute.AUTO_FILE
    if confidence >= thresholds.show_popup:
        return FilingRoute.SHOW_POPUP
    return FilingRoute.UNCATEGORIZED


def render_folder(template: str, result: ClassificationResult) -> str:
    """Substitute {client}/{project}/{team} and drop segments left empty."""
    client = (result.client.name or result.client.id) if result.client else ""
    project = (result.project.name or result.project.id) if result.project else ""
    rendered = (
        template.replace("{client}", client)
        .replace("{project}", project)
        .replace("{team}", result.internal_team or "")
    )
    return "/".join(part.strip() for part in rendered.split("/") if part.strip())


def _under_root(path: str, root: str) -> str:
    if not root or path == root or path.startswith(f"{root}/"):
        return path
    return f"{root}/{path}" if path else root


def _dedupe_emails(*groups: list[str]) -> list[str]:
    seen: list[str] = []
    for group in groups:
        for email in group:
            normalized = email.strip().lower()
            if normalized and normalized not in seen:
                seen.append(normalized)
    return seen


def build_suggested_actions(
    result: ClassificationResult,
    *,
    rule: Rule | None,
    facts: MeetingFacts,
    projects: list[Project],
    internal_domain: str,
    folder_root: str = FOLDER_ROOT,
) -> SuggestedActions:
    """Folder, share list and tags for a classification.

    The matched rule's ActionSet wins when that rule contributed to the
    result; otherwise the type-based folder conventions apply.
    """
    contributing = rule if rule is not None and rule.id == result.matched_rule_id else None

    if contributing and contributing.actions.folder_path:
        folder = render_folder(contributing.actions.folder_path, result)
    elif contributing and contributing.actions.folder_template:
        folder = render_folder(contributing.actions.folder_template, result)
    else:
        folder = render_folder(_TYPE_FOLDERS[result.type], result)

    team_emails: list[str] = []
    if result.project is not None:
        project = next((p for p in projects if p.id == result.project.id), None)
        if project is not None:
            team_emails = [m.email for m in project.team]

    internal_attendees = [e for e in facts.attendee_emails if email_domain(e) == internal_domain]

    return SuggestedActions(
        folder_path=_under_root(folder, folder_root),
        share_with=_dedupe_emails(
            team_emails,
            internal_attendees,
            contributing.actions.share_with if contributing else [],
        ),
        tags=list(contributing.actions.add_tags) if contributing else [],
    )


def decide(
    result: ClassificationResult,
    *,
    rule: Rule | None,
    facts: MeetingFacts,
    projects: list[Project],
    internal_domain: str,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    folder_root: str = FOLDER_ROOT,
    note_ref: str | None = None,
) -> ClassificationOutcome:
    """Apply thresholds and build suggested actions."""
    route = determine_route(result.confidence, thresholds)
    actions = build_suggested_actions(
        result,
        rule=rule,
        facts=facts,
        projects=projects,
        internal_domain=internal_domain,
        folder_root=folder_root,
    )

    logger.info(
        "Meeting %s: type=%s confidence=%.2f method=%s route=%s folder=%s",
        note_ref or "(unsaved)",
        result.type.value,
        result.confidence,
        result.classification_method.value,
        route.value,
        actions.folder_path,
    )

    return ClassificationOutcome(
        note_ref=note_ref,
        classification=result,
        auto_apply=route == FilingRoute.AUTO_FILE,
        route=route,
        suggested_actions=actions,
    )
