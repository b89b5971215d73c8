"""CLI entry point for the Notewise meeting classifier.

Commands:
    notewise classify    classify meeting JSON and file or queue it
    notewise test-rule   dry-run one rule against sample meetings
    notewise rules       list rules with their stats
    notewise review      list, approve or correct queued classifications
    notewise patterns    show a user's learned patterns
    notewise settings    show or change a user's filing thresholds
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
import httpx

from notewise.config import (
    AUDIT_LOG_PATH,
    DIRECTORY_PATH,
    FEEDBACK_LOG_PATH,
    INTERNAL_DOMAIN,
    OLLAMA_BASE_URL,
    OLLAMA_MODEL,
    PREFERENCES_DB_PATH,
    REVIEW_DB_PATH,
)

logger = logging.getLogger("notewise")


def _load_json(path: str) -> list[dict]:
    """Read a meeting JSON file holding one object or a list of them."""
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as exc:
        click.echo(f"Error: Could not read {path}: {exc}", err=True)
        sys.exit(1)
    return data if isinstance(data, list) else [data]


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Notewise: rule-based meeting notes classification."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# ------------------------------------------------------------------
# notewise classify
# ------------------------------------------------------------------


@cli.command()
@click.argument("meeting_json", type=click.Path(exists=True, dir_okay=False))
@click.option("--note-ref", default=None, help="Reference of the note being filed.")
@click.option("--user", "-u", default=None, help="User whose filing thresholds apply.")
@click.option("--ai/--no-ai", default=True, show_default=True, help="Ask Ollama when local confidence is weak.")
@click.option("--model", "-m", default=None, help="Ollama model name (auto-detected if omitted).")
@click.option("--force-queue", is_flag=True, help="Queue every result for review.")
@click.option("--dry-run", is_flag=True, help="Include testing rules; don't file, queue or record stats.")
def classify(
    meeting_json: str,
    note_ref: str | None,
    user: str | None,
    ai: bool,
    model: str | None,
    force_queue: bool,
    dry_run: bool,
) -> None:
    """Classify the meeting(s) in MEETING_JSON."""
    payloads = _load_json(meeting_json)
    asyncio.run(_classify_async(payloads, note_ref, user, ai, model, force_queue, dry_run))


async def _classify_async(
    payloads: list[dict],
    note_ref: str | None,
    user: str | None,
    use_ai: bool,
    model: str | None,
    force_queue: bool,
    dry_run: bool,
) -> None:
    from pydantic import ValidationError

    from notewise.audit.logger import AuditLog
    from notewise.engine.classifier import Classifier
    from notewise.executors.ai_classifier import OllamaMeetingClassifier
    from notewise.integrations.ollama import OllamaClient
    from notewise.queue.review import ReviewQueue
    from notewise.router.filing import route_classification
    from notewise.schemas.meeting import MeetingInput
    from notewise.store.directory import DirectoryStore
    from notewise.store.preferences import PreferencesStore

    directory = DirectoryStore.load(DIRECTORY_PATH)
    thresholds = None
    if user:
        with PreferencesStore(PREFERENCES_DB_PATH) as prefs:
            thresholds = prefs.get_settings(user).thresholds()

    async with OllamaClient(OLLAMA_BASE_URL) as ollama:
        ai_classifier = None
        if use_ai:
            model = model or OLLAMA_MODEL or None
            if model is None:
                try:
                    model = await ollama.pick_instruct_model()
                except httpx.HTTPError as exc:
                    logger.warning("Could not list Ollama models: %s", exc)
            if model is None:
                click.echo("No Ollama model available, continuing without AI fallback.", err=True)
            else:
                ai_classifier = OllamaMeetingClassifier(
                    ollama, model=model, internal_domain=INTERNAL_DOMAIN
                )

        classifier = Classifier(
            directory, ai=ai_classifier, stats_sink=directory, internal_domain=INTERNAL_DOMAIN
        )
        audit_log = AuditLog(AUDIT_LOG_PATH)

        with ReviewQueue(REVIEW_DB_PATH) as review_queue:
            for i, payload in enumerate(payloads, 1):
                ref = payload.get("note_ref") or note_ref
                try:
                    meeting = MeetingInput.model_validate(payload)
                except ValidationError:
                    # classify_payload turns this into an uncategorized outcome
                    meeting = None

                if meeting is None:
                    outcome = await classifier.classify_payload(payload, ref, thresholds=thresholds)
                    meeting = MeetingInput(title=str(payload.get("title") or ""))
                else:
                    outcome = await classifier.classify(
                        meeting, ref, thresholds=thresholds, dry_run=dry_run
                    )
                result = outcome.classification

                click.echo(f"[{i}] {payload.get('title') or '(untitled)'}")
                click.echo(
                    f"  type={result.type.value} confidence={result.confidence:.0%} "
                    f"method={result.classification_method.value} route={outcome.route.value}"
                )
                if result.client:
                    click.echo(f"  client={result.client.name}")
                if result.project:
                    click.echo(f"  project={result.project.name}")
                if result.internal_team:
                    click.echo(f"  team={result.internal_team}")
                if result.matched_rule_id:
                    click.echo(f"  rule={result.matched_rule_id}")
                click.echo(f"  folder={outcome.suggested_actions.folder_path}")
                for warning in outcome.warnings:
                    click.echo(f"  warning: {warning}")

                if dry_run:
                    continue
                filed = route_classification(
                    outcome,
                    meeting,
                    review_queue=review_queue,
                    audit_log=audit_log,
                    force_queue=force_queue,
                )
                click.echo("  -> Auto-filed." if filed else "  -> Queued for review.")


# ------------------------------------------------------------------
# notewise test-rule
# ------------------------------------------------------------------


@cli.command("test-rule")
@click.argument("rule_id")
@click.argument("meetings_json", type=click.Path(exists=True, dir_okay=False))
def test_rule_command(rule_id: str, meetings_json: str) -> None:
    """Check RULE_ID against the sample meetings in MEETINGS_JSON."""
    from pydantic import ValidationError

    from notewise.engine.matcher import test_rule
    from notewise.schemas.meeting import MeetingInput
    from notewise.store.directory import DirectoryStore

    directory = DirectoryStore.load(DIRECTORY_PATH)
    rule = directory.get_rule(rule_id)
    if rule is None:
        click.echo(f"Error: Rule not found: {rule_id}", err=True)
        sys.exit(1)

    matched = 0
    payloads = _load_json(meetings_json)
    for i, payload in enumerate(payloads, 1):
        try:
            meeting = MeetingInput.model_validate(payload)
        except ValidationError as exc:
            click.echo(f"[{i}] Error: Invalid meeting: {exc.error_count()} validation error(s)", err=True)
            continue
        result = test_rule(rule, meeting)
        verdict = "MATCH" if result.matched else "no match"
        click.echo(f"[{i}] {meeting.title or '(untitled)'}: {verdict}")
        for cond in result.matched_conditions:
            click.echo(f"  + {cond}")
        for cond in result.failed_conditions:
            click.echo(f"  - {cond}")
        matched += result.matched

    click.echo(f"\n{rule.name}: matched {matched} of {len(payloads)} meeting(s)")


# ------------------------------------------------------------------
# notewise rules
# ------------------------------------------------------------------


@cli.command()
def rules() -> None:
    """List rules by priority with their application stats."""
    from notewise.store.directory import DirectoryStore

    directory = DirectoryStore.load(DIRECTORY_PATH)
    all_rules = sorted(directory.list_rules(), key=lambda r: r.priority, reverse=True)
    if not all_rules:
        click.echo("No rules defined.")
    for rule in all_rules:
        stats = rule.stats
        click.echo(
            f"{rule.id}  [{rule.status.value}] p={rule.priority} {rule.name} "
            f"(applied={stats.times_applied}, corrected={stats.times_corrected})"
        )
    for rule_id in directory.skipped_rules:
        click.echo(f"{rule_id}  [invalid] skipped: malformed rule definition", err=True)


# ------------------------------------------------------------------
# notewise review
# ------------------------------------------------------------------


@cli.group()
def review() -> None:
    """Work through classifications waiting for review."""


@review.command("list")
def review_list() -> None:
    """List pending review items, oldest first."""
    from notewise.queue.review import ReviewQueue

    with ReviewQueue(REVIEW_DB_PATH) as review_queue:
        pending = review_queue.list_pending()
        if not pending:
            click.echo("No pending items to review.")
            return
        click.echo(f"Found {len(pending)} pending item(s).\n")
        for item in pending:
            result = item.outcome.classification
            click.echo(f"{item.id}  {item.title or '(untitled)'}")
            click.echo(
                f"  type={result.type.value} confidence={result.confidence:.0%} "
                f"route={item.outcome.route.value}"
            )
            click.echo(f"  folder={item.outcome.suggested_actions.folder_path}")


@review.command("approve")
@click.argument("item_id")
@click.option("--reviewer", "-r", required=True, help="Email of the reviewer.")
def review_approve(item_id: str, reviewer: str) -> None:
    """Accept the proposed classification for ITEM_ID."""
    from notewise.audit.logger import AuditLog
    from notewise.queue.review import ReviewQueue

    with ReviewQueue(REVIEW_DB_PATH) as review_queue:
        try:
            item = review_queue.approve(item_id, reviewer=reviewer)
        except ValueError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)
    AuditLog(AUDIT_LOG_PATH).log_review_approved(item.outcome, title=item.title)
    click.echo(f"Approved. Filed to {item.outcome.suggested_actions.folder_path}")


@review.command("correct")
@click.argument("item_id")
@click.option("--reviewer", "-r", required=True, help="Email of the reviewer.")
@click.option(
    "--type",
    "type_",
    required=True,
    type=click.Choice(["client", "internal", "external", "personal", "uncategorized"]),
    help="Corrected classification type.",
)
@click.option("--client", "client_id", default=None, help="Corrected client id.")
@click.option("--project", "project_id", default=None, help="Corrected project id.")
@click.option("--team", default=None, help="Corrected internal team.")
def review_correct(
    item_id: str,
    reviewer: str,
    type_: str,
    client_id: str | None,
    project_id: str | None,
    team: str | None,
) -> None:
    """Replace the proposed classification for ITEM_ID and record feedback."""
    from notewise.audit.logger import AuditLog
    from notewise.feedback.recorder import FeedbackError, FeedbackRecorder
    from notewise.queue.review import ReviewQueue
    from notewise.schemas.classification import ClassificationType, ReviewStatus
    from notewise.schemas.feedback import ClassificationSnapshot, MeetingSnapshot
    from notewise.store.directory import DirectoryStore
    from notewise.store.feedback_log import FeedbackLog
    from notewise.store.preferences import PreferencesStore

    directory = DirectoryStore.load(DIRECTORY_PATH)
    clients = {c.id: c for c in directory.list_active_clients()}
    projects = {p.id: p for p in directory.list_active_projects()}
    if client_id and client_id not in clients:
        click.echo(f"Error: Unknown client: {client_id}", err=True)
        sys.exit(1)
    if project_id and project_id not in projects:
        click.echo(f"Error: Unknown project: {project_id}", err=True)
        sys.exit(1)

    with ReviewQueue(REVIEW_DB_PATH) as review_queue:
        item = review_queue.get(item_id)
        if item is None or item.status != ReviewStatus.PENDING:
            click.echo(f"Error: No pending review item {item_id}", err=True)
            sys.exit(1)

        corrected = ClassificationSnapshot(
            type=ClassificationType(type_),
            client_id=client_id,
            client_name=clients[client_id].name if client_id else None,
            project_id=project_id,
            project_name=projects[project_id].name if project_id else None,
            internal_team=team,
            confidence=1.0,
        )

        with PreferencesStore(PREFERENCES_DB_PATH) as prefs:
            recorder = FeedbackRecorder(
                FeedbackLog(FEEDBACK_LOG_PATH),
                stats_sink=directory,
                preferences=prefs,
                internal_domain=INTERNAL_DOMAIN,
            )
            try:
                feedback = recorder.record_feedback(
                    note_id=item.outcome.note_ref,
                    original=item.outcome.classification,
                    corrected=corrected,
                    meeting=MeetingSnapshot(title=item.title, attendees=item.attendees),
                    author=reviewer,
                )
            except FeedbackError as exc:
                click.echo(f"Error: {exc}. Item remains pending.", err=True)
                sys.exit(1)

        review_queue.mark_corrected(item_id, reviewer=reviewer)

    AuditLog(AUDIT_LOG_PATH).log_review_corrected(item.outcome, title=item.title)
    click.echo(f"Corrected ({', '.join(feedback.correction_types)}).")
    for warning in feedback.warnings:
        click.echo(f"  warning: {warning}")
    if feedback.rule_suggestion is not None:
        suggestion = feedback.rule_suggestion
        click.echo(f"  Suggested rule: {suggestion.rule.name} ({suggestion.reason})")


# ------------------------------------------------------------------
# notewise patterns / settings
# ------------------------------------------------------------------


@cli.command()
@click.argument("user")
def patterns(user: str) -> None:
    """Show the patterns learned from USER's corrections."""
    from notewise.store.preferences import PreferencesStore

    with PreferencesStore(PREFERENCES_DB_PATH) as prefs:
        learned = prefs.get_patterns(user)
    if not learned:
        click.echo(f"No learned patterns for {user}.")
        return
    for p in learned:
        click.echo(f"{p.confidence:.0%}  {p.pattern} -> {p.action} (applied {p.times_applied}x)")


@cli.command()
@click.argument("user")
@click.option("--auto-file", type=click.FloatRange(0.0, 1.0), default=None, help="Auto-file threshold.")
@click.option("--show-popup", type=click.FloatRange(0.0, 1.0), default=None, help="Review popup threshold.")
def settings(user: str, auto_file: float | None, show_popup: float | None) -> None:
    """Show or change USER's filing thresholds."""
    from notewise.store.preferences import PreferencesStore

    with PreferencesStore(PREFERENCES_DB_PATH) as prefs:
        current = prefs.get_settings(user)
        if auto_file is not None or show_popup is not None:
            updated = current.model_copy(
                update={
                    k: v
                    for k, v in (
                        ("auto_file_threshold", auto_file),
                        ("show_popup_threshold", show_popup),
                    )
                    if v is not None
                }
            )
            if updated.show_popup_threshold > updated.auto_file_threshold:
                click.echo("Error: popup threshold cannot exceed auto-file threshold.", err=True)
                sys.exit(1)
            prefs.save_settings(user, updated)
            current = updated
    click.echo(
        f"{user}: auto-file >= {current.auto_file_threshold:.2f}, "
        f"popup >= {current.show_popup_threshold:.2f}"
    )
