"""Deterministic router for classified meetings.

Receives a ClassificationOutcome and either records it as auto-filed or
queues it for human review. Moving the note and sharing it is done by the
storage collaborator, which reads the audit log / outcome.

No LLM calls, pure Python logic.
"""

import logging

from notewise.audit.logger import AuditLog
from notewise.queue.review import ReviewQueue
from notewise.schemas.classification import ClassificationOutcome, FilingRoute
from notewise.schemas.meeting import MeetingInput

logger = logging.getLogger(__name__)


def route_classification(
    outcome: ClassificationOutcome,
    meeting: MeetingInput,
    *,
    review_queue: ReviewQueue,
    audit_log: AuditLog,
    force_queue: bool = False,
) -> bool:
    """File or queue a classification outcome.

    Args:
        outcome: The classifier's outcome.
        meeting: The meeting that was classified.
        review_queue: Queue for outcomes below the auto-file threshold.
        audit_log: The filing audit log.
        force_queue: If True, queue everything for review regardless of
            confidence.

    Returns:
        True if the outcome was auto-filed, False if queued for review.
    """
    if outcome.route == FilingRoute.AUTO_FILE and not force_queue:
        audit_log.log_auto_filed(outcome, title=meeting.title)
        logger.info(
            "Auto-filed %r to %s (confidence=%.2f)",
            meeting.title,
            outcome.suggested_actions.folder_path,
            outcome.classification.confidence,
        )
        return True

    review_queue.add(outcome, meeting)
    audit_log.log_queued_for_review(outcome, title=meeting.title)
    logger.info(
        "Queued %r for review: %s (confidence=%.2f, route=%s)",
        meeting.title,
        outcome.classification.type.value,
        outcome.classification.confidence,
        outcome.route.value,
    )
    return False
