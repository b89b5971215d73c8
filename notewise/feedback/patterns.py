"""Per-user learned patterns, kept in a bounded FIFO buffer."""

from collections import deque
from collections.abc import Iterable, Iterator
from datetime import datetime

from notewise.schemas.classification import ClassificationType
from notewise.schemas.feedback import ClassificationSnapshot, LearnedPattern, MeetingSnapshot
from notewise.schemas.meeting import email_domain

MAX_PATTERNS = 50
INITIAL_CONFIDENCE = 0.7
CONFIDENCE_STEP = 0.05
MAX_CONFIDENCE = 0.95

# Title words shorter than this are not used as keywords.
MIN_KEYWORD_LENGTH = 4
MAX_TITLE_KEYWORDS = 3


class LearnedPatternBuffer:
    """Ring buffer of a user's learned patterns, oldest evicted first.

    Usage::

        buffer = LearnedPatternBuffer(store.get_patterns(user))
        pattern, created = buffer.record(text, action, now=now)
    """

    def __init__(
        self,
        patterns: Iterable[LearnedPattern] = (),
        *,
        capacity: int = MAX_PATTERNS,
    ) -> None:
        self._patterns: deque[LearnedPattern] = deque(patterns, maxlen=capacity)

    def __len__(self) -> int:
        return len(self._patterns)

    def __iter__(self) -> Iterator[LearnedPattern]:
        return iter(self._patterns)

    @property
    def capacity(self) -> int:
        return self._patterns.maxlen

    def find(self, pattern: str) -> LearnedPattern | None:
        key = pattern.lower()
        return next((p for p in self._patterns if p.pattern.lower() == key), None)

    def record(self, pattern: str, action: str, *, now: datetime) -> tuple[LearnedPattern, bool]:
        """Reinforce a matching pattern or append a new one.

        Returns:
            Tuple of (the stored pattern, True if it was newly created).
        """
        key = pattern.lower()
        for index, existing in enumerate(self._patterns):
            if existing.pattern.lower() == key:
                updated = existing.model_copy(
                    update={
                        "action": action,
                        "confidence": min(MAX_CONFIDENCE, existing.confidence + CONFIDENCE_STEP),
                        "times_applied": existing.times_applied + 1,
                        "last_applied": now,
                    }
                )
                self._patterns[index] = updated
                return updated, False

        created = LearnedPattern(
            pattern=pattern,
            action=action,
            confidence=INITIAL_CONFIDENCE,
            created_at=now,
        )
        self._patterns.append(created)
        return created, True

    def to_list(self) -> list[LearnedPattern]:
        return list(self._patterns)


def describe_pattern(meeting: MeetingSnapshot, internal_domain: str) -> str | None:
    """Describe a meeting by its external domains and leading title keywords."""
    parts: list[str] = []

    domains: list[str] = []
    for email in meeting.attendees:
        domain = email_domain(email)
        if domain and domain != internal_domain and domain not in domains:
            domains.append(domain)
    if domains:
        parts.append(f"attendees from {', '.join(domains)}")

    keywords = [w for w in meeting.title.split() if len(w) >= MIN_KEYWORD_LENGTH]
    if keywords:
        parts.append(f'title contains "{", ".join(keywords[:MAX_TITLE_KEYWORDS])}"')

    return " and ".join(parts) or None


def describe_action(corrected: ClassificationSnapshot) -> str:
    if corrected.type == ClassificationType.CLIENT and corrected.client_id:
        action = f"classify as client: {corrected.client_name or corrected.client_id}"
        if corrected.project_id:
            action += f" / {corrected.project_name or corrected.project_id}"
        return action
    if corrected.type == ClassificationType.INTERNAL:
        return f"classify as internal: {corrected.internal_team or 'General'}"
    return f"classify as {corrected.type.value}"
