"""Condition evaluator: one typed condition against normalized meeting facts.

Pure and total: an operator/value combination that does not make sense for
a field evaluates to False instead of raising.
"""

from notewise.schemas.meeting import MeetingFacts
from notewise.schemas.rules import (
    AllAttendeesDomainCondition,
    AttendeeDomainsCondition,
    Condition,
    ConditionValue,
    DescriptionCondition,
    OrganizerCondition,
    TitleCondition,
)


def _scalar(value: ConditionValue) -> str | None:
    """Return the trimmed, lower-cased value if it is a string, else None."""
    if isinstance(value, str):
        return value.strip().lower()
    return None


def _values(value: ConditionValue) -> list[str] | None:
    """Return the trimmed, lower-cased items if value is a list, else None."""
    if isinstance(value, list):
        return [v.strip().lower() for v in value if v.strip()]
    return None


def _match_text(text: str, operator: str, value: ConditionValue) -> bool:
    if not text:
        return False

    if operator == "contains_any":
        needles = _values(value)
        return bool(needles) and any(n in text for n in needles)

    needle = _scalar(value)
    if not needle:
        return False
    if operator == "contains":
        return needle in text
    if operator == "equals":
        return text == needle
    if operator == "starts_with":
        return text.startswith(needle)
    return False


def _match_attendee_domains(facts: MeetingFacts, operator: str, value: ConditionValue) -> bool:
    if operator == "intersects":
        wanted = _values(value)
    elif operator == "contains":
        scalar = _scalar(value)
        wanted = [scalar] if scalar else _values(value)
    else:
        return False
    if not wanted:
        return False
    return any(d in wanted for d in facts.attendee_domains)


def _match_organizer(facts: MeetingFacts, operator: str, value: ConditionValue) -> bool:
    needle = _scalar(value)
    if not facts.organizer or not needle:
        return False
    if operator == "equals":
        return facts.organizer == needle
    if operator == "ends_with":
        return facts.organizer.endswith(needle)
    return False


def _match_all_attendees_domain(
    facts: MeetingFacts, operator: str, value: ConditionValue
) -> bool:
    domain = _scalar(value)
    if operator != "equals" or not domain:
        return False
    domain = domain.lstrip("@")
    return bool(facts.attendee_emails) and all(
        e.rpartition("@")[2] == domain for e in facts.attendee_emails
    )


def evaluate(condition: Condition, facts: MeetingFacts) -> bool:
    """Evaluate one condition. Never raises."""
    if isinstance(condition, TitleCondition):
        return _match_text(facts.title, condition.operator, condition.value)
    if isinstance(condition, DescriptionCondition):
        return _match_text(facts.description, condition.operator, condition.value)
    if isinstance(condition, AttendeeDomainsCondition):
        return _match_attendee_domains(facts, condition.operator, condition.value)
    if isinstance(condition, OrganizerCondition):
        return _match_organizer(facts, condition.operator, condition.value)
    if isinstance(condition, AllAttendeesDomainCondition):
        return _match_all_attendees_domain(facts, condition.operator, condition.value)
    return False


def describe(condition: Condition) -> str:
    """Human-readable description used in match diagnostics."""
    value = condition.value
    shown = f"[{', '.join(value)}]" if isinstance(value, list) else f'"{value}"'
    if isinstance(condition, AllAttendeesDomainCondition):
        return f"All attendees from {shown}"
    label = condition.field.replace("_", " ").capitalize()
    return f"{label} {condition.operator} {shown}"
