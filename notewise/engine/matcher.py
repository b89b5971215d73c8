"""Rule matcher: folds a rule's condition group into a single verdict.

The same ``match_rule`` backs both live classification and the rule
authoring dry run (``test_rule``), so the two cannot drift apart.
"""

from notewise.engine.conditions import describe, evaluate
from notewise.schemas.meeting import MeetingFacts, MeetingInput
from notewise.schemas.rules import Rule, RuleMatch

NO_CONDITIONS = "No conditions defined"


def match_rule(rule: Rule, facts: MeetingFacts) -> RuleMatch:
    """Evaluate every condition of ``rule`` independently, then combine.

    AND matches iff nothing failed; OR matches iff something matched. An
    empty group never matches.
    """
    group = rule.conditions
    if not group.rules:
        return RuleMatch(matched=False, failed_conditions=[NO_CONDITIONS])

    matched_conditions: list[str] = []
    failed_conditions: list[str] = []
    for condition in group.rules:
        if evaluate(condition, facts):
            matched_conditions.append(describe(condition))
        else:
            failed_conditions.append(describe(condition))

    if group.operator == "AND":
        matched = not failed_conditions
    else:
        matched = bool(matched_conditions)

    return RuleMatch(
        matched=matched,
        matched_conditions=matched_conditions,
        failed_conditions=failed_conditions,
    )


def test_rule(rule: Rule, meeting: MeetingInput) -> RuleMatch:
    """Dry-run a rule against a sample meeting, regardless of its status."""
    return match_rule(rule, MeetingFacts.from_meeting(meeting))
