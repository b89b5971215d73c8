"""Tests for the rule matcher and the test_rule dry run."""

import itertools

import pytest

from notewise.engine import matcher
from notewise.engine.matcher import NO_CONDITIONS, match_rule
from notewise.engine.selection import select_rule
from notewise.schemas.meeting import Attendee, MeetingFacts, MeetingInput
from notewise.schemas.rules import Rule, RuleStatus

INTERNAL = "internal.co"


def _make_meeting(
    title: str = "", *emails: str, description: str | None = None, organizer: str | None = None
) -> MeetingInput:
    return MeetingInput(
        title=title,
        description=description,
        organizer=organizer,
        attendees=[Attendee(email=e) for e in emails],
    )


def _make_rule(rule_id: str = "rule_1", *, priority: int = 50, operator: str = "AND", conditions=None, **actions):
    actions.setdefault("classify_as", "internal")
    return Rule.model_validate(
        {
            "id": rule_id,
            "name": rule_id.replace("_", " ").title(),
            "priority": priority,
            "conditions": {"operator": operator, "rules": conditions or []},
            "actions": actions,
        }
    )


_MATCHING = {"field": "title", "operator": "contains", "value": "sync"}
_FAILING = {"field": "title", "operator": "contains", "value": "nope"}

_MEETING = _make_meeting("Weekly Sync", "alice@internal.co", "john@acme.com")
_FACTS = MeetingFacts.from_meeting(_MEETING)


def _condition_sets():
    for size in range(0, 4):
        yield from itertools.product([_MATCHING, _FAILING], repeat=size)


class TestGroupSemantics:
    @pytest.mark.parametrize("conditions", list(_condition_sets()))
    def test_and_matches_iff_nothing_failed(self, conditions):
        rule = _make_rule(operator="AND", conditions=list(conditions))
        result = match_rule(rule, _FACTS)
        if conditions:
            assert result.matched == (len(result.failed_conditions) == 0)
        else:
            assert not result.matched

    @pytest.mark.parametrize("conditions", list(_condition_sets()))
    def test_or_matches_iff_something_matched(self, conditions):
        rule = _make_rule(operator="OR", conditions=list(conditions))
        result = match_rule(rule, _FACTS)
        assert result.matched == (len(result.matched_conditions) > 0)

    def test_empty_group_reports_no_conditions(self):
        result = match_rule(_make_rule(conditions=[]), _FACTS)
        assert result.matched is False
        assert result.failed_conditions == [NO_CONDITIONS]

    def test_every_condition_is_reported(self):
        rule = _make_rule(operator="OR", conditions=[_MATCHING, _FAILING])
        result = match_rule(rule, _FACTS)
        assert result.matched_conditions == ['Title contains "sync"']
        assert result.failed_conditions == ['Title contains "nope"']

    def test_lowercase_operator_accepted(self):
        rule = _make_rule(operator="or", conditions=[_MATCHING])
        assert rule.conditions.operator == "OR"


class TestTestRule:
    def test_ignores_status(self):
        rule = _make_rule(conditions=[_MATCHING]).model_copy(update={"status": RuleStatus.DISABLED})
        assert matcher.test_rule(rule, _MEETING).matched

    @pytest.mark.parametrize(
        "meeting",
        [
            _MEETING,
            _make_meeting("Daily Standup", "alice@internal.co", "bob@internal.co"),
            _make_meeting("", "stranger@unknown.com"),
            _make_meeting(""),
        ],
    )
    def test_agrees_with_classification_matcher(self, standup_rule, meeting):
        facts = MeetingFacts.from_meeting(meeting)
        dry_run = matcher.test_rule(standup_rule, meeting)
        assert dry_run == match_rule(standup_rule, facts)
        assert (select_rule([standup_rule], facts) is not None) == dry_run.matched

    def test_standup_diagnostics(self, standup_rule):
        meeting = _make_meeting("Daily Standup", "alice@internal.co", "john@acme.com")
        result = matcher.test_rule(standup_rule, meeting)
        assert not result.matched
        assert result.matched_conditions == ["Title contains_any [standup]"]
        assert result.failed_conditions == [f'All attendees from "{INTERNAL}"']
