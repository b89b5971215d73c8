"""Tests for thresholds, filing routes and suggested actions."""

import pytest

from notewise.engine.decision import build_suggested_actions, decide, determine_route, render_folder
from notewise.schemas.classification import (
    ClassificationResult,
    ClassificationType,
    FilingRoute,
    Thresholds,
)
from notewise.schemas.directory import EntityRef
from notewise.schemas.meeting import Attendee, MeetingFacts, MeetingInput
from notewise.schemas.rules import Rule

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


def _client_result(confidence: float = 0.95, rule_id: str | None = None) -> ClassificationResult:
    return ClassificationResult(
        type=ClassificationType.CLIENT,
        client=EntityRef(id="client_acme", name="Acme"),
        project=EntityRef(id="proj_data_platform", name="Data Platform"),
        confidence=confidence,
        matched_rule_id=rule_id,
    )


class TestDetermineRoute:
    @pytest.mark.parametrize(
        "confidence,route",
        [
            (1.0, FilingRoute.AUTO_FILE),
            (0.90, FilingRoute.AUTO_FILE),
            (0.8999, FilingRoute.SHOW_POPUP),
            (0.70, FilingRoute.SHOW_POPUP),
            (0.6999, FilingRoute.UNCATEGORIZED),
            (0.0, FilingRoute.UNCATEGORIZED),
        ],
    )
    def test_default_thresholds(self, confidence, route):
        assert determine_route(confidence) == route

    def test_custom_thresholds(self):
        strict = Thresholds(auto_file=0.99, show_popup=0.5)
        assert determine_route(0.95, strict) == FilingRoute.SHOW_POPUP
        assert determine_route(0.55, strict) == FilingRoute.SHOW_POPUP


class TestRenderFolder:
    def test_client_and_project(self):
        assert render_folder("Clients/{client}/{project}", _client_result()) == "Clients/Acme/Data Platform"

    def test_empty_segments_dropped(self):
        result = ClassificationResult(
            type=ClassificationType.CLIENT, client=EntityRef(id="client_acme", name="Acme")
        )
        assert render_folder("Clients/{client}/{project}", result) == "Clients/Acme"

    def test_team(self):
        result = ClassificationResult(type=ClassificationType.INTERNAL, internal_team="Engineering")
        assert render_folder("Internal/{team}/Standups", result) == "Internal/Engineering/Standups"


class TestBuildSuggestedActions:
    def test_type_folder_under_root(self, data_platform):
        facts = MeetingFacts.from_meeting(_make_meeting("Sync", "alice@internal.co", "john@acme.com"))
        actions = build_suggested_actions(
            _client_result(),
            rule=None,
            facts=facts,
            projects=[data_platform],
            internal_domain=INTERNAL,
            folder_root="Meeting Notes",
        )
        assert actions.folder_path == "Meeting Notes/Clients/Acme/Data Platform"
        assert actions.share_with == ["lead@internal.co", "alice@internal.co"]
        assert actions.tags == []

    def test_contributing_rule_supplies_folder_share_and_tags(self, data_platform):
        rule = _make_rule(
            "rule_acme",
            classify_as="client",
            folder_path="Meeting Notes/Acme/{project}",
            share_with=["Lead@internal.co", "pm@internal.co"],
            add_tags=["acme"],
        )
        facts = MeetingFacts.from_meeting(_make_meeting("Sync", "john@acme.com"))
        actions = build_suggested_actions(
            _client_result(rule_id="rule_acme"),
            rule=rule,
            facts=facts,
            projects=[data_platform],
            internal_domain=INTERNAL,
            folder_root="Meeting Notes",
        )
        assert actions.folder_path == "Meeting Notes/Acme/Data Platform"
        assert actions.share_with == ["lead@internal.co", "pm@internal.co"]
        assert actions.tags == ["acme"]

    def test_non_contributing_rule_ignored(self, data_platform):
        rule = _make_rule("rule_other", classify_as="client", folder_path="Elsewhere", add_tags=["x"])
        facts = MeetingFacts.from_meeting(_make_meeting("Sync", "john@acme.com"))
        actions = build_suggested_actions(
            _client_result(),
            rule=rule,
            facts=facts,
            projects=[data_platform],
            internal_domain=INTERNAL,
            folder_root="Meeting Notes",
        )
        assert actions.folder_path == "Meeting Notes/Clients/Acme/Data Platform"
        assert actions.tags == []

    def test_uncategorized_folder(self):
        actions = build_suggested_actions(
            ClassificationResult(),
            rule=None,
            facts=MeetingFacts(),
            projects=[],
            internal_domain=INTERNAL,
            folder_root="Meeting Notes",
        )
        assert actions.folder_path == "Meeting Notes/Uncategorized"
        assert actions.share_with == []


class TestDecide:
    def test_auto_apply_at_threshold(self):
        outcome = decide(
            _client_result(0.90), rule=None, facts=MeetingFacts(), projects=[], internal_domain=INTERNAL
        )
        assert outcome.auto_apply is True
        assert outcome.route == FilingRoute.AUTO_FILE

    def test_popup_below_threshold(self):
        outcome = decide(
            _client_result(0.85),
            rule=None,
            facts=MeetingFacts(),
            projects=[],
            internal_domain=INTERNAL,
            note_ref="note-1",
        )
        assert outcome.auto_apply is False
        assert outcome.route == FilingRoute.SHOW_POPUP
        assert outcome.note_ref == "note-1"
