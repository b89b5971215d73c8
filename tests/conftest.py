"""Shared fixtures for Notewise tests."""

import json

import pytest

from notewise.schemas.directory import Client, Project, TeamMember
from notewise.schemas.rules import Rule


@pytest.fixture()
def acme() -> Client:
    return Client(
        id="client_acme",
        name="Acme",
        domains=["acme.com"],
        keywords=["acme"],
        project_ids=["proj_data_platform", "proj_cloud"],
    )


@pytest.fixture()
def data_platform() -> Project:
    return Project(
        id="proj_data_platform",
        client_id="client_acme",
        name="Data Platform",
        keywords=["data platform", "warehouse"],
        team=[TeamMember(email="lead@internal.co", name="Lead", role="PM")],
    )


@pytest.fixture()
def cloud_migration() -> Project:
    return Project(
        id="proj_cloud",
        client_id="client_acme",
        name="Cloud Migration",
        keywords=["migration"],
    )


@pytest.fixture()
def standup_rule() -> Rule:
    return Rule.model_validate(
        {
            "id": "rule_standup",
            "name": "Engineering Standup",
            "priority": 100,
            "conditions": {
                "operator": "AND",
                "rules": [
                    {"field": "title", "operator": "contains_any", "value": ["standup"]},
                    {"field": "all_attendees_domain", "operator": "equals", "value": "internal.co"},
                ],
            },
            "actions": {"classify_as": "internal", "team": "Engineering"},
            "confidence_boost": 0.2,
        }
    )


@pytest.fixture()
def directory_data(acme, data_platform, cloud_migration, standup_rule) -> dict:
    return {
        "clients": [acme.model_dump(mode="json")],
        "projects": [data_platform.model_dump(mode="json"), cloud_migration.model_dump(mode="json")],
        "rules": [standup_rule.model_dump(mode="json")],
    }


@pytest.fixture()
def directory_path(tmp_path, directory_data):
    path = tmp_path / "directory.json"
    path.write_text(json.dumps(directory_data))
    return path
