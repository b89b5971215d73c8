"""Schemas for the client/project directory.

The directory is owned by the document store; the engine only reads it.
"""

from enum import StrEnum

from pydantic import AliasChoices, BaseModel, Field, field_validator


class ClientStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ProjectStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"


class TeamMember(BaseModel):
    email: str
    name: str = ""
    role: str = ""


class Client(BaseModel):
    """A known client organization."""

    id: str
    name: str
    domains: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    project_ids: list[str] = Field(default_factory=list)
    status: ClientStatus = ClientStatus.ACTIVE

    @field_validator("domains")
    @classmethod
    def _normalize_domains(cls, domains: list[str]) -> list[str]:
        normalized: list[str] = []
        for domain in domains:
            d = domain.strip().lower().lstrip("@")
            if d and d not in normalized:
                normalized.append(d)
        return normalized


class Project(BaseModel):
    """A client engagement with its own keywords and team roster."""

    id: str
    client_id: str
    name: str = Field(validation_alias=AliasChoices("name", "project_name"))
    keywords: list[str] = Field(default_factory=list)
    team: list[TeamMember] = Field(default_factory=list)
    status: ProjectStatus = ProjectStatus.ACTIVE


class EntityRef(BaseModel):
    """Reference to a client or project carried on a classification."""

    id: str
    name: str | None = None
