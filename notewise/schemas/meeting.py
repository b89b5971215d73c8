"""Schemas for meeting input and the normalized facts the engine matches on."""

from pydantic import BaseModel, Field


class Attendee(BaseModel):
    """A single meeting attendee."""

    email: str
    name: str | None = None


class MeetingInput(BaseModel):
    """Meeting metadata supplied by the caller for one classification call."""

    title: str = ""
    description: str | None = None
    organizer: str | None = None
    attendees: list[Attendee] = Field(default_factory=list)


def email_domain(email: str) -> str:
    """Return the lower-cased domain part of an email, or "" if there is none."""
    _, sep, domain = email.strip().lower().rpartition("@")
    return domain if sep else ""


class MeetingFacts(BaseModel):
    """Lower-cased, trimmed projection of a meeting.

    Built once per classification call and shared by every condition,
    rule and signal lookup so they all see the same normalized view.
    """

    title: str = ""
    description: str = ""
    organizer: str = ""
    attendee_emails: list[str] = Field(default_factory=list)
    attendee_domains: list[str] = Field(default_factory=list)

    @classmethod
    def from_meeting(cls, meeting: MeetingInput) -> "MeetingFacts":
        emails: list[str] = []
        domains: list[str] = []
        for attendee in meeting.attendees:
            email = attendee.email.strip().lower()
            if email and email not in emails:
                emails.append(email)
            domain = email_domain(email)
            if domain and domain not in domains:
                domains.append(domain)

        return cls(
            title=meeting.title.strip().lower(),
            description=(meeting.description or "").strip().lower(),
            organizer=(meeting.organizer or "").strip().lower(),
            attendee_emails=emails,
            attendee_domains=domains,
        )

    @property
    def search_text(self) -> str:
        """Title and description joined for keyword lookups."""
        return f"{self.title} {self.description}".strip()

    def external_domains(self, internal_domain: str) -> list[str]:
        return [d for d in self.attendee_domains if d != internal_domain]

    def all_internal(self, internal_domain: str) -> bool:
        """True when there is at least one attendee and all share the internal domain."""
        return bool(self.attendee_emails) and all(
            email_domain(e) == internal_domain for e in self.attendee_emails
        )
