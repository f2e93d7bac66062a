"""CRM domain models: contacts, interactions and tasks."""

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ContactStatus = Literal["active", "drifting", "lost"]
InteractionType = Literal["Meeting", "Call", "Email", "Coffee", "Event", "Other"]
TaskPriority = Literal["low", "medium", "high"]
TaskFrequency = Literal["none", "daily", "weekly", "biweekly", "monthly", "quarterly", "yearly"]


class CRMModel(BaseModel):
    """Base for CRM documents, which are stored and exchanged with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str

    def to_document(self) -> dict[str, Any]:
        """Serialize to the camelCase document shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Contact(CRMModel):
    """A person in the user's network."""

    first_name: str
    last_name: str = ""
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    position: str | None = None
    tags: list[str] = Field(default_factory=list)
    last_contacted: str | None = None
    next_follow_up: str | None = None
    notes: str | None = None
    avatar: str | None = None
    status: ContactStatus = "active"
    related_contact_ids: list[str] = Field(default_factory=list)
    birthday: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Interaction(CRMModel):
    """A logged meeting, call, email or other touchpoint with a contact."""

    contact_id: str
    date: str
    type: InteractionType = "Other"
    notes: str = ""


class Task(CRMModel):
    """A task or reminder, optionally linked to a contact."""

    title: str
    description: str | None = None
    contact_id: str | None = None
    due_date: str | None = None
    due_time: str | None = None
    completed: bool = False
    priority: TaskPriority = "medium"
    frequency: TaskFrequency = "none"


@dataclass(frozen=True)
class CRMSnapshot:
    """Immutable view of one owner's CRM data at a point in time."""

    contacts: tuple[Contact, ...] = ()
    interactions: tuple[Interaction, ...] = ()
    tasks: tuple[Task, ...] = ()

    def contact_by_id(self, contact_id: str | None) -> Contact | None:
        """Look up a contact by its exact identifier."""
        if not contact_id:
            return None
        return next((contact for contact in self.contacts if contact.id == contact_id), None)
