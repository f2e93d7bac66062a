"""Tools that create and update CRM records.

Each tool performs one write for the record it is about, then any follow-up
writes (auto-logged interactions, last-contacted dates, reverse relationship
links). The follow-ups are not transactional: if one fails the earlier writes
stay in place and the tool reports the failure.
"""

from typing import Any

from pydantic import Field

from rapport.models.crm import Contact, ContactStatus, InteractionType, Task, TaskFrequency, TaskPriority
from rapport.tools.base import ToolContext, ToolDefinition, ToolInput, ToolName
from rapport.tools.linker import RelationshipLinker
from rapport.tools.resolver import Locator, contact_resolver, task_resolver
from rapport.utils.dates import parse_day, require_day
from rapport.utils.logging import get_logger

logger = get_logger(__name__)

DATE_FORMAT = {"format": "date"}


class AddContactInput(ToolInput):
    """New contact details."""

    first_name: str = Field(..., description="First name of the contact")
    last_name: str = Field(..., description="Last name of the contact")
    email: str | None = Field(None, description="Email address")
    phone: str | None = Field(None, description="Phone number")
    company: str | None = Field(None, description="Company or organization name")
    position: str | None = Field(None, description="Job title or position")
    tags: list[str] | None = Field(None, description="Tags to categorize the contact")
    notes: str | None = Field(
        None,
        description="Initial notes about the contact - include how you met, mutual connections, shared history",
    )
    birthday: str | None = Field(None, description="Birthday in MM-DD format")
    related_contact_names: list[str] | None = Field(
        None,
        description=(
            "Names of related contacts (e.g., mutual friends, colleagues, introduced by). "
            "The system will look up their IDs."
        ),
    )


class AddInteractionInput(ToolInput):
    """Interaction to log."""

    contact_id: str | None = Field(None, description="ID of the contact")
    contact_name: str | None = Field(None, description="Name of the contact (used if ID not known)")
    type: InteractionType = Field(..., description="Type of interaction")
    notes: str = Field(..., description="Notes about the interaction")
    date: str | None = Field(
        None, description="Date of the interaction (YYYY-MM-DD). Defaults to today.", json_schema_extra=DATE_FORMAT
    )


class AddTaskInput(ToolInput):
    """Task or reminder to create."""

    title: str = Field(..., description="Title of the task/reminder")
    description: str | None = Field(None, description="Detailed description of the task")
    contact_id: str | None = Field(None, description="ID of the linked contact")
    contact_name: str | None = Field(None, description="Name of the linked contact (used if ID not known)")
    due_date: str | None = Field(
        None,
        description="Due date (YYYY-MM-DD). Required for reminders with specific times.",
        json_schema_extra=DATE_FORMAT,
    )
    due_time: str | None = Field(
        None,
        description=(
            'Due time in 24-hour format (HH:MM). Use this for time-specific reminders like "in 5 minutes" '
            'or "at 3pm".'
        ),
    )
    priority: TaskPriority | None = Field(
        None, description='Priority level. Use "high" for time-sensitive reminders within the next few hours.'
    )
    frequency: TaskFrequency | None = Field(None, description="Recurring frequency (default: none)")


class ContactUpdates(ToolInput):
    """Fields to update on a contact."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    position: str | None = None
    tags: list[str] | None = None
    notes: str | None = None
    birthday: str | None = Field(None, description="Birthday in MM-DD format")
    status: ContactStatus | None = None
    related_contact_names: list[str] | None = Field(
        None, description="Names of related contacts to link. The system will look up their IDs."
    )


class UpdateContactInput(ToolInput):
    """Contact to update and the changes to make."""

    contact_id: str | None = Field(None, description="ID of the contact to update")
    contact_name: str | None = Field(None, description="Name of the contact (used if ID not known)")
    updates: ContactUpdates = Field(..., description="Fields to update")


class TaskUpdates(ToolInput):
    """Fields to update on a task."""

    title: str | None = None
    description: str | None = None
    completed: bool | None = None
    priority: TaskPriority | None = None
    due_date: str | None = Field(None, json_schema_extra=DATE_FORMAT)
    due_time: str | None = Field(None, description="Due time in 24-hour format (HH:MM)")
    frequency: TaskFrequency | None = None


class UpdateTaskInput(ToolInput):
    """Task to update and the changes to make."""

    task_id: str | None = Field(None, description="ID of the task to update")
    task_title: str | None = Field(None, description="Title of the task (used if ID not known)")
    updates: TaskUpdates = Field(..., description="Fields to update")


async def add_contact(params: AddContactInput, context: ToolContext) -> dict[str, Any]:
    """Create a contact, link related contacts both ways and log the first interaction."""
    store = context.store
    today = context.today.isoformat()
    linker = RelationshipLinker(store.contacts)

    plan = linker.plan(None, [], params.related_contact_names or [], context.snapshot.contacts)

    fields = params.model_dump(by_alias=True, exclude_none=True, exclude={"related_contact_names"})
    fields.setdefault("tags", [])
    fields.update(status="active", lastContacted=today, relatedContactIds=plan.related_ids)

    contact_id = await store.contacts.add(context.owner_id, fields)
    logger.info(f"Created contact {contact_id} ({params.first_name} {params.last_name})")

    await linker.apply(context.owner_id, contact_id, plan, context.snapshot.contacts)

    intro = params.notes or f"First contact with {params.first_name} {params.last_name}"
    await store.interactions.add(
        context.owner_id,
        {"contactId": contact_id, "date": today, "type": "Other", "notes": f"Initial contact added. {intro}"},
    )

    contact = Contact.model_validate({**fields, "id": contact_id})
    return {
        "contactId": contact_id,
        "contact": contact.to_document(),
        "unresolvedRelatedNames": plan.unresolved_names,
    }


async def add_interaction(params: AddInteractionInput, context: ToolContext) -> dict[str, Any]:
    """Log an interaction and move the contact's last-contacted date forward."""
    contact = contact_resolver.require(
        context.snapshot.contacts, Locator(id=params.contact_id, name=params.contact_name)
    )
    day = require_day(params.date) if params.date else context.today

    fields = {"contactId": contact.id, "date": day.isoformat(), "type": params.type, "notes": params.notes}
    interaction_id = await context.store.interactions.add(context.owner_id, fields)
    logger.info(f"Logged {params.type} interaction {interaction_id} with contact {contact.id}")

    last_contacted = parse_day(contact.last_contacted)
    if last_contacted is None or day > last_contacted:
        await context.store.contacts.update(context.owner_id, contact.id, {"lastContacted": day.isoformat()})

    return {
        "interactionId": interaction_id,
        "interaction": {**fields, "id": interaction_id},
        "contactName": contact.full_name,
    }


async def add_task(params: AddTaskInput, context: ToolContext) -> dict[str, Any]:
    """Create a task, linking it to a contact when one can be found."""
    contact = None
    locator = Locator(id=params.contact_id, name=params.contact_name)
    if locator:
        contact = contact_resolver.resolve(context.snapshot.contacts, locator)
        if contact is None:
            logger.info(f"Creating task '{params.title}' without a contact: none matches {locator}")

    if params.due_date:
        require_day(params.due_date)

    fields = params.model_dump(by_alias=True, exclude_none=True, exclude={"contact_id", "contact_name"})
    fields.setdefault("priority", "medium")
    fields.setdefault("frequency", "none")
    fields["completed"] = False
    if contact:
        fields["contactId"] = contact.id

    task_id = await context.store.tasks.add(context.owner_id, fields)
    logger.info(f"Created task {task_id}: {params.title}")

    task = Task.model_validate({**fields, "id": task_id})
    return {"taskId": task_id, "task": task.to_document(), "contactName": contact.full_name if contact else None}


async def update_contact(params: UpdateContactInput, context: ToolContext) -> dict[str, Any]:
    """Update a contact's fields and link any newly named related contacts."""
    contacts = context.snapshot.contacts
    contact = contact_resolver.require(contacts, Locator(id=params.contact_id, name=params.contact_name))

    fields = params.updates.model_dump(by_alias=True, exclude_none=True, exclude={"related_contact_names"})
    names = params.updates.related_contact_names or []
    if not fields and not names:
        raise ValueError("No updates provided")

    linker = RelationshipLinker(context.store.contacts)
    plan = linker.plan(contact.id, contact.related_contact_ids, names, contacts)
    if plan.added_ids:
        fields["relatedContactIds"] = plan.related_ids

    if fields:
        await context.store.contacts.update(context.owner_id, contact.id, fields)
        logger.info(f"Updated contact {contact.id} fields: {sorted(fields)}")

    await linker.apply(context.owner_id, contact.id, plan, contacts)

    updated = Contact.model_validate({**contact.to_document(), **fields})
    return {
        "contactId": contact.id,
        "updatedFields": sorted(fields),
        "contact": updated.to_document(),
        "unresolvedRelatedNames": plan.unresolved_names,
    }


async def update_task(params: UpdateTaskInput, context: ToolContext) -> dict[str, Any]:
    """Update a task's fields."""
    task = task_resolver.require(context.snapshot.tasks, Locator(id=params.task_id, name=params.task_title))

    fields = params.updates.model_dump(by_alias=True, exclude_none=True)
    if not fields:
        raise ValueError("No updates provided")
    if "dueDate" in fields:
        require_day(fields["dueDate"])

    await context.store.tasks.update(context.owner_id, task.id, fields)
    logger.info(f"Updated task {task.id} fields: {sorted(fields)}")

    updated = Task.model_validate({**task.to_document(), **fields})
    return {"taskId": task.id, "updatedFields": sorted(fields), "task": updated.to_document()}


def create_mutation_tools() -> list[ToolDefinition]:
    """Definitions for the tools that write to the CRM."""
    return [
        ToolDefinition(
            name=ToolName.ADD_CONTACT,
            description="Create a new contact in the CRM. Returns the created contact.",
            input_schema_class=AddContactInput,
            handler=add_contact,
        ),
        ToolDefinition(
            name=ToolName.ADD_INTERACTION,
            description="Log a new interaction (meeting, call, email, etc.) with a contact",
            input_schema_class=AddInteractionInput,
            handler=add_interaction,
        ),
        ToolDefinition(
            name=ToolName.ADD_TASK,
            description=(
                "Create a new task or reminder, optionally linked to a contact. Use this for both tasks AND "
                "reminders - they are the same thing in this system."
            ),
            input_schema_class=AddTaskInput,
            handler=add_task,
        ),
        ToolDefinition(
            name=ToolName.UPDATE_CONTACT,
            description="Update an existing contact's information",
            input_schema_class=UpdateContactInput,
            handler=update_contact,
        ),
        ToolDefinition(
            name=ToolName.UPDATE_TASK,
            description="Update a task (mark complete, change priority, reschedule, etc.)",
            input_schema_class=UpdateTaskInput,
            handler=update_task,
        ),
    ]
