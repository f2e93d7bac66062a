"""Read-only tools over the CRM snapshot.

Every handler here is a pure function of its arguments and the snapshot it is
given; none of them write to the store.
"""

from collections import Counter
from datetime import date
from typing import Any, Literal

from pydantic import Field

from rapport.models.crm import Contact, CRMSnapshot, Interaction, InteractionType, Task, TaskPriority
from rapport.tools.base import ToolContext, ToolDefinition, ToolInput, ToolName
from rapport.tools.resolver import Locator, contact_resolver
from rapport.utils.dates import days_until_birthday, parse_day, require_day

RECENT_INTERACTION_COUNT = 5
RECENT_ACTIVITY_COUNT = 10
BIRTHDAY_WINDOW_DAYS = 30
NOTES_PREVIEW_LENGTH = 50

DATE_FORMAT = {"format": "date"}

StatsMetric = Literal[
    "all",
    "overview",
    "interactionsByType",
    "contactsByStatus",
    "upcomingBirthdays",
    "overdueTasks",
    "recentActivity",
]


class SearchContactsInput(ToolInput):
    """Filters for searching contacts."""

    query: str | None = Field(None, description="Search term to match against name, company, email, or tags")
    status: Literal["active", "drifting", "lost", "all"] | None = Field(None, description="Filter by contact status")
    tags: list[str] | None = Field(None, description="Filter by tags (matches any)")
    limit: int = Field(10, ge=1, description="Maximum number of results to return (default: 10)")


class GetContactDetailsInput(ToolInput):
    """Contact to fetch."""

    contact_id: str | None = Field(None, description="The ID of the contact to retrieve")
    contact_name: str | None = Field(None, description="The name of the contact (used if ID is not known)")


class SearchInteractionsInput(ToolInput):
    """Filters for searching interaction history."""

    contact_id: str | None = Field(None, description="Filter by contact ID")
    contact_name: str | None = Field(None, description="Filter by contact name")
    type: InteractionType | None = Field(None, description="Filter by interaction type")
    start_date: str | None = Field(
        None, description="Start date for date range filter (YYYY-MM-DD)", json_schema_extra=DATE_FORMAT
    )
    end_date: str | None = Field(
        None, description="End date for date range filter (YYYY-MM-DD)", json_schema_extra=DATE_FORMAT
    )
    query: str | None = Field(None, description="Search term to match in interaction notes")
    limit: int = Field(20, ge=1, description="Maximum number of results (default: 20)")


class SearchTasksInput(ToolInput):
    """Filters for searching tasks."""

    completed: bool | None = Field(None, description="Filter by completion status")
    priority: TaskPriority | None = Field(None, description="Filter by priority level")
    contact_id: str | None = Field(None, description="Filter by linked contact ID")
    contact_name: str | None = Field(None, description="Filter by linked contact name")
    due_before: str | None = Field(
        None, description="Tasks due before this date (YYYY-MM-DD)", json_schema_extra=DATE_FORMAT
    )
    due_after: str | None = Field(
        None, description="Tasks due after this date (YYYY-MM-DD)", json_schema_extra=DATE_FORMAT
    )
    overdue: bool | None = Field(None, description="If true, only show overdue tasks")
    limit: int = Field(20, ge=1, description="Maximum number of results (default: 20)")


class GetStatsInput(ToolInput):
    """Statistic to compute."""

    metric: StatsMetric = Field(
        ...,
        description='The type of statistic to retrieve. Use "all" for comprehensive stats in one call.',
    )


def contact_summary(contact: Contact) -> dict[str, Any]:
    """Compact view of a contact for result lists."""
    return {
        "id": contact.id,
        "name": contact.full_name,
        "email": contact.email,
        "company": contact.company,
        "position": contact.position,
        "status": contact.status,
        "tags": contact.tags,
        "lastContacted": contact.last_contacted,
    }


def is_overdue(task: Task, today: date) -> bool:
    """Incomplete and due before today."""
    due = parse_day(task.due_date)
    return not task.completed and due is not None and due < today


def newest_first(interactions: list[Interaction] | tuple[Interaction, ...]) -> list[Interaction]:
    """Interactions ordered by date, most recent first; undated ones last."""
    return sorted(interactions, key=lambda i: parse_day(i.date) or date.min, reverse=True)


def _by_due_date(tasks: list[Task]) -> list[Task]:
    return sorted(
        tasks,
        key=lambda task: (task.due_date is not None, parse_day(task.due_date) or date.min),
        reverse=True,
    )


def _resolve_contact_filter(snapshot: CRMSnapshot, contact_id: str | None, contact_name: str | None) -> Contact | None:
    locator = Locator(id=contact_id, name=contact_name)
    if not locator:
        return None
    return contact_resolver.require(snapshot.contacts, locator)


def _contact_matches(contact: Contact, needle: str) -> bool:
    fields = [contact.full_name, contact.email, contact.company, *contact.tags]
    return any(needle in field.lower() for field in fields if field)


async def search_contacts(params: SearchContactsInput, context: ToolContext) -> dict[str, Any]:
    contacts = list(context.snapshot.contacts)

    if params.query:
        needle = params.query.strip().lower()
        contacts = [contact for contact in contacts if _contact_matches(contact, needle)]

    if params.status and params.status != "all":
        contacts = [contact for contact in contacts if contact.status == params.status]

    if params.tags:
        wanted = {tag.lower() for tag in params.tags}
        contacts = [
            contact for contact in contacts if any(part in tag.lower() for tag in contact.tags for part in wanted)
        ]

    return {
        "total": len(contacts),
        "contacts": [contact_summary(contact) for contact in contacts[: params.limit]],
    }


async def get_contact_details(params: GetContactDetailsInput, context: ToolContext) -> dict[str, Any]:
    snapshot = context.snapshot
    contact = contact_resolver.require(snapshot.contacts, Locator(id=params.contact_id, name=params.contact_name))

    interactions = [i for i in snapshot.interactions if i.contact_id == contact.id]
    pending_tasks = [task for task in snapshot.tasks if task.contact_id == contact.id and not task.completed]

    return {
        "contact": contact.to_document(),
        "recentInteractions": [i.to_document() for i in newest_first(interactions)[:RECENT_INTERACTION_COUNT]],
        "pendingTasks": [task.to_document() for task in pending_tasks],
    }


async def search_interactions(params: SearchInteractionsInput, context: ToolContext) -> dict[str, Any]:
    snapshot = context.snapshot
    interactions = list(snapshot.interactions)

    contact = _resolve_contact_filter(snapshot, params.contact_id, params.contact_name)
    if contact:
        interactions = [i for i in interactions if i.contact_id == contact.id]

    if params.type:
        interactions = [i for i in interactions if i.type == params.type]

    if params.start_date:
        start = require_day(params.start_date)
        interactions = [i for i in interactions if (day := parse_day(i.date)) and day >= start]

    if params.end_date:
        end = require_day(params.end_date)
        interactions = [i for i in interactions if (day := parse_day(i.date)) and day <= end]

    if params.query:
        needle = params.query.strip().lower()
        interactions = [i for i in interactions if needle in i.notes.lower()]

    interactions = newest_first(interactions)
    results = []
    for interaction in interactions[: params.limit]:
        linked = snapshot.contact_by_id(interaction.contact_id)
        results.append({**interaction.to_document(), "contactName": linked.full_name if linked else None})

    return {"total": len(interactions), "interactions": results}


async def search_tasks(params: SearchTasksInput, context: ToolContext) -> dict[str, Any]:
    snapshot = context.snapshot
    tasks = list(snapshot.tasks)

    if params.completed is not None:
        tasks = [task for task in tasks if task.completed == params.completed]

    if params.priority:
        tasks = [task for task in tasks if task.priority == params.priority]

    contact = _resolve_contact_filter(snapshot, params.contact_id, params.contact_name)
    if contact:
        tasks = [task for task in tasks if task.contact_id == contact.id]

    if params.due_before:
        before = require_day(params.due_before)
        tasks = [task for task in tasks if (due := parse_day(task.due_date)) and due <= before]

    if params.due_after:
        after = require_day(params.due_after)
        tasks = [task for task in tasks if (due := parse_day(task.due_date)) and due >= after]

    if params.overdue:
        tasks = [task for task in tasks if is_overdue(task, context.today)]

    tasks = _by_due_date(tasks)
    results = []
    for task in tasks[: params.limit]:
        linked = snapshot.contact_by_id(task.contact_id)
        results.append({**task.to_document(), "contactName": linked.full_name if linked else None})

    return {"total": len(tasks), "tasks": results}


def _overview(snapshot: CRMSnapshot, today: date) -> dict[str, Any]:
    statuses = Counter(contact.status for contact in snapshot.contacts)
    pending = [task for task in snapshot.tasks if not task.completed]
    return {
        "totalContacts": len(snapshot.contacts),
        "activeContacts": statuses["active"],
        "driftingContacts": statuses["drifting"],
        "lostContacts": statuses["lost"],
        "totalInteractions": len(snapshot.interactions),
        "totalTasks": len(snapshot.tasks),
        "pendingTasks": len(pending),
        "completedTasks": len(snapshot.tasks) - len(pending),
        "overdueTasks": sum(1 for task in pending if is_overdue(task, today)),
    }


def _interactions_by_type(snapshot: CRMSnapshot, today: date) -> dict[str, int]:
    return dict(Counter(interaction.type for interaction in snapshot.interactions))


def _contacts_by_status(snapshot: CRMSnapshot, today: date) -> dict[str, int]:
    statuses = Counter(contact.status for contact in snapshot.contacts)
    return {status: statuses[status] for status in ("active", "drifting", "lost")}


def _upcoming_birthdays(snapshot: CRMSnapshot, today: date) -> list[dict[str, Any]]:
    upcoming = []
    for contact in snapshot.contacts:
        if not contact.birthday:
            continue
        days = days_until_birthday(contact.birthday, today)
        if days is not None and days <= BIRTHDAY_WINDOW_DAYS:
            upcoming.append(
                {"contactId": contact.id, "name": contact.full_name, "birthday": contact.birthday, "daysUntil": days}
            )
    return sorted(upcoming, key=lambda entry: entry["daysUntil"])


def _overdue_tasks(snapshot: CRMSnapshot, today: date) -> list[dict[str, Any]]:
    return [task.to_document() for task in _by_due_date(list(snapshot.tasks)) if is_overdue(task, today)]


def _recent_activity(snapshot: CRMSnapshot, today: date) -> list[dict[str, Any]]:
    activity = []
    for interaction in newest_first(snapshot.interactions)[:RECENT_ACTIVITY_COUNT]:
        contact = snapshot.contact_by_id(interaction.contact_id)
        notes = interaction.notes
        if len(notes) > NOTES_PREVIEW_LENGTH:
            notes = notes[:NOTES_PREVIEW_LENGTH] + "..."
        activity.append(
            {
                "date": interaction.date,
                "type": interaction.type,
                "contactName": contact.full_name if contact else "Unknown",
                "notes": notes,
            }
        )
    return activity


_STATS = {
    "overview": _overview,
    "interactionsByType": _interactions_by_type,
    "contactsByStatus": _contacts_by_status,
    "upcomingBirthdays": _upcoming_birthdays,
    "overdueTasks": _overdue_tasks,
    "recentActivity": _recent_activity,
}


async def get_stats(params: GetStatsInput, context: ToolContext) -> dict[str, Any]:
    if params.metric == "all":
        return {name: compute(context.snapshot, context.today) for name, compute in _STATS.items()}
    return {params.metric: _STATS[params.metric](context.snapshot, context.today)}


def create_query_tools() -> list[ToolDefinition]:
    """Definitions for the read-only tools."""
    return [
        ToolDefinition(
            name=ToolName.SEARCH_CONTACTS,
            description=(
                "Search contacts by name, company, email, tags, or status. Use this to find contact information. "
                "For interaction history (meetings, calls, emails), use searchInteractions instead."
            ),
            input_schema_class=SearchContactsInput,
            handler=search_contacts,
        ),
        ToolDefinition(
            name=ToolName.GET_CONTACT_DETAILS,
            description="Get full details of a specific contact including their recent interactions and tasks",
            input_schema_class=GetContactDetailsInput,
            handler=get_contact_details,
        ),
        ToolDefinition(
            name=ToolName.SEARCH_INTERACTIONS,
            description=(
                "Search interaction history (meetings, calls, emails, coffee chats, events). Use this when asked "
                'about past activities, conversations, or "what did I do with someone". Can filter by contact '
                "name, type, date range, or content."
            ),
            input_schema_class=SearchInteractionsInput,
            handler=search_interactions,
        ),
        ToolDefinition(
            name=ToolName.SEARCH_TASKS,
            description="Search tasks by status, priority, contact, or due date",
            input_schema_class=SearchTasksInput,
            handler=search_tasks,
        ),
        ToolDefinition(
            name=ToolName.GET_STATS,
            description=(
                'Get CRM statistics and metrics for analytics. Use metric="all" to get a comprehensive overview '
                "in a single call (recommended for general stats questions)."
            ),
            input_schema_class=GetStatsInput,
            handler=get_stats,
        ),
    ]
