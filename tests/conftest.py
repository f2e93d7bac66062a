"""Shared fixtures: an in-memory CRM with a small, fixed data set."""

from datetime import date

import pytest
import pytest_asyncio

from rapport.services.persistence import InMemoryCRMStore
from rapport.services.snapshots import SnapshotCache
from rapport.tools.base import ToolContext

OWNER = "owner-1"
TODAY = date(2025, 3, 10)


@pytest.fixture
def store():
    """Empty in-memory CRM store."""
    return InMemoryCRMStore()


@pytest.fixture
def snapshots(store):
    """Snapshot cache watching the store."""
    cache = SnapshotCache(store)
    yield cache
    cache.close()


@pytest.fixture
def make_context(store, snapshots):
    """Build a tool context over the store's current snapshot."""

    def make() -> ToolContext:
        return ToolContext(owner_id=OWNER, snapshot=snapshots.snapshot(OWNER), store=store, today=TODAY)

    return make


@pytest_asyncio.fixture
async def seeded(store, snapshots):
    """Three contacts, three interactions and four tasks; returns their ids by name."""
    snapshots.watch(OWNER)
    ids: dict[str, str] = {}

    ids["alice"] = await store.contacts.add(
        OWNER,
        {
            "firstName": "Alice",
            "lastName": "Chen",
            "email": "alice@acme.com",
            "company": "Acme",
            "tags": ["work"],
            "status": "active",
            "lastContacted": "2025-03-01",
            "birthday": "03-20",
            "relatedContactIds": [],
        },
    )
    ids["bob"] = await store.contacts.add(
        OWNER,
        {
            "firstName": "Bob",
            "lastName": "Marley",
            "company": "Reggae Co",
            "tags": ["music", "friends"],
            "status": "drifting",
            "lastContacted": "2025-01-15",
            "relatedContactIds": [],
        },
    )
    ids["carol"] = await store.contacts.add(
        OWNER,
        {"firstName": "Carol", "lastName": "Danvers", "tags": ["friends"], "status": "lost", "relatedContactIds": []},
    )

    ids["planning"] = await store.interactions.add(
        OWNER,
        {
            "contactId": ids["alice"],
            "date": "2025-03-01",
            "type": "Meeting",
            "notes": "Quarterly planning with the Acme team about the roadmap and hiring",
        },
    )
    ids["catch_up"] = await store.interactions.add(
        OWNER, {"contactId": ids["alice"], "date": "2025-02-10", "type": "Call", "notes": "Quick catch-up"}
    )
    ids["coffee"] = await store.interactions.add(
        OWNER, {"contactId": ids["bob"], "date": "2025-01-15", "type": "Coffee", "notes": "Talked about the tour"}
    )

    ids["proposal"] = await store.tasks.add(
        OWNER,
        {
            "title": "Send proposal",
            "contactId": ids["alice"],
            "dueDate": "2025-03-05",
            "priority": "high",
            "completed": False,
        },
    )
    ids["tickets"] = await store.tasks.add(
        OWNER,
        {
            "title": "Book tickets",
            "contactId": ids["bob"],
            "dueDate": "2025-03-20",
            "priority": "low",
            "completed": False,
        },
    )
    ids["mom"] = await store.tasks.add(
        OWNER, {"title": "Call mom", "dueDate": "2025-03-01", "priority": "medium", "completed": True}
    )
    ids["book"] = await store.tasks.add(OWNER, {"title": "Read book", "priority": "low", "completed": False})

    return ids
