"""Persistence collaborator interface and an in-memory implementation.

Each entity kind (contacts, interactions, tasks) lives in its own store. Stores
expose subscribe/add/update/remove per owner and nothing else: there are no
transactions, so a sequence of writes that fails halfway stays half applied.
"""

import copy
from collections import defaultdict
from collections.abc import Callable
from typing import Any, Protocol

from rapport.errors import DocumentNotFoundError
from rapport.utils.ids import new_id
from rapport.utils.logging import get_logger

logger = get_logger(__name__)

Document = dict[str, Any]
OnChange = Callable[[list[Document]], None]
Unsubscribe = Callable[[], None]


class EntityStore(Protocol):
    """Interface for the document store of one entity kind."""

    def subscribe(self, owner_id: str, on_change: OnChange) -> Unsubscribe:
        """Watch an owner's documents.

        Args:
            owner_id: Owner whose documents to watch
            on_change: Called with the full document list now and after every change

        Returns:
            Callable that stops the subscription
        """
        ...

    async def add(self, owner_id: str, fields: Document) -> str:
        """Create a document and return its new id."""
        ...

    async def update(self, owner_id: str, entity_id: str, fields: Document) -> None:
        """Merge fields into an existing document."""
        ...

    async def remove(self, owner_id: str, entity_id: str) -> None:
        """Delete a document."""
        ...


class CRMStore(Protocol):
    """The stores for every CRM entity kind."""

    contacts: EntityStore
    interactions: EntityStore
    tasks: EntityStore


class InMemoryEntityStore:
    """In-memory document store for one entity kind.

    Subscribers are notified synchronously after each write, in the way a
    realtime document database pushes snapshots to its listeners.
    """

    def __init__(self, kind: str):
        self.kind = kind
        self._documents: dict[str, dict[str, Document]] = defaultdict(dict)
        self._subscribers: dict[str, list[OnChange]] = defaultdict(list)

    def subscribe(self, owner_id: str, on_change: OnChange) -> Unsubscribe:
        """Watch an owner's documents; on_change fires immediately with the current state."""
        self._subscribers[owner_id].append(on_change)
        on_change(self._current(owner_id))

        def unsubscribe() -> None:
            if on_change in self._subscribers[owner_id]:
                self._subscribers[owner_id].remove(on_change)

        return unsubscribe

    async def add(self, owner_id: str, fields: Document) -> str:
        """Create a document and return its new id."""
        entity_id = new_id()
        self._documents[owner_id][entity_id] = {**copy.deepcopy(fields), "id": entity_id}
        logger.debug(f"Added {self.kind} {entity_id} for owner {owner_id}")
        self._notify(owner_id)
        return entity_id

    async def update(self, owner_id: str, entity_id: str, fields: Document) -> None:
        """Merge fields into an existing document."""
        documents = self._documents[owner_id]
        if entity_id not in documents:
            raise DocumentNotFoundError(f"No {self.kind} document {entity_id}")

        documents[entity_id] = {**documents[entity_id], **copy.deepcopy(fields), "id": entity_id}
        logger.debug(f"Updated {self.kind} {entity_id} fields: {sorted(fields)}")
        self._notify(owner_id)

    async def remove(self, owner_id: str, entity_id: str) -> None:
        """Delete a document."""
        if self._documents[owner_id].pop(entity_id, None) is None:
            raise DocumentNotFoundError(f"No {self.kind} document {entity_id}")
        logger.debug(f"Removed {self.kind} {entity_id}")
        self._notify(owner_id)

    def _current(self, owner_id: str) -> list[Document]:
        return [copy.deepcopy(document) for document in self._documents[owner_id].values()]

    def _notify(self, owner_id: str) -> None:
        documents = self._current(owner_id)
        for on_change in list(self._subscribers[owner_id]):
            on_change(documents)


class InMemoryCRMStore:
    """In-memory stores for contacts, interactions and tasks."""

    def __init__(self):
        self.contacts = InMemoryEntityStore("contact")
        self.interactions = InMemoryEntityStore("interaction")
        self.tasks = InMemoryEntityStore("task")


async def seed_demo_data(store: CRMStore, owner_id: str) -> None:
    """Populate a store with a small network for local experimentation."""
    alex = await store.contacts.add(
        owner_id,
        {
            "firstName": "Alex",
            "lastName": "Rivera",
            "email": "alex@northwind.io",
            "company": "Northwind",
            "position": "Product Lead",
            "tags": ["work", "product"],
            "status": "active",
            "lastContacted": "2025-01-10",
            "relatedContactIds": [],
        },
    )
    sam = await store.contacts.add(
        owner_id,
        {
            "firstName": "Sam",
            "lastName": "Okafor",
            "company": "Cooper Union",
            "position": "Student",
            "tags": ["school"],
            "status": "drifting",
            "birthday": "03-14",
            "relatedContactIds": [alex],
        },
    )
    await store.contacts.update(owner_id, alex, {"relatedContactIds": [sam]})
    await store.interactions.add(
        owner_id, {"contactId": alex, "date": "2025-01-10", "type": "Coffee", "notes": "Talked about the Q2 roadmap"}
    )
    await store.tasks.add(
        owner_id,
        {"title": "Send Sam the internship list", "contactId": sam, "priority": "high", "completed": False},
    )


crm_store = InMemoryCRMStore()
