"""Cache of the latest CRM snapshot per owner, fed by store subscriptions."""

import dataclasses

from pydantic import BaseModel, ValidationError

from rapport.models.crm import Contact, CRMSnapshot, Interaction, Task
from rapport.services.persistence import CRMStore, Document, Unsubscribe
from rapport.utils.logging import get_logger

logger = get_logger(__name__)


class SnapshotCache:
    """Keeps an immutable CRMSnapshot per owner up to date.

    Writes never touch the cache directly. They go to the store, and the new
    state arrives here through the store's subscription callbacks.
    """

    def __init__(self, store: CRMStore):
        self.store = store
        self._snapshots: dict[str, CRMSnapshot] = {}
        self._unsubscribers: dict[str, list[Unsubscribe]] = {}

    def snapshot(self, owner_id: str) -> CRMSnapshot:
        """Current snapshot for an owner, subscribing on first use."""
        self.watch(owner_id)
        return self._snapshots[owner_id]

    def watch(self, owner_id: str) -> None:
        """Subscribe to an owner's stores if not already subscribed."""
        if owner_id in self._unsubscribers:
            return

        self._snapshots[owner_id] = CRMSnapshot()
        self._unsubscribers[owner_id] = [
            self.store.contacts.subscribe(owner_id, lambda docs: self._replace(owner_id, "contacts", Contact, docs)),
            self.store.interactions.subscribe(
                owner_id, lambda docs: self._replace(owner_id, "interactions", Interaction, docs)
            ),
            self.store.tasks.subscribe(owner_id, lambda docs: self._replace(owner_id, "tasks", Task, docs)),
        ]
        logger.info(f"Watching CRM data for owner {owner_id}")

    def release(self, owner_id: str) -> None:
        """Stop watching an owner and forget its snapshot."""
        for unsubscribe in self._unsubscribers.pop(owner_id, []):
            unsubscribe()
        self._snapshots.pop(owner_id, None)

    def close(self) -> None:
        """Stop watching every owner."""
        for owner_id in list(self._unsubscribers):
            self.release(owner_id)

    def _replace(self, owner_id: str, field: str, model: type[BaseModel], documents: list[Document]) -> None:
        entities = []
        for document in documents:
            try:
                entities.append(model.model_validate(document))
            except ValidationError as e:
                logger.warning(f"Ignoring malformed {model.__name__} document {document.get('id')}: {e}")

        current = self._snapshots.get(owner_id, CRMSnapshot())
        self._snapshots[owner_id] = dataclasses.replace(current, **{field: tuple(entities)})
