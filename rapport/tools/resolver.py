"""Lookup of CRM entities by identifier or by a human-readable name."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from rapport.errors import EntityNotFoundError
from rapport.models.crm import Contact, CRMModel, Task


@dataclass(frozen=True)
class Locator:
    """Reference to an entity, by exact id or by (partial) name."""

    id: str | None = None
    name: str | None = None

    def __bool__(self) -> bool:
        return bool(self.id or (self.name and self.name.strip()))


class EntityResolver[T: CRMModel]:
    """Resolves a Locator against a sequence of entities of one kind.

    The id wins when present. Otherwise the first entity, in sequence order,
    with a name containing the requested name (case-insensitive) is returned.
    Duplicate names therefore resolve to whichever entity comes first.
    """

    def __init__(self, kind: str, names: Callable[[T], Iterable[str]]):
        self.kind = kind
        self.names = names

    def resolve(self, entities: Iterable[T], locator: Locator) -> T | None:
        """Find the entity a locator points at, or None."""
        if locator.id:
            return next((entity for entity in entities if entity.id == locator.id), None)

        needle = (locator.name or "").strip().lower()
        if not needle:
            return None

        for entity in entities:
            if any(needle in name.lower() for name in self.names(entity)):
                return entity
        return None

    def require(self, entities: Iterable[T], locator: Locator) -> T:
        """Find the entity a locator points at.

        Raises:
            EntityNotFoundError: If nothing matches
        """
        entity = self.resolve(entities, locator)
        if entity is None:
            raise EntityNotFoundError(f"{self.kind} not found")
        return entity


contact_resolver = EntityResolver[Contact]("Contact", lambda contact: (contact.full_name,))
task_resolver = EntityResolver[Task]("Task", lambda task: (task.title,))
