"""Symmetric maintenance of the "related contact" relation."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from rapport.models.crm import Contact
from rapport.services.persistence import EntityStore
from rapport.tools.resolver import Locator, contact_resolver
from rapport.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class LinkPlan:
    """Outcome of resolving related-contact names for one subject contact."""

    related_ids: list[str]
    added_ids: list[str] = field(default_factory=list)
    unresolved_names: list[str] = field(default_factory=list)


class RelationshipLinker:
    """Links contacts to each other by name, keeping the relation symmetric.

    Linking happens in two steps. ``plan`` resolves names and computes the
    subject's new relation set, which the caller persists as part of its own
    write to the subject. ``apply`` then adds the subject to every newly linked
    contact that does not reference it yet.

    Only pairs touched by a plan are made symmetric; existing one-sided links
    elsewhere are left as they are.
    """

    def __init__(self, contacts: EntityStore):
        self.contacts = contacts

    def plan(
        self,
        subject_id: str | None,
        existing_ids: Iterable[str],
        names: Iterable[str],
        contacts: Iterable[Contact],
    ) -> LinkPlan:
        """Resolve names and merge them into the subject's related ids.

        Args:
            subject_id: Contact being linked, or None if it is not created yet
            existing_ids: Related ids the subject already has
            names: Names of contacts to link
            contacts: Contacts to resolve names against

        Returns:
            Plan with the merged ids, in order and without duplicates
        """
        contacts = list(contacts)
        plan = LinkPlan(related_ids=list(dict.fromkeys(existing_ids)))

        for name in names:
            match = contact_resolver.resolve(contacts, Locator(name=name))
            if match is None:
                logger.info(f"No contact matches related name '{name}'")
                plan.unresolved_names.append(name)
                continue
            if match.id == subject_id or match.id in plan.related_ids:
                continue
            plan.related_ids.append(match.id)
            plan.added_ids.append(match.id)

        return plan

    async def apply(self, owner_id: str, subject_id: str, plan: LinkPlan, contacts: Iterable[Contact]) -> list[str]:
        """Write the reverse links for a plan whose subject has been saved.

        Returns:
            Ids of the contacts that were updated
        """
        by_id = {contact.id: contact for contact in contacts}
        updated = []

        for other_id in plan.added_ids:
            other = by_id.get(other_id)
            if other is None or subject_id in other.related_contact_ids:
                continue
            await self.contacts.update(
                owner_id, other_id, {"relatedContactIds": [*other.related_contact_ids, subject_id]}
            )
            updated.append(other_id)

        if updated:
            logger.info(f"Linked contact {subject_id} back from {len(updated)} related contacts")
        return updated
