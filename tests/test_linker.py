"""Tests for related-contact linking and entity resolution."""

import pytest

from rapport.errors import EntityNotFoundError
from rapport.models.crm import Contact, Task
from rapport.tools.linker import RelationshipLinker
from rapport.tools.resolver import Locator, contact_resolver, task_resolver
from tests.conftest import OWNER


class TestEntityResolver:
    """Tests for id-or-name lookup."""

    @pytest.fixture
    def contacts(self):
        return [
            Contact(id="c1", first_name="Sam", last_name="Okafor"),
            Contact(id="c2", first_name="Samantha", last_name="Reyes"),
        ]

    def test_id_wins(self, contacts):
        """Test that an id is used even when a name is also given."""
        assert contact_resolver.resolve(contacts, Locator(id="c2", name="Okafor")).id == "c2"

    def test_unknown_id_does_not_fall_back_to_name(self, contacts):
        """Test that a wrong id is not rescued by the name."""
        assert contact_resolver.resolve(contacts, Locator(id="missing", name="Sam")) is None

    def test_partial_name_first_match(self, contacts):
        """Test that the first contact containing the name is chosen."""
        assert contact_resolver.resolve(contacts, Locator(name="  sam ")).id == "c1"

    def test_full_name_match(self, contacts):
        """Test matching across first and last name."""
        assert contact_resolver.resolve(contacts, Locator(name="samantha reyes")).id == "c2"

    def test_empty_locator(self, contacts):
        """Test that an empty locator is falsy and resolves to nothing."""
        locator = Locator(name="   ")

        assert not locator
        assert contact_resolver.resolve(contacts, locator) is None

    def test_require_raises(self):
        """Test that require reports the entity kind."""
        tasks = [Task(id="t1", title="Call Sam")]

        assert task_resolver.require(tasks, Locator(name="call")).id == "t1"
        with pytest.raises(EntityNotFoundError, match="Task not found"):
            task_resolver.require(tasks, Locator(name="email"))


class TestRelationshipLinker:
    """Tests for symmetric relationship maintenance."""

    def test_plan_merges_without_duplicates(self, store):
        """Test that the plan keeps existing ids and appends new matches once."""
        contacts = [
            Contact(id="a", first_name="Alex", last_name="Rivera"),
            Contact(id="b", first_name="Bea", last_name="Lin"),
            Contact(id="s", first_name="Sam", last_name="Okafor"),
        ]
        linker = RelationshipLinker(store.contacts)

        plan = linker.plan("s", ["a"], ["Alex", "Bea", "bea lin", "Sam", "Ghost"], contacts)

        assert plan.related_ids == ["a", "b"]
        assert plan.added_ids == ["b"]
        assert plan.unresolved_names == ["Ghost"]

    @pytest.mark.asyncio
    async def test_apply_adds_reverse_links(self, store, snapshots):
        """Test that each newly linked contact gains the subject."""
        alex = await store.contacts.add(OWNER, {"firstName": "Alex", "relatedContactIds": []})
        bea = await store.contacts.add(OWNER, {"firstName": "Bea", "relatedContactIds": []})
        sam = await store.contacts.add(OWNER, {"firstName": "Sam", "relatedContactIds": [bea]})
        await store.contacts.update(OWNER, bea, {"relatedContactIds": [sam]})
        contacts = snapshots.snapshot(OWNER).contacts
        linker = RelationshipLinker(store.contacts)

        plan = linker.plan(sam, [bea], ["Alex"], contacts)
        await store.contacts.update(OWNER, sam, {"relatedContactIds": plan.related_ids})
        updated = await linker.apply(OWNER, sam, plan, contacts)

        by_id = {c.id: c for c in snapshots.snapshot(OWNER).contacts}
        assert updated == [alex]
        assert by_id[sam].related_contact_ids == [bea, alex]
        assert by_id[alex].related_contact_ids == [sam]
        assert by_id[bea].related_contact_ids == [sam]

    @pytest.mark.asyncio
    async def test_apply_skips_existing_reverse_link(self, store, snapshots):
        """Test that a contact already pointing at the subject is not rewritten."""
        sam = await store.contacts.add(OWNER, {"firstName": "Sam", "relatedContactIds": []})
        alex = await store.contacts.add(OWNER, {"firstName": "Alex", "relatedContactIds": [sam]})
        contacts = snapshots.snapshot(OWNER).contacts
        linker = RelationshipLinker(store.contacts)

        plan = linker.plan(sam, [], ["Alex"], contacts)

        assert plan.added_ids == [alex]
        assert await linker.apply(OWNER, sam, plan, contacts) == []
