"""Tests for the in-memory store and the snapshot cache."""

import pytest

from rapport.errors import DocumentNotFoundError
from rapport.services.persistence import InMemoryEntityStore, seed_demo_data
from tests.conftest import OWNER


class TestInMemoryEntityStore:
    """Tests for document storage and change notification."""

    @pytest.mark.asyncio
    async def test_subscribe_receives_current_and_changes(self):
        """Test that subscribers get the current state now and after each write."""
        store = InMemoryEntityStore("contact")
        seen: list[list[dict]] = []
        store.subscribe(OWNER, seen.append)

        contact_id = await store.add(OWNER, {"firstName": "Sam"})
        await store.update(OWNER, contact_id, {"lastName": "Okafor"})
        await store.remove(OWNER, contact_id)

        assert seen[0] == []
        assert seen[1] == [{"firstName": "Sam", "id": contact_id}]
        assert seen[2] == [{"firstName": "Sam", "lastName": "Okafor", "id": contact_id}]
        assert seen[3] == []

    @pytest.mark.asyncio
    async def test_owners_are_isolated(self):
        """Test that one owner's writes are invisible to another."""
        store = InMemoryEntityStore("task")
        seen: list[list[dict]] = []
        store.subscribe("someone-else", seen.append)

        await store.add(OWNER, {"title": "Private"})

        assert seen == [[]]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        """Test that an unsubscribed callback is no longer called."""
        store = InMemoryEntityStore("task")
        seen: list[list[dict]] = []
        unsubscribe = store.subscribe(OWNER, seen.append)

        unsubscribe()
        await store.add(OWNER, {"title": "Quiet"})

        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_documents_are_copied(self):
        """Test that mutating a written or notified document does not affect the store."""
        store = InMemoryEntityStore("contact")
        fields = {"firstName": "Sam", "tags": ["a"]}
        seen: list[list[dict]] = []
        store.subscribe(OWNER, seen.append)

        contact_id = await store.add(OWNER, fields)
        fields["tags"].append("b")
        seen[-1][0]["tags"].append("c")
        await store.update(OWNER, contact_id, {"notes": "x"})

        assert seen[-1][0]["tags"] == ["a"]

    @pytest.mark.asyncio
    async def test_missing_document(self):
        """Test that updating or removing an unknown document raises."""
        store = InMemoryEntityStore("contact")

        with pytest.raises(DocumentNotFoundError):
            await store.update(OWNER, "missing", {"notes": "x"})
        with pytest.raises(DocumentNotFoundError):
            await store.remove(OWNER, "missing")


class TestSnapshotCache:
    """Tests for the subscription-fed snapshot cache."""

    @pytest.mark.asyncio
    async def test_snapshot_follows_writes(self, store, snapshots):
        """Test that writes show up in the next snapshot without explicit refresh."""
        before = snapshots.snapshot(OWNER)

        await store.contacts.add(OWNER, {"firstName": "Sam", "lastName": "Okafor"})
        after = snapshots.snapshot(OWNER)

        assert before.contacts == ()
        assert [c.full_name for c in after.contacts] == ["Sam Okafor"]

    @pytest.mark.asyncio
    async def test_malformed_documents_are_skipped(self, store, snapshots):
        """Test that a document failing validation is left out of the snapshot."""
        await store.contacts.add(OWNER, {"lastName": "No first name"})
        await store.contacts.add(OWNER, {"firstName": "Valid"})

        assert [c.first_name for c in snapshots.snapshot(OWNER).contacts] == ["Valid"]

    @pytest.mark.asyncio
    async def test_release_stops_updates(self, store, snapshots):
        """Test that a released owner starts from fresh state when watched again."""
        snapshots.watch(OWNER)
        snapshots.release(OWNER)
        assert store.contacts._subscribers[OWNER] == []

        await store.contacts.add(OWNER, {"firstName": "Sam"})

        assert len(snapshots.snapshot(OWNER).contacts) == 1

    @pytest.mark.asyncio
    async def test_demo_data(self, store, snapshots):
        """Test that the demo data seeds a linked pair of contacts."""
        await seed_demo_data(store, OWNER)
        snapshot = snapshots.snapshot(OWNER)

        alex, sam = snapshot.contacts
        assert alex.related_contact_ids == [sam.id]
        assert sam.related_contact_ids == [alex.id]
        assert len(snapshot.interactions) == 1
        assert snapshot.tasks[0].contact_id == sam.id
