"""
Tests for the collection store.

Covers key assignment, unique constraints, immutable keys and the
all-or-nothing behaviour of bulk updates.
"""

import asyncio

import pytest

from talentflow.db.store import CollectionStore
from talentflow.errors import (
    ConstraintViolation,
    RecordNotFound,
    UnknownCollection,
    ValidationError,
)


class TestInsertAndGet:
    """Tests for insert and get."""

    @pytest.mark.asyncio
    async def test_insert_assigns_increasing_keys(self, store: CollectionStore) -> None:
        """Test that surrogate keys are assigned in insertion order."""
        first = await store.insert("jobs", {"title": "A", "slug": "a", "order": 0})
        second = await store.insert("jobs", {"title": "B", "slug": "b", "order": 1})

        assert second > first

    @pytest.mark.asyncio
    async def test_get_returns_plain_record(self, store: CollectionStore) -> None:
        """Test that records come back as dicts with defaults filled in."""
        job_id = await store.insert("jobs", {"title": "Backend", "slug": "backend", "order": 0})

        record = await store.get("jobs", job_id)

        assert record is not None
        assert record["id"] == job_id
        assert record["status"] == "active"
        assert record["tags"] == []
        assert record["created_at"].tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store: CollectionStore) -> None:
        assert await store.get("jobs", 999) is None

    @pytest.mark.asyncio
    async def test_duplicate_slug_violates_constraint(self, store: CollectionStore) -> None:
        """Test that unique keys are enforced on insert."""
        await store.insert("jobs", {"title": "A", "slug": "same", "order": 0})

        with pytest.raises(ConstraintViolation):
            await store.insert("jobs", {"title": "B", "slug": "same", "order": 1})

        assert await store.count("jobs") == 1

    @pytest.mark.asyncio
    async def test_duplicate_order_is_allowed(self, store: CollectionStore) -> None:
        """Test that order is indexed but not unique."""
        await store.insert("jobs", {"title": "A", "slug": "a", "order": 3})
        await store.insert("jobs", {"title": "B", "slug": "b", "order": 3})

        assert await store.count("jobs") == 2

    @pytest.mark.asyncio
    async def test_unknown_field_is_rejected(self, store: CollectionStore) -> None:
        with pytest.raises(ValidationError):
            await store.insert("jobs", {"title": "A", "slug": "a", "colour": "red"})

    @pytest.mark.asyncio
    async def test_unknown_collection(self, store: CollectionStore) -> None:
        with pytest.raises(UnknownCollection):
            await store.get("interviews", 1)


class TestInsertNext:
    """Tests for inserting at the next value of a counter field."""

    @pytest.mark.asyncio
    async def test_starts_at_zero_then_follows_maximum(self, store: CollectionStore) -> None:
        first = await store.insert_next("jobs", {"title": "A", "slug": "a"}, "order")
        await store.update("jobs", first, {"order": 7})

        second = await store.insert_next("jobs", {"title": "B", "slug": "b"}, "order")

        assert (await store.get("jobs", first))["order"] == 7
        assert (await store.get("jobs", second))["order"] == 8

    @pytest.mark.asyncio
    async def test_concurrent_inserts_are_distinct(self, store: CollectionStore) -> None:
        keys = await asyncio.gather(
            *(store.insert_next("jobs", {"title": f"J{n}", "slug": f"j{n}"}, "order") for n in range(5))
        )

        orders = [(await store.get("jobs", key))["order"] for key in keys]
        assert sorted(orders) == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_clash_inserts_nothing(self, store: CollectionStore) -> None:
        await store.insert_next("jobs", {"title": "A", "slug": "same"}, "order")

        with pytest.raises(ConstraintViolation):
            await store.insert_next("jobs", {"title": "B", "slug": "same"}, "order")

        assert await store.count("jobs") == 1


class TestUpdate:
    """Tests for single-record updates."""

    @pytest.mark.asyncio
    async def test_update_applies_patch(self, store: CollectionStore) -> None:
        job_id = await store.insert("jobs", {"title": "A", "slug": "a", "order": 0})

        record = await store.update("jobs", job_id, {"status": "archived"})

        assert record["status"] == "archived"
        assert (await store.get("jobs", job_id))["status"] == "archived"

    @pytest.mark.asyncio
    async def test_update_missing_record(self, store: CollectionStore) -> None:
        with pytest.raises(RecordNotFound):
            await store.update("jobs", 42, {"title": "Nope"})

    @pytest.mark.asyncio
    async def test_key_is_immutable(self, store: CollectionStore) -> None:
        """Test that patching the surrogate key is refused."""
        job_id = await store.insert("jobs", {"title": "A", "slug": "a", "order": 0})

        with pytest.raises(ConstraintViolation):
            await store.update("jobs", job_id, {"id": job_id + 100})

        assert await store.get("jobs", job_id) is not None

    @pytest.mark.asyncio
    async def test_update_clashing_unique_key(self, store: CollectionStore) -> None:
        await store.insert("candidates", {"name": "Ann", "email": "ann@example.com"})
        bob = await store.insert("candidates", {"name": "Bob", "email": "bob@example.com"})

        with pytest.raises(ConstraintViolation):
            await store.update("candidates", bob, {"email": "ann@example.com"})

        assert (await store.get("candidates", bob))["email"] == "bob@example.com"


class TestBulkUpdate:
    """Tests for transactional bulk updates."""

    @pytest.mark.asyncio
    async def test_applies_every_patch(self, store: CollectionStore, seed_jobs) -> None:
        ids = await seed_jobs(["A", "B", "C"])

        updated = await store.bulk_update("jobs", [(ids[0], {"order": 2}), (ids[2], {"order": 0})])

        assert updated == 2
        assert (await store.get("jobs", ids[0]))["order"] == 2
        assert (await store.get("jobs", ids[1]))["order"] == 1
        assert (await store.get("jobs", ids[2]))["order"] == 0

    @pytest.mark.asyncio
    async def test_missing_key_applies_nothing(self, store: CollectionStore, seed_jobs) -> None:
        """Test that one missing key rolls back the whole batch."""
        ids = await seed_jobs(["A", "B"])

        with pytest.raises(RecordNotFound):
            await store.bulk_update("jobs", [(ids[0], {"order": 9}), (999, {"order": 0})])

        assert (await store.get("jobs", ids[0]))["order"] == 0

    @pytest.mark.asyncio
    async def test_constraint_clash_applies_nothing(self, store: CollectionStore, seed_candidates) -> None:
        ids = await seed_candidates(["Ann", "Bob"])
        ann = await store.get("candidates", ids[0])

        with pytest.raises(ConstraintViolation):
            await store.bulk_update(
                "candidates",
                [(ids[0], {"stage": "tech"}), (ids[1], {"email": ann["email"]})],
            )

        assert (await store.get("candidates", ids[0]))["stage"] == "applied"

    @pytest.mark.asyncio
    async def test_key_in_patch_is_rejected_up_front(self, store: CollectionStore, seed_jobs) -> None:
        ids = await seed_jobs(["A"])

        with pytest.raises(ConstraintViolation):
            await store.bulk_update("jobs", [(ids[0], {"id": 50, "order": 4})])

        assert (await store.get("jobs", ids[0]))["order"] == 0


class TestPutAndLookups:
    """Tests for put, find_one, max_value and count."""

    @pytest.mark.asyncio
    async def test_put_inserts_then_replaces(self, store: CollectionStore) -> None:
        """Test that put wholly replaces the record with the same key."""
        await store.put("assessments", {"job_id": 7, "title": "First", "sections": [{"id": "s1"}]})
        stored = await store.put("assessments", {"job_id": 7, "title": "Second", "sections": []})

        assert stored == {"job_id": 7, "title": "Second", "sections": []}
        assert await store.count("assessments") == 1
        assert (await store.get("assessments", 7))["title"] == "Second"

    @pytest.mark.asyncio
    async def test_put_requires_key(self, store: CollectionStore) -> None:
        with pytest.raises(ValidationError):
            await store.put("assessments", {"title": "No job"})

    @pytest.mark.asyncio
    async def test_find_one_returns_first_in_key_order(self, store: CollectionStore, seed_candidates) -> None:
        ids = await seed_candidates(["Ann", "Bob", "Cid"], stage="tech")

        found = await store.find_one("candidates", "stage", "tech")

        assert found is not None
        assert found["id"] == ids[0]
        assert await store.find_one("candidates", "stage", "hired") is None

    @pytest.mark.asyncio
    async def test_find_one_unknown_field(self, store: CollectionStore) -> None:
        with pytest.raises(ValidationError):
            await store.find_one("jobs", "salary", 1)

    @pytest.mark.asyncio
    async def test_max_value_and_count(self, store: CollectionStore, seed_jobs) -> None:
        assert await store.max_value("jobs", "order") is None
        assert await store.count("jobs") == 0

        await seed_jobs(["A", "B", "C"])

        assert await store.max_value("jobs", "order") == 2
        assert await store.count("jobs") == 3

    @pytest.mark.asyncio
    async def test_key_fields(self, store: CollectionStore) -> None:
        assert store.key_field("jobs") == "id"
        assert store.key_field("assessments") == "job_id"
        assert set(store.collection_names) == {"jobs", "candidates", "assessments", "assessment_responses"}
