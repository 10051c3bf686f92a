import pytest
from datetime import datetime, timezone

from lifesync.services.base import create_syncable_entity, mark_for_sync


def food(name="Rice", **fields):
    return {
        **create_syncable_entity(),
        "name": name,
        "caloriesPer100g": 130.0,
        "proteinPer100g": 2.7,
        "carbsPer100g": 28.0,
        "fatPer100g": 0.3,
        **fields,
    }


class TestLocalTable:
    @pytest.mark.asyncio
    async def test_insert_and_get(self, mirror):
        record = food()
        await mirror.foods.insert(record)

        stored = await mirror.foods.get(record["id"])
        assert stored == record
        assert stored["createdAt"].tzinfo is not None

    @pytest.mark.asyncio
    async def test_insert_rejects_duplicate_id(self, mirror):
        record = food()
        await mirror.foods.insert(record)
        with pytest.raises(ValueError):
            await mirror.foods.insert(record)

    @pytest.mark.asyncio
    async def test_insert_requires_id(self, mirror):
        with pytest.raises(ValueError):
            await mirror.foods.insert({"name": "No id"})

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, mirror):
        assert await mirror.foods.get("missing") is None

    @pytest.mark.asyncio
    async def test_tables_are_isolated(self, mirror):
        record = food()
        await mirror.foods.insert(record)
        await mirror.books.insert({**record, "title": "Same id, other table"})

        assert len(await mirror.foods.all()) == 1
        assert (await mirror.books.get(record["id"]))["title"] == "Same id, other table"


class TestSyncPrimitives:
    @pytest.mark.asyncio
    async def test_query_pending_includes_tombstones(self, mirror):
        live = food("Live")
        tombstone = food("Gone", deletedAt=datetime.now(timezone.utc))
        synced = food("Synced", pendingSync=False)
        for record in (live, tombstone, synced):
            await mirror.foods.insert(record)

        pending_ids = {record["id"] for record in await mirror.foods.query_pending()}
        assert pending_ids == {live["id"], tombstone["id"]}

    @pytest.mark.asyncio
    async def test_clear_pending_flag(self, mirror):
        record = food()
        await mirror.foods.insert(record)

        await mirror.foods.clear_pending_flag(record["id"])

        assert (await mirror.foods.get(record["id"]))["pendingSync"] is False
        assert await mirror.foods.query_pending() == []

    @pytest.mark.asyncio
    async def test_clear_pending_flag_missing_record_is_noop(self, mirror):
        await mirror.foods.clear_pending_flag("missing")
        assert await mirror.foods.all() == []

    @pytest.mark.asyncio
    async def test_clear_pending_flag_keeps_records_edited_since(self, mirror):
        record = food()
        await mirror.foods.insert(record)
        edited = mark_for_sync({**record, "name": "Brown rice"})
        await mirror.foods.put(edited)

        await mirror.foods.clear_pending_flag(record["id"], if_updated_at=record["updatedAt"])
        assert (await mirror.foods.get(record["id"]))["pendingSync"] is True

        await mirror.foods.clear_pending_flag(record["id"], if_updated_at=edited["updatedAt"])
        assert (await mirror.foods.get(record["id"]))["pendingSync"] is False

    @pytest.mark.asyncio
    async def test_clear_pending_flag_compares_instants(self, mirror):
        record = food(updatedAt="2024-03-01T14:00:00+02:00")
        await mirror.foods.insert(record)

        await mirror.foods.clear_pending_flag(
            record["id"], if_updated_at=datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        )

        stored = await mirror.foods.get(record["id"])
        assert stored["pendingSync"] is False
        assert stored["updatedAt"] == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_unparseable_timestamp_is_not_stored(self, mirror):
        with pytest.raises(ValueError):
            await mirror.foods.insert(food(updatedAt="not-a-date"))
        assert await mirror.foods.all() == []


    @pytest.mark.asyncio
    async def test_bulk_upsert_inserts_and_replaces(self, mirror):
        existing = food("Old name")
        await mirror.foods.insert(existing)

        new = food("New food", pendingSync=False)
        replaced = {**existing, "name": "New name", "pendingSync": False}
        count = await mirror.foods.bulk_upsert([new, replaced])

        assert count == 2
        assert (await mirror.foods.get(existing["id"]))["name"] == "New name"
        assert (await mirror.foods.get(new["id"]))["pendingSync"] is False
        assert len(await mirror.foods.all()) == 2

    @pytest.mark.asyncio
    async def test_bulk_upsert_stores_pending_flag_as_given(self, mirror):
        record = food(pendingSync=True)
        await mirror.foods.bulk_upsert([record])
        assert len(await mirror.foods.query_pending()) == 1

    @pytest.mark.asyncio
    async def test_bulk_upsert_empty(self, mirror):
        assert await mirror.foods.bulk_upsert([]) == 0

    @pytest.mark.asyncio
    async def test_delete_by_ids_ignores_unknown_ids(self, mirror):
        keep, drop = food("Keep"), food("Drop")
        await mirror.foods.insert(keep)
        await mirror.foods.insert(drop)

        removed = await mirror.foods.delete_by_ids([drop["id"], "unknown"])

        assert removed == 1
        assert await mirror.foods.get(drop["id"]) is None
        assert await mirror.foods.get(keep["id"]) is not None
        assert await mirror.foods.delete_by_ids([]) == 0


class TestQueries:
    @pytest.mark.asyncio
    async def test_where_by_field_and_boolean(self, mirror):
        await mirror.weight_entries.insert({**create_syncable_entity(), "weightKg": 70.0, "date": "2024-03-01"})
        await mirror.weight_entries.insert({**create_syncable_entity(), "weightKg": 71.0, "date": "2024-03-02",
                                            "pendingSync": False})

        by_date = await mirror.weight_entries.where("date", "2024-03-02")
        assert [entry["weightKg"] for entry in by_date] == [71.0]

        pending = await mirror.weight_entries.where("pendingSync", True)
        assert [entry["weightKg"] for entry in pending] == [70.0]

    @pytest.mark.asyncio
    async def test_active_excludes_tombstones(self, mirror):
        await mirror.foods.insert(food("Live"))
        await mirror.foods.insert(food("Gone", deletedAt=datetime.now(timezone.utc)))

        assert [record["name"] for record in await mirror.foods.active()] == ["Live"]
        assert len(await mirror.foods.filter(lambda record: record["deletedAt"] is not None)) == 1


class TestLocalMirror:
    def test_unknown_table(self, mirror):
        with pytest.raises(KeyError):
            mirror.table("nope")

    def test_table_names(self, mirror):
        assert "weightEntries" in mirror.table_names
        assert len(mirror.table_names) == 6

    @pytest.mark.asyncio
    async def test_meta(self, mirror):
        assert await mirror.get_meta("lastSyncedAt") is None
        await mirror.set_meta("lastSyncedAt", "2024-03-01T00:00:00+00:00")
        await mirror.set_meta("lastSyncedAt", "2024-03-02T00:00:00+00:00")
        assert await mirror.get_meta("lastSyncedAt") == "2024-03-02T00:00:00+00:00"
