import asyncio
import pytest
from datetime import datetime, timedelta, timezone

from lifesync.schemas.entities import BookCreate, FoodCreate, FoodUpdate, JapaneseActivityCreate
from lifesync.services import BookService, JapaneseService, NutritionService, WeightService
from lifesync.services.base import create_syncable_entity
from lifesync.sync.engine import LAST_SYNC_KEY, SyncEngine

from tests.conftest import USER_ID


def flashcards(**fields):
    return {
        **create_syncable_entity(),
        "type": "flashcards",
        "durationMinutes": 20,
        "newCards": 20,
        "bookId": None,
        "date": "2024-03-01",
        **fields,
    }


OATS = FoodCreate(name="Oats", calories_per_100g=389, protein_per_100g=16.9, carbs_per_100g=66.3, fat_per_100g=6.9)


async def snapshot(mirror):
    return {name: await mirror.table(name).all() for name in mirror.table_names}


class TestScenarios:
    @pytest.mark.asyncio
    async def test_offline_flashcards_reach_second_device(self, mirror, other_mirror, sync_engine,
                                                         other_sync_engine, remote):
        activity = flashcards()
        await mirror.japanese_activities.insert(activity)
        assert (await mirror.japanese_activities.get(activity["id"]))["pendingSync"] is True

        result = await sync_engine.sync_now(USER_ID)

        assert result.success is True
        assert result.table("japaneseActivities").pushed == 1
        local = await mirror.japanese_activities.get(activity["id"])
        assert local["pendingSync"] is False

        rows = await remote.select_changed("japanese_activities", USER_ID)
        assert len(rows) == 1
        assert rows[0]["id"] == activity["id"]
        assert rows[0]["user_id"] == USER_ID
        assert rows[0]["new_cards"] == 20

        assert await other_sync_engine.get_last_sync_time() is None
        other_result = await other_sync_engine.sync_now(USER_ID)

        assert other_result.success is True
        pulled = await other_mirror.japanese_activities.get(activity["id"])
        assert pulled == {**activity, "pendingSync": False}
        assert pulled == local

    @pytest.mark.asyncio
    async def test_deleted_food_disappears_from_other_device(self, mirror, other_mirror, sync_engine,
                                                             other_sync_engine, remote):
        nutrition = NutritionService(mirror, USER_ID)
        food = await nutrition.add_food(OATS)
        await sync_engine.sync_now(USER_ID)
        await other_sync_engine.sync_now(USER_ID)
        assert await other_mirror.foods.get(food["id"]) is not None

        assert await nutrition.delete_food(food["id"]) is True
        tombstone = await mirror.foods.get(food["id"])
        assert tombstone["deletedAt"] is not None
        assert tombstone["pendingSync"] is True

        result = await sync_engine.sync_now(USER_ID)
        assert result.success is True
        rows = await remote.select_changed("foods", USER_ID)
        assert rows[0]["deleted_at"] is not None

        other_result = await other_sync_engine.sync_now(USER_ID)

        assert other_result.success is True
        assert other_result.table("foods").removed == 1
        assert await other_mirror.foods.get(food["id"]) is None


class TestProperties:
    @pytest.mark.asyncio
    async def test_push_is_idempotent(self, mirror, sync_engine, remote):
        activity = flashcards()
        await mirror.japanese_activities.insert(activity)
        await sync_engine.sync_now(USER_ID)

        # Same record pushed again, as after a crash between upsert and flag clear
        await mirror.japanese_activities.put({**activity, "pendingSync": True})
        result = await sync_engine.sync_now(USER_ID)

        assert result.success is True
        assert result.table("japaneseActivities").pushed == 1
        rows = await remote.select_changed("japanese_activities", USER_ID)
        assert len(rows) == 1
        assert rows[0]["duration_minutes"] == 20

    @pytest.mark.asyncio
    async def test_second_pass_pulls_nothing(self, mirror, sync_engine):
        await mirror.japanese_activities.insert(flashcards())
        await WeightService(mirror, USER_ID).add_or_update_weight(72.5, "2024-03-01")
        await BookService(mirror, USER_ID).add_book(BookCreate(title="Kitchen"))

        first = await sync_engine.sync_now(USER_ID)
        assert first.success is True
        assert first.total_pulled == 3
        before = await snapshot(mirror)

        second = await sync_engine.sync_now(USER_ID)

        assert second.success is True
        assert second.total_pulled == 0
        assert second.total_pushed == 0
        assert await snapshot(mirror) == before

    @pytest.mark.asyncio
    async def test_watermark_is_pass_start_time(self, mirror, remote):
        started = datetime(2030, 1, 1, tzinfo=timezone.utc)
        engine = SyncEngine(mirror, remote, clock=lambda: started)

        result = await engine.sync_now(USER_ID)

        assert result.started_at == started
        assert await engine.get_last_sync_time() == started
        assert await mirror.get_meta(LAST_SYNC_KEY) == started.isoformat()

    @pytest.mark.asyncio
    async def test_watermark_never_moves_back(self, mirror, remote):
        late = datetime(2030, 1, 2, tzinfo=timezone.utc)
        early = datetime(2030, 1, 1, tzinfo=timezone.utc)

        await SyncEngine(mirror, remote, clock=lambda: late).sync_now(USER_ID)
        result = await SyncEngine(mirror, remote, clock=lambda: early).sync_now(USER_ID)

        assert result.success is True
        assert await SyncEngine(mirror, remote).get_last_sync_time() == late

    @pytest.mark.asyncio
    async def test_rows_of_other_users_are_not_pulled(self, mirror, other_mirror, sync_engine, other_sync_engine):
        await mirror.japanese_activities.insert(flashcards())
        await sync_engine.sync_now(USER_ID)

        result = await other_sync_engine.sync_now("someone-else")

        assert result.total_pulled == 0
        assert await other_mirror.japanese_activities.all() == []


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_rejected_record_stays_pending(self, mirror, flaky_remote):
        engine = SyncEngine(mirror, flaky_remote)
        good, bad = flashcards(), flashcards(durationMinutes=5)
        await mirror.japanese_activities.insert(good)
        await mirror.japanese_activities.insert(bad)
        flaky_remote.rejected_ids.add(bad["id"])

        result = await engine.sync_now(USER_ID)

        assert result.success is True
        report = result.table("japaneseActivities")
        assert report.pushed == 1
        assert report.failed == 1
        assert (await mirror.japanese_activities.get(good["id"]))["pendingSync"] is False
        assert (await mirror.japanese_activities.get(bad["id"]))["pendingSync"] is True

        flaky_remote.rejected_ids.clear()
        retry = await engine.sync_now(USER_ID)
        assert retry.table("japaneseActivities").pushed == 1
        assert await mirror.japanese_activities.query_pending() == []

    @pytest.mark.asyncio
    async def test_malformed_record_does_not_block_others(self, mirror, sync_engine, remote):
        malformed = {**create_syncable_entity(), "completed": False, "totalReadingTimeMinutes": 0}
        await mirror.books.insert(malformed)
        activity = flashcards()
        await mirror.japanese_activities.insert(activity)

        result = await sync_engine.sync_now(USER_ID)

        assert result.success is True
        assert result.table("books").failed == 1
        assert (await mirror.books.get(malformed["id"]))["pendingSync"] is True
        assert (await mirror.japanese_activities.get(activity["id"]))["pendingSync"] is False
        assert await remote.select_changed("books", USER_ID) == []

    @pytest.mark.asyncio
    async def test_unreachable_table_fails_pass_but_not_other_tables(self, mirror, flaky_remote):
        engine = SyncEngine(mirror, flaky_remote)
        food = await NutritionService(mirror, USER_ID).add_food(OATS)
        activity = flashcards()
        await mirror.japanese_activities.insert(activity)
        flaky_remote.down_tables.add("foods")

        result = await engine.sync_now(USER_ID)

        assert result.success is False
        assert "foods" in result.error
        assert result.table("foods").error is not None
        assert result.table("japaneseActivities").error is None
        assert (await mirror.japanese_activities.get(activity["id"]))["pendingSync"] is False
        assert (await mirror.foods.get(food["id"]))["pendingSync"] is True
        assert await engine.get_last_sync_time() is None

    @pytest.mark.asyncio
    async def test_transport_failure_reports_and_keeps_watermark(self, mirror, flaky_remote):
        engine = SyncEngine(mirror, flaky_remote)
        activity = flashcards()
        await mirror.japanese_activities.insert(activity)
        flaky_remote.down_tables.update({
            "books", "japanese_activities", "foods", "meal_entries", "sport_activities", "weight_entries",
        })

        result = await engine.sync_now(USER_ID)

        assert result.success is False
        assert result.error
        assert await engine.get_last_sync_time() is None
        assert (await mirror.japanese_activities.get(activity["id"]))["pendingSync"] is True

    @pytest.mark.asyncio
    async def test_unexpected_errors_do_not_escape(self, mirror, flaky_remote):
        flaky_remote.broken = True
        result = await SyncEngine(mirror, flaky_remote).sync_now(USER_ID)

        assert result.success is False
        assert "remote adapter bug" in result.error

    @pytest.mark.asyncio
    async def test_pass_timeout(self, mirror, flaky_remote):
        flaky_remote.delay = 1.0
        engine = SyncEngine(mirror, flaky_remote, pass_timeout=0.05)

        result = await engine.sync_now(USER_ID)

        assert result.success is False
        assert "timed out" in result.error
        assert await engine.get_last_sync_time() is None

    @pytest.mark.asyncio
    async def test_pull_keeps_unpushed_local_edit(self, mirror, other_mirror, flaky_remote, other_sync_engine):
        engine = SyncEngine(mirror, flaky_remote)
        nutrition = NutritionService(mirror, USER_ID)
        food = await nutrition.add_food(OATS)
        await engine.sync_now(USER_ID)
        await other_sync_engine.sync_now(USER_ID)

        await NutritionService(other_mirror, USER_ID).update_food(food["id"], FoodUpdate(name="Rolled oats"))
        await other_sync_engine.sync_now(USER_ID)

        await nutrition.update_food(food["id"], FoodUpdate(name="Steel cut oats"))
        flaky_remote.rejected_ids.add(food["id"])
        result = await engine.sync_now(USER_ID)

        assert result.table("foods").skipped == 1
        local = await mirror.foods.get(food["id"])
        assert local["name"] == "Steel cut oats"
        assert local["pendingSync"] is True

    @pytest.mark.asyncio
    async def test_row_with_unparseable_timestamp_is_skipped(self, mirror, flaky_remote):
        engine = SyncEngine(mirror, flaky_remote)
        good = flashcards()
        await mirror.japanese_activities.insert(good)
        await engine.sync_now(USER_ID)
        flaky_remote.extra_rows["japanese_activities"] = [{
            "id": "corrupt-row",
            "user_id": USER_ID,
            "created_at": "2024-03-01T12:00:00+00:00",
            "updated_at": "not-a-date",
            "deleted_at": None,
            "type": "flashcards",
            "duration_minutes": 10,
            "new_cards": None,
            "book_id": None,
            "date": "2024-03-01",
        }]

        result = await engine.sync_now(USER_ID)

        assert result.success is True
        assert result.table("japaneseActivities").skipped == 1
        assert await mirror.japanese_activities.get("corrupt-row") is None
        rows = await mirror.japanese_activities.all()
        assert [row["id"] for row in rows] == [good["id"]]
        assert isinstance(rows[0]["updatedAt"], datetime)



class TestScheduling:
    @pytest.mark.asyncio
    async def test_sync_needed_when_never_synced(self, sync_engine):
        assert await sync_engine.is_sync_needed() is True

    @pytest.mark.asyncio
    async def test_sync_needed_after_24_hours(self, sync_engine):
        result = await sync_engine.sync_now(USER_ID)
        assert await sync_engine.is_sync_needed() is False
        assert await sync_engine.is_sync_needed(now=result.started_at + timedelta(hours=23)) is False
        assert await sync_engine.is_sync_needed(now=result.started_at + timedelta(hours=24)) is True

    @pytest.mark.asyncio
    async def test_corrupt_watermark_means_full_pull(self, mirror, sync_engine):
        await mirror.set_meta(LAST_SYNC_KEY, "garbage")
        assert await sync_engine.get_last_sync_time() is None
        assert await sync_engine.is_sync_needed() is True

    @pytest.mark.asyncio
    async def test_concurrent_passes_are_serialized(self, mirror, sync_engine, remote):
        await mirror.japanese_activities.insert(flashcards())

        first, second = await asyncio.gather(sync_engine.sync_now(USER_ID), sync_engine.sync_now(USER_ID))

        assert first.success and second.success
        assert first.total_pushed + second.total_pushed == 1
        assert len(await remote.select_changed("japanese_activities", USER_ID)) == 1

    @pytest.mark.asyncio
    async def test_reading_session_syncs_with_its_book(self, mirror, other_mirror, sync_engine, other_sync_engine):
        book = await BookService(mirror, USER_ID).add_book(BookCreate(title="Kitchen"))
        await JapaneseService(mirror, USER_ID).add_activity(JapaneseActivityCreate(
            type="reading", duration_minutes=30, book_id=book["id"], date="2024-03-01",
        ))

        await sync_engine.sync_now(USER_ID)
        await other_sync_engine.sync_now(USER_ID)

        pulled = await other_mirror.books.get(book["id"])
        assert pulled["totalReadingTimeMinutes"] == 30
        assert pulled["startedAt"] is not None
        assert len(await other_mirror.japanese_activities.active()) == 1
