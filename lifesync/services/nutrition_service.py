import logging
from typing import List, Optional, Tuple

from lifesync.schemas.entities import FoodCreate, FoodUpdate, MealEntryCreate, MealEntryUpdate
from lifesync.services.base import Record, SyncedService, is_active

logger = logging.getLogger(__name__)


class NutritionService(SyncedService):
    """Food catalogue and meal entries."""

    table_name = "foods"

    @property
    def meals(self):
        return self.mirror.meal_entries

    # Foods

    async def add_food(self, data: FoodCreate) -> Record:
        food = await self._create(data.to_record())
        logger.info(f"Added food {food['id']}: {data.name}")
        self.trigger_sync()
        return food

    async def update_food(self, food_id: str, data: FoodUpdate) -> Optional[Record]:
        updated = await self._update(food_id, data.to_changes())
        if updated:
            self.trigger_sync()
        return updated

    async def delete_food(self, food_id: str) -> bool:
        deleted = await self._soft_delete(food_id)
        if deleted:
            self.trigger_sync()
        return deleted

    async def get_food(self, food_id: str) -> Optional[Record]:
        return await self.table.get(food_id)

    async def list_foods(self) -> List[Record]:
        return sorted(await self._active(), key=lambda food: food["name"])

    async def search_foods(self, query: str) -> List[Record]:
        """Foods whose name contains ``query`` (case-insensitive); all foods for an empty query."""
        foods = await self.list_foods()
        query = query.strip().lower()
        if not query:
            return foods
        return [food for food in foods if query in food["name"].lower()]

    async def get_recent_foods(self, limit: int = 10) -> List[Record]:
        """The last ``limit`` distinct foods used in meals, most recent first."""
        food_ids: List[str] = []
        for entry in await self._entries_newest_first():
            if entry["foodId"] not in food_ids:
                food_ids.append(entry["foodId"])
                if len(food_ids) >= limit:
                    break

        foods = []
        for food_id in food_ids:
            food = await self.get_food(food_id)
            if is_active(food):
                foods.append(food)
        return foods

    async def get_last_quantity_for_food(self, food_id: str) -> Optional[float]:
        for entry in await self._entries_newest_first():
            if entry["foodId"] == food_id:
                return entry["quantityGrams"]
        return None

    # Meal entries

    async def add_meal_entry(self, data: MealEntryCreate) -> Record:
        entry = await self._create(data.to_record(), table=self.meals)
        self.trigger_sync()
        return entry

    async def update_meal_entry(self, entry_id: str, data: MealEntryUpdate) -> Optional[Record]:
        updated = await self._update(entry_id, data.to_changes(), table=self.meals)
        if updated:
            self.trigger_sync()
        return updated

    async def delete_meal_entry(self, entry_id: str) -> bool:
        deleted = await self._soft_delete(entry_id, table=self.meals)
        if deleted:
            self.trigger_sync()
        return deleted

    async def get_meals_for_date(self, date: str) -> List[Tuple[Record, Record]]:
        """(entry, food) pairs for ``date``; entries whose food is unknown are left out."""
        meals = []
        for entry in await self.meals.where("date", date):
            if not is_active(entry):
                continue
            food = await self.get_food(entry["foodId"])
            if food is not None:
                meals.append((entry, food))
        return meals

    async def _entries_newest_first(self) -> List[Record]:
        return sorted(
            await self._active(table=self.meals),
            key=lambda entry: entry["createdAt"],
            reverse=True,
        )
