"""
Mutation services: optimistic local writes followed by a debounced sync.
"""

from lifesync.services.base import create_syncable_entity, mark_for_sync
from lifesync.services.book_service import BookService
from lifesync.services.japanese_service import JapaneseService
from lifesync.services.nutrition_service import NutritionService
from lifesync.services.sport_service import SportService
from lifesync.services.weight_service import WeightService
from lifesync.services.sync_service import SyncCoordinator

__all__ = [
    "create_syncable_entity",
    "mark_for_sync",
    "BookService",
    "JapaneseService",
    "NutritionService",
    "SportService",
    "WeightService",
    "SyncCoordinator",
]
