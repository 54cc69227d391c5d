"""Data access layer: the game document store interface and its change feed."""

from shared.dal.game_store import Document, GameStore, assign_path, split_path
from shared.dal.notifier import ChangeNotifier, Subscription

__all__ = [
    "ChangeNotifier",
    "Document",
    "GameStore",
    "Subscription",
    "assign_path",
    "split_path",
]
