"""Database package for the pet hunting backend."""
from pethunt.database.engine import (
    get_engine,
    get_session,
    init_db,
    close_db,
)
from pethunt.database.models import (
    Account,
    InventoryItem,
    Pet,
    HuntSessionRecord,
    HuntHistory,
    QuestProgress,
)

__all__ = [
    "get_engine",
    "get_session",
    "init_db",
    "close_db",
    "Account",
    "InventoryItem",
    "Pet",
    "HuntSessionRecord",
    "HuntHistory",
    "QuestProgress",
]
