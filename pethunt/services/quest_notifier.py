"""
Quest progress notifier.

Bumps the owner's counter for a quest event type. Callers treat this as
best effort: the hunt manager and pet service log and drop any failure.

Each bump runs in its own SAVEPOINT on the request's session, so a failed
write is undone on its own and never poisons the enclosing transaction.
"""
import logging

from pethunt.database.repositories import QuestProgressRepository

logger = logging.getLogger(__name__)


# Event types raised outside the hunt manager
EVENT_WIN_BATTLE = "win_battles"
EVENT_LEVEL_UP = "level_up_pet"
EVENT_EVOLVE = "evolve_pet"


class QuestNotifier:
    """Records quest progress events."""

    def __init__(self, progress: QuestProgressRepository):
        self.progress = progress

    async def notify_progress(self, owner_id: str, event_type: str, amount: int = 1) -> int:
        if amount <= 0:
            return 0
        async with self.progress.session.begin_nested():
            total = await self.progress.increment(owner_id, event_type, amount)
        logger.debug("Quest progress %s for %s is now %d", event_type, owner_id, total)
        return total
