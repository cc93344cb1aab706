"""
Account economy: hunt tickets, capture tools, evolution items and the
account XP track.

This is the `economy` collaborator the hunt manager and pet service call.
Every decrement is a conditional update, so a balance never goes negative
even when two requests race.
"""
import logging
from typing import Dict

from pethunt.core.capture import TOOL_BASIC, normalize_tool
from pethunt.core.errors import ConflictError, InsufficientResourceError, NotFoundError
from pethunt.core.progression import AccountLevelResult, apply_account_xp
from pethunt.database.models import Account
from pethunt.database.repositories import AccountRepository, InventoryRepository

logger = logging.getLogger(__name__)


class EconomyService:
    """Wallet operations for one request's database session."""

    def __init__(self, accounts: AccountRepository, inventory: InventoryRepository):
        self.accounts = accounts
        self.inventory = inventory

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    async def create_account(
        self,
        username: str,
        hunt_tickets: int = 0,
        basic_tools: int = 0,
    ) -> Account:
        """Open an account with its starting tickets and basic capture tools."""
        account = await self.accounts.create(username, hunt_tickets=hunt_tickets)
        if basic_tools > 0:
            await self.inventory.add(account.id, TOOL_BASIC, basic_tools)
        logger.info("Account %s (%s) created", account.id, username)
        return account

    async def get_account(self, owner_id: str) -> Account:
        account = await self.accounts.get_by_id(owner_id)
        if account is None:
            raise NotFoundError("Account", owner_id)
        return account

    async def get_account_level(self, owner_id: str) -> int:
        return (await self.get_account(owner_id)).level

    async def grant_account_xp(self, owner_id: str, xp_gained: int) -> AccountLevelResult:
        """
        Credit XP to the account track.

        The row is locked for the read, and the write only lands if the track
        still holds the values the result was computed from.
        """
        account = await self.accounts.get_by_id(owner_id, for_update=True)
        if account is None:
            raise NotFoundError("Account", owner_id)
        result = apply_account_xp(account.level, account.xp, xp_gained)
        updated = await self.accounts.set_progress(
            owner_id,
            result.new_level,
            result.remaining_xp,
            expected_level=account.level,
            expected_xp=account.xp,
        )
        if not updated:
            raise ConflictError(
                "Account progress was modified concurrently",
                details={"owner_id": owner_id},
            )
        if result.leveled_up:
            logger.info("Account %s reached level %d", owner_id, result.new_level)
        return result

    # =========================================================================
    # HUNT TICKETS
    # =========================================================================

    async def has_hunt_ticket(self, owner_id: str) -> bool:
        return (await self.get_account(owner_id)).hunt_tickets > 0

    async def consume_hunt_ticket(self, owner_id: str) -> None:
        if not await self.accounts.spend_hunt_ticket(owner_id):
            raise InsufficientResourceError("hunt tickets")

    # =========================================================================
    # ITEMS
    # =========================================================================

    async def tool_count(self, owner_id: str, tool: str) -> int:
        return await self.inventory.quantity(owner_id, normalize_tool(tool))

    async def consume_tool(self, owner_id: str, tool: str) -> None:
        tool = normalize_tool(tool)
        if not await self.inventory.consume(owner_id, tool):
            raise InsufficientResourceError(f"{tool} capture tools")

    async def item_quantities(self, owner_id: str) -> Dict[str, int]:
        return await self.inventory.quantities(owner_id)

    async def consume_item(self, owner_id: str, item_id: str) -> None:
        if not await self.inventory.consume(owner_id, item_id):
            raise InsufficientResourceError(item_id)

    async def grant_item(self, owner_id: str, item_id: str, amount: int = 1) -> int:
        return await self.inventory.add(owner_id, item_id, amount)

    # =========================================================================
    # COUNTERS
    # =========================================================================

    async def increment_pet_count(self, owner_id: str) -> None:
        await self.accounts.increment_counter(owner_id, "pet_count")

    async def increment_completed_hunts(self, owner_id: str) -> None:
        await self.accounts.increment_counter(owner_id, "completed_hunts")
