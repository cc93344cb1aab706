"""
Account routes.

Authentication lives upstream; these endpoints only open accounts and
report their balances.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from pethunt.config import get_settings
from pethunt.database.dependencies import get_economy, get_owner_id
from pethunt.database.engine import commit_session, get_session
from pethunt.database.models import Account, AccountCreate
from pethunt.services.economy_service import EconomyService

router = APIRouter()


def _account_summary(account: Account, items: dict) -> dict:
    return {
        "id": account.id,
        "username": account.username,
        "level": account.level,
        "xp": account.xp,
        "hunt_tickets": account.hunt_tickets,
        "pet_count": account.pet_count,
        "completed_hunts": account.completed_hunts,
        "inventory": items,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_account(
    request: AccountCreate,
    session: AsyncSession = Depends(get_session),
    economy: EconomyService = Depends(get_economy),
):
    """Create an account with the starting hunt tickets and basic capture tools."""
    settings = get_settings()
    account = await economy.create_account(
        request.username,
        hunt_tickets=settings.STARTING_HUNT_TICKETS,
        basic_tools=settings.STARTING_BASIC_TOOLS,
    )
    items = await economy.item_quantities(account.id)
    await commit_session(session)
    return _account_summary(account, items)


@router.get("/me")
async def get_my_account(
    owner_id: str = Depends(get_owner_id),
    economy: EconomyService = Depends(get_economy),
):
    account = await economy.get_account(owner_id)
    items = await economy.item_quantities(owner_id)
    return _account_summary(account, items)
