"""
FastAPI dependencies for database access and services.

Repositories share the request's session. The hunt manager and pet service
commit it themselves before releasing the owner lock. Static config and
the lock registry are process-wide.
"""
from functools import partial
import random

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from pethunt.config import get_settings
from pethunt.core.errors import ValidationError
from pethunt.core.game_data import GameConfig
from pethunt.core.hunt_session import HuntSessionManager, get_session_locks
from pethunt.database.engine import commit_session, get_session
from pethunt.database.repositories import (
    AccountRepository,
    HuntHistoryRepository,
    HuntSessionRepository,
    InventoryRepository,
    PetRepository,
    QuestProgressRepository,
)
from pethunt.services.config_loader import get_game_config
from pethunt.services.economy_service import EconomyService
from pethunt.services.pet_service import PetService
from pethunt.services.quest_notifier import QuestNotifier


async def get_owner_id(x_owner_id: str = Header(..., alias="X-Owner-Id")) -> str:
    """Owner identity supplied by the upstream auth layer."""
    owner_id = x_owner_id.strip()
    if not owner_id:
        raise ValidationError("X-Owner-Id", "Owner id header must not be empty")
    return owner_id


def get_rng() -> random.Random:
    """Fresh random source per request."""
    return random.Random()


async def get_config() -> GameConfig:
    return get_game_config()


async def get_pet_repo(
    session: AsyncSession = Depends(get_session)
) -> PetRepository:
    return PetRepository(session)


async def get_hunt_session_repo(
    session: AsyncSession = Depends(get_session)
) -> HuntSessionRepository:
    return HuntSessionRepository(session)


async def get_economy(
    session: AsyncSession = Depends(get_session)
) -> EconomyService:
    return EconomyService(AccountRepository(session), InventoryRepository(session))


async def get_quest_notifier(
    session: AsyncSession = Depends(get_session)
) -> QuestNotifier:
    return QuestNotifier(QuestProgressRepository(session))


async def get_hunt_manager(
    session: AsyncSession = Depends(get_session),
    config: GameConfig = Depends(get_config),
    economy: EconomyService = Depends(get_economy),
    pets: PetRepository = Depends(get_pet_repo),
    sessions: HuntSessionRepository = Depends(get_hunt_session_repo),
    notifier: QuestNotifier = Depends(get_quest_notifier),
    rng: random.Random = Depends(get_rng),
) -> HuntSessionManager:
    """Hunt manager bound to this request's stores."""
    settings = get_settings()
    return HuntSessionManager(
        game_config=config,
        session_store=sessions,
        economy=economy,
        pet_store=pets,
        hunt_recorder=HuntHistoryRepository(session),
        quest_notifier=notifier,
        rng=rng,
        move_budget=settings.HUNT_MOVE_BUDGET,
        encounter_chance=settings.ENCOUNTER_CHANCE,
        max_pets=settings.MAX_PETS_PER_OWNER,
        locks=get_session_locks(),
        commit=partial(commit_session, session),
    )


async def get_pet_service(
    session: AsyncSession = Depends(get_session),
    config: GameConfig = Depends(get_config),
    economy: EconomyService = Depends(get_economy),
    pets: PetRepository = Depends(get_pet_repo),
    notifier: QuestNotifier = Depends(get_quest_notifier),
) -> PetService:
    return PetService(
        game_config=config,
        pet_store=pets,
        economy=economy,
        quest_notifier=notifier,
        locks=get_session_locks(),
        commit=partial(commit_session, session),
    )
