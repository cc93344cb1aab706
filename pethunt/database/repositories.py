"""
Repository pattern for database access.

Each repository wraps one request-scoped AsyncSession and maps rows to the
core dataclasses, so the hunt and pet engines never see ORM objects.
Driver failures surface as StorageError; lost races as ConflictError.
"""
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pethunt.core.encounters import WildEncounter
from pethunt.core.errors import ConflictError, StorageError
from pethunt.core.hunt_session import HuntSession, HuntSettlement
from pethunt.core.pets import OwnedPet
from pethunt.core.progression import IndividualModifiers
from pethunt.database.models import (
    Account,
    HuntHistory,
    HuntSessionRecord,
    InventoryItem,
    Pet,
    QuestProgress,
    utc_now,
)

logger = logging.getLogger(__name__)


def _storage_error(operation: str, error: Exception) -> StorageError:
    logger.error("Storage failure during %s: %s", operation, error)
    return StorageError(f"Storage failure during {operation}", operation=operation)


# =============================================================================
# ACCOUNT REPOSITORY
# =============================================================================

class AccountRepository:
    """Repository for Account rows and their counters."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, username: str, hunt_tickets: int = 0) -> Account:
        account = Account(username=username, hunt_tickets=hunt_tickets)
        self.session.add(account)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Username {username!r} is already taken", details={"username": username}
            ) from e
        except SQLAlchemyError as e:
            raise _storage_error("create_account", e) from e
        return account

    async def get_by_id(self, account_id: str, for_update: bool = False) -> Optional[Account]:
        """Load an account; `for_update` row-locks it where the backend supports it."""
        statement = select(Account).where(Account.id == account_id)
        if for_update:
            statement = statement.with_for_update().execution_options(populate_existing=True)
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            raise _storage_error("get_account", e) from e
        return result.scalar_one_or_none()

    async def spend_hunt_ticket(self, account_id: str) -> bool:
        """Decrement tickets if at least one is left. Returns False otherwise."""
        return await self._adjust(
            "spend_hunt_ticket",
            update(Account)
            .where(Account.id == account_id, Account.hunt_tickets >= 1)
            .values(hunt_tickets=Account.hunt_tickets - 1, updated_at=utc_now()),
        )

    async def increment_counter(self, account_id: str, counter: str, amount: int = 1) -> bool:
        column = getattr(Account, counter)
        return await self._adjust(
            f"increment_{counter}",
            update(Account)
            .where(Account.id == account_id)
            .values({counter: column + amount, "updated_at": utc_now()}),
        )

    async def set_progress(
        self,
        account_id: str,
        level: int,
        xp: int,
        expected_level: int,
        expected_xp: int,
    ) -> bool:
        """Move the XP track only if it still reads (expected_level, expected_xp)."""
        return await self._adjust(
            "set_account_progress",
            update(Account)
            .where(
                Account.id == account_id,
                Account.level == expected_level,
                Account.xp == expected_xp,
            )
            .values(level=level, xp=xp, updated_at=utc_now()),
        )

    async def _adjust(self, operation: str, statement) -> bool:
        try:
            result = await self.session.execute(
                statement.execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            raise _storage_error(operation, e) from e
        return result.rowcount > 0


# =============================================================================
# INVENTORY REPOSITORY
# =============================================================================

class InventoryRepository:
    """Repository for stackable inventory items."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def quantity(self, owner_id: str, item_id: str) -> int:
        try:
            result = await self.session.execute(
                select(InventoryItem.quantity).where(
                    InventoryItem.owner_id == owner_id,
                    InventoryItem.item_id == item_id,
                )
            )
        except SQLAlchemyError as e:
            raise _storage_error("get_item_quantity", e) from e
        return result.scalar_one_or_none() or 0

    async def quantities(self, owner_id: str) -> Dict[str, int]:
        try:
            result = await self.session.execute(
                select(InventoryItem.item_id, InventoryItem.quantity).where(
                    InventoryItem.owner_id == owner_id,
                    InventoryItem.quantity > 0,
                )
            )
        except SQLAlchemyError as e:
            raise _storage_error("list_items", e) from e
        return {item_id: quantity for item_id, quantity in result.all()}

    async def add(self, owner_id: str, item_id: str, amount: int) -> int:
        """Add to a stack, creating it if needed. Returns the new quantity."""
        try:
            result = await self.session.execute(
                select(InventoryItem).where(
                    InventoryItem.owner_id == owner_id,
                    InventoryItem.item_id == item_id,
                )
            )
            item = result.scalar_one_or_none()
            if item is None:
                item = InventoryItem(owner_id=owner_id, item_id=item_id, quantity=0)
                self.session.add(item)
            item.quantity += amount
            item.updated_at = utc_now()
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Concurrent update of {item_id}", details={"item_id": item_id}) from e
        except SQLAlchemyError as e:
            raise _storage_error("add_item", e) from e
        return item.quantity

    async def consume(self, owner_id: str, item_id: str, amount: int = 1) -> bool:
        """Decrement a stack only if enough is held. Returns False otherwise."""
        try:
            result = await self.session.execute(
                update(InventoryItem)
                .where(
                    InventoryItem.owner_id == owner_id,
                    InventoryItem.item_id == item_id,
                    InventoryItem.quantity >= amount,
                )
                .values(quantity=InventoryItem.quantity - amount, updated_at=utc_now())
                .execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            raise _storage_error("consume_item", e) from e
        return result.rowcount > 0


# =============================================================================
# PET REPOSITORY
# =============================================================================

class PetRepository:
    """
    Repository for owned pets.

    Updates are compare-and-set on `version`, like hunt session saves, so a
    pet loaded before another request's write can never overwrite it.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_pet(self, pet: OwnedPet) -> OwnedPet:
        row = Pet(id=pet.id, owner_id=pet.owner_id, version=pet.version, **self._row_values(pet))
        self.session.add(row)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            raise _storage_error("create_pet", e) from e
        return pet

    async def get_pet(self, pet_id: str, for_update: bool = False) -> Optional[OwnedPet]:
        statement = select(Pet).where(Pet.id == pet_id).execution_options(populate_existing=True)
        if for_update:
            statement = statement.with_for_update()
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            raise _storage_error("get_pet", e) from e
        row = result.scalar_one_or_none()
        return self._to_pet(row) if row else None

    async def list_pets(self, owner_id: str, limit: int = 100) -> List[OwnedPet]:
        try:
            result = await self.session.execute(
                select(Pet)
                .where(Pet.owner_id == owner_id)
                .order_by(Pet.created_at.desc())
                .limit(limit)
            )
        except SQLAlchemyError as e:
            raise _storage_error("list_pets", e) from e
        return [self._to_pet(row) for row in result.scalars().all()]

    async def count_pets(self, owner_id: str) -> int:
        try:
            result = await self.session.execute(
                select(func.count()).select_from(Pet).where(Pet.owner_id == owner_id)
            )
        except SQLAlchemyError as e:
            raise _storage_error("count_pets", e) from e
        return result.scalar_one()

    async def update_pet(self, pet: OwnedPet) -> OwnedPet:
        """Write progression and stats back; bumps `pet.version` on success."""
        try:
            result = await self.session.execute(
                update(Pet)
                .where(Pet.id == pet.id, Pet.version == pet.version)
                .values(version=pet.version + 1, updated_at=utc_now(), **self._row_values(pet))
                .execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            raise _storage_error("update_pet", e) from e

        if result.rowcount == 0:
            raise ConflictError(
                "Pet was modified concurrently",
                details={"pet_id": pet.id, "version": pet.version},
            )
        pet.version += 1
        return pet

    @staticmethod
    def _row_values(pet: OwnedPet) -> Dict[str, Any]:
        return {
            "species": pet.species,
            "nickname": pet.nickname,
            "rarity": pet.rarity,
            "level": pet.level,
            "xp": pet.xp,
            "evolution_stage": pet.evolution_stage,
            "hp": pet.hp,
            "max_hp": pet.max_hp,
            "attack": pet.attack,
            "defense": pet.defense,
            "speed": pet.speed,
            "iv_hp": pet.individual_modifiers.hp,
            "iv_attack": pet.individual_modifiers.attack,
            "iv_defense": pet.individual_modifiers.defense,
            "iv_speed": pet.individual_modifiers.speed,
        }

    @staticmethod
    def _to_pet(row: Pet) -> OwnedPet:
        return OwnedPet(
            id=row.id,
            owner_id=row.owner_id,
            species=row.species,
            rarity=row.rarity,
            level=row.level,
            individual_modifiers=IndividualModifiers(
                hp=row.iv_hp,
                attack=row.iv_attack,
                defense=row.iv_defense,
                speed=row.iv_speed,
            ),
            hp=row.hp,
            max_hp=row.max_hp,
            attack=row.attack,
            defense=row.defense,
            speed=row.speed,
            xp=row.xp,
            evolution_stage=row.evolution_stage,
            nickname=row.nickname,
            version=row.version,
        )


# =============================================================================
# HUNT SESSION REPOSITORY
# =============================================================================

class HuntSessionRepository:
    """
    Session store for the hunt manager.

    Saves are compare-and-set on `version`; the unique owner_id column is the
    last line of defence against two sessions for one owner.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_owner(self, owner_id: str) -> Optional[HuntSession]:
        return await self._fetch(HuntSessionRecord.owner_id == owner_id)

    async def get_by_id(self, session_id: str) -> Optional[HuntSession]:
        return await self._fetch(HuntSessionRecord.id == session_id)

    async def create(self, hunt: HuntSession) -> HuntSession:
        record = HuntSessionRecord(
            id=hunt.id,
            owner_id=hunt.owner_id,
            region_id=hunt.region_id,
            moves_remaining=hunt.moves_remaining,
            encounters=[e.to_dict() for e in hunt.encounters],
            version=hunt.version,
        )
        if hunt.created_at:
            record.created_at = hunt.created_at
        self.session.add(record)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                "You already have an active hunt session",
                details={"owner_id": hunt.owner_id},
            ) from e
        except SQLAlchemyError as e:
            raise _storage_error("create_hunt_session", e) from e
        return hunt

    async def save(self, hunt: HuntSession) -> HuntSession:
        """Persist moves and encounters; bumps `hunt.version` on success."""
        try:
            result = await self.session.execute(
                update(HuntSessionRecord)
                .where(
                    HuntSessionRecord.id == hunt.id,
                    HuntSessionRecord.version == hunt.version,
                )
                .values(
                    moves_remaining=hunt.moves_remaining,
                    encounters=[e.to_dict() for e in hunt.encounters],
                    version=hunt.version + 1,
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            raise _storage_error("save_hunt_session", e) from e

        if result.rowcount == 0:
            raise ConflictError(
                "Hunt session was modified concurrently",
                details={"session_id": hunt.id, "version": hunt.version},
            )
        hunt.version += 1
        return hunt

    async def delete(self, hunt: HuntSession) -> None:
        try:
            await self.session.execute(
                delete(HuntSessionRecord)
                .where(HuntSessionRecord.id == hunt.id)
                .execution_options(synchronize_session="fetch")
            )
        except SQLAlchemyError as e:
            raise _storage_error("delete_hunt_session", e) from e

    async def _fetch(self, condition) -> Optional[HuntSession]:
        try:
            result = await self.session.execute(
                select(HuntSessionRecord)
                .where(condition)
                .execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise _storage_error("get_hunt_session", e) from e
        record = result.scalar_one_or_none()
        if record is None:
            return None
        return HuntSession(
            id=record.id,
            owner_id=record.owner_id,
            region_id=record.region_id,
            moves_remaining=record.moves_remaining,
            encounters=[WildEncounter.from_dict(e) for e in record.encounters or []],
            version=record.version,
            created_at=record.created_at,
        )


# =============================================================================
# HUNT HISTORY REPOSITORY
# =============================================================================

class HuntHistoryRepository:
    """Hunt recorder: one row per settled hunt."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record_hunt(self, settlement: HuntSettlement) -> HuntHistory:
        entry = HuntHistory(
            owner_id=settlement.owner_id,
            session_id=settlement.session_id,
            region_id=settlement.region_id,
            pets_caught=settlement.pets_caught,
            total_encounters=settlement.total_encounters,
            moves_forfeited=settlement.moves_forfeited,
            auto_settled=settlement.auto_settled,
        )
        self.session.add(entry)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            raise _storage_error("record_hunt", e) from e
        return entry


# =============================================================================
# QUEST PROGRESS REPOSITORY
# =============================================================================

class QuestProgressRepository:
    """Per-owner quest counters."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def increment(self, owner_id: str, event_type: str, amount: int) -> int:
        try:
            result = await self.session.execute(
                select(QuestProgress).where(
                    QuestProgress.owner_id == owner_id,
                    QuestProgress.event_type == event_type,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = QuestProgress(owner_id=owner_id, event_type=event_type, progress=0)
                self.session.add(row)
            row.progress += amount
            row.updated_at = utc_now()
            await self.session.flush()
        except SQLAlchemyError as e:
            raise _storage_error("increment_quest_progress", e) from e
        return row.progress

    async def get_progress(self, owner_id: str) -> Dict[str, int]:
        try:
            result = await self.session.execute(
                select(QuestProgress.event_type, QuestProgress.progress).where(
                    QuestProgress.owner_id == owner_id
                )
            )
        except SQLAlchemyError as e:
            raise _storage_error("get_quest_progress", e) from e
        return {event_type: progress for event_type, progress in result.all()}
