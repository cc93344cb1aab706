"""
Pet progression service.

Applies battle results (pet XP, account XP, current hp) and player-chosen
evolutions to stored pets. Collaborators are the same duck-typed stores the
hunt manager uses, plus the shared per-owner lock registry.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging

from pethunt.core.errors import InvalidStateError, NotFoundError, ValidationError
from pethunt.core.evolution import (
    EvolutionOption,
    apply_evolution,
    evaluate_evolution,
    is_path_eligible,
)
from pethunt.core.game_data import GameConfig
from pethunt.core.hunt_session import SessionLockRegistry, get_session_locks
from pethunt.core.pets import OwnedPet
from pethunt.core.progression import AccountLevelResult, LevelUpResult, apply_xp
from pethunt.services.quest_notifier import EVENT_EVOLVE, EVENT_LEVEL_UP, EVENT_WIN_BATTLE

logger = logging.getLogger(__name__)


@dataclass
class BattleSettlement:
    """What a finished battle did to a pet and its owner."""
    pet: OwnedPet
    won: bool
    level_result: LevelUpResult
    account_result: AccountLevelResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "won": self.won,
            "pet": self.pet.to_dict(),
            "level_up": self.level_result.to_dict(),
            "account": {
                "leveled_up": self.account_result.leveled_up,
                "level": self.account_result.new_level,
                "xp": self.account_result.remaining_xp,
            },
        }


@dataclass
class EvolutionOutcome:
    pet: OwnedPet
    previous_species: str
    item_consumed: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous_species": self.previous_species,
            "new_species": self.pet.species,
            "item_consumed": self.item_consumed,
            "pet": self.pet.to_dict(),
        }


class PetService:
    """Battle settlement and evolution for owned pets."""

    def __init__(
        self,
        game_config: GameConfig,
        pet_store,
        economy,
        quest_notifier=None,
        locks: Optional[SessionLockRegistry] = None,
        commit: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.config = game_config
        self.pet_store = pet_store
        self.economy = economy
        self.quest_notifier = quest_notifier
        self.locks = locks or get_session_locks()
        self.commit = commit

    async def get_pet(self, owner_id: str, pet_id: str, for_update: bool = False) -> OwnedPet:
        pet = await self.pet_store.get_pet(pet_id, for_update=for_update)
        if pet is None or pet.owner_id != owner_id:
            raise NotFoundError("Pet", pet_id)
        return pet

    async def list_pets(self, owner_id: str) -> List[OwnedPet]:
        return await self.pet_store.list_pets(owner_id)

    async def record_battle_result(
        self,
        owner_id: str,
        pet_id: str,
        xp_gained: int,
        won: bool,
        final_hp: int,
    ) -> BattleSettlement:
        """
        Store the outcome of a battle fought by one of the owner's pets.

        The pet keeps the hp it finished with (clamped to 0..max_hp) and then
        gains XP, possibly several levels. The same XP goes to the account.
        """
        if xp_gained < 0:
            raise ValidationError("xp_gained", "XP gained cannot be negative", xp_gained)

        async with self.locks.lock_for(owner_id):
            pet = await self.get_pet(owner_id, pet_id, for_update=True)
            pet.hp = max(0, min(final_hp, pet.max_hp))

            level_result = apply_xp(
                pet,
                xp_gained,
                self.config.get_base_stats(pet.species),
                self.config.rarity_multiplier(pet.rarity),
            )
            await self.pet_store.update_pet(pet)
            account_result = await self.economy.grant_account_xp(owner_id, xp_gained)
            await self._commit()

        if level_result.leveled_up:
            logger.info(
                "Pet %s (%s) reached level %d", pet.id, pet.species, level_result.new_level
            )
        if won:
            await self._notify(owner_id, EVENT_WIN_BATTLE, 1)
        if level_result.levels_gained:
            await self._notify(owner_id, EVENT_LEVEL_UP, level_result.levels_gained)

        return BattleSettlement(
            pet=pet,
            won=won,
            level_result=level_result,
            account_result=account_result,
        )

    async def list_evolutions(self, owner_id: str, pet_id: str) -> List[EvolutionOption]:
        """Evolution branches the pet can take right now with the owner's items."""
        pet = await self.get_pet(owner_id, pet_id)
        held = await self.economy.item_quantities(owner_id)
        return evaluate_evolution(self.config.get_evolution(pet.species), pet.level, held)

    async def evolve(self, owner_id: str, pet_id: str, evolves_to: str) -> EvolutionOutcome:
        """
        Evolve a pet along the branch the player picked.

        Raises:
            NotFoundError: pet missing, or the species has no such branch
            InvalidStateError: level too low or required item not held
        """
        async with self.locks.lock_for(owner_id):
            pet = await self.get_pet(owner_id, pet_id, for_update=True)
            definition = self.config.get_evolution(pet.species)
            path = definition.find_path(evolves_to)
            if path is None:
                raise NotFoundError(
                    "Evolution path",
                    evolves_to,
                    message=f"{pet.species} cannot evolve into {evolves_to}",
                )

            held = await self.economy.item_quantities(owner_id)
            if not definition.can_evolve or not is_path_eligible(path, pet.level, held):
                requirement = f"level {path.level_required}"
                if path.item_required:
                    requirement += f" and a {self.config.item_name(path.item_required)}"
                raise InvalidStateError(
                    f"{pet.nickname} needs {requirement} to evolve into {evolves_to}",
                    level=pet.level,
                    level_required=path.level_required,
                    item_required=path.item_required,
                )

            if path.item_required:
                await self.economy.consume_item(owner_id, path.item_required)

            previous_species = pet.species
            if evolves_to in self.config.evolutions:
                new_stage = self.config.get_evolution(evolves_to).stage
            else:
                new_stage = pet.evolution_stage + 1

            apply_evolution(
                pet,
                path,
                self.config.get_base_stats(evolves_to),
                new_stage,
                self.config.rarity_multiplier(pet.rarity),
            )
            await self.pet_store.update_pet(pet)
            await self._commit()

        logger.info("Pet %s evolved from %s into %s", pet.id, previous_species, pet.species)
        await self._notify(owner_id, EVENT_EVOLVE, 1)

        return EvolutionOutcome(
            pet=pet,
            previous_species=previous_species,
            item_consumed=path.item_required,
        )

    async def _commit(self) -> None:
        if self.commit is not None:
            await self.commit()

    async def _notify(self, owner_id: str, event_type: str, amount: int) -> None:
        if self.quest_notifier is None:
            return
        try:
            await self.quest_notifier.notify_progress(owner_id, event_type, amount)
        except Exception as e:
            logger.warning("Quest progress %s for %s not recorded: %s", event_type, owner_id, e)
