"""
Owned pet model.

An OwnedPet's combat stats are always the progression formula's output for
its species, individual modifiers, level and rarity.
"""
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, TYPE_CHECKING
from uuid import uuid4

from .progression import (
    BaseStats,
    CombatStats,
    IndividualModifiers,
    derive_stats,
    get_rarity_multiplier,
    roll_individual_modifiers,
)

if TYPE_CHECKING:
    from .encounters import WildEncounter


@dataclass
class OwnedPet:
    """A pet belonging to an account."""
    id: str
    owner_id: str
    species: str
    rarity: str
    level: int
    individual_modifiers: IndividualModifiers
    hp: int
    max_hp: int
    attack: int
    defense: int
    speed: int
    xp: int = 0
    evolution_stage: int = 1
    nickname: Optional[str] = None
    # Storage revision, bumped by each persisted update
    version: int = 0

    def __post_init__(self):
        if self.level < 1:
            raise ValueError(f"Pet level must be >= 1, got {self.level}")
        if self.nickname is None:
            self.nickname = self.species

    @property
    def stats(self) -> CombatStats:
        return CombatStats(hp=self.max_hp, attack=self.attack, defense=self.defense, speed=self.speed)

    def apply_stats(self, stats: CombatStats) -> None:
        """Overwrite the derived stats. Current hp is left to the caller."""
        self.max_hp = stats.hp
        self.attack = stats.attack
        self.defense = stats.defense
        self.speed = stats.speed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "species": self.species,
            "nickname": self.nickname,
            "rarity": self.rarity,
            "level": self.level,
            "xp": self.xp,
            "hp": self.hp,
            "max_hp": self.max_hp,
            "attack": self.attack,
            "defense": self.defense,
            "speed": self.speed,
            "individual_modifiers": self.individual_modifiers.to_dict(),
            "evolution_stage": self.evolution_stage,
        }


def new_pet_id() -> str:
    return str(uuid4())


def materialize_pet(
    owner_id: str,
    species: str,
    rarity: str,
    level: int,
    base_stats: BaseStats,
    evolution_stage: int = 1,
    modifiers: Optional[IndividualModifiers] = None,
    rng: Optional[random.Random] = None,
    rarity_multiplier: Optional[float] = None,
    pet_id: Optional[str] = None,
) -> OwnedPet:
    """
    Create a new owned pet at full health.

    IVs are rolled from `rng` unless given explicitly.
    """
    if modifiers is None:
        modifiers = roll_individual_modifiers(rng)
    if rarity_multiplier is None:
        rarity_multiplier = get_rarity_multiplier(rarity)

    stats = derive_stats(base_stats, modifiers, level, rarity_multiplier)
    return OwnedPet(
        id=pet_id or new_pet_id(),
        owner_id=owner_id,
        species=species,
        rarity=rarity,
        level=level,
        individual_modifiers=modifiers,
        hp=stats.hp,
        max_hp=stats.hp,
        attack=stats.attack,
        defense=stats.defense,
        speed=stats.speed,
        xp=0,
        evolution_stage=evolution_stage,
    )


def pet_from_encounter(
    owner_id: str,
    encounter: "WildEncounter",
    base_stats: BaseStats,
    evolution_stage: int = 1,
    rng: Optional[random.Random] = None,
    rarity_multiplier: Optional[float] = None,
) -> OwnedPet:
    """Materialize a captured wild encounter as an owned pet with fresh IVs."""
    return materialize_pet(
        owner_id=owner_id,
        species=encounter.species,
        rarity=encounter.rarity,
        level=encounter.level,
        base_stats=base_stats,
        evolution_stage=evolution_stage,
        rng=rng,
        rarity_multiplier=rarity_multiplier,
    )
