"""
Evolution rules.

Evolution is never automatic: evaluate_evolution enumerates every eligible
branch and the caller chooses one to pass to apply_evolution.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .pets import OwnedPet
from .progression import BaseStats, derive_stats, get_rarity_multiplier


METHOD_LEVEL = "level"
METHOD_ITEM = "item"


@dataclass(frozen=True)
class EvolutionPath:
    """One branch a species can evolve along."""
    evolves_to: str
    level_required: int
    item_required: Optional[str] = None
    description: Optional[str] = None

    @property
    def method(self) -> str:
        return METHOD_ITEM if self.item_required else METHOD_LEVEL

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EvolutionPath":
        return cls(
            evolves_to=data["evolvesTo"],
            level_required=int(data["levelRequired"]),
            item_required=data.get("itemRequired"),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class EvolutionDefinition:
    """Static evolution data for a species."""
    species: str
    can_evolve: bool = False
    stage: int = 1
    max_stage: int = 1
    evolves_from: Optional[str] = None
    evolutions: Tuple[EvolutionPath, ...] = field(default_factory=tuple)

    def find_path(self, evolves_to: str) -> Optional[EvolutionPath]:
        for path in self.evolutions:
            if path.evolves_to == evolves_to:
                return path
        return None

    @classmethod
    def from_dict(cls, species: str, data: Mapping[str, Any]) -> "EvolutionDefinition":
        return cls(
            species=species,
            can_evolve=bool(data.get("canEvolve", False)),
            stage=int(data.get("stage", 1)),
            max_stage=int(data.get("maxStage", 1)),
            evolves_from=data.get("evolvesFrom"),
            evolutions=tuple(EvolutionPath.from_dict(p) for p in data.get("evolutions", [])),
        )


@dataclass(frozen=True)
class EvolutionOption:
    """An evolution branch the pet is eligible for right now."""
    evolves_to: str
    method: str
    level_required: int
    item_required: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evolves_to": self.evolves_to,
            "method": self.method,
            "level_required": self.level_required,
            "item_required": self.item_required,
            "description": self.description,
        }


def default_evolution(species: str) -> EvolutionDefinition:
    """Definition used for species with no evolution data."""
    return EvolutionDefinition(species=species)


def is_path_eligible(path: EvolutionPath, current_level: int, held_items: Mapping[str, int]) -> bool:
    if current_level < path.level_required:
        return False
    if path.item_required is None:
        return True
    return held_items.get(path.item_required, 0) >= 1


def evaluate_evolution(
    definition: EvolutionDefinition,
    current_level: int,
    held_items: Mapping[str, int],
) -> List[EvolutionOption]:
    """
    List every evolution branch currently open to a pet.

    A path is eligible when the level requirement is met and, if an item is
    required, at least one unit is held. Branches keep configuration order.

    Args:
        definition: Evolution definition for the pet's species
        current_level: The pet's level
        held_items: item id -> quantity held by the owner

    Returns:
        Eligible options (possibly several for branching species)
    """
    if not definition.can_evolve:
        return []

    return [
        EvolutionOption(
            evolves_to=path.evolves_to,
            method=path.method,
            level_required=path.level_required,
            item_required=path.item_required,
            description=path.description,
        )
        for path in definition.evolutions
        if is_path_eligible(path, current_level, held_items)
    ]


def apply_evolution(
    pet: OwnedPet,
    chosen_path: EvolutionPath,
    new_base_stats: BaseStats,
    new_stage: int,
    rarity_multiplier: Optional[float] = None,
) -> OwnedPet:
    """
    Evolve a pet in place along `chosen_path`.

    Individual modifiers, level and rarity are kept; stats are recomputed
    against the new species' base stats and the pet is fully healed. Item
    consumption belongs to the caller.
    """
    if rarity_multiplier is None:
        rarity_multiplier = get_rarity_multiplier(pet.rarity)

    stats = derive_stats(new_base_stats, pet.individual_modifiers, pet.level, rarity_multiplier)

    if pet.nickname == pet.species:
        pet.nickname = chosen_path.evolves_to
    pet.species = chosen_path.evolves_to
    pet.evolution_stage = new_stage
    pet.apply_stats(stats)
    pet.hp = stats.hp
    return pet
