"""
Pet Progression System

Handles the deterministic stat and leveling model for owned pets:
- Rarity multipliers for derived stats
- Individual modifiers (IVs) rolled once at capture
- Stat derivation from species base stats, IVs, level and rarity
- Pet XP thresholds and multi-level XP application
- The separate account XP track
"""
import math
import random
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .pets import OwnedPet


# Derived-stat multiplier per rarity tier
RARITY_STAT_MULTIPLIERS: Dict[str, float] = {
    "common": 1.0,
    "uncommon": 1.1,
    "rare": 1.2,
    "epic": 1.3,
    "legendary": 1.5,
}

RARITIES = tuple(RARITY_STAT_MULTIPLIERS)

MIN_IV = 0
MAX_IV = 15

# Pet XP per level vs. account XP per level
PET_XP_PER_LEVEL = 100
ACCOUNT_XP_PER_LEVEL = 200

STAT_NAMES = ("hp", "attack", "defense", "speed")


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class BaseStats:
    """Static per-species base stats."""
    hp: int
    attack: int
    defense: int
    speed: int

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BaseStats":
        return cls(
            hp=int(data["hp"]),
            attack=int(data["attack"]),
            defense=int(data["defense"]),
            speed=int(data["speed"]),
        )

    def to_dict(self) -> Dict[str, int]:
        return {"hp": self.hp, "attack": self.attack, "defense": self.defense, "speed": self.speed}


DEFAULT_BASE_STATS = BaseStats(hp=50, attack=50, defense=50, speed=50)


@dataclass(frozen=True)
class IndividualModifiers:
    """Per-pet permanent stat offsets, each within MIN_IV..MAX_IV."""
    hp: int = 0
    attack: int = 0
    defense: int = 0
    speed: int = 0

    def __post_init__(self):
        for name in STAT_NAMES:
            value = getattr(self, name)
            if not MIN_IV <= value <= MAX_IV:
                raise ValueError(f"IV {name}={value} outside {MIN_IV}..{MAX_IV}")

    def to_dict(self) -> Dict[str, int]:
        return {"hp": self.hp, "attack": self.attack, "defense": self.defense, "speed": self.speed}


@dataclass(frozen=True)
class CombatStats:
    """Concrete stats derived for a pet at a given level."""
    hp: int
    attack: int
    defense: int
    speed: int

    def to_dict(self) -> Dict[str, int]:
        return {"max_hp": self.hp, "attack": self.attack, "defense": self.defense, "speed": self.speed}


@dataclass
class LevelUpResult:
    """Outcome of applying XP to a pet."""
    leveled_up: bool
    new_level: int
    remaining_xp: int
    levels_gained: int = 0
    new_stats: Optional[CombatStats] = None
    hp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "leveled_up": self.leveled_up,
            "new_level": self.new_level,
            "remaining_xp": self.remaining_xp,
            "levels_gained": self.levels_gained,
            "new_stats": self.new_stats.to_dict() if self.new_stats else None,
            "hp": self.hp,
        }


@dataclass
class AccountLevelResult:
    """Outcome of applying XP to the owning account."""
    leveled_up: bool
    new_level: int
    remaining_xp: int


# =============================================================================
# STAT DERIVATION
# =============================================================================

def get_rarity_multiplier(rarity: str, table: Optional[Mapping[str, float]] = None) -> float:
    """
    Look up the derived-stat multiplier for a rarity tier.

    Case-insensitive; unknown rarities default to 1.0.
    """
    multipliers = table if table is not None else RARITY_STAT_MULTIPLIERS
    return multipliers.get((rarity or "").lower(), 1.0)


def derive_stat(base_stat: int, modifier: int, level: int, rarity_multiplier: float) -> int:
    """Single-stat formula: floor((base + iv) * (1 + level * 0.1) * rarity)."""
    level_multiplier = 1 + level * 0.1
    return math.floor((base_stat + modifier) * level_multiplier * rarity_multiplier)


def derive_stats(
    base_stats: BaseStats,
    modifiers: IndividualModifiers,
    level: int,
    rarity_multiplier: float,
) -> CombatStats:
    """
    Derive all four combat stats for a pet.

    Pure and deterministic; every level-up and evolution goes through here
    so stored stats never drift from the formula.

    Args:
        base_stats: Species base stats
        modifiers: The pet's individual modifiers
        level: Current pet level
        rarity_multiplier: Multiplier from get_rarity_multiplier

    Returns:
        CombatStats with hp (max hp), attack, defense and speed
    """
    return CombatStats(
        hp=derive_stat(base_stats.hp, modifiers.hp, level, rarity_multiplier),
        attack=derive_stat(base_stats.attack, modifiers.attack, level, rarity_multiplier),
        defense=derive_stat(base_stats.defense, modifiers.defense, level, rarity_multiplier),
        speed=derive_stat(base_stats.speed, modifiers.speed, level, rarity_multiplier),
    )


def roll_individual_modifiers(rng: Optional[random.Random] = None) -> IndividualModifiers:
    """Roll fresh IVs, one uniform draw per stat in hp/attack/defense/speed order."""
    rng = rng or random
    return IndividualModifiers(
        hp=rng.randint(MIN_IV, MAX_IV),
        attack=rng.randint(MIN_IV, MAX_IV),
        defense=rng.randint(MIN_IV, MAX_IV),
        speed=rng.randint(MIN_IV, MAX_IV),
    )


# =============================================================================
# LEVELING
# =============================================================================

def xp_threshold(level: int) -> int:
    """XP a pet needs to advance from `level` to `level + 1`."""
    return level * PET_XP_PER_LEVEL


def account_xp_threshold(level: int) -> int:
    """XP an account needs to advance. Independent of the pet track."""
    return level * ACCOUNT_XP_PER_LEVEL


def apply_xp(
    pet: "OwnedPet",
    xp_gained: int,
    base_stats: BaseStats,
    rarity_multiplier: Optional[float] = None,
) -> LevelUpResult:
    """
    Add XP to a pet, levelling up as many times as the XP allows.

    Stats are recomputed from the formula at the new level, never
    incremented. Current hp is clamped to the new max hp rather than healed.
    The pet is updated in place.

    Args:
        pet: The pet receiving XP
        xp_gained: Non-negative XP amount
        base_stats: Base stats of the pet's current species
        rarity_multiplier: Override for the pet's rarity multiplier

    Returns:
        LevelUpResult describing the change
    """
    if xp_gained < 0:
        raise ValueError("xp_gained must be non-negative")
    if pet.level < 1:
        raise ValueError("pet level must be at least 1")

    xp = pet.xp + xp_gained
    level = pet.level
    start_level = level

    while xp >= xp_threshold(level):
        xp -= xp_threshold(level)
        level += 1

    pet.xp = xp
    levels_gained = level - start_level
    if not levels_gained:
        return LevelUpResult(leveled_up=False, new_level=level, remaining_xp=xp, hp=pet.hp)

    if rarity_multiplier is None:
        rarity_multiplier = get_rarity_multiplier(pet.rarity)
    stats = derive_stats(base_stats, pet.individual_modifiers, level, rarity_multiplier)

    pet.level = level
    pet.apply_stats(stats)
    pet.hp = min(pet.hp, stats.hp)

    return LevelUpResult(
        leveled_up=True,
        new_level=level,
        remaining_xp=xp,
        levels_gained=levels_gained,
        new_stats=stats,
        hp=pet.hp,
    )


def apply_account_xp(level: int, xp: int, xp_gained: int) -> AccountLevelResult:
    """Apply XP on the account track (level * 200 per level, multi-level)."""
    if xp_gained < 0:
        raise ValueError("xp_gained must be non-negative")
    if level < 1:
        raise ValueError("account level must be at least 1")

    new_xp = xp + xp_gained
    new_level = level
    while new_xp >= account_xp_threshold(new_level):
        new_xp -= account_xp_threshold(new_level)
        new_level += 1

    return AccountLevelResult(
        leveled_up=new_level > level,
        new_level=new_level,
        remaining_xp=new_xp,
    )
