"""
Wild encounter generation.

Turns a sampled spawn entry into a concrete wild pet with a rolled level
and rarity-scaled stats.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Optional
import math
import random
import time
import uuid

from .spawn_table import SpawnEntry, SpawnTable, sample


# Wild stat scaling per rarity (harder than the owned-pet table)
ENCOUNTER_RARITY_MULTIPLIERS: Dict[str, float] = {
    "common": 1.0,
    "uncommon": 1.2,
    "rare": 1.5,
    "epic": 1.8,
    "legendary": 2.0,
}


@dataclass
class WildEncounter:
    """A wild pet met during a hunt."""
    id: str
    species: str
    rarity: str
    level: int
    hp: int
    max_hp: int
    attack: int
    defense: int
    speed: int
    caught: bool = False
    capture_attempted: bool = False

    def mark_caught(self) -> None:
        if self.caught:
            raise ValueError(f"Encounter {self.id} is already caught")
        self.caught = True
        self.capture_attempted = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WildEncounter":
        return cls(
            id=data["id"],
            species=data["species"],
            rarity=data["rarity"],
            level=int(data["level"]),
            hp=int(data["hp"]),
            max_hp=int(data["max_hp"]),
            attack=int(data["attack"]),
            defense=int(data["defense"]),
            speed=int(data["speed"]),
            caught=bool(data.get("caught", False)),
            capture_attempted=bool(data.get("capture_attempted", False)),
        )


def get_encounter_multiplier(rarity: str) -> float:
    return ENCOUNTER_RARITY_MULTIPLIERS.get((rarity or "").lower(), 1.0)


def generate_encounter_id() -> str:
    """Millisecond timestamp plus a random suffix."""
    return f"encounter_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def generate_encounter(spawn_entry: SpawnEntry, rng: Optional[random.Random] = None) -> WildEncounter:
    """
    Roll a concrete wild pet from a spawn entry.

    Level is uniform over min_level..max_level inclusive. Stats:
        hp      = floor((20 + level * 5) * m)
        attack  = floor((5 + level * 2) * m)
        defense = floor((5 + level * 2) * m)
        speed   = floor((5 + level * 2) * m)
    where m is the encounter rarity multiplier.
    """
    rng = rng or random
    level = rng.randint(spawn_entry.min_level, spawn_entry.max_level)
    multiplier = get_encounter_multiplier(spawn_entry.rarity)

    hp = math.floor((20 + level * 5) * multiplier)
    secondary = math.floor((5 + level * 2) * multiplier)

    return WildEncounter(
        id=generate_encounter_id(),
        species=spawn_entry.species,
        rarity=spawn_entry.rarity,
        level=level,
        hp=hp,
        max_hp=hp,
        attack=secondary,
        defense=secondary,
        speed=secondary,
    )


def roll_encounter(spawn_table: SpawnTable, rng: Optional[random.Random] = None) -> WildEncounter:
    """Sample the table, then generate from the chosen entry."""
    rng = rng or random
    return generate_encounter(sample(spawn_table, rng), rng)
