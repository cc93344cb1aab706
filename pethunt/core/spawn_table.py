"""
Region spawn tables.

Provides the per-region weighted list of species that may appear while
hunting, and the weighted sampling used to pick one.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import random

from .errors import ConfigError
from .progression import RARITIES


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class SpawnEntry:
    """
    A single entry in a spawn table.

    Weight is relative; level is drawn uniformly from min_level..max_level.
    """
    species: str
    rarity: str
    weight: float
    min_level: int
    max_level: int

    def validate(self) -> None:
        """Raise ConfigError if the entry cannot be sampled from."""
        if not self.species:
            raise ConfigError("Spawn entry is missing a species")
        if self.rarity not in RARITIES:
            raise ConfigError(f"Spawn entry {self.species!r} has unknown rarity {self.rarity!r}")
        if not self.weight > 0:
            raise ConfigError(f"Spawn entry {self.species!r} must have a positive weight, got {self.weight}")
        if self.min_level < 1:
            raise ConfigError(f"Spawn entry {self.species!r} has min_level below 1")
        if self.min_level > self.max_level:
            raise ConfigError(
                f"Spawn entry {self.species!r} has min_level {self.min_level} > max_level {self.max_level}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SpawnEntry":
        """Build from the regions.json spawn shape."""
        try:
            return cls(
                species=data["species"],
                rarity=str(data["rarity"]).lower(),
                weight=float(data["spawnRate"]),
                min_level=int(data["minLevel"]),
                max_level=int(data["maxLevel"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Malformed spawn entry {dict(data)!r}: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "species": self.species,
            "rarity": self.rarity,
            "spawn_rate": self.weight,
            "min_level": self.min_level,
            "max_level": self.max_level,
        }


class SpawnTable:
    """
    Ordered, immutable collection of spawn entries for one region.

    Validated on construction: at least one entry and every weight > 0.
    """

    def __init__(self, entries: Iterable[SpawnEntry]):
        self._entries: Tuple[SpawnEntry, ...] = tuple(entries)
        if not self._entries:
            raise ConfigError("Spawn table must contain at least one entry")
        for entry in self._entries:
            entry.validate()
        self._total_weight = sum(entry.weight for entry in self._entries)

    @property
    def entries(self) -> Tuple[SpawnEntry, ...]:
        return self._entries

    @property
    def total_weight(self) -> float:
        return self._total_weight

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def featured(self, limit: int = 4) -> List[SpawnEntry]:
        """Most common spawns first."""
        return sorted(self._entries, key=lambda e: e.weight, reverse=True)[:limit]

    def rare_spawns(self) -> List[SpawnEntry]:
        return [e for e in self._entries if e.rarity in ("rare", "epic", "legendary")]


@dataclass(frozen=True)
class Region:
    """A huntable area with its level gate and spawn table."""
    id: str
    name: str
    unlock_level: int
    spawn_table: SpawnTable
    description: str = ""
    difficulty: str = "easy"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "difficulty": self.difficulty,
            "unlock_level": self.unlock_level,
            "spawns": [entry.to_dict() for entry in self.spawn_table],
        }


# =============================================================================
# SAMPLING
# =============================================================================

def sample(spawn_table: SpawnTable, rng: Optional[random.Random] = None) -> SpawnEntry:
    """
    Pick a spawn entry proportionally to its weight.

    Draws r in [0, total) and walks the entries in configuration order,
    subtracting each weight until r <= 0; the first entry to get there wins.

    Args:
        spawn_table: Table to sample from
        rng: Random source (module-level random if omitted)

    Returns:
        The selected SpawnEntry
    """
    rng = rng or random
    r = rng.random() * spawn_table.total_weight

    for entry in spawn_table.entries:
        r -= entry.weight
        if r <= 0:
            return entry

    # Floating point residue past the final entry
    return spawn_table.entries[-1]
