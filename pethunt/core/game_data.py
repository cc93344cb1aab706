"""
Immutable static game data: species base stats, regions, evolution chains.

Built once at startup by the config loader and shared read-only.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from .errors import ConfigError
from .evolution import EvolutionDefinition, default_evolution
from .progression import (
    BaseStats,
    DEFAULT_BASE_STATS,
    RARITY_STAT_MULTIPLIERS,
    get_rarity_multiplier,
)
from .spawn_table import Region


@dataclass(frozen=True)
class GameConfig:
    """Read-only lookup tables used by the hunt and progression engines."""
    species_stats: Mapping[str, BaseStats]
    regions: Mapping[str, Region]
    evolutions: Mapping[str, EvolutionDefinition]
    rarity_multipliers: Mapping[str, float] = field(
        default_factory=lambda: MappingProxyType(dict(RARITY_STAT_MULTIPLIERS))
    )
    evolution_items: Mapping[str, Dict[str, str]] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        object.__setattr__(self, "species_stats", MappingProxyType(dict(self.species_stats)))
        object.__setattr__(self, "regions", MappingProxyType(dict(self.regions)))
        object.__setattr__(self, "evolutions", MappingProxyType(dict(self.evolutions)))
        object.__setattr__(self, "rarity_multipliers", MappingProxyType(dict(self.rarity_multipliers)))
        object.__setattr__(self, "evolution_items", MappingProxyType(dict(self.evolution_items)))
        self.validate()

    def validate(self) -> None:
        """Cross-check references between the tables."""
        if not self.regions:
            raise ConfigError("No regions configured", source="regions")

        for region in self.regions.values():
            for entry in region.spawn_table:
                if entry.species not in self.species_stats:
                    raise ConfigError(
                        f"Region {region.id!r} spawns unknown species {entry.species!r}",
                        source="regions",
                    )

        for species, definition in self.evolutions.items():
            for path in definition.evolutions:
                if path.evolves_to not in self.species_stats:
                    raise ConfigError(
                        f"{species!r} evolves into unknown species {path.evolves_to!r}",
                        source="evolutions",
                    )
                if path.level_required < 1:
                    raise ConfigError(
                        f"{species!r} -> {path.evolves_to!r} has level_required below 1",
                        source="evolutions",
                    )
                if self.evolution_items and path.item_required and path.item_required not in self.evolution_items:
                    raise ConfigError(
                        f"{species!r} -> {path.evolves_to!r} needs unknown item {path.item_required!r}",
                        source="evolutions",
                    )

    def get_base_stats(self, species: str) -> BaseStats:
        """Base stats for a species, or 50 across the board if unknown."""
        return self.species_stats.get(species, DEFAULT_BASE_STATS)

    def get_region(self, region_id: str) -> Optional[Region]:
        return self.regions.get(region_id)

    def list_regions(self) -> List[Region]:
        return sorted(self.regions.values(), key=lambda r: (r.unlock_level, r.id))

    def get_evolution(self, species: str) -> EvolutionDefinition:
        return self.evolutions.get(species) or default_evolution(species)

    def rarity_multiplier(self, rarity: str) -> float:
        return get_rarity_multiplier(rarity, self.rarity_multipliers)

    def item_name(self, item_id: str) -> str:
        """Display name of an evolution item, falling back to its id."""
        return self.evolution_items.get(item_id, {}).get("name", item_id)
