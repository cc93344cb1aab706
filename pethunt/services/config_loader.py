"""
Static game data loader.

Reads species base stats, regions with their spawn tables, and evolution
chains from JSON files and builds the immutable GameConfig shared by every
request. Any malformed file raises ConfigError so the app refuses to start.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pethunt.core.errors import ConfigError
from pethunt.core.evolution import EvolutionDefinition
from pethunt.core.game_data import GameConfig
from pethunt.core.progression import BaseStats, RARITY_STAT_MULTIPLIERS
from pethunt.core.spawn_table import Region, SpawnEntry, SpawnTable

logger = logging.getLogger(__name__)


SPECIES_FILE = "species.json"
REGIONS_FILE = "regions.json"
EVOLUTIONS_FILE = "evolutions.json"


class GameConfigLoader:
    """Loads and validates static game data from a directory of JSON files."""

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        self.data_dir = Path(data_dir) if data_dir else self.default_data_path()

    @staticmethod
    def default_data_path() -> Path:
        """Packaged data directory (pethunt/data)."""
        return Path(__file__).parent.parent / "data"

    def load(self) -> GameConfig:
        """Read all three files and build the config."""
        species_data = self._load_json_file(self.data_dir / SPECIES_FILE)
        regions_data = self._load_json_file(self.data_dir / REGIONS_FILE)
        evolutions_data = self._load_json_file(self.data_dir / EVOLUTIONS_FILE)

        species_stats, rarity_multipliers = self.parse_species(species_data)
        regions = self.parse_regions(regions_data)
        evolutions, evolution_items = self.parse_evolutions(evolutions_data)

        config = GameConfig(
            species_stats=species_stats,
            regions=regions,
            evolutions=evolutions,
            rarity_multipliers=rarity_multipliers,
            evolution_items=evolution_items,
        )
        logger.info(
            "Loaded game config from %s: %d species, %d regions, %d evolution entries",
            self.data_dir, len(species_stats), len(regions), len(evolutions),
        )
        return config

    # =========================================================================
    # FILE ACCESS
    # =========================================================================

    def _load_json_file(self, filepath: Path) -> Dict[str, Any]:
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {filepath}", source=filepath.name) from e
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read {filepath}: {e}", source=filepath.name) from e

        if not isinstance(data, dict):
            raise ConfigError(f"{filepath.name} must contain a JSON object", source=filepath.name)
        return data

    # =========================================================================
    # PARSING
    # =========================================================================

    @staticmethod
    def parse_species(data: Dict[str, Any]):
        """
        Parse species.json.

        Species are grouped by area for readability; groups are flattened.
        Returns (species name -> BaseStats, rarity multipliers).
        """
        groups = data.get("species")
        if not isinstance(groups, dict):
            raise ConfigError("species.json is missing the 'species' object", source=SPECIES_FILE)

        species_stats: Dict[str, BaseStats] = {}
        for group_name, members in groups.items():
            if not isinstance(members, dict):
                raise ConfigError(f"Species group {group_name!r} must be an object", source=SPECIES_FILE)
            for name, stats in members.items():
                if name in species_stats:
                    raise ConfigError(f"Species {name!r} defined twice", source=SPECIES_FILE)
                try:
                    species_stats[name] = BaseStats.from_dict(stats)
                except (KeyError, TypeError, ValueError) as e:
                    raise ConfigError(f"Bad base stats for {name!r}: {e}", source=SPECIES_FILE) from e

        multipliers = dict(RARITY_STAT_MULTIPLIERS)
        overrides = data.get("rarityMultipliers", {})
        if not isinstance(overrides, dict):
            raise ConfigError("'rarityMultipliers' must be an object", source=SPECIES_FILE)
        for rarity, value in overrides.items():
            try:
                multipliers[rarity.lower()] = float(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Bad rarity multiplier for {rarity!r}", source=SPECIES_FILE) from e

        return species_stats, multipliers

    @staticmethod
    def parse_regions(data: Dict[str, Any]) -> Dict[str, Region]:
        region_list = data.get("regions")
        if not isinstance(region_list, list):
            raise ConfigError("regions.json is missing the 'regions' list", source=REGIONS_FILE)

        regions: Dict[str, Region] = {}
        for raw in region_list:
            try:
                region_id = raw["id"]
                spawns = raw["spawns"]
                region = Region(
                    id=region_id,
                    name=raw["name"],
                    unlock_level=int(raw.get("unlockLevel", 1)),
                    spawn_table=SpawnTable(SpawnEntry.from_dict(s) for s in spawns),
                    description=raw.get("description", ""),
                    difficulty=raw.get("difficulty", "easy"),
                )
            except ConfigError as e:
                raise ConfigError(f"Region {raw.get('id')!r}: {e.message}", source=REGIONS_FILE) from e
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigError(f"Malformed region {raw!r}: {e}", source=REGIONS_FILE) from e

            if region_id in regions:
                raise ConfigError(f"Region {region_id!r} defined twice", source=REGIONS_FILE)
            regions[region_id] = region

        return regions

    @staticmethod
    def parse_evolutions(data: Dict[str, Any]):
        """Returns (species -> EvolutionDefinition, evolution item catalogue)."""
        chains = data.get("evolutions")
        if not isinstance(chains, dict):
            raise ConfigError("evolutions.json is missing the 'evolutions' object", source=EVOLUTIONS_FILE)

        evolutions: Dict[str, EvolutionDefinition] = {}
        for species, raw in chains.items():
            try:
                evolutions[species] = EvolutionDefinition.from_dict(species, raw)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise ConfigError(f"Bad evolution data for {species!r}: {e}", source=EVOLUTIONS_FILE) from e

        items = data.get("evolutionItems", {})
        if not isinstance(items, dict):
            raise ConfigError("'evolutionItems' must be an object", source=EVOLUTIONS_FILE)

        return evolutions, items


# =============================================================================
# CACHED ACCESS
# =============================================================================

_game_config: Optional[GameConfig] = None


def load_game_config(data_dir: Optional[Union[str, Path]] = None) -> GameConfig:
    """Load (or reload) the shared config. Called from the app lifespan."""
    global _game_config
    _game_config = GameConfigLoader(data_dir).load()
    return _game_config


def get_game_config() -> GameConfig:
    """The shared config, loading the packaged data on first use."""
    if _game_config is None:
        return load_game_config()
    return _game_config


def reset_game_config() -> None:
    """Drop the cached config (useful for testing)."""
    global _game_config
    _game_config = None
