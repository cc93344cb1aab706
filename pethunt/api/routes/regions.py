"""
Region catalogue routes.

Static data only: regions, their unlock levels and spawn tables.
"""
from fastapi import APIRouter, Depends

from pethunt.core.errors import NotFoundError
from pethunt.core.game_data import GameConfig
from pethunt.database.dependencies import get_config

router = APIRouter()


@router.get("")
async def list_regions(config: GameConfig = Depends(get_config)):
    """All huntable regions, lowest unlock level first."""
    regions = config.list_regions()
    return {"regions": [region.to_dict() for region in regions], "count": len(regions)}


@router.get("/{region_id}")
async def get_region(region_id: str, config: GameConfig = Depends(get_config)):
    """One region with its featured and rare spawns."""
    region = config.get_region(region_id)
    if region is None:
        raise NotFoundError("Region", region_id)

    data = region.to_dict()
    data["featured"] = [entry.species for entry in region.spawn_table.featured()]
    data["rare_spawns"] = [entry.to_dict() for entry in region.spawn_table.rare_spawns()]
    return data
