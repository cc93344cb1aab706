"""
Pet API routes.

Collection listing, evolution, and battle result settlement.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from pethunt.database.dependencies import get_owner_id, get_pet_service
from pethunt.services.pet_service import PetService

router = APIRouter()


class EvolveRequest(BaseModel):
    """Request to evolve a pet along one branch."""
    evolves_to: str = Field(..., min_length=1, description="Target species")


class BattleResultRequest(BaseModel):
    """Outcome of a battle, reported by the battle system."""
    xp_gained: int = Field(..., ge=0)
    won: bool
    final_hp: int = Field(..., description="Pet hp at the end of the battle")


@router.get("")
async def list_pets(
    owner_id: str = Depends(get_owner_id),
    service: PetService = Depends(get_pet_service),
):
    pets = await service.list_pets(owner_id)
    return {"pets": [pet.to_dict() for pet in pets], "count": len(pets)}


@router.get("/{pet_id}")
async def get_pet(
    pet_id: str,
    owner_id: str = Depends(get_owner_id),
    service: PetService = Depends(get_pet_service),
):
    pet = await service.get_pet(owner_id, pet_id)
    return pet.to_dict()


@router.get("/{pet_id}/evolutions")
async def list_evolutions(
    pet_id: str,
    owner_id: str = Depends(get_owner_id),
    service: PetService = Depends(get_pet_service),
):
    """Evolution branches open to this pet with the items currently held."""
    options = await service.list_evolutions(owner_id, pet_id)
    return {
        "pet_id": pet_id,
        "can_evolve": bool(options),
        "options": [option.to_dict() for option in options],
    }


@router.post("/{pet_id}/evolve")
async def evolve_pet(
    pet_id: str,
    request: EvolveRequest,
    owner_id: str = Depends(get_owner_id),
    service: PetService = Depends(get_pet_service),
):
    outcome = await service.evolve(owner_id, pet_id, request.evolves_to)
    return outcome.to_dict()


@router.post("/{pet_id}/battle-result")
async def record_battle_result(
    pet_id: str,
    request: BattleResultRequest,
    owner_id: str = Depends(get_owner_id),
    service: PetService = Depends(get_pet_service),
):
    """Apply XP and remaining hp after a battle."""
    settlement = await service.record_battle_result(
        owner_id, pet_id, request.xp_gained, request.won, request.final_hp
    )
    return settlement.to_dict()
