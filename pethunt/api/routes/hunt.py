"""
Hunting session API routes.

Endpoints for:
- Starting a hunt in a region (spends a hunt ticket)
- Moving around (may reveal a wild pet)
- Throwing capture tools at encounters
- Fleeing or completing the hunt
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from pethunt.core.errors import NotFoundError
from pethunt.core.hunt_session import HuntSessionManager
from pethunt.database.dependencies import get_hunt_manager, get_owner_id

router = APIRouter()


# =============================================================================
# Request Models
# =============================================================================

class StartHuntRequest(BaseModel):
    """Request to start a hunt."""
    region_id: str = Field(..., min_length=1, description="Region to hunt in")


class MoveRequest(BaseModel):
    """Request to take one step."""
    session_id: str = Field(..., min_length=1)
    direction: str = Field(..., pattern="^(up|down|left|right)$", description="up, down, left or right")


class CaptureRequest(BaseModel):
    """Request to throw a capture tool at an encounter."""
    session_id: str = Field(..., min_length=1)
    encounter_id: str = Field(..., min_length=1)
    tool: str = Field("basic", description="basic, improved or premium (pokeball/greatball/ultraball accepted)")


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/start", status_code=status.HTTP_201_CREATED)
async def start_hunt(
    request: StartHuntRequest,
    owner_id: str = Depends(get_owner_id),
    manager: HuntSessionManager = Depends(get_hunt_manager),
):
    """Open a hunt session in a region."""
    session = await manager.start_session(owner_id, request.region_id)
    return {"session": session.to_dict()}


@router.get("/session")
async def get_active_session(
    owner_id: str = Depends(get_owner_id),
    manager: HuntSessionManager = Depends(get_hunt_manager),
):
    """
    The owner's live hunt.

    A session whose moves have run out is settled by this call and reported
    as not found, with the settlement attached. The response is returned
    rather than raised so the quest counter bump after settlement commits too.
    """
    lookup = await manager.get_session(owner_id)
    if lookup.active:
        return {"session": lookup.session.to_dict()}

    details = {}
    if lookup.settlement is not None:
        details["settlement"] = lookup.settlement.to_dict()
    error = NotFoundError("Hunt session", message="No active hunt session", details=details)
    return JSONResponse(status_code=error.http_status, content=error.to_dict())


@router.post("/move")
async def move(
    request: MoveRequest,
    owner_id: str = Depends(get_owner_id),
    manager: HuntSessionManager = Depends(get_hunt_manager),
):
    """Spend one move; an encounter may appear."""
    result = await manager.move(owner_id, request.session_id, request.direction)
    return result.to_dict()


@router.post("/capture")
async def capture(
    request: CaptureRequest,
    owner_id: str = Depends(get_owner_id),
    manager: HuntSessionManager = Depends(get_hunt_manager),
):
    """Attempt to capture an encounter. The tool is spent either way."""
    result = await manager.attempt_capture(
        owner_id, request.session_id, request.encounter_id, request.tool
    )
    return result.to_dict()


@router.post("/flee/{session_id}")
async def flee(
    session_id: str,
    owner_id: str = Depends(get_owner_id),
    manager: HuntSessionManager = Depends(get_hunt_manager),
):
    """Abandon the hunt. Caught pets are kept; nothing is settled."""
    await manager.flee(owner_id, session_id)
    return {"success": True, "message": "You fled from the hunt"}


@router.post("/complete/{session_id}")
async def complete(
    session_id: str,
    owner_id: str = Depends(get_owner_id),
    manager: HuntSessionManager = Depends(get_hunt_manager),
):
    """Finish the hunt and record the results."""
    settlement = await manager.complete(owner_id, session_id)
    return {"success": True, "settlement": settlement.to_dict()}
