"""
Hunting Session Manager.

Owns the hunt state machine:

    Closed --start--> Open --move (budget hits 0)--> Exhausted --complete--> Closed
                       |                                  |
                       +--------- flee / complete --------+

Orchestrates the encounter generator and capture resolver against a
session, enforces the move budget and the one-session-per-owner rule, and
hands settlement off to the external collaborators.

Collaborators are duck-typed and async:

- session_store: get_by_owner, get_by_id, create, save, delete
- economy: get_account_level, has_hunt_ticket, consume_hunt_ticket,
  tool_count, consume_tool, increment_pet_count, increment_completed_hunts
- pet_store: create_pet, count_pets
- hunt_recorder: record_hunt
- quest_notifier: notify_progress (optional, best effort)
- commit: async callable that makes the writes so far durable (optional);
  called before the owner lock is released, and before any notification
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4
import asyncio
import logging
import random
import weakref

from .capture import capture_probability, capture_succeeds, normalize_tool
from .encounters import WildEncounter, roll_encounter
from .errors import (
    AlreadyCaughtError,
    ConflictError,
    ForbiddenError,
    InsufficientResourceError,
    InvalidStateError,
    NotFoundError,
)
from .game_data import GameConfig
from .pets import OwnedPet, pet_from_encounter

logger = logging.getLogger("pethunt.hunt")


DEFAULT_MOVE_BUDGET = 10
DEFAULT_ENCOUNTER_CHANCE = 0.5
DEFAULT_MAX_PETS = 100

# Quest event types
EVENT_CATCH = "catch_pokemon"
EVENT_COMPLETE_HUNT = "complete_hunts"


class HuntState(str, Enum):
    """Lifecycle states of a hunt. CLOSED means no session exists."""
    CLOSED = "closed"
    OPEN = "open"
    EXHAUSTED = "exhausted"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class HuntSession:
    """
    One owner's in-progress hunt.

    moves_remaining only ever decreases; encounters are append-only.
    """
    id: str
    owner_id: str
    region_id: str
    moves_remaining: int
    encounters: List[WildEncounter] = field(default_factory=list)
    version: int = 0
    created_at: Optional[datetime] = None

    @property
    def state(self) -> HuntState:
        return HuntState.OPEN if self.moves_remaining > 0 else HuntState.EXHAUSTED

    @property
    def caught_count(self) -> int:
        return sum(1 for e in self.encounters if e.caught)

    def find_encounter(self, encounter_id: str) -> Optional[WildEncounter]:
        for encounter in self.encounters:
            if encounter.id == encounter_id:
                return encounter
        return None

    def consume_move(self) -> None:
        if self.moves_remaining <= 0:
            raise InvalidStateError(
                "No moves remaining in this hunt",
                session_id=self.id,
                moves_remaining=self.moves_remaining,
            )
        self.moves_remaining -= 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "region_id": self.region_id,
            "state": self.state.value,
            "moves_remaining": self.moves_remaining,
            "encounters": [e.to_dict() for e in self.encounters],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class MoveResult:
    session: HuntSession
    direction: str
    encounter: Optional[WildEncounter] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction,
            "moves_remaining": self.session.moves_remaining,
            "state": self.session.state.value,
            "encounter": self.encounter.to_dict() if self.encounter else None,
        }


@dataclass
class CaptureResult:
    success: bool
    encounter: WildEncounter
    probability: float
    tool: str
    pet: Optional[OwnedPet] = None

    @property
    def message(self) -> str:
        if self.success:
            return f"Congratulations! You caught {self.encounter.species}!"
        return f"{self.encounter.species} broke free!"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "tool": self.tool,
            "probability": self.probability,
            "encounter": self.encounter.to_dict(),
            "pet": self.pet.to_dict() if self.pet else None,
        }


@dataclass
class HuntSettlement:
    """Final tally handed to history and quest collaborators."""
    session_id: str
    owner_id: str
    region_id: str
    pets_caught: int
    total_encounters: int
    moves_forfeited: int
    auto_settled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "owner_id": self.owner_id,
            "region_id": self.region_id,
            "pets_caught": self.pets_caught,
            "total_encounters": self.total_encounters,
            "moves_forfeited": self.moves_forfeited,
            "auto_settled": self.auto_settled,
        }


@dataclass
class SessionLookup:
    """Result of reading an owner's session; settlement set if it was auto-completed."""
    session: Optional[HuntSession] = None
    settlement: Optional[HuntSettlement] = None

    @property
    def active(self) -> bool:
        return self.session is not None


# =============================================================================
# LOCKING
# =============================================================================

class SessionLockRegistry:
    """
    Per-owner asyncio locks.

    An owner has at most one session, so an owner-keyed lock serializes
    every operation on that session. Unused locks are dropped.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, owner_id: str) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner_id] = lock
        return lock


_default_locks = SessionLockRegistry()


def get_session_locks() -> SessionLockRegistry:
    return _default_locks


# =============================================================================
# MANAGER
# =============================================================================

class HuntSessionManager:
    """Runs hunt sessions against injected stores and collaborators."""

    def __init__(
        self,
        game_config: GameConfig,
        session_store,
        economy,
        pet_store,
        hunt_recorder,
        quest_notifier=None,
        rng: Optional[random.Random] = None,
        move_budget: int = DEFAULT_MOVE_BUDGET,
        encounter_chance: float = DEFAULT_ENCOUNTER_CHANCE,
        max_pets: int = DEFAULT_MAX_PETS,
        locks: Optional[SessionLockRegistry] = None,
        commit: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        if move_budget < 1:
            raise ValueError("move_budget must be at least 1")
        if not 0.0 <= encounter_chance <= 1.0:
            raise ValueError("encounter_chance must be within [0, 1]")
        self.config = game_config
        self.session_store = session_store
        self.economy = economy
        self.pet_store = pet_store
        self.hunt_recorder = hunt_recorder
        self.quest_notifier = quest_notifier
        self.rng = rng or random.Random()
        self.move_budget = move_budget
        self.encounter_chance = encounter_chance
        self.max_pets = max_pets
        self.locks = locks or get_session_locks()
        self.commit = commit

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start_session(self, owner_id: str, region_id: str) -> HuntSession:
        """
        Open a new hunt in a region, spending one hunt ticket.

        Raises:
            NotFoundError: region unknown
            ConflictError: owner already has a session (open or exhausted)
            ForbiddenError: account level below the region's unlock level
            InsufficientResourceError: no hunt ticket
        """
        region = self.config.get_region(region_id)
        if region is None:
            raise NotFoundError("Region", region_id)

        async with self.locks.lock_for(owner_id):
            existing = await self.session_store.get_by_owner(owner_id)
            if existing is not None:
                raise ConflictError(
                    "You already have an active hunt session",
                    details={"session_id": existing.id, "state": existing.state.value},
                )

            account_level = await self.economy.get_account_level(owner_id)
            if account_level < region.unlock_level:
                raise ForbiddenError(
                    f"Region requires level {region.unlock_level}",
                    required_level=region.unlock_level,
                    account_level=account_level,
                )

            if not await self.economy.has_hunt_ticket(owner_id):
                raise InsufficientResourceError("hunt tickets")

            await self.economy.consume_hunt_ticket(owner_id)
            session = HuntSession(
                id=str(uuid4()),
                owner_id=owner_id,
                region_id=region.id,
                moves_remaining=self.move_budget,
                created_at=datetime.now(timezone.utc),
            )
            session = await self.session_store.create(session)
            await self._commit()

        logger.info("Hunt %s started by %s in %s", session.id, owner_id, region.id)
        return session

    async def move(
        self,
        owner_id: str,
        session_id: str,
        direction: str,
        rng: Optional[random.Random] = None,
    ) -> MoveResult:
        """
        Spend one move; with probability encounter_chance a wild pet appears.

        Direction is carried through untouched and never influences the roll.
        """
        rng = rng or self.rng
        async with self.locks.lock_for(owner_id):
            session = await self._load(owner_id, session_id)
            session.consume_move()

            encounter = None
            if rng.random() < self.encounter_chance:
                region = self._region_for(session)
                encounter = roll_encounter(region.spawn_table, rng)
                session.encounters.append(encounter)

            await self.session_store.save(session)
            await self._commit()

        if encounter:
            logger.debug(
                "Hunt %s: %s (lv %d, %s) appeared",
                session.id, encounter.species, encounter.level, encounter.rarity,
            )
        return MoveResult(session=session, direction=direction, encounter=encounter)

    async def attempt_capture(
        self,
        owner_id: str,
        session_id: str,
        encounter_id: str,
        tool: str,
        rng: Optional[random.Random] = None,
    ) -> CaptureResult:
        """
        Throw a capture tool at an encounter.

        The tool is spent whether or not the capture succeeds. A failed
        attempt leaves the encounter uncaught and closes it to further tries.

        Raises:
            NotFoundError: session or encounter missing
            AlreadyCaughtError: encounter already caught (nothing changes)
            InvalidStateError: encounter already broke free once
            InsufficientResourceError: pet storage full or no such tool held
        """
        rng = rng or self.rng
        tool = normalize_tool(tool)

        async with self.locks.lock_for(owner_id):
            session = await self._load(owner_id, session_id)
            encounter = session.find_encounter(encounter_id)
            if encounter is None:
                raise NotFoundError("Encounter", encounter_id)
            if encounter.caught:
                raise AlreadyCaughtError(encounter_id)
            if encounter.capture_attempted:
                raise InvalidStateError(
                    f"{encounter.species} already broke free",
                    encounter_id=encounter_id,
                )

            pet_count = await self.pet_store.count_pets(owner_id)
            if pet_count >= self.max_pets:
                raise InsufficientResourceError("pet storage", available=self.max_pets - pet_count)

            held = await self.economy.tool_count(owner_id, tool)
            if held < 1:
                raise InsufficientResourceError(f"{tool} capture tools", available=held)

            await self.economy.consume_tool(owner_id, tool)

            probability = capture_probability(tool, encounter.rarity)
            success = capture_succeeds(probability, rng.random())

            pet = None
            if success:
                encounter.mark_caught()
                pet = pet_from_encounter(
                    owner_id,
                    encounter,
                    self.config.get_base_stats(encounter.species),
                    evolution_stage=self.config.get_evolution(encounter.species).stage,
                    rng=rng,
                    rarity_multiplier=self.config.rarity_multiplier(encounter.rarity),
                )
                pet = await self.pet_store.create_pet(pet)
                await self.economy.increment_pet_count(owner_id)
            else:
                encounter.capture_attempted = True

            await self.session_store.save(session)
            await self._commit()

        logger.info(
            "Hunt %s: %s capture of %s with %s (p=%.2f)",
            session.id, "successful" if success else "failed",
            encounter.species, tool, probability,
        )
        if success:
            await self._notify(owner_id, EVENT_CATCH, 1)

        return CaptureResult(
            success=success,
            encounter=encounter,
            probability=probability,
            tool=tool,
            pet=pet,
        )

    async def flee(self, owner_id: str, session_id: str) -> None:
        """Abandon a session without settlement."""
        async with self.locks.lock_for(owner_id):
            session = await self._load(owner_id, session_id)
            await self.session_store.delete(session)
            await self._commit()
        logger.info("Hunt %s abandoned by %s", session_id, owner_id)

    cancel = flee

    async def complete(self, owner_id: str, session_id: str) -> HuntSettlement:
        """Settle a session early or after its budget ran out."""
        async with self.locks.lock_for(owner_id):
            session = await self._load(owner_id, session_id)
            settlement = await self._settle(session, auto_settled=False)
            await self._commit()
        await self._notify(owner_id, EVENT_COMPLETE_HUNT, 1)
        return settlement

    async def get_session(self, owner_id: str) -> SessionLookup:
        """
        Fetch the owner's live session.

        An exhausted session is settled on the spot, exactly as an explicit
        complete would, and the lookup reports no active session.
        """
        async with self.locks.lock_for(owner_id):
            session = await self.session_store.get_by_owner(owner_id)
            if session is None:
                return SessionLookup()
            if session.state == HuntState.OPEN:
                return SessionLookup(session=session)
            settlement = await self._settle(session, auto_settled=True)
            await self._commit()

        await self._notify(owner_id, EVENT_COMPLETE_HUNT, 1)
        return SessionLookup(settlement=settlement)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _load(self, owner_id: str, session_id: str) -> HuntSession:
        session = await self.session_store.get_by_id(session_id)
        if session is None or session.owner_id != owner_id:
            raise NotFoundError("Hunt session", session_id, message="Hunt session not found")
        return session

    def _region_for(self, session: HuntSession):
        region = self.config.get_region(session.region_id)
        if region is None:
            raise NotFoundError("Region", session.region_id)
        return region

    async def _settle(self, session: HuntSession, auto_settled: bool) -> HuntSettlement:
        settlement = HuntSettlement(
            session_id=session.id,
            owner_id=session.owner_id,
            region_id=session.region_id,
            pets_caught=session.caught_count,
            total_encounters=len(session.encounters),
            moves_forfeited=session.moves_remaining,
            auto_settled=auto_settled,
        )
        await self.hunt_recorder.record_hunt(settlement)
        await self.economy.increment_completed_hunts(session.owner_id)
        await self.session_store.delete(session)

        logger.info(
            "Hunt %s settled%s: %d caught of %d encounters",
            session.id, " automatically" if auto_settled else "",
            settlement.pets_caught, settlement.total_encounters,
        )
        return settlement

    async def _commit(self) -> None:
        # Inside the owner lock, so the next operation reads committed state
        if self.commit is not None:
            await self.commit()

    async def _notify(self, owner_id: str, event_type: str, amount: int) -> None:
        if self.quest_notifier is None:
            return
        try:
            await self.quest_notifier.notify_progress(owner_id, event_type, amount)
        except Exception as e:
            logger.warning("Quest progress %s for %s not recorded: %s", event_type, owner_id, e)
