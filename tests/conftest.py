"""
Pet Hunt - Test Configuration and Fixtures
Shared test utilities and fixtures for pytest.
"""
import copy
import random
from typing import Dict, Iterable, List, Optional

import pytest
import pytest_asyncio

from pethunt.core.errors import ConflictError, InsufficientResourceError
from pethunt.core.evolution import EvolutionDefinition, EvolutionPath
from pethunt.core.game_data import GameConfig
from pethunt.core.hunt_session import HuntSession, HuntSessionManager, SessionLockRegistry
from pethunt.core.pets import OwnedPet
from pethunt.core.progression import AccountLevelResult, BaseStats, apply_account_xp
from pethunt.core.spawn_table import Region, SpawnEntry, SpawnTable
from pethunt.database.engine import build_engine, build_session_factory, create_tables
from pethunt.database.models import QuestProgress
from pethunt.database.repositories import QuestProgressRepository
from pethunt.services.config_loader import GameConfigLoader
from pethunt.services.pet_service import PetService


# ==================== Scripted Randomness ====================

class ScriptedRandom(random.Random):
    """
    Random source that replays fixed values.

    random() pops from `floats`, randint() pops from `ints`. Running out of
    script fails the test, which also pins down the draw order.
    """

    def __init__(self, floats: Iterable[float] = (), ints: Iterable[int] = ()):
        super().__init__(0)
        self.floats: List[float] = list(floats)
        self.ints: List[int] = list(ints)

    def random(self) -> float:
        if not self.floats:
            raise AssertionError("ScriptedRandom ran out of floats")
        return self.floats.pop(0)

    def randint(self, a: int, b: int) -> int:
        if not self.ints:
            raise AssertionError("ScriptedRandom ran out of ints")
        value = self.ints.pop(0)
        assert a <= value <= b, f"scripted {value} outside {a}..{b}"
        return value


# ==================== In-Memory Collaborators ====================

class InMemorySessionStore:
    """Session store with the same copy and version semantics as the database."""

    def __init__(self):
        self.sessions: Dict[str, HuntSession] = {}
        self.saves = 0

    async def get_by_owner(self, owner_id: str) -> Optional[HuntSession]:
        for session in self.sessions.values():
            if session.owner_id == owner_id:
                return copy.deepcopy(session)
        return None

    async def get_by_id(self, session_id: str) -> Optional[HuntSession]:
        session = self.sessions.get(session_id)
        return copy.deepcopy(session) if session else None

    async def create(self, session: HuntSession) -> HuntSession:
        if any(s.owner_id == session.owner_id for s in self.sessions.values()):
            raise ConflictError("You already have an active hunt session")
        self.sessions[session.id] = copy.deepcopy(session)
        return session

    async def save(self, session: HuntSession) -> HuntSession:
        stored = self.sessions.get(session.id)
        if stored is None or stored.version != session.version:
            raise ConflictError("Hunt session was modified concurrently")
        session.version += 1
        self.sessions[session.id] = copy.deepcopy(session)
        self.saves += 1
        return session

    async def delete(self, session: HuntSession) -> None:
        self.sessions.pop(session.id, None)


class InMemoryEconomy:
    """Wallet for a handful of test owners."""

    def __init__(self, level: int = 1, hunt_tickets: int = 5, tools: Optional[Dict[str, int]] = None):
        self.levels: Dict[str, int] = {}
        self.account_xp: Dict[str, int] = {}
        self.tickets: Dict[str, int] = {}
        self.items: Dict[str, Dict[str, int]] = {}
        self.pet_counts: Dict[str, int] = {}
        self.completed_hunts: Dict[str, int] = {}
        self.default_level = level
        self.default_tickets = hunt_tickets
        self.default_tools = dict(tools if tools is not None else {"basic": 5})

    def _inventory(self, owner_id: str) -> Dict[str, int]:
        return self.items.setdefault(owner_id, dict(self.default_tools))

    async def get_account_level(self, owner_id: str) -> int:
        return self.levels.get(owner_id, self.default_level)

    async def has_hunt_ticket(self, owner_id: str) -> bool:
        return self.tickets.get(owner_id, self.default_tickets) > 0

    async def consume_hunt_ticket(self, owner_id: str) -> None:
        held = self.tickets.get(owner_id, self.default_tickets)
        if held < 1:
            raise InsufficientResourceError("hunt tickets")
        self.tickets[owner_id] = held - 1

    async def tool_count(self, owner_id: str, tool: str) -> int:
        return self._inventory(owner_id).get(tool, 0)

    async def consume_tool(self, owner_id: str, tool: str) -> None:
        await self.consume_item(owner_id, tool)

    async def item_quantities(self, owner_id: str) -> Dict[str, int]:
        return {k: v for k, v in self._inventory(owner_id).items() if v > 0}

    async def consume_item(self, owner_id: str, item_id: str) -> None:
        inventory = self._inventory(owner_id)
        if inventory.get(item_id, 0) < 1:
            raise InsufficientResourceError(item_id)
        inventory[item_id] -= 1

    async def increment_pet_count(self, owner_id: str) -> None:
        self.pet_counts[owner_id] = self.pet_counts.get(owner_id, 0) + 1

    async def increment_completed_hunts(self, owner_id: str) -> None:
        self.completed_hunts[owner_id] = self.completed_hunts.get(owner_id, 0) + 1

    async def grant_account_xp(self, owner_id: str, xp_gained: int) -> AccountLevelResult:
        result = apply_account_xp(
            self.levels.get(owner_id, self.default_level),
            self.account_xp.get(owner_id, 0),
            xp_gained,
        )
        self.levels[owner_id] = result.new_level
        self.account_xp[owner_id] = result.remaining_xp
        return result


class InMemoryPetStore:
    def __init__(self):
        self.pets: Dict[str, OwnedPet] = {}

    async def create_pet(self, pet: OwnedPet) -> OwnedPet:
        self.pets[pet.id] = copy.deepcopy(pet)
        return pet

    async def get_pet(self, pet_id: str, for_update: bool = False) -> Optional[OwnedPet]:
        pet = self.pets.get(pet_id)
        return copy.deepcopy(pet) if pet else None

    async def update_pet(self, pet: OwnedPet) -> OwnedPet:
        stored = self.pets.get(pet.id)
        if stored is None or stored.version != pet.version:
            raise ConflictError("Pet was modified concurrently")
        pet.version += 1
        self.pets[pet.id] = copy.deepcopy(pet)
        return pet

    async def count_pets(self, owner_id: str) -> int:
        return sum(1 for p in self.pets.values() if p.owner_id == owner_id)

    async def list_pets(self, owner_id: str) -> List[OwnedPet]:
        return [copy.deepcopy(p) for p in self.pets.values() if p.owner_id == owner_id]


class RecordingHuntRecorder:
    def __init__(self):
        self.settlements = []

    async def record_hunt(self, settlement):
        self.settlements.append(settlement)


class RecordingQuestNotifier:
    def __init__(self, fail: bool = False):
        self.events = []
        self.fail = fail

    async def notify_progress(self, owner_id: str, event_type: str, amount: int = 1):
        if self.fail:
            raise RuntimeError("quest service unavailable")
        self.events.append((owner_id, event_type, amount))


class DuplicatingProgressRepository(QuestProgressRepository):
    """Quest counters whose first insert collides with the unique key."""

    async def increment(self, owner_id: str, event_type: str, amount: int) -> int:
        self.session.add(QuestProgress(owner_id=owner_id, event_type=event_type, progress=0))
        return await super().increment(owner_id, event_type, amount)


# ==================== Static Config Fixtures ====================

def single_spawn_region(
    region_id: str = "meadow",
    species: str = "Fluffbit",
    rarity: str = "common",
    min_level: int = 3,
    max_level: int = 3,
    unlock_level: int = 1,
) -> Region:
    return Region(
        id=region_id,
        name=region_id.title(),
        unlock_level=unlock_level,
        spawn_table=SpawnTable([SpawnEntry(species, rarity, 1.0, min_level, max_level)]),
    )


@pytest.fixture
def small_config() -> GameConfig:
    """Tiny world: one starter region with a single spawn, one gated region."""
    return GameConfig(
        species_stats={
            "Fluffbit": BaseStats(hp=45, attack=35, defense=40, speed=50),
            "Fluffcloud": BaseStats(hp=70, attack=50, defense=65, speed=70),
            "Emberpup": BaseStats(hp=50, attack=60, defense=45, speed=55),
            "Emberwolf": BaseStats(hp=70, attack=85, defense=60, speed=75),
        },
        regions={
            "meadow": single_spawn_region(),
            "volcano": single_spawn_region(
                "volcano", species="Emberpup", min_level=12, max_level=15, unlock_level=10
            ),
        },
        evolutions={
            "Fluffbit": EvolutionDefinition(
                species="Fluffbit",
                can_evolve=True,
                stage=1,
                max_stage=2,
                evolutions=(EvolutionPath("Fluffcloud", 18, "moon-stone"),),
            ),
            "Fluffcloud": EvolutionDefinition(
                species="Fluffcloud", stage=2, max_stage=2, evolves_from="Fluffbit"
            ),
            "Emberpup": EvolutionDefinition(
                species="Emberpup",
                can_evolve=True,
                stage=1,
                max_stage=3,
                evolutions=(EvolutionPath("Emberwolf", 22, "fire-stone"),),
            ),
            "Emberwolf": EvolutionDefinition(
                species="Emberwolf", stage=2, max_stage=3, evolves_from="Emberpup"
            ),
        },
    )


@pytest.fixture(scope="session")
def packaged_config() -> GameConfig:
    """The real game data shipped with the package."""
    return GameConfigLoader().load()


# ==================== Manager Fixtures ====================

@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def economy() -> InMemoryEconomy:
    return InMemoryEconomy()


@pytest.fixture
def pet_store() -> InMemoryPetStore:
    return InMemoryPetStore()


@pytest.fixture
def recorder() -> RecordingHuntRecorder:
    return RecordingHuntRecorder()


@pytest.fixture
def notifier() -> RecordingQuestNotifier:
    return RecordingQuestNotifier()


@pytest.fixture
def manager(small_config, session_store, economy, pet_store, recorder, notifier) -> HuntSessionManager:
    """Hunt manager over in-memory collaborators with a private lock registry."""
    return HuntSessionManager(
        game_config=small_config,
        session_store=session_store,
        economy=economy,
        pet_store=pet_store,
        hunt_recorder=recorder,
        quest_notifier=notifier,
        rng=random.Random(1234),
        locks=SessionLockRegistry(),
    )


@pytest.fixture
def pet_service(small_config, pet_store, economy, notifier) -> PetService:
    return PetService(
        game_config=small_config,
        pet_store=pet_store,
        economy=economy,
        quest_notifier=notifier,
        locks=SessionLockRegistry(),
    )


# ==================== Database Fixtures ====================

@pytest_asyncio.fixture
async def db_factory():
    """Session factory over a fresh in-memory SQLite database."""
    engine = build_engine("sqlite+aiosqlite://")
    await create_tables(engine)

    yield build_session_factory(engine)

    await engine.dispose()
