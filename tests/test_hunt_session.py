"""Tests for the hunt session state machine."""
import asyncio
import copy
import random

import pytest

from pethunt.core.errors import (
    AlreadyCaughtError,
    ConflictError,
    ForbiddenError,
    InsufficientResourceError,
    InvalidStateError,
    NotFoundError,
)
from pethunt.core.game_data import GameConfig
from pethunt.core.hunt_session import (
    EVENT_CATCH,
    EVENT_COMPLETE_HUNT,
    HuntSessionManager,
    HuntState,
    SessionLockRegistry,
)
from pethunt.core.progression import BaseStats, IndividualModifiers, derive_stats
from tests.conftest import (
    InMemoryEconomy,
    RecordingQuestNotifier,
    ScriptedRandom,
    single_spawn_region,
)


OWNER = "owner-1"

# Encounter roll under 0.5, sample, then the level draw
ENCOUNTER_ROLL = dict(floats=[0.1, 0.5], ints=[3])
NO_ENCOUNTER_ROLL = dict(floats=[0.9])


async def find_encounter(manager, session_id, owner_id=OWNER):
    result = await manager.move(owner_id, session_id, "up", rng=ScriptedRandom(**ENCOUNTER_ROLL))
    assert result.encounter is not None
    return result.encounter


class TestStartSession:
    """Opening a hunt."""

    @pytest.mark.asyncio
    async def test_opens_with_full_budget(self, manager, economy, session_store):
        session = await manager.start_session(OWNER, "meadow")

        assert session.state == HuntState.OPEN
        assert session.moves_remaining == 10
        assert session.encounters == []
        assert economy.tickets[OWNER] == 4
        assert session.id in session_store.sessions

    @pytest.mark.asyncio
    async def test_unknown_region(self, manager, economy):
        with pytest.raises(NotFoundError):
            await manager.start_session(OWNER, "atlantis")
        assert OWNER not in economy.tickets

    @pytest.mark.asyncio
    async def test_second_session_conflicts(self, manager, economy):
        await manager.start_session(OWNER, "meadow")
        with pytest.raises(ConflictError):
            await manager.start_session(OWNER, "meadow")
        assert economy.tickets[OWNER] == 4

    @pytest.mark.asyncio
    async def test_exhausted_session_still_blocks(self, manager):
        session = await manager.start_session(OWNER, "meadow")
        for _ in range(10):
            await manager.move(OWNER, session.id, "left", rng=ScriptedRandom(**NO_ENCOUNTER_ROLL))
        with pytest.raises(ConflictError):
            await manager.start_session(OWNER, "meadow")

    @pytest.mark.asyncio
    async def test_level_gate(self, manager, economy):
        with pytest.raises(ForbiddenError) as exc_info:
            await manager.start_session(OWNER, "volcano")
        assert exc_info.value.details["required_level"] == 10
        assert OWNER not in economy.tickets

    @pytest.mark.asyncio
    async def test_level_gate_met(self, manager, economy):
        economy.levels[OWNER] = 10
        session = await manager.start_session(OWNER, "volcano")
        assert session.region_id == "volcano"

    @pytest.mark.asyncio
    async def test_no_ticket(self, manager, economy, session_store):
        economy.tickets[OWNER] = 0
        with pytest.raises(InsufficientResourceError):
            await manager.start_session(OWNER, "meadow")
        assert session_store.sessions == {}

    @pytest.mark.asyncio
    async def test_owners_are_independent(self, manager):
        first = await manager.start_session("alice", "meadow")
        second = await manager.start_session("bob", "meadow")
        assert first.id != second.id


class TestMove:
    """Spending moves and meeting wild pets."""

    @pytest.mark.asyncio
    async def test_move_without_encounter(self, manager):
        session = await manager.start_session(OWNER, "meadow")
        result = await manager.move(OWNER, session.id, "down", rng=ScriptedRandom(**NO_ENCOUNTER_ROLL))

        assert result.encounter is None
        assert result.direction == "down"
        assert result.session.moves_remaining == 9

    @pytest.mark.asyncio
    async def test_move_with_encounter(self, manager, session_store):
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)

        assert encounter.species == "Fluffbit"
        assert encounter.level == 3
        stored = session_store.sessions[session.id]
        assert [e.id for e in stored.encounters] == [encounter.id]
        assert stored.moves_remaining == 9

    @pytest.mark.asyncio
    async def test_direction_does_not_change_outcome(self, manager):
        session = await manager.start_session(OWNER, "meadow")
        for direction in ("up", "down", "left", "right"):
            result = await manager.move(OWNER, session.id, direction, rng=ScriptedRandom(**ENCOUNTER_ROLL))
            assert result.encounter.level == 3

    @pytest.mark.asyncio
    async def test_budget_exhaustion(self, manager, session_store):
        session = await manager.start_session(OWNER, "meadow")
        for _ in range(10):
            result = await manager.move(OWNER, session.id, "up", rng=ScriptedRandom(**NO_ENCOUNTER_ROLL))
        assert result.session.state == HuntState.EXHAUSTED

        with pytest.raises(InvalidStateError):
            await manager.move(OWNER, session.id, "up", rng=ScriptedRandom(**NO_ENCOUNTER_ROLL))
        assert session_store.sessions[session.id].moves_remaining == 0

    @pytest.mark.asyncio
    async def test_moves_only_decrease(self, manager):
        session = await manager.start_session(OWNER, "meadow")
        rng = random.Random(42)
        previous = session.moves_remaining
        for _ in range(10):
            result = await manager.move(OWNER, session.id, "right", rng=rng)
            assert result.session.moves_remaining == previous - 1
            assert result.session.moves_remaining >= 0
            previous = result.session.moves_remaining

    @pytest.mark.asyncio
    async def test_other_owner_cannot_move(self, manager):
        session = await manager.start_session(OWNER, "meadow")
        with pytest.raises(NotFoundError):
            await manager.move("intruder", session.id, "up")

    @pytest.mark.asyncio
    async def test_unknown_session(self, manager):
        with pytest.raises(NotFoundError):
            await manager.move(OWNER, "missing", "up")


class TestAttemptCapture:
    """Throwing capture tools."""

    @pytest.mark.asyncio
    async def test_end_to_end_single_spawn(self, session_store, pet_store, recorder, notifier):
        """Find the only spawn and catch it with a premium tool."""
        base = BaseStats(hp=45, attack=35, defense=40, speed=50)
        config = GameConfig(
            species_stats={"Fluffbit": base},
            regions={"meadow": single_spawn_region(min_level=5, max_level=5)},
            evolutions={},
        )
        economy = InMemoryEconomy(tools={"premium": 1})
        manager = HuntSessionManager(
            config, session_store, economy, pet_store, recorder,
            quest_notifier=notifier, locks=SessionLockRegistry(),
        )

        session = await manager.start_session(OWNER, "meadow")
        encounter = None
        scripted_moves = [
            ScriptedRandom(floats=[0.8]),
            ScriptedRandom(floats=[0.6]),
            ScriptedRandom(floats=[0.3, 0.7], ints=[5]),
        ]
        for rng in scripted_moves:
            encounter = (await manager.move(OWNER, session.id, "up", rng=rng)).encounter
        assert encounter is not None

        result = await manager.attempt_capture(
            OWNER, session.id, encounter.id, "premium",
            rng=ScriptedRandom(floats=[0.5], ints=[1, 2, 3, 4]),
        )

        assert result.success is True
        assert result.probability == pytest.approx(0.96)
        pet = result.pet
        assert pet.level == 5
        assert pet.species == "Fluffbit"
        assert pet.owner_id == OWNER
        assert pet.individual_modifiers == IndividualModifiers(1, 2, 3, 4)
        assert pet.stats == derive_stats(base, IndividualModifiers(1, 2, 3, 4), 5, 1.0)
        assert pet.hp == pet.max_hp

        assert pet.id in pet_store.pets
        assert economy.pet_counts[OWNER] == 1
        assert await economy.tool_count(OWNER, "premium") == 0
        assert session_store.sessions[session.id].encounters[0].caught is True
        assert (OWNER, EVENT_CATCH, 1) in notifier.events

    @pytest.mark.asyncio
    async def test_failed_capture_spends_tool(self, manager, economy, pet_store, session_store):
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)

        # basic vs common is 0.48
        result = await manager.attempt_capture(
            OWNER, session.id, encounter.id, "basic", rng=ScriptedRandom(floats=[0.48])
        )

        assert result.success is False
        assert result.pet is None
        assert "broke free" in result.message
        assert await economy.tool_count(OWNER, "basic") == 4
        assert pet_store.pets == {}
        stored = session_store.sessions[session.id].encounters[0]
        assert stored.caught is False
        assert stored.capture_attempted is True

    @pytest.mark.asyncio
    async def test_failed_encounter_cannot_be_retried(self, manager, economy):
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)
        await manager.attempt_capture(OWNER, session.id, encounter.id, "basic", rng=ScriptedRandom(floats=[0.99]))

        with pytest.raises(InvalidStateError):
            await manager.attempt_capture(OWNER, session.id, encounter.id, "basic", rng=ScriptedRandom(floats=[0.0]))
        assert await economy.tool_count(OWNER, "basic") == 4

    @pytest.mark.asyncio
    async def test_recapture_fails_without_mutation(self, manager, economy, pet_store, session_store, notifier):
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)
        await manager.attempt_capture(
            OWNER, session.id, encounter.id, "basic",
            rng=ScriptedRandom(floats=[0.1], ints=[0, 0, 0, 0]),
        )

        sessions_before = copy.deepcopy(session_store.sessions)
        pets_before = copy.deepcopy(pet_store.pets)
        tools_before = await economy.tool_count(OWNER, "basic")
        events_before = list(notifier.events)

        with pytest.raises(AlreadyCaughtError):
            await manager.attempt_capture(OWNER, session.id, encounter.id, "basic", rng=ScriptedRandom())

        assert session_store.sessions == sessions_before
        assert pet_store.pets == pets_before
        assert await economy.tool_count(OWNER, "basic") == tools_before
        assert economy.pet_counts[OWNER] == 1
        assert notifier.events == events_before

    @pytest.mark.asyncio
    async def test_missing_tool(self, manager, session_store):
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)
        with pytest.raises(InsufficientResourceError):
            await manager.attempt_capture(OWNER, session.id, encounter.id, "premium", rng=ScriptedRandom())
        assert session_store.sessions[session.id].encounters[0].capture_attempted is False

    @pytest.mark.asyncio
    async def test_legacy_tool_name(self, manager, economy):
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)
        result = await manager.attempt_capture(
            OWNER, session.id, encounter.id, "pokeball",
            rng=ScriptedRandom(floats=[0.1], ints=[0, 0, 0, 0]),
        )
        assert result.tool == "basic"
        assert await economy.tool_count(OWNER, "basic") == 4

    @pytest.mark.asyncio
    async def test_pet_storage_full(self, small_config, session_store, economy, pet_store, recorder):
        manager = HuntSessionManager(
            small_config, session_store, economy, pet_store, recorder,
            max_pets=1, locks=SessionLockRegistry(),
        )
        session = await manager.start_session(OWNER, "meadow")
        first = await find_encounter(manager, session.id)
        await manager.attempt_capture(OWNER, session.id, first.id, "basic", rng=ScriptedRandom(floats=[0.1], ints=[0, 0, 0, 0]))
        second = await find_encounter(manager, session.id)

        with pytest.raises(InsufficientResourceError) as exc_info:
            await manager.attempt_capture(OWNER, session.id, second.id, "basic", rng=ScriptedRandom())
        assert exc_info.value.details["resource"] == "pet storage"
        assert await economy.tool_count(OWNER, "basic") == 4

    @pytest.mark.asyncio
    async def test_capture_after_budget_runs_out(self, manager):
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)
        for _ in range(9):
            await manager.move(OWNER, session.id, "up", rng=ScriptedRandom(**NO_ENCOUNTER_ROLL))

        result = await manager.attempt_capture(
            OWNER, session.id, encounter.id, "basic",
            rng=ScriptedRandom(floats=[0.1], ints=[5, 5, 5, 5]),
        )
        assert result.success is True

    @pytest.mark.asyncio
    async def test_unknown_encounter(self, manager):
        session = await manager.start_session(OWNER, "meadow")
        with pytest.raises(NotFoundError):
            await manager.attempt_capture(OWNER, session.id, "encounter_0_nope", "basic")

    @pytest.mark.asyncio
    async def test_notifier_failure_is_swallowed(self, small_config, session_store, economy, pet_store, recorder, caplog):
        manager = HuntSessionManager(
            small_config, session_store, economy, pet_store, recorder,
            quest_notifier=RecordingQuestNotifier(fail=True), locks=SessionLockRegistry(),
        )
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)

        result = await manager.attempt_capture(
            OWNER, session.id, encounter.id, "basic",
            rng=ScriptedRandom(floats=[0.1], ints=[0, 0, 0, 0]),
        )

        assert result.success is True
        assert len(pet_store.pets) == 1
        assert "not recorded" in caplog.text


class TestSettlement:
    """Completing, fleeing and auto-completing."""

    @pytest.mark.asyncio
    async def test_complete_records_and_closes(self, manager, economy, session_store, recorder, notifier):
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)
        await manager.attempt_capture(OWNER, session.id, encounter.id, "basic", rng=ScriptedRandom(floats=[0.1], ints=[0, 0, 0, 0]))
        await find_encounter(manager, session.id)

        settlement = await manager.complete(OWNER, session.id)

        assert settlement.pets_caught == 1
        assert settlement.total_encounters == 2
        assert settlement.moves_forfeited == 8
        assert settlement.auto_settled is False
        assert recorder.settlements == [settlement]
        assert economy.completed_hunts[OWNER] == 1
        assert session_store.sessions == {}
        assert (OWNER, EVENT_COMPLETE_HUNT, 1) in notifier.events

    @pytest.mark.asyncio
    async def test_new_hunt_after_complete(self, manager):
        session = await manager.start_session(OWNER, "meadow")
        await manager.complete(OWNER, session.id)
        again = await manager.start_session(OWNER, "meadow")
        assert again.id != session.id

    @pytest.mark.asyncio
    async def test_flee_does_not_settle(self, manager, economy, session_store, recorder, pet_store):
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)
        await manager.attempt_capture(OWNER, session.id, encounter.id, "basic", rng=ScriptedRandom(floats=[0.1], ints=[0, 0, 0, 0]))

        await manager.flee(OWNER, session.id)

        assert session_store.sessions == {}
        assert recorder.settlements == []
        assert OWNER not in economy.completed_hunts
        assert len(pet_store.pets) == 1

    @pytest.mark.asyncio
    async def test_terminal_session_rejects_actions(self, manager):
        session = await manager.start_session(OWNER, "meadow")
        await manager.flee(OWNER, session.id)
        with pytest.raises(NotFoundError):
            await manager.move(OWNER, session.id, "up")
        with pytest.raises(NotFoundError):
            await manager.complete(OWNER, session.id)

    @pytest.mark.asyncio
    async def test_get_session_open(self, manager):
        session = await manager.start_session(OWNER, "meadow")
        lookup = await manager.get_session(OWNER)
        assert lookup.active
        assert lookup.session.id == session.id
        assert lookup.settlement is None

    @pytest.mark.asyncio
    async def test_get_session_none(self, manager):
        lookup = await manager.get_session(OWNER)
        assert not lookup.active
        assert lookup.settlement is None

    @pytest.mark.asyncio
    async def test_get_session_auto_settles_exhausted(self, manager, session_store, recorder, economy):
        session = await manager.start_session(OWNER, "meadow")
        for _ in range(10):
            await manager.move(OWNER, session.id, "up", rng=ScriptedRandom(**NO_ENCOUNTER_ROLL))

        lookup = await manager.get_session(OWNER)

        assert not lookup.active
        assert lookup.settlement.auto_settled is True
        assert lookup.settlement.moves_forfeited == 0
        assert recorder.settlements == [lookup.settlement]
        assert economy.completed_hunts[OWNER] == 1
        assert session_store.sessions == {}


class TestConcurrency:
    """Operations on one owner's session are serialized."""

    @pytest.mark.asyncio
    async def test_parallel_moves_respect_budget(self, manager, session_store):
        session = await manager.start_session(OWNER, "meadow")
        results = await asyncio.gather(
            *(manager.move(OWNER, session.id, "up", rng=random.Random(i)) for i in range(12)),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 2
        assert all(isinstance(e, InvalidStateError) for e in errors)
        assert session_store.sessions[session.id].moves_remaining == 0
        assert session_store.saves == 10

    @pytest.mark.asyncio
    async def test_parallel_starts_create_one_session(self, manager, session_store, economy):
        results = await asyncio.gather(
            manager.start_session(OWNER, "meadow"),
            manager.start_session(OWNER, "meadow"),
            return_exceptions=True,
        )
        assert sum(isinstance(r, ConflictError) for r in results) == 1
        assert len(session_store.sessions) == 1
        assert economy.tickets[OWNER] == 4

    @pytest.mark.asyncio
    async def test_stale_save_conflicts(self, manager, session_store):
        session = await manager.start_session(OWNER, "meadow")
        stale = await session_store.get_by_id(session.id)
        await manager.move(OWNER, session.id, "up", rng=ScriptedRandom(**NO_ENCOUNTER_ROLL))

        stale.moves_remaining = 10
        with pytest.raises(ConflictError):
            await session_store.save(stale)

    @pytest.mark.asyncio
    async def test_writes_commit_before_lock_release(self, manager, notifier):
        commits = []

        async def commit():
            commits.append((manager.locks.lock_for(OWNER).locked(), len(notifier.events)))

        manager.commit = commit
        session = await manager.start_session(OWNER, "meadow")
        encounter = await find_encounter(manager, session.id)
        await manager.attempt_capture(
            OWNER, session.id, encounter.id, "basic", rng=ScriptedRandom(floats=[0.0], ints=[1, 2, 3, 4])
        )
        await manager.complete(OWNER, session.id)

        # start, move, capture, complete: each under the lock, before its notification
        assert commits == [(True, 0), (True, 0), (True, 0), (True, 1)]
        assert len(notifier.events) == 2
