"""
Tests for the grid charge engine.

See grimoire/grid.py for implementation.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from grimoire.grid import (
    DEFAULT_CHARGE,
    GridChargeEngine,
    GridState,
    add_charge,
    apply_decay,
    grid_from_json,
    grid_to_json,
)
from grimoire.store.schema import GRID_KEY
from tests.helpers import BrokenStorage, FailingStorage, MemoryStorage

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def stored_grid(charge, last_update, pledged=None):
    return json.dumps({
        "charge": charge,
        "lastChargeUpdate": last_update.isoformat(),
        "pledgedEventId": pledged,
    })


# =============================================================================
# Pure transitions
# =============================================================================

def test_decay_catches_up_missed_periods():
    state = GridState(charge=60, last_charge_update=START)

    periods = apply_decay(state, START + timedelta(hours=50))

    assert periods == 2
    assert state.charge == 40
    assert state.last_charge_update == START + timedelta(hours=50)


def test_decay_clamps_at_zero():
    state = GridState(charge=5, last_charge_update=START)

    apply_decay(state, START + timedelta(hours=1000))

    assert state.charge == 0


def test_decay_within_one_day_is_a_no_op():
    state = GridState(charge=60, last_charge_update=START)

    assert apply_decay(state, START + timedelta(hours=23, minutes=59)) == 0
    assert state.charge == 60
    assert state.last_charge_update == START


def test_decay_is_idempotent():
    state = GridState(charge=60, last_charge_update=START)
    later = START + timedelta(hours=30)

    apply_decay(state, later)
    apply_decay(state, later)

    assert state.charge == 50


def test_add_charge_clamps():
    state = GridState(charge=95, last_charge_update=START)

    add_charge(state, 20, START + timedelta(hours=1))
    assert state.charge == 100
    assert state.last_charge_update == START + timedelta(hours=1)

    add_charge(state, -500, START)
    assert state.charge == 0


def test_json_format():
    state = GridState(charge=70, last_charge_update=START, pledged_event_id="eclipse")

    data = json.loads(grid_to_json(state))

    assert data == {
        "charge": 70,
        "lastChargeUpdate": "2026-03-01T12:00:00+00:00",
        "pledgedEventId": "eclipse",
    }
    assert grid_from_json(grid_to_json(state), START) == state


def test_json_with_missing_fields_uses_defaults():
    state = grid_from_json("{}", START)

    assert state.charge == DEFAULT_CHARGE
    assert state.last_charge_update == START
    assert state.pledged_event_id is None


# =============================================================================
# Engine
# =============================================================================

@pytest.mark.asyncio
async def test_fresh_engine_starts_at_default(storage, clock):
    engine = GridChargeEngine(storage, clock=clock)

    await engine.load()

    assert engine.charge == 60
    assert engine.state.pledged_event_id is None


@pytest.mark.asyncio
async def test_load_applies_decay_before_reads(clock):
    storage = MemoryStorage({GRID_KEY: stored_grid(60, clock.now - timedelta(hours=50))})
    engine = GridChargeEngine(storage, clock=clock)

    await engine.load()

    assert engine.charge == 40
    assert json.loads(storage.items[GRID_KEY])["charge"] == 40


@pytest.mark.asyncio
async def test_load_only_happens_once(clock):
    storage = MemoryStorage({GRID_KEY: stored_grid(80, clock.now)})
    engine = GridChargeEngine(storage, clock=clock)

    await engine.load()
    storage.items[GRID_KEY] = stored_grid(10, clock.now)
    await engine.load()

    assert engine.charge == 80


@pytest.mark.asyncio
async def test_corrupt_blob_falls_back_to_defaults(clock):
    storage = MemoryStorage({GRID_KEY: "{not json"})
    engine = GridChargeEngine(storage, clock=clock)

    await engine.load()

    assert engine.charge == DEFAULT_CHARGE


@pytest.mark.asyncio
async def test_unreadable_storage_falls_back_to_defaults(clock):
    engine = GridChargeEngine(BrokenStorage(), clock=clock)

    await engine.load()

    assert engine.charge == DEFAULT_CHARGE


@pytest.mark.asyncio
async def test_add_charge_persists(storage, clock):
    engine = GridChargeEngine(storage, clock=clock)
    await engine.load()

    assert await engine.add_charge(15) == 75

    data = json.loads(storage.items[GRID_KEY])
    assert data["charge"] == 75
    assert data["lastChargeUpdate"] == clock.now.isoformat()


@pytest.mark.asyncio
async def test_set_charge_max(storage, clock):
    engine = GridChargeEngine(storage, clock=clock)
    await engine.load()

    assert await engine.set_charge_max() == 100


@pytest.mark.asyncio
async def test_pledge_does_not_touch_charge(storage, clock):
    engine = GridChargeEngine(storage, clock=clock)
    await engine.load()

    await engine.pledge("full-moon")
    assert engine.state.pledged_event_id == "full-moon"
    assert engine.charge == DEFAULT_CHARGE
    assert json.loads(storage.items[GRID_KEY])["pledgedEventId"] == "full-moon"

    await engine.unpledge()
    assert engine.state.pledged_event_id is None
    assert json.loads(storage.items[GRID_KEY])["pledgedEventId"] is None


@pytest.mark.asyncio
async def test_pledge_requires_event(storage, clock):
    engine = GridChargeEngine(storage, clock=clock)

    with pytest.raises(ValueError):
        await engine.pledge("")


@pytest.mark.asyncio
async def test_engine_decay_after_idle(storage, clock):
    engine = GridChargeEngine(storage, clock=clock)
    await engine.load()

    clock.advance(hours=23, minutes=59)
    assert await engine.apply_decay() == 0
    clock.advance(minutes=1)
    assert await engine.apply_decay() == 1

    assert engine.charge == 50


@pytest.mark.asyncio
async def test_failed_write_keeps_memory_state(clock):
    engine = GridChargeEngine(FailingStorage(), clock=clock)
    await engine.load()

    assert await engine.add_charge(10) == 70
    assert engine.charge == 70
