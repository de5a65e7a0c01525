"""Grid engine: collective charge, event pledges and passive decay.

The charge loses 10 points for every full 24 hours without a charge update.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from .store.schema import GRID_KEY
from .utils import as_utc, from_iso, to_iso, utcnow

logger = logging.getLogger(__name__)

DEFAULT_CHARGE = 60
MAX_CHARGE = 100
DECAY_PERIOD = timedelta(hours=24)
DECAY_PER_PERIOD = 10


def _clamp(value: int) -> int:
    return max(0, min(MAX_CHARGE, value))


@dataclass
class GridState:
    charge: int = DEFAULT_CHARGE
    last_charge_update: datetime = field(default_factory=utcnow)
    pledged_event_id: Optional[str] = None


# ---- Pure transitions ----

def add_charge(state: GridState, amount: int, now: datetime) -> None:
    state.charge = _clamp(state.charge + amount)
    state.last_charge_update = as_utc(now)


def apply_decay(state: GridState, now: datetime) -> int:
    """Apply every full decay period elapsed since the last update.

    Returns the number of periods applied; zero means the state is untouched.
    """
    elapsed = as_utc(now) - state.last_charge_update
    periods = int(elapsed.total_seconds() // DECAY_PERIOD.total_seconds())
    if periods <= 0:
        return 0
    state.charge = _clamp(state.charge - periods * DECAY_PER_PERIOD)
    state.last_charge_update = as_utc(now)
    return periods


def grid_to_json(state: GridState) -> str:
    return json.dumps({
        "charge": state.charge,
        "lastChargeUpdate": to_iso(state.last_charge_update),
        "pledgedEventId": state.pledged_event_id,
    })


def grid_from_json(raw: str, now: datetime) -> GridState:
    data = json.loads(raw)
    charge = data.get("charge")
    return GridState(
        charge=_clamp(int(charge)) if charge is not None else DEFAULT_CHARGE,
        last_charge_update=from_iso(data.get("lastChargeUpdate")) or as_utc(now),
        pledged_event_id=data.get("pledgedEventId"),
    )


class GridChargeEngine:
    """Owns the grid state and mirrors every change to local storage."""

    def __init__(self, storage, clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self.clock = clock
        self.state = GridState(last_charge_update=clock())
        self.is_loaded = False

    @property
    def charge(self) -> int:
        return self.state.charge

    async def load(self) -> GridState:
        """Restore persisted state, then decay it before anyone reads it."""
        if self.is_loaded:
            return self.state
        now = self.clock()
        try:
            raw = self.storage.get_item(GRID_KEY)
            if raw:
                self.state = grid_from_json(raw, now)
        except Exception as e:
            logger.warning(f"Failed to load grid state, using defaults: {type(e).__name__}: {e}")
            self.state = GridState(last_charge_update=now)
        self.is_loaded = True
        await self.apply_decay(now)
        return self.state

    async def add_charge(self, amount: int) -> int:
        add_charge(self.state, amount, self.clock())
        await self._persist()
        return self.state.charge

    async def set_charge_max(self) -> int:
        return await self.add_charge(MAX_CHARGE)

    async def pledge(self, event_id: str) -> None:
        if not event_id:
            raise ValueError("event_id is required to pledge")
        self.state.pledged_event_id = event_id
        await self._persist()

    async def unpledge(self) -> None:
        self.state.pledged_event_id = None
        await self._persist()

    async def apply_decay(self, now: Optional[datetime] = None) -> int:
        periods = apply_decay(self.state, now or self.clock())
        if periods:
            logger.info(f"Grid decayed {periods} period(s) to charge {self.state.charge}")
            await self._persist()
        return periods

    async def _persist(self) -> None:
        try:
            await self.storage.set_item(GRID_KEY, grid_to_json(self.state))
        except Exception as e:
            logger.error(f"Failed to persist grid state: {type(e).__name__}: {e}")
