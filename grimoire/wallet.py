"""Rune wallet: saved talismans, the active talisman and the master talisman.

Invariants kept by every mutating operation:
- at most one talisman carries ``is_master``;
- ``active_talisman_id`` is None or names a talisman in the wallet;
- the master talisman cannot be removed.

The in-memory state is authoritative; storage is a best-effort mirror written
after each change.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .store.schema import ACTIVE_KEY, SEAL_KEY, WALLET_KEY
from .utils import from_iso, generate_talisman_id, to_iso, utcnow

logger = logging.getLogger(__name__)

MASTER_ID_PREFIX = "master_"


class WalletError(ValueError):
    """A wallet operation was called with arguments that would break an invariant."""


@dataclass
class TalismanDraft:
    """User input for a new talisman; id and timestamp are assigned on save."""
    name: str
    component_symbols: List[str]
    keywords: List[str] = field(default_factory=list)
    intention: Optional[str] = None
    dignity_score_at_creation: Optional[int] = None


@dataclass
class SavedTalisman:
    id: str
    name: str
    component_symbols: List[str]
    keywords: List[str]
    created_at: datetime
    is_master: bool = False
    intention: Optional[str] = None
    dignity_score_at_creation: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "componentSymbols": list(self.component_symbols),
            "keywords": list(self.keywords),
            "createdAt": to_iso(self.created_at),
            "isMaster": self.is_master,
        }
        if self.intention is not None:
            data["intention"] = self.intention
        if self.dignity_score_at_creation is not None:
            data["dignityScoreAtCreation"] = self.dignity_score_at_creation
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedTalisman":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            component_symbols=list(data.get("componentSymbols", [])),
            keywords=list(data.get("keywords", [])),
            created_at=from_iso(data.get("createdAt")) or utcnow(),
            is_master=bool(data.get("isMaster", False)),
            intention=data.get("intention"),
            dignity_score_at_creation=data.get("dignityScoreAtCreation"),
        )


class RuneWalletManager:
    """State container for the wallet; its methods are the only mutation surface."""

    def __init__(self, storage, remote=None, clock: Callable[[], datetime] = utcnow):
        self.storage = storage
        self.remote = remote
        self.clock = clock
        self._talismans: Dict[str, SavedTalisman] = {}
        self.active_talisman_id: Optional[str] = None
        self.has_completed_seal = False

    # ---- reads ----

    @property
    def talismans(self) -> List[SavedTalisman]:
        """Talismans in display order."""
        return list(self._talismans.values())

    @property
    def master(self) -> Optional[SavedTalisman]:
        return next((t for t in self._talismans.values() if t.is_master), None)

    def get(self, talisman_id: str) -> Optional[SavedTalisman]:
        return self._talismans.get(talisman_id)

    def get_active(self) -> Optional[SavedTalisman]:
        if not self.active_talisman_id:
            return None
        return self._talismans.get(self.active_talisman_id)

    # ---- loading ----

    async def load(self) -> None:
        """Restore from storage, falling back to an empty wallet on any failure."""
        try:
            wallet_str = self.storage.get_item(WALLET_KEY)
            active_str = self.storage.get_item(ACTIVE_KEY)
            seal_str = self.storage.get_item(SEAL_KEY)

            items = json.loads(wallet_str) if wallet_str else []
            talismans = [SavedTalisman.from_dict(item) for item in items]
        except Exception as e:
            logger.warning(f"Failed to load wallet, starting empty: {type(e).__name__}: {e}")
            self._talismans = {}
            self.active_talisman_id = None
            self.has_completed_seal = False
            return

        self._talismans = {}
        seen_master = False
        for talisman in talismans:
            if talisman.is_master:
                if seen_master:
                    logger.warning(f"Demoting duplicate master talisman {talisman.id}")
                    talisman.is_master = False
                seen_master = True
            self._talismans[talisman.id] = talisman

        self.active_talisman_id = active_str if active_str in self._talismans else None
        if active_str and self.active_talisman_id is None:
            logger.warning(f"Dropping dangling active talisman {active_str}")
        self.has_completed_seal = seal_str == "true"

    # ---- mutations ----

    def _build(self, draft: TalismanDraft, talisman_id: str, is_master: bool) -> SavedTalisman:
        if not draft.name or not draft.name.strip():
            raise WalletError("Talisman name is required")
        return SavedTalisman(
            id=talisman_id,
            name=draft.name.strip(),
            component_symbols=list(draft.component_symbols),
            keywords=list(draft.keywords),
            created_at=self.clock(),
            is_master=is_master,
            intention=draft.intention,
            dignity_score_at_creation=draft.dignity_score_at_creation,
        )

    async def save(self, draft: TalismanDraft) -> str:
        """Append a new talisman. Active and master pointers are left alone."""
        talisman_id = generate_talisman_id()
        while talisman_id in self._talismans:
            talisman_id = generate_talisman_id()
        talisman = self._build(draft, talisman_id, is_master=False)
        self._talismans[talisman.id] = talisman
        await self._persist_wallet()
        logger.info(f"Saved talisman {talisman.id} ({talisman.name})")
        return talisman.id

    async def remove(self, talisman_id: str) -> None:
        talisman = self._talismans.get(talisman_id)
        if talisman is None:
            raise WalletError(f"Unknown talisman: {talisman_id}")
        if talisman.is_master:
            raise WalletError("The master talisman cannot be removed")

        del self._talismans[talisman_id]
        cleared_active = self.active_talisman_id == talisman_id
        if cleared_active:
            self.active_talisman_id = None

        await self._persist_wallet()
        if cleared_active:
            await self._persist_active()
            await self._mirror_active()
        logger.info(f"Removed talisman {talisman_id}")

    async def toggle_active(self, talisman_id: str) -> Optional[str]:
        """Activate ``talisman_id``, or deactivate it if it already is active."""
        if talisman_id not in self._talismans:
            raise WalletError(f"Unknown talisman: {talisman_id}")
        if self.active_talisman_id == talisman_id:
            self.active_talisman_id = None
        else:
            self.active_talisman_id = talisman_id
        await self._persist_active()
        await self._mirror_active()
        return self.active_talisman_id

    async def set_master(self, draft: TalismanDraft) -> SavedTalisman:
        """Create the new master talisman, demote the old one and activate the new one."""
        master = self._build(draft, MASTER_ID_PREFIX + generate_talisman_id(), is_master=True)

        for talisman in self._talismans.values():
            if talisman.is_master:
                talisman.is_master = False
                logger.info(f"Demoted previous master talisman {talisman.id}")

        reordered = {master.id: master}
        reordered.update(self._talismans)
        self._talismans = reordered
        self.active_talisman_id = master.id

        await self._persist_wallet()
        await self._persist_active()
        await self._mirror_active()
        logger.info(f"Master talisman set to {master.id} ({master.name})")
        return master

    async def complete_seal(self) -> None:
        self.has_completed_seal = True
        try:
            await self.storage.set_item(SEAL_KEY, "true")
        except Exception as e:
            logger.error(f"Failed to persist seal flag: {type(e).__name__}: {e}")

    # ---- persistence ----

    async def _persist_wallet(self) -> None:
        try:
            payload = json.dumps([t.to_dict() for t in self._talismans.values()])
            await self.storage.set_item(WALLET_KEY, payload)
        except Exception as e:
            logger.error(f"Failed to persist wallet: {type(e).__name__}: {e}")

    async def _persist_active(self) -> None:
        try:
            if self.active_talisman_id:
                await self.storage.set_item(ACTIVE_KEY, self.active_talisman_id)
            else:
                await self.storage.remove_item(ACTIVE_KEY)
        except Exception as e:
            logger.error(f"Failed to persist active talisman: {type(e).__name__}: {e}")

    async def _mirror_active(self) -> None:
        if self.remote is not None:
            await self.remote.set_active_talisman(self.active_talisman_id)
