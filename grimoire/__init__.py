"""Grimoire: progression and affinity engine for a ritual-practice tracker."""

from .analytics import AnalyticsRecord, Element, ProgressionRecord
from .grid import GridChargeEngine, GridState
from .leaderboard import LeaderboardCache, LeaderboardEntry, ProgressionSnapshot
from .practice import PracticeOutcome, PracticeTracker
from .rituals import RitualDefinition
from .sync import ProgressionResult, RemoteSync
from .wallet import RuneWalletManager, SavedTalisman, TalismanDraft, WalletError

__all__ = [
    # Records
    "AnalyticsRecord",
    "Element",
    "ProgressionRecord",
    # Engines
    "GridChargeEngine",
    "GridState",
    "LeaderboardCache",
    "LeaderboardEntry",
    "ProgressionSnapshot",
    "PracticeOutcome",
    "PracticeTracker",
    "RitualDefinition",
    "RuneWalletManager",
    "SavedTalisman",
    "TalismanDraft",
    "WalletError",
    # Remote
    "ProgressionResult",
    "RemoteSync",
]
