"""Client session setup: local storage, engines and remote sync."""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import config
from .grid import GridChargeEngine
from .practice import PracticeTracker
from .store import SQLiteKeyValueStore, init_store
from .sync import RemoteSync
from .wallet import RuneWalletManager

logger = logging.getLogger(__name__)


@dataclass
class ClientSession:
    store: SQLiteKeyValueStore
    remote: Optional[RemoteSync]
    wallet: RuneWalletManager
    grid: GridChargeEngine
    tracker: PracticeTracker

    async def close(self) -> None:
        if self.remote is not None:
            await self.remote.close()
        await self.store.close()


# Global session instance
session: Optional[ClientSession] = None


def create_remote() -> Optional[RemoteSync]:
    """Build the remote sync client, or None when it is not configured."""
    if not (config.api_url and config.user_id and config.api_secret):
        logger.warning("Remote sync disabled: API_URL, USER_ID and API_SECRET are required")
        return None
    return RemoteSync(
        config.api_url,
        config.user_id,
        config.api_secret,
        timeout=config.remote_timeout,
    )


async def open_session(
    data_file: Optional[str] = None,
    remote: Optional[RemoteSync] = None,
) -> ClientSession:
    """Open local storage and load every engine from it.

    Grid decay is applied during loading, before any charge can be read.
    """
    global session
    kv_store = await init_store(data_file or config.local_data_file)
    if remote is None:
        remote = create_remote()

    wallet = RuneWalletManager(kv_store, remote=remote)
    grid = GridChargeEngine(kv_store)
    tracker = PracticeTracker(kv_store, remote=remote)
    await wallet.load()
    await grid.load()
    await tracker.load()

    session = ClientSession(kv_store, remote, wallet, grid, tracker)
    logger.info(
        f"Client session opened ({len(wallet.talismans)} talismans, charge {grid.charge})"
    )
    return session


def get_session() -> ClientSession:
    """Get the global client session."""
    if session is None:
        raise RuntimeError("Session not initialized. Call open_session() first.")
    return session
