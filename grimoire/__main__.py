"""Server entry point."""

import asyncio
import logging
import signal
import sys

import uvicorn

from .config import config
from .rewards import load_rewards
from .scheduler import refresh_leaderboard, start_scheduler, stop_scheduler
from .server import init_records
from .server.webapp import app as webapp_app

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Suppress APScheduler INFO logs
logging.getLogger("apscheduler").setLevel(logging.WARNING)

# Ensure uvicorn logs show in terminal
logging.getLogger("uvicorn").setLevel(logging.INFO)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)
logging.getLogger("uvicorn.access").setLevel(logging.INFO)


async def run_server() -> None:
    """Initialize the records store and serve the progression API."""
    if not config.api_secret:
        sys.stderr.write("Missing required environment variable: API_SECRET\n")
        sys.exit(1)

    load_rewards()
    records = await init_records(config.data_file)

    # Rebuild once at startup so the first reads are not empty
    await refresh_leaderboard(records)
    start_scheduler(records, config.leaderboard_refresh_minutes)

    uvicorn_config = uvicorn.Config(
        webapp_app,
        host="0.0.0.0",
        port=config.api_port,
        log_level="info",
        access_log=True,
    )
    server = uvicorn.Server(uvicorn_config)
    server.install_signal_handlers = lambda: None
    server_task = asyncio.create_task(server.serve())
    logger.info(f"Progression API started on port {config.api_port}")

    # Wait for stop signal (Ctrl+C / SIGTERM)
    stop_event = asyncio.Event()

    def _signal_handler(*_):
        logger.info("Stop signal received. Shutting down...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, _signal_handler)
        loop.add_signal_handler(signal.SIGTERM, _signal_handler)
    else:
        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)

    await stop_event.wait()

    # Cleanup
    server.should_exit = True
    try:
        await asyncio.wait_for(server_task, timeout=3)
    except (asyncio.TimeoutError, asyncio.CancelledError):
        server_task.cancel()
    logger.info("Progression API stopped")

    stop_scheduler()
    await records.close()
    logger.info("Server stopped cleanly.")


def main() -> None:
    """Main entry point."""
    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
