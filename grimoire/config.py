"""Configuration loading and validation."""

import os
import sys
from dataclasses import dataclass
from dotenv import load_dotenv


@dataclass
class Config:
    """Grimoire configuration."""
    data_file: str
    local_data_file: str
    api_url: str
    api_port: int
    api_secret: str
    user_id: str
    leaderboard_refresh_minutes: int
    remote_timeout: float


def load_config() -> Config:
    """Load and validate configuration from environment variables."""
    load_dotenv()

    data_file = os.getenv("DATA_FILE", "grimoire.db")
    local_data_file = os.getenv("LOCAL_DATA_FILE", "local.db")
    api_url = os.getenv("API_URL", "http://127.0.0.1:8080")
    api_port_str = os.getenv("API_PORT", "8080")
    api_secret = os.getenv("API_SECRET", "")
    user_id = os.getenv("USER_ID", "")
    refresh_str = os.getenv("LEADERBOARD_REFRESH_MINUTES", "15")
    timeout_str = os.getenv("REMOTE_TIMEOUT", "10")

    try:
        api_port = int(api_port_str)
        leaderboard_refresh_minutes = int(refresh_str)
        remote_timeout = float(timeout_str)
    except ValueError:
        sys.stderr.write(
            "API_PORT and LEADERBOARD_REFRESH_MINUTES must be integers, "
            "REMOTE_TIMEOUT must be a number.\n"
        )
        sys.exit(1)

    return Config(
        data_file=data_file,
        local_data_file=local_data_file,
        api_url=api_url.rstrip("/"),
        api_port=api_port,
        api_secret=api_secret,
        user_id=user_id,
        leaderboard_refresh_minutes=leaderboard_refresh_minutes,
        remote_timeout=remote_timeout,
    )


config = load_config()
