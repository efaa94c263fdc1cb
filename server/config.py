"""
Centralized configuration for the Ride the Bus game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.game_defaults.bus_driver_target)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class GameDefaults:
    """Rule parameters shared by every lobby."""
    two_deck_player_count: int = 5  # 2 decks from this many players up
    min_players: int = 2
    bus_driver_target: int = 10
    bot_id_prefix: str = "bot-"


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Redis (lobby records + pub/sub)
    REDIS_URL: str = "redis://localhost:6379/0"
    SERVER_ID: str = "default"
    LOBBY_TTL_HOURS: int = 24

    # Sync
    POLL_INTERVAL_SECONDS: float = 2.0
    REVISION_CHECK: bool = False

    # Bots
    BOT_GUESS_DELAY_SECONDS: float = 1.5

    game_defaults: GameDefaults = field(default_factory=GameDefaults)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            REDIS_URL=get_env("REDIS_URL", "redis://localhost:6379/0"),
            SERVER_ID=get_env("SERVER_ID", "default"),
            LOBBY_TTL_HOURS=get_env_int("LOBBY_TTL_HOURS", 24),
            POLL_INTERVAL_SECONDS=get_env_float("POLL_INTERVAL_SECONDS", 2.0),
            REVISION_CHECK=get_env_bool("REVISION_CHECK", False),
            BOT_GUESS_DELAY_SECONDS=get_env_float("BOT_GUESS_DELAY_SECONDS", 1.5),
            game_defaults=GameDefaults(
                two_deck_player_count=get_env_int("TWO_DECK_PLAYER_COUNT", 5),
                min_players=get_env_int("MIN_PLAYERS", 2),
                bus_driver_target=get_env_int("BUS_DRIVER_TARGET", 10),
                bot_id_prefix=get_env("BOT_ID_PREFIX", "bot-"),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
