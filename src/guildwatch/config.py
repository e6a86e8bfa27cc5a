#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Configuration Module
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Configuration management for GuildWatch.

Loads settings from environment variables with sensible defaults.
Covers the Discord connection, the YouTube Data API, the Statbot API
and the polling cadence.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _get_project_root() -> Path:
    """Find the project root directory."""
    current = Path(__file__).resolve().parent
    # Walk up until we find pyproject.toml
    for _ in range(10):
        if (current / "pyproject.toml").exists():
            return current
        current = current.parent
    # Fallback to 2 levels up from src/guildwatch
    return Path(__file__).resolve().parent.parent.parent


def _load_dotenv() -> None:
    """Load .env file from the project root."""
    from dotenv import load_dotenv

    env_path = _get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)


# Load environment on module import
_load_dotenv()


def _env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def _env_path(key: str, default: Path) -> Path:
    """Get path environment variable."""
    val = os.environ.get(key, "")
    if val:
        path = Path(val).expanduser()
        return path if path.is_absolute() else _get_project_root() / path
    return default


@dataclass
class DiscordConfig:
    """Discord bot configuration."""

    bot_token: str = field(default_factory=lambda: _env("DISCORD_BOT_TOKEN", ""))
    command_prefix: str = field(default_factory=lambda: _env("DISCORD_COMMAND_PREFIX", "!"))
    # Prefix commands need the privileged message content intent
    enable_message_content: bool = field(default_factory=lambda: _env_bool("DISCORD_ENABLE_MESSAGE_CONTENT", True))
    sync_guild_id: Optional[int] = field(default_factory=lambda: _env_int("DISCORD_SYNC_GUILD_ID", 0) or None)

    @property
    def is_configured(self) -> bool:
        """Check if Discord is properly configured."""
        return bool(self.bot_token)


@dataclass
class YouTubeConfig:
    """YouTube Data API configuration."""

    api_key: str = field(default_factory=lambda: _env("YOUTUBE_API_KEY", ""))
    base_url: str = field(
        default_factory=lambda: _env("YOUTUBE_API_URL", "https://www.googleapis.com/youtube/v3")
    )
    timeout: float = field(default_factory=lambda: _env_float("YOUTUBE_TIMEOUT", 10.0))


@dataclass
class StatbotConfig:
    """Statbot API configuration."""

    api_key: str = field(default_factory=lambda: _env("STATBOT_API_KEY", ""))
    base_url: str = field(default_factory=lambda: _env("STATBOT_API_URL", "https://api.statbot.net"))
    timeout: float = field(default_factory=lambda: _env_float("STATBOT_TIMEOUT", 10.0))

    # Pause between requests of the full endpoint check
    full_check_pause_sec: float = field(default_factory=lambda: _env_float("STATBOT_FULL_CHECK_PAUSE", 5.0))


@dataclass
class PollConfig:
    """YouTube polling cadence."""

    # Base cycle interval; the real delay is this times the number of guilds
    base_interval_sec: int = field(default_factory=lambda: _env_int("POLL_INTERVAL_SECONDS", 30))

    # Delay used when the guild list itself cannot be read
    failure_retry_sec: int = field(default_factory=lambda: _env_int("POLL_FAILURE_RETRY_SECONDS", 60))

    # Upper bound for one upstream lookup, on top of the HTTP timeout
    fetch_timeout_sec: float = field(default_factory=lambda: _env_float("POLL_FETCH_TIMEOUT", 15.0))

    # Check channels of a cycle concurrently instead of one after another
    concurrent_channels: bool = field(default_factory=lambda: _env_bool("POLL_CONCURRENT_CHANNELS", False))


@dataclass
class PathConfig:
    """File and directory path configuration."""

    project_root: Path = field(default_factory=_get_project_root)

    # Database
    database_path: Path = field(
        default_factory=lambda: _env_path("DATABASE_PATH", _get_project_root() / "data" / "guildwatch.db")
    )

    # Log file
    log_file: Path = field(
        default_factory=lambda: _env_path("GUILDWATCH_LOG_FILE", _get_project_root() / "logs" / "guildwatch.log")
    )


@dataclass
class Config:
    """
    Master configuration for GuildWatch.

    Aggregates all sub-configurations and provides utility methods.
    """

    discord: DiscordConfig = field(default_factory=DiscordConfig)
    youtube: YouTubeConfig = field(default_factory=YouTubeConfig)
    statbot: StatbotConfig = field(default_factory=StatbotConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    paths: PathConfig = field(default_factory=PathConfig)

    # Runtime flags
    debug: bool = field(default_factory=lambda: _env_bool("DEBUG", False))

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of issues.

        Returns:
            List of validation error messages (empty if valid)
        """
        issues = []

        if not self.discord.is_configured:
            issues.append("Discord bot token not set\n  Set DISCORD_BOT_TOKEN env var")

        if not self.youtube.api_key:
            issues.append("YouTube API key not set\n  Set YOUTUBE_API_KEY env var")

        if not self.statbot.api_key:
            issues.append("Statbot API key not set\n  Statbot commands will fail until STATBOT_API_KEY is set")

        if self.poll.base_interval_sec < 1:
            issues.append(f"Poll interval must be at least 1 second (got {self.poll.base_interval_sec})")

        if self.poll.failure_retry_sec < 1:
            issues.append(f"Failure retry delay must be at least 1 second (got {self.poll.failure_retry_sec})")

        return issues

    def summary(self) -> str:
        """Generate human-readable configuration summary."""
        lines = [
            "═" * 60,
            "  GUILDWATCH CONFIGURATION",
            "═" * 60,
            "",
            "Discord:",
            f"  Token: {'set' if self.discord.bot_token else 'missing'}",
            f"  Prefix: {self.discord.command_prefix}",
            f"  Message Content: {self.discord.enable_message_content}",
            "",
            "YouTube:",
            f"  API Key: {'set' if self.youtube.api_key else 'missing'}",
            f"  Endpoint: {self.youtube.base_url}",
            f"  Timeout: {self.youtube.timeout}s",
            "",
            "Statbot:",
            f"  API Key: {'set' if self.statbot.api_key else 'missing'}",
            f"  Endpoint: {self.statbot.base_url}",
            "",
            "Polling:",
            f"  Base Interval: {self.poll.base_interval_sec}s per guild",
            f"  Failure Retry: {self.poll.failure_retry_sec}s",
            f"  Fetch Timeout: {self.poll.fetch_timeout_sec}s",
            f"  Concurrent Channels: {self.poll.concurrent_channels}",
            "",
            "Paths:",
            f"  Database: {self.paths.database_path}",
            f"  Log File: {self.paths.log_file}",
            "",
            "Flags:",
            f"  Debug: {self.debug}",
            "",
            "═" * 60,
        ]

        return "\n".join(lines)


# Singleton config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
