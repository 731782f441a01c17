# pylint: disable=invalid-name
"""
Centralized Configuration Module for the location tracker bot.
Uses dataclass for settings management with environment variable support.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field


def _safe_int_env(key: str, default: int) -> int:
    """Safely parse integer from environment variable with fallback."""
    try:
        value = os.getenv(key)
        if value:
            return int(value)
        return default
    except (ValueError, TypeError):
        logging.warning("Invalid integer value for %s, using default: %d", key, default)
        return default


def _safe_float_env(key: str, default: float) -> float:
    """Safely parse float from environment variable with fallback."""
    try:
        value = os.getenv(key)
        if value:
            return float(value)
        return default
    except (ValueError, TypeError):
        logging.warning("Invalid float value for %s, using default: %s", key, default)
        return default


def debug_enabled() -> bool:
    """Check the DEBUG flag at call time so it can be toggled without restart."""
    return os.getenv("DEBUG", "").strip().lower() == "true"


@dataclass
class TrackerSettings:
    """Bot configuration settings loaded from environment variables."""

    # Telegram
    bot_token: str = field(default_factory=lambda: os.getenv("BOT_TOKEN", ""), repr=False)
    telegram_api_url: str = field(
        default_factory=lambda: os.getenv("TELEGRAM_API_URL", "https://api.telegram.org")
    )

    # Log storage
    logs_dir: str = field(default_factory=lambda: os.getenv("LOG_DIR", "logs"))
    log_timezone: str = field(default_factory=lambda: os.getenv("LOG_TIMEZONE", "Europe/Istanbul"))
    log_max_bytes: int = field(
        default_factory=lambda: _safe_int_env("LOG_MAX_BYTES", 10 * 1024 * 1024)
    )
    log_max_rotated: int = field(default_factory=lambda: _safe_int_env("LOG_MAX_ROTATED", 5))
    log_retention_days: int = field(
        default_factory=lambda: _safe_int_env("LOG_RETENTION_DAYS", 30)
    )
    cleanup_hour: int = 3  # local time of the daily retention sweep

    # Monitor intervals (seconds)
    stats_interval: float = field(
        default_factory=lambda: _safe_float_env("MONITOR_STATS_INTERVAL", 300.0)
    )
    health_check_interval: float = field(
        default_factory=lambda: _safe_float_env("MONITOR_HEALTH_INTERVAL", 180.0)
    )
    report_interval: float = field(
        default_factory=lambda: _safe_float_env("MONITOR_REPORT_INTERVAL", 3600.0)
    )
    health_check_timeout: float = field(
        default_factory=lambda: _safe_float_env("MONITOR_HEALTH_TIMEOUT", 30.0)
    )

    def __post_init__(self):
        """Clamp values that would break rotation or retention."""
        self.log_max_rotated = max(0, self.log_max_rotated)
        self.log_retention_days = max(1, self.log_retention_days)
        self.cleanup_hour = max(0, min(23, self.cleanup_hour))

    def validate_required_secrets(self) -> list[str]:
        """Validate that critical secrets are present. Returns list of errors."""
        errors: list[str] = []
        if not self.bot_token or self.bot_token == "your_token_here":
            errors.append("BOT_TOKEN is not set or is a placeholder")
        return errors

    def monitor_intervals(self) -> dict[str, float]:
        """Keyword arguments for SystemMonitor.start_monitoring."""
        return {
            "stats_interval": self.stats_interval,
            "health_check_interval": self.health_check_interval,
            "report_interval": self.report_interval,
        }

    def __repr__(self) -> str:
        """Custom repr that redacts sensitive fields."""
        return (
            f"TrackerSettings(logs_dir={self.logs_dir!r}, "
            f"log_timezone={self.log_timezone!r}, "
            f"stats_interval={self.stats_interval})"
        )


# Global instance
settings = TrackerSettings()
