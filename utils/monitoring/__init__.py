"""Monitoring utilities - Log writer, retention sweep, system monitor, health probe."""

from .logger import (
    ACTIVITY_LEVELS,
    CategoryFileHandler,
    LogLevel,
    LogWriter,
    LogWriterBridge,
    SmartLogFormatter,
    safe_ascii,
    setup_smart_logging,
)
from .scheduler import schedule_daily_cleanup, seconds_until_next_run
from .system_monitor import MonitorStats, SystemMonitor, print_system_stats
from .telegram_probe import ProbeError, TelegramProbe
