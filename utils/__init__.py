"""
Utils Package
Provides logging, monitoring and serialization helpers for the tracker bot.
"""

from .monitoring.logger import LogLevel, LogWriter, setup_smart_logging
from .monitoring.system_monitor import SystemMonitor

__all__ = [
    # Logger
    "LogLevel",
    "LogWriter",
    "setup_smart_logging",
    # Monitor
    "SystemMonitor",
]
