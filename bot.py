"""
Location Tracker Bot Entry Point
Builds the process-wide log writer and system monitor, arms the daily log
sweep and the monitor timers, and shuts everything down on SIGINT/SIGTERM.

Request handlers receive ``runtime.log_writer`` and ``runtime.monitor`` from
the single ``TrackerRuntime``; they never construct their own.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys

from dotenv import load_dotenv

# Load .env EARLY - before any modules that might use env vars
load_dotenv()

from config import TrackerSettings
from utils.monitoring.logger import LogWriter, setup_smart_logging
from utils.monitoring.scheduler import schedule_daily_cleanup
from utils.monitoring.system_monitor import SystemMonitor, print_system_stats
from utils.monitoring.telegram_probe import TelegramProbe


class TrackerRuntime:
    """Owns the single LogWriter/SystemMonitor pair of the process."""

    def __init__(self, settings: TrackerSettings) -> None:
        self.settings = settings
        self.log_writer = LogWriter(
            settings.logs_dir,
            max_bytes=settings.log_max_bytes,
            max_rotated=settings.log_max_rotated,
            retention_days=settings.log_retention_days,
            timezone=settings.log_timezone,
        )
        self.monitor = SystemMonitor(
            self.log_writer, health_check_timeout=settings.health_check_timeout
        )
        self.probe = TelegramProbe(settings.bot_token, base_url=settings.telegram_api_url)
        self._cleanup_task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None

    def start(self) -> None:
        """Arm the daily sweep and the monitor. Requires a running loop."""
        setup_smart_logging(self.log_writer)
        self.log_writer.startup(
            "Location tracker bot starting",
            {"log_dir": self.settings.logs_dir, "timezone": self.settings.log_timezone},
        )
        self._cleanup_task = schedule_daily_cleanup(
            self.log_writer, hour=self.settings.cleanup_hour
        )
        self.monitor.start_monitoring(self.probe, **self.settings.monitor_intervals())

    def request_stop(self, sig: signal.Signals | None = None) -> None:
        if sig:
            self.log_writer.info(f"🛑 Received signal {sig.name}, shutting down gracefully...")
        if self._stop_event is not None:
            self._stop_event.set()

    async def wait_for_stop(self) -> None:
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # add_signal_handler is unavailable on Windows event loops
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, self.request_stop, sig)
        await self._stop_event.wait()

    async def shutdown(self) -> dict | None:
        """Disarm timers, emit the final report and close the probe session."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None

        report = await self.monitor.cleanup()
        await self.probe.close()
        self.log_writer.info("👋 Bot shutdown complete.")
        return report


async def run(settings: TrackerSettings) -> int:
    runtime = TrackerRuntime(settings)

    errors = settings.validate_required_secrets()
    if errors:
        for error in errors:
            runtime.log_writer.error(f"❌ {error}")
        return 1

    runtime.start()
    try:
        await runtime.wait_for_stop()
    finally:
        await runtime.shutdown()
    return 0


def show_stats(settings: TrackerSettings) -> None:
    """Print host and log-directory stats (``--stats``)."""
    print_system_stats()
    writer = LogWriter(settings.logs_dir, timezone=settings.log_timezone)
    stats = writer.get_stats()
    print("🗂️ Log Stats:")
    print(f"   Directory: {stats['log_dir']}")
    print(f"   Files: {stats['file_count']}")
    print(f"   Size: {stats['total_size_mb']} MB")
    if "error" in stats:
        print(f"   Error: {stats['error']}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Location tracker bot monitor")
    parser.add_argument(
        "--stats", action="store_true", help="print system and log stats, then exit"
    )
    args = parser.parse_args(argv)

    settings = TrackerSettings()
    if args.stats:
        show_stats(settings)
        return 0

    try:
        return asyncio.run(run(settings))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
