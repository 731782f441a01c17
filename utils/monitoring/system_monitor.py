"""
System Monitor Module
Periodic self-observation of the bot process: resource sampling, health
probing of the Bot API and hourly performance reports.

Features:
- Three independent periodic tasks (stats, health check, report)
- Warm-up samples shortly after start instead of waiting a full period
- Re-arm guard: start/stop any number of times without leaking tasks
- Every public method degrades to a logged error and a safe default
"""

from __future__ import annotations

import asyncio
import inspect
import os
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

import psutil

from utils.monitoring.logger import format_timestamp

MB = 1024 * 1024

HealthProbe = Callable[[], Awaitable[Any]]


class MonitorLogger(Protocol):
    """Logging surface the monitor writes to (LogWriter satisfies it)."""

    def info(self, message: str, data: Any = None) -> None: ...
    def warn(self, message: str, data: Any = None) -> None: ...
    def error(self, message: str, data: Any = None) -> None: ...
    def startup(self, message: str, data: Any = None) -> None: ...
    def activity(self, message: str, data: Any = None) -> None: ...


@dataclass
class MonitorStats:
    """Running counters for the process lifetime."""

    messages_processed: int = 0
    errors: int = 0
    restarts: int = 0
    last_health_check: float | None = None
    peak_memory_usage: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def increment(self, name: str) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + 1)

    def record_memory(self, rss: int) -> None:
        with self._lock:
            self.peak_memory_usage = max(self.peak_memory_usage, rss)

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "messages_processed": self.messages_processed,
                "errors": self.errors,
                "restarts": self.restarts,
                "last_health_check": self.last_health_check,
                "peak_memory_usage": self.peak_memory_usage,
            }


class SystemMonitor:
    """
    Samples process/OS metrics and probes the Bot API on fixed periods.

    Usage:
        monitor = SystemMonitor(log_writer)
        monitor.start_monitoring(TelegramProbe(token))
        ...
        final_report = await monitor.cleanup()
    """

    RSS_WARNING_MB = 200
    SYSTEM_MEMORY_WARNING_PERCENT = 90
    SLOW_RESPONSE_MS = 5000
    MEMORY_LEAK_THRESHOLD = 500 * MB

    def __init__(
        self,
        logger: MonitorLogger,
        process: psutil.Process | None = None,
        health_check_timeout: float = 30.0,
    ):
        """
        Initialize system monitor.

        Args:
            logger: Sink for monitor events (normally the process LogWriter)
            process: psutil handle of the monitored process (current process by default)
            health_check_timeout: Seconds before a pending probe counts as unhealthy
        """
        self.logger = logger
        self.process = process or psutil.Process(os.getpid())
        self.health_check_timeout = health_check_timeout
        self.start_time = time.time()
        self.stats = MonitorStats()

        self._running = False
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict[str, Any]:
        return self.stats.to_dict()

    def get_uptime_seconds(self) -> int:
        return int(time.time() - self.start_time)

    # ==================== Sampling ====================

    def log_system_stats(self) -> dict[str, Any] | None:
        """Sample memory, load and uptime; warn on high usage. Returns None on failure."""
        try:
            mem = self.process.memory_info()
            vm = psutil.virtual_memory()
            self.stats.record_memory(mem.rss)

            system_info = {
                "memory": {
                    "rss": round(mem.rss / MB),
                    "vms": round(mem.vms / MB),
                    "peak": round(self.stats.peak_memory_usage / MB),
                },
                "system": {
                    "total_mb": round(vm.total / MB),
                    "used_mb": round((vm.total - vm.available) / MB),
                    "free_mb": round(vm.available / MB),
                    "usage": round(vm.percent),
                },
                "cpu": {
                    "load_avg": [round(x, 2) for x in psutil.getloadavg()],
                    "cores": psutil.cpu_count() or 0,
                },
                "uptime": {
                    "bot": self.get_uptime_seconds(),
                    "system": int(time.time() - psutil.boot_time()),
                },
                "stats": self.stats.to_dict(),
            }

            self.logger.activity("System status", system_info)

            if system_info["memory"]["rss"] > self.RSS_WARNING_MB:
                self.logger.warn(f"High memory usage: {system_info['memory']['rss']}MB")

            if system_info["system"]["usage"] > self.SYSTEM_MEMORY_WARNING_PERCENT:
                self.logger.warn(f"System memory almost full: {system_info['system']['usage']}%")

            return system_info
        except Exception as e:
            self.logger.error("Failed to collect system stats", {"error": str(e)})
            return None

    async def perform_health_check(self, probe: HealthProbe) -> dict[str, Any]:
        """Ping the external dependency and record latency. Never raises."""
        started = time.perf_counter()
        try:
            me = await asyncio.wait_for(probe(), timeout=self.health_check_timeout)
            response_time = round((time.perf_counter() - started) * 1000)

            if isinstance(me, dict):
                username = me.get("username")
            else:
                username = getattr(me, "username", None)

            health_data = {
                "telegram": {
                    "connected": True,
                    "username": username,
                    "response_time": response_time,
                },
                "timestamp": datetime.now().isoformat(),
            }

            self.stats.last_health_check = time.time()
            self.logger.activity(f"Health check OK ({response_time}ms)", health_data)

            if response_time > self.SLOW_RESPONSE_MS:
                self.logger.warn(f"Slow Telegram API response: {response_time}ms")

            return {"healthy": True, "data": health_data}

        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            self.stats.increment("errors")
            message = f"Health probe timed out after {self.health_check_timeout}s"
            self.logger.error("Health check failed", {"error": message, "code": "ETIMEDOUT"})
            return {"healthy": False, "error": message}
        except Exception as e:
            self.stats.increment("errors")
            self.logger.error(
                "Health check failed",
                {"error": str(e), "code": getattr(e, "code", None)},
            )
            return {"healthy": False, "error": str(e)}

    # ==================== Counters ====================

    def increment_message_count(self) -> None:
        self.stats.increment("messages_processed")

    def increment_error_count(self) -> None:
        self.stats.increment("errors")

    def increment_restart_count(self) -> None:
        self.stats.increment("restarts")

    # ==================== Reports ====================

    def generate_report(self) -> dict[str, Any] | None:
        """Uptime, throughput and error-rate summary with a fresh system sample."""
        try:
            uptime = self.get_uptime_seconds()
            hours, remainder = divmod(uptime, 3600)
            minutes = remainder // 60
            stats = self.stats.to_dict()
            messages = stats["messages_processed"]

            report = {
                "bot": {
                    "uptime": f"{hours}h {minutes}m",
                    "uptime_seconds": uptime,
                    "start_time": format_timestamp(datetime.fromtimestamp(self.start_time)),
                },
                "stats": stats,
                "performance": {
                    "messages_per_hour": round(messages / hours) if hours > 0 else 0,
                    "error_rate": round(stats["errors"] / messages * 100) if messages > 0 else 0,
                    "peak_memory_mb": round(stats["peak_memory_usage"] / MB),
                },
                "system": self.log_system_stats(),
            }

            self.logger.activity("Bot performance report", report)
            return report
        except Exception as e:
            self.logger.error("Failed to generate report", {"error": str(e)})
            return None

    def detect_memory_leak(self) -> bool:
        """True when RSS is above the leak threshold. Manual probe, not scheduled."""
        try:
            current = self.process.memory_info().rss
            if current > self.MEMORY_LEAK_THRESHOLD:
                self.logger.warn(
                    "Possible memory leak detected",
                    {
                        "current_mb": round(current / MB),
                        "threshold_mb": round(self.MEMORY_LEAK_THRESHOLD / MB),
                        "peak_mb": round(self.stats.peak_memory_usage / MB),
                    },
                )
                return True
            return False
        except Exception as e:
            self.logger.error("Memory leak detection failed", {"error": str(e)})
            return False

    # ==================== Scheduling ====================

    async def _run_guarded(self, name: str, job: Callable[[], Any]) -> None:
        try:
            result = job()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.error(f"{name} task failed", {"error": str(e)})

    async def _periodic(self, name: str, interval: float, job: Callable[[], Any]) -> None:
        """
        Fixed-rate loop; a slow run does not push later deadlines back.

        Ticks missed while the loop was blocked are skipped, not replayed.
        """
        loop = asyncio.get_running_loop()
        next_run = loop.time() + interval
        while self._running:
            await asyncio.sleep(max(0.0, next_run - loop.time()))
            if not self._running:
                break
            await self._run_guarded(name, job)
            next_run += interval
            while next_run <= loop.time():
                next_run += interval

    async def _warmup(self, name: str, delay: float, job: Callable[[], Any]) -> None:
        await asyncio.sleep(delay)
        if self._running:
            await self._run_guarded(name, job)

    def start_monitoring(
        self,
        probe: HealthProbe,
        stats_interval: float = 300.0,
        health_check_interval: float = 180.0,
        report_interval: float = 3600.0,
        warmup_stats_delay: float = 10.0,
        warmup_health_delay: float = 15.0,
    ) -> bool:
        """
        Arm the periodic tasks. Intervals are in seconds.

        Returns False if already running or if no event loop is running.
        """
        if self._running:
            self.logger.warn("Monitoring already running, start ignored")
            return False

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.logger.error("Monitoring start failed", {"error": "no running event loop"})
            return False

        try:
            self.logger.startup(
                "Starting monitoring",
                {
                    "stats_interval": stats_interval,
                    "health_check_interval": health_check_interval,
                    "report_interval": report_interval,
                },
            )

            def health_check() -> Awaitable[dict[str, Any]]:
                return self.perform_health_check(probe)

            self._running = True
            jobs = {
                "stats": self._periodic("Stats", stats_interval, self.log_system_stats),
                "health": self._periodic("Health check", health_check_interval, health_check),
                "report": self._periodic("Report", report_interval, self.generate_report),
                "warmup_stats": self._warmup(
                    "Initial stats", warmup_stats_delay, self.log_system_stats
                ),
                "warmup_health": self._warmup(
                    "Initial health check", warmup_health_delay, health_check
                ),
            }
            self._tasks = {
                name: asyncio.create_task(coro, name=f"monitor-{name}")
                for name, coro in jobs.items()
            }
            return True
        except Exception as e:
            self._running = False
            self.logger.error("Monitoring start failed", {"error": str(e)})
            return False

    def stop_monitoring(self) -> None:
        """Cancel every timer task; safe to call when not running."""
        try:
            self._running = False
            for task in self._tasks.values():
                if not task.done():
                    task.cancel()
            self._tasks = {}
            self.logger.activity("Monitoring stopped")
        except Exception as e:
            self.logger.error("Monitoring stop failed", {"error": str(e)})

    async def cleanup(self) -> dict[str, Any] | None:
        """Graceful shutdown: stop timers and emit one final report."""
        try:
            self.logger.activity("Monitor cleanup started")
            self.stop_monitoring()

            final_report = self.generate_report()
            self.logger.activity("Final performance report", final_report)
            return final_report
        except Exception as e:
            self.logger.error("Monitor cleanup failed", {"error": str(e)})
            return None


def print_system_stats() -> None:
    """Plain console summary of the current process and host."""
    try:
        process = psutil.Process(os.getpid())
        mem = process.memory_info()
        vm = psutil.virtual_memory()
        used = vm.total - vm.available
        load = ", ".join(f"{x:.2f}" for x in psutil.getloadavg())

        print("📊 System Stats:")
        print(f"   Memory: {round(mem.rss / MB)} MB")
        print(f"   Virtual: {round(mem.vms / MB)} MB")
        print(f"   System: {round(used / MB)} / {round(vm.total / MB)} MB")
        print(f"   CPU Load: {load}")
        print(f"   Uptime: {int(time.time() - process.create_time())} seconds")
    except Exception as e:
        print(f"System stats error: {e}")
