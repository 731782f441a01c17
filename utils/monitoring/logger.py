"""
Logger Utility Module
Category-routed, size-rotated and retention-bounded log writer for the bot.

Every persisted entry lands in ``general-<date>.log``; errors are copied to
``error-<date>.log`` and bot activity (startup, activity, telegram) to
``activity-<date>.log``. Nothing in this module raises into the caller: I/O
problems are printed to stderr and dropped.
"""

from __future__ import annotations

import logging
import re
import sys
import time
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, tzinfo
from enum import Enum
from pathlib import Path
from typing import Any, TextIO
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import debug_enabled
from utils.fast_json import json_dumps

# Custom levels sit between INFO and WARNING so stdlib filtering still works
STARTUP = 21
ACTIVITY = 22
TELEGRAM = 23
FIREBASE = 24

logging.addLevelName(STARTUP, "STARTUP")
logging.addLevelName(ACTIVITY, "ACTIVITY")
logging.addLevelName(TELEGRAM, "TELEGRAM")
logging.addLevelName(FIREBASE, "FIREBASE")


class LogLevel(str, Enum):
    """Levels accepted by LogWriter.write."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    DEBUG = "debug"
    STARTUP = "startup"
    ACTIVITY = "activity"
    TELEGRAM = "telegram"
    FIREBASE = "firebase"

    @property
    def levelno(self) -> int:
        return _LEVEL_NUMBERS[self]

    @property
    def label(self) -> str:
        return self.value.upper()


_LEVEL_NUMBERS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.STARTUP: STARTUP,
    LogLevel.ACTIVITY: ACTIVITY,
    LogLevel.TELEGRAM: TELEGRAM,
    LogLevel.FIREBASE: FIREBASE,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}

ERROR_LEVELS = frozenset({LogLevel.ERROR})
ACTIVITY_LEVELS = frozenset({LogLevel.ACTIVITY, LogLevel.TELEGRAM, LogLevel.STARTUP})

# <category>-<YYYY-MM-DD>-<epochMillis>.log
ROTATED_LOG_PATTERN = re.compile(
    r"^(?P<category>[A-Za-z0-9_]+)-(?P<date>\d{4}-\d{2}-\d{2})-(?P<stamp>\d+)\.log$"
)

# Emoji to ASCII mapping for console compatibility
EMOJI_MAP = {
    "🚀": "[START]",
    "📊": "[STATS]",
    "📨": "[MSG]",
    "🔥": "[DB]",
    "🗑️": "[CLEAN]",
    "✅": "[OK]",
    "❌": "[X]",
    "⚠️": "[!]",
    "🛑": "[STOP]",
    "📍": "[LOC]",
}


def safe_ascii(text: Any) -> str:
    """Convert emojis to ASCII-safe text"""
    result = str(text)
    for emoji, ascii_text in EMOJI_MAP.items():
        result = result.replace(emoji, ascii_text)
    # Replace any remaining non-ASCII with ?
    return result.encode("ascii", "replace").decode("ascii")


def _stream_is_unicode(stream: TextIO | None) -> bool:
    encoding = getattr(stream, "encoding", None) or ""
    return encoding.lower().replace("-", "").startswith("utf")


def _console_fallback(message: str) -> None:
    """Last-resort report for failures inside the logging path itself."""
    try:
        print(f"\x1b[31m{message}\x1b[0m", file=sys.stderr)
    except (OSError, ValueError):
        pass  # stderr is gone too


def _resolve_timezone(name: str | None) -> tzinfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        _console_fallback(f"[LOG ERROR] Unknown timezone {name!r}, using local time")
        return None


def format_timestamp(moment: datetime) -> str:
    """Localized timestamp used in every log line (DD.MM.YYYY HH:MM:SS)."""
    return moment.strftime("%d.%m.%Y %H:%M:%S")


class SmartLogFormatter(logging.Formatter):
    """Colored single-line console format: ``[ts] LEVEL: message``."""

    red = "\x1b[31m"
    yellow = "\x1b[33m"
    green = "\x1b[32m"
    cyan = "\x1b[36m"
    magenta = "\x1b[35m"
    blue = "\x1b[34m"
    bright_yellow = "\x1b[93m"
    reset = "\x1b[0m"

    COLORS = {
        LogLevel.ERROR: red,
        LogLevel.WARN: yellow,
        LogLevel.INFO: green,
        LogLevel.STARTUP: cyan,
        LogLevel.ACTIVITY: magenta,
        LogLevel.TELEGRAM: blue,
        LogLevel.FIREBASE: bright_yellow,
    }

    def __init__(self, unicode_safe: bool = True) -> None:
        super().__init__()
        self.unicode_safe = unicode_safe

    def format(self, record: logging.LogRecord) -> str:
        level = getattr(record, "log_level", None)
        label = level.label if level else record.levelname
        timestamp = getattr(record, "log_timestamp", None) or format_timestamp(
            datetime.fromtimestamp(record.created)
        )
        line = f"[{timestamp}] {label}: {record.getMessage()}"
        color = self.COLORS.get(level)
        if color:
            line = f"{color}{line}{self.reset}"
        # Convert to ASCII-safe if console doesn't support Unicode
        if not self.unicode_safe:
            return safe_ascii(line)
        return line


class FileLineFormatter(logging.Formatter):
    """Plain file format with the structured payload appended as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        level = getattr(record, "log_level", None)
        label = level.label if level else record.levelname
        timestamp = getattr(record, "log_timestamp", None) or format_timestamp(
            datetime.fromtimestamp(record.created)
        )
        line = f"[{timestamp}] {label}: {record.getMessage()}"
        data = getattr(record, "log_data", None)
        if data is not None:
            try:
                payload = json_dumps(data)
            except TypeError:
                # orjson rejects ints wider than 64 bits
                payload = repr(data)
            line += f" | Data: {payload}"
        return line


class PersistFilter(logging.Filter):
    """Drop records written with persist=False."""

    def filter(self, record: logging.LogRecord) -> bool:
        return getattr(record, "persist", True)


class LevelSetFilter(logging.Filter):
    """Pass only records whose LogLevel is in the given set."""

    def __init__(self, levels: Iterable[LogLevel]) -> None:
        super().__init__()
        self.levels = frozenset(levels)

    def filter(self, record: logging.LogRecord) -> bool:
        return getattr(record, "log_level", None) in self.levels


class CategoryFileHandler(logging.Handler):
    """
    Appends records to ``<category>-<date>.log`` inside the writer's directory.

    The handler lock (taken by ``Handler.handle``) covers the rotation check
    and the append, so lines in one file keep call order across threads.
    """

    terminator = "\n"

    def __init__(self, writer: LogWriter, category: str) -> None:
        super().__init__()
        self.writer = writer
        self.category = category
        self.setFormatter(FileLineFormatter())
        self.addFilter(PersistFilter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            path = self.writer.get_log_file_path(
                self.category, getattr(record, "log_moment", None)
            )
            self.writer.rotate_if_needed(path)
            line = self.format(record) + self.terminator
            with open(path, "a", encoding="utf-8") as fh:
                fh.write(line)
        except Exception:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        exc = sys.exc_info()[1]
        _console_fallback(f"[LOG ERROR] {exc}")


class LogWriter:
    """
    Durable, bounded event log shared by the whole process.

    Usage:
        log = LogWriter("logs")
        log.startup("Bot started", {"pid": 1234})
        log.error("Firestore read failed", {"uid": "abc"})
        log.get_stats()  # {"file_count": 3, "total_size_mb": 0.01, "log_dir": "logs"}
    """

    MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MiB
    MAX_ROTATED_FILES = 5
    RETENTION_DAYS = 30
    LOG_SUFFIX = ".log"

    def __init__(
        self,
        log_dir: str | Path = "logs",
        *,
        max_bytes: int = MAX_LOG_SIZE,
        max_rotated: int = MAX_ROTATED_FILES,
        retention_days: int = RETENTION_DAYS,
        timezone: str | None = "Europe/Istanbul",
        clock: Callable[[], datetime] | None = None,
        stream: TextIO | None = None,
    ) -> None:
        """
        Initialize the writer and make sure the log directory exists.

        Args:
            log_dir: Directory holding all category files
            max_bytes: Size ceiling that triggers rotation
            max_rotated: Rotated files kept per category
            retention_days: Age after which the daily sweep deletes a file
            timezone: IANA zone for timestamps and file dates (None = local)
            clock: Returns "now"; overridable for tests
            stream: Console stream (defaults to stderr)
        """
        self.log_dir = Path(log_dir)
        self.max_bytes = max_bytes
        self.max_rotated = max_rotated
        self.retention_days = retention_days
        self.tz = _resolve_timezone(timezone)
        self._clock = clock or (lambda: datetime.now(self.tz))

        self.ensure_log_dir()

        # Owned by this instance only; never registered with logging.getLogger
        self.logger = logging.Logger(f"LogWriter.{self.log_dir.resolve()}", logging.DEBUG)
        self.logger.propagate = False

        console_stream = stream if stream is not None else sys.stderr
        console_handler = logging.StreamHandler(console_stream)
        console_handler.setFormatter(SmartLogFormatter(_stream_is_unicode(console_stream)))

        general_handler = CategoryFileHandler(self, "general")

        error_handler = CategoryFileHandler(self, "error")
        error_handler.addFilter(LevelSetFilter(ERROR_LEVELS))

        activity_handler = CategoryFileHandler(self, "activity")
        activity_handler.addFilter(LevelSetFilter(ACTIVITY_LEVELS))

        self.logger.addHandler(console_handler)
        self.logger.addHandler(general_handler)
        self.logger.addHandler(error_handler)
        self.logger.addHandler(activity_handler)

    def ensure_log_dir(self) -> None:
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            _console_fallback(f"Log directory creation failed: {e}")

    def now(self) -> datetime:
        return self._clock()

    def get_timestamp(self) -> str:
        return format_timestamp(self.now())

    def get_log_file_path(self, category: str = "general", moment: datetime | None = None) -> Path:
        date = (moment or self.now()).strftime("%Y-%m-%d")
        return self.log_dir / f"{category}-{date}{self.LOG_SUFFIX}"

    # ==================== Writing ====================

    def write(
        self,
        level: LogLevel | str,
        message: str,
        data: Mapping[str, Any] | None = None,
        persist: bool = True,
    ) -> None:
        """Print a console line and, if ``persist``, append it to the routed files."""
        try:
            level = LogLevel(level)
            # One clock read per entry: line timestamp and file date must agree
            moment = self.now()
            self.logger.log(
                level.levelno,
                message,
                extra={
                    "log_level": level,
                    "log_moment": moment,
                    "log_timestamp": format_timestamp(moment),
                    "log_data": data,
                    "persist": persist,
                },
            )
        except Exception as e:
            _console_fallback(f"[LOG ERROR] {e}")

    def info(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        self.write(LogLevel.INFO, message, data)

    def warn(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        self.write(LogLevel.WARN, message, data)

    def error(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        self.write(LogLevel.ERROR, message, data)

    def debug(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        if debug_enabled():
            self.write(LogLevel.DEBUG, message, data)

    def startup(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        """Bot lifecycle events."""
        self.write(LogLevel.STARTUP, f"🚀 {message}", data)

    def activity(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        """Monitoring and usage events."""
        self.write(LogLevel.ACTIVITY, f"📊 {message}", data)

    def telegram(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        """Bot API transport events."""
        self.write(LogLevel.TELEGRAM, f"📨 {message}", data)

    def firebase(self, message: str, data: Mapping[str, Any] | None = None) -> None:
        """Document database events."""
        self.write(LogLevel.FIREBASE, f"🔥 {message}", data)

    # ==================== Rotation & retention ====================

    def _rotated_path(self, path: Path) -> Path:
        stamp = int(time.time() * 1000)
        candidate = path.with_name(f"{path.stem}-{stamp}{path.suffix}")
        while candidate.exists():
            stamp += 1
            candidate = path.with_name(f"{path.stem}-{stamp}{path.suffix}")
        return candidate

    def rotate_if_needed(self, file_path: str | Path) -> bool:
        """Rename the file aside once it exceeds the size ceiling. Returns True if rotated."""
        try:
            path = Path(file_path)
            if not path.exists() or path.stat().st_size <= self.max_bytes:
                return False
            path.rename(self._rotated_path(path))
        except OSError:
            # Rotation failure must not block the append
            return False
        self.cleanup_rotated(path.parent)
        return True

    def cleanup_rotated(self, directory: str | Path) -> int:
        """Keep the newest ``max_rotated`` rotated files per category. Returns count deleted."""
        deleted = 0
        try:
            groups: dict[str, list[tuple[str, int, Path]]] = defaultdict(list)
            for entry in Path(directory).iterdir():
                match = ROTATED_LOG_PATTERN.match(entry.name)
                if match and entry.is_file():
                    groups[match["category"]].append(
                        (match["date"], int(match["stamp"]), entry)
                    )

            for files in groups.values():
                files.sort(key=lambda item: (item[0], item[1]), reverse=True)
                for _, _, stale in files[self.max_rotated :]:
                    try:
                        stale.unlink()
                        deleted += 1
                    except OSError:
                        continue
        except OSError:
            pass  # best effort
        return deleted

    def daily_cleanup(self) -> int:
        """Delete every file untouched for longer than the retention window."""
        try:
            files = list(self.log_dir.iterdir())
        except OSError as e:
            self.error("Daily log cleanup failed", {"error": str(e)})
            return 0

        cutoff = time.time() - self.retention_days * 24 * 60 * 60
        deleted = 0
        for file in files:
            try:
                if file.is_file() and file.stat().st_mtime < cutoff:
                    file.unlink()
                    deleted += 1
            except OSError:
                continue

        if deleted > 0:
            self.info(f"🗑️ Daily cleanup: {deleted} old log files deleted")
        return deleted

    def get_stats(self) -> dict[str, Any]:
        """File count and total size of the log directory."""
        try:
            total_size = 0
            file_count = 0
            for file in self.log_dir.iterdir():
                try:
                    total_size += file.stat().st_size
                    file_count += 1
                except OSError:
                    continue

            return {
                "file_count": file_count,
                "total_size_mb": round(total_size / 1024 / 1024, 2),
                "log_dir": str(self.log_dir),
            }
        except OSError as e:
            return {
                "file_count": 0,
                "total_size_mb": 0,
                "log_dir": str(self.log_dir),
                "error": str(e),
            }


class LogWriterBridge(logging.Handler):
    """Forwards stdlib ``logging`` records (library and module loggers) into a LogWriter."""

    def __init__(self, writer: LogWriter, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.writer = writer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if record.levelno >= logging.ERROR:
                level = LogLevel.ERROR
            elif record.levelno >= logging.WARNING:
                level = LogLevel.WARN
            elif record.levelno >= logging.INFO:
                level = LogLevel.INFO
            else:
                level = LogLevel.DEBUG
            message = f"{record.name}: {record.getMessage()}"
            if record.exc_info:
                message += f"\n{logging.Formatter().formatException(record.exc_info)}"
            if level is LogLevel.DEBUG:
                self.writer.debug(message)
            else:
                self.writer.write(level, message)
        except Exception:
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:
        exc = sys.exc_info()[1]
        _console_fallback(f"[LOG ERROR] {exc}")


def setup_smart_logging(writer: LogWriter, level: int = logging.INFO) -> LogWriterBridge:
    """Route root-logger records through ``writer``; replaces existing root handlers."""
    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        root.handlers.clear()
    bridge = LogWriterBridge(writer, level)
    root.addHandler(bridge)
    return bridge
