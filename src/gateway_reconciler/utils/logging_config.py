"""Logging configuration for the gateway reconciler.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Performance timing for lifecycle phases and retry loops

Environment Variables:
    GATEWAY_RECONCILER_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    GATEWAY_RECONCILER_LOG_FILE: Path to log file (default: ~/.gateway-reconciler/reconciler.log)
    GATEWAY_RECONCILER_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    GATEWAY_RECONCILER_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from gateway_reconciler.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("create")
    def create(self, store):
        ...

    # Or use the context manager for sections:
    with timed_section_sync("edit_custom_routes", gateway="spoke-1"):
        ...
"""
import functools
import logging
import os
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("gateway_reconciler.perf")
main_logger = logging.getLogger("gateway_reconciler")


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("GATEWAY_RECONCILER_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".gateway-reconciler" / "reconciler.log"
    path_str = os.environ.get("GATEWAY_RECONCILER_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging() -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects GATEWAY_RECONCILER_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger for timing metrics
    """
    log_level = get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("GATEWAY_RECONCILER_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("GATEWAY_RECONCILER_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-25s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    perf_log_file = log_file.parent / "reconciler-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    main_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    main_logger.addHandler(console_handler)
    main_logger.addHandler(file_handler)

    # Perf lines go to their own file; don't duplicate them in the main log
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.propagate = False
    perf_logger.addHandler(perf_handler)
    perf_logger.addHandler(console_handler)

    main_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")
    perf_logger.info(f"Performance logging to: {perf_log_file}")


def _perf_line(operation: str, gateway: Optional[str], elapsed: float, outcome: str) -> str:
    return f"{operation:20s} | {gateway or 'N/A':20s} | {elapsed:8.2f}ms | {outcome}"


def timed(operation: str):
    """Decorator to log execution time of a lifecycle entry point.

    The gateway name is read from the first positional argument after
    ``self`` when it is a configuration store (anything with ``get_field``).

    Usage:
        @timed("create")
        def create(self, store):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            gateway = None
            if len(args) > 1 and hasattr(args[1], "get_field"):
                gateway = args[1].get_field("gw_name")

            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                global_stats.record(operation, elapsed)
                perf_logger.warning(_perf_line(operation, gateway, elapsed, f"FAIL: {e}"))
                raise
            elapsed = (time.perf_counter() - start) * 1000
            global_stats.record(operation, elapsed)
            perf_logger.info(_perf_line(operation, gateway, elapsed, "OK"))
            return result

        return wrapper

    return decorator


@contextmanager
def timed_section_sync(operation: str, gateway: Optional[str] = None, **extra):
    """Context manager for timing code sections.

    Usage:
        with timed_section_sync("edit_advertised_cidrs", gateway="spoke-1", attempts=32):
            ...
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = _perf_line(operation, gateway, elapsed, f"FAIL: {e}")
        if extra_str:
            msg += f" | {extra_str}"
        global_stats.record(operation, elapsed)
        perf_logger.warning(msg)
        raise
    elapsed = (time.perf_counter() - start) * 1000
    msg = _perf_line(operation, gateway, elapsed, "OK")
    if extra_str:
        msg += f" | {extra_str}"
    global_stats.record(operation, elapsed)
    perf_logger.info(msg)


class PerfStats:
    """Collect and report performance statistics.

    Usage:
        stats = PerfStats()
        stats.record("create", 150.5)
        stats.record("update", 50.3)
        print(stats.summary())
    """

    def __init__(self):
        self._data: dict[str, list[float]] = {}

    def record(self, operation: str, duration_ms: float) -> None:
        """Record a timing measurement."""
        self._data.setdefault(operation, []).append(duration_ms)

    def count(self, operation: str) -> int:
        """Number of measurements recorded for an operation."""
        return len(self._data.get(operation, []))

    def summary(self) -> str:
        """Generate summary statistics."""
        lines = ["Performance Summary", "=" * 60]

        for op, times in sorted(self._data.items()):
            if not times:
                continue
            count = len(times)
            avg = sum(times) / count

            lines.append(
                f"{op:20s} | count={count:4d} | "
                f"avg={avg:8.2f}ms | min={min(times):8.2f}ms | max={max(times):8.2f}ms"
            )

        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all recorded data."""
        self._data.clear()


# Global stats instance for convenience
global_stats = PerfStats()
