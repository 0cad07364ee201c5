"""Utility modules for logging, auditing and retry."""
from .retry import call_with_retry, is_transient
from .logging_config import (
    setup_logging,
    timed,
    timed_section_sync,
    perf_logger,
    PerfStats,
    global_stats,
)
from .audit_log import ChangeTracker, ChangeRecord, setup_audit_logging, get_recent_changes

__all__ = [
    "call_with_retry",
    "is_transient",
    "setup_logging",
    "timed",
    "timed_section_sync",
    "perf_logger",
    "PerfStats",
    "global_stats",
    "ChangeTracker",
    "ChangeRecord",
    "setup_audit_logging",
    "get_recent_changes",
]
