"""Audit logging for control-plane mutations.

Every mutating call issued while reconciling a gateway is recorded as one
JSON line on the ``gateway_reconciler.audit`` logger:
- Timestamped entries for all remote changes
- The parameters sent and the outcome
- Separate audit log file, machine-readable
"""
import json
import logging
import os
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

audit_logger = logging.getLogger("gateway_reconciler.audit")

DEFAULT_AUDIT_DIR = os.path.expanduser("~/.gateway-reconciler")


def setup_audit_logging(log_dir: Optional[str] = None) -> str:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.gateway-reconciler/

    Returns:
        Path of the audit log file
    """
    if log_dir is None:
        log_dir = DEFAULT_AUDIT_DIR

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    audit_file = os.path.join(log_dir, "audit.log")

    audit_logger.setLevel(logging.INFO)
    for handler in list(audit_logger.handlers):
        audit_logger.removeHandler(handler)
        handler.close()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)

    # Don't propagate to the application log
    audit_logger.propagate = False
    return audit_file


@dataclass
class ChangeRecord:
    """Record of one control-plane mutation."""
    timestamp: str
    gateway: str
    operation: str  # launch_spoke_gateway, set_jumbo_frame, delete_gateway, ...
    success: bool
    parameters: dict
    error: Optional[str] = None

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        """Parse from JSON string."""
        return cls(**json.loads(json_str))


class ChangeTracker:
    """Log the mutations issued against one gateway."""

    def __init__(self, gateway: str):
        self.gateway = gateway
        self.records: list[ChangeRecord] = []

    def log_change(
        self,
        operation: str,
        parameters: dict,
        success: bool,
        error: Optional[str] = None,
    ) -> ChangeRecord:
        """Log a control-plane mutation.

        Args:
            operation: The client operation invoked
            parameters: Arguments passed to the operation
            success: Whether the call succeeded
            error: Error message if failed

        Returns:
            The ChangeRecord that was logged
        """
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            gateway=self.gateway,
            operation=operation,
            success=success,
            parameters=parameters,
            error=error,
        )
        self.records.append(record)
        audit_logger.info(record.to_json())
        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    gateway: Optional[str] = None,
    operation: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.gateway-reconciler/audit.log
        gateway: Filter by gateway name
        operation: Filter by operation
        limit: Maximum number of records to return

    Returns:
        List of ChangeRecords, most recent first
    """
    if log_file is None:
        log_file = os.path.join(DEFAULT_AUDIT_DIR, "audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if gateway and record.gateway != gateway:
                continue
            if operation and record.operation != operation:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
