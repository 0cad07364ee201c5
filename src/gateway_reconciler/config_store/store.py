"""Configuration store for one gateway.

Holds three views of a gateway:
- config: what the operator declared (the desired state)
- state: what was recorded from the controller after the last apply
- computed: read-only outputs such as instance IDs and addresses

The lifecycle controller reads the desired values, asks which of them
changed since the last apply, and writes the projected remote state back.
Stores round-trip through YAML so an apply can resume from disk.
"""
import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from ..config_engine.schema import (
    FIELD_NAMES,
    FINGERPRINT_KEY,
    LifecyclePhase,
    comparable,
    field_defaults,
)

logger = logging.getLogger(__name__)


def compute_fingerprint(values: dict[str, Any]) -> str:
    """
    Compute SHA256 fingerprint of a configuration dict.

    Used to tell, on the next invocation, whether anything was applied
    since the last recorded state.
    """
    config_str = json.dumps(values, sort_keys=True, separators=(",", ":"), default=str)
    hash_bytes = hashlib.sha256(config_str.encode()).hexdigest()
    return f"sha256:{hash_bytes[:16]}"  # Short hash for readability


@dataclass
class DriftItem:
    """A single declared field that differs from the recorded remote value."""
    item_id: str  # field name
    drift_type: str  # 'modified', 'missing'
    expected: Any = None
    actual: Any = None
    details: str = ""


@dataclass
class DriftReport:
    """Drift report comparing declared vs recorded state."""
    gateway: str
    checked_at: datetime
    in_sync: bool
    items: list[DriftItem] = field(default_factory=list)

    @property
    def drift_count(self) -> int:
        return len(self.items)

    def summary(self) -> str:
        """Human-readable summary."""
        if self.in_sync:
            return f"{self.gateway}: IN SYNC"

        lines = [f"{self.gateway}: DRIFT ({self.drift_count} fields)"]
        for item in self.items[:5]:  # Show first 5
            lines.append(f"  - {item.item_id}: {item.expected!r} declared, {item.actual!r} recorded")
        if self.drift_count > 5:
            lines.append(f"  ... and {self.drift_count - 5} more")
        return "\n".join(lines)


class GatewayStore:
    """
    Declared and recorded configuration of one gateway.

    Usage:
        store = GatewayStore({"cloud_type": 1, "gw_name": "spoke-1", ...})
        controller.create(store)
        store.declare(ha_subnet="10.0.2.0/24", ha_gw_size="t3.medium")
        controller.update(store)
    """

    _defaults = field_defaults()

    def __init__(
        self,
        config: Optional[dict[str, Any]] = None,
        state: Optional[dict[str, Any]] = None,
        identifier: str = "",
        computed: Optional[dict[str, Any]] = None,
    ):
        self.config: dict[str, Any] = dict(config or {})
        self.state: dict[str, Any] = dict(state or {})
        self.computed: dict[str, Any] = dict(computed or {})
        self._identifier = identifier
        self.phase = LifecyclePhase.PRESENT if identifier else LifecyclePhase.ABSENT

    # --- Accessors ---

    def get_field(self, name: str) -> Any:
        """Declared value, else recorded value, else the field default."""
        if name in self.config:
            value = self.config[name]
            return self._defaults.get(name) if value is None else value
        if name in self.state:
            return self.state[name]
        return self._defaults.get(name)

    def get_optional(self, name: str) -> tuple[Any, bool]:
        """Returns:
            Tuple of (value, whether the operator declared it)
        """
        value = self.config.get(name)
        return self.get_field(name), value is not None

    def recorded(self, name: str) -> Any:
        """Value recorded from the controller after the last apply."""
        return self.state.get(name, self._defaults.get(name))

    def has_changed(self, name: str) -> bool:
        """True when a declared field differs from its recorded value.

        Set fields and route strings compare order-insensitively.
        """
        if name not in self.config:
            return False
        return comparable(name, self.get_field(name)) != comparable(name, self.recorded(name))

    def get_change(self, name: str) -> tuple[Any, Any]:
        """Returns:
            Tuple of (recorded value, declared value)
        """
        return self.recorded(name), self.get_field(name)

    def set_field(self, name: str, value: Any) -> None:
        """Record a value read back from the controller."""
        self.state[name] = value

    def set_computed(self, name: str, value: Any) -> None:
        self.computed[name] = value

    def set_identifier(self, identifier: str) -> None:
        """Record the remote identifier; an empty identifier marks the gateway absent."""
        self._identifier = identifier
        if not identifier:
            self.phase = LifecyclePhase.ABSENT

    def identifier(self) -> str:
        return self._identifier

    # --- Bulk views ---

    def resolved(self) -> dict[str, Any]:
        """Every known field resolved through get_field."""
        values = {name: self.get_field(name) for name in FIELD_NAMES}
        values.update({k: v for k, v in self.config.items() if k not in values})
        return values

    def declare(self, **values: Any) -> None:
        """Change declared values, as an operator editing the configuration would."""
        self.config.update(values)

    def record_state(self, values: dict[str, Any]) -> None:
        """Replace the recorded state with a fresh projection."""
        self.state = dict(values)

    def fingerprint(self) -> str:
        return compute_fingerprint(self.resolved())

    def drift_report(self) -> DriftReport:
        """List every declared field whose recorded remote value differs."""
        items = []
        for name in self.config:
            if not self.has_changed(name):
                continue
            items.append(DriftItem(
                item_id=name,
                drift_type="modified" if name in self.state else "missing",
                expected=self.get_field(name),
                actual=self.recorded(name),
            ))
        return DriftReport(
            gateway=str(self.get_field("gw_name") or self._identifier),
            checked_at=datetime.now(timezone.utc),
            in_sync=len(items) == 0,
            items=items,
        )

    # --- Persistence ---

    def to_yaml(self) -> str:
        """Convert to YAML string with metadata header."""
        document = {
            "identifier": self._identifier,
            "phase": self.phase.value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "config": self.config,
            "state": self.state,
            "computed": self.computed,
        }
        return yaml.safe_dump(document, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "GatewayStore":
        """Parse from YAML string."""
        data = yaml.safe_load(yaml_str) or {}
        store = cls(
            config=data.get("config") or {},
            state=data.get("state") or {},
            identifier=data.get("identifier") or "",
            computed=data.get("computed") or {},
        )
        phase = data.get("phase")
        if phase:
            store.phase = LifecyclePhase(phase)
        return store

    def save(self, path: Union[str, Path]) -> Path:
        """Write the store to a YAML file, creating parent directories."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_yaml())
        logger.debug(f"Saved gateway store to {path}")
        return path

    @classmethod
    def load(cls, path: Union[str, Path]) -> "GatewayStore":
        """Read a store from a YAML file."""
        return cls.from_yaml(Path(path).read_text())
