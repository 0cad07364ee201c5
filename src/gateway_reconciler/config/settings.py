"""Controller settings loaded from YAML configuration.

```yaml
controller:
  url: https://controller.example.com
  username: admin
  password_env: CONTROLLER_PASSWORD
  verify_ssl: true
  timeout: 60
  backend: http          # http | memory
retry:
  route_edit_attempts: 20
  advertised_cidr_attempts: 32
  wait_seconds: 10
remote_defaults:
  - single_az_ha
  - enable_jumbo_frame
  - enable_gro_gso
```
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from ..utils.retry import ADVERTISED_CIDR_ATTEMPTS, RETRY_WAIT_SECONDS, ROUTE_EDIT_ATTEMPTS

logger = logging.getLogger(__name__)

ENV_PREFIX = "GATEWAY_RECONCILER_"

# Features the controller turns on for every new gateway
DEFAULT_REMOTE_DEFAULTS = ("single_az_ha", "enable_jumbo_frame", "enable_gro_gso")


@dataclass
class ControllerSettings:
    """Connection and reconciliation settings for one controller."""
    url: str = ""
    username: str = ""
    password: Optional[str] = None
    password_env: str = "CONTROLLER_PASSWORD"
    verify_ssl: bool = True
    timeout: int = 60
    backend: str = "http"
    route_edit_attempts: int = ROUTE_EDIT_ATTEMPTS
    advertised_cidr_attempts: int = ADVERTISED_CIDR_ATTEMPTS
    retry_wait_seconds: float = RETRY_WAIT_SECONDS
    remote_defaults: tuple[str, ...] = DEFAULT_REMOTE_DEFAULTS
    source: Optional[str] = field(default=None, compare=False)

    def get_password(self) -> str:
        """Get password from config or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")

    @classmethod
    def from_dict(cls, data: dict, source: Optional[str] = None) -> "ControllerSettings":
        controller = data.get("controller", {}) or {}
        retry = data.get("retry", {}) or {}
        settings = cls(
            url=controller.get("url", ""),
            username=controller.get("username", ""),
            password=controller.get("password"),
            password_env=controller.get("password_env", "CONTROLLER_PASSWORD"),
            verify_ssl=controller.get("verify_ssl", True),
            timeout=int(controller.get("timeout", 60)),
            backend=controller.get("backend", "http"),
            route_edit_attempts=int(retry.get("route_edit_attempts", ROUTE_EDIT_ATTEMPTS)),
            advertised_cidr_attempts=int(retry.get("advertised_cidr_attempts", ADVERTISED_CIDR_ATTEMPTS)),
            retry_wait_seconds=float(retry.get("wait_seconds", RETRY_WAIT_SECONDS)),
            source=source,
        )
        if "remote_defaults" in data:
            settings.remote_defaults = tuple(data["remote_defaults"] or ())
        return settings


def find_settings_file() -> Optional[Path]:
    """Find the controller.yaml settings file, if any."""
    search_paths = [
        Path.cwd() / "configs" / "controller.yaml",
        Path.cwd() / "controller.yaml",
        Path.home() / ".config" / "gateway-reconciler" / "controller.yaml",
        Path("/etc/gateway-reconciler/controller.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path
    return None


def load_settings(path: Optional[str] = None) -> ControllerSettings:
    """Load controller settings.

    Args:
        path: Explicit settings file. When omitted the search path is used,
            and a missing file yields default settings.

    Environment Variables:
        GATEWAY_RECONCILER_CONTROLLER_URL: Overrides controller.url
        GATEWAY_RECONCILER_USERNAME: Overrides controller.username

    Raises:
        FileNotFoundError: If an explicit path does not exist
    """
    settings_path = Path(path) if path else find_settings_file()

    data: dict = {}
    if settings_path is not None:
        with open(settings_path) as f:
            data = yaml.safe_load(f) or {}
        logger.debug(f"Loaded controller settings from {settings_path}")

    settings = ControllerSettings.from_dict(data, source=str(settings_path) if settings_path else None)

    url = os.environ.get(f"{ENV_PREFIX}CONTROLLER_URL")
    if url:
        settings.url = url
    username = os.environ.get(f"{ENV_PREFIX}USERNAME")
    if username:
        settings.username = username

    return settings
