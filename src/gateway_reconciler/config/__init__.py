"""Controller settings."""
from .settings import ControllerSettings, load_settings, find_settings_file

__all__ = ["ControllerSettings", "load_settings", "find_settings_file"]
