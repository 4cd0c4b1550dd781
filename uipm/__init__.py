"""uipm telemetry and USB/IP peripheral agent."""

from uipm.agent import TelemetryAgent
from uipm.config import AppConfig, default_config, load_config
from uipm.schema import validate_snapshot
from uipm.version import __version__

__all__ = [
    "AppConfig",
    "TelemetryAgent",
    "__version__",
    "default_config",
    "load_config",
    "validate_snapshot",
]
