"""Bridge configuration."""

from .settings import BridgeSettings, get_settings

__all__ = ["BridgeSettings", "get_settings"]
