"""Asyncio bridge to a long-lived editor process over a single WebSocket."""

from editor_bridge.config import BridgeSettings, get_settings
from editor_bridge.network import EditorConnection

__all__ = ["BridgeSettings", "EditorConnection", "get_settings"]
