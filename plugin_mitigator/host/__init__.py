"""Host environment integration."""

from .base_host import FAILED, HostEnvironment, PluginMetadata, guarded_call
from .local_host import LocalWordPressHost, parse_plugin_headers
from .hooks import HookRegistry, register_mitigator

__all__ = [
    "FAILED",
    "HostEnvironment",
    "PluginMetadata",
    "guarded_call",
    "LocalWordPressHost",
    "parse_plugin_headers",
    "HookRegistry",
    "register_mitigator",
]
