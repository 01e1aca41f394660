"""
Plugin list visibility enforcement.

Malicious plugins often filter themselves out of the host's plugin list.
This puts every known profile entry whose main file still exists back
into the list, without ever touching activation state.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from .profiles import ProfileRegistry
from ..host.base_host import HostEnvironment, PluginMetadata
from ..utils.helpers import PathLike
from ..utils.logger import get_logger

logger = get_logger("visibility")


def placeholder_metadata(entry: str) -> PluginMetadata:
    """List row shown for a known entry whose header reads empty."""
    title = f"Neutralized Malware ({entry})"
    return {
        "Name": title,
        "PluginURI": "",
        "Version": "0.0",
        "Description": "Previously malicious plugin neutralized by the plugin mitigator.",
        "Author": "MSP Ops",
        "AuthorURI": "",
        "TextDomain": "",
        "DomainPath": "",
        "Network": False,
        "Title": title,
        "AuthorName": "MSP Ops",
    }


class VisibilityEnforcer:
    """
    Re-exposes known malicious plugin entries in the plugin inventory.

    Args:
        registry: Profiles whose entries must stay visible
        host: Host used to read plugin header metadata
        plugins_dir: Plugins root entries are relative to
        placeholder_for_empty: Show a placeholder row when metadata is empty
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        host: HostEnvironment,
        plugins_dir: Optional[PathLike] = None,
        placeholder_for_empty: bool = False,
    ):
        self.registry = registry
        self.host = host
        self.plugins_dir = Path(plugins_dir) if plugins_dir is not None else None
        self.placeholder_for_empty = placeholder_for_empty

    def _root(self) -> Path:
        return self.plugins_dir if self.plugins_dir is not None else self.host.plugins_dir

    def expose_known_entries(
        self, plugins: Dict[str, PluginMetadata]
    ) -> Dict[str, PluginMetadata]:
        """
        Return the plugin list with known entries added back.

        Args:
            plugins: Current plugin list, keyed by entry path

        Returns:
            A new dict; the input is left untouched
        """
        augmented = dict(plugins or {})

        for entry in self.registry.plugin_entry_paths():
            if entry in augmented:
                continue

            try:
                plugin_path = self._root() / entry
                if not plugin_path.is_file():
                    continue
                metadata = self.host.read_metadata(plugin_path)
            except Exception as e:
                # A broken entry must never break the list render
                logger.debug(f"Cannot read metadata for {entry}: {e}")
                continue

            if metadata:
                augmented[entry] = metadata
            elif self.placeholder_for_empty:
                augmented[entry] = placeholder_metadata(entry)
            else:
                continue

            logger.debug(f"Exposed hidden plugin entry: {entry}")

        return augmented
