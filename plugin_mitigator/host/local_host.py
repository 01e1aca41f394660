"""
Filesystem-backed WordPress host.

Lets the engine run against a WordPress tree outside of a live request:
plugin headers are parsed from disk and the active plugin list lives in
the ``active_plugins`` option, the way WordPress stores it.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, List

from .base_host import HostEnvironment, PluginMetadata
from ..database.repository import OptionStore
from ..utils.exceptions import DatabaseError, HostError
from ..utils.helpers import PathLike, read_bytes
from ..utils.logger import get_logger

logger = get_logger("local_host")

ACTIVE_PLUGINS_OPTION = "active_plugins"

# WordPress only looks at the start of the file for headers
HEADER_READ_BYTES = 8192

HEADER_NAMES: Dict[str, str] = {
    "Name": "Plugin Name",
    "PluginURI": "Plugin URI",
    "Version": "Version",
    "Description": "Description",
    "Author": "Author",
    "AuthorURI": "Author URI",
    "TextDomain": "Text Domain",
    "DomainPath": "Domain Path",
    "Network": "Network",
}


def _header_pattern(header: str) -> re.Pattern:
    return re.compile(
        r"^(?:[ \t]*<\?php)?[ \t/*#@]*" + re.escape(header) + r":(.*)$",
        re.IGNORECASE | re.MULTILINE,
    )


_HEADER_PATTERNS = {key: _header_pattern(name) for key, name in HEADER_NAMES.items()}


def parse_plugin_headers(text: str) -> PluginMetadata:
    """
    Extract the plugin header block from file text.

    Returns:
        Metadata dict, or {} when the text has no "Plugin Name" header
    """
    text = text.replace("\r", "\n")
    headers: PluginMetadata = {}

    for key, pattern in _HEADER_PATTERNS.items():
        match = pattern.search(text)
        value = ""
        if match:
            value = re.sub(r"\s*(?:\*/|\?>).*", "", match.group(1)).strip()
        headers[key] = value

    if not headers["Name"]:
        return {}

    headers["Network"] = headers["Network"].lower() == "true"
    headers["Title"] = headers["Name"]
    headers["AuthorName"] = headers["Author"]
    return headers


class LocalWordPressHost(HostEnvironment):
    """
    WordPress host reconstructed from the filesystem and the option store.

    Option store failures surface as HostError, so the engine treats them
    like any other unavailable host call.

    Args:
        plugins_dir: Plugins root (wp-content/plugins)
        store: Option store holding the active plugin list
        can_manage: Result of the permission check
    """

    def __init__(self, plugins_dir: PathLike, store: OptionStore, can_manage: bool = True):
        self._plugins_dir = Path(plugins_dir)
        self.store = store
        self.can_manage = can_manage

    @property
    def plugins_dir(self) -> Path:
        return self._plugins_dir

    def current_actor_can_manage(self) -> bool:
        return self.can_manage

    def active_plugins(self) -> List[str]:
        try:
            active = self.store.get(ACTIVE_PLUGINS_OPTION, [])
        except DatabaseError as e:
            raise HostError(f"Cannot read active plugins: {e.message}", operation="active_plugins")
        return [str(entry) for entry in active] if isinstance(active, list) else []

    def _save_active(self, active: List[str], operation: str, entry_path: str) -> None:
        try:
            self.store.set(ACTIVE_PLUGINS_OPTION, active)
        except DatabaseError as e:
            raise HostError(
                f"Cannot save active plugins: {e.message}",
                operation=operation,
                entry=entry_path,
            )

    def is_active(self, entry_path: str) -> bool:
        return entry_path in self.active_plugins()

    def activate(self, entry_path: str) -> None:
        active = self.active_plugins()
        if entry_path not in active:
            active.append(entry_path)
            self._save_active(active, "activate", entry_path)

    def deactivate(self, entry_path: str, silent: bool = True) -> None:
        active = self.active_plugins()
        if entry_path not in active:
            return
        active.remove(entry_path)
        self._save_active(active, "deactivate", entry_path)
        if not silent:
            logger.info(f"Deactivated plugin: {entry_path}")

    def read_metadata(self, path: Path) -> PluginMetadata:
        raw = read_bytes(path, HEADER_READ_BYTES)
        if not raw:
            return {}
        return parse_plugin_headers(raw.decode("utf-8", errors="replace"))

    def list_all_plugins(self) -> Dict[str, PluginMetadata]:
        """Plugin files at the root and one directory deep that carry a header."""
        plugins: Dict[str, PluginMetadata] = {}
        root = self._plugins_dir

        try:
            top_entries = sorted(os.listdir(root))
        except OSError as e:
            logger.debug(f"Cannot list plugins directory {root}: {e}")
            return plugins

        candidates: List[str] = []
        for name in top_entries:
            if name.startswith("."):
                continue
            full = root / name
            if full.is_dir():
                try:
                    candidates.extend(
                        f"{name}/{child}" for child in sorted(os.listdir(full))
                        if child.endswith(".php")
                    )
                except OSError:
                    continue
            elif name.endswith(".php"):
                candidates.append(name)

        for entry in candidates:
            metadata = self.read_metadata(root / entry)
            if metadata:
                plugins[entry] = metadata

        return plugins
