"""
Host environment interface.

Defines the narrow contract the engine consumes from the CMS it runs in:
permission check, plugin activation state, plugin inventory and plugin
header metadata.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict

from ..utils.exceptions import HostError
from ..utils.logger import get_logger

logger = get_logger("host")

PluginMetadata = Dict[str, Any]

# Returned by guarded_call for a degraded call when asked to
FAILED = object()

# Header fields in the order the host reports them
METADATA_FIELDS = (
    "Name",
    "PluginURI",
    "Version",
    "Description",
    "Author",
    "AuthorURI",
    "TextDomain",
    "DomainPath",
    "Network",
    "Title",
    "AuthorName",
)


class HostEnvironment(ABC):
    """
    Abstract base class for host integrations.

    Hosts must implement:
    - plugins_dir: Absolute plugins root
    - is_active / deactivate: Plugin activation store
    - list_all_plugins: Plugin inventory
    - read_metadata: Plugin header reader

    Optional:
    - current_actor_can_manage: Defaults to allowing the pass

    A host that cannot provide an operation raises HostUnavailableError;
    the engine then skips that call.
    """

    @property
    @abstractmethod
    def plugins_dir(self) -> Path:
        """Absolute path of the plugins root."""
        raise NotImplementedError("Host must implement 'plugins_dir' property")

    def current_actor_can_manage(self) -> bool:
        """Whether the current request may trigger a pass."""
        return True

    @abstractmethod
    def is_active(self, entry_path: str) -> bool:
        """Whether the plugin entry (e.g. 'slug/slug.php') is active."""
        raise NotImplementedError("Host must implement 'is_active'")

    @abstractmethod
    def deactivate(self, entry_path: str, silent: bool = True) -> None:
        """Deactivate the plugin entry; deactivating an inactive one is a no-op."""
        raise NotImplementedError("Host must implement 'deactivate'")

    @abstractmethod
    def list_all_plugins(self) -> Dict[str, PluginMetadata]:
        """All installed plugins, keyed by entry path."""
        raise NotImplementedError("Host must implement 'list_all_plugins'")

    @abstractmethod
    def read_metadata(self, path: Path) -> PluginMetadata:
        """Header metadata of a plugin file, empty when it has none."""
        raise NotImplementedError("Host must implement 'read_metadata'")


def guarded_call(
    operation: str,
    func: Callable[..., Any],
    *args: Any,
    default: Any = None,
    **kwargs: Any,
) -> Any:
    """
    Call a host operation, degrading to ``default`` when the host fails.

    Host failures are never allowed to abort a pass; they are logged at
    debug level and the call is treated as a no-op. Pass ``default=FAILED``
    to tell a degraded call apart from one that returned None.
    """
    try:
        return func(*args, **kwargs)
    except HostError as e:
        logger.debug(f"Host call '{operation}' unavailable: {e}")
        return default
