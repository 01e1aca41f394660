"""
Malware profile catalog.

Profiles describe known malicious plugin families: which files to look
at, which literal fragments identify them and which plugin entry they
register. The built-in catalog ships as ``resources/profiles.yaml``;
operators may layer an extra catalog file on top of it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import yaml

from ..utils.exceptions import ProfileError
from ..utils.helpers import PathLike, plugin_dir_name
from ..utils.logger import get_logger

logger = get_logger("profiles")

BUILTIN_CATALOG = Path(__file__).resolve().parent.parent / "resources" / "profiles.yaml"


def _string_list(value: Any, what: str, slug: Optional[str], source: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ProfileError(f"'{what}' must be a list", slug=slug, source=source)
    return [str(item) for item in value if item is not None and str(item) != ""]


def _unique(items: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(items))


@dataclass(frozen=True)
class MalwareProfile:
    """One known malware family."""

    slug: str
    plugin_file: Optional[str] = None
    file_targets: Tuple[str, ...] = ()
    signatures: Tuple[str, ...] = ()

    @property
    def plugin_dir(self) -> Optional[str]:
        """Plugin directory name derived from plugin_file."""
        if not self.plugin_file:
            return None
        return plugin_dir_name(self.plugin_file)

    @classmethod
    def from_dict(cls, slug: str, data: Dict[str, Any], source: str = "<dict>") -> MalwareProfile:
        """
        Build a profile from its catalog entry.

        Empty signatures are dropped; duplicate targets and signatures are
        collapsed keeping first occurrence.
        """
        if not slug or not isinstance(slug, str):
            raise ProfileError("Profile slug must be a non-empty string", source=source)
        if not isinstance(data, dict):
            raise ProfileError("Profile entry must be a mapping", slug=slug, source=source)

        plugin_file = data.get("plugin_file")
        if plugin_file is not None and not isinstance(plugin_file, str):
            raise ProfileError("'plugin_file' must be a string", slug=slug, source=source)

        return cls(
            slug=slug,
            plugin_file=plugin_file or None,
            file_targets=_unique(_string_list(data.get("file_targets"), "file_targets", slug, source)),
            signatures=_unique(_string_list(data.get("signatures"), "signatures", slug, source)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "plugin_file": self.plugin_file,
            "file_targets": list(self.file_targets),
            "signatures": list(self.signatures),
        }


@dataclass(frozen=True)
class FamilyRules:
    """Heuristic inputs for scoring unknown family variants."""

    content_anchors: Tuple[str, ...] = ()
    known_texts: Tuple[str, ...] = ()
    suspicious_subfolders: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], source: str = "<dict>") -> FamilyRules:
        data = data or {}
        if not isinstance(data, dict):
            raise ProfileError("'family' must be a mapping", source=source)
        return cls(
            content_anchors=_unique(_string_list(data.get("content_anchors"), "content_anchors", None, source)),
            known_texts=_unique(_string_list(data.get("known_texts"), "known_texts", None, source)),
            suspicious_subfolders=_unique(
                sub.strip("/") for sub in
                _string_list(data.get("suspicious_subfolders"), "suspicious_subfolders", None, source)
            ),
        )

    def merged(self, other: FamilyRules) -> FamilyRules:
        return FamilyRules(
            content_anchors=_unique(self.content_anchors + other.content_anchors),
            known_texts=_unique(self.known_texts + other.known_texts),
            suspicious_subfolders=_unique(self.suspicious_subfolders + other.suspicious_subfolders),
        )


class ProfileRegistry:
    """
    Read-only catalog of malware profiles, in declaration order.

    Features:
    - Built-in YAML catalog
    - Optional operator catalog layered on top (later slugs replace earlier ones)
    - Derived plugin entry paths for deactivation and visibility
    """

    def __init__(
        self,
        profiles: Iterable[MalwareProfile] = (),
        family_rules: Optional[FamilyRules] = None,
    ):
        self._profiles: Dict[str, MalwareProfile] = {}
        for profile in profiles:
            self._add(profile, source="<init>")
        self.family_rules = family_rules or FamilyRules()

    def _add(self, profile: MalwareProfile, source: str) -> None:
        if profile.slug in self._profiles:
            logger.warning(
                f"Profile '{profile.slug}' redefined, later definition wins",
                extra_data={"source": source},
            )
        self._profiles[profile.slug] = profile

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = "<dict>") -> ProfileRegistry:
        """Build a registry from a parsed catalog document."""
        registry = cls()
        registry.extend_from_dict(data, source)
        return registry

    def extend_from_dict(self, data: Dict[str, Any], source: str = "<dict>") -> None:
        if not isinstance(data, dict):
            raise ProfileError("Catalog must be a mapping", source=source)

        profiles = data.get("profiles") or {}
        if not isinstance(profiles, dict):
            raise ProfileError("'profiles' must be a mapping of slug to profile", source=source)

        for slug, entry in profiles.items():
            self._add(MalwareProfile.from_dict(slug, entry, source), source)

        self.family_rules = self.family_rules.merged(
            FamilyRules.from_dict(data.get("family"), source)
        )

    def extend_from_file(self, path: PathLike) -> None:
        """Layer a YAML catalog file on top of the current profiles."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ProfileError(f"Invalid YAML in profile catalog: {e}", source=str(path))
        except OSError as e:
            raise ProfileError(f"Cannot read profile catalog: {e}", source=str(path))

        self.extend_from_dict(data, str(path))
        logger.debug(f"Profile catalog loaded: {path}", extra_data={"profiles": len(self)})

    @classmethod
    def load(cls, extra_file: Optional[PathLike] = None, include_builtin: bool = True) -> ProfileRegistry:
        """
        Load the built-in catalog and an optional extra one.

        Args:
            extra_file: Additional YAML catalog
            include_builtin: Whether to start from the shipped catalog

        Raises:
            ProfileError: If a catalog cannot be read or is malformed
        """
        registry = cls()
        if include_builtin:
            registry.extend_from_file(BUILTIN_CATALOG)
        if extra_file:
            registry.extend_from_file(extra_file)
        return registry

    def all(self) -> List[Tuple[str, MalwareProfile]]:
        """Profiles as (slug, profile) pairs in declaration order."""
        return list(self._profiles.items())

    def get(self, slug: str) -> Optional[MalwareProfile]:
        return self._profiles.get(slug)

    def plugin_entry_paths(self) -> List[str]:
        """Distinct plugin entry paths across all profiles, in order."""
        return list(_unique(
            profile.plugin_file for profile in self._profiles.values()
            if profile.plugin_file
        ))

    def __iter__(self) -> Iterator[MalwareProfile]:
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, slug: object) -> bool:
        return slug in self._profiles
