"""
Common filesystem helpers for the plugin mitigator.
"""

import os
from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]


def file_extension(path: PathLike) -> str:
    """
    Lower-cased extension without the dot.

    Args:
        path: File path

    Returns:
        Extension (e.g., "php"), or "" when there is none
    """
    suffix = Path(path).suffix
    return suffix[1:].lower() if suffix else ""


def normalize_extensions(extensions) -> frozenset:
    """Normalize an iterable of extensions to a lower-case set without dots."""
    return frozenset(
        str(ext).lower().lstrip(".") for ext in extensions or () if ext
    )


def is_within(root: PathLike, path: PathLike) -> bool:
    """
    Check whether path resolves to a location inside root.

    Symlinks are resolved on both sides, so a link that escapes the
    root reports False.
    """
    try:
        resolved_root = Path(os.path.realpath(root))
        resolved = Path(os.path.realpath(path))
    except (OSError, ValueError):
        return False
    return resolved == resolved_root or resolved_root in resolved.parents


def read_bytes(path: PathLike, limit: Optional[int] = None) -> Optional[bytes]:
    """
    Read a file, or at most ``limit`` bytes of it.

    Missing and unreadable files are an expected condition for the
    mitigator, so they yield None instead of raising.
    """
    try:
        with open(path, "rb") as f:
            return f.read() if limit is None else f.read(limit)
    except OSError:
        return None


def plugin_dir_name(entry_path: str) -> Optional[str]:
    """
    Directory part of a plugin entry like ``slug/slug.php``.

    Single-file plugins living directly in the plugins root have no
    directory and yield None.
    """
    parent = os.path.dirname(entry_path.replace("\\", "/").strip("/"))
    return parent or None
