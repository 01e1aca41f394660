"""
In-place file neutralization.

Script files are replaced with a stub that is still a valid, do-nothing
program so a stray ``include`` of the file keeps working; every other
file is truncated to zero bytes. No backup is taken.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..utils.helpers import PathLike, file_extension, normalize_extensions
from ..utils.logger import get_logger

logger = get_logger("neutralizer")

DEFAULT_SCRIPT_EXTENSIONS = ("php",)

STUB_TEMPLATE = (
    "<?php\n"
    "/**\n"
    " * Neutralized malicious file for profile: {slug}\n"
    " * This file previously contained a known malware payload.\n"
    " */\n"
    "return;\n"
)

SKIP_MISSING = "missing"
SKIP_UNWRITABLE = "unwritable"
SKIP_WRITE_FAILED = "write-failed"
SKIP_SYMLINK_OUTSIDE_ROOT = "symlink-outside-root"


def render_stub(slug: str) -> bytes:
    """Stub body for a script file neutralized under profile slug."""
    # Keep the traceability comment from closing itself early.
    safe_slug = str(slug).replace("*/", "* /").replace("\n", " ")
    return STUB_TEMPLATE.format(slug=safe_slug).encode("utf-8")


@dataclass
class NeutralizeOutcome:
    """Result of neutralizing one file."""

    path: str
    written: bool
    reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return not self.written

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "written": self.written,
            "reason": self.reason,
        }


class FileNeutralizer:
    """Overwrites single files with an inert placeholder."""

    def __init__(self, script_extensions: Optional[Iterable[str]] = None):
        self.script_extensions = normalize_extensions(
            script_extensions if script_extensions is not None
            else DEFAULT_SCRIPT_EXTENSIONS
        )

    def placeholder_for(self, path: PathLike, slug: str) -> bytes:
        """Content that replaces path when neutralized."""
        if file_extension(path) in self.script_extensions:
            return render_stub(slug)
        return b""

    def neutralize(self, path: PathLike, slug: str) -> NeutralizeOutcome:
        """
        Overwrite path with its placeholder.

        Args:
            path: File to neutralize
            slug: Profile slug embedded in script stubs

        Returns:
            NeutralizeOutcome; failures are reported as skipped, never raised
        """
        path_str = str(path)

        if not os.path.isfile(path_str):
            return NeutralizeOutcome(path_str, False, SKIP_MISSING)

        if not os.access(path_str, os.W_OK):
            logger.warning(
                f"Cannot write to file ({slug}): {path_str}",
                extra_data={"profile": slug},
            )
            return NeutralizeOutcome(path_str, False, SKIP_UNWRITABLE)

        try:
            Path(path_str).write_bytes(self.placeholder_for(path_str, slug))
        except OSError as e:
            logger.warning(
                f"Failed to overwrite file ({slug}): {path_str}",
                extra_data={"profile": slug, "error": str(e)},
            )
            return NeutralizeOutcome(path_str, False, SKIP_WRITE_FAILED)

        return NeutralizeOutcome(path_str, True)
