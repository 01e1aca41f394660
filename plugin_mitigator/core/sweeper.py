"""
Recursive directory neutralization.

Walks a tree children-first and neutralizes every regular file. Symlinked
directories are never followed; symlinked files are only touched when
they resolve inside the tree. Traversal failures are collected on the
result instead of being raised.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .neutralizer import FileNeutralizer, NeutralizeOutcome, SKIP_SYMLINK_OUTSIDE_ROOT
from ..utils.helpers import PathLike, is_within
from ..utils.logger import get_logger

logger = get_logger("sweeper")


@dataclass
class TreeSweepResult:
    """Outcome of neutralizing one directory tree."""

    root: str
    outcomes: List[NeutralizeOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        """Number of files actually overwritten."""
        return sum(1 for outcome in self.outcomes if outcome.written)

    @property
    def skipped(self) -> List[NeutralizeOutcome]:
        return [outcome for outcome in self.outcomes if outcome.skipped]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "count": self.count,
            "skipped": [outcome.to_dict() for outcome in self.skipped],
            "errors": self.errors,
        }


class DirectorySweeper:
    """Applies a FileNeutralizer to every file under a directory."""

    def __init__(self, neutralizer: FileNeutralizer):
        self.neutralizer = neutralizer

    def neutralize_tree(self, root: PathLike, slug: str) -> TreeSweepResult:
        """
        Neutralize every regular file under root, bottom-up.

        Args:
            root: Directory to sweep; anything else is a no-op
            slug: Profile slug recorded in script stubs

        Returns:
            TreeSweepResult with per-file outcomes and traversal errors
        """
        root_str = str(root)
        result = TreeSweepResult(root=root_str)

        if not os.path.isdir(root_str):
            return result

        def on_error(error: OSError) -> None:
            location = getattr(error, "filename", None) or root_str
            result.errors.append(f"{location}: {error.strerror or error}")
            logger.warning(
                f"Failed to iterate directory ({slug}): {location}",
                extra_data={"profile": slug},
            )

        for dirpath, _dirnames, filenames in os.walk(
            root_str, topdown=False, onerror=on_error, followlinks=False
        ):
            for filename in sorted(filenames):
                full_path = os.path.join(dirpath, filename)

                if os.path.islink(full_path) and not is_within(root_str, full_path):
                    logger.warning(
                        f"Skipping symlink leaving the tree ({slug}): {full_path}",
                        extra_data={"profile": slug},
                    )
                    result.outcomes.append(
                        NeutralizeOutcome(full_path, False, SKIP_SYMLINK_OUTSIDE_ROOT)
                    )
                    continue

                outcome = self.neutralizer.neutralize(full_path, slug)
                result.outcomes.append(outcome)
                if outcome.written:
                    logger.info(
                        f"Recursively neutralized file ({slug}): {full_path}",
                        extra_data={"profile": slug},
                    )

        return result
