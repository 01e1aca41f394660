"""
Family sweep across sibling plugin directories.

Runs only after a confirmed signature detection: heuristics alone never
trigger destructive action. Every immediate subdirectory of the plugins
root (except the mitigator's own) is scored, and those reaching the
threshold are deactivated and neutralized as family variants.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .scheduler import FAMILY_SWEEP, RunScheduler
from .scoring import DirectoryScore, DirectoryScorer
from .sweeper import DirectorySweeper, TreeSweepResult
from ..host.base_host import FAILED, HostEnvironment, guarded_call
from ..utils.exceptions import MitigatorError
from ..utils.helpers import PathLike
from ..utils.logger import get_logger

logger = get_logger("family_sweep")

DEFAULT_THRESHOLD = 3
SLUG_PREFIX = "family-sweep:"


@dataclass
class FamilySweepResult:
    """Outcome of one family sweep."""

    trigger_slug: str
    ran: bool = False
    scores: List[DirectoryScore] = field(default_factory=list)
    swept: List[TreeSweepResult] = field(default_factory=list)
    deactivated: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def neutralized_dirs(self) -> List[str]:
        return [result.root for result in self.swept]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trigger_slug": self.trigger_slug,
            "ran": self.ran,
            "scores": [score.to_dict() for score in self.scores],
            "neutralized_dirs": self.neutralized_dirs,
            "deactivated": self.deactivated,
            "errors": self.errors,
        }


class FamilySweep:
    """
    Heuristic sweep triggered by a confirmed detection.

    Args:
        plugins_dir: Plugins root whose subdirectories are scored
        scorer: Directory scorer
        sweeper: Directory sweeper used on variants
        scheduler: Scheduler gating the sweep on its own cooldown
        host: Host used to deactivate plugins of a variant
        self_dir: Directory name of the mitigator itself, never scored
        threshold: Minimum score treated as a family variant
    """

    def __init__(
        self,
        plugins_dir: PathLike,
        scorer: DirectoryScorer,
        sweeper: DirectorySweeper,
        scheduler: RunScheduler,
        host: Optional[HostEnvironment] = None,
        self_dir: Optional[str] = None,
        threshold: int = DEFAULT_THRESHOLD,
    ):
        self.plugins_dir = Path(plugins_dir)
        self.scorer = scorer
        self.sweeper = sweeper
        self.scheduler = scheduler
        self.host = host
        self.self_dir = self_dir
        self.threshold = threshold

    def candidate_dirs(self, result: FamilySweepResult) -> List[Path]:
        """Immediate, non-symlinked subdirectories of the plugins root."""
        try:
            names = sorted(os.listdir(self.plugins_dir))
        except OSError as e:
            result.errors.append(f"{self.plugins_dir}: {e}")
            logger.warning(f"Cannot list plugins directory: {self.plugins_dir}")
            return []

        candidates = []
        for name in names:
            if name == self.self_dir:
                continue
            path = self.plugins_dir / name
            if path.is_dir() and not path.is_symlink():
                candidates.append(path)
        return candidates

    def _deactivate_under(self, directory: Path, result: FamilySweepResult) -> None:
        """Best-effort deactivation of every host entry inside directory."""
        if self.host is None:
            return

        prefix = directory.name + "/"
        plugins = guarded_call("list_all_plugins", self.host.list_all_plugins, default={})
        for entry in plugins or {}:
            if not entry.startswith(prefix):
                continue
            if not guarded_call("is_active", self.host.is_active, entry, default=False):
                continue
            if guarded_call("deactivate", self.host.deactivate, entry, True, default=FAILED) is FAILED:
                continue
            result.deactivated.append(entry)
            logger.info(f"Deactivated family variant plugin: {entry}")

    def sweep(self, trigger_slug: str, force: bool = False) -> FamilySweepResult:
        """
        Score sibling directories and neutralize the variants.

        Args:
            trigger_slug: Slug of the profile whose detection caused the sweep
            force: Ignore the family sweep cooldown

        Returns:
            FamilySweepResult; ``ran`` is False when the cooldown blocked it
        """
        result = FamilySweepResult(trigger_slug=trigger_slug)

        if not force and not self.scheduler.should_run(FAMILY_SWEEP):
            logger.debug("Family sweep skipped, cooldown active")
            return result

        result.ran = True
        sweep_slug = SLUG_PREFIX + trigger_slug

        try:
            for directory in self.candidate_dirs(result):
                try:
                    self.sweep_directory(directory, sweep_slug, result)
                except (OSError, MitigatorError) as e:
                    result.errors.append(f"{directory}: {e}")
                    logger.error(
                        f"Family sweep failed on {directory.name}",
                        extra_data={"error": str(e), "trigger": trigger_slug},
                    )
        finally:
            self.scheduler.record_ran(FAMILY_SWEEP)
        return result

    def sweep_directory(self, directory: Path, sweep_slug: str, result: FamilySweepResult) -> None:
        """Score one directory and neutralize it when it reaches the threshold."""
        score = self.scorer.score(directory)
        result.scores.append(score)

        if score.total < self.threshold:
            return

        logger.info(
            f"Family variant detected: {directory.name}",
            extra_data={"score": score.total, "trigger": result.trigger_slug},
        )
        try:
            self._deactivate_under(directory, result)
        finally:
            tree = self.sweeper.neutralize_tree(directory, sweep_slug)
            result.swept.append(tree)
            result.errors.extend(tree.errors)
