"""
Mitigation pass.

For each profile: find the first target file that matches its
signatures, neutralize it together with the whole plugin directory,
deactivate the plugin entry, and follow up with a family sweep. Every
failure stays local to its file, directory or profile; the pass always
completes and records its timestamp.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .family_sweep import FamilySweep, FamilySweepResult
from .matcher import SignatureMatcher, count_hits
from .neutralizer import FileNeutralizer, NeutralizeOutcome
from .profiles import MalwareProfile, ProfileRegistry
from .scheduler import FULL_PASS, RunScheduler
from .sweeper import DirectorySweeper, TreeSweepResult
from ..host.base_host import FAILED, HostEnvironment, guarded_call
from ..utils.exceptions import MitigatorError
from ..utils.helpers import PathLike, read_bytes
from ..utils.logger import get_logger

logger = get_logger("orchestrator")


@dataclass
class ScanResult:
    """What one profile did during a pass."""

    slug: str
    matched: bool = False
    matched_target: Optional[str] = None
    neutralized: Optional[NeutralizeOutcome] = None
    swept: Optional[TreeSweepResult] = None
    deactivated: bool = False
    family_sweep: Optional[FamilySweepResult] = None
    error: Optional[str] = None

    @property
    def cleaned(self) -> bool:
        return self.matched or self.deactivated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "matched": self.matched,
            "matched_target": self.matched_target,
            "neutralized": self.neutralized.to_dict() if self.neutralized else None,
            "swept": self.swept.to_dict() if self.swept else None,
            "deactivated": self.deactivated,
            "family_sweep": self.family_sweep.to_dict() if self.family_sweep else None,
            "error": self.error,
        }


@dataclass
class PassSummary:
    """Outcome of one mitigation pass."""

    ran: bool = False
    results: List[ScanResult] = field(default_factory=list)
    family_sweeps: List[FamilySweepResult] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def anything_cleaned(self) -> bool:
        return any(result.cleaned for result in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ran": self.ran,
            "anything_cleaned": self.anything_cleaned,
            "duration_seconds": self.duration_seconds,
            "results": [result.to_dict() for result in self.results],
            "family_sweeps": [sweep.to_dict() for sweep in self.family_sweeps],
        }


class MitigationOrchestrator:
    """
    Drives full passes over the profile registry.

    Args:
        registry: Profiles to process, in order
        abspath: Content root that profile file targets are relative to
        plugins_dir: Plugins root that plugin entries are relative to
        matcher: Signature matcher
        neutralizer: Single-file neutralizer
        sweeper: Directory sweeper
        scheduler: Cooldown gate and run-state writer
        host: Host environment (permission, activation)
        family_sweep: Follow-up sweep; None disables it
    """

    def __init__(
        self,
        registry: ProfileRegistry,
        abspath: PathLike,
        plugins_dir: PathLike,
        matcher: SignatureMatcher,
        neutralizer: FileNeutralizer,
        sweeper: DirectorySweeper,
        scheduler: RunScheduler,
        host: HostEnvironment,
        family_sweep: Optional[FamilySweep] = None,
    ):
        self.registry = registry
        self.abspath = Path(abspath)
        self.plugins_dir = Path(plugins_dir)
        self.matcher = matcher
        self.neutralizer = neutralizer
        self.sweeper = sweeper
        self.scheduler = scheduler
        self.host = host
        self.family_sweep = family_sweep

    def run_pass(self, force: bool = False) -> PassSummary:
        """
        Run one gated pass.

        Skipped entirely when the current actor may not manage plugins or
        the full-pass cooldown is still active (unless ``force``).

        Returns:
            PassSummary; ``ran`` tells whether the gate let the pass through
        """
        summary = PassSummary()

        if not guarded_call("current_actor_can_manage", self.host.current_actor_can_manage, default=False):
            return summary

        if not force and not self.scheduler.should_run(FULL_PASS):
            return summary

        start_time = time.time()
        summary.ran = True

        for slug, profile in self.registry.all():
            # Created up front so work done before a failure is still reported
            result = ScanResult(slug=slug)
            try:
                self.handle_profile(profile, force=force, result=result)
            except (OSError, MitigatorError) as e:
                logger.error(
                    f"Profile {slug} failed",
                    extra_data={"error": str(e)},
                )
                result.error = str(e)
                if result.cleaned and result.family_sweep is None:
                    self.follow_up_detection(profile, result, force=force)

            summary.results.append(result)
            if result.family_sweep is not None:
                summary.family_sweeps.append(result.family_sweep)

        if summary.anything_cleaned:
            logger.info("Plugin mitigator ran and took action")

        self.scheduler.record_ran(FULL_PASS)
        summary.duration_seconds = time.time() - start_time
        return summary

    def plugin_dir_for(self, profile: MalwareProfile) -> Optional[Path]:
        plugin_dir = profile.plugin_dir
        return self.plugins_dir / plugin_dir if plugin_dir else None

    def scan_targets(self, profile: MalwareProfile, result: ScanResult) -> None:
        """Neutralize the first matching target and cascade to its directory."""
        for rel_path in profile.file_targets:
            full_path = self.abspath / rel_path

            contents = read_bytes(full_path)
            if contents is None:
                continue

            if not self.matcher.matches(contents, profile.signatures):
                continue

            result.matched = True
            result.matched_target = rel_path
            result.neutralized = self.neutralizer.neutralize(full_path, profile.slug)
            logger.info(
                f"Neutralized file ({profile.slug}): {rel_path}",
                extra_data={"hits": count_hits(contents, profile.signatures)},
            )

            # One confirmed hit condemns the whole plugin directory
            plugin_dir = self.plugin_dir_for(profile)
            if plugin_dir is not None:
                result.swept = self.sweeper.neutralize_tree(plugin_dir, profile.slug)
            break

    def deactivate_entry(self, profile: MalwareProfile, result: ScanResult) -> None:
        entry = profile.plugin_file
        if not entry:
            return
        if not guarded_call("is_active", self.host.is_active, entry, default=False):
            return
        if guarded_call("deactivate", self.host.deactivate, entry, True, default=FAILED) is FAILED:
            return
        result.deactivated = True
        logger.info(f"Deactivated plugin ({profile.slug}): {entry}")

    def handle_profile(
        self,
        profile: MalwareProfile,
        force: bool = False,
        result: Optional[ScanResult] = None,
    ) -> ScanResult:
        """
        Process one profile: scan, cascade, deactivate, family sweep.

        Args:
            profile: Profile to process
            force: Bypass the family sweep cooldown as well
            result: Result to fill in; a new one is created when None

        Returns:
            ScanResult for the profile
        """
        if result is None:
            result = ScanResult(slug=profile.slug)

        self.scan_targets(profile, result)
        self.deactivate_entry(profile, result)

        if result.cleaned:
            self.follow_up_detection(profile, result, force=force)

        return result

    def follow_up_detection(self, profile: MalwareProfile, result: ScanResult, force: bool = False) -> None:
        """Record the detection breadcrumb and run the family sweep."""
        self.scheduler.record_detection(profile.slug, profile.plugin_file)
        if self.family_sweep is not None:
            result.family_sweep = self.family_sweep.sweep(profile.slug, force=force)
