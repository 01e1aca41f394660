"""
Mitigator assembly.

Builds the engine from configuration and exposes the two entry points
the host calls: one per admin request and one per plugin list render.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional

from .family_sweep import FamilySweep
from .matcher import SignatureMatcher
from .neutralizer import FileNeutralizer
from .orchestrator import MitigationOrchestrator, PassSummary
from .profiles import ProfileRegistry
from .scheduler import RunScheduler
from .scoring import DirectoryScorer
from .sweeper import DirectorySweeper
from .visibility import VisibilityEnforcer
from ..database.repository import OptionStore
from ..host.base_host import HostEnvironment, PluginMetadata
from ..utils.config import Config
from ..utils.logger import get_logger

logger = get_logger("mitigator")


class Mitigator:
    """Host-facing facade over the orchestrator and visibility enforcer."""

    def __init__(
        self,
        orchestrator: MitigationOrchestrator,
        visibility: VisibilityEnforcer,
    ):
        self.orchestrator = orchestrator
        self.visibility = visibility

    @property
    def registry(self) -> ProfileRegistry:
        return self.orchestrator.registry

    @property
    def scheduler(self) -> RunScheduler:
        return self.orchestrator.scheduler

    def on_admin_request(self) -> PassSummary:
        """Admin request hook: one gated pass."""
        return self.orchestrator.run_pass()

    def on_plugin_list(self, plugins: Dict[str, PluginMetadata]) -> Dict[str, PluginMetadata]:
        """Plugin list filter: keep known malicious entries visible."""
        return self.visibility.expose_known_entries(plugins)


def build_mitigator(
    config: Config,
    host: HostEnvironment,
    store: OptionStore,
    registry: Optional[ProfileRegistry] = None,
    clock: Callable[[], float] = time.time,
) -> Mitigator:
    """
    Assemble a Mitigator from configuration.

    Args:
        config: Loaded configuration
        host: Host environment
        store: Persisted option store
        registry: Profile registry; loaded from configuration when None
        clock: Time source for the scheduler

    Raises:
        ProfileError: If the profile catalog cannot be loaded
    """
    if registry is None:
        registry = ProfileRegistry.load(config.get("profiles.file"))

    plugins_dir = config.plugins_dir

    scheduler = RunScheduler(
        store,
        cooldown=int(config.get("scheduler.cooldown_seconds", 3600)),
        clock=clock,
    )
    neutralizer = FileNeutralizer(config.get("neutralizer.script_extensions"))
    sweeper = DirectorySweeper(neutralizer)

    family_sweep = None
    if config.get("family_sweep.enabled", True):
        scorer = DirectoryScorer(
            registry.family_rules,
            extensions=config.get("family_sweep.extensions"),
            max_files=int(config.get("family_sweep.max_files", 250)),
            max_bytes=int(config.get("family_sweep.max_bytes", 61440)),
        )
        family_sweep = FamilySweep(
            plugins_dir,
            scorer,
            sweeper,
            scheduler,
            host=host,
            self_dir=config.get("paths.self_dir"),
            threshold=int(config.get("family_sweep.threshold", 3)),
        )

    orchestrator = MitigationOrchestrator(
        registry=registry,
        abspath=config.abspath,
        plugins_dir=plugins_dir,
        matcher=SignatureMatcher(int(config.get("matcher.min_hits", 2))),
        neutralizer=neutralizer,
        sweeper=sweeper,
        scheduler=scheduler,
        host=host,
        family_sweep=family_sweep,
    )
    visibility = VisibilityEnforcer(
        registry,
        host,
        plugins_dir=plugins_dir,
        placeholder_for_empty=bool(config.get("visibility.placeholder_for_empty", False)),
    )

    logger.debug(
        "Mitigator assembled",
        extra_data={"profiles": len(registry), "plugins_dir": str(plugins_dir)},
    )
    return Mitigator(orchestrator, visibility)
