"""Detection and neutralization engine for the plugin mitigator."""

from .matcher import SignatureMatcher, matches, count_hits
from .neutralizer import FileNeutralizer, NeutralizeOutcome, render_stub
from .sweeper import DirectorySweeper, TreeSweepResult
from .profiles import MalwareProfile, FamilyRules, ProfileRegistry
from .scheduler import (
    RunScheduler,
    DetectionBreadcrumb,
    FULL_PASS,
    FAMILY_SWEEP,
)
from .scoring import DirectoryScorer, DirectoryScore
from .family_sweep import FamilySweep, FamilySweepResult
from .orchestrator import MitigationOrchestrator, ScanResult, PassSummary
from .visibility import VisibilityEnforcer, placeholder_metadata
from .mitigator import Mitigator, build_mitigator

__all__ = [
    "SignatureMatcher",
    "matches",
    "count_hits",
    "FileNeutralizer",
    "NeutralizeOutcome",
    "render_stub",
    "DirectorySweeper",
    "TreeSweepResult",
    "MalwareProfile",
    "FamilyRules",
    "ProfileRegistry",
    "RunScheduler",
    "DetectionBreadcrumb",
    "FULL_PASS",
    "FAMILY_SWEEP",
    "DirectoryScorer",
    "DirectoryScore",
    "FamilySweep",
    "FamilySweepResult",
    "MitigationOrchestrator",
    "ScanResult",
    "PassSummary",
    "VisibilityEnforcer",
    "placeholder_metadata",
    "Mitigator",
    "build_mitigator",
]
