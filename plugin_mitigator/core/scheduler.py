"""
Cooldown-based run throttling.

Each gated operation keeps its own last-run timestamp in the option
store and may run again once the cooldown has elapsed. The check and
the write are not atomic; concurrent requests can both pass the gate,
which is tolerated because every destructive step is idempotent.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..database.repository import OptionStore
from ..utils.exceptions import DatabaseError
from ..utils.logger import get_logger

logger = get_logger("scheduler")

DEFAULT_COOLDOWN_SECONDS = 3600

FULL_PASS = "full-pass"
FAMILY_SWEEP = "family-sweep"

OPTION_KEYS: Dict[str, str] = {
    FULL_PASS: "msp_malware_mitigator_last_run",
    FAMILY_SWEEP: "msp_malware_mitigator_family_sweep_last_run",
}
LAST_DETECTION_OPTION = "msp_malware_mitigator_last_detection"


@dataclass
class DetectionBreadcrumb:
    """Most recent confirmed detection."""

    slug: str
    plugin_file: Optional[str]
    time: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "plugin_file": self.plugin_file,
            "time": self.time,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional[DetectionBreadcrumb]:
        if not isinstance(data, dict) or not data.get("slug"):
            return None
        try:
            stamp = int(data.get("time") or 0)
        except (TypeError, ValueError):
            stamp = 0
        return cls(slug=str(data["slug"]), plugin_file=data.get("plugin_file"), time=stamp)


class RunScheduler:
    """
    Gate for the full pass and the family sweep.

    Args:
        store: Persisted option store
        cooldown: Minimum seconds between runs of the same key
        clock: Returns the current time in epoch seconds
    """

    def __init__(
        self,
        store: OptionStore,
        cooldown: int = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.cooldown = int(cooldown)
        self.clock = clock

    def _option_key(self, key: str) -> str:
        try:
            return OPTION_KEYS[key]
        except KeyError:
            raise ValueError(f"Unknown schedule key: {key}")

    def now(self) -> int:
        return int(self.clock())

    def last_run(self, key: str) -> Optional[int]:
        """Last recorded run of key, or None when never recorded."""
        option_key = self._option_key(key)
        try:
            raw = self.store.get(option_key)
        except DatabaseError as e:
            logger.warning(f"Cannot read {option_key}: {e}")
            return None
        try:
            stamp = int(raw)
        except (TypeError, ValueError):
            return None
        # A zero timestamp counts as never run
        return stamp or None

    def should_run(self, key: str) -> bool:
        """True when key has never run or its cooldown has elapsed."""
        last = self.last_run(key)
        if last is None:
            return True
        return self.now() - last >= self.cooldown

    def record_ran(self, key: str) -> None:
        """Persist the current time as the last run of key."""
        option_key = self._option_key(key)
        try:
            self.store.set(option_key, self.now())
        except DatabaseError as e:
            logger.warning(f"Cannot record {option_key}: {e}")

    def record_detection(self, slug: str, plugin_file: Optional[str]) -> DetectionBreadcrumb:
        """Overwrite the last-detection breadcrumb."""
        crumb = DetectionBreadcrumb(slug=slug, plugin_file=plugin_file, time=self.now())
        try:
            self.store.set(LAST_DETECTION_OPTION, crumb.to_dict())
        except DatabaseError as e:
            logger.warning(f"Cannot record detection breadcrumb: {e}")
        return crumb

    def last_detection(self) -> Optional[DetectionBreadcrumb]:
        try:
            return DetectionBreadcrumb.from_dict(self.store.get(LAST_DETECTION_OPTION))
        except DatabaseError as e:
            logger.warning(f"Cannot read detection breadcrumb: {e}")
            return None
