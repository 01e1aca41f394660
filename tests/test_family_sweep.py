import tempfile
import unittest
from pathlib import Path

from plugin_mitigator.core.family_sweep import FamilySweep
from plugin_mitigator.core.neutralizer import FileNeutralizer, render_stub
from plugin_mitigator.core.profiles import FamilyRules
from plugin_mitigator.core.scheduler import FAMILY_SWEEP, RunScheduler
from plugin_mitigator.core.scoring import DirectoryScorer
from plugin_mitigator.core.sweeper import DirectorySweeper
from plugin_mitigator.utils.exceptions import DatabaseError

from mitigator_fixtures import FakeClock, FakeHost, FakeStore, make_site, write

RULES = FamilyRules(
    content_anchors=("refine_cheerfully", "sadlysplitdirect"),
    known_texts=("Text Domain: either-interoperable-blob",),
    suspicious_subfolders=("vendor/rusty",),
)

KNOWN_HEADER = "<?php\n/*\nPlugin Name: Renamed\nText Domain: either-interoperable-blob\n*/\n"


class LockedActivationHost(FakeHost):
    """Host whose activation lookups fail for every entry."""

    def is_active(self, entry_path):
        raise DatabaseError("database is locked", operation="get", key="active_plugins")


class TestFamilySweep(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.plugins_dir = make_site(self._tmp.name)

        self.variant = self.plugins_dir / "fresh-variant"
        write(self.variant, "fresh-variant.php", KNOWN_HEADER)
        write(self.variant, "data.json", '{"k": 1}')

        self.weak = self.plugins_dir / "weak-signal"
        write(self.weak, "weak-signal.php", "<?php refine_cheerfully();")
        write(self.weak, "vendor/rusty/x.php", "<?php echo 1;")

        self.benign = self.plugins_dir / "hello"
        write(self.benign, "hello.php", "<?php /* Plugin Name: Hello */")

        self.own = self.plugins_dir / "msp-malware-mitigator"
        write(self.own, "msp-malware-mitigator.php", KNOWN_HEADER + "refine_cheerfully sadlysplitdirect")

        self.host = FakeHost(
            self.plugins_dir,
            active={"fresh-variant/fresh-variant.php", "hello/hello.php"},
            plugins={
                "fresh-variant/fresh-variant.php": {"Name": "Renamed"},
                "hello/hello.php": {"Name": "Hello"},
                "msp-malware-mitigator/msp-malware-mitigator.php": {"Name": "Mitigator"},
            },
        )
        self.store = FakeStore()
        self.clock = FakeClock()
        self.scheduler = RunScheduler(self.store, cooldown=3600, clock=self.clock)
        self.sweep = FamilySweep(
            self.plugins_dir,
            DirectoryScorer(RULES),
            DirectorySweeper(FileNeutralizer()),
            self.scheduler,
            host=self.host,
            self_dir="msp-malware-mitigator",
        )

    def tearDown(self):
        self._tmp.cleanup()

    def test_variant_is_neutralized_and_deactivated(self):
        result = self.sweep.sweep("either-interoperable-blob")

        self.assertTrue(result.ran)
        self.assertEqual(result.neutralized_dirs, [str(self.variant)])
        self.assertEqual(result.deactivated, ["fresh-variant/fresh-variant.php"])
        self.assertEqual(self.host.deactivated, ["fresh-variant/fresh-variant.php"])
        self.assertEqual(
            (self.variant / "fresh-variant.php").read_bytes(),
            render_stub("family-sweep:either-interoperable-blob"),
        )
        self.assertEqual((self.variant / "data.json").read_bytes(), b"")

    def test_below_threshold_and_own_directory_untouched(self):
        self.sweep.sweep("either-interoperable-blob")

        self.assertEqual((self.weak / "weak-signal.php").read_bytes(), b"<?php refine_cheerfully();")
        self.assertEqual((self.benign / "hello.php").read_bytes(), b"<?php /* Plugin Name: Hello */")
        self.assertTrue(
            (self.own / "msp-malware-mitigator.php").read_bytes().startswith(KNOWN_HEADER.encode())
        )
        self.assertIn("hello/hello.php", self.host.active)

    def test_scores_reported_for_every_candidate(self):
        result = self.sweep.sweep("either-interoperable-blob")
        scored = {Path(score.directory).name: score.total for score in result.scores}
        self.assertEqual(set(scored), {"fresh-variant", "weak-signal", "hello"})
        self.assertEqual(scored["weak-signal"], 2)
        self.assertGreaterEqual(scored["fresh-variant"], 3)

    def test_sweep_respects_its_own_cooldown(self):
        self.sweep.sweep("either-interoperable-blob")
        self.assertIn("msp_malware_mitigator_family_sweep_last_run", self.store.data)

        self.clock.advance(60)
        self.assertFalse(self.sweep.sweep("either-interoperable-blob").ran)
        self.assertTrue(self.sweep.sweep("either-interoperable-blob", force=True).ran)

        self.clock.advance(3600)
        self.assertTrue(self.scheduler.should_run(FAMILY_SWEEP))

    def test_unavailable_host_still_neutralizes(self):
        self.host.unavailable = True
        result = self.sweep.sweep("either-interoperable-blob")

        self.assertEqual(result.deactivated, [])
        self.assertEqual(result.neutralized_dirs, [str(self.variant)])

    def test_store_failure_does_not_stop_the_sweep(self):
        second = self.plugins_dir / "second-variant"
        write(second, "second-variant.php", KNOWN_HEADER)
        self.sweep.host = LockedActivationHost(self.plugins_dir, plugins=self.host.plugins)

        result = self.sweep.sweep("either-interoperable-blob")

        self.assertEqual(result.neutralized_dirs, [str(self.variant), str(second)])
        self.assertEqual(result.deactivated, [])
        self.assertEqual(len(result.errors), 1)
        self.assertIn("database is locked", result.errors[0])
        self.assertEqual(
            (second / "second-variant.php").read_bytes(),
            render_stub("family-sweep:either-interoperable-blob"),
        )
        self.assertEqual(
            (self.variant / "fresh-variant.php").read_bytes(),
            render_stub("family-sweep:either-interoperable-blob"),
        )
        self.assertIn("msp_malware_mitigator_family_sweep_last_run", self.store.data)

    def test_missing_plugins_dir(self):
        sweep = FamilySweep(
            Path(self._tmp.name) / "nowhere",
            DirectoryScorer(RULES),
            DirectorySweeper(FileNeutralizer()),
            self.scheduler,
        )
        result = sweep.sweep("slug")
        self.assertTrue(result.ran)
        self.assertEqual(result.scores, [])
        self.assertEqual(len(result.errors), 1)


if __name__ == "__main__":
    unittest.main()
