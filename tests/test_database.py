import os
import tempfile
import unittest

from plugin_mitigator.database import Repository
from plugin_mitigator.core.scheduler import FULL_PASS, RunScheduler

from mitigator_fixtures import FakeClock


class TestRepository(unittest.TestCase):
    def setUp(self):
        self.repo = Repository(":memory:")

    def tearDown(self):
        self.repo.close()

    def test_missing_key_returns_default(self):
        self.assertIsNone(self.repo.get("absent"))
        self.assertEqual(self.repo.get("absent", 5), 5)

    def test_set_and_overwrite(self):
        self.repo.set("msp_malware_mitigator_last_run", 100)
        self.assertEqual(self.repo.get("msp_malware_mitigator_last_run"), 100)

        self.repo.set("msp_malware_mitigator_last_run", 200)
        self.assertEqual(self.repo.get("msp_malware_mitigator_last_run"), 200)

    def test_structured_values(self):
        crumb = {"slug": "s", "plugin_file": "s/s.php", "time": 1}
        self.repo.set("msp_malware_mitigator_last_detection", crumb)
        self.repo.set("active_plugins", ["a/a.php", "b/b.php"])

        self.assertEqual(self.repo.get("msp_malware_mitigator_last_detection"), crumb)
        self.assertEqual(self.repo.get("active_plugins"), ["a/a.php", "b/b.php"])

    def test_backs_the_scheduler(self):
        clock = FakeClock()
        scheduler = RunScheduler(self.repo, cooldown=60, clock=clock)
        scheduler.record_ran(FULL_PASS)
        self.assertFalse(scheduler.should_run(FULL_PASS))
        clock.advance(60)
        self.assertTrue(scheduler.should_run(FULL_PASS))


class TestRepositoryFile(unittest.TestCase):
    def test_values_persist_across_instances(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "nested", "options.db")

            first = Repository(path)
            first.set("key", {"value": 1})
            first.close()

            second = Repository(path)
            self.assertEqual(second.get("key"), {"value": 1})
            self.assertEqual(second.db_path, path)
            second.close()


if __name__ == "__main__":
    unittest.main()
