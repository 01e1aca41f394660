import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from plugin_mitigator.utils.config import Config, init_config
from plugin_mitigator.utils.exceptions import ConfigurationError

from mitigator_fixtures import write

CLEAN_ENV = {key: "" for key in Config.ENV_MAPPINGS}


class TestConfig(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self._env = patch.dict(os.environ, CLEAN_ENV)
        self._env.start()

    def tearDown(self):
        self._env.stop()
        Config._instance = None
        self._tmp.cleanup()

    def load(self, text):
        return init_config(write(self.root, "config.yaml", text))

    def test_defaults_survive_partial_file(self):
        config = self.load("scheduler:\n  cooldown_seconds: 60\n")

        self.assertEqual(config.get("scheduler.cooldown_seconds"), 60)
        self.assertEqual(config.get("matcher.min_hits"), 2)
        self.assertEqual(config.get("family_sweep.threshold"), 3)
        self.assertEqual(config.get("paths.self_dir"), "msp-malware-mitigator")
        self.assertFalse(config.get("logging.debug"))

    def test_plugins_dir_derived_from_abspath(self):
        config = self.load(f"paths:\n  abspath: {self.root}\n")
        self.assertEqual(config.abspath, self.root)
        self.assertEqual(config.plugins_dir, self.root / "wp-content" / "plugins")

    def test_explicit_plugins_dir(self):
        config = self.load(f"paths:\n  abspath: {self.root}\n  plugins_dir: /srv/plugins\n")
        self.assertEqual(config.plugins_dir, Path("/srv/plugins"))

    def test_env_overrides(self):
        with patch.dict(os.environ, {"MITIGATOR_COOLDOWN": "90", "MITIGATOR_DEBUG": "yes"}):
            config = self.load("scheduler:\n  cooldown_seconds: 60\n")

        self.assertEqual(config.get("scheduler.cooldown_seconds"), 90)
        self.assertTrue(config.get("logging.debug"))

    def test_invalid_env_value(self):
        with patch.dict(os.environ, {"MITIGATOR_COOLDOWN": "hourly"}):
            with self.assertRaises(ConfigurationError):
                self.load("{}\n")

    def test_home_is_expanded(self):
        config = self.load("database:\n  path: ~/options.db\n")
        self.assertEqual(config.get("database.path"), os.path.expanduser("~/options.db"))

    def test_apply_overrides_skips_none(self):
        config = self.load("paths:\n  abspath: /var/www\n")
        config.apply_overrides({"paths.abspath": None, "database.path": "~/x.db"})

        self.assertEqual(config.get("paths.abspath"), "/var/www")
        self.assertEqual(config.get("database.path"), os.path.expanduser("~/x.db"))

    def test_invalid_yaml(self):
        with self.assertRaises(ConfigurationError):
            self.load("scheduler: [unclosed\n")

    def test_non_mapping(self):
        with self.assertRaises(ConfigurationError):
            self.load("- just\n- a list\n")

    def test_missing_explicit_file(self):
        with self.assertRaises(ConfigurationError):
            init_config(self.root / "absent.yaml")

    def test_out_of_range_values(self):
        with self.assertRaises(ConfigurationError):
            self.load("matcher:\n  min_hits: 0\n")
        with self.assertRaises(ConfigurationError):
            self.load("family_sweep:\n  threshold: three\n")
        with self.assertRaises(ConfigurationError):
            self.load("family_sweep:\n  extensions: php\n")

    def test_overrides_are_validated(self):
        config = self.load("{}\n")
        with self.assertRaises(ConfigurationError):
            config.apply_overrides({"scheduler.cooldown_seconds": -1})

    def test_get_section_and_default(self):
        config = self.load("{}\n")
        self.assertEqual(config.get_section("matcher"), {"min_hits": 2})
        self.assertEqual(config.get("nope.nothing", "fallback"), "fallback")


if __name__ == "__main__":
    unittest.main()
