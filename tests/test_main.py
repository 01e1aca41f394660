import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

import main
from plugin_mitigator.database import Repository
from plugin_mitigator.host.local_host import ACTIVE_PLUGINS_OPTION
from plugin_mitigator.utils.config import Config
from plugin_mitigator.utils.logger import reset_logging

from mitigator_fixtures import infect_blob, make_site, write

BLOB_ENTRY = "either-interoperable-blob/either-interoperable-blob.php"


class TestMain(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.site = self.root / "site"
        self.plugins_dir = make_site(self.site)
        self.db = str(self.root / "options.db")
        self.config_file = write(self.root, "config.yaml", "logging:\n  debug: false\n")

        self._patches = [
            patch.dict(os.environ, {key: "" for key in Config.ENV_MAPPINGS}),
            patch("main.setup_signal_handlers"),
        ]
        for p in self._patches:
            p.start()

    def tearDown(self):
        for p in reversed(self._patches):
            p.stop()
        Config._instance = None
        reset_logging()
        self._tmp.cleanup()

    def run_main(self, *extra):
        argv = ["--config", str(self.config_file), "--abspath", str(self.site), "--db", self.db]
        argv.extend(extra)
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main.main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_clean_site(self):
        code, out, _err = self.run_main()

        self.assertEqual(code, main.EXIT_CLEAN)
        summary = json.loads(out)
        self.assertTrue(summary["ran"])
        self.assertFalse(summary["anything_cleaned"])

    def test_infected_site(self):
        base = infect_blob(self.plugins_dir)
        repo = Repository(self.db)
        repo.set(ACTIVE_PLUGINS_OPTION, [BLOB_ENTRY, "hello/hello.php"])
        repo.close()

        code, out, _err = self.run_main()

        self.assertEqual(code, main.EXIT_CLEANED)
        summary = json.loads(out)
        self.assertTrue(summary["results"][0]["matched"])
        self.assertTrue(summary["results"][0]["deactivated"])
        self.assertEqual((base / "data" / "json" / "other.json").read_bytes(), b"")

        repo = Repository(self.db)
        self.assertEqual(repo.get(ACTIVE_PLUGINS_OPTION), ["hello/hello.php"])
        repo.close()

    def test_cooldown_and_force(self):
        self.run_main()
        infect_blob(self.plugins_dir)

        code, out, _err = self.run_main()
        self.assertEqual(code, main.EXIT_CLEAN)
        self.assertFalse(json.loads(out)["ran"])

        code, _out, _err = self.run_main("--force")
        self.assertEqual(code, main.EXIT_CLEANED)

    def test_list_exposes_hidden_entry(self):
        infect_blob(self.plugins_dir)
        write(self.plugins_dir, "hello/hello.php", "<?php\n/* Plugin Name: Hello */\n")

        code, out, _err = self.run_main("--list")

        self.assertEqual(code, main.EXIT_CLEAN)
        plugins = json.loads(out)
        self.assertEqual(plugins["hello/hello.php"]["Name"], "Hello")
        self.assertEqual(plugins[BLOB_ENTRY]["Name"], "My strongly-consistent compiler")

    def test_bad_profile_catalog(self):
        bad = write(self.root, "bad.yaml", "profiles: [unclosed\n")

        code, out, err = self.run_main("--profiles", str(bad))

        self.assertEqual(code, main.EXIT_ERROR)
        self.assertEqual(out, "")
        self.assertIn("PROFILE_ERROR", err)

    def test_missing_config(self):
        self.config_file = self.root / "missing.yaml"
        code, _out, err = self.run_main()
        self.assertEqual(code, main.EXIT_ERROR)
        self.assertIn("CONFIG_ERROR", err)


if __name__ == "__main__":
    unittest.main()
