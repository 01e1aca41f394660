import os
import tempfile
import unittest
from pathlib import Path

from plugin_mitigator.core.neutralizer import FileNeutralizer, render_stub
from plugin_mitigator.core.sweeper import DirectorySweeper

from mitigator_fixtures import write


class TestDirectorySweeper(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.sweeper = DirectorySweeper(FileNeutralizer())

    def tearDown(self):
        self._tmp.cleanup()

    def test_every_nested_file_is_neutralized(self):
        plugin = self.root / "plugin"
        write(plugin, "main.php", "payload")
        write(plugin, "a/b/c/deep.php", "payload")
        write(plugin, "a/data.json", "{}")
        write(plugin, "a/b/notes.txt", "text")

        result = self.sweeper.neutralize_tree(plugin, "slug")

        self.assertEqual(result.count, 4)
        self.assertEqual(result.errors, [])
        for dirpath, _dirs, files in os.walk(plugin):
            for name in files:
                content = (Path(dirpath) / name).read_bytes()
                self.assertIn(content, (b"", render_stub("slug")))

    def test_children_are_processed_before_parents(self):
        plugin = self.root / "plugin"
        write(plugin, "top.php", "payload")
        write(plugin, "sub/inner.php", "payload")

        result = self.sweeper.neutralize_tree(plugin, "slug")

        paths = [Path(outcome.path) for outcome in result.outcomes]
        self.assertLess(paths.index(plugin / "sub" / "inner.php"), paths.index(plugin / "top.php"))

    def test_missing_root_is_a_noop(self):
        result = self.sweeper.neutralize_tree(self.root / "absent", "slug")
        self.assertEqual(result.count, 0)
        self.assertEqual(result.errors, [])

    def test_file_root_is_a_noop(self):
        path = write(self.root, "single.php", "payload")
        result = self.sweeper.neutralize_tree(path, "slug")
        self.assertEqual(result.count, 0)
        self.assertEqual(path.read_bytes(), b"payload")

    def test_directories_are_kept(self):
        plugin = self.root / "plugin"
        write(plugin, "sub/inner.php", "payload")
        self.sweeper.neutralize_tree(plugin, "slug")
        self.assertTrue((plugin / "sub").is_dir())

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks not supported")
    def test_symlinks_leaving_the_tree_are_not_followed(self):
        outside = write(self.root, "outside/keep.php", "keep me")
        write(self.root, "outside/nested/keep.json", "keep me too")
        plugin = self.root / "plugin"
        write(plugin, "main.php", "payload")
        try:
            os.symlink(outside, plugin / "link.php")
            os.symlink(self.root / "outside" / "nested", plugin / "linkdir")
        except OSError:
            self.skipTest("cannot create symlinks")

        result = self.sweeper.neutralize_tree(plugin, "slug")

        self.assertEqual(outside.read_bytes(), b"keep me")
        self.assertEqual((self.root / "outside/nested/keep.json").read_bytes(), b"keep me too")
        self.assertEqual(result.count, 1)
        self.assertEqual([o.reason for o in result.skipped], ["symlink-outside-root"])


if __name__ == "__main__":
    unittest.main()
