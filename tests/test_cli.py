import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from typer.testing import CliRunner

from mdgraph.cli import app


class TestCli(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        (self.root / "foo.md").write_text("# Foo\n\n[[bar]]\n\n## Part\n", encoding="utf-8")
        (self.root / "bar.md").write_text("# Bar\n", encoding="utf-8")
        self.runner = CliRunner()
        # Keep config discovery away from the developer's own files.
        self._cwd = os.getcwd()
        os.chdir(self.root)

    def tearDown(self):
        os.chdir(self._cwd)
        self._tmp.cleanup()

    def test_generate_writes_graph(self):
        out = self.root / "out" / "graph.json"
        result = self.runner.invoke(app, ["generate", str(self.root), "-o", str(out), "--no-natural-language"])
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(out.read_text(encoding="utf-8"))
        self.assertEqual(sorted(data["nodes"]), ["bar", "foo", "foo#part"])
        self.assertIn({"source": "foo", "target": "bar"}, data["links"])

    def test_generate_defaults_to_current_directory(self):
        result = self.runner.invoke(app, ["generate", "--no-sections", "--no-natural-language", "-q"])
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads((self.root / ".garden-graph.json").read_text(encoding="utf-8"))
        self.assertEqual(sorted(data["nodes"]), ["bar", "foo"])

    def test_generate_just_node_names(self):
        out = self.root / "names.json"
        result = self.runner.invoke(app, ["generate", str(self.root), "-o", str(out), "--just-node-names"])
        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(out.read_text(encoding="utf-8"))
        self.assertEqual(data["links"], [])
        self.assertEqual(data["nodes"]["foo"], {})

    def test_generate_missing_directory(self):
        result = self.runner.invoke(app, ["generate", str(self.root / "missing")])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Directory does not exist", result.output)

    def test_bad_config_file(self):
        (self.root / "mdgraph.config.json").write_text('{"debounce_ms": -5}', encoding="utf-8")
        result = self.runner.invoke(app, ["generate", str(self.root)])
        self.assertEqual(result.exit_code, 1)

    def test_bad_environment_setting_is_reported_as_configuration_error(self):
        with mock.patch.dict(os.environ, {"MDGRAPH_DEBOUNCE_MS": "abc"}):
            result = self.runner.invoke(app, ["generate", str(self.root)])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("ConfigurationError", result.output)
        self.assertNotIn("Unexpected error", result.output)

    def test_watch_missing_directory(self):
        result = self.runner.invoke(app, ["watch", str(self.root / "missing")])
        self.assertEqual(result.exit_code, 1)

    def test_help_lists_commands(self):
        result = self.runner.invoke(app, ["--help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("generate", result.output)
        self.assertIn("watch", result.output)


if __name__ == "__main__":
    unittest.main()
