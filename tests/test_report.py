import io
import unittest

from rich.console import Console

from mdgraph.errors import (
    ConfigurationError,
    DirectoryNotFoundError,
    DocumentNotFoundError,
    MarkdownParsingError,
)
from mdgraph.report import format_error, is_recoverable_error, report_error, suggestions_for


def _report(error, verbose=False):
    buf = io.StringIO()
    report_error(error, verbose, console=Console(file=buf, width=200))
    return buf.getvalue()


class TestReport(unittest.TestCase):
    def test_directory_not_found(self):
        out = _report(DirectoryNotFoundError("/nowhere"))
        self.assertIn("DirectoryNotFoundError: Directory does not exist: /nowhere", out)
        self.assertIn("Suggestions:", out)
        self.assertIn("mkdir -p <directory-path>", out)

    def test_unexpected_error(self):
        out = _report(ValueError("boom"))
        self.assertIn("Unexpected error: boom", out)
        self.assertNotIn("Suggestions:", out)

    def test_verbose_shows_cause(self):
        error = MarkdownParsingError("a.md", ValueError("[unclosed thing"))
        self.assertNotIn("Caused by", _report(error))
        self.assertIn("Caused by: [unclosed thing", _report(error, verbose=True))

    def test_each_kind_has_suggestions(self):
        for error in (
            ConfigurationError("bad"),
            DocumentNotFoundError("x", "in-memory repository"),
            MarkdownParsingError("a.md", ValueError("x")),
            RuntimeError("other"),
        ):
            with self.subTest(error=type(error).__name__):
                self.assertTrue(suggestions_for(error))

    def test_format_error(self):
        self.assertEqual(format_error(ConfigurationError("bad"), "loading"), "ConfigurationError: bad (loading)")

    def test_recoverable(self):
        self.assertTrue(is_recoverable_error(DirectoryNotFoundError("/x")))
        self.assertTrue(is_recoverable_error(ConfigurationError("bad")))
        self.assertFalse(is_recoverable_error(DocumentNotFoundError("x", "repo")))
        self.assertFalse(is_recoverable_error(RuntimeError("x")))


if __name__ == "__main__":
    unittest.main()
