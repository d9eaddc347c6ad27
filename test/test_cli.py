"""Tests for the translate command."""

import os
import shutil
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT / "src"))

from WorldcatPool.cli.ui import cli


class TestTranslateCommand(unittest.TestCase):
    def _invoke(self, args: list, override: str | None = None):
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("config").mkdir()
            shutil.copy(REPO_ROOT / "config" / "default.yml", "config/default.yml")
            if override is not None:
                Path("custom.yml").write_text(override, encoding="utf-8")
                args = ["--config", "custom.yml", *args]
            with patch.dict(os.environ, {}, clear=True), patch(
                "WorldcatPool.cli.runner.configure_logging"
            ):
                return runner.invoke(cli, args)

    def test_translate_discovery(self) -> None:
        result = self._invoke(["translate", "keyword: {cats}", "--sort", "date", "--order", "asc", "--start", "40"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("dialect:    discovery", result.output)
        self.assertIn("query:      kw:cats NOT li:VA@ NOT li:VAL NOT li:VAM", result.output)
        self.assertIn("no_results: false", result.output)
        self.assertIn("param:      orderBy=publicationDateAsc", result.output)
        self.assertIn("param:      offset=41", result.output)

    def test_date_only_query_reports_no_results(self) -> None:
        result = self._invoke(["translate", "date: {1987}"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("no_results: true", result.output)

    def test_override_excluded_holdings(self) -> None:
        result = self._invoke(["translate", "title: {dune}"], override="query:\n  excluded_holdings: []\n")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("query:      ti:dune\n", result.output)

    def test_unsupported_criterion_aborts(self) -> None:
        result = self._invoke(["translate", "journal_title: {nature}"])
        self.assertEqual(result.exit_code, 1)
        self.assertNotIn("dialect:", result.output)

    def test_malformed_query_aborts(self) -> None:
        result = self._invoke(["translate", "keyword: {cats"])
        self.assertEqual(result.exit_code, 1)


if __name__ == "__main__":
    unittest.main()
