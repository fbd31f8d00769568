"""
CLI behavior: flags, usage errors and exit codes.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
import unittest

from fake_tools import FakeToolRunner
from helpers_cli import run_lilycrop_cli, workspace_temp_dir


def _write_source(root: Path, name: str) -> Path:
    source = root / f"{name}.ly"
    source.write_text("{ c'4 }\n", encoding="utf-8")
    return source


class CliSanityTests(unittest.TestCase):
    def test_help_is_clean_and_deterministic(self) -> None:
        exit_code, stdout_text, stderr_text = run_lilycrop_cli(["--help"])
        self.assertEqual(exit_code, 0)
        self.assertIn("usage:", f"{stdout_text}{stderr_text}".lower())
        self.assertIn("-e", stdout_text)

    def test_dump_default_config(self) -> None:
        exit_code, stdout_text, _ = run_lilycrop_cli(["--dump-default-config"])
        self.assertEqual(exit_code, 0)
        self.assertIn("lilycrop:", stdout_text)
        self.assertIn("page_backend: pdftk", stdout_text)


class UsageErrorTests(unittest.TestCase):
    def test_no_arguments(self) -> None:
        runner = FakeToolRunner()
        exit_code, stdout_text, stderr_text = run_lilycrop_cli([], runner=runner)
        self.assertEqual(exit_code, 85)
        self.assertIn("usage:", stdout_text.lower())
        self.assertEqual(runner.calls, [])

    def test_missing_input_file_compiles_nothing(self) -> None:
        with workspace_temp_dir("cli") as root:
            runner = FakeToolRunner()
            exit_code, stdout_text, stderr_text = run_lilycrop_cli(
                [str(root / "missing.ly")], runner=runner
            )
            self.assertEqual(exit_code, 85)
            self.assertIn("usage:", stdout_text.lower())
            self.assertIn("Invalid filename", stderr_text)
            self.assertEqual(runner.calls, [])

    def test_input_without_ly_suffix(self) -> None:
        with workspace_temp_dir("cli") as root:
            other = root / "notes.txt"
            other.write_text("x", encoding="utf-8")
            exit_code, _, _ = run_lilycrop_cli([str(other)], runner=FakeToolRunner())
            self.assertEqual(exit_code, 85)

    def test_unknown_option(self) -> None:
        exit_code, _, stderr_text = run_lilycrop_cli(["-x", "a.ly"], runner=FakeToolRunner())
        self.assertEqual(exit_code, 85)
        self.assertIn("Error:", stderr_text)


class RunTests(unittest.TestCase):
    def test_combined_short_flags(self) -> None:
        with workspace_temp_dir("cli") as root:
            source = _write_source(root, "theme")
            runner = FakeToolRunner(pages=1)

            exit_code, stdout_text, _ = run_lilycrop_cli(["-el", str(source)], runner=runner)

            self.assertEqual(exit_code, 0)
            self.assertTrue((root / "theme-crop.eps").exists())
            self.assertEqual(
                (root / "theme.log").read_text(encoding="utf-8").splitlines(),
                ["theme-crop.eps"],
            )
            self.assertIn("--> LILYCROP: Cropped file 'theme-crop.eps'", stdout_text)

    def test_default_flags_multi_page(self) -> None:
        with workspace_temp_dir("cli") as root:
            source = _write_source(root, "sonata")
            exit_code, stdout_text, _ = run_lilycrop_cli(
                [str(source)], runner=FakeToolRunner(pages=3)
            )

            self.assertEqual(exit_code, 0)
            self.assertIn("3 pages found", stdout_text)
            for page in (1, 2, 3):
                self.assertTrue((root / f"sonata-{page}-crop.pdf").exists())
                self.assertFalse((root / f"sonata-{page}.pdf").exists())
            self.assertFalse((root / "sonata.log").exists())

    def test_tool_failure_exits_nonzero_with_stage(self) -> None:
        with workspace_temp_dir("cli") as root:
            source = _write_source(root, "theme")
            runner = FakeToolRunner(pages=1, fail_on="epstopdf")

            exit_code, _, stderr_text = run_lilycrop_cli([str(source)], runner=runner)

            self.assertNotIn(exit_code, (0, 85))
            self.assertIn("Error: epstopdf failed for", stderr_text)
            self.assertIn("theme-crop.eps", stderr_text)

    def test_missing_page_count_exits_nonzero(self) -> None:
        with workspace_temp_dir("cli") as root:
            source = _write_source(root, "sonata")
            runner = FakeToolRunner(pages=3, dump_data="InfoBegin\n")

            exit_code, _, stderr_text = run_lilycrop_cli([str(source)], runner=runner)

            self.assertNotIn(exit_code, (0, 85))
            self.assertIn("NumberOfPages", stderr_text)
            self.assertNotIn("pdftops", runner.programs())

    def test_quiet_prints_nothing_on_success(self) -> None:
        with workspace_temp_dir("cli") as root:
            source = _write_source(root, "theme")
            exit_code, stdout_text, stderr_text = run_lilycrop_cli(
                ["--quiet", str(source)], runner=FakeToolRunner(pages=1)
            )
            self.assertEqual(exit_code, 0)
            self.assertEqual(stdout_text, "")
            self.assertEqual(stderr_text, "")

    def test_verbose_shows_commands(self) -> None:
        with workspace_temp_dir("cli") as root:
            source = _write_source(root, "theme")
            exit_code, stdout_text, _ = run_lilycrop_cli(
                ["--verbose", str(source)], runner=FakeToolRunner(pages=1)
            )
            self.assertEqual(exit_code, 0)
            self.assertIn("[debug] Running: lilypond theme", stdout_text)

    def test_report_is_written(self) -> None:
        with workspace_temp_dir("cli") as root:
            source = _write_source(root, "sonata")
            report = root / "reports" / "run.json"

            exit_code, _, _ = run_lilycrop_cli(
                ["--report", str(report), str(source)], runner=FakeToolRunner(pages=2)
            )

            self.assertEqual(exit_code, 0)
            loaded = json.loads(report.read_text(encoding="utf-8"))
            self.assertEqual(loaded["tool"], "lilycrop")
            self.assertEqual(loaded["summary"]["status"], "ok")
            self.assertEqual(loaded["summary"]["page_count"], 2)
            self.assertEqual(
                [os.path.basename(path) for path in loaded["summary"]["outputs"]],
                ["sonata-1-crop.pdf", "sonata-2-crop.pdf"],
            )
            self.assertGreater(loaded["action_counts"]["ok"], 0)

    def test_report_records_failure(self) -> None:
        with workspace_temp_dir("cli") as root:
            source = _write_source(root, "sonata")
            report = root / "run.json"

            exit_code, _, _ = run_lilycrop_cli(
                ["--report", str(report), str(source)],
                runner=FakeToolRunner(pages=3, burst_count=4),
            )

            self.assertNotEqual(exit_code, 0)
            loaded = json.loads(report.read_text(encoding="utf-8"))
            self.assertEqual(loaded["summary"]["status"], "error")
            self.assertIn("expected 3", loaded["summary"]["error"])

    def test_bad_config_file(self) -> None:
        with workspace_temp_dir("cli") as root:
            source = _write_source(root, "theme")
            config = root / "tools.yaml"
            config.write_text("lilycrop:\n  ghostscript: gs\n", encoding="utf-8")
            runner = FakeToolRunner(pages=1)

            exit_code, _, stderr_text = run_lilycrop_cli(
                ["--config", str(config), str(source)], runner=runner
            )

            self.assertEqual(exit_code, 2)
            self.assertIn("Unknown keys in config.lilycrop: ghostscript", stderr_text)
            self.assertEqual(runner.calls, [])


if __name__ == "__main__":
    unittest.main()
