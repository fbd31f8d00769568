"""
Command-line interface for lilycrop.

This file focuses on parsing arguments and handing an explicit settings value
to the pipeline. Keeping this separate makes the code easier to read and test.
"""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

from . import __version__
from .config import CropSettings, OutputFormat, build_tool_config, dump_default_config_yaml
from .manifest import ManifestRecorder
from .pipeline import PipelineResult, run_pipeline
from .tools import ToolRunner
from .utils import (
    EXIT_OK,
    UsageError,
    UserError,
    ensure_source_file,
    normalize_path,
)


EXAMPLES = """Examples:
  lilycrop sonata.ly            -> sonata-1-crop.pdf, sonata-2-crop.pdf, ...
  lilycrop -e theme.ly          -> theme-crop.eps
  lilycrop -el theme.ly         -> theme-crop.eps, file names listed in theme.log
  lilycrop --config tools.yaml --verbose sonata.ly
  lilycrop --dump-default-config > tools.yaml

Needs lilypond, pdftk, pdftops, ps2eps and epstopdf on PATH (or set in --config).
"""


class _LilycropArgumentParser(argparse.ArgumentParser):
    """argparse exits with 2 on bad arguments; we report those as usage errors."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = _LilycropArgumentParser(
        prog="lilycrop",
        description=(
            "Compile a LilyPond file and produce one tightly cropped EPS or PDF "
            "image per page."
        ),
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("input", nargs="?", help="LilyPond input file (file.ly).")
    parser.add_argument(
        "-e",
        dest="eps",
        action="store_true",
        help="Produce EPS output (default: PDF).",
    )
    parser.add_argument(
        "-l",
        dest="log",
        action="store_true",
        help="Write output file names to file.log.",
    )
    parser.add_argument("--config", help="Optional YAML config naming the external tools.")
    parser.add_argument("--report", help="Write a JSON report of the run to this path.")
    parser.add_argument(
        "--dump-default-config",
        action="store_true",
        help="Print the default YAML config and exit.",
    )
    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress notices; only errors are printed.",
    )
    verbosity_group.add_argument(
        "--verbose",
        action="store_true",
        help="Also print every external command as it runs.",
    )
    return parser


def _verbosity_from_args(args: argparse.Namespace) -> str:
    """Resolve global verbosity mode from top-level flags."""

    if getattr(args, "quiet", False):
        return "quiet"
    if getattr(args, "verbose", False):
        return "verbose"
    return "normal"


def _settings_from_args(args: argparse.Namespace) -> CropSettings:
    return CropSettings(
        output_format=OutputFormat.EPS if args.eps else OutputFormat.PDF,
        log_enabled=bool(args.log),
    )


def _command_argv_for_report(argv: list[str] | None) -> list[str]:
    """Choose argv used to record the command faithfully."""

    if argv is None:
        return list(sys.argv)
    return [sys.argv[0], *argv]


def _options_for_report(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Build a JSON-friendly options dict.

    Why: argparse Namespace can contain non-serializable objects.
    """

    options: Dict[str, Any] = {}
    for key, value in vars(args).items():
        options[key] = str(value) if isinstance(value, Path) else value
    options["version"] = __version__
    return options


def _summary(result: Optional[PipelineResult], error: Optional[str]) -> Dict[str, Any]:
    summary: Dict[str, Any] = {"status": "error" if error else "ok"}
    if result is not None:
        summary["page_count"] = result.page_count
        summary["outputs"] = [str(path) for path in result.outputs]
        if result.manifest_path is not None:
            summary["manifest"] = str(result.manifest_path)
    if error is not None:
        summary["error"] = error
    return summary


def _usage_exit(parser: argparse.ArgumentParser, exc: UsageError) -> int:
    print(f"Error: {exc}", file=sys.stderr)
    parser.print_help()
    return exc.exit_code


def main(argv: list[str] | None = None, runner: Optional[ToolRunner] = None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except UsageError as exc:
        return _usage_exit(parser, exc)

    if args.dump_default_config:
        try:
            print(dump_default_config_yaml())
        except UserError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return exc.exit_code
        return EXIT_OK

    recorder: Optional[ManifestRecorder] = None
    result: Optional[PipelineResult] = None
    report_path = normalize_path(args.report) if args.report else None
    try:
        if not args.input:
            raise UsageError("No input file given.")
        source = ensure_source_file(normalize_path(args.input))
        tools = build_tool_config(normalize_path(args.config) if args.config else None)
        settings = _settings_from_args(args)

        recorder = ManifestRecorder(
            tool_name="lilycrop",
            tool_version=__version__,
            command=subprocess.list2cmdline(_command_argv_for_report(argv)),
            options=_options_for_report(args),
            inputs={"source": str(source)},
            outputs={"format": settings.output_format.value},
            verbosity=_verbosity_from_args(args),
        )
        result = run_pipeline(source, settings, tools, runner=runner, recorder=recorder)
    except UsageError as exc:
        return _usage_exit(parser, exc)
    except UserError as exc:
        if recorder is None:
            print(f"Error: {exc}", file=sys.stderr)
            return exc.exit_code
        recorder.log(str(exc), level="error")
        if report_path is not None:
            recorder.write_report(report_path, _summary(result, str(exc)))
        return exc.exit_code

    if report_path is not None:
        recorder.write_report(report_path, _summary(result, None))
    return EXIT_OK
