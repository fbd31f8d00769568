"""
Output manifest and run logging.

Why this exists:
- The optional `{base}.log` manifest lists every cropped file, one per line.
- Console notices go through one recorder so messages share the same marker,
  respect --quiet/--verbose, and can be written out as a JSON run report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
import sys
from typing import Any, Dict, List, TextIO


NOTICE_MARKER = "--> LILYCROP:"


def _iso_now() -> str:
    """Return an ISO-8601 timestamp in UTC."""

    return datetime.now(timezone.utc).isoformat()


@dataclass
class OutputManifest:
    """
    The `{base}.log` file: cropped file names in the order they were made.

    It is replaced at the start of each run rather than appended across runs.
    """

    path: Path

    def reset(self) -> bool:
        """Remove a manifest left by an earlier run. Returns True if one existed."""

        if self.path.exists():
            self.path.unlink()
            return True
        return False

    def append(self, output: Path | str) -> None:
        name = output.name if isinstance(output, Path) else output
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(f"{name}\n")

    def entries(self) -> List[str]:
        if not self.path.exists():
            return []
        return self.path.read_text(encoding="utf-8").splitlines()


@dataclass
class ManifestRecorder:
    """
    Collect notices and stage actions for one pipeline run.

    Notices are printed as they happen; everything is kept in memory so an
    optional JSON report can be written at the end.
    """

    tool_name: str
    tool_version: str
    command: str
    options: Dict[str, Any] = field(default_factory=dict)
    inputs: Dict[str, Any] = field(default_factory=dict)
    outputs: Dict[str, Any] = field(default_factory=dict)
    verbosity: str = "normal"
    console_stream: TextIO = field(default_factory=lambda: sys.stdout)
    error_stream: TextIO = field(default_factory=lambda: sys.stderr)
    started_at: str = field(default_factory=_iso_now)
    logs: List[Dict[str, Any]] = field(default_factory=list)
    actions: List[Dict[str, Any]] = field(default_factory=list)

    def log(self, message: str, level: str = "info") -> None:
        """Record a log message and also print it to the console."""

        entry = {"timestamp": _iso_now(), "level": level, "message": message}
        self.logs.append(entry)

        if level == "error":
            print(f"Error: {message}", file=self.error_stream)
            return

        if self.verbosity == "quiet":
            should_print = False
        elif self.verbosity == "verbose":
            should_print = True
        else:
            should_print = level in {"info", "warning"}

        if should_print:
            rendered = (
                f"{NOTICE_MARKER} [{level}] {message}"
                if self.verbosity == "verbose"
                else f"{NOTICE_MARKER} {message}"
            )
            print(rendered, file=self.console_stream)

    def add_action(self, action: str, status: str, **details: Any) -> None:
        """
        Add an action record.

        Example action types: compile, count_pages, burst, to_eps, trim_bbox, to_pdf.
        """

        entry: Dict[str, Any] = {
            "timestamp": _iso_now(),
            "action": action,
            "status": status,
        }
        entry.update(details)
        self.actions.append(entry)

    def _summarize_actions(self) -> Dict[str, int]:
        """Count actions by status (ok, removed, error, etc.)."""

        counts: Dict[str, int] = {}
        for action in self.actions:
            status = action.get("status", "unknown")
            counts[status] = counts.get(status, 0) + 1
        return counts

    def build_report(self, summary: Dict[str, Any]) -> Dict[str, Any]:
        """Assemble the final report structure."""

        return {
            "tool": self.tool_name,
            "version": self.tool_version,
            "command": self.command,
            "started_at": self.started_at,
            "ended_at": _iso_now(),
            "options": self.options,
            "inputs": self.inputs,
            "outputs": self.outputs,
            "summary": summary,
            "action_counts": self._summarize_actions(),
            "actions": self.actions,
            "logs": self.logs,
        }

    def write_report(self, path: Path, summary: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        report = self.build_report(summary)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(report, handle, indent=2, ensure_ascii=True)
