"""
Crop one single-page PDF to its tight bounding box.

The three stages are fixed: pdftops -eps, ps2eps (recomputes the bounding
box), and for PDF output epstopdf. The tools do the work; this module owns
the order, the file names and which intermediates get deleted.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config import CropSettings, OutputFormat, ToolConfig
from .manifest import ManifestRecorder, OutputManifest
from .tools import ToolRunner, run_stage
from .utils import ToolInvocationError, crop_stem, remove_file


def _require_output(path: Path, stage: str, source: Path) -> None:
    """Some converters exit 0 without writing anything; treat that as failure."""

    if not path.is_file():
        raise ToolInvocationError(stage, source, f"expected output {path.name} was not created")


def _remove_intermediate(path: Path, recorder: Optional[ManifestRecorder]) -> None:
    remove_file(path)
    if recorder is not None:
        recorder.add_action("remove_intermediate", "removed", path=str(path))


def crop_page(
    page_path: Path,
    settings: CropSettings,
    tools: ToolConfig,
    runner: ToolRunner,
    recorder: Optional[ManifestRecorder] = None,
    manifest: Optional[OutputManifest] = None,
) -> Path:
    """
    Produce `{stem}-crop.eps` or `{stem}-crop.pdf` from `page_path`.

    Only the cropped artifact is left behind; the page PDF itself is not
    touched. When logging is enabled the output name is appended to
    `manifest`.
    """

    work_dir = page_path.parent
    raw_eps = page_path.with_suffix(".eps")
    cropped_eps = work_dir / f"{crop_stem(page_path)}.eps"

    run_stage(
        runner,
        [tools.pdftops, "-eps", page_path.name, raw_eps.name],
        cwd=work_dir,
        stage="pdftops",
        path=page_path,
        recorder=recorder,
    )
    _require_output(raw_eps, "pdftops", page_path)
    if recorder is not None:
        recorder.add_action("to_eps", "ok", source=str(page_path), output=str(raw_eps))

    run_stage(
        runner,
        [tools.ps2eps],
        cwd=work_dir,
        stage="ps2eps",
        path=raw_eps,
        recorder=recorder,
        stdin_path=raw_eps,
        stdout_path=cropped_eps,
    )
    _require_output(cropped_eps, "ps2eps", raw_eps)
    if recorder is not None:
        recorder.add_action("trim_bbox", "ok", source=str(raw_eps), output=str(cropped_eps))

    if settings.output_format is OutputFormat.PDF:
        output = cropped_eps.with_suffix(".pdf")
        run_stage(
            runner,
            [tools.epstopdf, f"--outfile={output.name}", cropped_eps.name],
            cwd=work_dir,
            stage="epstopdf",
            path=cropped_eps,
            recorder=recorder,
        )
        _require_output(output, "epstopdf", cropped_eps)
        if recorder is not None:
            recorder.add_action("to_pdf", "ok", source=str(cropped_eps), output=str(output))
        _remove_intermediate(raw_eps, recorder)
        _remove_intermediate(cropped_eps, recorder)
    else:
        output = cropped_eps
        _remove_intermediate(raw_eps, recorder)

    if recorder is not None:
        recorder.log(f"Cropped file '{output.name}' produced from '{page_path.name}'")

    if settings.log_enabled and manifest is not None:
        manifest.append(output)
        if recorder is not None:
            recorder.add_action("manifest_append", "ok", path=str(manifest.path), output=output.name)
            recorder.log(f"Output filenames written to '{manifest.path.name}'")

    return output
