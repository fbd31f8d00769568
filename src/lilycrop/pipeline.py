"""
Compile a LilyPond file and crop every page of the result.

Flow:
- reset the `{base}.log` manifest (when logging is enabled)
- compile `{base}.ly` to `{base}.pdf`
- count pages
- one page: crop the document itself
- several pages: burst, then crop each page in order and delete the page PDF
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .config import CropSettings, ToolConfig
from .crop import crop_page
from .manifest import ManifestRecorder, OutputManifest
from .pages import count_pages
from .split import split_pages
from .tools import ToolRunner, run_stage
from .utils import ToolInvocationError, remove_file


@dataclass
class PipelineResult:
    source: Path
    document: Path
    page_count: int = 0
    outputs: List[Path] = field(default_factory=list)
    manifest_path: Optional[Path] = None


def manifest_path_for(source: Path) -> Path:
    return source.with_suffix(".log")


def compile_source(
    source: Path,
    tools: ToolConfig,
    runner: ToolRunner,
    recorder: Optional[ManifestRecorder] = None,
) -> Path:
    """Run lilypond on `{base}.ly` and return the `{base}.pdf` it wrote."""

    document = source.with_suffix(".pdf")
    run_stage(
        runner,
        [tools.lilypond, source.stem],
        cwd=source.parent,
        stage="lilypond",
        path=source,
        recorder=recorder,
    )
    if not document.is_file():
        raise ToolInvocationError("lilypond", source, f"expected output {document.name} was not created")
    if recorder is not None:
        recorder.add_action("compile", "ok", source=str(source), output=str(document))
    return document


def run_pipeline(
    source: Path,
    settings: CropSettings,
    tools: ToolConfig,
    runner: Optional[ToolRunner] = None,
    recorder: Optional[ManifestRecorder] = None,
) -> PipelineResult:
    """
    Produce one cropped file per page of the compiled `source`.

    Any failing stage raises and stops the run; files already written are
    left where they are.
    """

    runner = runner or ToolRunner()
    manifest: Optional[OutputManifest] = None
    if settings.log_enabled:
        manifest = OutputManifest(manifest_path_for(source))
        if manifest.reset() and recorder is not None:
            recorder.log(f"Removed old log file '{manifest.path.name}'", level="debug")

    document = compile_source(source, tools, runner, recorder)
    result = PipelineResult(
        source=source,
        document=document,
        manifest_path=manifest.path if manifest is not None else None,
    )

    result.page_count = count_pages(document, tools, runner, recorder)

    if result.page_count == 1:
        result.outputs.append(crop_page(document, settings, tools, runner, recorder, manifest))
        return result

    if recorder is not None:
        recorder.log(f"{result.page_count} pages found; splitting images before cropping")

    pages = split_pages(document, result.page_count, tools, runner, recorder)
    for page in pages:
        result.outputs.append(crop_page(page, settings, tools, runner, recorder, manifest))
        remove_file(page)
        if recorder is not None:
            recorder.add_action("remove_intermediate", "removed", path=str(page))

    return result
