# trackmax/formats/output.py
from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from trackmax.analyze.track import Track
from trackmax.config import OutputFormat
from trackmax.errors import OutputError
from trackmax.formats.gpx import render_gpx
from trackmax.formats.options import OutputOptions
from trackmax.formats.shiz import render_shiz
from trackmax.formats.summary import render_summary
from trackmax.formats.tabular import render_csv
from trackmax.formats.tcx import render_tcx

_RENDERERS: dict[OutputFormat, Callable[[Track, OutputOptions], str]] = {
    OutputFormat.CSV: render_csv,
    OutputFormat.GPX: render_gpx,
    OutputFormat.SHIZ: render_shiz,
    OutputFormat.TCX: render_tcx,
}


def render(track: Track, opts: OutputOptions, *, summary: bool = False) -> str:
    """Render the finalized track in `opts.format` (or as a summary)."""
    if summary:
        return render_summary(track, opts)
    return _RENDERERS[opts.format](track, opts)


def write_output(text: str, out_path: Optional[Path]) -> None:
    """Write to `out_path`, or to stdout when it is None."""
    if out_path is None:
        print(text, end="")
        return
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise OutputError(f"Can't write output file {out_path}: {e}") from e
