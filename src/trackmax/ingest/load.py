# trackmax/ingest/load.py
"""
Input file dispatch and multi-file stitching.

All files are read into one Track, in the order given, so point indices
are dense across files and each point keeps its own file:line origin.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Optional

from trackmax.analyze.track import Track
from trackmax.config import OutputFormat
from trackmax.errors import InvalidInputError, UnsupportedInputError
from trackmax.formats.gpx import read_gpx
from trackmax.formats.tabular import read_csv
from trackmax.formats.tcx import read_tcx
from trackmax.util.logging import log

_READERS: dict[str, tuple[OutputFormat, Callable[[Path, Track], int]]] = {
    ".csv": (OutputFormat.CSV, read_csv),
    ".gpx": (OutputFormat.GPX, read_gpx),
    ".tcx": (OutputFormat.TCX, read_tcx),
}


def input_format(path: Path) -> OutputFormat:
    """The format of an input file, from its suffix."""
    try:
        return _READERS[path.suffix.lower()][0]
    except KeyError:
        raise UnsupportedInputError(f"Unsupported input file {path}") from None


def load_track(paths: Iterable[Path], *, track: Optional[Track] = None, verbose: bool = False) -> Track:
    """
    Read every file in `paths` into one Track (a new one unless given).

    Raises:
      UnsupportedInputError, InvalidInputError
    """
    if track is None:
        track = Track()

    for path in paths:
        path = Path(path)
        input_format(path)
        if not path.is_file():
            raise InvalidInputError(f"Input file {path} not found")

        _fmt, reader = _READERS[path.suffix.lower()]
        n = reader(path, track)
        if verbose:
            log(f"Read {n} TrkPts from {path}")

    return track
