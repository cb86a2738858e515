# trackmax/cli.py
"""
trackmax command line.

    trackmax [OPTIONS] FILE [FILE ...]

When multiple input files are given they are stitched together into a
single track. The output goes to stdout unless --output-file is used;
diagnostics go to stderr.

Defaults for most options come from trackmax.config (TOML files and
TRACKMAX_* environment variables); command line values win.
"""

from __future__ import annotations

import argparse
import shlex
import sys
import time
from pathlib import Path
from typing import Optional

from trackmax.analyze.pipeline import run_pipeline
from trackmax.analyze.track import ActivityType, SensorData
from trackmax.config import (
    OutputFormat,
    PipelineConfig,
    TimeFormat,
    TrackmaxConfig,
    XmaMethod,
    XmaMetric,
    load_config,
)
from trackmax.errors import ConfigError, TrackmaxError
from trackmax.formats.options import OutputOptions
from trackmax.formats.output import render, write_output
from trackmax.formats.xmlutil import parse_time
from trackmax.ingest.load import input_format, load_track
from trackmax.util.logging import Diagnostics
from trackmax.version import PROG_NAME, __version__

_ACTIVITY_TYPES = ("ride", "hike", "run", "walk", "vride", "other")


def _parse_range(text: str) -> tuple[int, int]:
    try:
        lo, hi = (int(v) for v in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected <a,b>, got {text!r}") from None
    if lo < 1 or lo >= hi:
        raise argparse.ArgumentTypeError(f"invalid TrkPt range {lo},{hi}")
    return lo, hi


def _parse_start_time(text: str) -> float:
    if text == "now":
        return float(int(time.time()))
    ts = parse_time(text)
    if ts is None:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DDTHH:MM:SS[Z] or 'now', got {text!r}")
    return ts


def _parse_mask(text: str) -> int:
    try:
        return int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a bit mask like 0x0c, got {text!r}") from None


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog=PROG_NAME,
        description="Clean up, correct and convert GPS activity tracks (GPX/TCX/CSV).",
    )
    ap.add_argument("files", nargs="+", metavar="FILE", help="One or more GPX/TCX/CSV files, stitched in order.")
    ap.add_argument("--activity-type", choices=_ACTIVITY_TYPES, default=None,
                    help="Activity type of the output (default: inherited from the input).")
    ap.add_argument("--close-gap", type=int, default=0, metavar="POINT",
                    help="Close the time gap at the specified track point.")
    ap.add_argument("--max-grade", type=float, default=None, help="Limit the maximum grade (%%).")
    ap.add_argument("--max-grade-change", type=float, default=None,
                    help="Limit the grade change between points (%%).")
    ap.add_argument("--max-speed-change", type=float, default=0.0,
                    help="Limit the speed change between points (km/h).")
    ap.add_argument("--min-grade", type=float, default=None, help="Limit the minimum grade (%%).")
    ap.add_argument("--name", default=None, help="Name of the track in the output.")
    ap.add_argument("--no-elev-adj", action="store_true",
                    help="Don't adjust elevations after grade corrections.")
    ap.add_argument("--output-file", default=None, help="Write the output here (default: stdout).")
    ap.add_argument("--output-filter", type=_parse_mask, default=None, metavar="MASK",
                    help="Optional metrics to suppress: 0x01 atemp, 0x02 cadence, 0x04 HR, 0x08 power.")
    ap.add_argument("--output-format", choices=[f.value for f in OutputFormat], default=None,
                    help="Output format (default: same as the first input file).")
    ap.add_argument("--quiet", action="store_true", default=None, help="Suppress info and warning messages.")
    ap.add_argument("--range", type=_parse_range, default=None, metavar="A,B",
                    help="Limit corrections (or --trim) to points A..B, inclusive.")
    ap.add_argument("--rel-time", choices=[TimeFormat.SEC.value, TimeFormat.HMS.value], default=None,
                    help="Use relative timestamps in the CSV output.")
    ap.add_argument("--set-speed", type=float, default=0.0, metavar="KMH",
                    help="Average speed (km/h) used to generate missing timestamps.")
    ap.add_argument("--start-time", type=_parse_start_time, default=0.0,
                    help="Start time of the activity (UTC), e.g. 2018-01-22T10:01:10Z, or 'now'.")
    ap.add_argument("--summary", action="store_true", help="Print only a human-readable summary.")
    ap.add_argument("--trim", action="store_true",
                    help="Remove the points in --range and close the resulting gap.")
    ap.add_argument("--verbatim", action="store_true", help="Process the input without adjusting the data.")
    ap.add_argument("--version", action="version", version=f"{PROG_NAME} {__version__}")
    ap.add_argument("--xma-method", choices=[m.value for m in XmaMethod], default=None,
                    help="Moving average type: simple (SMA) or weighted (WMA).")
    ap.add_argument("--xma-metric", choices=[m.value for m in XmaMetric], default=None,
                    help="Metric to smooth out with the moving average.")
    ap.add_argument("--xma-window", type=int, default=None, metavar="N",
                    help="Moving average window size (odd).")
    return ap


def pipeline_config(args: argparse.Namespace, conf: TrackmaxConfig) -> PipelineConfig:
    """Merge CLI values over the persistent defaults."""
    d = conf.pipeline

    def pick(value, default):
        return default if value is None else value

    if args.trim and args.range is None:
        raise ConfigError("--trim requires --range")

    return PipelineConfig(
        max_grade=pick(args.max_grade, d.max_grade),
        min_grade=pick(args.min_grade, d.min_grade),
        max_grade_change=pick(args.max_grade_change, d.max_grade_change),
        max_speed_change=args.max_speed_change / 3.6,
        xma_method=XmaMethod(args.xma_method) if args.xma_method else d.xma_method,
        xma_metric=XmaMetric(args.xma_metric) if args.xma_metric else d.xma_metric,
        xma_window=pick(args.xma_window, d.xma_window),
        range=None if args.trim else args.range,
        trim=args.range if args.trim else None,
        close_gap=args.close_gap,
        set_speed=args.set_speed / 3.6,
        start_time=args.start_time,
        verbatim=args.verbatim,
        quiet=pick(args.quiet, d.quiet),
        no_elev_adj=args.no_elev_adj,
        speed_warn_threshold=d.speed_warn_threshold,
    ).validate()


def main(argv: Optional[list[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    raw_argv = sys.argv[1:] if argv is None else argv

    try:
        conf = load_config()
        cfg = pipeline_config(args, conf)
        paths = [Path(p).expanduser() for p in args.files]

        if args.output_format:
            out_fmt = OutputFormat(args.output_format)
        elif conf.output.format is not None:
            out_fmt = conf.output.format
        else:
            out_fmt = input_format(paths[0])

        if args.summary:
            rel_time = TimeFormat.SEC
        elif args.rel_time:
            rel_time = TimeFormat(args.rel_time)
        else:
            rel_time = conf.output.rel_time

        act_name = args.activity_type or conf.output.activity_type
        try:
            activity_type = ActivityType.from_name(act_name) if act_name else None
        except KeyError:
            raise ConfigError(f"Invalid activity type {act_name!r}") from None

        suppress = args.output_filter if args.output_filter is not None else conf.output.output_filter

        track = load_track(paths, verbose=not cfg.quiet)
        diag = Diagnostics(quiet=cfg.quiet)
        run_pipeline(track, cfg, diag, rel_time=rel_time is not TimeFormat.NONE)

        opts = OutputOptions(
            format=out_fmt,
            name=args.name,
            activity_type=activity_type,
            out_mask=SensorData(int(SensorData.ALL) & ~suppress),
            rel_time=rel_time,
            command_line=" ".join(shlex.quote(a) for a in raw_argv),
        )
        text = render(track, opts, summary=args.summary)
        write_output(text, Path(args.output_file).expanduser() if args.output_file else None)

    except TrackmaxError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
