# trackmax/formats/xmlutil.py
"""
XML helpers shared by the GPX and TCX readers/writers.

- ISO-8601 time parsing/formatting (epoch seconds, UTC)
- namespace-agnostic tag names
- an incremental ElementTree parser that knows the source line of
  every element it starts
- the in-place pretty-printer used before writing
"""

from __future__ import annotations

import datetime as _dt
import math
import re
from pathlib import Path
from typing import Iterator, Optional
from xml.etree import ElementTree as ET

from trackmax.errors import InvalidInputError

_FRACTION = re.compile(r"\.(\d+)")


def parse_time(text: str) -> Optional[float]:
    """
    Parse an ISO-8601 timestamp as found in GPX <time> and TCX <Time> nodes.

    Expected examples:
      - "2026-01-02T21:14:44Z"
      - "2026-01-02T21:14:44.123Z"
      - "2026-01-02T21:14:44.0000000Z"
      - "2026-01-02T21:14:44+02:00"

    Returns seconds since the Epoch, or None if `text` is not a timestamp.
    """
    if not text:
        return None
    s = text.strip()
    if not s:
        return None

    # Times commonly use Z for UTC.
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    # Some tools write 7 fractional digits; datetime takes at most 6
    s = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)

    try:
        dt = _dt.datetime.fromisoformat(s)
    except ValueError:
        return None

    # Ensure tz-aware; if naive, assume UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_dt.timezone.utc)

    return dt.timestamp()


def format_time(ts: float, *, millis: bool = True) -> str:
    """Format epoch seconds as UTC ISO-8601 with Z, e.g. 2026-01-02T21:14:44.123Z."""
    whole = math.floor(ts)
    ms = int(round((ts - whole) * 1000.0))
    if ms == 1000:
        whole, ms = whole + 1, 0
    dt = _dt.datetime.fromtimestamp(whole, tz=_dt.timezone.utc)
    if millis:
        return dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{ms:03d}Z"
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def local_name(tag: str) -> str:
    """Strip the '{namespace-uri}' part of an ElementTree tag."""
    return tag.rsplit("}", 1)[-1]


def iter_elements(path: Path) -> Iterator[tuple[str, ET.Element, int]]:
    """
    Yield (event, element, line) for every 'start' and 'end' event.

    The file is fed to an XMLPullParser one line at a time, so `line` is
    the 1-based line where the event was seen. For 'start' events that's
    the line of the element's opening tag.

    Raises:
      InvalidInputError on unreadable files and malformed XML
    """
    parser = ET.XMLPullParser(events=("start", "end"))
    line_num = 0
    try:
        with path.open("r", encoding="utf-8") as fp:
            for line in fp:
                line_num += 1
                parser.feed(line)
                for event, elem in parser.read_events():
                    yield event, elem, line_num
        parser.close()
        for event, elem in parser.read_events():
            yield event, elem, line_num
    except ET.ParseError as e:
        raise InvalidInputError(f"Malformed XML in {path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise InvalidInputError(f"Failed to read input file {path} ({e})") from e


def text_of(elem: ET.Element) -> str:
    return (elem.text or "").strip()


def parse_float(text: Optional[str], what: str, where: str) -> float:
    try:
        return float((text or "").strip())
    except ValueError as e:
        raise InvalidInputError(f"Invalid {what} value {text!r} at {where}") from e


def parse_int(text: Optional[str], what: str, where: str) -> int:
    # Some tools write sensor values as "146.0"
    return int(parse_float(text, what, where))


def _indent(elem: ET.Element, level: int = 0, indent: str = "  ") -> None:
    """
    In-place pretty-printer for ElementTree output. Eliminates double blank-line
    issues by explicitly controlling .text/.tail.
    """
    i = "\n" + level * indent
    j = "\n" + (level - 1) * indent if level > 0 else "\n"

    children = list(elem)
    if children:
        if elem.text is None or not elem.text.strip():
            elem.text = i + indent
        for child in children:
            _indent(child, level + 1, indent=indent)
        if children[-1].tail is None or not children[-1].tail.strip():
            children[-1].tail = i
    if elem.tail is None or not elem.tail.strip():
        elem.tail = j


def to_document(root: ET.Element, *, default_namespace: Optional[str] = None, pretty: bool = True) -> str:
    """
    Serialize `root` as an XML document string with declaration.

    Elements in `default_namespace` are written without a prefix. The
    prefix registry is global to ElementTree, so it is set right before
    serializing.
    """
    if pretty:
        _indent(root)
    if default_namespace is not None:
        ET.register_namespace("", default_namespace)
    body = ET.tostring(root, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body
