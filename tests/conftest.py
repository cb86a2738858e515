from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from trackmax.analyze.geodesy import DEG_TO_RAD, EARTH_MEAN_RADIUS_M
from trackmax.analyze.track import SensorData, Track
from trackmax.config import PipelineConfig
from trackmax.util.logging import Diagnostics

BASE_LAT = 43.6
BASE_LON = -114.3
BASE_TIME = 1_650_000_000.0


def north_of(meters: float) -> float:
    """Latitude of the point `meters` north of BASE_LAT, along the meridian."""
    return BASE_LAT + meters / EARTH_MEAN_RADIUS_M / DEG_TO_RAD


def build_track(
    rows: Iterable[dict[str, Any]],
    *,
    in_mask: SensorData = SensorData.NONE,
    source_file: str = "test.gpx",
) -> Track:
    """
    Build a Track from row dicts.

    Special keys:
    - north: meters north of the base point (sets latitude/longitude)
    - t: seconds after BASE_TIME (sets timestamp)
    Every other key is set on the TrackPoint as-is.
    """
    track = Track(in_mask=in_mask)
    for i, row in enumerate(rows):
        p = track.new_point(source_file, 10 + i)
        row = dict(row)
        if "north" in row:
            p.latitude = north_of(row.pop("north"))
            p.longitude = BASE_LON
        if "t" in row:
            p.timestamp = BASE_TIME + row.pop("t")
        for k, v in row.items():
            setattr(p, k, v)
    return track


@pytest.fixture
def make_track() -> Callable[..., Track]:
    return build_track


@pytest.fixture
def diag() -> Diagnostics:
    return Diagnostics(quiet=True)


@pytest.fixture
def cfg() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch):
    """Keep user config files and TRACKMAX_* variables out of the tests."""
    from trackmax import config

    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for env in config._ENV_MAP:
        monkeypatch.delenv(env, raising=False)


SAMPLE_GPX = """\
<?xml version="1.0" encoding="UTF-8"?>
<gpx creator="test" version="1.1" xmlns="http://www.topografix.com/GPX/1/1" xmlns:gpxtpx="http://www.garmin.com/xmlschemas/TrackPointExtension/v1">
  <metadata>
    <time>2022-03-20T20:00:00Z</time>
  </metadata>
  <trk>
    <name>Sample</name>
    <type>1</type>
    <trkseg>
      <trkpt lat="43.6780000" lon="-114.3120000">
        <ele>1829.0</ele>
        <time>2022-03-20T20:40:26.000Z</time>
        <extensions>
          <power>173</power>
          <gpxtpx:TrackPointExtension>
            <gpxtpx:hr>146</gpxtpx:hr>
            <gpxtpx:cad>95</gpxtpx:cad>
          </gpxtpx:TrackPointExtension>
        </extensions>
      </trkpt>
      <trkpt lat="43.6781000" lon="-114.3120000">
        <ele>1830.0</ele>
        <time>2022-03-20T20:40:36.000Z</time>
        <extensions>
          <power>180</power>
          <gpxtpx:TrackPointExtension>
            <gpxtpx:hr>148</gpxtpx:hr>
            <gpxtpx:cad>90</gpxtpx:cad>
          </gpxtpx:TrackPointExtension>
        </extensions>
      </trkpt>
      <trkpt lat="43.6782000" lon="-114.3120000">
        <ele>1831.0</ele>
        <time>2022-03-20T20:40:46.500Z</time>
        <extensions>
          <power>0</power>
          <gpxtpx:TrackPointExtension>
            <gpxtpx:hr>150</gpxtpx:hr>
            <gpxtpx:cad>0</gpxtpx:cad>
          </gpxtpx:TrackPointExtension>
        </extensions>
      </trkpt>
      <trkpt lat="43.6783000" lon="-114.3120000">
        <ele>1830.0</ele>
        <time>2022-03-20T20:40:56.000Z</time>
        <extensions>
          <power>160</power>
          <gpxtpx:TrackPointExtension>
            <gpxtpx:hr>149</gpxtpx:hr>
            <gpxtpx:cad>85</gpxtpx:cad>
          </gpxtpx:TrackPointExtension>
        </extensions>
      </trkpt>
    </trkseg>
  </trk>
</gpx>
"""

SAMPLE_ROUTE_GPX = """\
<?xml version="1.0" encoding="UTF-8"?>
<gpx creator="test" version="1.1" xmlns="http://www.topografix.com/GPX/1/1">
  <rte>
    <rtept lat="43.6780000" lon="-114.3120000"><ele>1829.0</ele></rtept>
    <rtept lat="43.6781000" lon="-114.3120000"><ele>1829.5</ele></rtept>
    <rtept lat="43.6782000" lon="-114.3120000"><ele>1830.0</ele></rtept>
  </rte>
</gpx>
"""

SAMPLE_TCX = """\
<?xml version="1.0" encoding="UTF-8"?>
<TrainingCenterDatabase xmlns="http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2">
  <Activities>
    <Activity Sport="Running">
      <Id>2022-04-03T19:32:02Z</Id>
      <Lap StartTime="2022-04-03T19:32:02Z">
        <DistanceMeters>30.0</DistanceMeters>
        <Track>
          <Trackpoint>
            <Time>2022-04-03T19:32:02Z</Time>
            <Position>
              <LatitudeDegrees>43.6230360</LatitudeDegrees>
              <LongitudeDegrees>-114.3528450</LongitudeDegrees>
            </Position>
            <AltitudeMeters>1697.0</AltitudeMeters>
            <DistanceMeters>0.0</DistanceMeters>
            <HeartRateBpm>
              <Value>93</Value>
            </HeartRateBpm>
            <Cadence>80</Cadence>
            <Extensions>
              <TPX xmlns="http://www.garmin.com/xmlschemas/ActivityExtension/v2">
                <Speed>0.0</Speed>
                <Watts>150</Watts>
              </TPX>
            </Extensions>
          </Trackpoint>
          <Trackpoint>
            <Time>2022-04-03T19:32:12.0000000Z</Time>
            <Position>
              <LatitudeDegrees>43.6231260</LatitudeDegrees>
              <LongitudeDegrees>-114.3528450</LongitudeDegrees>
            </Position>
            <AltitudeMeters>1697.5</AltitudeMeters>
            <DistanceMeters>10.0</DistanceMeters>
            <HeartRateBpm>
              <Value>95</Value>
            </HeartRateBpm>
            <Cadence>82</Cadence>
            <Extensions>
              <TPX xmlns="http://www.garmin.com/xmlschemas/ActivityExtension/v2">
                <Speed>1.0</Speed>
                <Watts>155</Watts>
              </TPX>
            </Extensions>
          </Trackpoint>
          <Trackpoint>
            <Time>2022-04-03T19:32:22Z</Time>
            <Position>
              <LatitudeDegrees>43.6232160</LatitudeDegrees>
              <LongitudeDegrees>-114.3528450</LongitudeDegrees>
            </Position>
            <AltitudeMeters>1698.0</AltitudeMeters>
            <DistanceMeters>20.0</DistanceMeters>
            <HeartRateBpm>
              <Value>97</Value>
            </HeartRateBpm>
            <Cadence>84</Cadence>
          </Trackpoint>
        </Track>
      </Lap>
    </Activity>
  </Activities>
</TrainingCenterDatabase>
"""


@pytest.fixture
def sample_gpx_path(tmp_path: Path) -> Path:
    path = tmp_path / "sample.gpx"
    path.write_text(SAMPLE_GPX, encoding="utf-8")
    return path


@pytest.fixture
def sample_route_path(tmp_path: Path) -> Path:
    path = tmp_path / "route.gpx"
    path.write_text(SAMPLE_ROUTE_GPX, encoding="utf-8")
    return path


@pytest.fixture
def sample_tcx_path(tmp_path: Path) -> Path:
    path = tmp_path / "sample.tcx"
    path.write_text(SAMPLE_TCX, encoding="utf-8")
    return path
