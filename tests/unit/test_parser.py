import os
import tempfile

import pytest

from slope_routing.parser import parse_gpx


def _parse(gpx_content):
    with tempfile.NamedTemporaryFile(mode="w", suffix=".gpx", delete=False) as f:
        f.write(gpx_content)
        f.flush()
        points = parse_gpx(f.name)
    os.unlink(f.name)
    return points


class TestParseGpx:
    def test_track_points(self):
        points = _parse("""<?xml version="1.0"?>
        <gpx version="1.1" xmlns="http://www.topografix.com/GPX/1/1">
          <trk><trkseg>
            <trkpt lat="47.0" lon="8.0"><ele>400</ele><time>2024-06-15T08:00:00Z</time></trkpt>
            <trkpt lat="47.001" lon="8.0"><ele>405.5</ele><time>2024-06-15T08:00:30Z</time></trkpt>
          </trkseg></trk>
        </gpx>""")
        assert len(points) == 2
        assert points[0].lat == pytest.approx(47.0)
        assert points[0].lon == pytest.approx(8.0)
        assert points[1].elevation == pytest.approx(405.5)
        assert (points[1].time - points[0].time).total_seconds() == 30

    def test_segments_concatenated(self):
        points = _parse("""<?xml version="1.0"?>
        <gpx version="1.1" xmlns="http://www.topografix.com/GPX/1/1">
          <trk>
            <trkseg><trkpt lat="47.0" lon="8.0"><ele>1</ele></trkpt></trkseg>
            <trkseg><trkpt lat="47.1" lon="8.0"><ele>2</ele></trkpt></trkseg>
          </trk>
          <trk>
            <trkseg><trkpt lat="47.2" lon="8.0"><ele>3</ele></trkpt></trkseg>
          </trk>
        </gpx>""")
        assert [p.elevation for p in points] == [1.0, 2.0, 3.0]

    def test_missing_elevation(self):
        points = _parse("""<?xml version="1.0"?>
        <gpx version="1.1" xmlns="http://www.topografix.com/GPX/1/1">
          <trk><trkseg>
            <trkpt lat="37.0" lon="-122.0">
              <time>2024-06-15T08:00:00Z</time>
            </trkpt>
          </trkseg></trk>
        </gpx>""")
        assert len(points) == 1
        assert points[0].elevation is None

    def test_missing_time(self):
        points = _parse("""<?xml version="1.0"?>
        <gpx version="1.1" xmlns="http://www.topografix.com/GPX/1/1">
          <trk><trkseg>
            <trkpt lat="37.0" lon="-122.0">
              <ele>100</ele>
            </trkpt>
          </trkseg></trk>
        </gpx>""")
        assert len(points) == 1
        assert points[0].time is None

    def test_empty_gpx(self):
        points = _parse("""<?xml version="1.0"?>
        <gpx version="1.1" xmlns="http://www.topografix.com/GPX/1/1">
          <trk><trkseg></trkseg></trk>
        </gpx>""")
        assert points == []

    def test_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            parse_gpx("/nonexistent/path/file.gpx")
