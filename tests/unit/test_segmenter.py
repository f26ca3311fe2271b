from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from slope_routing.codec import WayType, encode
from slope_routing.models import Segment, SegmentAttributes, TracePoint
from slope_routing.segmenter import TraceSegmenter, create_filter, dominant_way_type
from slope_routing.smoothing import Direction, MeanFilter, SimpleKalmanFilter

BASE_TIME = datetime(2024, 6, 15, 8, 0, 0, tzinfo=timezone.utc)


class IdentityFilter:
    def smooth(self, measurements, distances):
        return list(measurements)


def _line(n, spacing_deg=0.001, elevations=None, seconds=30):
    """Points along the equator, ~111 m apart."""
    elevations = elevations or [100.0] * n
    return [
        TracePoint(lat=0.0, lon=i * spacing_deg, elevation=elevations[i], time=BASE_TIME + timedelta(seconds=i * seconds))
        for i in range(n)
    ]


def _segment(way_type, distance):
    return Segment(flags=encode(SegmentAttributes(speed=10.0, way_type=way_type)), distance=distance)


class TestExtract:
    def test_three_point_trace_gives_one_part(self, three_point_trace):
        parts = TraceSegmenter().extract(three_point_trace)
        assert len(parts) == 1
        assert len(parts[0].points) == 3
        assert parts[0].way_type == -1

    def test_three_point_trace_values(self, three_point_trace):
        parts = TraceSegmenter(smoothing_filter=IdentityFilter()).extract(three_point_trace)
        part = parts[0]
        planar = 2 * 111.195
        expected_distance = (planar ** 2 + 5.0 ** 2) ** 0.5
        assert part.distance == pytest.approx(expected_distance, rel=1e-3)
        assert part.slope == pytest.approx(-5.0 / expected_distance * 100, rel=1e-3)
        assert part.speed == pytest.approx(expected_distance / 130 * 3.6, rel=1e-3)

    def test_parts_carry_smoothed_elevations(self, three_point_trace):
        parts = TraceSegmenter(smoothing_filter=MeanFilter(500)).extract(three_point_trace)
        assert [p.elevation for p in parts[0].points] == [100.0, 100.0, 100.0]
        assert parts[0].slope == pytest.approx(0.0)

    def test_slope_from_smoothed_endpoints(self, three_point_trace):
        # window 150 m averages each point with its ~111 m neighbors only
        parts = TraceSegmenter(smoothing_filter=MeanFilter(150)).extract(three_point_trace)
        part = parts[0]
        assert [p.elevation for p in part.points] == [102.5, 100.0, 100.0]
        planar = 2 * 111.195
        expected_distance = (planar ** 2 + 2.5 ** 2) ** 0.5
        assert part.distance == pytest.approx(expected_distance, rel=1e-3)
        assert part.slope == pytest.approx(-2.5 / part.distance * 100)

    def test_caller_points_unchanged(self, three_point_trace):
        TraceSegmenter(smoothing_filter=MeanFilter(500)).extract(three_point_trace)
        assert [p.elevation for p in three_point_trace] == [100.0, 105.0, 95.0]

    def test_parts_share_boundary_points(self):
        points = _line(7)
        parts = TraceSegmenter(smoothing_filter=IdentityFilter()).extract(points)
        assert len(parts) == 3
        assert parts[0].points[-1] is parts[1].points[0]
        assert parts[1].points[-1] is parts[2].points[0]

    def test_last_part_may_be_short(self):
        parts = TraceSegmenter(smoothing_filter=IdentityFilter()).extract(_line(4))
        assert len(parts) == 2
        assert parts[1].distance < 200

    def test_too_few_points(self):
        segmenter = TraceSegmenter()
        assert segmenter.extract([]) == []
        assert segmenter.extract(_line(1)) == []

    def test_zero_elapsed_time_skipped(self):
        points = _line(3, seconds=0)
        assert TraceSegmenter(smoothing_filter=IdentityFilter()).extract(points) == []

    def test_missing_time_skipped(self):
        points = _line(3)
        points[-1].time = None
        assert TraceSegmenter(smoothing_filter=IdentityFilter()).extract(points) == []

    def test_stationary_trace_skipped(self):
        points = _line(3, spacing_deg=0.0)
        assert TraceSegmenter(smoothing_filter=IdentityFilter()).extract(points) == []

    def test_missing_elevation_uses_lookup(self):
        points = _line(3)
        points[2].elevation = None
        lookup = MagicMock(return_value=120.0)
        parts = TraceSegmenter(smoothing_filter=IdentityFilter(), elevation_lookup=lookup).extract(points)
        lookup.assert_called_once_with(0.0, 0.002)
        assert parts[0].slope > 0

    def test_failing_lookup_is_flat(self):
        points = _line(3)
        points[2].elevation = None
        lookup = MagicMock(side_effect=RuntimeError("tile fetch failed"))
        parts = TraceSegmenter(smoothing_filter=IdentityFilter(), elevation_lookup=lookup).extract(points)
        assert len(parts) == 1
        assert parts[0].points[-1].elevation == 0.0
        assert parts[0].slope < 0

    def test_missing_elevation_without_lookup_is_zero(self):
        points = _line(3)
        points[0].elevation = None
        parts = TraceSegmenter(smoothing_filter=IdentityFilter()).extract(points)
        assert parts[0].slope > 0


class TestMapMatching:
    def test_dominant_way_type(self):
        segments = [
            _segment(WayType.ROAD, 50.0),
            _segment(WayType.CYCLEWAY, 80.0),
            _segment(WayType.ROAD, 20.0),
        ]
        assert dominant_way_type(segments) == WayType.CYCLEWAY

    def test_dominant_way_type_empty(self):
        assert dominant_way_type([]) == -1

    def test_assigns_way_type(self, three_point_trace):
        matcher = MagicMock()
        matcher.match.return_value = [_segment(WayType.TRACK_EASY, 200.0)]
        parts = TraceSegmenter(map_matcher=matcher).extract(three_point_trace)
        assert parts[0].way_type == WayType.TRACK_EASY
        matcher.match.assert_called_once_with(parts[0].points)

    def test_matcher_failure_leaves_unmatched(self, three_point_trace):
        matcher = MagicMock()
        matcher.match.side_effect = RuntimeError("no route")
        parts = TraceSegmenter(map_matcher=matcher).extract(three_point_trace)
        assert len(parts) == 1
        assert parts[0].way_type == -1


class TestCreateFilter:
    @pytest.mark.parametrize("name, direction", [
        ("kalman_forward", Direction.FORWARD),
        ("kalman_backward", Direction.BACKWARD),
        ("kalman_combined", Direction.COMBINED),
    ])
    def test_kalman(self, name, direction):
        smoothing_filter = create_filter(name, 60.0, 6.0)
        assert isinstance(smoothing_filter, SimpleKalmanFilter)
        assert smoothing_filter.direction is direction
        assert smoothing_filter.distance_scale == 60.0

    def test_mean(self):
        smoothing_filter = create_filter("mean", 30.0)
        assert isinstance(smoothing_filter, MeanFilter)
        assert smoothing_filter.min_distance == 30.0

    def test_unknown_raises(self):
        with pytest.raises(ValueError, match="Unknown filter type"):
            create_filter("median")

    def test_from_config(self):
        segmenter = TraceSegmenter.from_config({"filter_type": "mean", "track_part_distance": 500})
        assert isinstance(segmenter.smoothing_filter, MeanFilter)
        assert segmenter.min_distance == 500.0
