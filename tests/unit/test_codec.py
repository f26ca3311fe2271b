import pytest

from slope_routing.codec import (
    ACCESS,
    BACKWARD,
    FORWARD,
    INCLINE,
    INCLINE_DISTANCE,
    SPEED,
    WAY_TYPE,
    WAY_TYPES,
    WayType,
    decode,
    decode_attributes,
    decode_way_type,
    encode,
    encode_speed,
    is_paved,
    reverse_flags,
)
from slope_routing.errors import InvalidWayTypeError
from slope_routing.models import SegmentAttributes


def _attrs(**kwargs):
    defaults = dict(speed=18.0, way_type=WayType.CYCLEWAY, incline=5.0, decline=3.0, incline_distance=70.0)
    defaults.update(kwargs)
    return SegmentAttributes(**defaults)


class TestEncodeDecode:
    def test_round_trip(self):
        attrs = _attrs(forward=True, backward=False, roundabout=True, ferry=False)
        assert decode_attributes(encode(attrs)) == attrs

    def test_single_field(self):
        flags = encode(_attrs())
        assert decode(flags, "access") is True
        assert decode(flags, "way_type") == WayType.CYCLEWAY
        assert decode(flags, "incline") == 5.0
        assert decode(flags, "decline") == 3.0
        assert decode(flags, "incline_distance") == 70.0
        assert decode(flags, "speed") == 18.0

    def test_unknown_field_raises(self):
        with pytest.raises(ValueError, match="Unknown field"):
            decode(0, "priority")

    def test_fits_in_33_bits(self):
        attrs = _attrs(speed=34.0, way_type=WayType.PUSHING_SECTION, incline=40.0, decline=40.0, incline_distance=100.0)
        assert encode(attrs) < 1 << 33

    def test_fields_do_not_overlap(self):
        flags = encode(_attrs(incline=0.0, decline=0.0, incline_distance=50.0))
        flags = INCLINE.set_raw(flags, 40)
        assert decode(flags, "decline") == 0.0
        assert decode(flags, "way_type") == WayType.CYCLEWAY
        assert decode(flags, "incline_distance") == 50.0

    def test_no_access(self):
        flags = encode(_attrs(access=False))
        assert not flags & ACCESS


class TestSaturation:
    def test_slope_saturates_at_40(self):
        flags = encode(_attrs(incline=55.0, decline=41.0))
        assert decode(flags, "incline") == 40.0
        assert decode(flags, "decline") == 40.0

    def test_incline_distance_saturates_at_50(self):
        flags = encode(_attrs(incline_distance=10.0))
        assert decode(flags, "incline_distance") == 50.0

    def test_speed_saturates_at_max(self):
        flags = encode(_attrs(speed=50.0))
        assert decode(flags, "speed") == 34.0

    def test_speed_is_quantized(self):
        assert SPEED.get_value(encode_speed(0, 15.0)) == 16.0
        assert SPEED.get_value(encode_speed(0, 14.9)) == 14.0

    def test_small_speed_does_not_become_zero(self):
        assert SPEED.get_value(encode_speed(0, 0.5)) == 2.0

    def test_zero_speed(self):
        assert SPEED.get_value(encode_speed(0, 0.0)) == 0.0

    def test_negative_speed_raises(self):
        with pytest.raises(ValueError, match="negative"):
            encode(_attrs(speed=-1.0))

    def test_nan_slope_raises(self):
        with pytest.raises(ValueError, match="number"):
            encode(_attrs(incline=float("nan")))

    def test_invalid_way_type_raises(self):
        with pytest.raises(InvalidWayTypeError):
            encode(_attrs(way_type=16))


class TestReverseFlags:
    def test_self_inverse(self):
        for attrs in [
            _attrs(),
            _attrs(forward=True, backward=False),
            _attrs(incline=40.0, decline=0.0, incline_distance=100.0),
            _attrs(incline_distance=50.0),
        ]:
            flags = encode(attrs)
            assert reverse_flags(reverse_flags(flags)) == flags

    def test_swaps_slopes(self):
        flags = reverse_flags(encode(_attrs(incline=5.0, decline=3.0, incline_distance=70.0)))
        assert decode(flags, "incline") == 3.0
        assert decode(flags, "decline") == 5.0
        assert INCLINE_DISTANCE.get_raw(flags) == 30

    def test_swaps_direction(self):
        flags = reverse_flags(encode(_attrs(forward=True, backward=False)))
        assert flags & BACKWARD
        assert not flags & FORWARD

    def test_keeps_other_fields(self):
        flags = encode(_attrs())
        reversed_flags = reverse_flags(flags)
        assert WAY_TYPE.get_raw(reversed_flags) == WAY_TYPE.get_raw(flags)
        assert SPEED.get_raw(reversed_flags) == SPEED.get_raw(flags)


class TestWayType:
    def test_from_code(self):
        assert WayType.from_code(13) is WayType.CYCLEWAY

    @pytest.mark.parametrize("code", [-1, 16, 100])
    def test_out_of_range_raises(self, code):
        with pytest.raises(InvalidWayTypeError, match="between 0 and 15"):
            WayType.from_code(code)

    def test_count(self):
        assert WAY_TYPES == 16

    def test_decode_way_type(self):
        assert decode_way_type(encode(_attrs(way_type=WayType.TRACK_HARD))) is WayType.TRACK_HARD

    def test_paved(self):
        assert is_paved(WayType.CYCLEWAY)
        assert is_paved(WayType.ROAD)
        assert not is_paved(WayType.TRACK_EASY)
        assert not is_paved(WayType.MTB_CYCLEWAY)
