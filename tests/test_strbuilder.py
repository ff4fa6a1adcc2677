import pytest

from spxprof.strbuilder import StrBuilder


def test_new_builder_is_empty():
    sb = StrBuilder(16)
    assert str(sb) == ""
    assert len(sb) == 0
    assert sb.remaining == sb.capacity == 16


def test_append_char():
    sb = StrBuilder(2)
    assert sb.append_char("x") == 1
    assert sb.append_char("y") == 1
    assert sb.append_char("z") == 0
    assert str(sb) == "xy"
    assert sb.remaining == 0


def test_append_char_rejects_strings():
    with pytest.raises(ValueError):
        StrBuilder(4).append_char("ab")


@pytest.mark.parametrize("value", [0, 7, 42, -42, 123456789, -1000])
def test_append_long_matches_decimal(value):
    sb = StrBuilder(32)
    written = sb.append_long(value)
    assert str(sb) == str(value)
    assert written == len(str(value)) == len(sb)


def test_append_long_overflow_leaves_builder_untouched():
    sb = StrBuilder(3)
    assert sb.append_long(12345) == 0
    assert str(sb) == ""
    assert len(sb) == 0


def test_append_long_sign_needs_room():
    assert StrBuilder(3).append_long(-123) == 0
    sb = StrBuilder(4)
    assert sb.append_long(-123) == 4
    assert str(sb) == "-123"


@pytest.mark.parametrize(
    "value,expected",
    [(12.3456, "12.3456"), (3.0, "3"), (1.5, "1.5"), (100.25, "100.25")],
)
def test_append_double(value, expected):
    sb = StrBuilder(32)
    assert sb.append_double(value, 4) == len(expected)
    assert str(sb) == expected


def test_append_double_zero():
    sb = StrBuilder(8)
    assert sb.append_double(0.0, 4) == 1
    assert str(sb) == "0"


def test_append_double_round_trip_for_values_above_one():
    sb = StrBuilder(64)
    for value in (1.25, 2.5, 987.6543, 10.1):
        sb.reset()
        sb.append_double(value, 4)
        assert float(str(sb)) == pytest.approx(value, abs=1e-4)


def test_append_double_overflow_is_atomic():
    sb = StrBuilder(5)
    sb.append_str("ab")
    assert sb.append_double(12.3456, 4) == 0
    assert str(sb) == "ab"


def test_append_double_on_full_builder():
    sb = StrBuilder(1)
    sb.append_char("a")
    assert sb.append_double(1.5, 2) == 0
    assert str(sb) == "a"


def test_append_str_fits():
    sb = StrBuilder(10)
    assert sb.append_str("hello") == 5
    assert sb.append_str("") == 0
    assert str(sb) == "hello"


def test_append_str_overflow_keeps_prefix():
    sb = StrBuilder(3)
    text = "abcdef"
    assert sb.append_str(text) == 0
    assert str(sb) == text[:3]
    assert sb.remaining == 0


def test_reset_clears_content():
    sb = StrBuilder(8)
    sb.append_str("data")
    sb.reset()
    assert str(sb) == ""
    assert sb.remaining == 8