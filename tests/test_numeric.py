import math

from utils.numeric import format_number, parse_float, safe_divide, safe_percent, to_number


def test_safe_divide_guards_zero_and_nan():
    assert safe_divide(10, 4) == 2.5
    assert safe_divide(10, 0) == 0
    assert safe_divide(math.nan, 2) == 0
    assert safe_percent(450, 500) == 90


def test_to_number_is_strict():
    assert to_number("42") == 42
    assert to_number(" -3.5 ") == -3.5
    assert to_number("1e3") == 1000
    assert to_number("") is None
    assert to_number("12abc") is None
    assert to_number("abc") is None
    assert to_number("1e999") is None
    assert to_number(None) is None


def test_parse_float_accepts_numbers_and_strings():
    assert parse_float(500) == 500.0
    assert parse_float("450") == 450.0
    assert parse_float("lots") is None
    assert parse_float("lots", 0.0) == 0.0
    assert parse_float(True, 0.0) == 0.0
    assert parse_float(math.inf) is None


def test_format_number_matches_display_rules():
    assert format_number(30.0) == "30"
    assert format_number(-0.0) == "0"
    assert format_number(2.5) == "2.5"
    assert format_number(0.1 + 0.2) == "0.30000000000000004"
    assert format_number(1e21) == "1e+21"
    assert format_number(1e-7) == "1e-7"


def test_format_number_small_fractions_stay_fixed_until_micro():
    assert format_number(0.00005) == "0.00005"
    assert format_number(-0.000015) == "-0.000015"
    assert format_number(1e-6) == "0.000001"
    assert format_number(1.5e-7) == "1.5e-7"
