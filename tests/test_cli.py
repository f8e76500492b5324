import pytest

from fusedtiles.cli import get_float_arg, get_int_arg, get_string_arg


def test_int_arg_found():
    assert get_int_arg(["prog", "-n", "3", "-m", "4"], "-n", 5) == 3
    assert get_int_arg(["prog", "-n", "3", "-m", "4"], "-m", 5) == 4


def test_int_arg_default_when_absent():
    assert get_int_arg(["prog", "-m", "4"], "-n", 5) == 5


def test_int_arg_default_when_flag_is_last():
    assert get_int_arg(["prog", "-n"], "-n", 5) == 5


def test_int_arg_first_occurrence_wins():
    assert get_int_arg(["prog", "-n", "2", "-n", "9"], "-n", 5) == 2


@pytest.mark.parametrize(
    "text, expected",
    [("12abc", 12), ("abc", 0), ("-7", -7), ("  +8", 8), ("", 0)],
)
def test_int_arg_parses_leading_digits(text, expected):
    assert get_int_arg(["-edge_id", text], "-edge_id", 99) == expected


def test_flag_value_may_itself_be_flag_name():
    assert get_string_arg(["-mode", "-mode"], "-mode", "none") == "-mode"


def test_float_arg_found_and_default():
    assert get_float_arg(["prog", "-thresh", "0.5"], "-thresh", 0.24) == 0.5
    assert get_float_arg(["prog"], "-thresh", 0.24) == 0.24


@pytest.mark.parametrize(
    "text, expected",
    [("1.5xyz", 1.5), ("abc", 0.0), ("-2", -2.0), ("1e3", 1000.0)],
)
def test_float_arg_parses_leading_number(text, expected):
    assert get_float_arg(["-x", text], "-x", 7.0) == expected


def test_string_arg_found_and_default():
    argv = ["prog", "-mode", "gateway", "-total_edge", "6"]
    assert get_string_arg(argv, "-mode", "none") == "gateway"
    assert get_string_arg(argv, "-other", "none") == "none"
    assert get_string_arg([], "-mode", None) is None