import pytest

from records.utils.math import round_half_up


@pytest.mark.parametrize(
    "value, expected",
    [
        (2.345, 2.34),
        (2.675, 2.67),
        (1.005, 1.0),
        (0.125, 0.13),
        (0.375, 0.38),
        (40.0, 40.0),
        (33.333333, 33.33),
        (-2.345, -2.34),
        (-0.125, -0.13),
    ],
)
def test_round_half_up_uses_exact_binary_value(value, expected):
    assert round_half_up(value) == expected


def test_round_half_up_other_precision():
    assert round_half_up(2.5, 0) == 3.0
    assert round_half_up(12.3456, 3) == 12.346


def test_round_half_up_accepts_integers():
    assert round_half_up(7) == 7.0
