import pytest

from helpers.eta import estimate_remaining, format_eta


def test_estimate_remaining():
    assert estimate_remaining(10.0, 0, 4) is None
    assert estimate_remaining(10.0, 1, 0) is None
    assert estimate_remaining(10.0, 1, 4) == pytest.approx(30.0)
    assert estimate_remaining(10.0, 4, 4) == 0.0


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (None, "ETA: calculating..."),
        (42.7, "ETA: ~42 sec"),
        (60, "ETA: ~1 minute"),
        (61, "ETA: ~2 minutes"),
    ],
)
def test_format_eta(seconds, expected):
    assert format_eta(seconds) == expected
