"""Tests for the human-readable formatting helpers"""

import pytest

from lesson_offline.utils.formatting import format_duration, format_size


@pytest.mark.parametrize(
    "size, expected",
    [
        (0, "0 B"),
        (-5, "0 B"),
        (512, "512 B"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (1_000_000, "976.56 KB"),
        (1_048_576, "1 MB"),
        (5 * 1024**3, "5 GB"),
    ],
)
def test_format_size(size, expected):
    assert format_size(size) == expected


def test_format_size_decimals():
    assert format_size(1_000_000, decimals=0) == "977 KB"


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, "0s"), (59, "59s"), (60, "1m"), (3725, "1h 2m 5s")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected
