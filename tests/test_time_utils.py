from __future__ import annotations

from datetime import datetime, timezone

from core.time_utils import now_ms, to_ms


def test_seconds_are_scaled_to_milliseconds() -> None:
    assert to_ms(1_700_000_000) == 1_700_000_000_000
    assert to_ms(1_700_000_000.5) == 1_700_000_000_500


def test_milliseconds_pass_through() -> None:
    assert to_ms(1_700_000_000_123) == 1_700_000_000_123


def test_numeric_strings_and_datetimes() -> None:
    assert to_ms("1700000000") == 1_700_000_000_000
    assert to_ms(datetime(2024, 1, 1, tzinfo=timezone.utc)) == 1_704_067_200_000
    # Naive datetimes are taken as UTC.
    assert to_ms(datetime(2024, 1, 1)) == 1_704_067_200_000


def test_unusable_values_become_zero() -> None:
    for raw in (None, "", "soon", 0, -5, float("nan"), float("inf"), object()):
        assert to_ms(raw) == 0


def test_now_ms_is_milliseconds() -> None:
    assert now_ms() > 1_000_000_000_000
