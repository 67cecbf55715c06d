from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.utils.money import pence_to_pounds, round_half_up, to_decimal
from app.utils.time_helpers import add_months, ensure_utc, hours_between


@pytest.mark.parametrize(
    "value,expected",
    [
        (Decimal("100.5"), 101),
        (Decimal("100.49"), 100),
        (Decimal("-2.5"), -3),
        (Decimal("0"), 0),
    ],
)
def test_round_half_up(value: Decimal, expected: int) -> None:
    assert round_half_up(value) == expected


def test_to_decimal_keeps_printed_float_value() -> None:
    assert to_decimal(0.2) == Decimal("0.2")


@pytest.mark.parametrize("pence,expected", [(1250, "£12.50"), (5, "£0.05"), (-199, "-£1.99")])
def test_pence_to_pounds(pence: int, expected: str) -> None:
    assert pence_to_pounds(pence) == expected


def test_add_months_clamps_to_month_end() -> None:
    start = datetime(2025, 1, 31, 12, tzinfo=timezone.utc)

    assert add_months(start, 1) == datetime(2025, 2, 28, 12, tzinfo=timezone.utc)
    assert add_months(start, 12) == datetime(2026, 1, 31, 12, tzinfo=timezone.utc)


def test_ensure_utc_and_hours_between() -> None:
    naive = datetime(2025, 1, 14, 10)
    offset = datetime(2025, 1, 14, 12, tzinfo=timezone(timedelta(hours=2)))

    assert ensure_utc(naive).tzinfo == timezone.utc
    assert hours_between(naive, offset) == 0
