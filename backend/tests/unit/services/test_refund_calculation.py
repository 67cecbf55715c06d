from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import ValidationException
from app.services.refund_policy_service import (
    RefundInputs,
    calculate_refund,
    card_share_pence,
)

NOW = datetime(2025, 1, 14, 10, 0, tzinfo=timezone.utc)


def _weekly(first: datetime, count: int) -> list[datetime]:
    return [first + timedelta(days=7 * i) for i in range(count)]


def _inputs(**overrides: object) -> RefundInputs:
    values: dict[str, object] = {
        "amount_pence": 10000,
        "payment_method": "card",
        "session_starts": [NOW + timedelta(hours=48)],
        "admin_fee_pence": 200,
    }
    values.update(overrides)
    return RefundInputs(**values)  # type: ignore[arg-type]


class TestFullNotice:
    def test_card_payment_refunds_to_card_minus_admin_fee(self) -> None:
        result = calculate_refund(_inputs(), NOW)

        assert result.outcome == "full_notice"
        assert result.method == "cash"
        assert result.refund_pence == 9800
        assert result.credit_pence == 0
        assert result.admin_fee_pence == 200
        assert result.refundable_pence == 10000
        assert result.hours_before_start == pytest.approx(48.0)

    @pytest.mark.parametrize("method", ["tfc", "voucher"])
    def test_non_card_payment_becomes_credit(self, method: str) -> None:
        result = calculate_refund(_inputs(payment_method=method), NOW)

        assert result.method == "credit"
        assert result.refund_pence == 0
        assert result.credit_pence == 9800

    def test_exactly_notice_hours_counts_as_full_notice(self) -> None:
        result = calculate_refund(_inputs(session_starts=[NOW + timedelta(hours=24)]), NOW)

        assert result.outcome == "full_notice"

    def test_mixed_payment_splits_card_and_credit(self) -> None:
        result = calculate_refund(
            _inputs(payment_method="mixed", card_amount_pence=6000), NOW
        )

        assert result.method == "mixed"
        assert result.refund_pence == 5800
        assert result.credit_pence == 4000

    def test_mixed_payment_without_card_amount_splits_in_half_rounding_up(self) -> None:
        result = calculate_refund(
            _inputs(amount_pence=9999, payment_method="mixed", card_amount_pence=None), NOW
        )

        assert result.refund_pence == 5000 - 200
        assert result.credit_pence == 4999

    def test_admin_fee_spills_into_credit_when_card_share_is_small(self) -> None:
        result = calculate_refund(
            _inputs(payment_method="mixed", card_amount_pence=100), NOW
        )

        assert result.refund_pence == 0
        assert result.credit_pence == 9900 - 100
        assert result.admin_fee_pence == 200
        assert result.method == "credit"

    def test_admin_fee_never_exceeds_refundable_amount(self) -> None:
        result = calculate_refund(_inputs(amount_pence=150), NOW)

        assert result.admin_fee_pence == 150
        assert result.total_pence == 0
        assert result.method == "none"


class TestLateCancellation:
    def test_short_notice_single_session_gets_credit_only(self) -> None:
        result = calculate_refund(_inputs(session_starts=[NOW + timedelta(hours=12)]), NOW)

        assert result.outcome == "short_notice"
        assert result.refund_pence == 0
        assert result.credit_pence == 9800
        assert result.remaining_sessions == 1

    def test_mid_course_credit_is_pro_rata_for_remaining_sessions(self) -> None:
        sessions = _weekly(NOW - timedelta(days=8), 4)

        result = calculate_refund(_inputs(session_starts=sessions), NOW)

        assert result.outcome == "mid_course"
        assert result.total_sessions == 4
        assert result.remaining_sessions == 2
        assert result.refundable_pence == 5000
        assert result.credit_pence == 4800
        assert result.refund_pence == 0

    def test_pro_rata_rounds_half_up(self) -> None:
        sessions = _weekly(NOW - timedelta(hours=1), 3)

        result = calculate_refund(
            _inputs(amount_pence=1000, session_starts=sessions, admin_fee_pence=0), NOW
        )

        # 1000 * 2 / 3 = 666.67
        assert result.credit_pence == 667

    def test_session_starting_now_counts_as_used(self) -> None:
        sessions = _weekly(NOW, 2)

        result = calculate_refund(_inputs(session_starts=sessions, admin_fee_pence=0), NOW)

        assert result.remaining_sessions == 1
        assert result.credit_pence == 5000

    def test_all_sessions_started_yields_nothing(self) -> None:
        sessions = _weekly(NOW - timedelta(days=21), 3)

        result = calculate_refund(_inputs(session_starts=sessions), NOW)

        assert result.outcome == "no_show"
        assert result.total_pence == 0
        assert result.admin_fee_pence == 0

    def test_no_show_booking_yields_nothing_even_before_start(self) -> None:
        result = calculate_refund(_inputs(booking_status="no_show"), NOW)

        assert result.outcome == "no_show"
        assert result.total_pence == 0


class TestProviderCancellation:
    def test_defaults_to_full_credit_without_admin_fee(self) -> None:
        result = calculate_refund(_inputs(is_provider_cancellation=True), NOW)

        assert result.outcome == "provider_cancellation"
        assert result.credit_pence == 10000
        assert result.refund_pence == 0
        assert result.admin_fee_pence == 0

    def test_cash_choice_refunds_card_payment_in_full(self) -> None:
        result = calculate_refund(
            _inputs(is_provider_cancellation=True, refund_method="cash"), NOW
        )

        assert result.refund_pence == 10000
        assert result.credit_pence == 0
        assert result.method == "cash"

    def test_cash_choice_on_tfc_payment_still_returns_credit(self) -> None:
        result = calculate_refund(
            _inputs(is_provider_cancellation=True, refund_method="cash", payment_method="tfc"),
            NOW,
        )

        assert result.refund_pence == 0
        assert result.credit_pence == 10000

    def test_provider_default_method_is_used_when_no_choice_given(self) -> None:
        result = calculate_refund(
            _inputs(is_provider_cancellation=True, default_refund_method="cash"), NOW
        )

        assert result.refund_pence == 10000

    def test_parent_choice_without_preference_resolves_to_credit(self) -> None:
        result = calculate_refund(
            _inputs(is_provider_cancellation=True, default_refund_method="parent_choice"), NOW
        )

        assert result.refund_pence == 0
        assert result.credit_pence == 10000
        assert result.total_pence == 10000

    def test_full_amount_returned_even_mid_course(self) -> None:
        sessions = _weekly(NOW - timedelta(days=8), 4)

        result = calculate_refund(
            _inputs(is_provider_cancellation=True, session_starts=sessions), NOW
        )

        assert result.total_pence == 10000
        assert result.remaining_sessions == 2


class TestUnpaid:
    @pytest.mark.parametrize("provider", [True, False])
    def test_unpaid_booking_refunds_nothing(self, provider: bool) -> None:
        result = calculate_refund(
            _inputs(payment_status="pending_payment", is_provider_cancellation=provider), NOW
        )

        assert result.outcome == "not_paid"
        assert result.total_pence == 0
        assert result.method == "none"


def test_negative_amount_is_rejected() -> None:
    with pytest.raises(ValidationException):
        calculate_refund(_inputs(amount_pence=-1), NOW)


def test_naive_now_is_treated_as_utc() -> None:
    result = calculate_refund(_inputs(), NOW.replace(tzinfo=None))

    assert result.outcome == "full_notice"


@pytest.mark.parametrize(
    ("amount", "method", "card_amount", "expected"),
    [
        (1000, "card", None, 1000),
        (1000, "tfc", None, 0),
        (1000, "voucher", None, 0),
        (1001, "mixed", None, 501),
        (1000, "mixed", 300, 300),
        (1000, "mixed", 5000, 1000),
    ],
)
def test_card_share(amount: int, method: str, card_amount: int | None, expected: int) -> None:
    assert card_share_pence(amount, method, card_amount) == expected
