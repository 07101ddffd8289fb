# test_table_billing.py
from decimal import Decimal

import pytest

from conftest import T0, at
from cuehall.services.table_billing import (
    BillingMode, SessionSnapshot, compute_elapsed_minutes, compute_table_fee,
    compute_net_fee_with_prepaid_credit, prepaid_credit_amount, estimate_total,
)


def snap(**kw) -> SessionSnapshot:
    kw.setdefault("opened_at", T0)
    kw.setdefault("hourly_rate", Decimal("100"))
    return SessionSnapshot(**kw)


def fixed(target, **kw) -> SessionSnapshot:
    return snap(billing_mode=BillingMode.FIXED, target_duration_minutes=target, **kw)


# ── elapsed time ────────────────────────────────────────────────────────────
def test_elapsed_minutes_are_floored():
    assert compute_elapsed_minutes(snap(), at(12, 59)) == 12
    assert compute_elapsed_minutes(snap(), at(13)) == 13


def test_reference_before_open_clamps_to_zero():
    assert compute_elapsed_minutes(snap(), at(-3)) == 0


def test_paused_clock_stops_at_paused_at():
    s = snap(paused_at=at(20))
    assert compute_elapsed_minutes(s, at(90)) == 20
    assert compute_elapsed_minutes(s, at(500)) == 20


def test_banked_pause_time_is_subtracted():
    # paused for 10 of 40 wall-clock minutes
    s = snap(accumulated_paused_time=600)
    assert compute_elapsed_minutes(s, at(40)) == 30


def test_pause_resume_equals_never_paused_minus_pause():
    never_paused = snap()
    paused_once = snap(accumulated_paused_time=7 * 60)
    for minute in (10, 33, 61, 125):
        assert compute_elapsed_minutes(paused_once, at(minute)) == \
            compute_elapsed_minutes(never_paused, at(minute - 7))


def test_pause_longer_than_session_clamps():
    assert compute_elapsed_minutes(snap(accumulated_paused_time=3600), at(30)) == 0


# ── open-ended billing ──────────────────────────────────────────────────────
@pytest.mark.parametrize("minutes", [0, 1, 4, 5])
def test_open_grace_period_is_free(minutes):
    assert compute_table_fee(snap(), at(minutes, 59)) == Decimal("0.00")


@pytest.mark.parametrize("minutes,expected", [
    (6, "50.00"),
    (30, "50.00"),
    (31, "100.00"),
    (35, "100.00"),
    (60, "100.00"),
    (61, "150.00"),
])
def test_open_half_hour_blocks_round_up(minutes, expected):
    assert compute_table_fee(snap(), at(minutes)) == Decimal(expected)


def test_open_fee_is_multiple_of_half_rate():
    s = snap(hourly_rate=Decimal("90"))
    for minute in range(6, 300, 7):
        fee = compute_table_fee(s, at(minute))
        assert fee % Decimal("45") == 0


# ── fixed-duration billing ──────────────────────────────────────────────────
def test_fixed_within_target_charges_the_block():
    s = fixed(60, hourly_rate=Decimal("120"))
    for minute in (0, 5, 30, 60):
        assert compute_table_fee(s, at(minute)) == Decimal("120.00")


def test_fixed_overage_is_per_minute():
    s = fixed(60, hourly_rate=Decimal("120"))
    assert compute_table_fee(s, at(75)) == Decimal("150.00")
    assert compute_table_fee(s, at(61)) == Decimal("122.00")


def test_fixed_overage_is_linear():
    s = fixed(60, hourly_rate=Decimal("120"))
    fees = [compute_table_fee(s, at(m)) for m in range(61, 80)]
    steps = {b - a for a, b in zip(fees, fees[1:])}
    assert steps == {Decimal("2.00")}


def test_fixed_non_round_block():
    assert compute_table_fee(fixed(50), at(10)) == Decimal("83.33")


def test_fixed_without_target_bills_open_ended():
    s = snap(billing_mode=BillingMode.FIXED, target_duration_minutes=None)
    assert compute_table_fee(s, at(35)) == Decimal("100.00")
    assert compute_table_fee(s, at(5)) == Decimal("0.00")


def test_rounds_half_up_once():
    # 1 minute at 0.30/h is exactly 0.005
    s = fixed(1, hourly_rate=Decimal("0.30"))
    assert compute_table_fee(s, at(0)) == Decimal("0.01")


def test_float_rate_is_accepted():
    assert compute_table_fee(snap(hourly_rate=100.0), at(35)) == Decimal("100.00")


# ── money games ─────────────────────────────────────────────────────────────
def test_money_game_floor_overrides_lower_time_fee():
    s = snap(is_money_game=True, bet_amount=Decimal("1000"))
    # time fee would be 50.00
    assert compute_table_fee(s, at(20)) == Decimal("100.00")


def test_money_game_floor_applies_at_zero_elapsed():
    s = snap(is_money_game=True, bet_amount=Decimal("1000"))
    assert compute_table_fee(s, at(0)) == Decimal("100.00")


def test_money_game_time_fee_wins_when_higher():
    s = snap(is_money_game=True, bet_amount=Decimal("1000"))
    assert compute_table_fee(s, at(95)) == Decimal("200.00")


@pytest.mark.parametrize("bet", [None, Decimal("0")])
def test_money_game_without_bet_has_no_floor(bet):
    assert compute_table_fee(snap(is_money_game=True, bet_amount=bet), at(0)) == Decimal("0.00")


def test_bet_ignored_unless_money_game():
    assert compute_table_fee(snap(bet_amount=Decimal("1000")), at(0)) == Decimal("0.00")


def test_money_game_floor_on_fixed_session():
    s = fixed(30, hourly_rate=Decimal("100"), is_money_game=True, bet_amount=Decimal("2000"))
    assert compute_table_fee(s, at(10)) == Decimal("200.00")


# ── prepaid credit ──────────────────────────────────────────────────────────
def test_prepaid_credit_leaves_only_overage():
    s = fixed(60, hourly_rate=Decimal("120"), is_prepaid=True)
    fee = compute_table_fee(s, at(75))
    assert fee == Decimal("150.00")
    assert compute_net_fee_with_prepaid_credit(fee, s) == Decimal("30.00")


def test_prepaid_credit_within_target_is_free():
    s = fixed(60, hourly_rate=Decimal("120"), is_prepaid=True)
    assert compute_net_fee_with_prepaid_credit(compute_table_fee(s, at(45)), s) == Decimal("0.00")


def test_net_fee_never_negative():
    s = fixed(60, hourly_rate=Decimal("120"), is_prepaid=True)
    assert compute_net_fee_with_prepaid_credit(Decimal("10.00"), s) == Decimal("0.00")


def test_no_credit_without_prepaid_fixed_booking():
    assert prepaid_credit_amount(fixed(60)) == 0
    assert prepaid_credit_amount(snap(is_prepaid=True)) == 0
    s = fixed(60)
    fee = compute_table_fee(s, at(90))
    assert compute_net_fee_with_prepaid_credit(fee, s) == fee


# ── grand total ─────────────────────────────────────────────────────────────
def test_estimate_total_adds_items():
    bill = estimate_total(snap(), at(35), Decimal("56.00"))
    assert bill.elapsed_minutes == 35
    assert bill.table_fee == Decimal("100.00")
    assert bill.net_table_fee == Decimal("100.00")
    assert bill.item_total == Decimal("56.00")
    assert bill.total == Decimal("156.00")
    assert not bill.is_paused
    assert not bill.is_overtime


def test_estimate_total_prepaid_overtime():
    s = fixed(60, hourly_rate=Decimal("120"), is_prepaid=True)
    bill = estimate_total(s, at(75))
    assert bill.is_overtime
    assert bill.prepaid_credit == Decimal("120.00")
    assert bill.net_table_fee == Decimal("30.00")
    assert bill.total == Decimal("30.00")


def test_estimate_is_stable_while_paused():
    s = snap(paused_at=at(35))
    first = estimate_total(s, at(36))
    later = estimate_total(s, at(400))
    assert first == later
    assert first.is_paused
    assert first.as_dict()["table_fee"] == 100.0


def test_prepaid_credit_is_capped_by_money_taken():
    s = fixed(60, hourly_rate=Decimal("120"), is_prepaid=True, prepaid_amount=Decimal("100"))
    assert prepaid_credit_amount(s) == Decimal("100")
    assert compute_net_fee_with_prepaid_credit(compute_table_fee(s, at(30)), s) == Decimal("20.00")
