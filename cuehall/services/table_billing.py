"""Table-time billing.

The live bill display, table release and pay-and-close all price table time
through this module and nothing else. Every function is pure: callers capture
one reference instant and pass it in, so a figure shown at the counter and the
figure charged for the same instant are the same number.

Policy
------
* Open-ended sessions: the first ``GRACE_MINUTES`` are free, after that time is
  charged in half-hour blocks rounded up (``blocks * 0.5 * hourly_rate``).
* Fixed-duration sessions: the booked block is charged in full, overage is
  metered per minute with no block rounding.
* Money games: the fee never drops below ``MONEY_GAME_CUT`` of the bet.
* Prepaid reservations: the booked block already paid is netted off at checkout.

Rounding happens once, on the final fee (2 dp, half-up).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

GRACE_MINUTES = 5
BLOCK_MINUTES = 30
MONEY_GAME_CUT = Decimal("0.10")

CENT = Decimal("0.01")
ZERO = Decimal("0")
_MINUTE = timedelta(minutes=1)


class BillingMode(Enum):
    OPEN = "OPEN"
    FIXED = "FIXED"


def _dec(x) -> Decimal:
    if isinstance(x, Decimal):
        return x
    # str() first so 0.1 stays 0.1 and not its binary expansion
    return Decimal(str(x or 0))


def _round(x: Decimal) -> Decimal:
    return x.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class SessionSnapshot:
    """Billing-relevant view of a table session at one moment.

    ``hourly_rate`` is the rate actually charged, i.e. after any override and
    membership discount. ``accumulated_paused_time`` is in seconds.
    """
    opened_at: datetime
    hourly_rate: Decimal
    paused_at: datetime | None = None
    accumulated_paused_time: int = 0
    billing_mode: BillingMode = BillingMode.OPEN
    target_duration_minutes: int | None = None
    is_money_game: bool = False
    bet_amount: Decimal | None = None
    is_prepaid: bool = False
    prepaid_amount: Decimal | None = None  # money actually taken, caps the credit

    @property
    def is_paused(self) -> bool:
        return self.paused_at is not None

    @property
    def is_fixed(self) -> bool:
        # a FIXED booking without a target falls back to open-ended billing
        return self.billing_mode is BillingMode.FIXED and bool(self.target_duration_minutes)


@dataclass(frozen=True)
class TableBill:
    elapsed_minutes: int
    table_fee: Decimal
    prepaid_credit: Decimal
    net_table_fee: Decimal
    item_total: Decimal
    total: Decimal
    is_paused: bool = False
    is_overtime: bool = False

    def as_dict(self) -> dict:
        return {
            "elapsed_minutes": self.elapsed_minutes,
            "table_fee": float(self.table_fee),
            "prepaid_credit": float(self.prepaid_credit),
            "net_table_fee": float(self.net_table_fee),
            "item_total": float(self.item_total),
            "total": float(self.total),
            "is_paused": self.is_paused,
            "is_overtime": self.is_overtime,
        }


def compute_elapsed_minutes(session: SessionSnapshot, reference_time: datetime) -> int:
    """Whole billable minutes between ``opened_at`` and the reference instant.

    While paused the clock stops at ``paused_at`` whatever ``reference_time``
    says. Banked pause time is subtracted; the result is floored and never
    negative.
    """
    reference = session.paused_at or reference_time
    paused = timedelta(seconds=session.accumulated_paused_time or 0)
    elapsed = reference - session.opened_at - paused
    if elapsed <= timedelta(0):
        return 0
    return elapsed // _MINUTE


def _time_fee(session: SessionSnapshot, elapsed_minutes: int) -> Decimal:
    rate = _dec(session.hourly_rate)
    if session.is_fixed:
        target = session.target_duration_minutes
        excess = max(0, elapsed_minutes - target)
        # base block + per-minute overage, as a single division
        return Decimal(target + excess) * rate / 60
    if elapsed_minutes <= GRACE_MINUTES:
        return ZERO
    blocks = -(-elapsed_minutes // BLOCK_MINUTES)
    return Decimal(blocks) * rate / 2


def money_game_minimum(session: SessionSnapshot) -> Decimal:
    if session.is_money_game and session.bet_amount:
        return _dec(session.bet_amount) * MONEY_GAME_CUT
    return ZERO


def compute_table_fee(session: SessionSnapshot, reference_time: datetime) -> Decimal:
    minutes = compute_elapsed_minutes(session, reference_time)
    fee = max(_time_fee(session, minutes), money_game_minimum(session))
    return _round(fee)


def prepaid_credit_amount(session: SessionSnapshot) -> Decimal:
    """Value of the booked block already paid through a reservation."""
    if not (session.is_prepaid and session.is_fixed):
        return ZERO
    block = Decimal(session.target_duration_minutes) * _dec(session.hourly_rate) / 60
    if session.prepaid_amount is not None:
        return min(block, _dec(session.prepaid_amount))
    return block


def compute_net_fee_with_prepaid_credit(fee: Decimal, session: SessionSnapshot) -> Decimal:
    net = _dec(fee) - prepaid_credit_amount(session)
    return _round(max(ZERO, net))


def estimate_total(session: SessionSnapshot, reference_time: datetime, item_total=ZERO) -> TableBill:
    minutes = compute_elapsed_minutes(session, reference_time)
    fee = compute_table_fee(session, reference_time)
    net = compute_net_fee_with_prepaid_credit(fee, session)
    items = _round(_dec(item_total))
    return TableBill(
        elapsed_minutes=minutes,
        table_fee=fee,
        prepaid_credit=_round(prepaid_credit_amount(session)),
        net_table_fee=net,
        item_total=items,
        total=net + items,
        is_paused=session.is_paused,
        is_overtime=session.is_fixed and minutes > session.target_duration_minutes,
    )
