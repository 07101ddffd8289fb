"""Table session lifecycle: open, pause, resume, release, pay.

Every operation receives one captured ``now`` from its caller and prices table
time only through :mod:`cuehall.services.table_billing`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cuehall.models.core import (
    Customer, MembershipTier, Order, OrderItem, OrderStatus, Payment, PayMethod, Prepayment,
    PoolTable, Product, ProductCategory, SessionStatus, SessionType, TableSession,
    TABLE_TIME_SKU,
)
from cuehall.services import inventory, table_billing
from cuehall.services.billing import compute_order_totals, money, refresh_order_totals
from cuehall.services.table_billing import BillingMode, SessionSnapshot, TableBill
from cuehall.util.audit import log_action

log = logging.getLogger(__name__)


class SessionError(Exception):
    pass

class SessionNotFound(SessionError):
    pass

class SessionStateError(SessionError):
    pass

class TableUnavailable(SessionError):
    pass

class InvalidTender(SessionError):
    pass


@dataclass(frozen=True)
class PayResult:
    session_id: str
    order_id: str
    payment_id: str | None
    table_fee: Decimal
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    tendered_amount: Decimal
    change_due: Decimal
    already_closed: bool = False

    def as_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "order_id": self.order_id,
            "payment_id": self.payment_id,
            "table_fee": float(self.table_fee),
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "total": float(self.total),
            "tendered_amount": float(self.tendered_amount),
            "change_due": float(self.change_due),
            "already_closed": self.already_closed,
        }


def as_utc(dt: datetime | None) -> datetime | None:
    # sqlite hands back naive datetimes even for timezone=True columns
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


# ── lookups ─────────────────────────────────────────────────────────────────
def get_session(db: Session, session_id: str) -> TableSession:
    s = db.get(TableSession, session_id)
    if not s:
        raise SessionNotFound("session not found")
    return s

def get_order(db: Session, s: TableSession) -> Order:
    order = db.query(Order).filter(Order.table_session_id == s.id).first()
    if not order:
        raise SessionNotFound("order not found for session")
    return order

def table_time_product(db: Session) -> Product:
    p = db.query(Product).filter(Product.sku == TABLE_TIME_SKU).first()
    if not p:
        raise SessionStateError("TABLE_TIME product not found, run the bootstrap first")
    return p

def table_time_line(db: Session, order: Order) -> OrderItem | None:
    return (
        db.query(OrderItem)
        .join(Product, Product.id == OrderItem.product_id)
        .filter(OrderItem.order_id == order.id, Product.category == ProductCategory.TABLE_TIME)
        .first()
    )


# ── pricing inputs ──────────────────────────────────────────────────────────
def effective_hourly_rate(db: Session, s: TableSession) -> Decimal:
    rate = s.override_hourly_rate
    if rate is None and s.pool_table_id:
        table = db.get(PoolTable, s.pool_table_id)
        rate = table.hourly_rate if table else None
    rate = Decimal(str(rate or 0))

    if s.customer_id:
        cust = db.get(Customer, s.customer_id)
        tier = db.get(MembershipTier, cust.tier_id) if cust and cust.tier_id else None
        if tier and tier.discount_percent:
            rate = rate * (Decimal(100) - Decimal(str(tier.discount_percent))) / 100
    return rate

def get_prepayment(db: Session, s: TableSession) -> Prepayment | None:
    if s.id is None:
        return None
    return db.query(Prepayment).filter(Prepayment.table_session_id == s.id).first()

def snapshot(db: Session, s: TableSession) -> SessionSnapshot:
    # credit only exists where money was actually taken up front
    pre = get_prepayment(db, s) if s.is_prepaid else None
    return SessionSnapshot(
        opened_at=as_utc(s.opened_at),
        hourly_rate=effective_hourly_rate(db, s),
        paused_at=as_utc(s.paused_at),
        accumulated_paused_time=s.accumulated_paused_time or 0,
        billing_mode=BillingMode(s.session_type.value),
        target_duration_minutes=s.target_duration_minutes,
        is_money_game=bool(s.is_money_game),
        bet_amount=s.bet_amount,
        is_prepaid=pre is not None,
        prepaid_amount=pre.amount if pre is not None else None,
    )

def booked_block_value(db: Session, s: TableSession) -> Decimal:
    """Price of the booked block of a FIXED session at its effective rate."""
    snap = replace(snapshot(db, s), is_prepaid=True, prepaid_amount=None)
    return money(table_billing.prepaid_credit_amount(snap))


# ── opening ─────────────────────────────────────────────────────────────────
def _new_session(db: Session, now: datetime, actor_user_id: str | None, **fields) -> TableSession:
    s = TableSession(status=SessionStatus.OPEN, opened_at=now, opened_by_user_id=actor_user_id,
                     accumulated_paused_time=0, **fields)
    db.add(s)
    db.flush()
    db.add(Order(table_session_id=s.id, status=OrderStatus.OPEN))
    db.flush()
    return s

def open_table_session(db: Session, pool_table_id: str, now: datetime,
                       actor_user_id: str | None = None,
                       prepaid_amount=None, prepaid_method: PayMethod | None = None,
                       **fields) -> tuple[TableSession, bool]:
    """Open (or return the already open) session on a pool table.

    A prepaid booking must come with the money taken for it
    (``prepaid_amount``), covering at least the booked block; it is stored as
    a :class:`Prepayment` and netted off at checkout.

    Returns ``(session, created)``.
    """
    table = db.get(PoolTable, pool_table_id)
    if not table or table.deleted_at is not None or not table.is_active:
        raise TableUnavailable("pool table not found or inactive")

    existing = (
        db.query(TableSession)
        .filter(TableSession.pool_table_id == pool_table_id, TableSession.status == SessionStatus.OPEN)
        .first()
    )
    if existing:
        return existing, False

    if fields.get("customer_id") and not fields.get("customer_name"):
        cust = db.get(Customer, fields["customer_id"])
        if cust:
            fields["customer_name"] = cust.name
    fields.setdefault("session_type", SessionType.OPEN)

    paid_upfront = None
    if fields.get("is_prepaid"):
        draft = TableSession(pool_table_id=pool_table_id, opened_at=now, accumulated_paused_time=0, **fields)
        if draft.session_type != SessionType.FIXED or not draft.target_duration_minutes:
            raise InvalidTender("only fixed-duration bookings can be prepaid")
        if prepaid_amount is None:
            raise InvalidTender("a prepaid booking needs the amount taken up front")
        paid_upfront = money(prepaid_amount)
        block = booked_block_value(db, draft)
        if paid_upfront < block:
            raise InvalidTender(f"prepayment {paid_upfront} does not cover the booked block {block}")

    s = _new_session(db, now, actor_user_id, pool_table_id=pool_table_id, **fields)
    details = {"pool_table_id": pool_table_id, "session_type": s.session_type.value}
    if paid_upfront is not None:
        db.add(Prepayment(table_session_id=s.id, method=prepaid_method or PayMethod.CASH,
                          amount=paid_upfront, received_by_user_id=actor_user_id, received_at=now))
        details["prepaid_amount"] = paid_upfront
    log_action(db, actor_user_id, "OPEN_TABLE", "table_session", s.id, details)
    db.commit()
    log.info("opened session %s on table %s", s.id, table.name)
    return s, True

def open_walk_in(db: Session, now: datetime, actor_user_id: str | None = None, **fields) -> TableSession:
    fields.setdefault("location_name", "Walk-in")
    s = _new_session(db, now, actor_user_id, pool_table_id=None, **fields)
    log_action(db, actor_user_id, "CREATE_WALK_IN", "table_session", s.id,
               {"customer_name": s.customer_name})
    db.commit()
    log.info("opened walk-in tab %s", s.id)
    return s


# ── pause / resume ──────────────────────────────────────────────────────────
def _require_running_table(s: TableSession):
    if s.status != SessionStatus.OPEN:
        raise SessionStateError("session is closed")
    if s.released_at is not None or not s.pool_table_id:
        raise SessionStateError("session has no running table time")

def pause_session(db: Session, s: TableSession, now: datetime, actor_user_id: str | None = None) -> TableSession:
    _require_running_table(s)
    if s.paused_at is not None:
        raise SessionStateError("session already paused")
    s.paused_at = now
    log_action(db, actor_user_id, "PAUSE_SESSION", "table_session", s.id)
    db.commit()
    return s

def resume_session(db: Session, s: TableSession, now: datetime, actor_user_id: str | None = None) -> TableSession:
    _require_running_table(s)
    if s.paused_at is None:
        raise SessionStateError("session is not paused")
    paused_for = max(0, int((now - as_utc(s.paused_at)).total_seconds()))
    s.accumulated_paused_time = (s.accumulated_paused_time or 0) + paused_for
    s.paused_at = None
    log_action(db, actor_user_id, "RESUME_SESSION", "table_session", s.id, {"paused_seconds": paused_for})
    db.commit()
    return s


# ── live bill ───────────────────────────────────────────────────────────────
def live_bill(db: Session, s: TableSession, now: datetime) -> TableBill:
    """What the counter display shows. Persists nothing."""
    order = get_order(db, s)
    items = compute_order_totals(db, order.id, include_table_time=False)["total"]
    snap = snapshot(db, s)

    frozen = table_time_line(db, order)
    if frozen is not None:
        # released (or paid) tabs keep the fee recorded at that moment
        stopped_at = as_utc(s.released_at or s.closed_at) or now
        fee = money(frozen.line_total)
        return TableBill(
            elapsed_minutes=table_billing.compute_elapsed_minutes(snap, stopped_at),
            table_fee=fee, prepaid_credit=table_billing.ZERO, net_table_fee=fee,
            item_total=items, total=fee + items,
        )
    if not s.pool_table_id:
        # walk-in tab, no table time
        return TableBill(0, table_billing.ZERO, table_billing.ZERO, table_billing.ZERO, items, items)
    return table_billing.estimate_total(snap, now, items)


# ── finalization ────────────────────────────────────────────────────────────
def _record_table_time(db: Session, order: Order, s: TableSession, now: datetime) -> tuple[OrderItem, int]:
    """Insert the TABLE_TIME line: billed minutes as quantity, net fee as line total."""
    snap = snapshot(db, s)
    minutes = table_billing.compute_elapsed_minutes(snap, now)
    fee = table_billing.compute_table_fee(snap, now)
    net = table_billing.compute_net_fee_with_prepaid_credit(fee, snap)
    # line_total is authoritative, unit_price is only the per-minute figure for receipts
    unit_price = money(net / minutes) if minutes else net
    line = OrderItem(order_id=order.id, product_id=table_time_product(db).id,
                     quantity=minutes, unit_price=unit_price, line_total=net)
    db.add(line)
    db.flush()
    return line, minutes

def release_table(db: Session, s: TableSession, now: datetime, actor_user_id: str | None = None) -> TableSession:
    """Freeze table time into a TABLE_TIME line and free the pool table.

    The session stays open as a walk-in tab so drinks can still be added.
    Only one release (or pay) can win: the session row is claimed with a
    conditional update before anything is written.
    """
    if s.status != SessionStatus.OPEN:
        raise SessionStateError("session is closed")
    if not s.pool_table_id:
        raise SessionStateError("session is not on a pool table")

    stopped_at = as_utc(s.paused_at) or now
    claimed = (
        db.query(TableSession)
        .filter(TableSession.id == s.id,
                TableSession.status == SessionStatus.OPEN,
                TableSession.released_at.is_(None),
                TableSession.pool_table_id.is_not(None))
        .update({TableSession.released_at: stopped_at}, synchronize_session=False)
    )
    if claimed != 1:
        db.rollback()
        raise SessionStateError("session was already released or closed")

    order = get_order(db, s)
    table = db.get(PoolTable, s.pool_table_id)
    try:
        line = table_time_line(db, order)
        minutes = line.quantity if line is not None else None
        if line is None:
            line, minutes = _record_table_time(db, order, s, stopped_at)

        s.location_name = f"{table.name} (released)" if table else "Released table"
        s.pool_table_id = None
        s.released_at = stopped_at
        s.paused_at = None
        log_action(db, actor_user_id, "RELEASE_TABLE", "table_session", s.id,
                   {"table_fee": line.line_total, "elapsed_minutes": minutes})
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SessionStateError("table time was already recorded for this session")
    log.info("released session %s, table fee %s", s.id, line.line_total)
    return s

def pay_and_close(db: Session, s: TableSession, method: PayMethod, tendered_amount,
                  now: datetime, actor_user_id: str | None = None) -> PayResult:
    """Settle the tab and close the session.

    Replays are no-ops: a tab that is already paid, or that another request
    closed first, is reported back with ``already_closed=True``. Recipe stock
    for everything sold is deducted in the same transaction.
    """
    tendered = money(tendered_amount)
    if tendered <= 0:
        raise InvalidTender("tendered amount must be positive")

    order = get_order(db, s)
    has_payment = db.query(Payment.id).filter(Payment.order_id == order.id).first() is not None
    if order.status != OrderStatus.OPEN or has_payment:
        return _already_closed(db, s, order)

    # a tab paid while paused stops its clock at the pause
    stopped_at = as_utc(s.paused_at) or now

    # optimistic claim, only one finalizer gets rowcount 1
    claimed = (
        db.query(TableSession)
        .filter(TableSession.id == s.id, TableSession.status == SessionStatus.OPEN)
        .update({TableSession.status: SessionStatus.CLOSED, TableSession.closed_at: stopped_at},
                synchronize_session=False)
    )
    if claimed != 1:
        db.rollback()
        db.refresh(order)
        return _already_closed(db, s, order)

    try:
        line = table_time_line(db, order)
        if line is None and s.pool_table_id:
            line, _ = _record_table_time(db, order, s, stopped_at)
        table_fee = money(line.line_total) if line is not None else table_billing.ZERO

        totals = refresh_order_totals(db, order, include_table_time=True)
        order.status = OrderStatus.PAID
        p = Payment(order_id=order.id, method=method, amount=totals["total"],
                    tendered_amount=tendered, paid_at=now)
        db.add(p)
        moves = inventory.deduct_for_order(db, order)
        s.paused_at = None
        log_action(db, actor_user_id, "PAY_ORDER", "order", order.id,
                   {"method": method.value, "amount": totals["total"], "tendered": tendered,
                    "stock_moves": len(moves)})
        db.commit()
    except IntegrityError:
        db.rollback()
        db.refresh(order)
        return _already_closed(db, s, order)
    db.refresh(s)

    log.info("closed session %s, total %s via %s", s.id, totals["total"], method.value)
    return PayResult(
        session_id=s.id, order_id=order.id, payment_id=p.id, table_fee=table_fee,
        subtotal=totals["subtotal"], tax=totals["tax"], total=totals["total"],
        tendered_amount=tendered, change_due=max(table_billing.ZERO, tendered - totals["total"]),
    )

def _already_closed(db: Session, s: TableSession, order: Order) -> PayResult:
    p = db.query(Payment).filter(Payment.order_id == order.id).first()
    line = table_time_line(db, order)
    tendered = money(p.tendered_amount) if p else table_billing.ZERO
    total = money(order.total)
    return PayResult(
        session_id=s.id, order_id=order.id, payment_id=p.id if p else None,
        table_fee=money(line.line_total) if line else table_billing.ZERO,
        subtotal=money(order.subtotal), tax=money(order.tax_total), total=total,
        tendered_amount=tendered, change_due=max(table_billing.ZERO, tendered - total),
        already_closed=True,
    )


def session_row(s: TableSession) -> dict:
    return {
        "id": s.id,
        "pool_table_id": s.pool_table_id,
        "customer_id": s.customer_id,
        "customer_name": s.customer_name,
        "location_name": s.location_name,
        "status": s.status.value,
        "session_type": s.session_type.value,
        "target_duration_minutes": s.target_duration_minutes,
        "is_money_game": bool(s.is_money_game),
        "bet_amount": float(s.bet_amount) if s.bet_amount is not None else None,
        "is_prepaid": bool(s.is_prepaid),
        "opened_at": as_utc(s.opened_at),
        "paused_at": as_utc(s.paused_at),
        "accumulated_paused_time": s.accumulated_paused_time or 0,
        "released_at": as_utc(s.released_at),
        "closed_at": as_utc(s.closed_at),
    }
