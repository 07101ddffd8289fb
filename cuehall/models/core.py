from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Integer, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime
from decimal import Decimal
from cuehall.db import Base
from cuehall.models.common import IdMixin, TSMMixin

# ── Enums ───────────────────────────────────────────────────────────────────
class SessionStatus(PyEnum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"

class SessionType(PyEnum):
    OPEN = "OPEN"    # open-ended, half-hour blocks
    FIXED = "FIXED"  # pre-booked duration, per-minute overage

class OrderStatus(PyEnum):
    OPEN = "OPEN"
    PAID = "PAID"

class PayMethod(PyEnum):
    CASH = "CASH"
    GCASH = "GCASH"
    CARD = "CARD"
    OTHER = "OTHER"

class ProductCategory(PyEnum):
    TABLE_TIME = "TABLE_TIME"
    FOOD = "FOOD"
    DRINK = "DRINK"
    OTHER = "OTHER"

class StockMoveType(PyEnum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    ADJUST = "ADJUST"
    WASTAGE = "WASTAGE"

class UserRoleCode(PyEnum):
    ADMIN = "ADMIN"
    CASHIER = "CASHIER"

TABLE_TIME_SKU = "TABLE_TIME"

# ── Identity ────────────────────────────────────────────────────────────────
class User(Base, IdMixin, TSMMixin):
    __tablename__ = "user"
    name: Mapped[str] = mapped_column(String(160))
    mobile: Mapped[str | None] = mapped_column(String(20), unique=True)
    pass_hash: Mapped[str] = mapped_column(String(200))
    role: Mapped[UserRoleCode] = mapped_column(Enum(UserRoleCode), default=UserRoleCode.CASHIER)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Tables & customers ──────────────────────────────────────────────────────
class PoolTable(Base, IdMixin, TSMMixin):
    __tablename__ = "pool_table"
    name: Mapped[str] = mapped_column(String(60), unique=True)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

class MembershipTier(Base, IdMixin, TSMMixin):
    __tablename__ = "membership_tier"
    name: Mapped[str] = mapped_column(String(60), unique=True)
    discount_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0)  # off table time

class Customer(Base, IdMixin, TSMMixin):
    __tablename__ = "customer"
    name: Mapped[str] = mapped_column(String(160))
    phone: Mapped[str | None] = mapped_column(String(20))
    tier_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("membership_tier.id"))

# ── Catalog ─────────────────────────────────────────────────────────────────
class Product(Base, IdMixin, TSMMixin):
    __tablename__ = "product"
    sku: Mapped[str] = mapped_column(String(60), unique=True)
    name: Mapped[str] = mapped_column(String(160))
    category: Mapped[ProductCategory] = mapped_column(Enum(ProductCategory), default=ProductCategory.OTHER)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), default=0)  # fraction, 0.12 = 12%
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Sessions / orders / payments ────────────────────────────────────────────
class TableSession(Base, IdMixin, TSMMixin):
    __tablename__ = "table_session"
    pool_table_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("pool_table.id"))
    customer_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("customer.id"))
    customer_name: Mapped[str | None] = mapped_column(String(160))
    location_name: Mapped[str | None] = mapped_column(String(120))  # walk-ins and released tabs
    status: Mapped[SessionStatus] = mapped_column(Enum(SessionStatus), default=SessionStatus.OPEN)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    paused_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    accumulated_paused_time: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    override_hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    session_type: Mapped[SessionType] = mapped_column(Enum(SessionType), default=SessionType.OPEN)
    target_duration_minutes: Mapped[int | None] = mapped_column(Integer)
    is_money_game: Mapped[bool] = mapped_column(Boolean, default=False)
    bet_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    is_prepaid: Mapped[bool] = mapped_column(Boolean, default=False)  # paid reservation
    released_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    opened_by_user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))

class Order(Base, IdMixin, TSMMixin):
    __tablename__ = "order"
    table_session_id: Mapped[str] = mapped_column(String(36), ForeignKey("table_session.id"), unique=True)
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.OPEN)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    tax_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)

class OrderItem(Base, IdMixin, TSMMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"))
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"))
    quantity: Mapped[int] = mapped_column(Integer)  # TABLE_TIME lines: billed minutes
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    __table_args__ = (
        UniqueConstraint("order_id", "product_id", name="uq_order_item_product"),
    )

class Payment(Base, IdMixin, TSMMixin):
    __tablename__ = "payment"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"), unique=True)
    method: Mapped[PayMethod] = mapped_column(Enum(PayMethod))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))          # applied as revenue
    tendered_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))  # handed over by the guest
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

class Prepayment(Base, IdMixin, TSMMixin):
    """Money taken up front for a fixed-duration booking."""
    __tablename__ = "prepayment"
    table_session_id: Mapped[str] = mapped_column(String(36), ForeignKey("table_session.id"), unique=True)
    method: Mapped[PayMethod] = mapped_column(Enum(PayMethod))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    received_by_user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

# ── Inventory ───────────────────────────────────────────────────────────────
class Ingredient(Base, IdMixin, TSMMixin):
    __tablename__ = "ingredient"
    name: Mapped[str] = mapped_column(String(160), unique=True)
    uom: Mapped[str] = mapped_column(String(20))  # pcs, ml, g ...
    min_level: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0)

class RecipeBOM(Base, TSMMixin):
    __tablename__ = "recipe_bom"
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("product.id"), primary_key=True)
    ingredient_id: Mapped[str] = mapped_column(String(36), ForeignKey("ingredient.id"), primary_key=True)
    qty: Mapped[Decimal] = mapped_column(Numeric(12, 3))  # per unit sold

class StockMove(Base, IdMixin, TSMMixin):
    __tablename__ = "stock_move"
    ingredient_id: Mapped[str] = mapped_column(String(36), ForeignKey("ingredient.id"))
    type: Mapped[StockMoveType] = mapped_column(Enum(StockMoveType))
    qty_change: Mapped[Decimal] = mapped_column(Numeric(12, 3))
    reason: Mapped[str | None] = mapped_column(Text)
    ref_order_id: Mapped[str | None] = mapped_column(String(36))
    ref_order_item_id: Mapped[str | None] = mapped_column(String(36))

# ── Audit ───────────────────────────────────────────────────────────────────
class ActionLog(Base, IdMixin, TSMMixin):
    __tablename__ = "action_log"
    actor_user_id: Mapped[str | None] = mapped_column(String(36))
    action_type: Mapped[str] = mapped_column(String(40))  # OPEN_TABLE, PAUSE_SESSION, ...
    entity_type: Mapped[str | None] = mapped_column(String(60))
    entity_id: Mapped[str | None] = mapped_column(String(36))
    details: Mapped[str | None] = mapped_column(Text)
