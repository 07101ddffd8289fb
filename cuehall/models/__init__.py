# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    SessionStatus, SessionType, OrderStatus, PayMethod, ProductCategory, StockMoveType, UserRoleCode,
    TABLE_TIME_SKU,

    # Identity
    User,

    # Tables & customers
    PoolTable, MembershipTier, Customer,

    # Catalog
    Product,

    # Sessions / orders / payments
    TableSession, Order, OrderItem, Payment, Prepayment,

    # Inventory
    Ingredient, RecipeBOM, StockMove,

    # Audit
    ActionLog,
)

__all__ = [
    "SessionStatus", "SessionType", "OrderStatus", "PayMethod", "ProductCategory", "StockMoveType",
    "UserRoleCode", "TABLE_TIME_SKU",
    "User",
    "PoolTable", "MembershipTier", "Customer",
    "Product",
    "TableSession", "Order", "OrderItem", "Payment", "Prepayment",
    "Ingredient", "RecipeBOM", "StockMove",
    "ActionLog",
]
