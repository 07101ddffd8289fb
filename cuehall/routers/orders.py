from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from cuehall.db import get_db
from cuehall.deps import require_perm
from cuehall.models.core import Order, OrderStatus, OrderItem, Product, ProductCategory
from cuehall.schemas.catalog import OrderItemIn, OrderItemQtyIn, VoidItemIn
from cuehall.services.billing import add_item, set_item_quantity, compute_order_totals
from cuehall.util.audit import log_action

router = APIRouter(prefix="/orders", tags=["orders"])


def _open_order(db: Session, order_id: str) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(404, detail="order not found")
    if order.status != OrderStatus.OPEN:
        raise HTTPException(409, detail="order is not open")
    return order


def _totals(db: Session, order: Order) -> dict:
    t = compute_order_totals(db, order.id, include_table_time=False)
    return {k: float(v) for k, v in t.items()}


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db), sub: str = Depends(require_perm("ORDER_EDIT"))):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(404, detail="order not found")
    rows = (
        db.query(OrderItem, Product)
        .join(Product, Product.id == OrderItem.product_id)
        .filter(OrderItem.order_id == order_id)
        .order_by(Product.name.asc())
        .all()
    )
    return {
        "id": order.id,
        "table_session_id": order.table_session_id,
        "status": order.status.value,
        "items": [
            {
                "id": line.id,
                "product_id": p.id,
                "name": p.name,
                "category": p.category.value,
                "quantity": line.quantity,
                "unit_price": float(line.unit_price),
                "line_total": float(line.line_total),
            }
            for line, p in rows
        ],
        "subtotal": float(order.subtotal or 0),
        "tax_total": float(order.tax_total or 0),
        "total": float(order.total or 0),
    }


@router.post("/{order_id}/items")
def add_order_item(order_id: str, body: OrderItemIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("ORDER_EDIT"))):
    order = _open_order(db, order_id)
    product: Product | None = db.get(Product, body.product_id)
    if not product or not product.is_active:
        raise HTTPException(404, detail="product not found")
    # table time is only ever written by release / pay
    if product.category == ProductCategory.TABLE_TIME:
        raise HTTPException(400, detail="table time cannot be added by hand")

    line = add_item(db, order, product)
    log_action(db, sub, "ADD_ITEM", "order_item", line.id, {"order_id": order.id, "product_id": product.id})
    db.commit()
    return {"id": line.id, "quantity": line.quantity, "line_total": float(line.line_total), "totals": _totals(db, order)}


@router.patch("/items/{item_id}")
def update_item_quantity(item_id: str, body: OrderItemQtyIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("ORDER_EDIT"))):
    line: OrderItem | None = db.get(OrderItem, item_id)
    if not line:
        raise HTTPException(404, detail="order item not found")
    order = _open_order(db, line.order_id)
    product = db.get(Product, line.product_id)
    if product and product.category == ProductCategory.TABLE_TIME:
        raise HTTPException(400, detail="table time cannot be edited by hand")

    kept = set_item_quantity(db, order, line, body.quantity)
    log_action(db, sub, "UPDATE_ITEM_QUANTITY", "order_item", item_id, {"quantity": body.quantity})
    db.commit()
    return {
        "id": item_id,
        "deleted": kept is None,
        "quantity": kept.quantity if kept else 0,
        "totals": _totals(db, order),
    }


@router.post("/items/{item_id}/void")
def void_item(item_id: str, body: VoidItemIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("ORDER_EDIT"))):
    """Take a line off an open tab, keeping the reason in the action log."""
    line: OrderItem | None = db.get(OrderItem, item_id)
    if not line:
        raise HTTPException(404, detail="order item not found")
    order = _open_order(db, line.order_id)
    product = db.get(Product, line.product_id)
    if product and product.category == ProductCategory.TABLE_TIME:
        raise HTTPException(400, detail="table time cannot be voided")

    details = {
        "order_id": order.id,
        "product_id": line.product_id,
        "quantity": line.quantity,
        "line_total": line.line_total,
        "reason": body.reason,
    }
    set_item_quantity(db, order, line, 0)
    log_action(db, sub, "VOID_ITEM", "order_item", item_id, details)
    db.commit()
    return {"id": item_id, "voided": True, "totals": _totals(db, order)}
