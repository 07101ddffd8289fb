from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import func
from sqlalchemy.orm import Session
from cuehall.models.core import (
    Ingredient, Order, OrderItem, Product, ProductCategory, RecipeBOM, StockMove, StockMoveType,
)

def q3(x) -> Decimal:
    if not isinstance(x, Decimal):
        x = Decimal(str(x or 0))
    return x.quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)

def deduct_for_order(db: Session, order: Order) -> list[StockMove]:
    """Write SALE moves for every recipe component of the order's lines.

    Table time has no recipe and is skipped. Products without a recipe are
    sold without touching stock.
    """
    lines = (
        db.query(OrderItem, Product)
        .join(Product, Product.id == OrderItem.product_id)
        .filter(OrderItem.order_id == order.id, Product.category != ProductCategory.TABLE_TIME)
        .all()
    )
    moves = []
    for line, product in lines:
        if not line.quantity or line.quantity <= 0:
            continue
        recipes = db.query(RecipeBOM).filter(RecipeBOM.product_id == product.id).all()
        for r in recipes:
            used = q3(q3(r.qty) * Decimal(line.quantity))
            if used <= 0:
                continue
            m = StockMove(
                ingredient_id=r.ingredient_id,
                type=StockMoveType.SALE,
                qty_change=-used,
                reason=f"Order {order.id}",
                ref_order_id=order.id,
                ref_order_item_id=line.id,
            )
            db.add(m)
            moves.append(m)
    db.flush()
    return moves

def set_recipe(db: Session, product_id: str, lines: list[tuple[str, Decimal]]) -> None:
    db.query(RecipeBOM).filter(RecipeBOM.product_id == product_id).delete()
    for ingredient_id, qty in lines:
        db.add(RecipeBOM(product_id=product_id, ingredient_id=ingredient_id, qty=q3(qty)))
    db.flush()

def stock_levels(db: Session) -> list[dict]:
    sums = (
        db.query(StockMove.ingredient_id, func.coalesce(func.sum(StockMove.qty_change), 0))
        .group_by(StockMove.ingredient_id)
        .all()
    )
    levels = {ing_id: q3(qty) for ing_id, qty in sums}
    out = []
    for ing in db.query(Ingredient).filter(Ingredient.deleted_at.is_(None)).order_by(Ingredient.name.asc()).all():
        qty = levels.get(ing.id, q3(0))
        out.append({
            "ingredient_id": ing.id,
            "name": ing.name,
            "uom": ing.uom,
            "qty": float(qty),
            "min_level": float(ing.min_level or 0),
            "low": qty <= q3(ing.min_level),
        })
    return out
