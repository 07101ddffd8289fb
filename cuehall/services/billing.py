from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy.orm import Session
from cuehall.models.core import Order, OrderItem, Product, ProductCategory

def money(x) -> Decimal:
    if not isinstance(x, Decimal):
        x = Decimal(str(x or 0))
    return x.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

def compute_order_totals(db: Session, order_id: str, include_table_time: bool = True) -> dict:
    """Subtotal, tax and total of an order's lines.

    While a tab is still open the TABLE_TIME line (if release already froze
    one) is left out; the table fee is shown separately by the live bill.
    """
    lines = (
        db.query(OrderItem, Product)
        .join(Product, Product.id == OrderItem.product_id)
        .filter(OrderItem.order_id == order_id)
        .all()
    )
    subtotal = Decimal("0")
    tax_total = Decimal("0")
    table_time = Decimal("0")

    for l, product in lines:
        line_total = money(l.line_total)
        if product.category == ProductCategory.TABLE_TIME:
            if not include_table_time:
                continue
            table_time += line_total
        subtotal += line_total
        # tax rounded per line, same as the printed receipt
        tax_total += money(line_total * Decimal(str(product.tax_rate or 0)))

    return {
        "subtotal": money(subtotal),
        "tax": money(tax_total),
        "table_time": money(table_time),
        "items": money(subtotal - table_time),
        "total": money(subtotal + tax_total),
    }

def refresh_order_totals(db: Session, order: Order, include_table_time: bool = False) -> dict:
    totals = compute_order_totals(db, order.id, include_table_time=include_table_time)
    order.subtotal = totals["subtotal"]
    order.tax_total = totals["tax"]
    order.total = totals["total"]
    return totals

def add_item(db: Session, order: Order, product: Product) -> OrderItem:
    line = (
        db.query(OrderItem)
        .filter(OrderItem.order_id == order.id, OrderItem.product_id == product.id)
        .first()
    )
    if line:
        line.quantity = line.quantity + 1
        line.line_total = money(Decimal(line.quantity) * money(line.unit_price))
    else:
        unit_price = money(product.price)
        line = OrderItem(order_id=order.id, product_id=product.id, quantity=1,
                         unit_price=unit_price, line_total=unit_price)
        db.add(line)
    db.flush()
    refresh_order_totals(db, order)
    return line

def set_item_quantity(db: Session, order: Order, line: OrderItem, quantity: int) -> OrderItem | None:
    if quantity <= 0:
        db.delete(line)
        db.flush()
        refresh_order_totals(db, order)
        return None
    line.quantity = quantity
    line.line_total = money(Decimal(quantity) * money(line.unit_price))
    db.flush()
    refresh_order_totals(db, order)
    return line
