from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from decimal import Decimal

from cuehall.db import get_db
from cuehall.deps import require_auth, require_perm
from cuehall.models.core import Product, ProductCategory
from cuehall.schemas.catalog import ProductIn
from cuehall.util.audit import log_action

router = APIRouter(prefix="/products", tags=["products"])


def _row(p: Product) -> dict:
    return {
        "id": p.id,
        "sku": p.sku,
        "name": p.name,
        "category": p.category.value,
        "price": float(p.price or 0),
        "tax_rate": float(p.tax_rate or 0),
        "is_active": bool(p.is_active),
    }


@router.post("")
def create_product(body: ProductIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("SETTINGS_EDIT"))):
    data = body.model_dump()
    data["category"] = ProductCategory(data["category"])
    data["price"] = Decimal(str(data["price"]))
    data["tax_rate"] = Decimal(str(data["tax_rate"]))
    try:
        p = Product(**data)
        db.add(p)
        db.flush()
        log_action(db, sub, "CREATE_PRODUCT", "product", p.id, {"sku": p.sku})
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail="product with this sku already exists")
    return _row(p)


@router.get("")
def list_products(include_inactive: bool = False, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    q = db.query(Product).filter(Product.deleted_at.is_(None))
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    return [_row(p) for p in q.order_by(Product.category.asc(), Product.name.asc()).all()]
