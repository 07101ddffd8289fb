import logging
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from cuehall.db import get_db
from cuehall.config import settings
from cuehall.util.security import hash_pw
from cuehall.models.core import (
    User, UserRoleCode, PoolTable, Product, ProductCategory, TABLE_TIME_SKU,
)

router = APIRouter(prefix="/admin", tags=["admin"])
log = logging.getLogger(__name__)

@router.post("/dev-bootstrap")
def dev_bootstrap(db: Session = Depends(get_db)):
    if settings.APP_ENV not in ("dev", "test"):
        raise HTTPException(403, detail="Not allowed")

    # Admin user
    admin = db.query(User).filter(User.mobile == "9999999999").first()
    if not admin:
        admin = User(name="Admin", mobile="9999999999", pass_hash=hash_pw("admin"),
                     role=UserRoleCode.ADMIN, active=True)
        db.add(admin); db.flush()

    # Cashier user
    cashier = db.query(User).filter(User.mobile == "8888888888").first()
    if not cashier:
        cashier = User(name="Cashier", mobile="8888888888", pass_hash=hash_pw("cashier"),
                       role=UserRoleCode.CASHIER, active=True)
        db.add(cashier); db.flush()

    # TABLE_TIME product, required by release / pay
    tt = db.query(Product).filter(Product.sku == TABLE_TIME_SKU).first()
    if not tt:
        tt = Product(sku=TABLE_TIME_SKU, name="Table time", category=ProductCategory.TABLE_TIME,
                     price=Decimal("0"), tax_rate=Decimal("0"), is_active=True)
        db.add(tt); db.flush()

    # One table to play on
    table = db.query(PoolTable).filter(PoolTable.name == "Table 1").first()
    if not table:
        table = PoolTable(name="Table 1", hourly_rate=Decimal("100.00"), is_active=True)
        db.add(table); db.flush()

    db.commit()
    log.info("dev bootstrap done")
    return {
        "admin_mobile": admin.mobile,
        "admin_password": "admin",
        "cashier_mobile": cashier.mobile,
        "cashier_password": "cashier",
        "table_time_product_id": tt.id,
        "pool_table_id": table.id,
    }
