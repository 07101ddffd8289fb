from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from decimal import Decimal

from cuehall.db import get_db
from cuehall.deps import require_perm
from cuehall.models.core import Customer, MembershipTier
from cuehall.schemas.catalog import CustomerIn, TierIn
from cuehall.util.audit import log_action

router = APIRouter(prefix="/customers", tags=["customers"])

@router.post("/tiers")
def create_tier(body: TierIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("SETTINGS_EDIT"))):
    try:
        t = MembershipTier(name=body.name, discount_percent=Decimal(str(body.discount_percent)))
        db.add(t)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail="tier with this name already exists")
    return {"id": t.id, "name": t.name, "discount_percent": float(t.discount_percent)}

@router.post("")
def create_customer(body: CustomerIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("SESSION_OPERATE"))):
    if body.tier_id and not db.get(MembershipTier, body.tier_id):
        raise HTTPException(404, detail="membership tier not found")

    # same phone → same customer
    if body.phone:
        existing = db.query(Customer).filter(Customer.phone == body.phone).first()
        if existing:
            return {"id": existing.id, "created": False}

    c = Customer(**body.model_dump())
    db.add(c)
    db.flush()
    log_action(db, sub, "CREATE_CUSTOMER", "customer", c.id, {"tier_id": c.tier_id})
    db.commit()
    return {"id": c.id, "created": True}

@router.patch("/{customer_id}/tier")
def set_tier(customer_id: str, tier_id: str | None = None, db: Session = Depends(get_db), sub: str = Depends(require_perm("SETTINGS_EDIT"))):
    c = db.get(Customer, customer_id)
    if not c:
        raise HTTPException(404, detail="customer not found")
    if tier_id and not db.get(MembershipTier, tier_id):
        raise HTTPException(404, detail="membership tier not found")
    before = c.tier_id
    c.tier_id = tier_id
    log_action(db, sub, "MEMBERSHIP_UPGRADE", "customer", c.id, {"from": before, "to": tier_id})
    db.commit()
    return {"id": c.id, "tier_id": c.tier_id}
