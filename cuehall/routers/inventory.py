# cuehall/routers/inventory.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from decimal import Decimal

from cuehall.db import get_db
from cuehall.deps import require_auth, require_perm
from cuehall.models.core import Ingredient, Product, ProductCategory, StockMove, StockMoveType
from cuehall.schemas.catalog import IngredientIn, RecipeIn, StockAdjustIn
from cuehall.services.inventory import q3, set_recipe, stock_levels
from cuehall.util.audit import log_action

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post("/ingredients")
def add_ingredient(body: IngredientIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("SETTINGS_EDIT"))):
    try:
        i = Ingredient(name=body.name, uom=body.uom, min_level=q3(body.min_level))
        db.add(i)
        db.flush()
        log_action(db, sub, "CREATE_INVENTORY_ITEM", "ingredient", i.id, {"name": i.name})
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(409, detail="ingredient with this name already exists")
    return {"id": i.id, "name": i.name, "uom": i.uom, "min_level": float(i.min_level)}


@router.put("/recipes/{product_id}")
def put_recipe(product_id: str, body: RecipeIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("SETTINGS_EDIT"))):
    """Replace the bill of materials of a product."""
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(404, detail="product not found")
    if product.category == ProductCategory.TABLE_TIME:
        raise HTTPException(400, detail="table time has no recipe")
    for line in body.lines:
        if not db.get(Ingredient, line.ingredient_id):
            raise HTTPException(404, detail=f"ingredient {line.ingredient_id} not found")

    set_recipe(db, product_id, [(l.ingredient_id, Decimal(str(l.qty))) for l in body.lines])
    log_action(db, sub, "SET_RECIPE", "product", product_id, {"lines": len(body.lines)})
    db.commit()
    return {"ok": True, "lines": len(body.lines)}


@router.post("/moves")
def adjust_stock(body: StockAdjustIn, db: Session = Depends(get_db), sub: str = Depends(require_perm("SETTINGS_EDIT"))):
    if not db.get(Ingredient, body.ingredient_id):
        raise HTTPException(404, detail="ingredient not found")
    m = StockMove(ingredient_id=body.ingredient_id, type=StockMoveType(body.type),
                  qty_change=q3(body.qty_change), reason=body.reason)
    db.add(m)
    db.flush()
    log_action(db, sub, "ADJUST_INVENTORY_ITEM", "ingredient", body.ingredient_id,
               {"type": body.type, "qty_change": m.qty_change})
    db.commit()
    return {"id": m.id}


@router.get("/stock")
def get_stock(db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return stock_levels(db)
