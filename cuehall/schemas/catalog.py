from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal

ProductCategoryLiteral = Literal["TABLE_TIME", "FOOD", "DRINK", "OTHER"]

class PoolTableIn(BaseModel):
    name: str = Field(min_length=1)
    hourly_rate: float = Field(ge=0)
    is_active: bool = True

class PoolTableOut(PoolTableIn):
    id: str
    occupied: bool = False

class ProductIn(BaseModel):
    sku: str = Field(min_length=1)
    name: str
    category: ProductCategoryLiteral = "OTHER"
    price: float = Field(default=0, ge=0)
    tax_rate: float = Field(default=0, ge=0, le=1)
    is_active: bool = True

class ProductOut(ProductIn):
    id: str

class OrderItemIn(BaseModel):
    product_id: str

class OrderItemQtyIn(BaseModel):
    quantity: int

class TierIn(BaseModel):
    name: str = Field(min_length=1)
    discount_percent: float = Field(default=0, ge=0, le=100)

class CustomerIn(BaseModel):
    name: str = Field(min_length=1)
    phone: Optional[str] = None
    tier_id: Optional[str] = None

class IngredientIn(BaseModel):
    name: str = Field(min_length=1)
    uom: str = "pcs"
    min_level: float = Field(default=0, ge=0)

class RecipeLineIn(BaseModel):
    ingredient_id: str
    qty: float = Field(gt=0)

class RecipeIn(BaseModel):
    lines: list[RecipeLineIn] = []

class StockAdjustIn(BaseModel):
    ingredient_id: str
    type: Literal["PURCHASE", "ADJUST", "WASTAGE"] = "ADJUST"
    qty_change: float
    reason: Optional[str] = None

    @field_validator("qty_change")
    @classmethod
    def _non_zero(cls, v):
        if v == 0:
            raise ValueError("qty_change must not be zero")
        return v

class VoidItemIn(BaseModel):
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("a reason is required to void an item")
        return v
