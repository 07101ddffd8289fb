from pydantic import BaseModel, Field, model_validator
from typing import Optional, Literal

SessionTypeLiteral = Literal["OPEN", "FIXED"]
PayMethodLiteral = Literal["CASH", "GCASH", "CARD", "OTHER"]

class SessionOptions(BaseModel):
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    session_type: SessionTypeLiteral = "OPEN"
    target_duration_minutes: Optional[int] = Field(default=None, gt=0)
    is_money_game: bool = False
    bet_amount: Optional[float] = Field(default=None, ge=0)
    is_prepaid: bool = False
    prepaid_amount: Optional[float] = Field(default=None, gt=0)  # money taken at booking
    prepaid_method: PayMethodLiteral = "CASH"
    override_hourly_rate: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_mode(self):
        if self.session_type == "FIXED" and not self.target_duration_minutes:
            raise ValueError("target_duration_minutes is required for FIXED sessions")
        if self.session_type == "OPEN":
            if self.is_prepaid:
                raise ValueError("only FIXED sessions can be prepaid")
            self.target_duration_minutes = None
        if self.is_prepaid and self.prepaid_amount is None:
            raise ValueError("prepaid_amount is required for prepaid bookings")
        if not self.is_prepaid and self.prepaid_amount is not None:
            raise ValueError("prepaid_amount is only accepted with is_prepaid")
        if self.is_money_game and self.bet_amount is None:
            raise ValueError("bet_amount is required for money games")
        if not self.is_money_game:
            self.bet_amount = None
        return self

class SessionOpenIn(SessionOptions):
    pool_table_id: str

class WalkInIn(BaseModel):
    customer_name: str = Field(min_length=1)
    customer_id: Optional[str] = None

class PayIn(BaseModel):
    method: PayMethodLiteral = "CASH"
    tendered_amount: float = Field(gt=0)

class TableBillOut(BaseModel):
    elapsed_minutes: int
    table_fee: float
    prepaid_credit: float
    net_table_fee: float
    item_total: float
    total: float
    is_paused: bool
    is_overtime: bool

class PayOut(BaseModel):
    session_id: str
    order_id: str
    payment_id: Optional[str] = None
    table_fee: float
    subtotal: float
    tax: float
    total: float
    tendered_amount: float
    change_due: float
    already_closed: bool
