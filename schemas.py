"""
Database and API Schemas for the PharmaCare backend

Collection models map to a MongoDB collection named after the lowercase class
name (Medicine -> "medicine", User -> "user"). The remaining models shape
request bodies and responses.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field


class Medicine(BaseModel):
    """
    Medicines held in stock
    Collection: "medicine"
    """
    name: str = Field(..., min_length=1, description="Medicine name, e.g. Paracetamol 500mg")
    company: str = Field(..., min_length=1, description="Manufacturer")
    price: Decimal = Field(..., gt=0, description="Unit price")
    quantity: int = Field(..., ge=0, description="Units in stock")
    expiry_date: date = Field(..., description="Expiry date")


class MedicineUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    company: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, gt=0)
    quantity: Optional[int] = Field(None, ge=0)
    expiry_date: Optional[date] = None


class MedicineOut(BaseModel):
    id: str
    name: str
    company: str
    price: Decimal
    quantity: int
    expiry_date: date
    created_at: Optional[datetime] = None


class StockLine(BaseModel):
    id: str = Field(..., description="Medicine id")
    quantity: int = Field(..., ge=1)


class StockProcessRequest(BaseModel):
    items: List[StockLine] = Field(default_factory=list)


class StockProcessResult(BaseModel):
    id: str
    quantity: int
    updated: bool


class User(BaseModel):
    """
    Staff accounts
    Collection: "user"
    """
    full_name: str
    username: str
    email: EmailStr
    password_hash: str
    role: str = Field("staff", description="admin | staff")


class UserOut(BaseModel):
    id: str
    full_name: str
    username: str
    email: str
    role: str


class SignupRequest(BaseModel):
    full_name: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    email: EmailStr
    password: str
    confirm_password: str


class LoginRequest(BaseModel):
    username: str = Field(..., description="Username or email")
    password: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    password: str
    confirm_password: str


class CartItemRequest(BaseModel):
    medicine_id: str
    quantity: int


class CartQuantityRequest(BaseModel):
    quantity: int


class DiscountRequest(BaseModel):
    discount: Decimal = Field(Decimal("0"))


class CartLineOut(BaseModel):
    medicine_id: str
    name: str
    unit_price: Decimal
    quantity: int
    max_stock: int
    line_total: Decimal


class TotalsOut(BaseModel):
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


class CartOut(BaseModel):
    id: str
    items: List[CartLineOut]
    totals: TotalsOut


class CheckoutRequest(BaseModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    discount: Optional[Decimal] = None


class BillItemOut(BaseModel):
    medicine_id: str
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal


class BillOut(BaseModel):
    bill_number: str
    customer_name: str
    customer_phone: Optional[str] = None
    items: List[BillItemOut]
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    created_at: datetime


class SoftFailureOut(BaseModel):
    operation: str
    detail: str
    medicine_id: Optional[str] = None
    quantity: Optional[int] = None


class CheckoutOut(BaseModel):
    bill: BillOut
    stock_synced: bool
    failures: List[SoftFailureOut] = Field(default_factory=list)


class ClassifiedMedicineOut(BaseModel):
    medicine: MedicineOut
    status: str
    days_to_expiry: int


class StockSummaryOut(BaseModel):
    counts: Dict[str, int]
    total_medicines: int
    total_units: int
    total_value: Decimal
    recent: List[ClassifiedMedicineOut]
    alerts: Dict[str, List[ClassifiedMedicineOut]]


class SalesSummaryOut(BaseModel):
    today_bills: int
    today_amount: Decimal
    total_bills: int
    total_amount: Decimal


class DashboardOut(BaseModel):
    stock: StockSummaryOut
    stock_levels: Dict[str, int]
    sales: SalesSummaryOut
    recent_bills: List[BillOut]
