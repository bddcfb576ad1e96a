"""
Fun Prints schemas

Each top-level document model maps to a MongoDB collection named after the
lowercased class name (``product``, ``product_variant``, ``order``,
``bulk_enquiry``). Embedded models are stored inside their parent document.
"""
from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import List, Optional, Literal
from uuid import uuid4
from pydantic import BaseModel, Field, field_validator, model_validator

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
MOBILE_PATTERN = r"^\d{10}$"
PINCODE_PATTERN = r"^\d{6}$"


class PaymentMethod(str, Enum):
    COD = "COD"
    UPI = "UPI"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Catalogue

class Product(BaseModel):
    name: str
    category: str = "t-shirt"
    description: str = ""
    base_price: float = Field(..., ge=0, description="Price in INR")
    images: List[str] = Field(default_factory=list)
    enabled: bool = True


class ProductVariant(BaseModel):
    product_id: str
    color: str
    size: str
    stock: int = Field(0, ge=0)
    image_url: Optional[str] = None
    is_available: bool = False

    @model_validator(mode="after")
    def _derive_availability(self) -> "ProductVariant":
        self.is_available = self.stock > 0
        return self


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    base_price: Optional[float] = Field(None, ge=0)
    images: Optional[List[str]] = None
    enabled: Optional[bool] = None


class StockUpdate(BaseModel):
    stock: int


# Cart and checkout

class CartItem(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex, description="Cart line identity")
    product_id: str
    name: str
    unit_price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    size: str
    color: str
    image: str = ""
    logo: Optional[str] = None

    def merge_key(self) -> tuple[str, str, str]:
        return (self.product_id, self.size, self.color)


class Customer(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    mobile: str = Field(..., pattern=MOBILE_PATTERN)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v.strip()


class Address(BaseModel):
    pincode: str = Field(..., pattern=PINCODE_PATTERN)
    state: str = Field(..., min_length=1)
    district: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    building_line: str = Field(..., min_length=1)
    landmark: Optional[str] = None
    address_type: Literal["home", "work"] = "home"

    def one_line(self) -> str:
        parts = [self.building_line, self.landmark, self.city, self.district, self.state]
        return ", ".join(p for p in parts if p) + f" - {self.pincode}"


class Customization(BaseModel):
    logo_url: Optional[str] = None
    position: str = "front"
    scale: float = Field(1.0, gt=0)
    is_plain: bool = False


class OrderLineIn(BaseModel):
    product_id: str
    name: str = ""
    color: str
    size: str
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    image: str = ""

    @classmethod
    def from_cart_item(cls, item: CartItem) -> "OrderLineIn":
        return cls(
            product_id=item.product_id,
            name=item.name,
            color=item.color,
            size=item.size,
            quantity=item.quantity,
            unit_price=item.unit_price,
            image=item.image,
        )


class OrderRequest(BaseModel):
    items: List[OrderLineIn] = Field(..., min_length=1)
    customer: Customer
    address: Address
    payment_method: PaymentMethod
    order_code: Optional[str] = Field(None, pattern=r"^FP[0-9A-Z]{6,32}$")
    customization: Optional[Customization] = None
    # Informational only, never trusted
    total: Optional[float] = None


class OrderReceipt(BaseModel):
    order_code: str
    total_amount: float
    shipping_fee: float
    amount_due: float
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    order_status: OrderStatus


# Persisted order

class OrderLine(BaseModel):
    product_id: str
    variant_id: str
    name: str = ""
    color: str
    size: str
    quantity: int
    unit_price: float
    line_total: float
    image: str = ""


class PaymentProof(BaseModel):
    screenshot_url: str
    verified: bool = False
    created_at: Optional[datetime] = None


class Order(BaseModel):
    id: Optional[str] = None
    order_code: str
    customer: Customer
    address: Address
    items: List[OrderLine]
    customization: Optional[Customization] = None
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    order_status: OrderStatus
    total_amount: float
    shipping_fee: float = 0
    amount_due: float = 0
    payment_proofs: List[PaymentProof] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StatusUpdate(BaseModel):
    order_status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    force: bool = False

    @model_validator(mode="after")
    def _something_to_change(self) -> "StatusUpdate":
        if self.order_status is None and self.payment_status is None:
            raise ValueError("order_status or payment_status is required")
        return self


class PaymentProofIn(BaseModel):
    screenshot_url: str = Field(..., min_length=1)


# Enquiries

class ContactMessage(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    mobile: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class BulkEnquiry(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    mobile: str = Field(..., pattern=MOBILE_PATTERN)
    company: Optional[str] = None
    quantity: int = Field(..., ge=1)
    message: Optional[str] = None
