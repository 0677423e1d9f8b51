"""
Backend row schemas

Each model is the shape written to one Supabase table:

- ProductIn -> "products"
- OrderIn -> "orders"
- OrderItemIn -> "order_items"

ShippingForm is the checkout form; it is not stored on its own.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.constants import PAYMENT_CASH_ON_DELIVERY, STATUS_PENDING


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1, description="Product name")
    description: str = Field("", description="Product description")
    price: float = Field(..., ge=0, description="Unit price")
    image_url: str = Field("", description="Image URL")
    category: str = Field("", description="Category, e.g. 'shirts', 'shoes'")
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    stock: int = Field(0, ge=0, description="Units available")
    is_active: bool = Field(True, description="Shown in the storefront")


class ShippingForm(BaseModel):
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    address: str = ""
    city: str = ""
    zip_code: str = ""

    def missing_fields(self) -> List[str]:
        return [name for name, value in self.model_dump().items() if not str(value).strip()]


class OrderIn(BaseModel):
    user_id: str
    customer_name: str
    customer_email: str
    customer_phone: str
    address: str
    city: str
    zip_code: str
    total_amount: float = Field(..., ge=0)
    status: str = STATUS_PENDING
    payment_method: str = PAYMENT_CASH_ON_DELIVERY


class OrderItemIn(BaseModel):
    order_id: str
    product_id: str
    quantity: int
    size: Optional[str] = None
    color: Optional[str] = None
    price: float = Field(..., ge=0)
