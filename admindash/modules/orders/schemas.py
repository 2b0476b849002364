from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime

OrderStatus = Literal["pending", "delivered", "cancelled"]
PaymentStatus = Literal["paid", "pending", "failed"]


class OrderCustomer(BaseModel):
    name: str
    email: EmailStr
    phone: Optional[str] = ""

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Customer information is required")
        return value.strip()


class ShippingAddress(BaseModel):
    street: str
    apt: Optional[str] = ""
    city: str
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None

    @field_validator("street", "city")
    @classmethod
    def required_part(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Shipping address is required")
        return value.strip()


class OrderItemCreate(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class OrderCreate(BaseModel):
    customer: OrderCustomer
    items: List[OrderItemCreate] = Field(min_length=1)
    shipping_address: ShippingAddress


class OrderItem(BaseModel):
    id: str
    name: str
    image_url: Optional[str] = None
    quantity: int
    unit_price: float
    total_price: float


class Payment(BaseModel):
    status: PaymentStatus = "pending"
    method: Optional[str] = None
    paid_at: Optional[datetime] = None


class OrderTotals(BaseModel):
    subtotal: float
    tax: float
    shipping_cost: float
    total: float


class OrderResponse(OrderTotals):
    id: str
    customer: OrderCustomer
    items: List[OrderItem]
    shipping_address: ShippingAddress
    payment: Payment
    status: OrderStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: dict) -> "OrderResponse":
        """orders row (customer stored in flat columns for searching) -> response"""
        return cls(
            id=row["id"],
            customer=OrderCustomer(
                name=row["customer_name"],
                email=row["customer_email"],
                phone=row.get("customer_phone") or "",
            ),
            items=row.get("items") or [],
            shipping_address=row["shipping_address"],
            payment=row.get("payment") or {},
            subtotal=row["subtotal"],
            tax=row["tax"],
            shipping_cost=row["shipping_cost"],
            total=row["total"],
            status=row["status"],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class OrderPage(BaseModel):
    orders: List[OrderResponse]
    pagination: Pagination


class OrderStats(BaseModel):
    total_orders: int
    pending_orders: int
    delivered_orders: int
    cancelled_orders: int
    total_revenue: float
    todays_orders: int
    todays_revenue: float
