from pydantic import BaseModel, EmailStr, field_validator
from typing import Literal, Optional
from datetime import datetime

CustomerStatus = Literal["active", "inactive"]


class CustomerCreate(BaseModel):
    name: str
    email: EmailStr
    phone: Optional[str] = None
    status: CustomerStatus = "active"

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Customer name is required")
        return value.strip()


class CustomerStatusUpdate(BaseModel):
    status: CustomerStatus


class CustomerResponse(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    status: str = "active"
    total_orders: int = 0
    total_spent: float = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerStats(BaseModel):
    total: int
    active: int
    inactive: int
    new_this_month: int
