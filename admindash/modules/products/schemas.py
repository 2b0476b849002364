from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

IN_STOCK = "In Stock"
OUT_OF_STOCK = "Out of Stock"


def stock_status(stock: int) -> str:
    return IN_STOCK if stock > 0 else OUT_OF_STOCK


class ProductFields(BaseModel):
    name: str
    description: str
    price: float = Field(gt=0)
    discount: float = Field(default=0, ge=0, le=100)
    category: str
    stock: int = Field(ge=0)
    image_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Product name is required")
        return value.strip()

    @field_validator("description")
    @classmethod
    def description_long_enough(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Description is required")
        if len(value.strip()) < 10:
            raise ValueError("Description must be at least 10 characters")
        return value.strip()

    @field_validator("category")
    @classmethod
    def category_selected(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Please select a category")
        return value.strip()


class ProductCreate(ProductFields):
    sku: Optional[str] = None


class ProductUpdate(ProductFields):
    """Full replacement of the editable fields; image_url is kept when not given"""


class ProductResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float
    discount: float = 0
    category: Optional[str] = None
    stock: int = 0
    image_url: Optional[str] = None
    sku: Optional[str] = None
    status: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductImageResponse(BaseModel):
    url: str
    path: str
