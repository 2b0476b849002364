from fastapi import APIRouter, Depends, File, Query, UploadFile
from supabase import AsyncClient
from typing import List

from admindash.core.dependencies import get_supabase, require_permission
from admindash.modules.auth.store import AuthStore
from admindash.modules.products.schemas import (
    ProductCreate, ProductImageResponse, ProductResponse, ProductUpdate
)
from admindash.modules.products.service import ProductService

router = APIRouter(prefix="/products", tags=["products"])


def get_product_service(supabase: AsyncClient = Depends(get_supabase)) -> ProductService:
    return ProductService(supabase)


@router.get("", response_model=List[ProductResponse])
async def list_products(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    store: AuthStore = Depends(require_permission("can_view_products")),
    service: ProductService = Depends(get_product_service)
):
    return await service.list_products(limit=limit, offset=offset)


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    product_data: ProductCreate,
    store: AuthStore = Depends(require_permission("can_create_products")),
    service: ProductService = Depends(get_product_service)
):
    """Create a product; status follows stock and a SKU is generated when none is given"""
    return await service.create_product(product_data, store.state.session.user_id)


@router.post("/images", response_model=ProductImageResponse, status_code=201)
async def upload_product_image(
    file: UploadFile = File(...),
    store: AuthStore = Depends(require_permission("can_create_products", "can_edit_products", require_all=False)),
    service: ProductService = Depends(get_product_service)
):
    """Upload a product image (max 5MB); pass the returned url as image_url"""
    content = await file.read()
    return await service.upload_image(file.filename or "image", content, file.content_type)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    store: AuthStore = Depends(require_permission("can_view_products")),
    service: ProductService = Depends(get_product_service)
):
    return await service.get_product(product_id)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    product_data: ProductUpdate,
    store: AuthStore = Depends(require_permission("can_edit_products")),
    service: ProductService = Depends(get_product_service)
):
    return await service.update_product(product_id, product_data)


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: str,
    store: AuthStore = Depends(require_permission("can_delete_products")),
    service: ProductService = Depends(get_product_service)
):
    """Delete product and its image"""
    await service.delete_product(product_id)
    return None
