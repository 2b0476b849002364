import logging
import time
import uuid
from typing import List, Optional

from supabase import AsyncClient

from admindash.config import settings
from admindash.core.errors import BackendError, ErrorKind, to_backend_error
from admindash.modules.products.schemas import (
    ProductCreate, ProductImageResponse, ProductResponse, ProductUpdate, stock_status
)
from admindash.modules.users.service import validate_image

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    async def list_products(self, limit: int = 50, offset: int = 0) -> List[ProductResponse]:
        """Newest first"""
        try:
            result = await self.supabase.table("products")\
                .select("*")\
                .order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching products: {e}")
            raise to_backend_error(e)
        return [ProductResponse(**row) for row in result.data or []]

    async def get_product(self, product_id: str) -> ProductResponse:
        try:
            result = await self.supabase.table("products")\
                .select("*")\
                .eq("id", product_id)\
                .single()\
                .execute()
        except Exception as e:
            error = to_backend_error(e)
            if error.kind is ErrorKind.NOT_FOUND:
                raise BackendError(ErrorKind.NOT_FOUND, "Product not found", error.code)
            raise error
        return ProductResponse(**result.data)

    async def create_product(self, product_data: ProductCreate, created_by: str) -> ProductResponse:
        try:
            result = await self.supabase.table("products").insert({
                "name": product_data.name,
                "description": product_data.description,
                "price": product_data.price,
                "discount": product_data.discount,
                "category": product_data.category,
                "stock": product_data.stock,
                "image_url": product_data.image_url,
                "sku": product_data.sku or f"SKU-{int(time.time() * 1000)}",
                "status": stock_status(product_data.stock),
                "created_by": created_by,
            }).execute()
        except Exception as e:
            logger.error(f"Error creating product: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        if not result.data:
            raise BackendError(ErrorKind.MUTATION_FAILED, "Failed to add product")
        logger.info(f"Product {result.data[0].get('id')} created by {created_by}")
        return ProductResponse(**result.data[0])

    async def update_product(self, product_id: str, product_data: ProductUpdate) -> ProductResponse:
        """Overwrite the editable fields; the image is only replaced when a new URL is given"""
        update_data = product_data.model_dump(exclude={"image_url"})
        update_data["status"] = stock_status(product_data.stock)
        if product_data.image_url:
            update_data["image_url"] = product_data.image_url

        try:
            result = await self.supabase.table("products")\
                .update(update_data)\
                .eq("id", product_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error updating product {product_id}: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        if not result.data:
            raise BackendError(ErrorKind.NOT_FOUND, "Product not found")
        return ProductResponse(**result.data[0])

    async def delete_product(self, product_id: str) -> None:
        """Delete the product, then its image; a failed image removal is only logged"""
        product = await self.get_product(product_id)
        try:
            await self.supabase.table("products")\
                .delete()\
                .eq("id", product_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error deleting product {product_id}: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        if product.image_url:
            await self.remove_image(product.image_url.rsplit("/", 1)[-1])

    async def upload_image(self, filename: str, content: bytes, content_type: Optional[str]) -> ProductImageResponse:
        validate_image(content, content_type)
        extension = filename.rsplit(".", 1)[-1] if "." in filename else "png"
        file_path = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}.{extension}"
        bucket = self.supabase.storage.from_(settings.product_image_bucket)
        try:
            await bucket.upload(file_path, content, {
                "content-type": content_type,
                "cache-control": "3600",
                "upsert": "false",
            })
            url = await bucket.get_public_url(file_path)
        except Exception as e:
            logger.error(f"Product image upload failed: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)
        return ProductImageResponse(url=url, path=file_path)

    async def remove_image(self, path: str) -> bool:
        try:
            await self.supabase.storage.from_(settings.product_image_bucket).remove([path])
            return True
        except Exception as e:
            logger.error(f"Failed to delete product image {path}: {e}")
            return False
