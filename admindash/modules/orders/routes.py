from datetime import date
from fastapi import APIRouter, Depends, Query
from supabase import AsyncClient
from typing import Literal, Optional

from admindash.core.dependencies import get_supabase, require_permission
from admindash.modules.auth.store import AuthStore
from admindash.modules.orders.schemas import (
    OrderCreate, OrderPage, OrderResponse, OrderStats, OrderStatusUpdate
)
from admindash.modules.orders.service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])

# Either permission opens the orders page
can_view_orders = require_permission("can_view_orders", "can_edit_orders", require_all=False)


def get_order_service(supabase: AsyncClient = Depends(get_supabase)) -> OrderService:
    return OrderService(supabase)


@router.get("", response_model=OrderPage)
async def list_orders(
    search: Optional[str] = None,
    status: Literal["all", "pending", "delivered", "cancelled"] = "all",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    store: AuthStore = Depends(can_view_orders),
    service: OrderService = Depends(get_order_service)
):
    """Paginated orders; search matches order id, customer name or email, or the exact total"""
    return await service.list_orders(
        search=search, status=status, date_from=date_from, date_to=date_to, page=page, limit=limit
    )


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    order_data: OrderCreate,
    store: AuthStore = Depends(require_permission("can_create_orders")),
    service: OrderService = Depends(get_order_service)
):
    """Create a pending order priced from the products table"""
    return await service.create_order(order_data)


@router.get("/stats", response_model=OrderStats)
async def get_order_stats(
    store: AuthStore = Depends(can_view_orders),
    service: OrderService = Depends(get_order_service)
):
    return await service.get_stats()


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    store: AuthStore = Depends(can_view_orders),
    service: OrderService = Depends(get_order_service)
):
    return await service.get_order(order_id)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    update: OrderStatusUpdate,
    store: AuthStore = Depends(require_permission("can_edit_orders")),
    service: OrderService = Depends(get_order_service)
):
    return await service.update_order_status(order_id, update.status)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str,
    store: AuthStore = Depends(require_permission("can_edit_orders")),
    service: OrderService = Depends(get_order_service)
):
    return await service.cancel_order(order_id)
