from fastapi import APIRouter, Depends, Query
from supabase import AsyncClient
from typing import List, Literal, Optional

from admindash.core.dependencies import get_supabase, require_permission
from admindash.modules.auth.store import AuthStore
from admindash.modules.customers.schemas import (
    CustomerCreate, CustomerResponse, CustomerStats, CustomerStatusUpdate
)
from admindash.modules.customers.service import CustomerService

router = APIRouter(prefix="/customers", tags=["customers"])


def get_customer_service(supabase: AsyncClient = Depends(get_supabase)) -> CustomerService:
    return CustomerService(supabase)


@router.get("", response_model=List[CustomerResponse])
async def list_customers(
    search: Optional[str] = None,
    status: Literal["all", "active", "inactive"] = "all",
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    store: AuthStore = Depends(require_permission("can_view_customers")),
    service: CustomerService = Depends(get_customer_service)
):
    """List customers; search matches name, email or phone"""
    return await service.list_customers(search=search, status=status, limit=limit, offset=offset)


@router.post("", response_model=CustomerResponse, status_code=201)
async def create_customer(
    customer_data: CustomerCreate,
    store: AuthStore = Depends(require_permission("can_create_customers")),
    service: CustomerService = Depends(get_customer_service)
):
    return await service.create_customer(customer_data)


@router.get("/stats", response_model=CustomerStats)
async def get_customer_stats(
    store: AuthStore = Depends(require_permission("can_view_customers")),
    service: CustomerService = Depends(get_customer_service)
):
    return await service.get_stats()


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: str,
    store: AuthStore = Depends(require_permission("can_view_customers")),
    service: CustomerService = Depends(get_customer_service)
):
    return await service.get_customer(customer_id)


@router.patch("/{customer_id}/status", response_model=CustomerResponse)
async def update_customer_status(
    customer_id: str,
    update: CustomerStatusUpdate,
    store: AuthStore = Depends(require_permission("can_edit_customers")),
    service: CustomerService = Depends(get_customer_service)
):
    """Activate or deactivate a customer"""
    return await service.update_customer_status(customer_id, update.status)
