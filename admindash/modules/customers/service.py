import logging
from typing import List, Optional

from supabase import AsyncClient

from admindash.core.errors import BackendError, ErrorKind, is_unique_violation, to_backend_error
from admindash.core.query import search_conditions
from admindash.core.timestamps import parse_timestamp, utc_now
from admindash.modules.customers.schemas import (
    CustomerCreate, CustomerResponse, CustomerStats, CustomerStatus
)

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = ("name", "email", "phone")


class CustomerService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    async def list_customers(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[CustomerResponse]:
        """Newest first, optionally matching search against name, email and phone"""
        query = self.supabase.table("customers")\
            .select("*")\
            .order("created_at", desc=True)

        conditions = search_conditions(SEARCH_COLUMNS, search)
        if conditions:
            query = query.or_(",".join(conditions))
        if status and status != "all":
            query = query.eq("status", status)

        try:
            result = await query.limit(limit).offset(offset).execute()
        except Exception as e:
            logger.error(f"Error fetching customers: {e}")
            raise to_backend_error(e)
        return [CustomerResponse(**row) for row in result.data or []]

    async def get_customer(self, customer_id: str) -> CustomerResponse:
        try:
            result = await self.supabase.table("customers")\
                .select("*")\
                .eq("id", customer_id)\
                .single()\
                .execute()
        except Exception as e:
            error = to_backend_error(e)
            if error.kind is ErrorKind.NOT_FOUND:
                raise BackendError(ErrorKind.NOT_FOUND, "Customer not found", error.code)
            raise error
        return CustomerResponse(**result.data)

    async def create_customer(self, customer_data: CustomerCreate) -> CustomerResponse:
        try:
            result = await self.supabase.table("customers").insert({
                "name": customer_data.name,
                "email": customer_data.email,
                "phone": customer_data.phone or None,
                "status": customer_data.status,
                "total_orders": 0,
                "total_spent": 0,
            }).execute()
        except Exception as e:
            if is_unique_violation(e):
                raise BackendError(ErrorKind.VALIDATION, "A customer with this email already exists", e.code)
            logger.error(f"Error creating customer: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        if not result.data:
            raise BackendError(ErrorKind.MUTATION_FAILED, "Failed to create customer")
        return CustomerResponse(**result.data[0])

    async def update_customer_status(self, customer_id: str, status: CustomerStatus) -> CustomerResponse:
        try:
            result = await self.supabase.table("customers")\
                .update({"status": status, "updated_at": utc_now().isoformat()})\
                .eq("id", customer_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error updating status of customer {customer_id}: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        if not result.data:
            raise BackendError(ErrorKind.NOT_FOUND, "Customer not found")
        return CustomerResponse(**result.data[0])

    async def get_stats(self) -> CustomerStats:
        try:
            result = await self.supabase.table("customers")\
                .select("status, created_at")\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching customer stats: {e}")
            raise to_backend_error(e)

        customers = result.data or []
        month_start = utc_now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return CustomerStats(
            total=len(customers),
            active=sum(1 for c in customers if c.get("status") == "active"),
            inactive=sum(1 for c in customers if c.get("status") == "inactive"),
            new_this_month=sum(
                1 for c in customers
                if c.get("created_at") and parse_timestamp(c["created_at"]) >= month_start
            ),
        )
