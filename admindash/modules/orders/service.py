"""
Orders: listing with search, status and date filters, creation priced from the products
table, and status changes that carry the payment state along.
"""

import logging
import math
import re
import uuid
from datetime import date, datetime
from typing import List, Optional

from postgrest.types import CountMethod
from supabase import AsyncClient

from admindash.config import settings
from admindash.core.errors import BackendError, ErrorKind, to_backend_error
from admindash.core.query import search_conditions
from admindash.core.timestamps import parse_timestamp, utc_now
from admindash.modules.orders.schemas import (
    OrderCreate, OrderItem, OrderPage, OrderResponse, OrderStats, OrderStatus,
    OrderTotals, Pagination, Payment
)

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = ("id", "customer_name", "customer_email")
AMOUNT = re.compile(r"^\d+(\.\d+)?$")


def calculate_totals(items: List[OrderItem]) -> OrderTotals:
    """Tax on the subtotal; shipping is free above the threshold, flat below it"""
    subtotal = sum(item.total_price for item in items)
    tax = subtotal * settings.order_tax_rate
    shipping_cost = 0.0 if subtotal > settings.free_shipping_threshold else settings.flat_shipping_cost
    return OrderTotals(
        subtotal=round(subtotal, 2),
        tax=round(tax, 2),
        shipping_cost=round(shipping_cost, 2),
        total=round(subtotal + tax + shipping_cost, 2),
    )


def payment_for_status(payment: Payment, status: OrderStatus, now: datetime) -> Payment:
    if status == "delivered":
        return payment.model_copy(update={"status": "paid", "paid_at": payment.paid_at or now})
    if status == "cancelled":
        return payment.model_copy(update={"status": "failed"})
    return payment


class OrderService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    async def list_orders(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        page: int = 1,
        limit: int = 10
    ) -> OrderPage:
        """Newest first; date bounds are inclusive whole days"""
        query = self.supabase.table("orders")\
            .select("*", count=CountMethod.exact)\
            .order("created_at", desc=True)

        conditions = search_conditions(SEARCH_COLUMNS, search)
        if conditions and AMOUNT.match(search.strip()):
            conditions.append(f"total.eq.{search.strip()}")
        if conditions:
            query = query.or_(",".join(conditions))
        if status and status != "all":
            query = query.eq("status", status)
        if date_from:
            query = query.gte("created_at", f"{date_from.isoformat()}T00:00:00")
        if date_to:
            query = query.lte("created_at", f"{date_to.isoformat()}T23:59:59.999999")

        start = (page - 1) * limit
        try:
            result = await query.range(start, start + limit - 1).execute()
        except Exception as e:
            logger.error(f"Error fetching orders: {e}")
            raise to_backend_error(e)

        total = result.count if result.count is not None else len(result.data or [])
        return OrderPage(
            orders=[OrderResponse.from_row(row) for row in result.data or []],
            pagination=Pagination(
                total=total,
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit),
            ),
        )

    async def get_order(self, order_id: str) -> OrderResponse:
        try:
            result = await self.supabase.table("orders")\
                .select("*")\
                .eq("id", order_id)\
                .single()\
                .execute()
        except Exception as e:
            error = to_backend_error(e)
            if error.kind is ErrorKind.NOT_FOUND:
                raise BackendError(ErrorKind.NOT_FOUND, "Order not found", error.code)
            raise error
        return OrderResponse.from_row(result.data)

    async def price_items(self, order_data: OrderCreate) -> List[OrderItem]:
        """Line items at the current product prices; an unknown product is a validation error"""
        product_ids = [item.product_id for item in order_data.items]
        try:
            result = await self.supabase.table("products")\
                .select("id, name, image_url, price")\
                .in_("id", product_ids)\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching products for order: {e}")
            raise to_backend_error(e)

        products = {row["id"]: row for row in result.data or []}
        items = []
        for item in order_data.items:
            product = products.get(item.product_id)
            if product is None:
                raise BackendError(ErrorKind.VALIDATION, f"Product not found: {item.product_id}")
            unit_price = float(product["price"])
            items.append(OrderItem(
                id=product["id"],
                name=product["name"],
                image_url=product.get("image_url"),
                quantity=item.quantity,
                unit_price=unit_price,
                total_price=round(unit_price * item.quantity, 2),
            ))
        return items

    async def create_order(self, order_data: OrderCreate) -> OrderResponse:
        items = await self.price_items(order_data)
        totals = calculate_totals(items)
        now = utc_now().isoformat()
        row = {
            "id": f"ORD-{uuid.uuid4().hex[:8].upper()}",
            "customer_name": order_data.customer.name,
            "customer_email": order_data.customer.email,
            "customer_phone": order_data.customer.phone or "",
            "items": [item.model_dump() for item in items],
            "shipping_address": order_data.shipping_address.model_dump(),
            "payment": Payment(method="credit_card").model_dump(mode="json"),
            **totals.model_dump(),
            "status": "pending",
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.supabase.table("orders").insert(row).execute()
        except Exception as e:
            logger.error(f"Error creating order: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        if not result.data:
            raise BackendError(ErrorKind.MUTATION_FAILED, "Failed to create order")
        logger.info(f"Order {row['id']} created, total {totals.total}")
        return OrderResponse.from_row(result.data[0])

    async def update_order_status(self, order_id: str, status: OrderStatus) -> OrderResponse:
        """Delivered orders become paid, cancelled ones failed"""
        order = await self.get_order(order_id)
        now = utc_now()
        payment = payment_for_status(order.payment, status, now)
        try:
            result = await self.supabase.table("orders")\
                .update({
                    "status": status,
                    "payment": payment.model_dump(mode="json"),
                    "updated_at": now.isoformat(),
                })\
                .eq("id", order_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error updating status of order {order_id}: {e}")
            raise to_backend_error(e, ErrorKind.MUTATION_FAILED)

        if not result.data:
            raise BackendError(ErrorKind.NOT_FOUND, "Order not found")
        return OrderResponse.from_row(result.data[0])

    async def cancel_order(self, order_id: str) -> OrderResponse:
        return await self.update_order_status(order_id, "cancelled")

    async def get_stats(self) -> OrderStats:
        """Counts per status; revenue counts delivered orders only"""
        try:
            result = await self.supabase.table("orders")\
                .select("status, total, created_at")\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching order stats: {e}")
            raise to_backend_error(e)

        orders = result.data or []
        today = utc_now().replace(hour=0, minute=0, second=0, microsecond=0)
        todays = [o for o in orders if o.get("created_at") and parse_timestamp(o["created_at"]) >= today]

        def revenue(rows):
            return round(sum(float(o["total"]) for o in rows if o.get("status") == "delivered"), 2)

        return OrderStats(
            total_orders=len(orders),
            pending_orders=sum(1 for o in orders if o.get("status") == "pending"),
            delivered_orders=sum(1 for o in orders if o.get("status") == "delivered"),
            cancelled_orders=sum(1 for o in orders if o.get("status") == "cancelled"),
            total_revenue=revenue(orders),
            todays_orders=len(todays),
            todays_revenue=revenue(todays),
        )
