"""
Order API endpoints.

Customers place and read their own orders; admins may read any order and
move orders through their status dimensions. Domain errors propagate to
the application-level handler, which renders them as JSON.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from solar_marketplace.api.deps import AdminPrincipal, CurrentPrincipal, OrderEngine
from solar_marketplace.core.exceptions import ForbiddenError
from solar_marketplace.core.logging import get_logger
from solar_marketplace.core.security import Principal
from solar_marketplace.schemas.orders import (
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatusHistoryResponse,
    OrderStatusUpdateRequest,
)
from solar_marketplace.services.orders.enums import OrderStatus, StatusType

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def _ensure_can_access(principal: Principal, owner_id: UUID, order_id: UUID) -> None:
    if principal.is_admin or principal.id == owner_id:
        return
    logger.warning(
        "Order access denied",
        order_id=str(order_id),
        user_id=str(principal.id),
    )
    raise ForbiddenError("Not authorized to access this order", order_id=str(order_id))


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place order",
)
async def create_order(
    request: OrderCreateRequest,
    principal: CurrentPrincipal,
    engine: OrderEngine,
) -> OrderResponse:
    """
    Place an order atomically.

    Non-admin callers may only place orders for themselves.
    """
    if not principal.is_admin and request.user_id != principal.id:
        raise ForbiddenError(
            "Cannot place an order for another user",
            user_id=str(request.user_id),
        )

    order = await engine.create_order(request, principal)
    return OrderResponse.model_validate(order)


@router.get("", response_model=OrderListResponse, summary="List orders")
async def list_orders(
    principal: CurrentPrincipal,
    engine: OrderEngine,
    user_id: Optional[UUID] = Query(None, description="Customer to list, admins only"),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    """List the caller's orders, or any customer's orders for admins."""
    target_user = principal.id
    if user_id is not None and user_id != principal.id:
        if not principal.is_admin:
            raise ForbiddenError("Cannot list another user's orders", user_id=str(user_id))
        target_user = user_id

    orders, total = await engine.get_user_orders(
        target_user, status=status_filter, skip=skip, limit=limit
    )
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order")
async def get_order(
    order_id: UUID,
    principal: CurrentPrincipal,
    engine: OrderEngine,
) -> OrderResponse:
    order = await engine.get_order(order_id)
    _ensure_can_access(principal, order.user_id, order_id)
    return OrderResponse.model_validate(order)


@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
)
async def update_order_status(
    order_id: UUID,
    request: OrderStatusUpdateRequest,
    admin: AdminPrincipal,
    engine: OrderEngine,
) -> OrderResponse:
    """Move one status dimension of an order. Admins only."""
    logger.info(
        "Updating order status",
        order_id=str(order_id),
        status_type=request.status_type.value,
        target_status=request.status,
        admin_id=str(admin.id),
    )
    order = await engine.update_status(
        order_id,
        request.status,
        actor_id=admin.id,
        actor_role=admin.role,
        reason=request.reason,
        notes=request.notes,
        status_type=request.status_type,
    )
    return OrderResponse.model_validate(order)


@router.get(
    "/{order_id}/history",
    response_model=list[OrderStatusHistoryResponse],
    summary="Order status history",
)
async def get_order_history(
    order_id: UUID,
    principal: CurrentPrincipal,
    engine: OrderEngine,
    status_type: Optional[StatusType] = Query(None),
) -> list[OrderStatusHistoryResponse]:
    order = await engine.get_order(order_id)
    _ensure_can_access(principal, order.user_id, order_id)

    history = await engine.get_status_history(order_id, status_type=status_type)
    return [OrderStatusHistoryResponse.model_validate(row) for row in history]
