"""
Order workflow engine.

This module implements the OrderWorkflowEngine class, which places orders
atomically (inventory check, pricing, stock decrement, order and item
insert, first ledger row) and moves existing orders through their status
dimensions. Every operation runs in exactly one unit of work; events are
published only after that unit of work has committed.
"""

import uuid
from typing import Optional, Sequence, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solar_marketplace.core.config import Settings, get_settings
from solar_marketplace.core.exceptions import (
    GenerationExhaustedError,
    InvalidTransitionError,
    NotFoundError,
)
from solar_marketplace.core.logging import bind_workflow, get_logger, log_performance
from solar_marketplace.core.security import Principal, UserRole
from solar_marketplace.database.connection import unit_of_work
from solar_marketplace.database.models.order import Order, OrderItem, OrderStatusHistory
from solar_marketplace.schemas.orders import OrderCreateRequest
from solar_marketplace.services.audit.recorder import AuditTrailRecorder
from solar_marketplace.services.events import EventSink, WorkflowEvent, publish_event
from solar_marketplace.services.orders.enums import (
    InstallationStatus,
    OrderStatus,
    PaymentStatus,
    ShippingStatus,
    StatusType,
)
from solar_marketplace.services.orders.inventory import InventoryValidator
from solar_marketplace.services.orders.order_number import OrderNumberGenerator
from solar_marketplace.services.orders.pricing import PricingCalculator
from solar_marketplace.services.orders.repository import OrderRepository
from solar_marketplace.services.orders.state_machine import OrderStateMachine

logger = get_logger(__name__)


def _is_order_number_conflict(error: IntegrityError) -> bool:
    message = str(error.orig) if error.orig is not None else str(error)
    return "order_number" in message


class OrderWorkflowEngine:
    """
    Order placement and status management.

    Attributes:
        session_factory: Factory each unit of work draws its session from
        settings: Pricing, numbering and catalog configuration
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        settings: Optional[Settings] = None,
        event_sink: Optional[EventSink] = None,
        repository: Optional[OrderRepository] = None,
        inventory: Optional[InventoryValidator] = None,
        pricing: Optional[PricingCalculator] = None,
        order_numbers: Optional[OrderNumberGenerator] = None,
        recorder: Optional[AuditTrailRecorder] = None,
        state_machine: Optional[OrderStateMachine] = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.event_sink = event_sink
        self.repository = repository or OrderRepository()
        self.inventory = inventory or InventoryValidator(
            max_item_quantity=self.settings.max_item_quantity,
            low_stock_threshold=self.settings.low_stock_threshold,
        )
        self.pricing = pricing or PricingCalculator(
            vat_rate=self.settings.vat_rate,
            shipping_cost=self.settings.shipping_cost,
            currency=self.settings.currency,
        )
        self.order_numbers = order_numbers or OrderNumberGenerator(
            repository=self.repository,
            prefix=self.settings.order_number_prefix,
            max_attempts=self.settings.order_number_max_attempts,
        )
        self.recorder = recorder or AuditTrailRecorder()
        self.state_machine = state_machine or OrderStateMachine()

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    async def create_order(self, request: OrderCreateRequest, actor: Principal) -> Order:
        """
        Place an order.

        Args:
            request: Validated order request
            actor: Principal placing the order

        Returns:
            The committed order with its items

        Raises:
            ValidationFailedError: If items are empty, unavailable or out of stock
            GenerationExhaustedError: If no unique order number could be committed
        """
        attempts = self.settings.order_number_commit_attempts

        with log_performance(
            logger,
            "create_order",
            user_id=str(request.user_id),
            item_count=len(request.items),
        ):
            order = None
            for attempt in range(1, attempts + 1):
                async with unit_of_work(self.session_factory) as lookup:
                    order_number = await self.order_numbers.generate(lookup)

                try:
                    order = await self._create_once(request, actor, order_number)
                    break
                except IntegrityError as e:
                    if not _is_order_number_conflict(e):
                        raise
                    logger.warning(
                        "Order number taken by a concurrent order, retrying",
                        order_number=order_number,
                        attempt=attempt,
                        max_attempts=attempts,
                    )

            if order is None:
                raise GenerationExhaustedError(
                    "Unable to generate unique order number",
                    attempts=attempts,
                )

        with bind_workflow(order_id=order.id, order_number=order.order_number):
            logger.info(
                "Order created",
                total_amount=order.total_amount,
                user_id=order.user_id,
            )

            await publish_event(
                self.event_sink,
                WorkflowEvent(
                    name="order.created",
                    entity_type="order",
                    entity_id=order.id,
                    payload={
                        "order_number": order.order_number,
                        "user_id": str(order.user_id),
                        "total_amount": str(order.total_amount),
                        "currency": order.currency,
                    },
                ),
            )
        return order

    async def _create_once(
        self,
        request: OrderCreateRequest,
        actor: Principal,
        order_number: str,
    ) -> Order:
        async with unit_of_work(self.session_factory) as session:
            snapshots = await self.inventory.validate(session, request.items)
            breakdown = self.pricing.calculate(snapshots, request.items)
            await self.inventory.decrement_stock(session, snapshots, request.items)

            items = []
            for position, (line, priced) in enumerate(zip(request.items, breakdown.lines)):
                snapshot = snapshots[line.product_id]
                items.append(
                    OrderItem(
                        id=uuid.uuid4(),
                        position=position,
                        product_id=snapshot.product_id,
                        contractor_id=snapshot.contractor_id,
                        product_name=snapshot.name,
                        product_name_ar=snapshot.name_ar,
                        product_sku=snapshot.sku,
                        product_brand=snapshot.brand,
                        product_model=snapshot.model,
                        specifications=dict(snapshot.specifications),
                        unit_price=priced.unit_price,
                        quantity=priced.quantity,
                        line_total=priced.line_total,
                        installation_notes=line.installation_notes,
                        warranty_period_months=self._warranty_months(snapshot),
                        created_by=str(actor.id),
                    )
                )

            order = Order(
                id=uuid.uuid4(),
                order_number=order_number,
                user_id=request.user_id,
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                customer_phone=request.customer_phone,
                shipping_address=request.shipping_address.model_dump(mode="json"),
                billing_same_as_shipping=request.billing_same_as_shipping,
                billing_address=(
                    request.billing_address.model_dump(mode="json")
                    if request.billing_address is not None
                    else None
                ),
                subtotal=breakdown.subtotal,
                tax_amount=breakdown.tax_amount,
                shipping_cost=breakdown.shipping_cost,
                discount_amount=breakdown.discount_amount,
                total_amount=breakdown.total_amount,
                currency=breakdown.currency,
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                shipping_status=ShippingStatus.NOT_SHIPPED,
                installation_status=(
                    InstallationStatus.PENDING
                    if request.installation_required
                    else InstallationStatus.NOT_REQUIRED
                ),
                installation_required=request.installation_required,
                special_instructions=request.special_instructions,
                payment_method=request.payment_method,
                created_by=str(actor.id),
                items=items,
            )
            await self.repository.add(session, order)

            await self.recorder.record_order_transition(
                session,
                order_id=order.id,
                previous_status=None,
                new_status=OrderStatus.PENDING,
                status_type=StatusType.ORDER,
                actor_id=actor.id,
                actor_role=actor.role,
                reason="Order created",
            )

        return order

    def _warranty_months(self, snapshot) -> int:
        warranty = snapshot.specifications.get("warranty_months")
        if warranty is None:
            return self.settings.default_warranty_months
        return int(warranty)

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def update_status(
        self,
        order_id: uuid.UUID,
        new_status: object,
        actor_id: uuid.UUID,
        actor_role: Union[UserRole, str],
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        status_type: Union[StatusType, str] = StatusType.ORDER,
    ) -> Order:
        """
        Move one status dimension of an order to ``new_status``.

        Args:
            order_id: Order identifier
            new_status: Target status, enum member or its string value
            actor_id: Acting principal
            actor_role: Role of the acting principal
            reason: Short reason, defaults to "Status updated"
            notes: Free-text notes
            status_type: Dimension to transition

        Returns:
            The updated order

        Raises:
            ValidationFailedError: If ``new_status`` is not a status of the dimension
            NotFoundError: If the order does not exist
            InvalidTransitionError: If the transition is not allowed or the
                status changed concurrently
        """
        status_type = self.state_machine.parse_status_type(status_type)
        target = self.state_machine.parse_status(status_type, new_status)
        column = self.state_machine.column_for(status_type)

        with bind_workflow(order_id=order_id), log_performance(
            logger,
            "update_order_status",
            status_type=status_type.value,
            target_status=target.value,
        ):
            async with unit_of_work(self.session_factory) as session:
                order = await self.repository.get_for_update(session, order_id)
                if order is None:
                    raise NotFoundError("Order not found", order_id=str(order_id))

                current = self.state_machine.current_status(order, status_type)
                self.state_machine.validate_transition(
                    status_type, current, target, order_id=order_id
                )

                changes = self.state_machine.transition_values(status_type, target)
                changes["updated_by"] = str(actor_id)

                updated = await self.repository.transition_status(
                    session, order_id, column, current, changes
                )
                if not updated:
                    logger.warning(
                        "Order status changed concurrently",
                        order_id=str(order_id),
                        status_type=status_type.value,
                        observed_status=current.value,
                    )
                    raise InvalidTransitionError(
                        f"Order {status_type.value.lower()} status changed concurrently",
                        order_id=str(order_id),
                        current_status=current.value,
                        target_status=target.value,
                    )

                await self.recorder.record_order_transition(
                    session,
                    order_id=order_id,
                    previous_status=current,
                    new_status=target,
                    status_type=status_type,
                    actor_id=actor_id,
                    actor_role=actor_role,
                    reason=reason or "Status updated",
                    notes=notes,
                )

                order = await self.repository.get(session, order_id, refresh=True)

        logger.info(
            "Order status updated",
            order_id=str(order_id),
            status_type=status_type.value,
            previous_status=current.value,
            new_status=target.value,
            actor_id=str(actor_id),
        )

        await publish_event(
            self.event_sink,
            WorkflowEvent(
                name="order.status_changed",
                entity_type="order",
                entity_id=order_id,
                payload={
                    "status_type": status_type.value,
                    "previous_status": current.value,
                    "new_status": target.value,
                    "changed_by": str(actor_id),
                },
            ),
        )
        return order

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_order(self, order_id: uuid.UUID) -> Order:
        """
        Get an order with its items.

        Raises:
            NotFoundError: If the order does not exist
        """
        async with unit_of_work(self.session_factory) as session:
            order = await self.repository.get(session, order_id)
            if order is None:
                raise NotFoundError("Order not found", order_id=str(order_id))
            return order

    async def get_user_orders(
        self,
        user_id: uuid.UUID,
        status: Optional[Union[OrderStatus, str]] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        List a customer's orders, newest first.

        Returns:
            Tuple of (orders, total count)
        """
        if status is not None:
            status = self.state_machine.parse_status(StatusType.ORDER, status)

        async with unit_of_work(self.session_factory) as session:
            return await self.repository.list_for_user(
                session, user_id, status=status, skip=skip, limit=limit
            )

    async def get_status_history(
        self,
        order_id: uuid.UUID,
        status_type: Optional[Union[StatusType, str]] = None,
    ) -> Sequence[OrderStatusHistory]:
        """
        List an order's ledger rows, oldest first.

        Raises:
            NotFoundError: If the order does not exist
        """
        if status_type is not None:
            status_type = self.state_machine.parse_status_type(status_type)

        async with unit_of_work(self.session_factory) as session:
            if await self.repository.get(session, order_id) is None:
                raise NotFoundError("Order not found", order_id=str(order_id))
            return await self.repository.list_status_history(
                session, order_id, status_type=status_type
            )

