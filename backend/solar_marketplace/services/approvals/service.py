"""
Product approval workflow engine.

This module implements the ApprovalWorkflowEngine class. Contractors submit
draft products for review; admins approve, reject or send them back for
changes. Each action locks the product, resolves the target state from
:data:`APPROVAL_TRANSITIONS`, writes it with an UPDATE guarded on the
observed state and appends one approval ledger row, all in one unit of
work. Of two admins deciding the same product concurrently, exactly one
succeeds; the other receives ``AlreadyDecidedError``.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solar_marketplace.core.exceptions import (
    AlreadyDecidedError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from solar_marketplace.core.logging import bind_workflow, get_logger, log_performance
from solar_marketplace.database.base import utcnow
from solar_marketplace.database.connection import unit_of_work
from solar_marketplace.database.models.product import Product, ProductApprovalHistory
from solar_marketplace.services.approvals.state_machine import resolve_approval_transition
from solar_marketplace.services.audit.recorder import AuditTrailRecorder
from solar_marketplace.services.events import EventSink, WorkflowEvent, publish_event
from solar_marketplace.services.products.enums import ApprovalAction
from solar_marketplace.services.products.repository import ProductRepository

logger = get_logger(__name__)

MAX_BULK_APPROVALS = 50


def _require_text(value: Optional[str], name: str, product_id: uuid.UUID) -> str:
    if value is None or not value.strip():
        raise ValidationFailedError(
            f"{name} is required",
            field=name,
            product_id=str(product_id),
        )
    return value.strip()


@dataclass(frozen=True)
class BulkApprovalFailure:
    product_id: uuid.UUID
    kind: str
    error: str


@dataclass(frozen=True)
class BulkApprovalResult:
    """Outcome of a bulk approval, one entry per requested product."""

    approved: list[Product] = field(default_factory=list)
    failures: list[BulkApprovalFailure] = field(default_factory=list)

    @property
    def total_requested(self) -> int:
        return len(self.approved) + len(self.failures)


class ApprovalWorkflowEngine:
    """Submission and admin review of contractor products."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        event_sink: Optional[EventSink] = None,
        repository: Optional[ProductRepository] = None,
        recorder: Optional[AuditTrailRecorder] = None,
    ):
        self.session_factory = session_factory
        self.event_sink = event_sink
        self.repository = repository or ProductRepository()
        self.recorder = recorder or AuditTrailRecorder()

    async def submit_for_approval(
        self, product_id: uuid.UUID, contractor_id: uuid.UUID
    ) -> Product:
        """
        Submit a draft product for admin review.

        Raises:
            NotFoundError: If the product does not exist
            ForbiddenError: If the contractor does not own the product
            InvalidTransitionError: If the product is not a draft awaiting
                submission
        """
        return await self._apply(
            ApprovalAction.SUBMIT,
            product_id,
            actor_id=contractor_id,
            owner_id=contractor_id,
        )

    async def approve(
        self,
        product_id: uuid.UUID,
        admin_id: uuid.UUID,
        admin_notes: Optional[str] = None,
    ) -> Product:
        """
        Approve a pending product, making it orderable.

        Raises:
            NotFoundError: If the product does not exist
            AlreadyDecidedError: If the product is not awaiting review
        """
        return await self._apply(
            ApprovalAction.APPROVE,
            product_id,
            actor_id=admin_id,
            admin_notes=admin_notes,
            extra_changes={"approved_by": admin_id, "approved_at": utcnow()},
        )

    async def bulk_approve(
        self,
        product_ids: Sequence[uuid.UUID],
        admin_id: uuid.UUID,
        admin_notes: Optional[str] = None,
    ) -> BulkApprovalResult:
        """
        Approve several pending products in request order.

        Each product is approved in its own unit of work, so one product
        that is missing or already decided does not undo the others; it is
        reported in ``failures`` instead.

        Args:
            product_ids: Products to approve, at most ``MAX_BULK_APPROVALS``
            admin_id: Deciding admin
            admin_notes: Notes recorded on every approval

        Returns:
            Approved products and per-product failures

        Raises:
            ValidationFailedError: If no ids or too many ids are given
        """
        if not product_ids:
            raise ValidationFailedError("Product IDs are required", field="product_ids")
        if len(product_ids) > MAX_BULK_APPROVALS:
            raise ValidationFailedError(
                f"Cannot bulk approve more than {MAX_BULK_APPROVALS} products at once",
                field="product_ids",
                requested=len(product_ids),
            )

        result = BulkApprovalResult()
        with log_performance(
            logger,
            "bulk_approve",
            admin_id=str(admin_id),
            requested=len(product_ids),
        ):
            for product_id in product_ids:
                try:
                    product = await self.approve(product_id, admin_id, admin_notes=admin_notes)
                except (AlreadyDecidedError, NotFoundError) as e:
                    result.failures.append(
                        BulkApprovalFailure(
                            product_id=product_id, kind=e.kind, error=e.message
                        )
                    )
                    continue
                result.approved.append(product)

        logger.info(
            "Bulk approval finished",
            admin_id=str(admin_id),
            requested=result.total_requested,
            approved=len(result.approved),
            failed=len(result.failures),
        )
        return result

    async def reject(
        self,
        product_id: uuid.UUID,
        admin_id: uuid.UUID,
        rejection_reason: str,
        admin_notes: Optional[str] = None,
    ) -> Product:
        """
        Reject a pending product.

        Raises:
            ValidationFailedError: If the rejection reason is blank
            NotFoundError: If the product does not exist
            AlreadyDecidedError: If the product is not awaiting review
        """
        reason = _require_text(rejection_reason, "rejection_reason", product_id)
        return await self._apply(
            ApprovalAction.REJECT,
            product_id,
            actor_id=admin_id,
            admin_notes=admin_notes,
            rejection_reason=reason,
            extra_changes={"rejection_reason": reason},
        )

    async def request_changes(
        self,
        product_id: uuid.UUID,
        admin_id: uuid.UUID,
        changes_required: str,
        admin_notes: Optional[str] = None,
    ) -> Product:
        """
        Send a pending product back to its contractor for changes.

        Raises:
            ValidationFailedError: If the requested changes are blank
            NotFoundError: If the product does not exist
            AlreadyDecidedError: If the product is not awaiting review
        """
        changes = _require_text(changes_required, "changes_required", product_id)
        return await self._apply(
            ApprovalAction.REQUEST_CHANGES,
            product_id,
            actor_id=admin_id,
            admin_notes=admin_notes,
            changes_required=changes,
        )

    async def _apply(
        self,
        action: ApprovalAction,
        product_id: uuid.UUID,
        actor_id: uuid.UUID,
        owner_id: Optional[uuid.UUID] = None,
        admin_notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        changes_required: Optional[str] = None,
        extra_changes: Optional[dict[str, Any]] = None,
    ) -> Product:
        with bind_workflow(product_id=product_id), log_performance(
            logger,
            "product_approval",
            action=action.value,
            actor_id=str(actor_id),
        ):
            async with unit_of_work(self.session_factory) as session:
                product = await self.repository.get_for_update(session, product_id)
                if product is None:
                    raise NotFoundError("Product not found", product_id=str(product_id))

                if owner_id is not None and product.contractor_id != owner_id:
                    logger.warning(
                        "Product ownership mismatch",
                        product_id=str(product_id),
                        contractor_id=str(owner_id),
                    )
                    raise ForbiddenError(
                        "Product belongs to another contractor",
                        product_id=str(product_id),
                    )

                previous_approval = product.approval_status
                previous_status = product.status
                new_approval, new_status = resolve_approval_transition(
                    previous_status, previous_approval, action
                )

                changes: dict[str, Any] = {
                    "status": new_status,
                    "approval_status": new_approval,
                    "updated_by": str(actor_id),
                }
                if action.is_admin_action:
                    changes["admin_notes"] = admin_notes
                changes.update(extra_changes or {})

                updated = await self.repository.transition(
                    session,
                    product_id,
                    expected={
                        "status": previous_status,
                        "approval_status": previous_approval,
                    },
                    changes=changes,
                )
                if not updated:
                    logger.warning(
                        "Product changed during approval action",
                        product_id=str(product_id),
                        action=action.value,
                    )
                    error_cls = (
                        AlreadyDecidedError
                        if action.is_admin_action
                        else InvalidTransitionError
                    )
                    raise error_cls(
                        "Product was modified by a concurrent action",
                        product_id=str(product_id),
                        action=action.value,
                    )

                await self.recorder.record_product_transition(
                    session,
                    product_id=product_id,
                    previous_status=previous_approval,
                    new_status=new_approval,
                    action=action,
                    actor_id=actor_id,
                    admin_notes=admin_notes,
                    rejection_reason=rejection_reason,
                    changes_required=changes_required,
                )

                product = await self.repository.get(session, product_id, refresh=True)

        logger.info(
            "Product approval action applied",
            product_id=str(product_id),
            action=action.value,
            previous_approval_status=previous_approval.value,
            approval_status=new_approval.value,
            status=new_status.value,
        )

        await publish_event(
            self.event_sink,
            WorkflowEvent(
                name=f"product.{action.value.lower()}",
                entity_type="product",
                entity_id=product_id,
                payload={
                    "contractor_id": str(product.contractor_id),
                    "actor_id": str(actor_id),
                    "approval_status": new_approval.value,
                    "status": new_status.value,
                },
            ),
        )
        return product

    async def get_pending_approvals(
        self, skip: int = 0, limit: int = 20
    ) -> tuple[Sequence[Product], int]:
        """Products awaiting review, oldest first, with the total count."""
        async with unit_of_work(self.session_factory) as session:
            return await self.repository.list_pending_review(session, skip=skip, limit=limit)

    async def get_approval_history(
        self,
        product_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[ProductApprovalHistory], int]:
        """
        Approval ledger of a product, newest first.

        Raises:
            NotFoundError: If the product does not exist
        """
        async with unit_of_work(self.session_factory) as session:
            if await self.repository.get(session, product_id) is None:
                raise NotFoundError("Product not found", product_id=str(product_id))
            return await self.repository.list_approval_history(
                session, product_id, skip=skip, limit=limit
            )
