"""
Admin product approval API endpoints.

All routes require an ADMIN or SUPER_ADMIN principal.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from solar_marketplace.api.deps import AdminPrincipal, ApprovalEngine
from solar_marketplace.core.logging import get_logger
from solar_marketplace.schemas.products import (
    ApproveRequest,
    BulkApprovalFailureResponse,
    BulkApproveRequest,
    BulkApproveResponse,
    ProductListResponse,
    ProductResponse,
    RejectRequest,
    RequestChangesRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/approvals", tags=["approvals"])


@router.get("/pending", response_model=ProductListResponse, summary="Review queue")
async def list_pending(
    admin: AdminPrincipal,
    approvals: ApprovalEngine,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> ProductListResponse:
    """Products awaiting review, oldest first."""
    products, total = await approvals.get_pending_approvals(skip=skip, limit=limit)
    return ProductListResponse(
        products=[ProductResponse.model_validate(p) for p in products],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("/bulk-approve", response_model=BulkApproveResponse, summary="Bulk approve")
async def bulk_approve_products(
    request: BulkApproveRequest,
    admin: AdminPrincipal,
    approvals: ApprovalEngine,
) -> BulkApproveResponse:
    """
    Approve up to 50 pending products.

    Products that are missing or already decided are listed under
    ``failures``; the rest are approved.
    """
    logger.info(
        "Bulk approving products",
        admin_id=str(admin.id),
        requested=len(request.product_ids),
    )
    result = await approvals.bulk_approve(
        request.product_ids, admin.id, admin_notes=request.admin_notes
    )
    return BulkApproveResponse(
        approved=[ProductResponse.model_validate(p) for p in result.approved],
        failures=[BulkApprovalFailureResponse.model_validate(f) for f in result.failures],
        total_requested=result.total_requested,
        approved_count=len(result.approved),
        failed_count=len(result.failures),
    )


@router.post("/{product_id}/approve", response_model=ProductResponse, summary="Approve")
async def approve_product(
    product_id: UUID,
    admin: AdminPrincipal,
    approvals: ApprovalEngine,
    request: Optional[ApproveRequest] = None,
) -> ProductResponse:
    logger.info("Approving product", product_id=str(product_id), admin_id=str(admin.id))
    admin_notes = request.admin_notes if request is not None else None
    product = await approvals.approve(product_id, admin.id, admin_notes=admin_notes)
    return ProductResponse.model_validate(product)


@router.post("/{product_id}/reject", response_model=ProductResponse, summary="Reject")
async def reject_product(
    product_id: UUID,
    request: RejectRequest,
    admin: AdminPrincipal,
    approvals: ApprovalEngine,
) -> ProductResponse:
    logger.info("Rejecting product", product_id=str(product_id), admin_id=str(admin.id))
    product = await approvals.reject(
        product_id,
        admin.id,
        rejection_reason=request.rejection_reason,
        admin_notes=request.admin_notes,
    )
    return ProductResponse.model_validate(product)


@router.post(
    "/{product_id}/request-changes",
    response_model=ProductResponse,
    summary="Request changes",
)
async def request_product_changes(
    product_id: UUID,
    request: RequestChangesRequest,
    admin: AdminPrincipal,
    approvals: ApprovalEngine,
) -> ProductResponse:
    logger.info(
        "Requesting product changes",
        product_id=str(product_id),
        admin_id=str(admin.id),
    )
    product = await approvals.request_changes(
        product_id,
        admin.id,
        changes_required=request.changes_required,
        admin_notes=request.admin_notes,
    )
    return ProductResponse.model_validate(product)
