"""Contractor product API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from solar_marketplace.api.deps import (
    ApprovalEngine,
    CatalogService,
    ContractorPrincipal,
    CurrentPrincipal,
)
from solar_marketplace.core.exceptions import ForbiddenError
from solar_marketplace.core.logging import get_logger
from solar_marketplace.schemas.products import (
    ApprovalHistoryListResponse,
    ApprovalHistoryResponse,
    ProductCreateRequest,
    ProductResponse,
    ProductUpdateRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create draft product",
)
async def create_product(
    request: ProductCreateRequest,
    contractor: ContractorPrincipal,
    catalog: CatalogService,
) -> ProductResponse:
    product = await catalog.create_product(contractor.id, request)
    return ProductResponse.model_validate(product)


@router.get("/{product_id}", response_model=ProductResponse, summary="Get product")
async def get_product(
    product_id: UUID,
    principal: CurrentPrincipal,
    catalog: CatalogService,
) -> ProductResponse:
    product = await catalog.get_product(product_id)
    return ProductResponse.model_validate(product)


@router.patch("/{product_id}", response_model=ProductResponse, summary="Edit product")
async def update_product(
    product_id: UUID,
    request: ProductUpdateRequest,
    contractor: ContractorPrincipal,
    catalog: CatalogService,
) -> ProductResponse:
    product = await catalog.update_product(product_id, contractor.id, request)
    return ProductResponse.model_validate(product)


@router.post(
    "/{product_id}/submit",
    response_model=ProductResponse,
    summary="Submit product for approval",
)
async def submit_product(
    product_id: UUID,
    contractor: ContractorPrincipal,
    approvals: ApprovalEngine,
) -> ProductResponse:
    logger.info(
        "Submitting product for approval",
        product_id=str(product_id),
        contractor_id=str(contractor.id),
    )
    product = await approvals.submit_for_approval(product_id, contractor.id)
    return ProductResponse.model_validate(product)


@router.get(
    "/{product_id}/approval-history",
    response_model=ApprovalHistoryListResponse,
    summary="Product approval history",
)
async def get_approval_history(
    product_id: UUID,
    principal: CurrentPrincipal,
    catalog: CatalogService,
    approvals: ApprovalEngine,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> ApprovalHistoryListResponse:
    """Owning contractor or admin only."""
    if not principal.is_admin:
        product = await catalog.get_product(product_id)
        if product.contractor_id != principal.id:
            raise ForbiddenError(
                "Not authorized to view this product's history",
                product_id=str(product_id),
            )

    rows, total = await approvals.get_approval_history(product_id, skip=skip, limit=limit)
    return ApprovalHistoryListResponse(
        history=[ApprovalHistoryResponse.model_validate(row) for row in rows],
        total=total,
        skip=skip,
        limit=limit,
    )
