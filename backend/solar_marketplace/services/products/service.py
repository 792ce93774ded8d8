"""
Product catalog service.

Contractors create products as drafts and edit their content here. Status
and approval fields are never written by this service; they only change
through :class:`~solar_marketplace.services.approvals.service.ApprovalWorkflowEngine`.
"""

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solar_marketplace.core.config import Settings, get_settings
from solar_marketplace.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from solar_marketplace.core.logging import get_logger, log_performance
from solar_marketplace.database.connection import unit_of_work
from solar_marketplace.database.models.product import Product
from solar_marketplace.schemas.products import (
    ProductCreateRequest,
    ProductUpdateRequest,
    dump_specifications,
)
from solar_marketplace.services.products.enums import (
    ApprovalStatus,
    ProductStatus,
    compute_stock_status,
)
from solar_marketplace.services.products.repository import ProductRepository

logger = get_logger(__name__)

# Editable columns that may be cleared with an explicit null
NULLABLE_FIELDS = frozenset({"category_id", "name_ar", "description", "model", "sku"})


class ProductCatalogService:
    """Contractor-facing product create, edit and read operations."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        settings: Optional[Settings] = None,
        repository: Optional[ProductRepository] = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.repository = repository or ProductRepository()

    async def create_product(
        self, contractor_id: uuid.UUID, request: ProductCreateRequest
    ) -> Product:
        """
        Create a draft product awaiting submission.

        Args:
            contractor_id: Owning contractor
            request: Validated product data

        Returns:
            The committed product
        """
        product = Product(
            id=uuid.uuid4(),
            contractor_id=contractor_id,
            category_id=request.category_id,
            product_category=request.product_category,
            name=request.name,
            name_ar=request.name_ar,
            description=request.description,
            brand=request.brand,
            model=request.model,
            sku=request.sku,
            specifications=dump_specifications(request.specifications),
            price=request.price,
            currency=request.currency.upper(),
            vat_included=request.vat_included,
            stock_quantity=request.stock_quantity,
            stock_status=compute_stock_status(
                request.stock_quantity, self.settings.low_stock_threshold
            ),
            status=ProductStatus.DRAFT,
            approval_status=ApprovalStatus.PENDING,
            created_by=str(contractor_id),
        )

        with log_performance(logger, "create_product", contractor_id=str(contractor_id)):
            async with unit_of_work(self.session_factory) as session:
                await self.repository.add(session, product)

        return product

    async def update_product(
        self,
        product_id: uuid.UUID,
        contractor_id: uuid.UUID,
        request: ProductUpdateRequest,
    ) -> Product:
        """
        Apply a partial edit to a contractor's product.

        Raises:
            NotFoundError: If the product does not exist
            ForbiddenError: If the contractor does not own the product
            InvalidTransitionError: If the product is under review
            ValidationFailedError: If nothing is set or the specifications do
                not match the product category
        """
        fields = {
            name: value
            for name, value in request.model_dump(exclude_unset=True).items()
            if value is not None or name in NULLABLE_FIELDS
        }
        if not fields:
            raise ValidationFailedError("No fields to update", product_id=str(product_id))

        with log_performance(
            logger,
            "update_product",
            product_id=str(product_id),
            fields=sorted(fields),
        ):
            async with unit_of_work(self.session_factory) as session:
                product = await self.repository.get_for_update(session, product_id)
                if product is None:
                    raise NotFoundError("Product not found", product_id=str(product_id))
                if product.contractor_id != contractor_id:
                    raise ForbiddenError(
                        "Product belongs to another contractor",
                        product_id=str(product_id),
                    )
                if product.status == ProductStatus.PENDING_APPROVAL:
                    raise InvalidTransitionError(
                        "Product is under review and cannot be edited",
                        product_id=str(product_id),
                        status=product.status.value,
                    )

                if request.specifications is not None:
                    if request.specifications.category != product.product_category:
                        raise ValidationFailedError(
                            "Specifications do not match the product category",
                            product_id=str(product_id),
                            product_category=product.product_category.value,
                            specifications_category=request.specifications.category,
                        )
                    fields["specifications"] = dump_specifications(request.specifications)

                if fields.get("stock_quantity") is not None:
                    fields["stock_status"] = compute_stock_status(
                        fields["stock_quantity"], self.settings.low_stock_threshold
                    )
                if fields.get("currency"):
                    fields["currency"] = fields["currency"].upper()
                fields["updated_by"] = str(contractor_id)

                await self.repository.update_fields(session, product_id, fields)
                product = await self.repository.get(session, product_id, refresh=True)

        logger.info(
            "Product updated",
            product_id=str(product_id),
            contractor_id=str(contractor_id),
        )
        return product

    async def get_product(self, product_id: uuid.UUID) -> Product:
        """
        Get a product by id.

        Raises:
            NotFoundError: If the product does not exist
        """
        async with unit_of_work(self.session_factory) as session:
            product = await self.repository.get(session, product_id)
            if product is None:
                raise NotFoundError("Product not found", product_id=str(product_id))
            return product
