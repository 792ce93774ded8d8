"""
FastAPI dependencies for principals, role checks and workflow engines.

Authentication happens at the gateway, which forwards the authenticated
principal in the ``X-User-Id`` and ``X-User-Role`` headers. Engines are
built per request around the shared session factory; they hold no
request state of their own.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solar_marketplace.core.config import Settings, get_settings
from solar_marketplace.core.exceptions import UnauthorizedError
from solar_marketplace.core.logging import get_logger, set_principal
from solar_marketplace.core.security import Principal, UserRole
from solar_marketplace.database.connection import get_session_factory
from solar_marketplace.services.approvals.service import ApprovalWorkflowEngine
from solar_marketplace.services.orders.service import OrderWorkflowEngine
from solar_marketplace.services.products.service import ProductCatalogService

logger = get_logger(__name__)


def get_session_factory_dep() -> async_sessionmaker[AsyncSession]:
    """Session factory used by request-scoped engines. Overridden in tests."""
    return get_session_factory()


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory_dep)]
AppSettings = Annotated[Settings, Depends(get_settings)]


async def get_principal(
    x_user_id: Annotated[Optional[str], Header()] = None,
    x_user_role: Annotated[Optional[str], Header()] = None,
) -> Principal:
    """
    Build the authenticated principal from gateway headers.

    Raises:
        UnauthorizedError: If either header is missing or malformed
    """
    if not x_user_id or not x_user_role:
        logger.warning("Authentication failed: principal headers missing")
        raise UnauthorizedError("Authentication required")

    try:
        user_id = uuid.UUID(x_user_id)
        role = UserRole.from_string(x_user_role)
    except ValueError as e:
        logger.warning(
            "Authentication failed: invalid principal headers",
            user_id=x_user_id,
            role=x_user_role,
        )
        raise UnauthorizedError("Invalid principal", reason=str(e)) from e

    set_principal(user_id, role)
    return Principal(id=user_id, role=role)


CurrentPrincipal = Annotated[Principal, Depends(get_principal)]


async def require_admin(principal: CurrentPrincipal) -> Principal:
    """
    Require an ADMIN or SUPER_ADMIN principal.

    Raises:
        UnauthorizedError: If the principal is not an admin
    """
    if not principal.is_admin:
        logger.warning(
            "Authorization failed: admin role required",
            user_id=str(principal.id),
            role=principal.role.value,
        )
        raise UnauthorizedError(
            "Admin role required",
            role=principal.role.value,
        )
    return principal


async def require_contractor(principal: CurrentPrincipal) -> Principal:
    """
    Require a CONTRACTOR principal.

    Raises:
        UnauthorizedError: If the principal is not a contractor
    """
    if principal.role != UserRole.CONTRACTOR:
        logger.warning(
            "Authorization failed: contractor role required",
            user_id=str(principal.id),
            role=principal.role.value,
        )
        raise UnauthorizedError(
            "Contractor role required",
            role=principal.role.value,
        )
    return principal


AdminPrincipal = Annotated[Principal, Depends(require_admin)]
ContractorPrincipal = Annotated[Principal, Depends(require_contractor)]


def get_order_engine(
    session_factory: SessionFactory, settings: AppSettings
) -> OrderWorkflowEngine:
    return OrderWorkflowEngine(session_factory=session_factory, settings=settings)


def get_approval_engine(session_factory: SessionFactory) -> ApprovalWorkflowEngine:
    return ApprovalWorkflowEngine(session_factory=session_factory)


def get_catalog_service(
    session_factory: SessionFactory, settings: AppSettings
) -> ProductCatalogService:
    return ProductCatalogService(session_factory=session_factory, settings=settings)


OrderEngine = Annotated[OrderWorkflowEngine, Depends(get_order_engine)]
ApprovalEngine = Annotated[ApprovalWorkflowEngine, Depends(get_approval_engine)]
CatalogService = Annotated[ProductCatalogService, Depends(get_catalog_service)]
