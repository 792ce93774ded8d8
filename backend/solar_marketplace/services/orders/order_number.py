"""
Human-readable order number generation.

Order numbers look like ``RBH20261017123456001``: a fixed prefix, the
creation date, the last six digits of the creation time in milliseconds,
and a three-digit suffix bumped on collision. The uniqueness lookup here is
an optimization only; the ``uq_orders_order_number`` constraint decides
which of two racing writers wins.
"""

from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from solar_marketplace.core.exceptions import GenerationExhaustedError
from solar_marketplace.core.logging import get_logger
from solar_marketplace.database.base import utcnow
from solar_marketplace.services.orders.repository import OrderRepository

logger = get_logger(__name__)

MAX_SUFFIX = 999


class OrderNumberGenerator:
    """
    Generate unique order numbers.

    Attributes:
        prefix: Fixed leading code
        max_attempts: Number of suffix values tried before giving up
    """

    def __init__(
        self,
        repository: Optional[OrderRepository] = None,
        prefix: str = "RBH",
        max_attempts: int = MAX_SUFFIX,
        clock: Callable[[], datetime] = utcnow,
    ):
        if not 1 <= max_attempts <= MAX_SUFFIX:
            raise ValueError(f"max_attempts must be between 1 and {MAX_SUFFIX}")

        self.repository = repository or OrderRepository()
        self.prefix = prefix
        self.max_attempts = max_attempts
        self._clock = clock

    def base_for(self, moment: datetime) -> str:
        """Build the prefix + date + time part of an order number."""
        millis = int(moment.timestamp() * 1000)
        return f"{self.prefix}{moment:%Y%m%d}{millis % 1_000_000:06d}"

    @staticmethod
    def candidate(base: str, suffix: int) -> str:
        return f"{base}{suffix:03d}"

    async def generate(self, session: AsyncSession) -> str:
        """
        Find an order number not yet used by a persisted order.

        Args:
            session: Short-lived session used only for the uniqueness lookup

        Returns:
            Unused order number

        Raises:
            GenerationExhaustedError: If every suffix is taken
        """
        base = self.base_for(self._clock())

        for suffix in range(1, self.max_attempts + 1):
            order_number = self.candidate(base, suffix)
            if not await self.repository.order_number_exists(session, order_number):
                if suffix > 1:
                    logger.info(
                        "Order number collision resolved",
                        order_number=order_number,
                        attempts=suffix,
                    )
                return order_number

        logger.error(
            "Order number generation exhausted",
            base=base,
            attempts=self.max_attempts,
        )
        raise GenerationExhaustedError(
            "Unable to generate unique order number",
            base=base,
            attempts=self.max_attempts,
        )
