"""
Principal and role definitions supplied by the authentication gateway.

Authentication itself happens upstream; the marketplace only receives an
authenticated principal (id + role) and enforces role and ownership rules
against it.
"""

import uuid
from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    """Roles recognised by the marketplace."""

    USER = "USER"
    CONTRACTOR = "CONTRACTOR"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    @classmethod
    def from_string(cls, value: str) -> "UserRole":
        """
        Convert string to UserRole enum.

        Raises:
            ValueError: If value is not a valid role
        """
        try:
            return cls(value.strip().upper())
        except ValueError:
            valid_values = ", ".join(r.value for r in cls)
            raise ValueError(
                f"Invalid role: {value}. Valid values are: {valid_values}"
            ) from None

    @property
    def is_admin(self) -> bool:
        return self in ADMIN_ROLES


ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})


@dataclass(frozen=True)
class Principal:
    """Authenticated caller identity."""

    id: uuid.UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role.is_admin
