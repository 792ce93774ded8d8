"""
Guarded partial-update statements built from an explicit field allow-list.

``UpdateBuilder`` turns a mapping of attribute names to values into a
SQLAlchemy ``UPDATE`` statement for one model. Only the fields named at
construction time may be written; anything else is rejected before a
statement is built. Optional ``expected`` values become extra WHERE
criteria, which gives compare-and-swap semantics: the statement matches no
row when a concurrent writer already changed the guarded columns.
"""

from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import Update, update

from solar_marketplace.core.exceptions import ValidationFailedError
from solar_marketplace.core.logging import get_logger
from solar_marketplace.database.base import Base

logger = get_logger(__name__)


class UpdateBuilder:
    """
    Build allow-listed UPDATE statements for a single model.

    Attributes:
        model: Mapped class the statements target
        allowed_fields: Attribute names that may appear in SET
    """

    def __init__(self, model: type[Base], allowed_fields: Iterable[str]):
        columns = set(model.__table__.columns.keys())
        allowed = frozenset(allowed_fields)
        unknown = allowed - columns
        if unknown:
            raise ValueError(
                f"{model.__name__} has no columns named: {', '.join(sorted(unknown))}"
            )

        self.model = model
        self.allowed_fields = allowed

    def values(self, changes: Mapping[str, Any]) -> dict[str, Any]:
        """
        Validate ``changes`` against the allow-list.

        Args:
            changes: Attribute name to new value

        Returns:
            Copy of the changes safe to pass to ``.values()``

        Raises:
            ValidationFailedError: If a field is not updatable or nothing
                would be written
        """
        rejected = sorted(set(changes) - self.allowed_fields)
        if rejected:
            raise ValidationFailedError(
                f"Fields not updatable on {self.model.__name__}: {', '.join(rejected)}",
                fields=rejected,
            )
        if not changes:
            raise ValidationFailedError(
                f"No fields to update on {self.model.__name__}"
            )
        return dict(changes)

    def build(
        self,
        entity_id: Any,
        changes: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Update:
        """
        Build an UPDATE for one row.

        Args:
            entity_id: Primary key of the row
            changes: Attribute name to new value
            expected: Attribute name to the value the row must still hold

        Returns:
            UPDATE statement; execute it and check ``rowcount``
        """
        values = self.values(changes)
        criteria = [self.model.id == entity_id]
        for field, value in (expected or {}).items():
            criteria.append(getattr(self.model, field) == value)

        logger.debug(
            "Update statement built",
            model=self.model.__name__,
            fields=sorted(values),
            guarded_fields=sorted(expected or {}),
        )

        return (
            update(self.model)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
