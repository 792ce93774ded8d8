"""
Structured logging for the marketplace workflows.

Every log line carries the request it belongs to, the principal acting on
it and the order or product the workflow is currently touching. Engines
bind the entity with :func:`bind_workflow` once, so nested repository,
ledger and state machine logs are tagged without passing ids around.
Money, ids and status enums are rendered as plain strings before output.
"""

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Optional

import structlog
from structlog.types import EventDict, Processor

from solar_marketplace.core.config import get_settings

WORKFLOW_KEYS = ("order_id", "order_number", "product_id")

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
principal_ctx: ContextVar[Optional[tuple[str, str]]] = ContextVar(
    "principal", default=None
)
workflow_ctx: ContextVar[dict[str, str]] = ContextVar("workflow", default={})


def add_request_id(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    request_id = request_id_ctx.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_principal(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Add the acting principal to a log event.

    Explicit ``user_id`` or ``actor_role`` keys on the event win over the
    request's principal, so logs about another user stay accurate.
    """
    principal = principal_ctx.get()
    if principal is not None:
        user_id, role = principal
        event_dict.setdefault("user_id", user_id)
        event_dict.setdefault("actor_role", role)
    return event_dict


def add_workflow_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add the order or product bound by the running workflow."""
    for key, value in workflow_ctx.get().items():
        event_dict.setdefault(key, value)
    return event_dict


def _render_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    return value


def render_domain_values(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Render ids, amounts and statuses as strings.

    ``Decimal`` amounts keep their exact digits instead of passing through
    a float on the way to JSON.
    """
    for key, value in event_dict.items():
        event_dict[key] = _render_value(value)
    return event_dict


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def configure_logging() -> None:
    """
    Configure structured logging.

    Development renders colored console output; every other environment
    renders one JSON object per line.
    """
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_timestamp,
        add_request_id,
        add_principal,
        add_workflow_context,
        render_domain_values,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set request ID in context for correlation.

    Args:
        request_id: Incoming ``X-Request-ID``, generated when absent

    Returns:
        Request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_ctx.set(request_id)
    return request_id


def get_request_id() -> str:
    return request_id_ctx.get()


def set_principal(user_id: uuid.UUID, role: Any) -> None:
    """Record the authenticated principal for the rest of the request."""
    principal_ctx.set((str(user_id), str(_render_value(role))))


@contextmanager
def bind_workflow(**entities: Any) -> Iterator[dict[str, str]]:
    """
    Tag logs emitted inside the block with the entity being worked on.

    Accepts ``order_id``, ``order_number`` and ``product_id``. Bindings
    nest; the outer binding is restored on exit.

    Example:
        >>> with bind_workflow(order_id=order.id):
        ...     logger.info("Order status updated")  # carries order_id
    """
    unknown = set(entities) - set(WORKFLOW_KEYS)
    if unknown:
        raise ValueError(f"Unknown workflow keys: {sorted(unknown)}")

    bound = dict(workflow_ctx.get())
    for key, value in entities.items():
        if value is not None:
            bound[key] = str(_render_value(value))
    token = workflow_ctx.set(bound)
    try:
        yield bound
    finally:
        workflow_ctx.reset(token)


def clear_context() -> None:
    """Clear request, principal and workflow context at the end of a request."""
    request_id_ctx.set("")
    principal_ctx.set(None)
    workflow_ctx.set({})


class PerformanceLogger:
    """
    Context manager that logs how long a workflow step took.

    Steps slower than ``slow_threshold_ms`` log at warning level.
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        slow_threshold_ms: float = 500,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.slow_threshold_ms = slow_threshold_ms
        self.context = context
        self.start_time: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.perf_counter()
        self.logger.debug("Operation started", operation=self.operation, **self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return

        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)

        if exc_type is not None:
            # Domain errors log at info
            log_method = (
                self.logger.info
                if getattr(exc_val, "kind", None) is not None
                else self.logger.error
            )
            log_method(
                "Operation failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
                **self.context,
            )
        else:
            log_method = (
                self.logger.warning
                if duration_ms > self.slow_threshold_ms
                else self.logger.info
            )
            log_method(
                "Operation completed",
                operation=self.operation,
                duration_ms=duration_ms,
                **self.context,
            )


def log_performance(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    **context: Any,
) -> PerformanceLogger:
    """
    Create performance logger context manager.

    Example:
        >>> with log_performance(logger, "create_order", item_count=2):
        ...     order = await engine.create_order(request, actor)
    """
    return PerformanceLogger(logger, operation, **context)
