"""
Logging configuration.

Every record is enriched with the id of the user and organization the
current request runs as. The authentication dependency sets the context
variables; outside a request they render as "-".

Passwords, session tokens and provider tokens are never logged.
"""

import logging
import sys
from contextvars import ContextVar

user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
tenant_id_var: ContextVar[str | None] = ContextVar("tenant_id", default=None)


class RequestContextFilter(logging.Filter):
    """Inject user_id and tenant_id from contextvars into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.user_id = user_id_var.get() or "-"
        record.tenant_id = tenant_id_var.get() or "-"
        return True


def configure_logging(level: str | int = logging.INFO) -> None:
    """Install a stdout handler with the request-context format on the root logger."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | user=%(user_id)s | tenant=%(tenant_id)s | "
        "%(message)s"
    ))
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
