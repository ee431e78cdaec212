# src/utils/tracing.py
"""
Correlation ID management for policy runs

Every policy enforcement gets its own correlation ID so that the log lines of
concurrently running policies can be told apart. Uses contextvars, which are
copied into the worker thread when the traversal is dispatched through
``contextvars.copy_context().run``.
"""

import contextvars
import logging
import uuid

_correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    'correlation_id',
    default=''
)


def get_correlation_id() -> str:
    """ID of the policy run in the current context, empty outside of a run"""
    return _correlation_id.get()


def new_correlation_id() -> str:
    """
    Start a new correlation scope in the current context

    Returns:
        The new correlation ID (UUID v4 format)
    """
    cid = str(uuid.uuid4())
    _correlation_id.set(cid)
    return cid


class CorrelationIdFilter(logging.Filter):
    """Logging filter that stamps ``correlation_id`` onto every record.

    Records logged outside of a policy run get ``-`` instead of a fresh ID so
    that bootstrap lines do not look like they belong to a policy.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, 'correlation_id', None):
            record.correlation_id = get_correlation_id() or '-'
        return True
