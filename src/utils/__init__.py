# src/utils/__init__.py

"""
Utility modules for the file cleanup service.

Error taxonomy and telemetry for enforcement, plus correlation IDs that tie
each policy run's log lines together.
"""

from .error_handling import (
    DeletionFailure,
    EnumerationFailure,
    ErrorHandler,
    FileCleanupError,
    RootUnavailableError,
    SchedulerFault
)
from .tracing import (
    CorrelationIdFilter,
    get_correlation_id,
    new_correlation_id
)

__all__ = [
    'DeletionFailure',
    'EnumerationFailure',
    'ErrorHandler',
    'FileCleanupError',
    'RootUnavailableError',
    'SchedulerFault',
    'CorrelationIdFilter',
    'get_correlation_id',
    'new_correlation_id'
]
