# src/monitoring/__init__.py

from .metrics import EnforcementMetrics, OUTCOME_COMPLETED, OUTCOME_ERROR

__all__ = [
    'EnforcementMetrics',
    'OUTCOME_COMPLETED',
    'OUTCOME_ERROR'
]
