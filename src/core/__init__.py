# src/core/__init__.py

from .models import Policy, PolicyConfiguration, PolicyResult
from .policy_service import PolicyService

__all__ = [
    'Policy',
    'PolicyConfiguration',
    'PolicyResult',
    'PolicyService'
]
