# src/core/models.py

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Tuple


@dataclass(frozen=True)
class Policy:
    """A policy that specifies what files in a directory will be cleaned up"""

    directory_path: str
    search_pattern: str = "*"
    is_recursive: bool = False
    older_than_in_days: int = 0


@dataclass(frozen=True)
class PolicyConfiguration:
    """Configuration information for all policies

    Each policy is enforced on one worker thread; ``max_threads`` bounds how
    many policies run at the same time.
    """

    max_threads: int = 1
    policies: Tuple[Policy, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any sequence but store it immutably
        object.__setattr__(self, "policies", tuple(self.policies))


@dataclass(frozen=True)
class PolicyResult:
    """Result for a policy that was attempted to be enforced"""

    directory_path: str
    policy_runtime: timedelta = timedelta(0)
    success_count: int = 0
    failure_count: int = 0

    @property
    def attempted_count(self) -> int:
        return self.success_count + self.failure_count
