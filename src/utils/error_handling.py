# src/utils/error_handling.py
"""Error taxonomy and structured error telemetry used across policy enforcement."""

import logging
import threading
import traceback
from datetime import datetime, timezone
from typing import Dict, Optional


class FileCleanupError(Exception):
    """Base class for policy enforcement errors"""

    pass


class RootUnavailableError(FileCleanupError):
    """The policy's target directory does not exist or cannot be listed"""

    def __init__(self, directory_path: str, reason: Optional[str] = None) -> None:
        self.directory_path = directory_path
        self.reason = reason
        message = f"Directory {directory_path} is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class EnumerationFailure(FileCleanupError):
    """A directory could not be listed or recursed into"""

    def __init__(self, directory_path: str, cause: Optional[BaseException] = None) -> None:
        self.directory_path = directory_path
        self.cause = cause
        super().__init__(f"Failed to enumerate {directory_path}: {cause}")


class DeletionFailure(FileCleanupError):
    """A qualifying file could not be inspected or deleted"""

    def __init__(self, file_path: str, cause: Optional[BaseException] = None) -> None:
        self.file_path = file_path
        self.cause = cause
        super().__init__(f"Failed to delete {file_path}: {cause}")


class SchedulerFault(FileCleanupError):
    """Failure in the scheduling machinery itself; fatal to the whole run"""

    pass


class ErrorHandler:
    """Centralized error telemetry for errors absorbed during enforcement.

    Workers call this concurrently, so counters are guarded by a lock.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()

        self.error_counts: Dict[str, int] = {}

    def handle_error(self, error: Exception, context: str) -> None:
        """
        Record and log an error that was recovered locally

        Args:
            error: Exception that occurred
            context: Where it occurred (file or directory path)
        """
        category = type(error).__name__
        self._track_error(category)
        self._log_error(error, context)

    def _track_error(self, category: str) -> None:
        """Track error occurrence"""
        with self._lock:
            self.error_counts[category] = self.error_counts.get(category, 0) + 1

    def _log_error(self, error: Exception, context: str) -> None:
        """Log detailed error information"""
        log_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "context": context,
            "stack_trace": traceback.format_exc(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if isinstance(error, DeletionFailure):
            self.logger.error(f"Failed to delete: {context}. {error.cause}")
        else:
            self.logger.error(f"Sweep error in {context}: {error}")

        self.logger.debug(f"Error details: {log_data}")

    def get_error_counts(self) -> Dict[str, int]:
        """Snapshot of error counts by category"""
        with self._lock:
            return dict(self.error_counts)
