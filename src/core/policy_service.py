# src/core/policy_service.py

import asyncio
import contextvars
import fnmatch
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from src.core.models import Policy, PolicyConfiguration, PolicyResult
from src.monitoring.metrics import OUTCOME_COMPLETED, OUTCOME_ERROR, EnforcementMetrics
from src.utils.error_handling import (
    DeletionFailure,
    EnumerationFailure,
    ErrorHandler,
    RootUnavailableError,
    SchedulerFault,
)
from src.utils.tracing import new_correlation_id

# Staging folder used by DFS Replication to cache new and changed files.
# Deleting from it can corrupt replication and usually fails on permissions.
DFSR_PRIVATE = "DfsrPrivate"


class PolicyService:
    """Service used to enforce file cleanup policies"""

    def __init__(self,
                 metrics: Optional[EnforcementMetrics] = None,
                 error_handler: Optional[ErrorHandler] = None) -> None:
        """
        Initialize policy service

        Args:
            metrics: Metrics collector, a private one is created if omitted
            error_handler: Telemetry for errors absorbed during sweeps
        """
        self.logger = logging.getLogger(__name__)
        self.metrics = metrics or EnforcementMetrics()
        self.error_handler = error_handler or ErrorHandler()

    def enforce_policies(self, policy_configuration: PolicyConfiguration) -> List[PolicyResult]:
        """Blocking wrapper around enforce_policies_async"""
        return asyncio.run(self.enforce_policies_async(policy_configuration))

    async def enforce_policies_async(self,
                                     policy_configuration: PolicyConfiguration) -> List[PolicyResult]:
        """
        Enforce all cleanup policies with at most ``max_threads`` running at once

        Args:
            policy_configuration: Thread budget and ordered policies

        Returns:
            One PolicyResult per policy, in completion order

        Raises:
            SchedulerFault: If the worker pool cannot be set up
        """
        policy_results: List[PolicyResult] = []
        if not policy_configuration.policies:
            return policy_results

        max_threads = policy_configuration.max_threads
        if not isinstance(max_threads, int) or max_threads < 1:
            raise SchedulerFault(f"max_threads must be a positive integer, got {max_threads!r}")

        try:
            semaphore = asyncio.Semaphore(max_threads)
            executor = ThreadPoolExecutor(max_workers=max_threads,
                                          thread_name_prefix="policy-worker")
        except Exception as e:
            self.logger.critical(f"Failed to create worker pool: {e}")
            raise SchedulerFault(f"Failed to create worker pool: {e}") from e

        loop = asyncio.get_running_loop()

        async def _run(policy: Policy) -> None:
            try:
                new_correlation_id()
                result = await self._run_in_worker(loop, executor, policy)
                policy_results.append(result)
            finally:
                semaphore.release()

        tasks = []
        try:
            for policy in policy_configuration.policies:
                if semaphore.locked():
                    self.logger.info("Max thread count reached. Waiting for a policy to complete...")
                await semaphore.acquire()

                self.logger.info(f"Enforcing policy for directory path: {policy.directory_path}.")
                tasks.append(asyncio.create_task(_run(policy)))

            await asyncio.gather(*tasks)
        finally:
            executor.shutdown(wait=True)

        self.metrics.run_finished()
        self.logger.info("Finished enforcing all policies.")
        return policy_results

    async def _run_in_worker(self,
                             loop: asyncio.AbstractEventLoop,
                             executor: ThreadPoolExecutor,
                             policy: Policy) -> PolicyResult:
        """Run one traversal on the pool, absorbing any unexpected error into its result"""
        self.metrics.policy_started()
        started = time.monotonic()
        context = contextvars.copy_context()
        try:
            result = await loop.run_in_executor(executor, context.run, self.enforce_policy, policy)
        except Exception as e:
            self.logger.exception(f"Unexpected error enforcing policy on {policy.directory_path}: {e}")
            result = PolicyResult(
                directory_path=policy.directory_path,
                policy_runtime=timedelta(seconds=time.monotonic() - started),
                success_count=0,
                failure_count=1,
            )
            self.metrics.policy_finished(result, OUTCOME_ERROR)
            return result

        self.metrics.policy_finished(result, OUTCOME_COMPLETED)
        return result

    def enforce_policy(self, policy: Policy) -> PolicyResult:
        """
        Enforce the specified policy

        Returns:
            The result of enforcing the policy. A missing or unreadable root
            directory yields a zero-count result rather than an error.
        """
        cutoff = self.get_retention_cutoff(policy.older_than_in_days)

        try:
            if not os.path.isdir(policy.directory_path):
                raise RootUnavailableError(policy.directory_path, "the path does not exist")

            started = time.monotonic()
            if policy.is_recursive:
                success_count, failure_count = self.cleanup_recursive(
                    policy.directory_path, policy.search_pattern, cutoff)
            else:
                success_count, failure_count = self.cleanup(
                    policy.directory_path, policy.search_pattern, cutoff)
            runtime = timedelta(seconds=time.monotonic() - started)

        except RootUnavailableError as e:
            self.logger.warning(f"Can't enforce policy on {policy.directory_path} because {e.reason}.")
            self.metrics.record_unavailable()
            return PolicyResult(directory_path=policy.directory_path)
        except EnumerationFailure as e:
            # Only the root listing can escape the sweep
            self.logger.warning(f"Can't enforce policy on {policy.directory_path} because it can't be listed: {e.cause}")
            self.metrics.record_unavailable()
            return PolicyResult(directory_path=policy.directory_path)

        self.logger.info(
            f"Finished policy for {policy.directory_path} in {runtime.total_seconds():.3f}s: "
            f"{success_count} deleted, {failure_count} failed."
        )
        return PolicyResult(
            directory_path=policy.directory_path,
            policy_runtime=runtime,
            success_count=success_count,
            failure_count=failure_count,
        )

    @staticmethod
    def get_retention_cutoff(older_than_in_days: int,
                             now: Optional[datetime] = None) -> datetime:
        """Files last modified strictly before the returned UTC time qualify for deletion"""
        now = now or datetime.now(timezone.utc)
        return now - timedelta(days=older_than_in_days)

    def cleanup_recursive(self,
                          directory_path: str,
                          search_pattern: str,
                          cutoff: datetime) -> Tuple[int, int]:
        """
        Clean up the directory and all of its subdirectories

        Args:
            directory_path: Directory where the policy is enforced
            search_pattern: Pattern that determines which files to clean up
            cutoff: Files last written before this UTC time are deleted

        Returns:
            Tuple of (success_count, failure_count) for the whole subtree

        Raises:
            EnumerationFailure: If ``directory_path`` itself cannot be listed
        """
        # Listed before the sweep so an unlistable directory fails with nothing deleted
        subdirectories = self._list_subdirectories(directory_path)
        success_count, failure_count = self.cleanup(directory_path, search_pattern, cutoff)

        for subdirectory in subdirectories:
            if DFSR_PRIVATE in subdirectory:
                self.logger.debug(f"Skipping replication staging folder: {subdirectory}.")
                continue

            try:
                sub_success, sub_failure = self.cleanup_recursive(subdirectory, search_pattern, cutoff)
                success_count += sub_success
                failure_count += sub_failure
            except Exception as e:
                # One failed branch counts as a single failure
                self.error_handler.handle_error(e, subdirectory)
                failure_count += 1

        return success_count, failure_count

    def cleanup(self,
                directory_path: str,
                search_pattern: str,
                cutoff: datetime) -> Tuple[int, int]:
        """
        Clean up the files directly inside the directory

        Args:
            directory_path: Directory where the policy is enforced
            search_pattern: Pattern that determines which files to clean up
            cutoff: Files last written before this UTC time are deleted

        Returns:
            Tuple of (success_count, failure_count)

        Raises:
            EnumerationFailure: If the directory cannot be listed
        """
        success_count = 0
        failure_count = 0

        cutoff_timestamp = cutoff.timestamp()

        for file_path in self._list_files(directory_path, search_pattern):
            try:
                # Raw timestamps, far-future mtimes overflow datetime
                if os.stat(file_path).st_mtime >= cutoff_timestamp:
                    continue

                self.logger.info(f"Deleting file: {file_path}.")
                os.remove(file_path)
                self.logger.info(f"Successfully deleted: {file_path}.")
                success_count += 1
            except Exception as e:
                self.error_handler.handle_error(DeletionFailure(file_path, e), file_path)
                failure_count += 1

        return success_count, failure_count

    def _list_files(self, directory_path: str, search_pattern: str) -> List[str]:
        """Paths of files directly in the directory whose names match the pattern"""
        try:
            with os.scandir(directory_path) as entries:
                return sorted(
                    entry.path for entry in entries
                    if fnmatch.fnmatch(entry.name, search_pattern) and entry.is_file()
                )
        except OSError as e:
            raise EnumerationFailure(directory_path, e) from e

    def _list_subdirectories(self, directory_path: str) -> List[str]:
        """Immediate subdirectories, without following directory symlinks"""
        try:
            with os.scandir(directory_path) as entries:
                return sorted(
                    entry.path for entry in entries
                    if entry.is_dir(follow_symlinks=False)
                )
        except OSError as e:
            raise EnumerationFailure(directory_path, e) from e
