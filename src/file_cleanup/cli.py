# src/file_cleanup/cli.py
"""Command line entry point for enforcing file retention policies."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from importlib import metadata
from logging.handlers import TimedRotatingFileHandler
from typing import Optional

from src.config.config_manager import ConfigManager, ConfigurationError
from src.core.policy_service import PolicyService
from src.file_cleanup import __version__
from src.monitoring.metrics import EnforcementMetrics
from src.utils.error_handling import SchedulerFault
from src.utils.tracing import CorrelationIdFilter

DISTRIBUTION_NAME = "file-cleanup"
LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] [%(correlation_id)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

logger = logging.getLogger(__name__)


def _get_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return __version__


def configure_logging(log_file: Optional[str],
                      level: str = "DEBUG",
                      console_level: str = "DEBUG") -> None:
    """Log to the console and to a file that rolls over at midnight."""
    correlation_filter = CorrelationIdFilter()
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    handlers: list[logging.Handler] = [console_handler]

    if log_file:
        file_handler = TimedRotatingFileHandler(log_file, when="midnight", encoding="utf-8")
        file_handler.setLevel(level)
        handlers.append(file_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(correlation_filter)

    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)


def build_parser() -> argparse.ArgumentParser:
    """Build file cleanup CLI parser."""
    parser = argparse.ArgumentParser(
        prog="file-cleanup",
        description="Delete files older than their retention policy allows.",
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit.")

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Enforce all configured policies once.")
    _add_config_arguments(run_parser)
    run_parser.add_argument(
        "--log-file",
        default=None,
        help="Log file, rotated daily. Defaults to logging.log_file from configuration.",
    )
    run_parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        choices=LOG_LEVELS,
        help="Minimum level written to the log file.",
    )
    run_parser.add_argument(
        "--metrics-file",
        default=None,
        help="Write Prometheus metrics to this file after the run.",
    )

    validate_parser = subparsers.add_parser(
        "validate-config",
        help="Load and validate configuration without deleting anything.",
    )
    _add_config_arguments(validate_parser)

    return parser


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config-dir",
        default="config",
        help="Directory containing base.yaml and <environment>.yaml.",
    )
    parser.add_argument(
        "--environment",
        default="dev",
        help="Configuration environment to load.",
    )


def _validate_config(config_dir: str, environment: str) -> int:
    """Returns the number of configured policies."""
    config_manager = ConfigManager(config_path=config_dir, environment=environment)
    return len(config_manager.get_policy_configuration().policies)


async def _run_command(args: argparse.Namespace) -> int:
    """Load configuration, enforce every policy and report the results."""
    try:
        config_manager = ConfigManager(config_path=args.config_dir, environment=args.environment)
    except ConfigurationError as exc:
        # Logging is not configured yet
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    logging_config = config_manager.get_logging_config()
    log_file = args.log_file or logging_config.log_file
    try:
        configure_logging(
            log_file=log_file,
            level=args.log_level or logging_config.log_level,
            console_level=logging_config.console_level,
        )
    except (OSError, ValueError) as exc:
        print(f"Failed to set up logging to {log_file}: {exc}", file=sys.stderr)
        return 1

    metrics = EnforcementMetrics()
    service = PolicyService(metrics=metrics)

    try:
        policy_configuration = config_manager.get_policy_configuration()
        logger.info(
            f"Starting policy service with {len(policy_configuration.policies)} policies "
            f"and {policy_configuration.max_threads} threads."
        )
        results = await service.enforce_policies_async(policy_configuration)
    except (ConfigurationError, SchedulerFault) as exc:
        logger.critical(f"Fatal error running policy service: {exc}")
        return 1
    except Exception:
        logger.critical("Fatal error running policy service.", exc_info=True)
        return 1

    for result in results:
        logger.info(
            f"{result.directory_path}: deleted={result.success_count} "
            f"failed={result.failure_count} runtime={result.policy_runtime.total_seconds():.3f}s"
        )
    error_counts = service.error_handler.get_error_counts()
    if error_counts:
        logger.warning(f"Errors absorbed during enforcement: {error_counts}")
    logger.info("Ending policy service.")

    if args.metrics_file:
        try:
            metrics.write_textfile(args.metrics_file)
        except OSError as exc:
            logger.error(f"Failed to write metrics to {args.metrics_file}: {exc}")

    return 0


def main(argv: list[str] | None = None) -> int:
    """Execute the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"{DISTRIBUTION_NAME} {_get_version()}")
        return 0

    if args.command == "validate-config":
        try:
            policy_count = _validate_config(args.config_dir, args.environment)
        except ConfigurationError as exc:
            print(f"Configuration error: {exc}", file=sys.stderr)
            return 1
        print(f"Configuration is valid ({policy_count} policies)")
        return 0

    if args.command == "run":
        return asyncio.run(_run_command(args))

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
