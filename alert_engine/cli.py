"""
Alert Engine - CLI.

============================================================
RESPONSIBILITY
============================================================
On-demand "check now" command.

- Loads a provider snapshot from a JSON file
- Evaluates it against the configured thresholds
- Dispatches through Telegram unless --dry-run
- Exit code 0 on success, 1 on invalid input or failed dispatch

============================================================
USAGE
============================================================
python -m alert_engine.cli --snapshot metrics.json
python -m alert_engine.cli --snapshot metrics.json --dry-run
python -m alert_engine.cli --list-metrics

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from core.exceptions import AlertSystemError, ConfigurationError
from .config import AlertEngineConfig, DEFAULT_METRICS
from .engine import AlertEngine, create_alert_engine
from .providers import JsonFileMarketDataProvider


logger = logging.getLogger(__name__)


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "json") -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("alert_engine")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="market-alerts",
        description="Evaluate market indicators and send threshold alerts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --snapshot metrics.json             # Evaluate and send alerts
  %(prog)s --snapshot metrics.json --dry-run   # Evaluate only, print alerts
  %(prog)s --list-metrics                      # Show metric catalogue
        """
    )

    # --------------------------------------------------------
    # Input
    # --------------------------------------------------------
    input_group = parser.add_argument_group("Input Options")

    input_group.add_argument(
        "--snapshot", "-s",
        type=str,
        metavar="PATH",
        help="JSON file with the provider's metric mapping",
    )

    input_group.add_argument(
        "--env-file",
        type=str,
        metavar="PATH",
        help="Path to a .env file (default: nearest .env found by python-dotenv)",
    )

    # --------------------------------------------------------
    # Execution
    # --------------------------------------------------------
    execution_group = parser.add_argument_group("Execution Options")

    execution_group.add_argument(
        "--dry-run",
        action="store_true",
        help="Evaluate only; print alerts without sending",
    )

    # --------------------------------------------------------
    # Logging
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="json",
        help="Logging format (default: json)",
    )

    parser.add_argument(
        "--list-metrics",
        action="store_true",
        help="Show the metric catalogue with default thresholds and exit",
    )

    return parser


def validate_args(args: argparse.Namespace) -> List[str]:
    """Validate CLI arguments."""
    errors = []
    if not args.list_metrics and not args.snapshot:
        errors.append("--snapshot is required")
    return errors


# ============================================================
# COMMANDS
# ============================================================

def show_metrics() -> None:
    """Print the metric catalogue."""
    print("\nMetric catalogue")
    print("=" * 60)
    for metric_id, definition in DEFAULT_METRICS.items():
        thresholds = ", ".join(f"{k}={v:g}" for k, v in definition.thresholds.items())
        print(f"  {metric_id.value:22s} {definition.name:28s} {thresholds or '-'}")
    print()


async def async_main(args: argparse.Namespace) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    try:
        config = AlertEngineConfig.from_env(args.env_file)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e.message} {e.context}")
        return 1

    provider = JsonFileMarketDataProvider(args.snapshot)

    if args.dry_run:
        engine = AlertEngine(config=config)
    else:
        engine = create_alert_engine(config)

    try:
        metrics = await provider.get_all_metrics()
        alerts = engine.evaluate(metrics)

        if args.dry_run:
            print(json.dumps([a.to_dict() for a in alerts], indent=2, ensure_ascii=False))
            return 0

        report = await engine.dispatch_all(alerts)
        print(json.dumps(report.to_dict(), indent=2))
        return 0 if report.success else 1

    except AlertSystemError as e:
        logger.error(f"Check failed: {json.dumps(e.to_dict())}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await engine.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.list_metrics:
        show_metrics()
        return 0

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    setup_logging(args.log_level, args.log_format)

    return asyncio.run(async_main(args))


if __name__ == "__main__":
    sys.exit(main())
