"""
Structured logging for the stakeholder selector.

Provides centralized logging with console and file outputs, plus
lookup/commit metrics for watching how hard the remote directory is hit.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for the debounced lookup pipeline and selection commits.
    """

    def __init__(
        self,
        name: str = "stakeselect",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()
        self.logger.propagate = False

        self.metrics = {
            "lookups_scheduled": 0,
            "lookups_executed": 0,
            "lookups_skipped": 0,
            "lookups_failed": 0,
            "lookups_discarded": 0,
            "commits": 0,
            "errors_by_type": {},
        }

        if enable_console:
            # stderr keeps CLI output on stdout clean
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"stakeselect_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_lookup_scheduled(self):
        self.metrics["lookups_scheduled"] += 1

    def record_lookup_executed(self):
        self.metrics["lookups_executed"] += 1

    def record_lookup_skipped(self):
        self.metrics["lookups_skipped"] += 1

    def record_lookup_discarded(self):
        """Record a completion dropped because a newer lookup was issued."""
        self.metrics["lookups_discarded"] += 1

    def record_lookup_failure(self, error_type: str):
        """Record a failed lookup, bucketed by exception type."""
        self.metrics["lookups_failed"] += 1

        if error_type not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][error_type] = 0
        self.metrics["errors_by_type"][error_type] += 1

    def record_commit(self):
        self.metrics["commits"] += 1

    def get_metrics(self) -> dict:
        """Return current metrics, with the lookup failure rate filled in."""
        metrics_copy = self.metrics.copy()
        metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])
        executed = metrics_copy["lookups_executed"]
        metrics_copy["failure_rate"] = (
            round(metrics_copy["lookups_failed"] / executed, 3) if executed > 0 else 0.0
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Selector Session Metrics ===")
        self.info(
            f"Lookups: {metrics['lookups_executed']} executed / "
            f"{metrics['lookups_scheduled']} scheduled "
            f"({metrics['lookups_skipped']} skipped, {metrics['lookups_discarded']} discarded)"
        )
        self.info(f"Failures: {metrics['lookups_failed']} ({metrics['failure_rate'] * 100:.1f}%)")
        self.info(f"Commits: {metrics['commits']}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "stakeselect",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
