"""Logging configuration with security filters."""

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any


class SensitiveDataFilter(logging.Filter):
    """Filter to redact API keys and bank account numbers from log messages."""

    SENSITIVE_PATTERNS = [
        (
            re.compile(r"(apikey|api_key|access_key|token|password|secret)=([^&\s]+)", re.IGNORECASE),
            r"\1=[REDACTED]",
        ),
        (re.compile(r'("access_key"\s*:\s*)"([^"]+)"', re.IGNORECASE), r'\1"[REDACTED]"'),
        (re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE), "Bearer [REDACTED]"),
        # Thai bank account numbers are 10-12 digits, often dashed (123-4-56789-0)
        (re.compile(r"\b\d{3}-\d-\d{5}-\d\b"), "[ACCOUNT]"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Filter log record to redact sensitive information.

        Args:
            record: Log record to filter

        Returns:
            True to keep the record, False to drop it
        """
        if isinstance(record.msg, str):
            for pattern, replacement in self.SENSITIVE_PATTERNS:
                record.msg = pattern.sub(replacement, record.msg)

        if record.args:
            if isinstance(record.args, dict):
                record.args = self._redact_dict(record.args)
            elif isinstance(record.args, (list, tuple)):
                record.args = tuple(self._redact_value(arg) for arg in record.args)

        return True

    def _redact_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive keys from dictionary."""
        sensitive_keys = {"apikey", "api_key", "access_key", "token", "password", "secret"}
        return {
            k: "[REDACTED]" if k.lower() in sensitive_keys else self._redact_value(v)
            for k, v in data.items()
        }

    def _redact_value(self, value: Any) -> Any:
        """Redact sensitive data from any value type."""
        if isinstance(value, str):
            for pattern, replacement in self.SENSITIVE_PATTERNS:
                value = pattern.sub(replacement, value)
        elif isinstance(value, dict):
            value = self._redact_dict(value)
        elif isinstance(value, (list, tuple)):
            value = type(value)(self._redact_value(item) for item in value)
        return value


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
    """
    Configure logging with security filters and file rotation.

    Args:
        level: Logging level (default: INFO)
        log_file: Path to log file (default: ~/.charter-ledger/charter-ledger.log)
                 Set LOG_FILE="" to disable file logging

    Example:
        >>> from charter_ledger.lib.logging_config import setup_logging
        >>> setup_logging(logging.DEBUG)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    sensitive_filter = SensitiveDataFilter()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    if not root_logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(sensitive_filter)
        root_logger.addHandler(console_handler)

        if log_file is None:
            log_file = os.getenv(
                "LOG_FILE", str(Path.home() / ".charter-ledger" / "charter-ledger.log")
            )

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            # Rotating file handler: 10MB per file, keep 5 backup files
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(sensitive_filter)
            root_logger.addHandler(file_handler)
    else:
        for handler in root_logger.handlers:
            handler.addFilter(sensitive_filter)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with sensitive-data filtering enabled.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if not any(isinstance(f, SensitiveDataFilter) for f in logger.filters):
        logger.addFilter(SensitiveDataFilter())

    return logger
