"""
Logging configuration for the self-healing locator system.

This module provides structured logging with one logger per component of the
healing system, all below the ``healing`` logger.
"""

import logging
import logging.handlers
import json
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import asdict, is_dataclass


HEALING_COMPONENTS = ("cache", "resolver", "inference", "driver", "context", "statistics")


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    CONTEXT_FIELDS = ("locator", "operation", "duration", "success", "error_code", "metadata")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        for name in self.CONTEXT_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=self._json_serializer)

    def _json_serializer(self, obj):
        """Custom JSON serializer for complex objects."""
        if is_dataclass(obj):
            return asdict(obj)
        elif isinstance(obj, Enum):
            return obj.value
        elif hasattr(obj, 'isoformat'):
            return obj.isoformat()
        elif hasattr(obj, '__dict__'):
            return obj.__dict__
        else:
            return str(obj)


class HealingLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter for healing operations with contextual information."""

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any]):
        super().__init__(logger, extra)

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Process log message and add contextual information."""
        if 'extra' not in kwargs:
            kwargs['extra'] = {}
        for key, value in self.extra.items():
            kwargs['extra'].setdefault(key, value)
        return msg, kwargs

    def log_operation_start(self, operation: str, **metadata):
        """Log the start of a healing operation."""
        self.debug(f"Starting {operation}", extra={
            'operation': operation,
            'metadata': metadata
        })

    def log_operation_success(self, operation: str, duration: float, **metadata):
        """Log successful completion of a healing operation."""
        self.info(f"Completed {operation} successfully", extra={
            'operation': operation,
            'success': True,
            'duration': duration,
            'metadata': metadata
        })

    def log_operation_failure(self, operation: str, duration: float, error: str,
                              error_code: Optional[str] = None, **metadata):
        """Log failure of a healing operation."""
        self.error(f"Failed {operation}: {error}", extra={
            'operation': operation,
            'success': False,
            'duration': duration,
            'error_code': error_code,
            'metadata': metadata
        })

    def log_cache_hit(self, original_locator: str, cached_locator: str):
        self.debug(f"Cache hit for locator: {original_locator}", extra={
            'operation': 'cache_lookup',
            'metadata': {'original': original_locator, 'cached': cached_locator}
        })

    def log_cache_miss(self, original_locator: str):
        self.debug(f"Cache miss for locator: {original_locator}", extra={
            'operation': 'cache_lookup'
        })

    def log_generation(self, original_locator: str, generated_locator: str, strategy: str):
        self.info("Smart locator generated", extra={
            'operation': 'generate',
            'metadata': {'original': original_locator, 'generated': generated_locator, 'strategy': strategy}
        })

    def log_api_call(self, model: str, token_count: Optional[int] = None):
        self.info(f"Inference API call made to {model}", extra={
            'operation': 'inference',
            'metadata': {'model': model, 'token_count': token_count}
        })

    def log_locator_failure(self, locator: str, error: str):
        self.warning(f"Locator failed: {locator}", extra={
            'operation': 'probe',
            'metadata': {'error': error}
        })

    def log_healing_success(self, original_locator: str, healed_locator: str):
        self.info("Self-healing successful", extra={
            'operation': 'resolve',
            'success': True,
            'metadata': {'original': original_locator, 'healed': healed_locator}
        })

    def log_healing_failure(self, original_locator: str, error: str):
        self.error(f"Self-healing failed for locator: {original_locator}", extra={
            'operation': 'resolve',
            'success': False,
            'metadata': {'error': error}
        })


def setup_healing_logging(log_level: str = "INFO", log_dir: Optional[str] = None,
                          enabled: bool = True) -> Dict[str, logging.Logger]:
    """
    Set up structured logging for the healing system.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Optional directory for rotating JSON log files
        enabled: When False, healing loggers are silenced entirely

    Returns:
        Dictionary of configured loggers keyed by component
    """
    healing_logger = logging.getLogger("healing")

    for handler in healing_logger.handlers[:]:
        healing_logger.removeHandler(handler)
        handler.close()

    loggers = {"healing": healing_logger}
    for component in HEALING_COMPONENTS:
        loggers[component] = logging.getLogger(f"healing.{component}")

    if not enabled:
        healing_logger.addHandler(logging.NullHandler())
        healing_logger.propagate = False
        healing_logger.setLevel(logging.CRITICAL + 1)
        return loggers

    level = getattr(logging, log_level.upper(), logging.INFO)
    healing_logger.setLevel(level)
    healing_logger.propagate = False

    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [SELF-HEALING] %(message)s'
    )
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(console_formatter)
    console_handler.setLevel(level)
    healing_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        structured_formatter = StructuredFormatter()

        all_logs_handler = logging.handlers.RotatingFileHandler(
            log_path / "healing_all.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        all_logs_handler.setFormatter(structured_formatter)
        all_logs_handler.setLevel(logging.DEBUG)
        healing_logger.addHandler(all_logs_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            log_path / "healing_errors.log",
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=10
        )
        error_handler.setFormatter(structured_formatter)
        error_handler.setLevel(logging.ERROR)
        healing_logger.addHandler(error_handler)

    # LiteLLM is chatty at INFO; keep its output to warnings
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("litellm").setLevel(logging.WARNING)

    return loggers


def get_healing_logger(component: str, locator: Optional[str] = None) -> HealingLoggerAdapter:
    """
    Get a healing logger adapter with contextual information.

    Args:
        component: Component name (cache, resolver, inference, etc.)
        locator: Optional locator the log lines are about

    Returns:
        HealingLoggerAdapter instance
    """
    logger = logging.getLogger(f"healing.{component}")

    extra = {}
    if locator:
        extra['locator'] = locator

    return HealingLoggerAdapter(logger, extra)
