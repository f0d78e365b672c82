"""
Core module for the self-healing locator system.

This module contains:
- config.py: Environment settings
- config_loader.py: Layered configuration (environment + YAML file)
- errors.py: Structured resolution errors
- logging_config.py: Logging configuration
- metrics.py: In-process resolution metrics
"""

__all__ = ["config", "config_loader", "errors", "logging_config", "metrics"]
