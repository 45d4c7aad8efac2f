"""
Core infrastructure shared by adapters, services and the CLI.

Kept free of third-party dependencies: logging helpers and the adapter
registry the host dispatches through.
"""

from .logging import StructuredLogFormatter, bind, configure_logging, get_logger, log_progress
from .registry import AdapterRegistry, build_default_registry

__all__ = [
    "AdapterRegistry",
    "StructuredLogFormatter",
    "bind",
    "build_default_registry",
    "configure_logging",
    "get_logger",
    "log_progress",
]
