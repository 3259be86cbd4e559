"""
Utilities Module

Shared configuration and logging helpers for the billing engine and CLI.
"""

from .config import Config
from .logging import get_logger, setup_logging

__all__ = ["Config", "get_logger", "setup_logging"]
