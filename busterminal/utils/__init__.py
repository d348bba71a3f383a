"""
Utility helpers for the bus terminal package.
"""

from .config import TerminalConfig, load_config, configure_logging

__all__ = [
    "TerminalConfig",
    "load_config",
    "configure_logging",
]
