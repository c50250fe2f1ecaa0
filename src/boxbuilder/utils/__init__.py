"""
Box Builder Utils Module

- logger: Logging setup and configuration

Usage:
    from boxbuilder.utils import setup_logger
"""

from .logger import setup_logger, parse_module_levels

__all__ = [
    'setup_logger',
    'parse_module_levels',
]
