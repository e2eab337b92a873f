"""
CLI Module - Command Line Interface for unisync.
"""

from .app import create_parser, main, run, setup_logging
from .output import Console

__all__ = ["create_parser", "main", "run", "setup_logging", "Console"]
