"""
Command-line interface for bwhmm.
"""

from .main import app, cli_main

__all__ = ['app', 'cli_main']
