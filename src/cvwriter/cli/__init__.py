"""
CLI module for cvwriter.

Provides the command-line interface using Click. The console script entry
point is `cvwriter.cli.main:main`.
"""

from cvwriter.cli.main import cli

__all__ = ["cli"]
