"""
Command line interface for REVIEW_STORE.
"""

from .main import cli

__all__ = ["cli"]
