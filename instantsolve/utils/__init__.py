"""Shared utilities."""

from instantsolve.utils.logging import setup_logging

__all__ = ["setup_logging"]
