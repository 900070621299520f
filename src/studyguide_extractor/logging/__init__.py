"""Logging configuration for the extraction pipeline."""

from .setup import setup_logging

__all__ = ["setup_logging"]
