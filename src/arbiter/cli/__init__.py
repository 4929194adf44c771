"""Command line interface for the arbitration engine."""

from .main import app, main

__all__ = ["app", "main"]
