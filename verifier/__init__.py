"""Completion verifier: checks automated issue work and reports a verdict."""

__version__ = "0.1.0"
