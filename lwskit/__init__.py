"""Helpers for leader/worker pod groups: naming, readiness, TPU environment, headless services and revisions."""

__version__ = "0.1.0"