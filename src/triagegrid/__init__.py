"""Headless triage engine for interactive security-findings grids."""

__version__ = "0.1.0"
