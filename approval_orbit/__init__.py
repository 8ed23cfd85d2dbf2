"""Approval Orbit: multi-stage approval tracking for card mockups."""

__version__ = "1.1.0"
