"""Feedback Desk: role-based feedback ticket lifecycle service."""

__version__ = "1.0.0"
