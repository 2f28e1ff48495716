"""
Database models for LinkForge.

Links and their click events live in the same database so that deleting a
link cascades to its analytics rows.
"""

from .link import ClickEvent, Link

__all__ = ["Link", "ClickEvent"]
