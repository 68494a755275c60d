"""
Models package for Request Runner.

Exports all SQLAlchemy models for database operations.
"""

from .history import History

__all__ = [
    "History",
]
