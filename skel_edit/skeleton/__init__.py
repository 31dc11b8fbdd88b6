"""
Skeleton graph model.

Provides the joint record and the arena-backed skeleton graph that every
editing operation reads and mutates.
"""

from .graph import Joint, Skeleton

__all__ = [
    "Joint",
    "Skeleton",
]
