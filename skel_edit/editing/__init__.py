"""
Skeleton editing operations.

Structural edits change the joint hierarchy, geometric edits change offsets,
rotations and tracks without touching it. SkeletonEditor chains both kinds
on a single skeleton.
"""

from .structural import (
    insert_joint,
    insert_child,
    remove_joint,
    remove_joints,
    rename,
)
from .geometry import (
    add_frames,
    change_order,
    change_orders,
    project,
    replace_offset,
    replace_offsets,
    scale,
    zero,
)
from .pipeline import SkeletonEditor

__all__ = [
    # Structural
    "insert_joint",
    "insert_child",
    "remove_joint",
    "remove_joints",
    "rename",
    # Geometric
    "add_frames",
    "change_order",
    "change_orders",
    "project",
    "replace_offset",
    "replace_offsets",
    "scale",
    "zero",
    # Pipeline
    "SkeletonEditor",
]
