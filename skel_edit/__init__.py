"""
skel_edit: Structural editing of animated skeletal hierarchies

A PyTorch library for editing motion capture skeletons while keeping the
world-space motion of their joints intact.

Key Features:
- Arena-backed skeleton graph with per-frame Euler rotation tracks
- All twelve Euler rotation sequences, with order conversion
- Joint insertion and removal with compensating rotations
- Motion and bone direction transfer between skeletons sharing joint names
- Uniform scaling, bind pose reset and frame extension

API Design:
- Every edit takes the skeleton first, mutates it and returns it
- Joints may be given by integer handle or by unique name
- Tracks are float64 tensors of shape (F, 3), angles in degrees

Example:
    >>> import skel_edit
    >>> tree = {
    ...     'name': 'Hips',
    ...     'children': [{
    ...         'name': 'Spine',
    ...         'offset': [0.0, 10.0, 0.0],
    ...         'children': [{'name': 'End Site', 'offset': [0.0, 5.0, 0.0]}],
    ...     }],
    ... }
    >>> skeleton = skel_edit.Skeleton.from_tree(tree, num_frames=100)
    >>> skel_edit.remove_joint(skeleton, 'Spine')
    >>> skel_edit.change_orders(skeleton, 'ZXY')
"""

__version__ = "0.1.0"

from . import core
from . import utils
from . import skeleton
from . import editing

from .core.exceptions import (
    SkeletonError,
    NotFoundError,
    AmbiguousNameError,
    InvalidTopologyError,
    DimensionMismatchError,
    DegenerateRotationError,
)
from .utils.rotation import RotationOrder, rotation_between
from .utils.config import EditConfig, load_config, save_config
from .skeleton.graph import Joint, Skeleton
from .editing import (
    insert_joint,
    insert_child,
    remove_joint,
    remove_joints,
    rename,
    add_frames,
    change_order,
    change_orders,
    project,
    replace_offset,
    replace_offsets,
    scale,
    zero,
    SkeletonEditor,
)

__all__ = [
    # Subpackages
    "core",
    "utils",
    "skeleton",
    "editing",
    # Exceptions
    "SkeletonError",
    "NotFoundError",
    "AmbiguousNameError",
    "InvalidTopologyError",
    "DimensionMismatchError",
    "DegenerateRotationError",
    # Model
    "RotationOrder",
    "rotation_between",
    "Joint",
    "Skeleton",
    # Config
    "EditConfig",
    "load_config",
    "save_config",
    # Editing
    "insert_joint",
    "insert_child",
    "remove_joint",
    "remove_joints",
    "rename",
    "add_frames",
    "change_order",
    "change_orders",
    "project",
    "replace_offset",
    "replace_offsets",
    "scale",
    "zero",
    "SkeletonEditor",
]
