"""
Utility functions for skel_edit.

Includes quaternion operations, Euler/matrix rotation algebra, and
configuration management.
"""

from .quaternion import (
    normalize_quaternion,
    quaternion_from_axis_angle,
    quaternion_to_matrix,
)
from .rotation import (
    RotationOrder,
    axis_rotation,
    euler_to_matrix,
    matrix_to_euler,
    convert_order,
    compose,
    invert,
    any_orthogonal,
    rotation_between,
)
from .config import EditConfig, load_config, save_config

__all__ = [
    # Quaternion operations
    "normalize_quaternion",
    "quaternion_from_axis_angle",
    "quaternion_to_matrix",
    # Rotation algebra
    "RotationOrder",
    "axis_rotation",
    "euler_to_matrix",
    "matrix_to_euler",
    "convert_order",
    "compose",
    "invert",
    "any_orthogonal",
    "rotation_between",
    # Config
    "EditConfig",
    "load_config",
    "save_config",
]
