"""
Core module for skel_edit.

Contains:
- Constants: Numeric tolerances and editing defaults
- Types: Type aliases and track shape conventions
- Exceptions: Error hierarchy shared by all operations
"""

from .constants import (
    # Numeric constants
    DEFAULT_DTYPE,
    PARALLEL_EPS,
    ZERO_LENGTH_EPS,
    GIMBAL_EPS,
    # Editing defaults
    DEFAULT_SPLIT_FRACTION,
    DEFAULT_ROTATION_ORDER,
    END_SITE_NAME,
    DEFAULT_FRAME_TIME,
)

from .types import (
    JointRef,
    ArrayLike,
    RotationTrack,
    PositionTrack,
    MatrixTrack,
    Offset,
)

from .exceptions import (
    SkeletonError,
    NotFoundError,
    AmbiguousNameError,
    InvalidTopologyError,
    DimensionMismatchError,
    DegenerateRotationError,
)

__all__ = [
    # Constants
    "DEFAULT_DTYPE",
    "PARALLEL_EPS",
    "ZERO_LENGTH_EPS",
    "GIMBAL_EPS",
    "DEFAULT_SPLIT_FRACTION",
    "DEFAULT_ROTATION_ORDER",
    "END_SITE_NAME",
    "DEFAULT_FRAME_TIME",
    # Types
    "JointRef",
    "ArrayLike",
    "RotationTrack",
    "PositionTrack",
    "MatrixTrack",
    "Offset",
    # Exceptions
    "SkeletonError",
    "NotFoundError",
    "AmbiguousNameError",
    "InvalidTopologyError",
    "DimensionMismatchError",
    "DegenerateRotationError",
]
