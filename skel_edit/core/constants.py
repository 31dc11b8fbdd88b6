"""
Centralized constants for skel_edit.

This module defines the default values and numeric tolerances shared by the
rotation algebra and the editing operations. Keeping them in one place makes
the tolerances explicit and easy to adjust globally.

Usage:
    from skel_edit.core.constants import PARALLEL_EPS

    def my_function(eps: float = PARALLEL_EPS):
        ...
"""

import torch


# =============================================================================
# Numeric Constants
# =============================================================================

# All tracks, offsets and matrices are stored in double precision
DEFAULT_DTYPE: torch.dtype = torch.float64

# Two vectors a, b count as parallel when |a x b| <= PARALLEL_EPS * |a| * |b|
PARALLEL_EPS: float = 1e-9

# Vectors shorter than this have no usable direction
ZERO_LENGTH_EPS: float = 1e-12

# Euler extraction switches to the gimbal-lock branch when the cosine
# (Tait-Bryan) or sine (proper Euler) of the middle angle drops below this
GIMBAL_EPS: float = 1e-9


# =============================================================================
# Editing Defaults
# =============================================================================

# Fraction of the split offset assigned to the parent side of a new joint
DEFAULT_SPLIT_FRACTION: float = 0.5

# Rotation order given to joints when none is specified
DEFAULT_ROTATION_ORDER: str = "ZXY"

# Label of terminal joints without a rotation track
END_SITE_NAME: str = "End Site"

# Frame duration in seconds (120 fps) used when a skeleton is built without one
DEFAULT_FRAME_TIME: float = 1.0 / 120.0
