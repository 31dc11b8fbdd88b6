"""
Type aliases and shape conventions for skel_edit.

Shape Conventions:
==================

    - F: Number of animation frames of the skeleton

Tracks are stored per joint, frame-major:
    rotations: Tensor[F, 3]     # Euler angles in degrees, column k is the
                                # angle about the k-th axis of the joint's order
    positions: Tensor[F, 3]     # root translation per frame
    matrices:  Tensor[F, 3, 3]  # local rotation matrices per frame
    offset:    Tensor[3]        # bind pose translation parent -> child

Leaf joints (End Sites) carry a degenerate Tensor[1, 3] zero track.
"""

from typing import Sequence, Union
import torch


# A joint is addressed either by its integer handle or by its unique name
JointRef = Union[int, str]

# Anything torch.as_tensor accepts for a 3-vector or a track
ArrayLike = Union[torch.Tensor, Sequence[float], Sequence[Sequence[float]]]

# Euler angle track (F, 3), degrees
RotationTrack = torch.Tensor

# Root translation track (F, 3)
PositionTrack = torch.Tensor

# Batched rotation matrices (F, 3, 3)
MatrixTrack = torch.Tensor

# Bind pose offset (3,)
Offset = torch.Tensor
