"""
Quaternion operations used by the rotation algebra.

Quaternions are represented as (w, x, y, z) where w is the scalar part
and (x, y, z) is the vector part:
    q = w + xi + yj + zk

All operations support batched inputs with shape (..., 4).
"""

import torch
import torch.nn.functional as F


def normalize_quaternion(q: torch.Tensor, eps: float = 1e-12) -> torch.Tensor:
    """
    Normalize quaternion to unit length.

    Args:
        q: Quaternion tensor of shape (..., 4) as [w, x, y, z]
        eps: Small constant for numerical stability

    Returns:
        Normalized quaternion of shape (..., 4)
    """
    return F.normalize(q, p=2, dim=-1, eps=eps)


def quaternion_from_axis_angle(axis: torch.Tensor, angle: torch.Tensor) -> torch.Tensor:
    """
    Create quaternion from axis-angle representation.

    q = cos(θ/2) + sin(θ/2) * (ax*i + ay*j + az*k)

    Args:
        axis: Rotation axis of shape (..., 3), will be normalized
        angle: Rotation angle in radians of shape (...)

    Returns:
        Unit quaternion of shape (..., 4) as [w, x, y, z]
    """
    axis = F.normalize(axis, p=2, dim=-1, eps=1e-12)
    half_angle = (angle / 2).unsqueeze(-1)
    return torch.cat([torch.cos(half_angle), torch.sin(half_angle) * axis], dim=-1)


def quaternion_to_matrix(q: torch.Tensor) -> torch.Tensor:
    """
    Convert unit quaternion to 3x3 rotation matrix.

    Args:
        q: Unit quaternion of shape (..., 4) as [w, x, y, z]

    Returns:
        Rotation matrix of shape (..., 3, 3)
    """
    w, x, y, z = normalize_quaternion(q).unbind(dim=-1)

    return torch.stack([
        torch.stack([1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)], dim=-1),
        torch.stack([2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)], dim=-1),
        torch.stack([2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)], dim=-1),
    ], dim=-2)

