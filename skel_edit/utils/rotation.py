"""
Euler angle and rotation matrix utilities.

Euler triples follow the hierarchical animation file convention: the angles
are intrinsic and stored in the order of the joint's rotation sequence, so a
joint with order ZXY and angles (a, b, c) has the local rotation

    R = R_z(a) @ R_x(b) @ R_y(c)

All angles are in degrees. Rotation matrices act on column vectors.

All functions support batched inputs with shape (..., 3) or (..., 3, 3).
"""

from enum import Enum
from functools import reduce
from typing import Optional, Tuple, Union
import math
import torch
import torch.nn.functional as F

from ..core.constants import DEFAULT_DTYPE, PARALLEL_EPS, ZERO_LENGTH_EPS, GIMBAL_EPS
from ..core.exceptions import DegenerateRotationError
from .quaternion import quaternion_from_axis_angle, quaternion_to_matrix


class RotationOrder(str, Enum):
    """The twelve valid Euler rotation sequences."""

    # Tait-Bryan sequences
    XYZ = "XYZ"
    XZY = "XZY"
    YXZ = "YXZ"
    YZX = "YZX"
    ZXY = "ZXY"
    ZYX = "ZYX"

    # Proper Euler sequences
    XYX = "XYX"
    XZX = "XZX"
    YXY = "YXY"
    YZY = "YZY"
    ZXZ = "ZXZ"
    ZYZ = "ZYZ"

    @classmethod
    def parse(cls, value: Union['RotationOrder', str]) -> 'RotationOrder':
        """Accept an order member or a name such as 'zxy' or ':ZXY'."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lstrip(':').upper()
        try:
            return cls(key)
        except ValueError:
            raise ValueError(
                f"Unknown rotation order: {value}. Valid: {[o.value for o in cls]}"
            ) from None

    @property
    def axes(self) -> Tuple[int, int, int]:
        """Axis indices (0=X, 1=Y, 2=Z) in application order."""
        return tuple("XYZ".index(c) for c in self.value)

    @property
    def is_proper(self) -> bool:
        """True for proper Euler sequences where the first and last axis coincide."""
        return self.value[0] == self.value[2]

    @property
    def parity(self) -> int:
        """+1 if the first two axes are in cyclic (X->Y->Z) order, -1 otherwise."""
        i, j, _ = self.axes
        return 1 if (j - i) % 3 == 1 else -1

    def __str__(self) -> str:
        return self.value


OrderLike = Union[RotationOrder, str]


def _as_tensor(x) -> torch.Tensor:
    return torch.as_tensor(x, dtype=DEFAULT_DTYPE)


def axis_rotation(axis: int, angle: torch.Tensor) -> torch.Tensor:
    """
    Elementary rotation about a coordinate axis.

    Args:
        axis: 0, 1 or 2 for X, Y, Z
        angle: Angle in radians of shape (...)

    Returns:
        Rotation matrix of shape (..., 3, 3)
    """
    angle = _as_tensor(angle)
    c, s = torch.cos(angle), torch.sin(angle)
    j, k = (axis + 1) % 3, (axis + 2) % 3

    R = torch.zeros(*angle.shape, 3, 3, dtype=angle.dtype, device=angle.device)
    R[..., axis, axis] = 1.0
    R[..., j, j] = c
    R[..., k, k] = c
    R[..., j, k] = -s
    R[..., k, j] = s
    return R


def euler_to_matrix(angles: torch.Tensor, order: OrderLike) -> torch.Tensor:
    """
    Convert Euler angles to rotation matrices.

    Args:
        angles: Angles in degrees of shape (..., 3), in sequence order
        order: Rotation sequence

    Returns:
        Rotation matrix of shape (..., 3, 3)
    """
    order = RotationOrder.parse(order)
    radians = torch.deg2rad(_as_tensor(angles))
    a1, a2, a3 = order.axes

    return (
        axis_rotation(a1, radians[..., 0])
        @ axis_rotation(a2, radians[..., 1])
        @ axis_rotation(a3, radians[..., 2])
    )


def matrix_to_euler(R: torch.Tensor, order: OrderLike, eps: float = GIMBAL_EPS) -> torch.Tensor:
    """
    Convert rotation matrices to Euler angles.

    The middle angle lies in [-90, 90] for Tait-Bryan sequences and in
    [0, 180] for proper Euler sequences. In gimbal lock the third angle is
    set to zero and the first angle carries the remaining rotation.

    Args:
        R: Rotation matrix of shape (..., 3, 3)
        order: Target rotation sequence
        eps: Threshold on cos (Tait-Bryan) or sin (proper) of the middle
            angle below which the configuration counts as gimbal locked

    Returns:
        Angles in degrees of shape (..., 3)
    """
    order = RotationOrder.parse(order)
    R = _as_tensor(R)
    i, j, k = order.axes
    s = order.parity

    if order.is_proper:
        k = 3 - i - j
        cos_b = R[..., i, i]
        sin_b = torch.hypot(R[..., i, j], R[..., i, k])
        locked = sin_b < eps
        a = torch.atan2(R[..., j, i], -s * R[..., k, i])
        c = torch.atan2(R[..., i, j], s * R[..., i, k])
    else:
        sin_b = s * R[..., i, k]
        cos_b = torch.hypot(R[..., i, i], R[..., i, j])
        locked = cos_b < eps
        a = torch.atan2(-s * R[..., j, k], R[..., k, k])
        c = torch.atan2(-s * R[..., i, j], R[..., i, i])

    b = torch.atan2(sin_b, cos_b)

    # Gimbal lock: only a + c (or a - c) is defined
    a_locked = torch.atan2(s * R[..., k, j], R[..., j, j])
    a = torch.where(locked, a_locked, a)
    c = torch.where(locked, torch.zeros_like(c), c)

    return torch.rad2deg(torch.stack([a, b, c], dim=-1))


def convert_order(angles: torch.Tensor, from_order: OrderLike, to_order: OrderLike) -> torch.Tensor:
    """Re-express Euler angles under another rotation sequence."""
    return matrix_to_euler(euler_to_matrix(angles, from_order), to_order)


def compose(*matrices: torch.Tensor) -> torch.Tensor:
    """Matrix product of rotations, left to right: compose(A, B) = A @ B."""
    return reduce(torch.matmul, matrices)


def invert(R: torch.Tensor) -> torch.Tensor:
    """Inverse of a rotation matrix (its transpose)."""
    return R.transpose(-1, -2)


def any_orthogonal(v: torch.Tensor) -> torch.Tensor:
    """
    Deterministic unit vector orthogonal to v.

    Crosses v with the coordinate axis of its smallest component, which keeps
    the result well conditioned.

    Args:
        v: Non-zero vector(s) of shape (..., 3)

    Returns:
        Unit vector(s) of shape (..., 3)
    """
    v = _as_tensor(v)
    basis = F.one_hot(v.abs().argmin(dim=-1), 3).to(v.dtype)
    return F.normalize(torch.linalg.cross(v, basis, dim=-1), p=2, dim=-1, eps=ZERO_LENGTH_EPS)


def rotation_between(
    a: torch.Tensor,
    b: torch.Tensor,
    fallback_axis: Optional[torch.Tensor] = None,
    eps: float = PARALLEL_EPS
) -> torch.Tensor:
    """
    Minimal rotation R such that R @ a points along b.

    a and b count as parallel when |a x b| <= eps * |a| * |b|. Parallel
    vectors pointing the same way give the identity. Opposite vectors have no
    unique minimal rotation; they are turned by 180 degrees about
    fallback_axis (projected orthogonal to a) when one is given.

    Args:
        a: Source vector(s) of shape (..., 3)
        b: Target vector(s) of shape (..., 3)
        fallback_axis: Tie-break axis for opposite vectors, shape (..., 3)
        eps: Relative tolerance of the parallel test

    Returns:
        Rotation matrix of shape (..., 3, 3)

    Raises:
        DegenerateRotationError: If a or b has zero length, or if they are
            opposite and no usable fallback_axis is given
    """
    a, b = torch.broadcast_tensors(_as_tensor(a), _as_tensor(b))
    norm_a = a.norm(dim=-1)
    norm_b = b.norm(dim=-1)

    if (norm_a <= ZERO_LENGTH_EPS).any() or (norm_b <= ZERO_LENGTH_EPS).any():
        raise DegenerateRotationError("Cannot rotate between zero-length vectors")

    axis = torch.linalg.cross(a, b, dim=-1)
    sin_term = axis.norm(dim=-1)
    cos_term = (a * b).sum(dim=-1)
    angle = torch.atan2(sin_term, cos_term)

    parallel = sin_term <= eps * norm_a * norm_b
    opposite = parallel & (cos_term < 0)
    angle = torch.where(parallel, torch.zeros_like(angle), angle)

    if opposite.any():
        if fallback_axis is None:
            raise DegenerateRotationError(
                "Vectors are antiparallel and no fallback axis was given"
            )
        unit_a = a / norm_a.unsqueeze(-1)
        fallback = _as_tensor(fallback_axis).expand_as(a)
        fallback = fallback - (fallback * unit_a).sum(dim=-1, keepdim=True) * unit_a

        if (fallback.norm(dim=-1)[opposite] <= ZERO_LENGTH_EPS).any():
            raise DegenerateRotationError("Fallback axis is parallel to the source vector")

        axis = torch.where(opposite.unsqueeze(-1), fallback, axis)
        angle = torch.where(opposite, torch.full_like(angle, math.pi), angle)

    return quaternion_to_matrix(quaternion_from_axis_angle(axis, angle))
