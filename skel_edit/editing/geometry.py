"""
Geometric edits: operations that keep the topology of a skeleton.

Covers frame extension, rotation order conversion, motion projection and
offset replacement between skeletons that share joint names, uniform
scaling and resetting to the bind pose.

Every function takes the skeleton first, mutates it in place and returns it.
"""

from typing import Dict, Iterable, Optional
import logging
import torch

from ..core.constants import DEFAULT_DTYPE, GIMBAL_EPS, PARALLEL_EPS, ZERO_LENGTH_EPS
from ..core.exceptions import (
    DegenerateRotationError,
    DimensionMismatchError,
    InvalidTopologyError,
)
from ..core.types import ArrayLike, JointRef
from ..skeleton.graph import Skeleton
from ..utils.rotation import OrderLike, RotationOrder, any_orthogonal, invert, matrix_to_euler, rotation_between

logger = logging.getLogger(__name__)


def _alignment(T: Optional[ArrayLike]) -> torch.Tensor:
    if T is None:
        return torch.eye(3, dtype=DEFAULT_DTYPE)
    T = torch.as_tensor(T, dtype=DEFAULT_DTYPE)
    if T.shape != (3, 3):
        raise ValueError(f"Alignment matrix must have shape (3, 3), got {tuple(T.shape)}")
    return T


# =============================================================================
# Frames and rotation orders
# =============================================================================

def add_frames(g: Skeleton, frames: int) -> Skeleton:
    """
    Extend the animation by a number of frames.

    The root positions and joint rotations of the new frames are zero.
    """
    if frames < 0:
        raise ValueError(f"frames must be non-negative, got {frames}")

    padding = torch.zeros(frames, 3, dtype=DEFAULT_DTYPE)
    rotations = {
        v: torch.cat([g.rotations(v), padding])
        for v in g.joints()
        if not g.is_leaf(v)
    }
    g.set_tracks(g.num_frames + frames, torch.cat([g.positions, padding]), rotations)
    return g


def change_order(g: Skeleton, joint: JointRef, order: OrderLike, eps: float = GIMBAL_EPS) -> Skeleton:
    """
    Change the rotation order of a joint, adjusting its Euler angles.

    The rotation of every frame is unchanged; only its Euler representation
    is. In gimbal lock the new angles may differ from a naive expectation
    while describing the same rotation.

    Args:
        g: Skeleton to edit
        joint: Joint to convert
        order: New rotation sequence
        eps: Gimbal-lock threshold of the angle extraction

    Returns:
        The edited skeleton
    """
    v = g.index(joint)
    order = RotationOrder.parse(order)

    g.set_rotations(v, matrix_to_euler(g.rotation_matrices(v), order, eps=eps))
    g.set_order(v, order)
    return g


def change_orders(g: Skeleton, order: OrderLike, eps: float = GIMBAL_EPS) -> Skeleton:
    """Change the rotation order of every non-leaf joint."""
    order = RotationOrder.parse(order)
    for v in g.joints():
        if not g.is_leaf(v):
            change_order(g, v, order, eps=eps)
    return g


# =============================================================================
# Transfer between skeletons
# =============================================================================

def project(g: Skeleton, h: Skeleton, T: Optional[ArrayLike] = None) -> Skeleton:
    """
    Transfer the motion of h onto g.

    Every non-leaf joint of h hands its rotations to the joint of g with the
    same name, as T @ R @ T^-1 per frame. Joints without a counterpart are
    skipped. The root positions (rotated by T) and the frame time are
    copied as well.

    Args:
        g: Target skeleton
        h: Donor skeleton with the same number of frames
        T: Rotation taking h's global axes to g's; identity if omitted

    Returns:
        The edited target skeleton

    Raises:
        DimensionMismatchError: If the frame counts differ
        AmbiguousNameError: If several joints of g carry a donor joint's name
    """
    T = _alignment(T)
    if h.num_frames != g.num_frames:
        raise DimensionMismatchError(
            f"Donor has {h.num_frames} frames, target has {g.num_frames}"
        )
    T_inv = torch.linalg.inv(T)

    updates: Dict[int, torch.Tensor] = {}
    for hv in h.joints():
        if h.is_leaf(hv):
            continue

        name = h.name(hv)
        if name not in g:
            logger.warning("Joint %s has no counterpart in the target skeleton, skipping", name)
            continue
        gv = g.find(name)
        if g.is_leaf(gv):
            logger.warning("Joint %s is terminal in the target skeleton, skipping", name)
            continue

        updates[gv] = T @ h.rotation_matrices(hv) @ T_inv

    positions = h.positions @ T.transpose(0, 1)

    for gv, matrices in updates.items():
        g.set_rotation_matrices(gv, matrices)
    g.positions = positions
    g.frame_time = h.frame_time

    logger.debug("Projected %d joints", len(updates))
    return g


def replace_offset(
    g: Skeleton,
    h: Skeleton,
    child: JointRef,
    T: Optional[ArrayLike] = None,
    change_rotation: bool = True,
    eps: float = PARALLEL_EPS
) -> Skeleton:
    """
    Give an edge of g the direction of the matching edge in h.

    The edge keeps its length. With change_rotation the parent is turned by
    B = rotation_between(T @ o_h, o_g) in every frame, R_p <- R_p @ B, so
    the child keeps its animated position, and every non-leaf child of the
    parent is counter-rotated, R_n <- B^-1 @ R_n, so nothing below inherits
    the turn.

    Args:
        g: Target skeleton
        h: Donor skeleton; the edge's parent and child names must exist there
        child: Child end of the edge in g
        T: Rotation taking h's global axes to g's; identity if omitted
        change_rotation: Whether to compensate rotations
        eps: Parallel tolerance for the compensating rotation

    Returns:
        The edited target skeleton
    """
    T = _alignment(T)
    c = g.index(child)
    p = g.parent(c)
    if p is None:
        raise InvalidTopologyError(f"Root joint {g.name(c)} has no incoming offset")

    hp = h.find(g.name(p))
    hc = h.find_child(hp, g.name(c))

    original = g.offset(p, c)
    donor = T @ h.offset(hp, hc)
    if donor.norm() <= ZERO_LENGTH_EPS:
        raise DegenerateRotationError(
            f"Donor offset {h.name(hp)} -> {h.name(hc)} has zero length"
        )
    new_offset = original.norm() / donor.norm() * donor

    updates: Dict[int, torch.Tensor] = {}
    if change_rotation and original.norm() > ZERO_LENGTH_EPS:
        B = rotation_between(donor, original, fallback_axis=any_orthogonal(donor), eps=eps)
        B_inv = invert(B)
        updates[p] = g.rotation_matrices(p) @ B
        for n in g.children(p):
            if not g.is_leaf(n):
                updates[n] = B_inv @ g.rotation_matrices(n)

    g.set_offset(p, c, new_offset)
    for v, matrices in updates.items():
        g.set_rotation_matrices(v, matrices)
    return g


def replace_offsets(
    g: Skeleton,
    h: Skeleton,
    exclude: Iterable[JointRef] = (),
    T: Optional[ArrayLike] = None,
    change_rotation: bool = True,
    eps: float = PARALLEL_EPS
) -> Skeleton:
    """
    Replace the offsets of all edges of g with the directions of h.

    The edges leaving the root are always kept, as are the edges leading
    into the joints listed in exclude. If any edge has no counterpart in h
    the skeleton is left unchanged.

    Args:
        g: Target skeleton
        h: Donor skeleton
        exclude: Child ends of edges to keep
        T: Rotation taking h's global axes to g's; identity if omitted
        change_rotation: Whether to compensate rotations
        eps: Parallel tolerance for the compensating rotations

    Returns:
        The edited target skeleton
    """
    root = g.root
    skipped = {g.index(j) for j in exclude}
    skipped.add(root)
    skipped.update(g.children(root))

    with g.transaction():
        for v in g.joints():
            if v not in skipped:
                replace_offset(g, h, v, T, change_rotation=change_rotation, eps=eps)
    return g


# =============================================================================
# Whole-skeleton edits
# =============================================================================

def scale(g: Skeleton, factor: float) -> Skeleton:
    """
    Multiply all offsets and the root positions by factor.

    Rotations are unaffected by a uniform scale.
    """
    for p, c in g.edges():
        g.set_offset(p, c, g.offset(p, c) * factor)

    g.root_offset = g.root_offset * factor
    g.positions = g.positions * factor
    return g


def zero(g: Skeleton) -> Skeleton:
    """Set all rotations and the root positions to zero."""
    frames = g.num_frames
    g.positions = torch.zeros(frames, 3, dtype=DEFAULT_DTYPE)

    for v in g.joints():
        if not g.is_leaf(v):
            g.set_rotations(v, torch.zeros(frames, 3, dtype=DEFAULT_DTYPE))

    return g
