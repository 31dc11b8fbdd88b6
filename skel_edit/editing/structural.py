"""
Structural edits: operations that change the topology of a skeleton.

Every function takes the skeleton first, accepts joints by handle or by
unique name, mutates the skeleton in place and returns it. New joints are
created with zero rotation, so inserting a joint never moves anything.
Removing a joint injects a compensating rotation at its parent so the
remaining joints stay where they were as far as a single constant offset
allows.
"""

from typing import Dict, Iterable, Optional
import logging
import torch

from ..core.constants import DEFAULT_DTYPE, DEFAULT_SPLIT_FRACTION, END_SITE_NAME, PARALLEL_EPS
from ..core.exceptions import InvalidTopologyError
from ..core.types import ArrayLike, JointRef
from ..skeleton.graph import Skeleton
from ..utils.rotation import any_orthogonal, compose, invert, rotation_between

logger = logging.getLogger(__name__)


def _zero_track(num_frames: int) -> torch.Tensor:
    return torch.zeros(num_frames, 3, dtype=DEFAULT_DTYPE)


def insert_joint(
    g: Skeleton,
    parent: JointRef,
    child: JointRef,
    name: str,
    fraction: float = DEFAULT_SPLIT_FRACTION
) -> Skeleton:
    """
    Insert a joint on the straight line between parent and child.

    The new joint copies the parent's rotation order and has zero rotation,
    so the bind pose and every animated position are unchanged.

    Args:
        g: Skeleton to edit
        parent: Parent end of an existing edge
        child: Child end of that edge
        name: Name of the new joint
        fraction: Share of the old offset assigned to parent -> new joint;
            the rest goes to new joint -> child

    Returns:
        The edited skeleton
    """
    if not 0.0 < fraction < 1.0:
        raise ValueError(f"fraction must lie in (0, 1), got {fraction}")

    p, c = g.index(parent), g.index(child)
    off = g.offset(p, c)
    slot = g.children(p).index(c)

    v = g.add_joint(name, order=g.order(p), rotations=_zero_track(g.num_frames))
    g.remove_edge(p, c)
    g.add_edge(p, v, fraction * off, position=slot)
    g.add_edge(v, c, (1 - fraction) * off)

    logger.debug("Inserted %s between %s and %s", name, g.name(p), g.name(c))
    return g


def insert_child(
    g: Skeleton,
    parent: JointRef,
    name: str,
    offset: ArrayLike,
    children: Optional[Iterable[JointRef]] = None
) -> Skeleton:
    """
    Add a joint below parent and move some of parent's children under it.

    Each moved child n keeps its bind pose position: its new offset is
    offset(parent, n) - offset.

    Args:
        g: Skeleton to edit
        parent: Joint that receives the new child
        name: Name of the new joint
        offset: Offset parent -> new joint
        children: Children of parent to re-attach below the new joint;
            all of them if omitted

    Returns:
        The edited skeleton

    Raises:
        ValueError: If offset is not a 3-vector
        InvalidTopologyError: If a listed joint is not a child of parent
    """
    p = g.index(parent)
    off = torch.as_tensor(offset, dtype=DEFAULT_DTYPE)
    if off.shape != (3,):
        raise ValueError(f"offset must have shape (3,), got {tuple(off.shape)}")

    if children is None:
        moved = g.children(p)
    else:
        moved = list(dict.fromkeys(g.index(n) for n in children))
    for n in moved:
        if g.parent(n) != p:
            raise InvalidTopologyError(f"{g.name(n)} is not a child of {g.name(p)}")

    new_offsets = {n: g.offset(p, n) - off for n in moved}
    track = _zero_track(g.num_frames if moved else 1)

    v = g.add_joint(name, order=g.order(p), rotations=track)
    for n, child_offset in new_offsets.items():
        g.remove_edge(p, n)
        g.add_edge(v, n, child_offset)
    g.add_edge(p, v, off)

    logger.debug("Inserted %s below %s with %d children", name, g.name(p), len(moved))
    return g


def remove_joint(
    g: Skeleton,
    joint: JointRef,
    primary: Optional[JointRef] = None,
    eps: float = PARALLEL_EPS,
    end_site_name: str = END_SITE_NAME
) -> Skeleton:
    """
    Remove a joint and compensate the rotations around it.

    For v with parent p and primary child c the chain p -> v -> c becomes
    the single bone p -> c with offset o_pv + o_vc. Per frame, with R_v the
    rotation of v, the chain points along

        virtual = R_v^-1 @ o_pv + o_vc

    in v's frame, and B = rotation_between(o_pv + o_vc, virtual) turns the
    new bone onto it. The rotations become

        R_p <- R_p @ R_v @ B
        R_n <- B^-1 @ R_n               for the non-leaf children n of v
        R_s <- B^-1 @ R_v^-1 @ R_s      for the other non-leaf children s of p

    so every joint below keeps its world orientation and c keeps its
    direction from p. Other children of v and the siblings of v keep their
    orientation but may shift, since one rotation cannot match several
    bones at once.

    Removing a leaf whose parent has no other child turns the parent into
    an End Site.

    Args:
        g: Skeleton to edit
        joint: Joint to remove
        primary: Child of joint whose direction is matched exactly; the
            first child if omitted
        eps: Parallel tolerance for the compensating rotation
        end_site_name: Name given to a parent that becomes terminal

    Returns:
        The edited skeleton

    Raises:
        InvalidTopologyError: If joint is the root or primary is not a
            child of joint
        DegenerateRotationError: If the merged bone or the virtual offset has
            zero length in some frame
    """
    v = g.index(joint)
    p = g.parent(v)
    if p is None:
        raise InvalidTopologyError(f"Cannot remove the root joint {g.name(v)}")

    name = g.name(v)
    children = g.children(v)

    if not children:
        childless = g.children(p) == [v]
        g.remove_joint(v)
        if childless:
            g.set_name(p, end_site_name)
            g.set_rotations(p, _zero_track(1))
        logger.debug("Removed leaf joint %s", name)
        return g

    c = children[0] if primary is None else g.index(primary)
    if c not in children:
        raise InvalidTopologyError(f"{g.name(c)} is not a child of {name}")

    o_pv = g.offset(p, v)
    total = o_pv + g.offset(v, c)

    R_v = g.rotation_matrices(v)
    R_v_inv = invert(R_v)
    virtual = R_v_inv @ o_pv + g.offset(v, c)
    B = rotation_between(total, virtual, fallback_axis=any_orthogonal(total), eps=eps)
    B_inv = invert(B)

    updates: Dict[int, torch.Tensor] = {p: compose(g.rotation_matrices(p), R_v, B)}
    for n in children:
        if not g.is_leaf(n):
            updates[n] = B_inv @ g.rotation_matrices(n)
    for s in g.children(p):
        if s != v and not g.is_leaf(s):
            updates[s] = compose(B_inv, R_v_inv, g.rotation_matrices(s))

    new_offsets = {n: o_pv + g.offset(v, n) for n in children}
    slot = g.children(p).index(v)

    for u, matrices in updates.items():
        g.set_rotation_matrices(u, matrices)
    g.remove_joint(v)
    for i, (n, off) in enumerate(new_offsets.items()):
        g.add_edge(p, n, off, position=slot + i)

    logger.debug("Removed joint %s, re-attached %d children to %s", name, len(children), g.name(p))
    return g


def remove_joints(g: Skeleton, *joints: JointRef, **kwargs) -> Skeleton:
    """
    Remove several joints one after another.

    Names are resolved against the skeleton as it is when each removal
    starts. If any removal fails the skeleton is left unchanged.

    Args:
        g: Skeleton to edit
        *joints: Joints to remove, in order
        **kwargs: Passed on to remove_joint

    Returns:
        The edited skeleton
    """
    with g.transaction():
        for joint in joints:
            remove_joint(g, joint, **kwargs)
    return g


def rename(g: Skeleton, mapping: Dict[JointRef, str]) -> Skeleton:
    """
    Rename joints.

    Every old name is resolved before the first joint is renamed, so names
    may be swapped in a single call.

    Args:
        g: Skeleton to edit
        mapping: Old name (or handle) -> new name

    Returns:
        The edited skeleton
    """
    resolved = {g.index(old): new for old, new in mapping.items()}
    for v, new in resolved.items():
        g.set_name(v, new)
    return g
