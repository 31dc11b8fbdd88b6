"""
Skeleton graph model.

A skeleton is a rooted tree of joints. Each joint owns an Euler rotation
track (one row per frame) interpreted under its rotation order, and each
parent -> child edge carries a constant bind pose offset expressed in the
parent's local frame. The root additionally owns a translation track and its
own bind pose offset.

Joints are stored in an arena keyed by integer handles. Handles are never
reused, so removing a joint leaves every other handle valid. A secondary
name index resolves joint names to handles.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple
import logging
import torch

from ..core.constants import (
    DEFAULT_DTYPE,
    DEFAULT_FRAME_TIME,
    DEFAULT_ROTATION_ORDER,
    GIMBAL_EPS,
)
from ..core.exceptions import (
    AmbiguousNameError,
    DimensionMismatchError,
    InvalidTopologyError,
    NotFoundError,
)
from ..core.types import ArrayLike, JointRef, MatrixTrack, Offset, PositionTrack, RotationTrack
from ..utils.rotation import OrderLike, RotationOrder, euler_to_matrix, matrix_to_euler

logger = logging.getLogger(__name__)


def _as_vector(value: Optional[ArrayLike], name: str = "offset") -> torch.Tensor:
    if value is None:
        return torch.zeros(3, dtype=DEFAULT_DTYPE)
    vector = torch.as_tensor(value, dtype=DEFAULT_DTYPE).clone()
    if vector.shape != (3,):
        raise ValueError(f"{name} must have shape (3,), got {tuple(vector.shape)}")
    return vector


def _as_track(value: ArrayLike, name: str) -> torch.Tensor:
    track = torch.as_tensor(value, dtype=DEFAULT_DTYPE).clone()
    if track.ndim != 2 or track.shape[1] != 3:
        raise DimensionMismatchError(f"{name} must have shape (F, 3), got {tuple(track.shape)}")
    return track


@dataclass
class Joint:
    """
    Single joint record.

    Attributes:
        name: Display name, used for name-based lookups
        order: Rotation sequence of the stored Euler angles
        rotations: Euler angles in degrees, shape (F, 3); leaves carry a
            single zero row
    """

    name: str
    order: RotationOrder
    rotations: torch.Tensor

    def copy(self) -> 'Joint':
        return Joint(self.name, self.order, self.rotations.clone())


class Skeleton:
    """
    Articulated hierarchy with per-frame joint rotations.

    All mutation happens in place. Getters return copies of tensors, so a
    caller can never change the skeleton without going through a setter.
    """

    def __init__(
        self,
        num_frames: int = 1,
        frame_time: float = DEFAULT_FRAME_TIME,
        positions: Optional[ArrayLike] = None,
        offset: Optional[ArrayLike] = None
    ):
        """
        Args:
            num_frames: Number of animation frames F
            frame_time: Duration of one frame in seconds
            positions: Root translation track (F, 3), zeros if omitted
            offset: Bind pose placement of the root (3,)
        """
        if num_frames < 0:
            raise ValueError(f"num_frames must be non-negative, got {num_frames}")

        self._joints: Dict[int, Joint] = {}
        self._parent: Dict[int, Optional[int]] = {}
        self._children: Dict[int, List[int]] = {}
        self._offsets: Dict[Tuple[int, int], torch.Tensor] = {}
        self._names: Dict[str, List[int]] = {}
        self._next_index = 0

        self._num_frames = int(num_frames)
        self.frame_time = frame_time
        self._root_offset = _as_vector(offset)

        if positions is None:
            self._positions = torch.zeros(self._num_frames, 3, dtype=DEFAULT_DTYPE)
        else:
            self._positions = self._checked_track(positions, "positions")

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_tree(
        cls,
        tree: Dict[str, Any],
        num_frames: int = 1,
        frame_time: float = DEFAULT_FRAME_TIME,
        positions: Optional[ArrayLike] = None
    ) -> 'Skeleton':
        """
        Build a skeleton from a nested joint description.

        Args:
            tree: Root joint description
                {
                    'name': 'Hips',
                    'order': 'ZXY',
                    'offset': [0, 90, 0],        # root bind placement
                    'rotations': [[...], ...],   # (F, 3), zeros if omitted
                    'children': [
                        {'name': 'Spine', 'offset': [0, 10, 0], 'children': [...]},
                        {'name': 'End Site', 'offset': [0, 5, 0]},
                    ]
                }
            num_frames: Number of animation frames
            frame_time: Duration of one frame in seconds
            positions: Root translation track (F, 3)

        Returns:
            New skeleton
        """
        skeleton = cls(num_frames, frame_time, positions, tree.get('offset'))

        def build(node: Dict[str, Any], parent: Optional[int]) -> None:
            children = node.get('children', [])
            rotations = node.get('rotations')
            if rotations is None and not children:
                rotations = torch.zeros(1, 3, dtype=DEFAULT_DTYPE)
            elif rotations is not None and children:
                rotations = skeleton._checked_track(rotations, f"rotations of {node['name']}")

            v = skeleton.add_joint(
                node['name'],
                order=node.get('order', DEFAULT_ROTATION_ORDER),
                rotations=rotations
            )
            if parent is not None:
                skeleton.add_edge(parent, v, node.get('offset'))

            for child in children:
                build(child, v)

        build(tree, None)
        skeleton.validate()
        return skeleton

    # -------------------------------------------------------------------------
    # Global attributes
    # -------------------------------------------------------------------------

    @property
    def num_frames(self) -> int:
        """Number of animation frames F."""
        return self._num_frames

    def frames(self) -> range:
        return range(self._num_frames)

    @property
    def frame_time(self) -> float:
        """Duration of one frame in seconds."""
        return self._frame_time

    @frame_time.setter
    def frame_time(self, value: float) -> None:
        if value < 0:
            raise ValueError(f"frame_time must be non-negative, got {value}")
        self._frame_time = float(value)

    @property
    def positions(self) -> PositionTrack:
        """Root translation track (F, 3)."""
        return self._positions.clone()

    @positions.setter
    def positions(self, value: ArrayLike) -> None:
        self._positions = self._checked_track(value, "positions")

    @property
    def root_offset(self) -> Offset:
        """Bind pose placement of the root (3,)."""
        return self._root_offset.clone()

    @root_offset.setter
    def root_offset(self, value: ArrayLike) -> None:
        self._root_offset = _as_vector(value, "root offset")

    def set_tracks(
        self,
        num_frames: int,
        positions: ArrayLike,
        rotations: Dict[int, ArrayLike]
    ) -> None:
        """
        Change the frame count together with every track.

        Leaves without a new track fall back to a single zero row.

        Args:
            num_frames: New frame count
            positions: Root translation track (num_frames, 3)
            rotations: New track for every non-leaf joint, keyed by handle

        Raises:
            DimensionMismatchError: If a track does not have num_frames rows
                or a non-leaf joint is missing
        """
        new_positions = _as_track(positions, "positions")
        if new_positions.shape[0] != num_frames:
            raise DimensionMismatchError(
                f"positions has {new_positions.shape[0]} rows, expected {num_frames}"
            )

        new_rotations = {}
        for v, track in rotations.items():
            self._check(v)
            track = _as_track(track, f"rotations of joint {v}")
            if track.shape[0] != num_frames:
                raise DimensionMismatchError(
                    f"rotations of joint {v} have {track.shape[0]} rows, expected {num_frames}"
                )
            new_rotations[v] = track

        missing = [v for v in self._joints if not self.is_leaf(v) and v not in new_rotations]
        if missing:
            raise DimensionMismatchError(f"No new rotation track for joints {missing}")

        self._num_frames = int(num_frames)
        self._positions = new_positions
        for v, track in new_rotations.items():
            self._joints[v].rotations = track
        for v, record in self._joints.items():
            if v not in new_rotations and record.rotations.shape[0] != 1:
                record.rotations = torch.zeros(1, 3, dtype=DEFAULT_DTYPE)

    # -------------------------------------------------------------------------
    # Joints
    # -------------------------------------------------------------------------

    def add_joint(
        self,
        name: str,
        order: OrderLike = DEFAULT_ROTATION_ORDER,
        rotations: Optional[ArrayLike] = None
    ) -> int:
        """
        Add an unconnected joint.

        Args:
            name: Joint name
            order: Rotation sequence
            rotations: Euler track (F, 3) or a single leaf row (1, 3);
                zeros of shape (F, 3) if omitted

        Returns:
            Handle of the new joint
        """
        order = RotationOrder.parse(order)
        if rotations is None:
            track = torch.zeros(self._num_frames, 3, dtype=DEFAULT_DTYPE)
        else:
            track = _as_track(rotations, f"rotations of {name}")
            if track.shape[0] not in (self._num_frames, 1):
                raise DimensionMismatchError(
                    f"rotations of {name} have {track.shape[0]} rows, expected {self._num_frames}"
                )

        v = self._next_index
        self._next_index += 1

        self._joints[v] = Joint(name, order, track)
        self._parent[v] = None
        self._children[v] = []
        self._names.setdefault(name, []).append(v)
        return v

    def remove_joint(self, joint: JointRef) -> None:
        """Remove a joint and every edge touching it."""
        v = self.index(joint)

        p = self._parent[v]
        if p is not None:
            self.remove_edge(p, v)
        for c in list(self._children[v]):
            self.remove_edge(v, c)

        self._unindex_name(v)
        del self._joints[v]
        del self._parent[v]
        del self._children[v]

    def joints(self) -> List[int]:
        """Handles of all joints in insertion order."""
        return list(self._joints)

    def __len__(self) -> int:
        return len(self._joints)

    def __contains__(self, joint: JointRef) -> bool:
        if isinstance(joint, str):
            return joint in self._names
        return joint in self._joints

    def __iter__(self) -> Iterator[int]:
        return iter(self.joints())

    def __repr__(self) -> str:
        return (
            f"Skeleton(joints={len(self._joints)}, frames={self._num_frames}, "
            f"frame_time={self._frame_time})"
        )

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def index(self, joint: JointRef) -> int:
        """Resolve a handle or unique name to a handle."""
        if isinstance(joint, str):
            return self.find(joint)
        if isinstance(joint, int) and not isinstance(joint, bool):
            self._check(joint)
            return joint
        raise TypeError(f"Joint must be referenced by int or str, got {type(joint).__name__}")

    def find(self, name: str) -> int:
        """
        Handle of the joint called name.

        Raises:
            NotFoundError: If no joint has this name
            AmbiguousNameError: If several joints have this name
        """
        return self._unique(self._names.get(name, []), name)

    def find_child(self, joint: JointRef, name: str) -> int:
        """Handle of the child of joint called name."""
        v = self.index(joint)
        matches = [c for c in self._children[v] if self._joints[c].name == name]
        return self._unique(matches, f"{name} (child of {self._joints[v].name})")

    # -------------------------------------------------------------------------
    # Topology
    # -------------------------------------------------------------------------

    def add_edge(
        self,
        parent: JointRef,
        child: JointRef,
        offset: Optional[ArrayLike] = None,
        position: Optional[int] = None
    ) -> None:
        """
        Connect child below parent.

        A parent that was terminal receives a zero track with one row per
        frame.

        Args:
            parent: Joint that receives the child
            child: Joint without a parent
            offset: Bind pose offset in the parent's frame, zeros if omitted
            position: Slot in the parent's child list, appended if omitted

        Raises:
            InvalidTopologyError: If child already has a parent or the edge
                would close a cycle
        """
        p, c = self.index(parent), self.index(child)
        if p == c:
            raise InvalidTopologyError(f"Joint {p} cannot be its own parent")
        if self._parent[c] is not None:
            raise InvalidTopologyError(
                f"Joint {c} already has parent {self._parent[c]}"
            )
        if c in self.ancestors(p):
            raise InvalidTopologyError(f"Edge {p} -> {c} would create a cycle")

        offset = _as_vector(offset)
        if self._joints[p].rotations.shape[0] != self._num_frames:
            # A terminal joint starts rotating once it has a child
            self._joints[p].rotations = torch.zeros(self._num_frames, 3, dtype=DEFAULT_DTYPE)

        self._offsets[(p, c)] = offset
        self._parent[c] = p
        if position is None:
            self._children[p].append(c)
        else:
            self._children[p].insert(position, c)

    def remove_edge(self, parent: JointRef, child: JointRef) -> None:
        """Disconnect child from parent."""
        p, c = self.index(parent), self.index(child)
        if (p, c) not in self._offsets:
            raise InvalidTopologyError(f"No edge {p} -> {c}")

        del self._offsets[(p, c)]
        self._parent[c] = None
        self._children[p].remove(c)

    def has_edge(self, parent: JointRef, child: JointRef) -> bool:
        return (self.index(parent), self.index(child)) in self._offsets

    def edges(self) -> List[Tuple[int, int]]:
        return list(self._offsets)

    def parent(self, joint: JointRef) -> Optional[int]:
        return self._parent[self.index(joint)]

    def children(self, joint: JointRef) -> List[int]:
        return list(self._children[self.index(joint)])

    def ancestors(self, joint: JointRef) -> List[int]:
        """Joints on the path from joint's parent up to the root."""
        path = []
        p = self._parent[self.index(joint)]
        while p is not None:
            path.append(p)
            p = self._parent[p]
        return path

    def is_leaf(self, joint: JointRef) -> bool:
        return not self._children[self.index(joint)]

    @property
    def root(self) -> int:
        """Handle of the unique joint without a parent."""
        roots = [v for v, p in self._parent.items() if p is None]
        if len(roots) != 1:
            raise InvalidTopologyError(f"Expected exactly one root, found {len(roots)}")
        return roots[0]

    # -------------------------------------------------------------------------
    # Attributes
    # -------------------------------------------------------------------------

    def offset(self, parent: JointRef, child: JointRef) -> Offset:
        """Bind pose offset of the edge parent -> child."""
        p, c = self.index(parent), self.index(child)
        if (p, c) not in self._offsets:
            raise InvalidTopologyError(f"No edge {p} -> {c}")
        return self._offsets[(p, c)].clone()

    def set_offset(self, parent: JointRef, child: JointRef, value: ArrayLike) -> None:
        p, c = self.index(parent), self.index(child)
        if (p, c) not in self._offsets:
            raise InvalidTopologyError(f"No edge {p} -> {c}")
        self._offsets[(p, c)] = _as_vector(value)

    def name(self, joint: JointRef) -> str:
        return self._joints[self.index(joint)].name

    def set_name(self, joint: JointRef, name: str) -> None:
        v = self.index(joint)
        self._unindex_name(v)
        self._joints[v].name = name
        self._names.setdefault(name, []).append(v)

    def order(self, joint: JointRef) -> RotationOrder:
        return self._joints[self.index(joint)].order

    def set_order(self, joint: JointRef, order: OrderLike) -> None:
        self._joints[self.index(joint)].order = RotationOrder.parse(order)

    def rotations(self, joint: JointRef) -> RotationTrack:
        """Euler track of joint in degrees."""
        return self._joints[self.index(joint)].rotations.clone()

    def set_rotations(self, joint: JointRef, value: ArrayLike) -> None:
        """
        Replace the Euler track of joint.

        Leaves also accept a single row; every other joint needs exactly
        num_frames rows.
        """
        v = self.index(joint)
        track = _as_track(value, f"rotations of joint {v}")
        allowed = (self._num_frames, 1) if self.is_leaf(v) else (self._num_frames,)
        if track.shape[0] not in allowed:
            raise DimensionMismatchError(
                f"rotations of joint {v} have {track.shape[0]} rows, expected {self._num_frames}"
            )
        self._joints[v].rotations = track

    def rotation_matrices(self, joint: JointRef) -> MatrixTrack:
        """Local rotation matrices of joint, shape (F, 3, 3)."""
        v = self.index(joint)
        record = self._joints[v]
        return euler_to_matrix(record.rotations, record.order)

    def set_rotation_matrices(self, joint: JointRef, matrices: MatrixTrack, eps: float = GIMBAL_EPS) -> None:
        """Store rotation matrices as Euler angles under the joint's order."""
        v = self.index(joint)
        self.set_rotations(v, matrix_to_euler(matrices, self._joints[v].order, eps=eps))

    # -------------------------------------------------------------------------
    # Consistency
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """
        Check the tree and track invariants.

        Raises:
            InvalidTopologyError: If the joints do not form a single tree
            DimensionMismatchError: If a track has the wrong number of rows
        """
        root = self.root

        seen = set()
        stack = [root]
        while stack:
            v = stack.pop()
            if v in seen:
                raise InvalidTopologyError(f"Joint {v} is reachable twice")
            seen.add(v)
            stack.extend(self._children[v])
        if len(seen) != len(self._joints):
            unreachable = sorted(set(self._joints) - seen)
            raise InvalidTopologyError(f"Joints {unreachable} are not reachable from the root")

        if self._positions.shape[0] != self._num_frames:
            raise DimensionMismatchError(
                f"positions have {self._positions.shape[0]} rows, expected {self._num_frames}"
            )
        for v, record in self._joints.items():
            rows = record.rotations.shape[0]
            if rows != self._num_frames and not (self.is_leaf(v) and rows == 1):
                raise DimensionMismatchError(
                    f"rotations of {record.name} have {rows} rows, expected {self._num_frames}"
                )

    def copy(self) -> 'Skeleton':
        """Deep copy sharing no tensors with this skeleton."""
        other = Skeleton.__new__(Skeleton)
        other._joints = {v: record.copy() for v, record in self._joints.items()}
        other._parent = dict(self._parent)
        other._children = {v: list(c) for v, c in self._children.items()}
        other._offsets = {e: o.clone() for e, o in self._offsets.items()}
        other._names = {n: list(vs) for n, vs in self._names.items()}
        other._next_index = self._next_index
        other._num_frames = self._num_frames
        other._frame_time = self._frame_time
        other._root_offset = self._root_offset.clone()
        other._positions = self._positions.clone()
        return other

    @contextmanager
    def transaction(self) -> Iterator['Skeleton']:
        """
        Roll back every change made inside the block if it raises.

        Example:
            >>> with skeleton.transaction():
            ...     remove_joint(skeleton, 'LeftHand')
            ...     remove_joint(skeleton, 'RightHand')
        """
        snapshot = self.copy()
        try:
            yield self
        except BaseException:
            logger.debug("Rolling back skeleton edit")
            self.__dict__.update(snapshot.__dict__)
            raise

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check(self, v: int) -> None:
        if v not in self._joints:
            raise NotFoundError(f"No joint with index {v}")

    def _unique(self, matches: List[int], label: str) -> int:
        if not matches:
            raise NotFoundError(f"No joint named {label}")
        if len(matches) > 1:
            raise AmbiguousNameError(f"{len(matches)} joints named {label}")
        return matches[0]

    def _unindex_name(self, v: int) -> None:
        name = self._joints[v].name
        self._names[name].remove(v)
        if not self._names[name]:
            del self._names[name]

    def _checked_track(self, value: ArrayLike, name: str) -> torch.Tensor:
        track = _as_track(value, name)
        if track.shape[0] != self._num_frames:
            raise DimensionMismatchError(
                f"{name} has {track.shape[0]} rows, expected {self._num_frames}"
            )
        return track
