"""
Chained editing of a single skeleton.

Example:
    >>> from skel_edit import Skeleton, SkeletonEditor
    >>> skeleton = (
    ...     SkeletonEditor(skeleton)
    ...     .remove_joints('LeftHandThumb', 'RightHandThumb')
    ...     .change_orders('ZXY')
    ...     .scale(0.01)
    ...     .skeleton
    ... )
"""

from typing import Callable, Dict, Iterable, Optional

from ..core.types import ArrayLike, JointRef
from ..skeleton.graph import Skeleton
from ..utils.config import EditConfig, load_config
from ..utils.rotation import OrderLike
from . import geometry, structural


class SkeletonEditor:
    """
    Wraps a skeleton and applies edits to it in sequence.

    Each method edits the wrapped skeleton in place and returns the editor,
    so calls can be chained. Defaults for tolerances and the split fraction
    come from the editor's configuration.
    """

    def __init__(self, skeleton: Skeleton, config: Optional[EditConfig] = None):
        """
        Args:
            skeleton: Skeleton to edit
            config: Editing defaults; EditConfig() if omitted
        """
        self._skeleton = skeleton
        self.config = config if config is not None else EditConfig()

    @classmethod
    def from_config_file(cls, skeleton: Skeleton, filepath: str) -> 'SkeletonEditor':
        """Wrap skeleton with defaults read from a JSON file written by save_config."""
        return cls(skeleton, load_config(filepath))

    @property
    def skeleton(self) -> Skeleton:
        return self._skeleton

    def apply(self, edit: Callable[..., Skeleton], *args, **kwargs) -> 'SkeletonEditor':
        """Run any function of the form edit(skeleton, *args, **kwargs)."""
        edit(self._skeleton, *args, **kwargs)
        return self

    # Structural edits

    def insert_joint(
        self,
        parent: JointRef,
        child: JointRef,
        name: str,
        fraction: Optional[float] = None
    ) -> 'SkeletonEditor':
        if fraction is None:
            fraction = self.config.split_fraction
        return self.apply(structural.insert_joint, parent, child, name, fraction=fraction)

    def insert_child(
        self,
        parent: JointRef,
        name: str,
        offset: ArrayLike,
        children: Optional[Iterable[JointRef]] = None
    ) -> 'SkeletonEditor':
        return self.apply(structural.insert_child, parent, name, offset, children)

    def remove_joint(self, joint: JointRef, primary: Optional[JointRef] = None) -> 'SkeletonEditor':
        return self.apply(
            structural.remove_joint, joint, primary,
            eps=self.config.parallel_eps,
            end_site_name=self.config.end_site_name
        )

    def remove_joints(self, *joints: JointRef) -> 'SkeletonEditor':
        return self.apply(
            structural.remove_joints, *joints,
            eps=self.config.parallel_eps,
            end_site_name=self.config.end_site_name
        )

    def rename(self, mapping: Dict[JointRef, str]) -> 'SkeletonEditor':
        return self.apply(structural.rename, mapping)

    # Geometric edits

    def add_frames(self, frames: int) -> 'SkeletonEditor':
        return self.apply(geometry.add_frames, frames)

    def change_order(self, joint: JointRef, order: OrderLike) -> 'SkeletonEditor':
        return self.apply(geometry.change_order, joint, order, eps=self.config.gimbal_eps)

    def change_orders(self, order: OrderLike) -> 'SkeletonEditor':
        return self.apply(geometry.change_orders, order, eps=self.config.gimbal_eps)

    def project(self, donor: Skeleton, T: Optional[ArrayLike] = None) -> 'SkeletonEditor':
        return self.apply(geometry.project, donor, T)

    def replace_offset(
        self,
        donor: Skeleton,
        child: JointRef,
        T: Optional[ArrayLike] = None,
        change_rotation: Optional[bool] = None
    ) -> 'SkeletonEditor':
        if change_rotation is None:
            change_rotation = self.config.compensate_rotations
        return self.apply(
            geometry.replace_offset, donor, child, T,
            change_rotation=change_rotation,
            eps=self.config.parallel_eps
        )

    def replace_offsets(
        self,
        donor: Skeleton,
        exclude: Iterable[JointRef] = (),
        T: Optional[ArrayLike] = None,
        change_rotation: Optional[bool] = None
    ) -> 'SkeletonEditor':
        if change_rotation is None:
            change_rotation = self.config.compensate_rotations
        return self.apply(
            geometry.replace_offsets, donor, exclude, T,
            change_rotation=change_rotation,
            eps=self.config.parallel_eps
        )

    def scale(self, factor: float) -> 'SkeletonEditor':
        return self.apply(geometry.scale, factor)

    def zero(self) -> 'SkeletonEditor':
        return self.apply(geometry.zero)
