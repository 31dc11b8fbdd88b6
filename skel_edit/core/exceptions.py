"""
Exceptions raised by skel_edit.

Every error is raised immediately to the caller and leaves the skeleton
unchanged, so a pipeline can abort the current step and carry on.
"""


class SkeletonError(Exception):
    """Base exception for skeleton editing errors."""
    pass


class NotFoundError(SkeletonError, LookupError):
    """A joint name or handle does not resolve to a joint."""
    pass


class AmbiguousNameError(NotFoundError):
    """A joint name resolves to more than one joint."""
    pass


class InvalidTopologyError(SkeletonError):
    """An edit would orphan a joint, create a cycle or touch a missing edge."""
    pass


class DimensionMismatchError(SkeletonError, ValueError):
    """A track's row count does not match the skeleton's frame count."""
    pass


class DegenerateRotationError(SkeletonError, ValueError):
    """A rotation between two vectors has no unique minimal solution."""
    pass
