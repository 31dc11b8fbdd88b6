"""
Configuration management for skel_edit.

Provides the configuration class holding the tolerances and defaults used
by the editing pipeline.
"""

import json
from dataclasses import dataclass, field, asdict
from typing import Dict, Any
from pathlib import Path

from ..core.constants import (
    DEFAULT_SPLIT_FRACTION,
    END_SITE_NAME,
    GIMBAL_EPS,
    PARALLEL_EPS,
)


@dataclass
class EditConfig:
    """
    Configuration for skeleton editing.

    Attributes:
        split_fraction: Default fraction of an edge's offset given to the
            parent side when a joint is inserted on that edge
        parallel_eps: Relative tolerance of the parallel test in
            rotation_between
        gimbal_eps: Gimbal-lock threshold used when re-extracting Euler angles
        compensate_rotations: Whether offset replacement adjusts rotations so
            descendants keep their world orientation
        end_site_name: Label given to joints that become terminal
        extra: Unrecognised keys carried through from loaded files
    """

    split_fraction: float = DEFAULT_SPLIT_FRACTION
    parallel_eps: float = PARALLEL_EPS
    gimbal_eps: float = GIMBAL_EPS
    compensate_rotations: bool = True
    end_site_name: str = END_SITE_NAME

    # Additional fields
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 < self.split_fraction < 1.0:
            raise ValueError(f"split_fraction must lie in (0, 1), got {self.split_fraction}")
        if self.parallel_eps <= 0.0 or self.gimbal_eps <= 0.0:
            raise ValueError("Tolerances must be positive")

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'EditConfig':
        """Create config from dictionary."""
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        known_kwargs = {k: v for k, v in config_dict.items() if k in known_fields}
        extra_kwargs = {k: v for k, v in config_dict.items() if k not in known_fields}

        config = cls(**known_kwargs)
        config.extra.update(extra_kwargs)
        return config

    def update(self, **kwargs) -> 'EditConfig':
        """Return a new config with updated values."""
        config_dict = self.to_dict()
        config_dict.update(kwargs)
        return EditConfig.from_dict(config_dict)


def load_config(filepath: str) -> EditConfig:
    """
    Load configuration from JSON file.

    Args:
        filepath: Path to JSON config file

    Returns:
        EditConfig object
    """
    filepath = Path(filepath)
    with open(filepath, 'r') as f:
        config_dict = json.load(f)
    return EditConfig.from_dict(config_dict)


def save_config(config: EditConfig, filepath: str) -> None:
    """
    Save configuration to JSON file.

    Args:
        config: EditConfig object to save
        filepath: Output file path
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)
