"""
Pytest configuration and fixtures for skel_edit tests.
"""

import pytest
import torch

from skel_edit import Skeleton


NUM_FRAMES = 6


def random_angles(generator: torch.Generator, num_frames: int = NUM_FRAMES, limit: float = 60.0) -> torch.Tensor:
    """Euler track with every angle uniform in (-limit, limit) degrees."""
    return (torch.rand(num_frames, 3, generator=generator, dtype=torch.float64) * 2 - 1) * limit


def forward_kinematics(g: Skeleton):
    """
    World transforms of every joint.

    Returns:
        Dict mapping joint handle -> (positions (F, 3), orientations (F, 3, 3)).
        Leaves take the orientation of their parent.
    """
    root = g.root
    world = {root: (g.positions + g.root_offset, g.rotation_matrices(root))}

    stack = [root]
    while stack:
        p = stack.pop()
        pos_p, W_p = world[p]
        for c in g.children(p):
            pos_c = pos_p + W_p @ g.offset(p, c)
            W_c = W_p if g.is_leaf(c) else W_p @ g.rotation_matrices(c)
            world[c] = (pos_c, W_c)
            stack.append(c)

    return world


@pytest.fixture
def fk():
    """Forward kinematics helper."""
    return forward_kinematics


@pytest.fixture
def generator():
    """Seeded generator for reproducible random tracks."""
    return torch.Generator().manual_seed(0)


@pytest.fixture
def random_track(generator):
    """Factory for random Euler tracks drawn from the seeded generator."""
    return lambda num_frames=NUM_FRAMES, limit=60.0: random_angles(generator, num_frames, limit)


@pytest.fixture
def chain():
    """Root -> A -> End Site, one frame, A turned 90 degrees about X."""
    return Skeleton.from_tree({
        'name': 'Root',
        'order': 'XYZ',
        'children': [{
            'name': 'A',
            'order': 'XYZ',
            'offset': [0.0, 10.0, 0.0],
            'rotations': [[90.0, 0.0, 0.0]],
            'children': [{'name': 'End Site', 'offset': [0.0, 5.0, 0.0]}],
        }],
    })


@pytest.fixture
def linear_chain(generator):
    """Root -> A -> B -> C -> End Site with random motion."""
    return Skeleton.from_tree({
        'name': 'Root',
        'order': 'ZXY',
        'rotations': random_angles(generator),
        'children': [{
            'name': 'A',
            'order': 'ZXY',
            'offset': [0.0, 10.0, 0.0],
            'rotations': random_angles(generator),
            'children': [{
                'name': 'B',
                'order': 'XYZ',
                'offset': [3.0, 5.0, 0.0],
                'rotations': random_angles(generator),
                'children': [{
                    'name': 'C',
                    'order': 'YXZ',
                    'offset': [0.0, 4.0, 1.0],
                    'rotations': random_angles(generator),
                    'children': [{'name': 'End Site', 'offset': [0.0, 2.0, 0.0]}],
                }],
            }],
        }],
    }, num_frames=NUM_FRAMES, positions=random_angles(generator))


@pytest.fixture
def humanoid(generator):
    """Small branching skeleton with random motion."""

    def limb(names, offsets):
        node = {'name': 'End Site', 'offset': offsets[-1]}
        for name, offset in reversed(list(zip(names, offsets[:-1]))):
            node = {
                'name': name,
                'offset': offset,
                'rotations': random_angles(generator),
                'children': [node],
            }
        return node

    chest = {
        'name': 'Chest',
        'offset': [0.0, 12.0, 0.0],
        'rotations': random_angles(generator),
        'children': [
            limb(['Neck', 'Head'], [[0.0, 10.0, 0.0], [0.0, 5.0, 1.0], [0.0, 8.0, 0.0]]),
            limb(['LeftShoulder', 'LeftArm', 'LeftHand'],
                 [[4.0, 8.0, 0.0], [6.0, 0.0, 0.0], [12.0, 0.0, 0.0], [10.0, 0.0, 0.0]]),
            limb(['RightShoulder', 'RightArm', 'RightHand'],
                 [[-4.0, 8.0, 0.0], [-6.0, 0.0, 0.0], [-12.0, 0.0, 0.0], [-10.0, 0.0, 0.0]]),
        ],
    }
    tree = {
        'name': 'Hips',
        'offset': [0.0, 90.0, 0.0],
        'rotations': random_angles(generator),
        'children': [
            {
                'name': 'Spine',
                'offset': [0.0, 8.0, 0.0],
                'rotations': random_angles(generator),
                'children': [chest],
            },
            limb(['LeftUpLeg', 'LeftLeg', 'LeftFoot'],
                 [[8.0, 0.0, 0.0], [0.0, -40.0, 0.0], [0.0, -38.0, 2.0], [0.0, -5.0, 12.0]]),
            limb(['RightUpLeg', 'RightLeg', 'RightFoot'],
                 [[-8.0, 0.0, 0.0], [0.0, -40.0, 0.0], [0.0, -38.0, 2.0], [0.0, -5.0, 12.0]]),
        ],
    }
    return Skeleton.from_tree(tree, num_frames=NUM_FRAMES, positions=random_angles(generator))
