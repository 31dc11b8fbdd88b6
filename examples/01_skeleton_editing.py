"""
Example 01: Editing an Animated Skeleton

Demonstrates the editing workflow on a small procedurally animated rig:
1. Building a skeleton from a nested joint description
2. Inserting and removing joints while keeping the world-space motion
3. Converting every joint to a common rotation order
4. Taking bone directions from a second skeleton and projecting its motion
5. Chaining edits with SkeletonEditor and a saved configuration

Output files:
- output/01_edit_config.json - Configuration used by the editor
"""

import math
from pathlib import Path

import torch

import skel_edit
from skel_edit import EditConfig, Skeleton, SkeletonEditor, save_config


# =============================================================================
# 1. Configuration
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent
OUTPUT_DIR = PROJECT_ROOT / "output"

NUM_FRAMES = 120
FRAME_TIME = 1.0 / 30.0


def swing(amplitude: float, phase: float = 0.0) -> torch.Tensor:
    """Sinusoidal swing about the joint's first axis, shape (F, 3)."""
    t = torch.arange(NUM_FRAMES, dtype=torch.float64) * FRAME_TIME
    angles = torch.zeros(NUM_FRAMES, 3, dtype=torch.float64)
    angles[:, 0] = amplitude * torch.sin(2 * math.pi * t + phase)
    return angles


def build_rig() -> Skeleton:
    """Hips with a spine and two legs."""
    def leg(side: str, x: float, phase: float):
        return {
            'name': f'{side}UpLeg',
            'offset': [x, 0.0, 0.0],
            'rotations': swing(30.0, phase),
            'children': [{
                'name': f'{side}Leg',
                'offset': [0.0, -40.0, 0.0],
                'rotations': swing(20.0, phase + 0.5),
                'children': [{'name': 'End Site', 'offset': [0.0, -40.0, 0.0]}],
            }],
        }

    return Skeleton.from_tree({
        'name': 'Hips',
        'offset': [0.0, 90.0, 0.0],
        'rotations': swing(5.0),
        'children': [
            {
                'name': 'Spine',
                'offset': [0.0, 10.0, 0.0],
                'rotations': swing(8.0, 1.0),
                'children': [{
                    'name': 'Chest',
                    'offset': [0.0, 15.0, 0.0],
                    'rotations': swing(4.0, 2.0),
                    'children': [{'name': 'End Site', 'offset': [0.0, 20.0, 0.0]}],
                }],
            },
            leg('Left', 10.0, 0.0),
            leg('Right', -10.0, math.pi),
        ],
    }, num_frames=NUM_FRAMES, frame_time=FRAME_TIME)


def world_positions(g: Skeleton) -> dict:
    """World position track of every joint, keyed by handle."""
    root = g.root
    world = {root: (g.positions + g.root_offset, g.rotation_matrices(root))}
    stack = [root]
    while stack:
        p = stack.pop()
        pos_p, W_p = world[p]
        for c in g.children(p):
            W_c = W_p if g.is_leaf(c) else W_p @ g.rotation_matrices(c)
            world[c] = (pos_p + W_p @ g.offset(p, c), W_c)
            stack.append(c)
    return {v: pos for v, (pos, _) in world.items()}


def max_drift(before: dict, after: dict) -> float:
    return max((after[v] - before[v]).norm(dim=-1).max().item() for v in after if v in before)


# =============================================================================
# 2. Structural Edits
# =============================================================================

def structural_edits(g: Skeleton):
    print("=" * 60)
    print("Phase 1: Structural Edits")
    print("=" * 60)

    before = world_positions(g)
    skel_edit.insert_joint(g, 'LeftUpLeg', 'LeftLeg', 'LeftThighTwist', fraction=0.3)
    print(f"  Inserted LeftThighTwist, drift: {max_drift(before, world_positions(g)):.2e}")

    before = world_positions(g)
    skel_edit.remove_joint(g, 'Spine')
    drift = max_drift(before, world_positions(g))
    print(f"  Removed Spine, drift: {drift:.2e} (merged bone changes length)")
    print(f"  Joints: {len(g)}")


# =============================================================================
# 3. Rotation Orders
# =============================================================================

def rotation_orders(g: Skeleton):
    print("\n" + "=" * 60)
    print("Phase 2: Rotation Orders")
    print("=" * 60)

    before = world_positions(g)
    skel_edit.change_orders(g, 'YXZ')
    print(f"  Converted all joints to YXZ, drift: {max_drift(before, world_positions(g)):.2e}")


# =============================================================================
# 4. Transfer Between Skeletons
# =============================================================================

def transfer(g: Skeleton):
    print("\n" + "=" * 60)
    print("Phase 3: Transfer Between Skeletons")
    print("=" * 60)

    donor = build_rig()
    donor.set_offset('LeftUpLeg', 'LeftLeg', [3.0, -40.0, 5.0])
    donor.set_offset('RightUpLeg', 'RightLeg', [-3.0, -40.0, 5.0])

    target = build_rig()
    before = world_positions(target)
    skel_edit.replace_offsets(target, donor)
    print(f"  Replaced offsets, drift: {max_drift(before, world_positions(target)):.2e}")

    skel_edit.zero(target)
    skel_edit.project(target, donor)
    print(f"  Projected donor motion onto {len(target)} joints")


# =============================================================================
# 5. Chained Editing
# =============================================================================

def chained(g: Skeleton):
    print("\n" + "=" * 60)
    print("Phase 4: Chained Editing")
    print("=" * 60)

    config_path = OUTPUT_DIR / "01_edit_config.json"
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    save_config(EditConfig(split_fraction=0.5, end_site_name='Tip'), config_path)

    (
        SkeletonEditor.from_config_file(g, config_path)
        .rename({'LeftThighTwist': 'LeftThighRoll'})
        .insert_joint('Hips', 'Chest', 'Spine')
        .add_frames(30)
        .scale(0.01)
    )
    print(f"  {g}")
    print(f"  Saved: {config_path}")


def main():
    g = build_rig()
    structural_edits(g)
    rotation_orders(g)
    transfer(g)
    chained(g)


if __name__ == "__main__":
    main()
