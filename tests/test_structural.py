"""
Tests for structural edits.

The key property of every edit here is that the world-space motion of the
joints that survive is kept: exactly for insertions, and for removals up to
the length change of the merged bone.
"""

import math
import pytest
import torch

from skel_edit import (
    InvalidTopologyError,
    NotFoundError,
    Skeleton,
    insert_child,
    insert_joint,
    remove_joint,
    remove_joints,
    rename,
    rotation_between,
)

from conftest import NUM_FRAMES


ATOL = 1e-8


def unit(x: torch.Tensor) -> torch.Tensor:
    return x / x.norm(dim=-1, keepdim=True)


def assert_positions_kept(before, after, joints):
    for v in joints:
        assert torch.allclose(after[v][0], before[v][0], atol=ATOL), v


def assert_orientations_kept(before, after, joints):
    for v in joints:
        assert torch.allclose(after[v][1], before[v][1], atol=ATOL), v


# =============================================================================
# Insertion Tests
# =============================================================================

class TestInsertJoint:
    """Tests for splitting an edge with a new joint."""

    def test_offsets_split(self, humanoid):
        """The two new offsets sum to the old one."""
        old = humanoid.offset('Spine', 'Chest')
        insert_joint(humanoid, 'Spine', 'Chest', 'Spine1', fraction=0.25)

        upper = humanoid.offset('Spine', 'Spine1')
        lower = humanoid.offset('Spine1', 'Chest')
        assert torch.allclose(upper, 0.25 * old)
        assert torch.allclose(upper + lower, old)
        assert humanoid.parent('Chest') == humanoid.find('Spine1')

    def test_motion_unchanged(self, humanoid, fk):
        """Every original joint keeps its world transform."""
        joints = humanoid.joints()
        before = fk(humanoid)
        insert_joint(humanoid, 'LeftLeg', 'LeftFoot', 'LeftShin')
        after = fk(humanoid)

        assert_positions_kept(before, after, joints)
        assert_orientations_kept(before, after, joints)

    def test_new_joint_attributes(self, linear_chain):
        """The new joint copies the parent's order and does not rotate."""
        insert_joint(linear_chain, 'B', 'C', 'BC')
        v = linear_chain.find('BC')
        assert linear_chain.order(v) == linear_chain.order('B')
        assert torch.equal(linear_chain.rotations(v), torch.zeros(NUM_FRAMES, 3, dtype=torch.float64))

    def test_child_slot_kept(self, humanoid):
        """The new joint takes the child's place among its siblings."""
        insert_joint(humanoid, 'Chest', 'LeftShoulder', 'LeftClavicle')
        names = [humanoid.name(c) for c in humanoid.children('Chest')]
        assert names == ['Neck', 'LeftClavicle', 'RightShoulder']

    @pytest.mark.parametrize("fraction", [0.0, 1.0, -0.5, 2.0])
    def test_invalid_fraction(self, humanoid, fraction):
        with pytest.raises(ValueError):
            insert_joint(humanoid, 'Spine', 'Chest', 'Spine1', fraction=fraction)

    def test_missing_edge(self, humanoid):
        """Parent and child must be directly connected."""
        count = len(humanoid)
        with pytest.raises(InvalidTopologyError):
            insert_joint(humanoid, 'Hips', 'Chest', 'Spine1')
        assert len(humanoid) == count


class TestInsertChild:
    """Tests for adding a joint below an existing one."""

    def test_moves_all_children(self, humanoid, fk):
        """Without a list every child moves and keeps its position."""
        joints = humanoid.joints()
        before = fk(humanoid)
        insert_child(humanoid, 'Chest', 'UpperChest', [0.0, 4.0, 0.0])
        after = fk(humanoid)

        upper = humanoid.find('UpperChest')
        assert humanoid.children('Chest') == [upper]
        assert torch.allclose(
            humanoid.offset(upper, 'Neck'),
            torch.tensor([0.0, 6.0, 0.0], dtype=torch.float64)
        )
        assert_positions_kept(before, after, joints)
        assert_orientations_kept(before, after, joints)

    def test_moves_listed_children(self, humanoid, fk):
        """Only the listed children are re-attached."""
        joints = humanoid.joints()
        before = fk(humanoid)
        insert_child(humanoid, 'Hips', 'Pelvis', [0.0, -2.0, 0.0], children=['LeftUpLeg', 'RightUpLeg'])
        after = fk(humanoid)

        pelvis = humanoid.find('Pelvis')
        assert [humanoid.name(c) for c in humanoid.children('Hips')] == ['Spine', 'Pelvis']
        assert [humanoid.name(c) for c in humanoid.children(pelvis)] == ['LeftUpLeg', 'RightUpLeg']
        assert_positions_kept(before, after, joints)
        humanoid.validate()

    def test_not_a_child(self, humanoid):
        """Listing a joint that is not a child of parent raises."""
        count = len(humanoid)
        with pytest.raises(InvalidTopologyError, match="is not a child of"):
            insert_child(humanoid, 'Hips', 'Pelvis', [0.0, 0.0, 0.0], children=['Chest'])
        assert len(humanoid) == count

    def test_bad_offset_shape(self, humanoid):
        """An offset that is not a 3-vector leaves the skeleton untouched."""
        count = len(humanoid)
        with pytest.raises(ValueError, match="offset"):
            insert_child(humanoid, 'Chest', 'Extra', [1.0])

        assert len(humanoid) == count
        assert 'Extra' not in humanoid
        assert len(humanoid.children('Chest')) == 3
        humanoid.validate()

    def test_leaf_parent(self, humanoid):
        """A terminal joint receives a full track once it has a child."""
        end = humanoid.find_child('Head', 'End Site')
        insert_child(humanoid, end, 'Tip', [0.0, 1.0, 0.0])

        assert humanoid.rotations(end).shape == (NUM_FRAMES, 3)
        assert humanoid.rotations('Tip').shape == (1, 3)
        assert humanoid.is_leaf('Tip')
        humanoid.validate()


# =============================================================================
# Removal Tests
# =============================================================================

class TestRemoveJoint:
    """Tests for removing a joint with compensating rotations."""

    def test_twist_keeps_positions(self, linear_chain, fk):
        """A joint that only twists about its bone is removed without error."""
        theta = torch.linspace(-80.0, 80.0, NUM_FRAMES, dtype=torch.float64)
        twist = torch.stack([torch.zeros_like(theta), torch.zeros_like(theta), theta], dim=-1)
        linear_chain.set_rotations('A', twist)  # ZXY: pure rotation about Y

        below = [linear_chain.find(n) for n in ('B', 'C')]
        below.append(linear_chain.find_child('C', 'End Site'))
        before = fk(linear_chain)
        remove_joint(linear_chain, 'A')
        after = fk(linear_chain)

        assert 'A' not in linear_chain
        assert linear_chain.parent('B') == linear_chain.root
        assert torch.allclose(
            linear_chain.offset('Root', 'B'),
            torch.tensor([3.0, 15.0, 0.0], dtype=torch.float64)
        )
        assert_positions_kept(before, after, below)
        assert_orientations_kept(before, after, below)

    def test_keeps_orientations(self, linear_chain, fk):
        """Every joint below the removed one keeps its world orientation."""
        a, c = linear_chain.find('A'), linear_chain.find('C')
        end = linear_chain.find_child(c, 'End Site')
        before = fk(linear_chain)
        remove_joint(linear_chain, 'B')
        after = fk(linear_chain)

        assert_orientations_kept(before, after, [c, end])
        assert_positions_kept(before, after, [linear_chain.root, a])

    def test_keeps_bone_direction(self, linear_chain, fk):
        """The merged bone points where the removed chain pointed."""
        a, c = linear_chain.find('A'), linear_chain.find('C')
        end = linear_chain.find_child(c, 'End Site')
        before = fk(linear_chain)
        remove_joint(linear_chain, 'B')
        after = fk(linear_chain)

        assert torch.allclose(
            unit(after[c][0] - after[a][0]),
            unit(before[c][0] - before[a][0]),
            atol=ATOL
        )
        assert torch.allclose(
            after[end][0] - after[c][0],
            before[end][0] - before[c][0],
            atol=ATOL
        )

    def test_last_joint_before_end_site(self, linear_chain, fk):
        """Removing the joint above an End Site keeps the End Site direction."""
        b = linear_chain.find('B')
        end = linear_chain.find_child('C', 'End Site')
        before = fk(linear_chain)
        remove_joint(linear_chain, 'C')
        after = fk(linear_chain)

        assert linear_chain.parent(end) == b
        assert torch.allclose(
            unit(after[end][0] - after[b][0]),
            unit(before[end][0] - before[b][0]),
            atol=ATOL
        )

    def test_documented_scenario(self, chain, fk):
        """Root -> A -> End Site with A at 90 degrees about X."""
        end = chain.find('End Site')
        before = fk(chain)
        remove_joint(chain, 'A')
        after = fk(chain)

        root = chain.root
        assert chain.children(root) == [end]
        assert torch.allclose(chain.offset(root, end), torch.tensor([0.0, 15.0, 0.0], dtype=torch.float64))

        angle = math.degrees(math.atan2(5.0, 10.0))
        expected = torch.tensor([[angle, 0.0, 0.0]], dtype=torch.float64)
        assert torch.allclose(chain.rotations(root), expected, atol=1e-9)

        B = rotation_between([0.0, 15.0, 0.0], [0.0, 10.0, 5.0])
        assert torch.allclose(chain.rotation_matrices(root)[0], B, atol=1e-12)

        assert torch.allclose(unit(after[end][0]), unit(before[end][0]), atol=ATOL)
        assert after[end][0].norm().item() == pytest.approx(15.0)
        assert chain.rotations(end).shape == (1, 3)

    def test_primary_child(self, humanoid, fk):
        """With several children the primary one keeps its direction."""
        spine = humanoid.find('Spine')
        children = humanoid.children('Chest')
        left = humanoid.find('LeftShoulder')
        before = fk(humanoid)
        remove_joint(humanoid, 'Chest', primary='LeftShoulder')
        after = fk(humanoid)

        assert humanoid.children(spine) == children
        assert torch.allclose(
            unit(after[left][0] - after[spine][0]),
            unit(before[left][0] - before[spine][0]),
            atol=ATOL
        )
        assert_orientations_kept(before, after, children)

    def test_primary_not_a_child(self, humanoid):
        before = humanoid.copy()
        with pytest.raises(InvalidTopologyError, match="is not a child of"):
            remove_joint(humanoid, 'Chest', primary='LeftArm')
        assert 'Chest' in humanoid
        assert torch.equal(humanoid.rotations('Spine'), before.rotations('Spine'))

    def test_siblings_keep_orientation(self, humanoid, fk):
        """Siblings of the removed joint are counter-rotated."""
        hips = humanoid.root
        untouched = [v for v in humanoid.joints() if v != hips and humanoid.name(v) != 'LeftUpLeg']
        left_leg = humanoid.find('LeftLeg')
        before = fk(humanoid)
        remove_joint(humanoid, 'LeftUpLeg')
        after = fk(humanoid)

        assert_orientations_kept(before, after, untouched)
        assert_positions_kept(before, after, [hips])
        assert torch.allclose(
            unit(after[left_leg][0] - after[hips][0]),
            unit(before[left_leg][0] - before[hips][0]),
            atol=ATOL
        )
        assert [humanoid.name(c) for c in humanoid.children(hips)] == ['Spine', 'LeftLeg', 'RightUpLeg']

    def test_leaf_makes_end_site(self, chain):
        """Removing an only leaf turns its parent into an End Site."""
        a = chain.find('A')
        remove_joint(chain, 'End Site')

        assert chain.name(a) == 'End Site'
        assert chain.is_leaf(a)
        assert chain.rotations(a).shape == (1, 3)
        chain.validate()

    def test_leaf_with_siblings(self, humanoid):
        """A parent with other children keeps its name and track."""
        head = humanoid.find('Head')
        tip = humanoid.add_joint('Tip', rotations=torch.zeros(1, 3))
        humanoid.add_edge(head, tip, [0.0, 1.0, 0.0])
        remove_joint(humanoid, tip)

        assert humanoid.name(head) == 'Head'
        assert humanoid.rotations(head).shape == (NUM_FRAMES, 3)

    def test_root(self, humanoid):
        with pytest.raises(InvalidTopologyError, match="Cannot remove the root"):
            remove_joint(humanoid, 'Hips')

    def test_two_bone_chain(self):
        """Removing the only inner joint leaves the root with its End Site."""
        tree = {
            'name': 'Hips',
            'children': [{
                'name': 'Spine',
                'offset': [0.0, 10.0, 0.0],
                'children': [{'name': 'End Site', 'offset': [0.0, 5.0, 0.0]}],
            }],
        }
        g = Skeleton.from_tree(tree, num_frames=100)
        remove_joint(g, 'Spine')

        end = g.find('End Site')
        assert 'Spine' not in g
        assert g.children('Hips') == [end]
        assert torch.allclose(g.offset('Hips', end), torch.tensor([0.0, 15.0, 0.0], dtype=torch.float64))
        assert torch.allclose(g.rotations('Hips'), torch.zeros(100, 3, dtype=torch.float64), atol=1e-9)
        g.validate()


class TestRemoveJoints:
    """Tests for removing several joints at once."""

    def test_removes_all(self, humanoid):
        remove_joints(humanoid, 'LeftShoulder', 'RightShoulder')
        assert 'LeftShoulder' not in humanoid
        assert 'RightShoulder' not in humanoid
        humanoid.validate()

    def test_atomic(self, humanoid):
        """A failing removal undoes the ones before it."""
        before = humanoid.copy()
        with pytest.raises(NotFoundError):
            remove_joints(humanoid, 'Neck', 'Tail')

        assert 'Neck' in humanoid
        assert len(humanoid) == len(before)
        assert torch.equal(humanoid.rotations('Chest'), before.rotations('Chest'))
        humanoid.validate()


class TestRename:
    """Tests for renaming joints."""

    def test_rename(self, humanoid):
        head = humanoid.find('Head')
        rename(humanoid, {'Head': 'Skull'})
        assert humanoid.find('Skull') == head

    def test_swap(self, humanoid):
        """Names can be exchanged in one call."""
        left, right = humanoid.find('LeftArm'), humanoid.find('RightArm')
        rename(humanoid, {'LeftArm': 'RightArm', 'RightArm': 'LeftArm'})
        assert humanoid.find('LeftArm') == right
        assert humanoid.find('RightArm') == left

    def test_missing_name(self, humanoid):
        """Nothing is renamed when any old name is missing."""
        with pytest.raises(NotFoundError):
            rename(humanoid, {'Head': 'Skull', 'Tail': 'Stub'})
        assert 'Head' in humanoid
        assert 'Skull' not in humanoid
