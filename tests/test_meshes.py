# tests/test_meshes.py
"""Tests for merging primitives into mesh descriptions."""

import numpy as np
import pytest

from gltf_runtime import ParserConfig, Primitive
from gltf_runtime.errors import SemanticError, StructuralError
from gltf_runtime.meshes import MeshAssembler, triangulate
from gltf_runtime.skeleton import Skeleton


def make_primitive(positions, indices, **kwargs):
    return Primitive(
        positions=np.asarray(positions, dtype=np.float32),
        indices=np.asarray(indices, dtype=np.uint32),
        **kwargs
    )


def make_skeleton():
    skeleton = Skeleton(root_node_index=0)
    skeleton.add_bone('root', None, np.eye(4), 0)
    skeleton.add_bone('arm', 0, np.eye(4), 1)
    skeleton.bone_map = {0: 'root', 1: 'arm'}
    return skeleton


def test_triangulate_skips_degenerate():
    triangles = triangulate(np.array([0, 0, 1, 0, 1, 2], dtype=np.uint32))
    assert triangles.tolist() == [[3, 4, 5]]


def test_triangulate_ignores_trailing_indices():
    triangles = triangulate(np.array([0, 1, 2, 0, 1], dtype=np.uint32))
    assert triangles.tolist() == [[0, 1, 2]]


def test_triangulate_empty():
    assert len(triangulate(np.zeros(0, dtype=np.uint32))) == 0


def test_bounds_padding():
    config = ParserConfig.identity(bounds_padding=0.1, bounds_vertical_padding=0.1)
    bounds = MeshAssembler(config).compute_bounds(np.array([[-1, -2, 0], [1, 2, 4]], dtype=float))
    # half extent (1, 2, 2); vertical axis padded twice
    np.testing.assert_allclose(bounds.minimum, [-1.1, -2.2, -0.4])
    np.testing.assert_allclose(bounds.maximum, [1.1, 2.2, 4.4])


def test_bounds_without_padding_match_points():
    config = ParserConfig.identity(bounds_padding=0.0, bounds_vertical_padding=0.0)
    points = np.array([[0, 0, 0], [3, 1, 2]], dtype=float)
    bounds = MeshAssembler(config).compute_bounds(points)
    np.testing.assert_allclose(bounds.minimum, [0, 0, 0])
    np.testing.assert_allclose(bounds.extent, [3, 1, 2])


def test_static_sections_share_point_array():
    assembler = MeshAssembler(ParserConfig.identity())
    first = make_primitive([(0, 0, 0), (1, 0, 0), (0, 1, 0)], [0, 1, 2], material_index=0)
    second = make_primitive([(0, 0, 1), (1, 0, 1), (0, 1, 1)], [2, 1, 0], material_index=1)

    description = assembler.assemble_static('Pair', [first, second])
    assert description.name == 'Pair'
    assert description.points.shape == (6, 3)
    assert [s.material_index for s in description.sections] == [0, 1]
    assert description.sections[1].base_point == 3
    assert description.sections[1].wedge_points.tolist() == [5, 4, 3]
    assert description.sections[1].triangles.tolist() == [[0, 1, 2]]


def test_missing_normals_are_zero_per_wedge():
    assembler = MeshAssembler(ParserConfig.identity())
    primitive = make_primitive([(0, 0, 0), (1, 0, 0), (0, 1, 0)], [0, 1, 2])
    section = assembler.assemble_static('Flat', [primitive]).sections[0]
    assert section.wedge_normals.shape == (3, 3)
    assert not section.wedge_normals.any()
    assert section.wedge_uvs == []


def test_index_out_of_range_fails():
    assembler = MeshAssembler(ParserConfig.identity())
    primitive = make_primitive([(0, 0, 0), (1, 0, 0), (0, 1, 0)], [0, 1, 3])
    with pytest.raises(StructuralError):
        assembler.assemble_static('Broken', [primitive])


def test_skinned_influences_drop_zero_weights():
    assembler = MeshAssembler(ParserConfig.identity())
    primitive = make_primitive(
        [(0, 0, 0), (1, 0, 0), (0, 1, 0)], [0, 1, 2],
        joint_sets=[np.array([(0, 0, 0, 0), (0, 1, 0, 0), (1, 0, 0, 0)])],
        weight_sets=[np.array([(1, 0, 0, 0), (0.25, 0.75, 0, 0), (1, 0, 0, 0)], dtype=np.float32)],
    )
    description = assembler.assemble_skeletal('Arm', [primitive], make_skeleton())
    assert description.influences[0] == [(0, 1.0)]
    assert description.influences[1] == [(0, 0.25), (1, 0.75)]
    assert description.influences[2] == [(1, 1.0)]
    np.testing.assert_allclose(description.root_transform, np.eye(4))


def test_unmapped_joint_fails_even_at_zero_weight():
    assembler = MeshAssembler(ParserConfig.identity())
    primitive = make_primitive(
        [(0, 0, 0), (1, 0, 0), (0, 1, 0)], [0, 1, 2],
        joint_sets=[np.array([(0, 7, 0, 0)] * 3)],
        weight_sets=[np.array([(1, 0, 0, 0)] * 3, dtype=np.float32)],
    )
    with pytest.raises(SemanticError, match="Unable to find map for bone 7"):
        assembler.assemble_skeletal('Arm', [primitive], make_skeleton())


def test_skinned_primitive_without_joints_fails():
    assembler = MeshAssembler(ParserConfig.identity())
    primitive = make_primitive([(0, 0, 0), (1, 0, 0), (0, 1, 0)], [0, 1, 2])
    with pytest.raises(SemanticError):
        assembler.assemble_skeletal('Arm', [primitive], make_skeleton())


def test_short_joint_stream_fails():
    assembler = MeshAssembler(ParserConfig.identity())
    primitive = make_primitive(
        [(0, 0, 0), (1, 0, 0), (0, 1, 0)], [0, 1, 2],
        joint_sets=[np.array([(0, 0, 0, 0)])],
        weight_sets=[np.array([(1, 0, 0, 0)], dtype=np.float32)],
    )
    with pytest.raises(StructuralError):
        assembler.assemble_skeletal('Arm', [primitive], make_skeleton())
