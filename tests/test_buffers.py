# tests/test_buffers.py
"""Tests for buffer, buffer view and accessor decoding."""

import base64
import struct

import numpy as np
import pytest

from gltf_runtime import Document
from gltf_runtime.buffers import (
    BufferStore, decode_data_uri, normalize, read_elements,
)
from gltf_runtime.errors import BoundsError, SemanticError, StructuralError


def test_decode_data_uri():
    payload = b'\x01\x02\x03'
    uri = 'data:application/octet-stream;base64,' + base64.b64encode(payload).decode('ascii')
    assert decode_data_uri(uri) == payload


def test_external_uri_is_rejected():
    with pytest.raises(StructuralError):
        decode_data_uri('mesh.bin')


def test_data_uri_without_base64_marker_is_rejected():
    with pytest.raises(StructuralError):
        decode_data_uri('data:text/plain,hello')


def test_float_vec3_reads_tightly_packed(builder):
    values = [(float(i), float(i) + 0.5, -float(i)) for i in range(5)]
    index = builder.add_accessor(values, 5126, 'VEC3')
    store = BufferStore(builder.document())

    accessor = store.decode_accessor(index)
    assert accessor.stride == 12
    assert accessor.elements == 3
    assert accessor.element_size == 4
    assert accessor.count == 5

    decoded = read_elements(accessor)
    assert decoded.shape == (5, 3)
    for i in range(5):
        expected = struct.unpack_from('<3f', accessor.data, 12 * i)
        assert tuple(decoded[i]) == expected
    np.testing.assert_allclose(decoded, values)


def test_uint8_indices(builder):
    index = builder.add_accessor([0, 1, 2], 5121, 'SCALAR')
    accessor = BufferStore(builder.document()).decode_accessor(index)
    assert read_elements(accessor).reshape(-1).tolist() == [0, 1, 2]


def test_uint16_indices_stay_inside_view(builder):
    index = builder.add_accessor([0, 1, 2], 5123, 'SCALAR')
    accessor = BufferStore(builder.document()).decode_accessor(index)
    assert len(accessor.data) == 3 * 2
    assert read_elements(accessor).reshape(-1).tolist() == [0, 1, 2]


def test_count_larger_than_view_fails(builder):
    index = builder.add_accessor([0, 1, 2], 5123, 'SCALAR')
    builder.root['accessors'][index]['count'] = 4
    with pytest.raises(BoundsError):
        BufferStore(builder.document()).decode_accessor(index)


def test_accessor_byte_offset_is_applied(builder):
    index = builder.add_accessor([7, 8, 9, 10], 5123, 'SCALAR')
    builder.root['accessors'][index].update({'byteOffset': 2, 'count': 3})
    accessor = BufferStore(builder.document()).decode_accessor(index)
    assert read_elements(accessor).reshape(-1).tolist() == [8, 9, 10]


def test_accessor_byte_offset_past_view_fails(builder):
    index = builder.add_accessor([7, 8, 9, 10], 5123, 'SCALAR')
    builder.root['accessors'][index].update({'byteOffset': 4, 'count': 3})
    with pytest.raises(BoundsError):
        BufferStore(builder.document()).decode_accessor(index)


def test_interleaved_view(builder):
    # position (3 floats) + normal (3 floats) per vertex, stride 24
    rows = [(0, 0, 0, 0, 0, 1), (1, 0, 0, 0, 1, 0), (0, 1, 0, 1, 0, 0)]
    payload = b''.join(struct.pack('<6f', *row) for row in rows)
    view = builder.add_view(payload, stride=24)
    positions = builder.add_raw_accessor(
        {'bufferView': view, 'componentType': 5126, 'count': 3, 'type': 'VEC3'}
    )
    normals = builder.add_raw_accessor(
        {'bufferView': view, 'byteOffset': 12, 'componentType': 5126, 'count': 3, 'type': 'VEC3'}
    )
    store = BufferStore(builder.document())

    np.testing.assert_allclose(read_elements(store.decode_accessor(positions)), [r[:3] for r in rows])
    normal_accessor = store.decode_accessor(normals)
    assert normal_accessor.stride == 24
    np.testing.assert_allclose(read_elements(normal_accessor), [r[3:] for r in rows])


def test_accessor_without_view_is_zero_filled(builder):
    index = builder.add_raw_accessor({'componentType': 5126, 'count': 4, 'type': 'VEC2'})
    accessor = BufferStore(builder.document()).decode_accessor(index)
    assert accessor.data == bytes(4 * 2 * 4)
    assert not read_elements(accessor).any()


def test_unknown_component_type(builder):
    index = builder.add_raw_accessor({'componentType': 5124, 'count': 1, 'type': 'SCALAR'})
    with pytest.raises(SemanticError):
        BufferStore(builder.document()).decode_accessor(index)


def test_unknown_element_type(builder):
    index = builder.add_raw_accessor({'componentType': 5126, 'count': 1, 'type': 'VEC5'})
    with pytest.raises(SemanticError):
        BufferStore(builder.document()).decode_accessor(index)


def test_missing_count_is_structural(builder):
    index = builder.add_raw_accessor({'componentType': 5126, 'type': 'SCALAR'})
    with pytest.raises(StructuralError):
        BufferStore(builder.document()).decode_accessor(index)


def test_accessor_index_out_of_range(builder):
    with pytest.raises(StructuralError):
        BufferStore(builder.document()).decode_accessor(3)


def test_view_exceeding_buffer_fails(builder):
    index = builder.add_accessor([1.0, 2.0], 5126, 'SCALAR')
    builder.root['bufferViews'][0]['byteLength'] = 64
    with pytest.raises(BoundsError):
        BufferStore(builder.document()).decode_accessor(index)


def test_buffers_are_cached_by_index(builder):
    builder.add_accessor([1.0], 5126, 'SCALAR')
    store = BufferStore(builder.document())
    assert store.get_buffer(0) is store.get_buffer(0)
    assert 0 in store.buffers_cache


def test_accessor_bytes_are_copies(builder):
    index = builder.add_accessor([1.0, 2.0], 5126, 'SCALAR')
    store = BufferStore(builder.document())
    decoded = read_elements(store.decode_accessor(index))
    decoded[:] = 0
    assert read_elements(store.decode_accessor(index)).reshape(-1).tolist() == [1.0, 2.0]


def test_glb_binary_chunk_backs_uriless_buffer(builder):
    index = builder.add_accessor([(1, 2, 3)], 5126, 'VEC3')
    document = Document.from_bytes(builder.to_glb())
    accessor = BufferStore(document).decode_accessor(index)
    np.testing.assert_allclose(read_elements(accessor), [(1, 2, 3)])


def test_uriless_buffer_without_binary_chunk_fails(builder):
    index = builder.add_accessor([1.0], 5126, 'SCALAR')
    root = builder.finish()
    del root['buffers'][0]['uri']
    with pytest.raises(StructuralError):
        BufferStore(Document(root)).decode_accessor(index)


def test_normalize_unsigned_components():
    np.testing.assert_allclose(normalize(np.array([0, 255], dtype=np.uint8), 5121), [0.0, 1.0])
    np.testing.assert_allclose(normalize(np.array([0, 65535], dtype=np.uint16), 5123), [0.0, 1.0])
    with pytest.raises(SemanticError):
        normalize(np.array([0], dtype=np.int8), 5120)


def test_interleaved_last_element_needs_no_trailing_stride(builder):
    # last vertex stores its position only: 2 full strides plus 12 bytes
    rows = [(0, 0, 0, 0, 0, 1), (1, 0, 0, 0, 1, 0)]
    payload = b''.join(struct.pack('<6f', *row) for row in rows) + struct.pack('<3f', 0, 1, 0)
    view = builder.add_view(payload, stride=24)
    positions = builder.add_raw_accessor(
        {'bufferView': view, 'componentType': 5126, 'count': 3, 'type': 'VEC3'}
    )
    normals = builder.add_raw_accessor(
        {'bufferView': view, 'byteOffset': 12, 'componentType': 5126, 'count': 3, 'type': 'VEC3'}
    )
    store = BufferStore(builder.document())

    accessor = store.decode_accessor(positions)
    assert len(accessor.data) == 60
    np.testing.assert_allclose(read_elements(accessor), [(0, 0, 0), (1, 0, 0), (0, 1, 0)])
    with pytest.raises(BoundsError):
        store.decode_accessor(normals)
