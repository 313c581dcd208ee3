# tests/conftest.py
"""Shared fixtures: small glTF documents assembled in memory."""

import base64
import json
import struct

import pytest

from gltf_runtime import Document, GltfParser, ParserConfig

FORMATS = {
    5120: 'b', 5121: 'B', 5122: 'h', 5123: 'H', 5125: 'I', 5126: 'f',
}


def translation_ibm(x, y, z):
    """Column-major glTF matrix holding a pure translation"""
    return [1, 0, 0, 0, 0, 1, 0, 0, 0, 0, 1, 0, x, y, z, 1]


class GltfBuilder:
    """Accumulates one binary buffer plus the JSON that describes it"""

    def __init__(self):
        self.data = bytearray()
        self.root = {
            'asset': {'version': '2.0'},
            'buffers': [],
            'bufferViews': [],
            'accessors': [],
        }

    def add_view(self, payload: bytes, stride=None) -> int:
        while len(self.data) % 4:
            self.data.append(0)
        view = {'buffer': 0, 'byteOffset': len(self.data), 'byteLength': len(payload)}
        if stride:
            view['byteStride'] = stride
        self.data.extend(payload)
        self.root['bufferViews'].append(view)
        return len(self.root['bufferViews']) - 1

    def add_accessor(self, values, component_type, element_type, **extra) -> int:
        flat = []
        for value in values:
            if isinstance(value, (list, tuple)):
                flat.extend(value)
            else:
                flat.append(value)
        payload = struct.pack(f"<{len(flat)}{FORMATS[component_type]}", *flat)
        arity = {'SCALAR': 1, 'VEC2': 2, 'VEC3': 3, 'VEC4': 4, 'MAT4': 16}[element_type]

        accessor = {
            'bufferView': self.add_view(payload),
            'componentType': component_type,
            'count': len(flat) // arity,
            'type': element_type,
        }
        accessor.update(extra)
        self.root['accessors'].append(accessor)
        return len(self.root['accessors']) - 1

    def add_raw_accessor(self, accessor: dict) -> int:
        self.root['accessors'].append(accessor)
        return len(self.root['accessors']) - 1

    def finish(self) -> dict:
        encoded = base64.b64encode(bytes(self.data)).decode('ascii')
        self.root['buffers'] = [{
            'byteLength': len(self.data),
            'uri': 'data:application/octet-stream;base64,' + encoded,
        }]
        return self.root

    def document(self) -> Document:
        return Document(self.finish())

    def to_glb(self) -> bytes:
        """Same content packed as a GLB container, buffer 0 in the BIN chunk"""
        root = dict(self.root)
        root['buffers'] = [{'byteLength': len(self.data)}]
        json_chunk = json.dumps(root).encode('utf-8')
        json_chunk += b' ' * (-len(json_chunk) % 4)
        bin_chunk = bytes(self.data) + b'\x00' * (-len(self.data) % 4)

        body = struct.pack('<I4s', len(json_chunk), b'JSON') + json_chunk
        body += struct.pack('<I4s', len(bin_chunk), b'BIN\x00') + bin_chunk
        return struct.pack('<4sII', b'glTF', 2, 12 + len(body)) + body


@pytest.fixture
def builder():
    return GltfBuilder()


@pytest.fixture
def identity_config():
    return ParserConfig.identity(scale=1.0)


def add_triangle_mesh(builder, material=None, name='Triangle'):
    positions = builder.add_accessor([(0, 0, 0), (1, 0, 0), (0, 1, 0)], 5126, 'VEC3')
    normals = builder.add_accessor([(0, 0, 1)] * 3, 5126, 'VEC3')
    uvs = builder.add_accessor([(0, 0), (1, 0), (0, 1)], 5126, 'VEC2')
    indices = builder.add_accessor([0, 1, 2], 5123, 'SCALAR')

    primitive = {
        'attributes': {'POSITION': positions, 'NORMAL': normals, 'TEXCOORD_0': uvs},
        'indices': indices,
    }
    if material is not None:
        primitive['material'] = material
    builder.root.setdefault('meshes', []).append({'name': name, 'primitives': [primitive]})
    return len(builder.root['meshes']) - 1


@pytest.fixture
def skinned_builder(builder):
    """
    Armature(0) -> Bone(1) -> Bone(2)
                           -> Tip(3)
    Body(4) carries mesh 0 skinned by skin 0 over joints [1, 2].
    """
    builder.root['nodes'] = [
        {'name': 'Armature', 'children': [1]},
        {'name': 'Bone', 'translation': [0, 1, 0], 'children': [2, 3]},
        {'name': 'Bone', 'translation': [0, 1, 0]},
        {'name': 'Tip', 'translation': [1, 0, 0]},
        {'name': 'Body', 'mesh': 0, 'skin': 0},
    ]
    builder.root['scenes'] = [{'name': 'Main', 'nodes': [0, 4]}]
    builder.root['scene'] = 0

    ibm = builder.add_accessor([translation_ibm(0, -1, 0), translation_ibm(0, -2, 0)], 5126, 'MAT4')
    builder.root['skins'] = [{'joints': [1, 2], 'inverseBindMatrices': ibm}]

    positions = builder.add_accessor([(0, 0, 0), (1, 1, 0), (0, 2, 0)], 5126, 'VEC3')
    joints = builder.add_accessor([(0, 0, 0, 0), (1, 0, 0, 0), (1, 0, 0, 0)], 5121, 'VEC4')
    weights = builder.add_accessor(
        [(1, 0, 0, 0), (0.5, 0.5, 0, 0), (1, 0, 0, 0)], 5126, 'VEC4'
    )
    indices = builder.add_accessor([0, 1, 2], 5121, 'SCALAR')
    builder.root['meshes'] = [{
        'name': 'Body',
        'primitives': [{
            'attributes': {'POSITION': positions, 'JOINTS_0': joints, 'WEIGHTS_0': weights},
            'indices': indices,
        }],
    }]
    return builder


@pytest.fixture
def skinned_parser(skinned_builder, identity_config):
    return GltfParser(skinned_builder.document(), config=identity_config)
