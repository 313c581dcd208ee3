# gltf_runtime/buffers.py
"""
Raw buffer, buffer view and accessor decoding.

Buffers are resolved from embedded base64 data URIs (or the GLB binary
chunk) and cached by index. Accessors return value copies of their byte
window so callers never alias the cached buffer bytes.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .document import Document, get_int, get_string
from .errors import BoundsError, StructuralError, SemanticError

logger = logging.getLogger(__name__)

BYTE = 5120
UNSIGNED_BYTE = 5121
SHORT = 5122
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125
FLOAT = 5126

COMPONENT_SIZES = {
    BYTE: 1, UNSIGNED_BYTE: 1,
    SHORT: 2, UNSIGNED_SHORT: 2,
    UNSIGNED_INT: 4, FLOAT: 4,
}

COMPONENT_DTYPES = {
    BYTE: np.dtype('<i1'), UNSIGNED_BYTE: np.dtype('<u1'),
    SHORT: np.dtype('<i2'), UNSIGNED_SHORT: np.dtype('<u2'),
    UNSIGNED_INT: np.dtype('<u4'), FLOAT: np.dtype('<f4'),
}

ELEMENT_ARITY = {
    'SCALAR': 1, 'VEC2': 2, 'VEC3': 3, 'VEC4': 4,
    'MAT2': 4, 'MAT3': 9, 'MAT4': 16,
}

BASE64_SIGNATURE = ';base64,'


def component_size(component_type: int) -> int:
    try:
        return COMPONENT_SIZES[component_type]
    except KeyError:
        raise SemanticError(f"unknown component type {component_type}", "accessor") from None


def element_arity(element_type: str) -> int:
    try:
        return ELEMENT_ARITY[element_type]
    except KeyError:
        raise SemanticError(f"unknown element type '{element_type}'", "accessor") from None


@dataclass
class BufferView:
    """Byte window into one buffer"""
    buffer_index: int
    byte_offset: int
    byte_length: int
    stride: int = 0


@dataclass
class AccessorData:
    """Decoded accessor: typed layout plus a private copy of its bytes"""
    index: int
    component_type: int
    stride: int
    elements: int
    element_size: int
    count: int
    data: bytes

    @property
    def dtype(self) -> np.dtype:
        return COMPONENT_DTYPES[self.component_type]


def decode_data_uri(uri: str) -> bytes:
    """Decode a `data:...;base64,...` URI; any other form fails"""
    if not uri.startswith('data:'):
        raise StructuralError(f"only embedded base64 data URIs are supported, got '{uri[:32]}'", "buffer")

    marker = uri.lower().find(BASE64_SIGNATURE, 5)
    if marker < 5:
        raise StructuralError("data URI is not base64 encoded", "buffer")

    payload = uri[marker + len(BASE64_SIGNATURE):]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise StructuralError(f"invalid base64 payload: {e}", "buffer") from e


class BufferStore:
    """Resolves buffers by index and decodes accessors over them"""

    def __init__(self, document: Document):
        self.document = document
        self.buffers_cache: Dict[int, bytes] = {}

    def get_buffer(self, index: int) -> bytes:
        """Raw bytes of `buffers[index]`, decoded once and cached"""
        if index in self.buffers_cache:
            return self.buffers_cache[index]

        buffer = self.document.get_entity('buffers', index)
        byte_length = get_int(buffer, 'byteLength', required=True, stage='buffer')
        uri = get_string(buffer, 'uri', stage='buffer')

        if uri is None:
            if self.document.binary_chunk is None:
                raise StructuralError(f"buffer {index} has no uri and there is no binary chunk", "buffer")
            data = self.document.binary_chunk
        else:
            data = decode_data_uri(uri)

        if byte_length > len(data):
            raise BoundsError(
                f"buffer {index} declares {byte_length} bytes but only {len(data)} are available", "buffer"
            )

        logger.debug(f"Loaded buffer {index}: {len(data)} bytes")
        self.buffers_cache[index] = data
        return data

    def get_buffer_view(self, index: int) -> Tuple[BufferView, bytes]:
        """View layout and the slice of its buffer it covers"""
        view_object = self.document.get_entity('bufferViews', index)

        view = BufferView(
            buffer_index=get_int(view_object, 'buffer', required=True, stage='bufferView'),
            byte_offset=get_int(view_object, 'byteOffset', default=0, stage='bufferView'),
            byte_length=get_int(view_object, 'byteLength', required=True, stage='bufferView'),
            stride=get_int(view_object, 'byteStride', default=0, stage='bufferView'),
        )
        if view.byte_offset < 0 or view.byte_length < 0 or view.stride < 0:
            raise StructuralError(f"bufferView {index} has negative offset, length or stride", "bufferView")

        data = self.get_buffer(view.buffer_index)
        if view.byte_offset + view.byte_length > len(data):
            raise BoundsError(
                f"bufferView {index} [{view.byte_offset}:{view.byte_offset + view.byte_length}] "
                f"exceeds buffer {view.buffer_index} ({len(data)} bytes)",
                "bufferView"
            )

        return view, data[view.byte_offset:view.byte_offset + view.byte_length]

    def decode_accessor(self, index: int) -> AccessorData:
        """
        Layout and a private copy of the bytes behind `accessors[index]`.

        The window starts at the accessor offset inside its view; the last
        element only needs its own bytes, not a full stride.
        """
        accessor = self.document.get_entity('accessors', index)

        view_index = get_int(accessor, 'bufferView', stage='accessor')
        byte_offset = get_int(accessor, 'byteOffset', default=0, stage='accessor')
        component_type = get_int(accessor, 'componentType', required=True, stage='accessor')
        count = get_int(accessor, 'count', required=True, stage='accessor')
        element_type = get_string(accessor, 'type', required=True, stage='accessor')

        element_size = component_size(component_type)
        elements = element_arity(element_type)
        if count < 0 or byte_offset < 0:
            raise StructuralError(f"accessor {index} has negative count or offset", "accessor")

        if view_index is None:
            # no bufferView: the accessor is all zeros
            return AccessorData(
                index=index,
                component_type=component_type,
                stride=element_size * elements,
                elements=elements,
                element_size=element_size,
                count=count,
                data=bytes(element_size * elements * count),
            )

        view, view_bytes = self.get_buffer_view(view_index)
        stride = view.stride or element_size * elements

        span = stride * (count - 1) + element_size * elements if count > 0 else 0
        if byte_offset + span > len(view_bytes):
            raise BoundsError(
                f"accessor {index} needs {byte_offset + span} bytes but bufferView {view_index} "
                f"holds {len(view_bytes)}",
                "accessor"
            )

        window = bytes(view_bytes[byte_offset:byte_offset + stride * count])
        return AccessorData(
            index=index,
            component_type=component_type,
            stride=stride,
            elements=elements,
            element_size=element_size,
            count=count,
            data=window,
        )


def read_elements(accessor: AccessorData) -> np.ndarray:
    """Typed (count, elements) array read from a strided accessor window"""
    dtype = accessor.dtype
    if accessor.count == 0:
        return np.zeros((0, accessor.elements), dtype=dtype)

    packed = accessor.element_size * accessor.elements
    if accessor.stride == packed:
        data = np.frombuffer(accessor.data, dtype=dtype, count=accessor.count * accessor.elements)
        return data.reshape(accessor.count, accessor.elements).copy()

    # strided data: one row per element, skipping the interleaved bytes
    raw = np.frombuffer(accessor.data, dtype=np.uint8)
    rows = np.lib.stride_tricks.as_strided(
        raw,
        shape=(accessor.count, packed),
        strides=(accessor.stride, 1),
    )
    return np.ascontiguousarray(rows).view(dtype).reshape(accessor.count, accessor.elements)


def normalize(values: np.ndarray, component_type: int) -> np.ndarray:
    """Map unsigned integer components to [0, 1]; floats pass through"""
    if component_type == UNSIGNED_BYTE:
        return values.astype(np.float32) / 255.0
    if component_type == UNSIGNED_SHORT:
        return values.astype(np.float32) / 65535.0
    if component_type == FLOAT:
        return values.astype(np.float32)
    raise SemanticError(f"component type {component_type} cannot be normalized", "accessor")
