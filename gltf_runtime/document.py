# gltf_runtime/document.py

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import FieldTypeError, MissingFieldError, StructuralError

logger = logging.getLogger(__name__)

GLB_MAGIC = b'glTF'
CHUNK_JSON = b'JSON'
CHUNK_BIN = b'BIN\x00'

_MISSING = object()


class ModelFormat(Enum):
    """Supported container formats"""
    VRM = "vrm"
    GLTF = "gltf"
    GLB = "glb"


def detect_format(file_path: Path) -> ModelFormat:
    """Detect container format from the file extension"""
    ext = file_path.suffix.lower()

    if ext == '.vrm':
        return ModelFormat.VRM
    elif ext == '.gltf':
        return ModelFormat.GLTF
    elif ext == '.glb':
        return ModelFormat.GLB
    else:
        raise ValueError(f"Unsupported file extension: {ext}")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _lookup(obj: Dict, field: str, required: bool, stage: Optional[str]):
    if field in obj:
        return obj[field]
    if required:
        raise MissingFieldError(field, stage)
    return _MISSING


def get_array(obj: Dict, field: str, required: bool = False,
              default: Optional[List] = None, stage: Optional[str] = None) -> Optional[List]:
    """Return a JSON array field; absent optional fields give `default`"""
    value = _lookup(obj, field, required, stage)
    if value is _MISSING:
        return default
    if not isinstance(value, list):
        raise FieldTypeError(field, "an array", value, stage)
    return value


def get_object(obj: Dict, field: str, required: bool = False,
               stage: Optional[str] = None) -> Optional[Dict]:
    value = _lookup(obj, field, required, stage)
    if value is _MISSING:
        return None
    if not isinstance(value, dict):
        raise FieldTypeError(field, "an object", value, stage)
    return value


def get_number(obj: Dict, field: str, required: bool = False,
               default: Optional[float] = None, stage: Optional[str] = None) -> Optional[float]:
    value = _lookup(obj, field, required, stage)
    if value is _MISSING:
        return default
    if not _is_number(value):
        raise FieldTypeError(field, "a number", value, stage)
    return float(value)


def get_int(obj: Dict, field: str, required: bool = False,
            default: Optional[int] = None, stage: Optional[str] = None) -> Optional[int]:
    value = _lookup(obj, field, required, stage)
    if value is _MISSING:
        return default
    if not _is_number(value) or (isinstance(value, float) and not value.is_integer()):
        raise FieldTypeError(field, "an integer", value, stage)
    return int(value)


def get_string(obj: Dict, field: str, required: bool = False,
               default: Optional[str] = None, stage: Optional[str] = None) -> Optional[str]:
    value = _lookup(obj, field, required, stage)
    if value is _MISSING:
        return default
    if not isinstance(value, str):
        raise FieldTypeError(field, "a string", value, stage)
    return value


def number_list(values: List, length: int, field: str, stage: Optional[str] = None) -> List[float]:
    """Validate a fixed-length array of numbers such as a matrix or a quaternion"""
    if len(values) != length:
        raise StructuralError(
            f"field '{field}' should hold {length} numbers, got {len(values)}", stage
        )
    for value in values:
        if not _is_number(value):
            raise FieldTypeError(field, "an array of numbers", value, stage)
    return [float(value) for value in values]


def index_list(values: List, field: str, stage: Optional[str] = None) -> List[int]:
    """Validate an array of integer indices"""
    indices = []
    for value in values:
        if not _is_number(value) or (isinstance(value, float) and not value.is_integer()):
            raise FieldTypeError(field, "an array of integers", value, stage)
        indices.append(int(value))
    return indices


class Document:
    """Parsed glTF root object plus the optional GLB binary chunk"""

    def __init__(self, root: Dict[str, Any], binary_chunk: Optional[bytes] = None):
        if not isinstance(root, dict):
            raise StructuralError("document root is not a JSON object", "document")
        self.root = root
        self.binary_chunk = binary_chunk

    @classmethod
    def from_string(cls, text: str) -> 'Document':
        try:
            root = json.loads(text)
        except json.JSONDecodeError as e:
            raise StructuralError(f"invalid JSON: {e}", "document") from e
        return cls(root)

    @classmethod
    def from_bytes(cls, data: bytes) -> 'Document':
        """Parse either a GLB container or UTF-8 glTF JSON"""
        if data[:4] == GLB_MAGIC:
            return cls._from_glb(data)
        try:
            return cls.from_string(data.decode('utf-8'))
        except UnicodeDecodeError as e:
            raise StructuralError(f"document is not UTF-8 JSON: {e}", "document") from e

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> 'Document':
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Model file not found: {file_path}")

        model_format = detect_format(file_path)
        logger.info(f"Detected format: {model_format.value}")

        with open(file_path, 'rb') as f:
            return cls.from_bytes(f.read())

    @classmethod
    def _from_glb(cls, data: bytes) -> 'Document':
        if len(data) < 12:
            raise StructuralError("truncated GLB header", "document")

        version = int.from_bytes(data[4:8], 'little')
        length = int.from_bytes(data[8:12], 'little')
        logger.debug(f"Binary format version: {version}, length: {length}")

        if version != 2:
            raise StructuralError(f"unsupported GLB version {version}", "document")
        if length > len(data):
            raise StructuralError(f"GLB declares {length} bytes, got {len(data)}", "document")

        offset = 12
        json_chunk, offset = cls._read_chunk(data, offset, CHUNK_JSON)
        bin_chunk = None
        if offset < length:
            bin_chunk, offset = cls._read_chunk(data, offset, CHUNK_BIN)

        try:
            root = json.loads(json_chunk.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StructuralError(f"invalid JSON chunk: {e}", "document") from e
        return cls(root, bin_chunk)

    @staticmethod
    def _read_chunk(data: bytes, offset: int, expected_type: bytes):
        if offset + 8 > len(data):
            raise StructuralError("truncated GLB chunk header", "document")

        chunk_length = int.from_bytes(data[offset:offset + 4], 'little')
        chunk_type = data[offset + 4:offset + 8]
        if chunk_type != expected_type:
            raise StructuralError(
                f"Invalid chunk structure: expected {expected_type!r}, got {chunk_type!r}",
                "document"
            )

        start = offset + 8
        end = start + chunk_length
        if end > len(data):
            raise StructuralError("GLB chunk exceeds file length", "document")
        return data[start:end], end

    def collection(self, name: str, required: bool = True) -> Optional[List]:
        """Top-level array such as `nodes` or `accessors`"""
        return get_array(self.root, name, required=required, stage=name)

    def get_entity(self, name: str, index: int) -> Dict:
        """Look up one entry of a top-level array by index"""
        entries = self.collection(name)
        if index < 0 or index >= len(entries):
            raise StructuralError(
                f"index {index} out of range for '{name}' ({len(entries)} entries)", name
            )
        entry = entries[index]
        if not isinstance(entry, dict):
            raise StructuralError(f"{name}[{index}] is not an object", name)
        return entry

    def count(self, name: str) -> int:
        entries = self.collection(name, required=False)
        return len(entries) if entries is not None else 0
