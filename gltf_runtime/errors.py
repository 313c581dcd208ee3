# gltf_runtime/errors.py
"""
Decode failures raised while reading a glTF document.

Three families are distinguished: structural problems with the JSON graph,
byte windows that do not fit the available data, and semantic problems
such as unknown type codes or an unresolvable skeleton.
"""

from typing import Optional


class GltfError(Exception):
    """Base class for every decode failure"""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage

    def __str__(self):
        message = super().__str__()
        if self.stage:
            return f"[{self.stage}] {message}"
        return message


class StructuralError(GltfError):
    """Missing or malformed field, out-of-range index, bad array length"""


class MissingFieldError(StructuralError):
    """A required field is absent"""

    def __init__(self, field: str, stage: Optional[str] = None):
        super().__init__(f"missing required field '{field}'", stage)
        self.field = field


class FieldTypeError(StructuralError):
    """A field is present but holds a value of the wrong type"""

    def __init__(self, field: str, expected: str, value, stage: Optional[str] = None):
        super().__init__(
            f"field '{field}' should be {expected}, got {type(value).__name__}", stage
        )
        self.field = field
        self.expected = expected


class BoundsError(GltfError):
    """A byte window exceeds the bytes available to it"""


class SemanticError(GltfError):
    """Well-formed data that cannot be interpreted"""
