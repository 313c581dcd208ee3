# gltf_runtime/__init__.py
"""
glTF runtime decoder.
Turns glTF documents into scenes, node hierarchies, skeletons and meshes.
"""

from .config import ParserConfig
from .document import Document, ModelFormat
from .errors import BoundsError, GltfError, SemanticError, StructuralError
from .materials import MaterialData
from .nodes import Node, Scene
from .parser import GltfParser
from .primitives import Primitive
from .skeleton import BoneEntry, Skeleton

__all__ = [
    'GltfParser', 'ParserConfig', 'Document', 'ModelFormat',
    'GltfError', 'StructuralError', 'BoundsError', 'SemanticError',
    'MaterialData', 'Node', 'Scene', 'Primitive', 'BoneEntry', 'Skeleton',
]
