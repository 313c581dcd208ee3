# gltf_runtime/primitives.py
"""
Per-primitive vertex stream decoding.

Each attribute kind declares the element arity and component types it
accepts, whether integer components are normalized, and a transform
function applied to the decoded values (basis conversion for positions
and normals, V flip for texture coordinates).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from . import transforms
from .buffers import (
    FLOAT, UNSIGNED_BYTE, UNSIGNED_INT, UNSIGNED_SHORT,
    BufferStore, normalize, read_elements,
)
from .config import ParserConfig
from .document import Document, get_array, get_int, get_object
from .errors import SemanticError, StructuralError
from .materials import MaterialLoader

logger = logging.getLogger(__name__)

MODE_TRIANGLES = 4
INDEX_COMPONENT_TYPES = (UNSIGNED_BYTE, UNSIGNED_SHORT, UNSIGNED_INT)


@dataclass
class AttributeSpec:
    """Accepted layout of one attribute kind"""
    elements: int
    component_types: Tuple[int, ...]
    normalized: bool = False
    transform: Optional[Callable[[np.ndarray], np.ndarray]] = None


@dataclass
class Primitive:
    """Parallel per-vertex streams of one drawable batch"""
    positions: np.ndarray
    indices: np.ndarray
    material: Any = None
    material_index: Optional[int] = None
    normals: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    uv_sets: List[np.ndarray] = field(default_factory=list)
    joint_sets: List[np.ndarray] = field(default_factory=list)
    weight_sets: List[np.ndarray] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return len(self.positions)


def flip_uv(values: np.ndarray) -> np.ndarray:
    return np.column_stack((values[:, 0], 1.0 - values[:, 1])).astype(np.float32)


class PrimitiveLoader:
    """Decodes mesh primitives through the accessor decoder"""

    def __init__(self, document: Document, buffers: BufferStore,
                 materials: MaterialLoader, config: ParserConfig):
        self.document = document
        self.buffers = buffers
        self.materials = materials
        self.config = config
        self.attribute_specs = self._build_attribute_specs()

    def _build_attribute_specs(self) -> Dict[str, AttributeSpec]:
        basis = self.config.basis
        scale = self.config.scale

        return {
            'POSITION': AttributeSpec(
                3, (FLOAT,),
                transform=lambda values: transforms.transform_positions(values, basis, scale),
            ),
            'NORMAL': AttributeSpec(
                3, (FLOAT,),
                transform=lambda values: transforms.transform_directions(values, basis),
            ),
            'TEXCOORD': AttributeSpec(2, (FLOAT, UNSIGNED_BYTE, UNSIGNED_SHORT), True, flip_uv),
            'JOINTS': AttributeSpec(
                4, (UNSIGNED_BYTE, UNSIGNED_SHORT),
                transform=lambda values: values.astype(np.uint32),
            ),
            'WEIGHTS': AttributeSpec(4, (FLOAT, UNSIGNED_BYTE, UNSIGNED_SHORT), True),
        }

    def build_attribute(self, attributes: Dict, name: str, spec: AttributeSpec,
                        stage: str) -> np.ndarray:
        accessor_index = get_int(attributes, name, required=True, stage=stage)
        accessor = self.buffers.decode_accessor(accessor_index)

        if accessor.elements != spec.elements:
            raise SemanticError(
                f"{name} expects {spec.elements} components per element, accessor "
                f"{accessor_index} has {accessor.elements}",
                stage
            )
        if accessor.component_type not in spec.component_types:
            raise SemanticError(
                f"{name} does not accept component type {accessor.component_type}", stage
            )

        values = read_elements(accessor)
        if spec.normalized:
            values = normalize(values, accessor.component_type)
        if spec.transform is not None:
            values = spec.transform(values)
        return values

    def _build_attribute_sets(self, attributes: Dict, prefix: str, stage: str) -> List[np.ndarray]:
        sets = []
        while f'{prefix}_{len(sets)}' in attributes:
            name = f'{prefix}_{len(sets)}'
            sets.append(self.build_attribute(attributes, name, self.attribute_specs[prefix], stage))
        return sets

    def load_primitive(self, json_primitive: Dict, stage: str = "primitive") -> Primitive:
        attributes = get_object(json_primitive, 'attributes', required=True, stage=stage)

        mode = get_int(json_primitive, 'mode', default=MODE_TRIANGLES, stage=stage)
        if mode != MODE_TRIANGLES:
            raise SemanticError(f"unsupported primitive mode {mode}, only triangles are decoded", stage)

        # POSITION is required for generating a valid mesh
        if 'POSITION' not in attributes:
            raise StructuralError("primitive has no POSITION attribute", stage)

        positions = self.build_attribute(attributes, 'POSITION', self.attribute_specs['POSITION'], stage)
        primitive = Primitive(positions=positions, indices=np.zeros(0, dtype=np.uint32))

        if 'NORMAL' in attributes:
            primitive.normals = self.build_attribute(attributes, 'NORMAL', self.attribute_specs['NORMAL'], stage)

        primitive.uv_sets = self._build_attribute_sets(attributes, 'TEXCOORD', stage)
        primitive.joint_sets = self._build_attribute_sets(attributes, 'JOINTS', stage)
        primitive.weight_sets = self._build_attribute_sets(attributes, 'WEIGHTS', stage)

        if len(primitive.joint_sets) != len(primitive.weight_sets):
            raise StructuralError(
                f"{len(primitive.joint_sets)} joint sets but {len(primitive.weight_sets)} weight sets", stage
            )

        primitive.indices = self._load_indices(json_primitive, primitive.vertex_count, stage)

        material_index = get_int(json_primitive, 'material', stage=stage)
        if material_index is not None:
            primitive.material = self.materials.load_material(material_index)
            primitive.material_index = material_index
        else:
            primitive.material = self.materials.default_material()

        logger.debug(
            f"Primitive with {len(primitive.indices)} indices, {primitive.vertex_count} positions, "
            f"{len(primitive.normals)} normals, {len(primitive.joint_sets)} joint sets"
        )
        return primitive

    def _load_indices(self, json_primitive: Dict, vertex_count: int, stage: str) -> np.ndarray:
        accessor_index = get_int(json_primitive, 'indices', stage=stage)
        if accessor_index is None:
            return np.arange(vertex_count, dtype=np.uint32)

        accessor = self.buffers.decode_accessor(accessor_index)
        if accessor.elements != 1:
            raise SemanticError(f"index accessor {accessor_index} is not SCALAR", stage)
        if accessor.component_type not in INDEX_COMPONENT_TYPES:
            raise SemanticError(
                f"Invalid component type for indices: {accessor.component_type}", stage
            )

        return read_elements(accessor).reshape(-1).astype(np.uint32)

    def load_primitives(self, json_mesh: Dict, stage: str = "mesh") -> List[Primitive]:
        json_primitives = get_array(json_mesh, 'primitives', required=True, stage=stage)

        primitives = []
        for prim_idx, json_primitive in enumerate(json_primitives):
            prim_stage = f"{stage} primitive {prim_idx}"
            if not isinstance(json_primitive, dict):
                raise StructuralError("primitive is not an object", prim_stage)
            primitives.append(self.load_primitive(json_primitive, prim_stage))
        return primitives
