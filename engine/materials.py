# engine/materials.py

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

BASE_MATERIAL = "gltf_runtime_base"

BASE_VECTOR_PARAMETERS: Dict[str, Tuple[float, ...]] = {
    'baseColorFactor': (1.0, 1.0, 1.0, 1.0),
}
BASE_SCALAR_PARAMETERS: Dict[str, float] = {
    'metallicFactor': 1.0,
    'roughnessFactor': 1.0,
}


@dataclass
class MaterialInstance:
    """Material handle: overrides on top of a base material"""
    name: str
    base_material: str = BASE_MATERIAL
    vector_parameters: Dict[str, Tuple[float, ...]] = field(default_factory=dict)
    scalar_parameters: Dict[str, float] = field(default_factory=dict)

    def get_vector_parameter(self, name: str) -> Tuple[float, ...]:
        if name in self.vector_parameters:
            return self.vector_parameters[name]
        return BASE_VECTOR_PARAMETERS[name]

    def get_scalar_parameter(self, name: str) -> float:
        if name in self.scalar_parameters:
            return self.scalar_parameters[name]
        return BASE_SCALAR_PARAMETERS[name]


class MaterialFactory:
    """In-memory material-instantiation service"""

    def __init__(self):
        self._default_material: Optional[MaterialInstance] = None

    def create_material(self, name: str,
                        vector_parameters: Optional[Dict[str, Tuple[float, ...]]] = None,
                        scalar_parameters: Optional[Dict[str, float]] = None) -> MaterialInstance:
        material = MaterialInstance(
            name=name,
            vector_parameters=dict(vector_parameters or {}),
            scalar_parameters=dict(scalar_parameters or {}),
        )
        logger.debug(f"Instanced material '{name}' from {material.base_material}")
        return material

    def default_material(self) -> MaterialInstance:
        """Shared placeholder for primitives without a material"""
        if self._default_material is None:
            logger.info("No material assigned, using default")
            self._default_material = MaterialInstance(
                name="default",
                vector_parameters={'baseColorFactor': (0.8, 0.8, 0.8, 1.0)},
                scalar_parameters={'metallicFactor': 0.0, 'roughnessFactor': 1.0},
            )
        return self._default_material
