# gltf_runtime/materials.py

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from .document import Document, get_array, get_number, get_object, get_string, number_list

logger = logging.getLogger(__name__)


@dataclass
class MaterialData:
    """PBR metallic-roughness factors of one document material"""
    index: int
    name: str
    base_color: Tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)
    metallic_factor: float = 1.0
    roughness_factor: float = 1.0
    # factors actually present in the document, by engine parameter name
    vector_parameters: Dict[str, Tuple[float, ...]] = field(default_factory=dict)
    scalar_parameters: Dict[str, float] = field(default_factory=dict)


class MaterialLoader:
    """Maps document materials to engine material handles, memoized by index"""

    def __init__(self, document: Document, material_factory):
        self.document = document
        self.material_factory = material_factory
        self.materials_cache: Dict[int, Any] = {}

    def parse_material(self, index: int) -> MaterialData:
        """Parse material data from JSON"""
        material = self.document.get_entity('materials', index)
        stage = f"material {index}"

        mat_data = MaterialData(
            index=index,
            name=get_string(material, 'name', default=f'material_{index}', stage=stage),
        )

        pbr = get_object(material, 'pbrMetallicRoughness', stage=stage)
        if pbr is not None:
            self._parse_pbr_properties(pbr, mat_data, stage)

        return mat_data

    def _parse_pbr_properties(self, pbr: Dict, mat_data: MaterialData, stage: str):
        values = get_array(pbr, 'baseColorFactor', stage=stage)
        if values is not None:
            mat_data.base_color = tuple(number_list(values, 4, 'baseColorFactor', stage))
            mat_data.vector_parameters['baseColorFactor'] = mat_data.base_color

        metallic = get_number(pbr, 'metallicFactor', stage=stage)
        if metallic is not None:
            mat_data.metallic_factor = metallic
            mat_data.scalar_parameters['metallicFactor'] = metallic

        roughness = get_number(pbr, 'roughnessFactor', stage=stage)
        if roughness is not None:
            mat_data.roughness_factor = roughness
            mat_data.scalar_parameters['roughnessFactor'] = roughness

    def load_material(self, index: int):
        """Engine material handle for `materials[index]`, created once"""
        if index in self.materials_cache:
            return self.materials_cache[index]

        mat_data = self.parse_material(index)
        material = self.material_factory.create_material(
            mat_data.name,
            vector_parameters=mat_data.vector_parameters,
            scalar_parameters=mat_data.scalar_parameters,
        )
        logger.debug(f"Created material {index} '{mat_data.name}'")

        self.materials_cache[index] = material
        return material

    def default_material(self):
        return self.material_factory.default_material()
