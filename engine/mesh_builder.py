# engine/mesh_builder.py
"""
In-memory mesh-build service.

Flattens decoded mesh descriptions into per-section interleaved vertex
arrays (position, normal, first UV set) and 32-bit index arrays, the
layout a renderer uploads as vertex and index buffers.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

MAX_BONE_INFLUENCES = 4
VERTEX_STRIDE = 8  # position (3), normal (3), uv (2)


class MeshBuildError(Exception):
    """The mesh-build service rejected a description"""


@dataclass
class RenderSection:
    """GPU-ready section: one material, interleaved vertices, triangle list"""
    material: Any
    vertices: np.ndarray
    indices: np.ndarray
    bone_indices: Optional[np.ndarray] = None
    bone_weights: Optional[np.ndarray] = None

    @property
    def num_triangles(self) -> int:
        return len(self.indices) // 3


@dataclass
class StaticMesh:
    """Renderable rigid mesh handle"""
    name: str
    sections: List[RenderSection]
    bounds_min: np.ndarray
    bounds_max: np.ndarray

    @property
    def materials(self) -> List[Any]:
        return [section.material for section in self.sections]


@dataclass
class SkeletalMesh(StaticMesh):
    """Renderable skinned mesh handle"""
    bone_names: List[str] = field(default_factory=list)
    bone_parents: List[Optional[int]] = field(default_factory=list)
    bone_transforms: List[np.ndarray] = field(default_factory=list)
    root_transform: Optional[np.ndarray] = None

    def find_bone_index(self, name: str) -> Optional[int]:
        try:
            return self.bone_names.index(name)
        except ValueError:
            return None


class MeshBuilder:
    """Builds renderable meshes from decoded descriptions"""

    def build_static_mesh(self, description) -> StaticMesh:
        self._validate(description)
        sections = [self._build_section(description, section) for section in description.sections]
        logger.debug(f"Built static mesh '{description.name}' with {len(sections)} sections")
        return StaticMesh(
            name=description.name,
            sections=sections,
            bounds_min=np.array(description.bounds.minimum, dtype=np.float32),
            bounds_max=np.array(description.bounds.maximum, dtype=np.float32),
        )

    def build_skeletal_mesh(self, description) -> SkeletalMesh:
        self._validate(description)
        skeleton = description.skeleton
        if skeleton is None or not skeleton.bones:
            raise MeshBuildError(f"skeletal mesh '{description.name}' has no bones")

        bone_count = len(skeleton.bones)
        point_bones, point_weights = self._pack_influences(description.influences, bone_count,
                                                           len(description.points))

        sections = []
        for section in description.sections:
            render_section = self._build_section(description, section)
            render_section.bone_indices = point_bones[section.wedge_points]
            render_section.bone_weights = point_weights[section.wedge_points]
            sections.append(render_section)

        logger.debug(
            f"Built skeletal mesh '{description.name}' with {len(sections)} sections, {bone_count} bones"
        )
        return SkeletalMesh(
            name=description.name,
            sections=sections,
            bounds_min=np.array(description.bounds.minimum, dtype=np.float32),
            bounds_max=np.array(description.bounds.maximum, dtype=np.float32),
            bone_names=[bone.name for bone in skeleton.bones],
            bone_parents=[bone.parent_index for bone in skeleton.bones],
            bone_transforms=[bone.transform for bone in skeleton.bones],
            root_transform=description.root_transform,
        )

    def _validate(self, description):
        if not len(description.points):
            raise MeshBuildError(f"mesh '{description.name}' has no vertices")

        for section_idx, section in enumerate(description.sections):
            if len(section.wedge_points) and int(section.wedge_points.max()) >= len(description.points):
                raise MeshBuildError(f"section {section_idx} references a missing vertex")
            if len(section.triangles) and int(section.triangles.max()) >= len(section.wedge_points):
                raise MeshBuildError(f"section {section_idx} has a triangle outside its wedges")

    def _build_section(self, description, section) -> RenderSection:
        wedge_count = len(section.wedge_points)
        vertices = np.zeros((wedge_count, VERTEX_STRIDE), dtype=np.float32)
        vertices[:, 0:3] = description.points[section.wedge_points]
        vertices[:, 3:6] = section.wedge_normals
        if section.wedge_uvs:
            vertices[:, 6:8] = section.wedge_uvs[0]

        return RenderSection(
            material=section.material,
            vertices=vertices,
            indices=np.asarray(section.triangles, dtype=np.uint32).reshape(-1),
        )

    def _pack_influences(self, influences, bone_count: int, point_count: int):
        """Strongest influences per point, renormalized; unweighted points follow bone 0"""
        bones = np.zeros((point_count, MAX_BONE_INFLUENCES), dtype=np.uint16)
        weights = np.zeros((point_count, MAX_BONE_INFLUENCES), dtype=np.float32)
        weights[:, 0] = 1.0

        for point, point_influences in enumerate(influences):
            if not point_influences:
                continue
            strongest = sorted(point_influences, key=lambda item: item[1], reverse=True)[:MAX_BONE_INFLUENCES]
            total = sum(weight for _, weight in strongest)
            weights[point, 0] = 0.0
            for slot, (bone_index, weight) in enumerate(strongest):
                if bone_index is None or bone_index < 0 or bone_index >= bone_count:
                    raise MeshBuildError(f"point {point} is influenced by unknown bone {bone_index}")
                bones[point, slot] = bone_index
                weights[point, slot] = weight / total

        return bones, weights
