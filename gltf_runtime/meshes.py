# gltf_runtime/meshes.py

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from . import transforms
from .config import ParserConfig
from .errors import SemanticError, StructuralError
from .primitives import Primitive
from .skeleton import Skeleton

logger = logging.getLogger(__name__)

VERTICAL_AXIS = 2


@dataclass
class Bounds:
    """Axis-aligned bounding box"""
    minimum: np.ndarray
    maximum: np.ndarray

    @property
    def center(self) -> np.ndarray:
        return 0.5 * (self.minimum + self.maximum)

    @property
    def extent(self) -> np.ndarray:
        return self.maximum - self.minimum


@dataclass
class MeshSection:
    """
    One primitive merged into a mesh: a single material slot.

    Wedges are vertex instances, one per index of the primitive; each
    references a mesh-level point and carries its own normal and UVs.
    Triangles are triples of wedge indices local to the section.
    """
    material: Any
    material_index: Optional[int]
    base_point: int
    point_count: int
    wedge_points: np.ndarray
    wedge_normals: np.ndarray
    wedge_uvs: List[np.ndarray]
    triangles: np.ndarray


@dataclass
class StaticMeshDescription:
    """Decoded rigid mesh handed to the mesh-build service"""
    name: str
    points: np.ndarray
    sections: List[MeshSection]
    bounds: Bounds


@dataclass
class SkeletalMeshDescription(StaticMeshDescription):
    """Rigid description plus skeleton and per-point bone influences"""
    skeleton: Optional[Skeleton] = None
    influences: List[List[Tuple[int, float]]] = field(default_factory=list)
    root_transform: np.ndarray = field(default_factory=transforms.identity)


def triangulate(indices: np.ndarray) -> np.ndarray:
    """Wedge triples from consecutive indices, skipping degenerate triangles"""
    usable = len(indices) - len(indices) % 3
    triangles = np.arange(usable, dtype=np.uint32).reshape(-1, 3)
    if not len(triangles):
        return triangles

    corners = indices[triangles]
    # degenerate ?
    keep = ((corners[:, 0] != corners[:, 1]) &
            (corners[:, 1] != corners[:, 2]) &
            (corners[:, 0] != corners[:, 2]))
    skipped = len(triangles) - int(keep.sum())
    if skipped:
        logger.debug(f"Skipped {skipped} degenerate triangles")
    return triangles[keep]


def _per_wedge(stream: np.ndarray, indices: np.ndarray, width: int) -> np.ndarray:
    """Gather a per-vertex stream per wedge, zero where the stream is too short"""
    result = np.zeros((len(indices), width), dtype=np.float32)
    valid = indices < len(stream)
    if len(stream):
        result[valid] = stream[indices[valid]]
    return result


class MeshAssembler:
    """Merges decoded primitives into rigid or skinned mesh descriptions"""

    def __init__(self, config: ParserConfig):
        self.config = config

    def compute_bounds(self, points: np.ndarray) -> Bounds:
        if not len(points):
            zero = np.zeros(3)
            return Bounds(zero, zero.copy())

        low = points.min(axis=0)
        high = points.max(axis=0)
        half_extent = 0.5 * (high - low)

        pad = self.config.bounds_padding * half_extent
        pad[VERTICAL_AXIS] += self.config.bounds_vertical_padding * half_extent[VERTICAL_AXIS]
        return Bounds(low - pad, high + pad)

    def build_section(self, primitive: Primitive, base_point: int, stage: str) -> MeshSection:
        indices = primitive.indices
        if len(indices) and int(indices.max()) >= primitive.vertex_count:
            raise StructuralError(
                f"index {int(indices.max())} out of range ({primitive.vertex_count} vertices)", stage
            )

        return MeshSection(
            material=primitive.material,
            material_index=primitive.material_index,
            base_point=base_point,
            point_count=primitive.vertex_count,
            wedge_points=indices.astype(np.uint32) + base_point,
            wedge_normals=_per_wedge(primitive.normals, indices, 3),
            wedge_uvs=[_per_wedge(uvs, indices, 2) for uvs in primitive.uv_sets],
            triangles=triangulate(indices),
        )

    def _merge(self, primitives: List[Primitive], stage: str):
        sections = []
        points = []
        base_point = 0
        for prim_idx, primitive in enumerate(primitives):
            sections.append(self.build_section(primitive, base_point, f"{stage} primitive {prim_idx}"))
            points.append(np.asarray(primitive.positions, dtype=np.float64).reshape(-1, 3))
            base_point += primitive.vertex_count

        all_points = np.concatenate(points) if points else np.zeros((0, 3))
        return sections, all_points

    def assemble_static(self, name: str, primitives: List[Primitive],
                        stage: str = "mesh") -> StaticMeshDescription:
        sections, points = self._merge(primitives, stage)
        return StaticMeshDescription(
            name=name,
            points=points,
            sections=sections,
            bounds=self.compute_bounds(points),
        )

    def assemble_skeletal(self, name: str, primitives: List[Primitive], skeleton: Skeleton,
                          root_transform: Optional[np.ndarray] = None,
                          stage: str = "mesh") -> SkeletalMeshDescription:
        sections, points = self._merge(primitives, stage)

        influences: List[List[Tuple[int, float]]] = [[] for _ in range(len(points))]
        bones_cache: Dict[int, int] = {}
        for prim_idx, (primitive, section) in enumerate(zip(primitives, sections)):
            self._resolve_influences(
                primitive, section, skeleton, bones_cache, influences,
                f"{stage} primitive {prim_idx}"
            )

        return SkeletalMeshDescription(
            name=name,
            points=points,
            sections=sections,
            bounds=self.compute_bounds(points),
            skeleton=skeleton,
            influences=influences,
            root_transform=root_transform if root_transform is not None else transforms.identity(),
        )

    def _resolve_influences(self, primitive: Primitive, section: MeshSection, skeleton: Skeleton,
                            bones_cache: Dict[int, int], influences: List[List[Tuple[int, float]]],
                            stage: str):
        if not primitive.joint_sets:
            raise SemanticError("skinned primitive has no joint indices", stage)

        referenced = np.unique(primitive.indices)
        for joints, weights in zip(primitive.joint_sets, primitive.weight_sets):
            if len(referenced) and (int(referenced.max()) >= len(joints) or
                                    int(referenced.max()) >= len(weights)):
                raise StructuralError("joint or weight stream shorter than the indexed vertices", stage)

            for vertex in referenced:
                point = section.base_point + int(vertex)
                for joint, weight in zip(joints[vertex], weights[vertex]):
                    joint = int(joint)
                    if joint not in bones_cache:
                        if joint not in skeleton.bone_map:
                            raise SemanticError(f"Unable to find map for bone {joint}", stage)
                        bones_cache[joint] = skeleton.find_bone_index(skeleton.bone_map[joint])
                    if weight > 0:
                        influences[point].append((bones_cache[joint], float(weight)))
