# gltf_runtime/skeleton.py
"""
Skin resolution.

A skin's joint list is resolved into a bone table rooted at the lowest
common ancestor of every joint. The traversal visits parents before
children, so a bone's parent always has a smaller bone index. Every node
below the root becomes a bone, joint or not, and joints additionally
register their joint index in the bone map used to translate per-vertex
joint indices.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from . import transforms
from .buffers import FLOAT, BufferStore, read_elements
from .config import ParserConfig
from .document import Document, get_array, get_int, index_list
from .errors import SemanticError
from .nodes import Node, NodeGraph

logger = logging.getLogger(__name__)


@dataclass
class BoneEntry:
    """One bone of a reference skeleton"""
    name: str
    parent_index: Optional[int]
    transform: np.ndarray
    node_index: int


@dataclass
class Skeleton:
    """Bone table plus the joint index to bone name map"""
    root_node_index: int
    bones: List[BoneEntry] = field(default_factory=list)
    bone_map: Dict[int, str] = field(default_factory=dict)
    bone_indices: Dict[str, int] = field(default_factory=dict, repr=False)

    def find_bone_index(self, name: str) -> Optional[int]:
        return self.bone_indices.get(name)

    def add_bone(self, name: str, parent_index: Optional[int], transform: np.ndarray,
                 node_index: int) -> int:
        if self.find_bone_index(name) is not None:
            raise SemanticError(f"bone '{name}' already exists", "skeleton")
        self.bones.append(BoneEntry(name, parent_index, transform, node_index))
        self.bone_indices[name] = len(self.bones) - 1
        return len(self.bones) - 1

    def unique_bone_name(self, name: str) -> str:
        # on collision, append an underscore
        while self.find_bone_index(name) is not None:
            name += '_'
        return name


class SkeletonBuilder:
    """Builds skeletons from skins over the node graph"""

    def __init__(self, document: Document, nodes: NodeGraph, buffers: BufferStore,
                 config: ParserConfig):
        self.document = document
        self.nodes = nodes
        self.buffers = buffers
        self.config = config

    def load_joints(self, json_skin: Dict, stage: str) -> List[int]:
        joints = index_list(get_array(json_skin, 'joints', default=[], stage=stage), 'joints', stage)
        if not joints:
            raise SemanticError("No joints available", stage)
        return joints

    def load_inverse_bind_matrices(self, accessor_index: int, joints: List[int],
                                   stage: str) -> Dict[int, np.ndarray]:
        accessor = self.buffers.decode_accessor(accessor_index)
        if accessor.elements != 16 or accessor.component_type != FLOAT:
            raise SemanticError(
                f"inverse bind matrices accessor {accessor_index} must hold float MAT4 elements", stage
            )

        logger.debug(f"Inverse bind matrices stride: {accessor.stride}")
        values = read_elements(accessor)

        matrices = {}
        for i in range(min(accessor.count, len(joints))):
            matrices[joints[i]] = transforms.matrix_from_gltf(values[i])
        return matrices

    def build_skeleton(self, skin_index: int) -> Skeleton:
        json_skin = self.document.get_entity('skins', skin_index)
        stage = f"skin {skin_index}"

        joints = self.load_joints(json_skin, stage)
        root_index = self.nodes.find_common_root(joints)
        root_node = self.nodes.load_node(root_index)

        inverse_bind_matrices = {}
        accessor_index = get_int(json_skin, 'inverseBindMatrices', stage=stage)
        if accessor_index is not None:
            inverse_bind_matrices = self.load_inverse_bind_matrices(accessor_index, joints, stage)

        skeleton = Skeleton(root_node_index=root_index)
        self._traverse_joints(skeleton, None, root_node, joints, inverse_bind_matrices)

        logger.debug(
            f"Skin {skin_index}: {len(skeleton.bones)} bones rooted at node {root_index}"
        )
        return skeleton

    def bind_transform(self, node: Node, joints: List[int],
                       inverse_bind_matrices: Dict[int, np.ndarray]) -> np.ndarray:
        if node.index not in inverse_bind_matrices:
            logger.debug(f"No bind transform for node {node.index} {node.name}")
            return node.transform

        logger.debug(f"Using bind matrix for {node.index} {node.name}")
        matrix = transforms.invert(
            inverse_bind_matrices[node.index], f"inverse bind matrix of node {node.index}", "skeleton"
        )
        parent_index = node.parent_index
        if parent_index is not None and parent_index in joints and parent_index in inverse_bind_matrices:
            matrix = matrix @ inverse_bind_matrices[parent_index]
        elif parent_index is not None:
            logger.warning(f"bind matrix not found for parent of {node.name}")

        matrix = transforms.scale_translation(matrix, self.config.scale)
        return transforms.convert_basis(matrix, self.config.basis)

    def _traverse_joints(self, skeleton: Skeleton, parent: Optional[int], node: Node,
                         joints: List[int], inverse_bind_matrices: Dict[int, np.ndarray]):
        """Depth-first, parents before children, with an explicit stack"""
        joint_slots = {}
        for slot, joint in enumerate(joints):
            joint_slots.setdefault(joint, slot)

        visited = set()
        stack = [(parent, node)]
        while stack:
            parent_bone, current = stack.pop()
            if current.index in visited:
                raise SemanticError(f"node {current.index} is reached twice below the skeleton root", "skeleton")
            visited.add(current.index)

            bone_name = skeleton.unique_bone_name(current.name)
            transform = self.bind_transform(current, joints, inverse_bind_matrices)
            bone_index = skeleton.add_bone(bone_name, parent_bone, transform, current.index)

            if current.index in joint_slots:
                skeleton.bone_map[joint_slots[current.index]] = bone_name

            # reversed so the first child is visited first
            for child_index in reversed(current.children_indices):
                stack.append((bone_index, self.nodes.load_node(child_index)))
