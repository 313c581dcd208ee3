# gltf_runtime/nodes.py

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from . import transforms
from .config import ParserConfig
from .document import Document, get_array, get_int, get_string, index_list, number_list
from .errors import SemanticError, StructuralError

logger = logging.getLogger(__name__)


@dataclass
class Node:
    """Node data structure"""
    index: int
    name: str
    transform: np.ndarray
    mesh_index: Optional[int] = None
    skin_index: Optional[int] = None
    parent_index: Optional[int] = None
    children_indices: List[int] = field(default_factory=list)

    @property
    def translation(self) -> np.ndarray:
        return self.transform[3, :3]


@dataclass
class Scene:
    """Scene data structure"""
    index: int
    name: str
    root_node_indices: List[int] = field(default_factory=list)


class NodeGraph:
    """Index-stable node table with parents back-filled after every node exists"""

    def __init__(self, document: Document, config: ParserConfig):
        self.document = document
        self.config = config
        self.all_nodes_cache: List[Node] = []
        self.all_nodes_cached = False

    def load_all_nodes(self) -> List[Node]:
        if self.all_nodes_cached:
            return self.all_nodes_cache

        json_nodes = self.document.collection('nodes')

        # first round builds every node, second round wires parents
        nodes = []
        for index, json_node in enumerate(json_nodes):
            if not isinstance(json_node, dict):
                raise StructuralError(f"nodes[{index}] is not an object", "node")
            nodes.append(self._load_node_internal(index, json_node, len(json_nodes)))

        for node in nodes:
            self._fix_node_parent(nodes, node)
        self._check_acyclic(nodes)

        self.all_nodes_cache = nodes
        self.all_nodes_cached = True
        logger.debug(f"Loaded {len(nodes)} nodes")
        return nodes

    def _fix_node_parent(self, nodes: List[Node], node: Node):
        for child_index in node.children_indices:
            nodes[child_index].parent_index = node.index

    def _check_acyclic(self, nodes: List[Node]):
        """Every parent chain must end at a root"""
        rooted = set()
        for node in nodes:
            chain = set()
            current = node
            while current is not None and current.index not in rooted:
                if current.index in chain:
                    raise StructuralError(f"node {current.index} is its own ancestor", "node")
                chain.add(current.index)
                current = nodes[current.parent_index] if current.parent_index is not None else None
            rooted.update(chain)

    def _load_node_internal(self, index: int, json_node: Dict, nodes_count: int) -> Node:
        stage = f"node {index}"
        node = Node(
            index=index,
            name=get_string(json_node, 'name', default=str(index), stage=stage),
            transform=self._compose_transform(json_node, stage),
            mesh_index=get_int(json_node, 'mesh', stage=stage),
            skin_index=get_int(json_node, 'skin', stage=stage),
        )

        children = index_list(get_array(json_node, 'children', default=[], stage=stage), 'children', stage)
        for child_index in children:
            if child_index < 0 or child_index >= nodes_count:
                raise StructuralError(
                    f"child index {child_index} out of range ({nodes_count} nodes)", stage
                )
        node.children_indices = children
        return node

    def _compose_transform(self, json_node: Dict, stage: str) -> np.ndarray:
        matrix = transforms.identity()

        values = get_array(json_node, 'matrix', stage=stage)
        if values is not None:
            matrix = transforms.matrix_from_gltf(number_list(values, 16, 'matrix', stage))

        values = get_array(json_node, 'scale', stage=stage)
        if values is not None:
            matrix = matrix @ transforms.scale_matrix(number_list(values, 3, 'scale', stage))

        values = get_array(json_node, 'rotation', stage=stage)
        if values is not None:
            matrix = matrix @ transforms.quat_rotation_matrix(number_list(values, 4, 'rotation', stage))

        values = get_array(json_node, 'translation', stage=stage)
        if values is not None:
            matrix = matrix @ transforms.translation_matrix(number_list(values, 3, 'translation', stage))

        matrix = transforms.scale_translation(matrix, self.config.scale)
        return transforms.convert_basis(matrix, self.config.basis)

    def load_node(self, index: int) -> Node:
        """Node by index from the cached table"""
        nodes = self.load_all_nodes()
        if index < 0 or index >= len(nodes):
            raise StructuralError(f"node index {index} out of range ({len(nodes)} nodes)", "node")
        return nodes[index]

    def load_node_by_name(self, name: str) -> Node:
        for node in self.load_all_nodes():
            if node.name == name:
                return node
        raise StructuralError(f"no node named '{name}'", "node")

    def has_root(self, index: int, root_index: int) -> bool:
        """True when `root_index` is `index` or one of its ancestors"""
        if index == root_index:
            return True

        node = self.load_node(index)
        while node.parent_index is not None:
            node = self.load_node(node.parent_index)
            if node.index == root_index:
                return True
        return False

    def find_top_root(self, index: int) -> int:
        """Topmost ancestor of a node"""
        node = self.load_node(index)
        while node.parent_index is not None:
            node = self.load_node(node.parent_index)
        return node.index

    def world_transform(self, index: int) -> np.ndarray:
        """Local transforms composed child first up to the top of the hierarchy"""
        node = self.load_node(index)
        matrix = node.transform.copy()
        while node.parent_index is not None:
            node = self.load_node(node.parent_index)
            matrix = matrix @ node.transform
        return matrix

    def find_common_root(self, indices: List[int]) -> int:
        """Lowest node that is an ancestor of (or equal to) every index"""
        if not indices:
            raise SemanticError("cannot find the common root of an empty joint set", "skeleton")

        current_root = indices[0]
        while True:
            node = self.load_node(current_root)
            if all(self.has_root(index, current_root) for index in indices):
                return current_root
            if node.parent_index is None:
                raise SemanticError(
                    f"joints {indices} do not share a common root", "skeleton"
                )
            current_root = node.parent_index

    @property
    def default_scene_index(self) -> Optional[int]:
        return get_int(self.document.root, 'scene', stage='scene')

    def load_scene(self, index: int) -> Scene:
        json_scene = self.document.get_entity('scenes', index)
        stage = f"scene {index}"

        scene = Scene(index=index, name=get_string(json_scene, 'name', default=str(index), stage=stage))
        node_indices = index_list(get_array(json_scene, 'nodes', default=[], stage=stage), 'nodes', stage)
        for node_index in node_indices:
            scene.root_node_indices.append(self.load_node(node_index).index)

        return scene

    def load_scenes(self) -> List[Scene]:
        json_scenes = self.document.collection('scenes')
        return [self.load_scene(index) for index in range(len(json_scenes))]
