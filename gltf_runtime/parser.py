# gltf_runtime/parser.py

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from engine.materials import MaterialFactory
from engine.mesh_builder import MeshBuilder, MeshBuildError

from . import transforms
from .buffers import BufferStore
from .config import ParserConfig
from .document import Document, get_string
from .errors import GltfError
from .materials import MaterialLoader
from .meshes import MeshAssembler
from .nodes import Node, NodeGraph, Scene
from .primitives import PrimitiveLoader
from .skeleton import Skeleton, SkeletonBuilder


class GltfParser:
    """
    Decodes one glTF document into scenes, nodes, materials and meshes.

    Every cache (buffers, nodes, materials, meshes, skeletons) belongs to
    the instance. The public load methods return None when the requested
    entity cannot be decoded; the reason is logged with the failing index.
    """

    def __init__(self, document: Document, config: Optional[ParserConfig] = None,
                 material_factory=None, mesh_builder=None):
        self.document = document
        self.config = config or ParserConfig()
        self.logger = logging.getLogger(__name__)
        self.setup_logging()

        self.material_factory = material_factory or MaterialFactory()
        self.mesh_builder = mesh_builder or MeshBuilder()

        self.buffers = BufferStore(document)
        self.nodes = NodeGraph(document, self.config)
        self.materials = MaterialLoader(document, self.material_factory)
        self.primitives = PrimitiveLoader(document, self.buffers, self.materials, self.config)
        self.skeletons = SkeletonBuilder(document, self.nodes, self.buffers, self.config)
        self.assembler = MeshAssembler(self.config)

        self.static_meshes_cache: Dict[int, Any] = {}
        self.skeletal_meshes_cache: Dict[Tuple[int, int, int], Any] = {}
        self.skeletons_cache: Dict[int, Skeleton] = {}

    @classmethod
    def from_file(cls, file_path: Union[str, Path], **kwargs) -> 'GltfParser':
        """Parser over a .gltf, .glb or .vrm file"""
        return cls(Document.from_file(file_path), **kwargs)

    def setup_logging(self):
        """Configure logging for the whole package"""
        package_logger = logging.getLogger('gltf_runtime')
        if not package_logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            package_logger.addHandler(handler)
        package_logger.setLevel(logging.DEBUG if self.config.debug else logging.INFO)

    def _failed(self, what: str, error: Exception):
        self.logger.error(f"Unable to load {what}: {error}")
        return None

    def load_scenes(self) -> Optional[List[Scene]]:
        """Every scene of the document, None when the document has none or one is broken"""
        try:
            return self.nodes.load_scenes()
        except GltfError as e:
            return self._failed("scenes", e)

    def load_scene(self, index: int) -> Optional[Scene]:
        """Scene name and root node indices"""
        try:
            return self.nodes.load_scene(index)
        except GltfError as e:
            return self._failed(f"scene {index}", e)

    def get_all_nodes(self) -> Optional[List[Node]]:
        """Copy of the node table, parents already linked"""
        try:
            return list(self.nodes.load_all_nodes())
        except GltfError as e:
            return self._failed("nodes", e)

    def load_node(self, index: int) -> Optional[Node]:
        """Node by index, with its converted local transform"""
        try:
            return self.nodes.load_node(index)
        except GltfError as e:
            return self._failed(f"node {index}", e)

    def load_node_by_name(self, name: str) -> Optional[Node]:
        """First node carrying `name`"""
        try:
            return self.nodes.load_node_by_name(name)
        except GltfError as e:
            return self._failed(f"node '{name}'", e)

    def load_material(self, index: int):
        """Engine material handle for a document material, memoized by index"""
        try:
            return self.materials.load_material(index)
        except GltfError as e:
            return self._failed(f"material {index}", e)

    def load_skeleton(self, skin_index: int) -> Optional[Skeleton]:
        """Bone table of a skin, memoized by skin index"""
        try:
            return self._load_skeleton(skin_index)
        except GltfError as e:
            return self._failed(f"skeleton for skin {skin_index}", e)

    def _load_skeleton(self, skin_index: int) -> Skeleton:
        if skin_index not in self.skeletons_cache:
            self.skeletons_cache[skin_index] = self.skeletons.build_skeleton(skin_index)
        return self.skeletons_cache[skin_index]

    def _mesh_name(self, index: int, json_mesh: Dict) -> str:
        return get_string(json_mesh, 'name', default=f'mesh_{index}', stage=f"mesh {index}")

    def load_static_mesh(self, index: int):
        """Rigid mesh built from every primitive of `meshes[index]`"""
        if index in self.static_meshes_cache:
            return self.static_meshes_cache[index]

        try:
            json_mesh = self.document.get_entity('meshes', index)
            stage = f"mesh {index}"
            primitives = self.primitives.load_primitives(json_mesh, stage)
            description = self.assembler.assemble_static(self._mesh_name(index, json_mesh), primitives, stage)
            static_mesh = self.mesh_builder.build_static_mesh(description)
        except (GltfError, MeshBuildError) as e:
            return self._failed(f"static mesh {index}", e)

        self.static_meshes_cache[index] = static_mesh
        return static_mesh

    def load_static_meshes(self) -> Optional[List[Any]]:
        """All meshes as rigid meshes; None if any of them fails"""
        meshes = []
        for index in range(self.document.count('meshes')):
            static_mesh = self.load_static_mesh(index)
            if static_mesh is None:
                return None
            meshes.append(static_mesh)
        return meshes

    def load_skeletal_mesh(self, mesh_index: int, skin_index: int, node_index: int = -1):
        """
        Skinned mesh for a (mesh, skin) pair.

        When `node_index` is given, the inverse of that node's world transform
        is recorded as the mesh's root transform.
        """
        # root_transform is per node
        cache_key = (mesh_index, skin_index, node_index if node_index >= 0 else -1)
        if cache_key in self.skeletal_meshes_cache:
            return self.skeletal_meshes_cache[cache_key]

        try:
            json_mesh = self.document.get_entity('meshes', mesh_index)
            self.document.get_entity('skins', skin_index)

            stage = f"mesh {mesh_index}"
            root_transform = None
            if node_index >= 0:
                root_transform = transforms.invert(
                    self.nodes.world_transform(node_index), f"world transform of node {node_index}", stage
                )

            primitives = self.primitives.load_primitives(json_mesh, stage)
            skeleton = self._load_skeleton(skin_index)
            description = self.assembler.assemble_skeletal(
                self._mesh_name(mesh_index, json_mesh), primitives, skeleton, root_transform, stage
            )
            skeletal_mesh = self.mesh_builder.build_skeletal_mesh(description)
        except (GltfError, MeshBuildError) as e:
            return self._failed(f"skeletal mesh {mesh_index} with skin {skin_index}", e)

        self.skeletal_meshes_cache[cache_key] = skeletal_mesh
        return skeletal_mesh
