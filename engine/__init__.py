# engine/__init__.py
"""
Host engine collaborators for the glTF runtime decoder.
Contains the material-instantiation and mesh-build services.
"""

from .materials import MaterialFactory, MaterialInstance
from .mesh_builder import MeshBuilder, MeshBuildError, RenderSection, SkeletalMesh, StaticMesh

__all__ = [
    'MaterialFactory', 'MaterialInstance',
    'MeshBuilder', 'MeshBuildError', 'RenderSection', 'SkeletalMesh', 'StaticMesh',
]
