# gltf_runtime/config.py

from dataclasses import dataclass, field

import numpy as np

from .transforms import default_basis


@dataclass
class ParserConfig:
    """Per-parser coordinate conversion and output settings"""
    basis: np.ndarray = field(default_factory=default_basis)
    scale: float = 100.0
    bounds_padding: float = 0.1
    bounds_vertical_padding: float = 0.1
    debug: bool = False

    def __post_init__(self):
        self.basis = np.asarray(self.basis, dtype=np.float64)
        if self.basis.shape != (4, 4):
            raise ValueError(f"basis must be a 4x4 matrix, got shape {self.basis.shape}")
        if abs(np.linalg.det(self.basis)) < 1e-12:
            raise ValueError("basis matrix is not invertible")

    @classmethod
    def identity(cls, scale: float = 1.0, **kwargs) -> 'ParserConfig':
        """Keep glTF coordinates as they are"""
        return cls(basis=np.eye(4), scale=scale, **kwargs)
