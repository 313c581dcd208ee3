# gltf_runtime/transforms.py
"""
Matrix helpers.

Matrices use the row-vector convention: a point is transformed as
``p @ M`` and the translation lives in row 3. Products therefore read
left to right in application order (``S @ R @ T`` scales first).
"""

from typing import Optional, Sequence

import numpy as np

from .errors import SemanticError


def identity() -> np.ndarray:
    return np.eye(4, dtype=np.float64)


def default_basis() -> np.ndarray:
    """glTF right-handed Y-up to engine left-handed Z-up, X-forward"""
    # columns are the engine axes expressed in glTF space: (x, y, z) -> (-z, x, y)
    return np.array([
        [0.0, 1.0, 0.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
        [-1.0, 0.0, 0.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])


def scale_matrix(scale: Sequence[float]) -> np.ndarray:
    m = identity()
    m[0, 0], m[1, 1], m[2, 2] = scale
    return m


def translation_matrix(translation: Sequence[float]) -> np.ndarray:
    m = identity()
    m[3, :3] = translation
    return m


def quat_rotation_matrix(quat: Sequence[float]) -> np.ndarray:
    """Rotation matrix from an (x, y, z, w) quaternion"""
    x, y, z, w = quat
    x2, y2, z2 = x + x, y + y, z + z
    xx, xy, xz = x * x2, x * y2, x * z2
    yy, yz, zz = y * y2, y * z2, z * z2
    wx, wy, wz = w * x2, w * y2, w * z2

    return np.array([
        [1.0 - (yy + zz), xy + wz, xz - wy, 0.0],
        [xy - wz, 1.0 - (xx + zz), yz + wx, 0.0],
        [xz + wy, yz - wx, 1.0 - (xx + yy), 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])


def matrix_from_gltf(values: Sequence[float]) -> np.ndarray:
    """glTF stores matrices column-major; row i of the result is column i of the math matrix"""
    return np.array(values, dtype=np.float64).reshape(4, 4)


def scale_translation(matrix: np.ndarray, scale: float) -> np.ndarray:
    result = np.array(matrix, dtype=np.float64)
    result[3, :3] *= scale
    return result


def invert(matrix: np.ndarray, what: str, stage: Optional[str] = None) -> np.ndarray:
    """Inverse of a decoded matrix; singular input is a decode failure"""
    try:
        return np.linalg.inv(matrix)
    except np.linalg.LinAlgError:
        raise SemanticError(f"{what} is not invertible", stage) from None


def convert_basis(matrix: np.ndarray, basis: np.ndarray) -> np.ndarray:
    return np.linalg.inv(basis) @ matrix @ basis


def transform_positions(points: np.ndarray, basis: np.ndarray, scale: float) -> np.ndarray:
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return (points @ basis[:3, :3] + basis[3, :3]) * scale


def transform_directions(vectors: np.ndarray, basis: np.ndarray) -> np.ndarray:
    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 3)
    return vectors @ basis[:3, :3]
