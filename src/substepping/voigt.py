"""Voigt <-> tensor conversions.

Ordering is ``[11, 22, 33, 12, 13, 23]`` for both stress and strain. Strain
vectors carry **engineering** shear components (``gamma_12 = 2 eps_12``),
stress vectors carry tensor shear components.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

VOIGT_I = np.array([0, 1, 2, 0, 0, 1], dtype=np.int64)
VOIGT_J = np.array([0, 1, 2, 1, 2, 2], dtype=np.int64)

_TO_VOIGT = np.array([[0, 3, 4], [3, 1, 5], [4, 5, 2]], dtype=np.int64)


def to_voigt_index(i: int, j: int) -> int:
    return int(_TO_VOIGT[i, j])


def from_voigt_index(ij: int) -> Tuple[int, int]:
    return int(VOIGT_I[ij]), int(VOIGT_J[ij])


def stress_to_matrix(sig6: np.ndarray) -> np.ndarray:
    """Stress Voigt6 -> symmetric stress tensor (no factor for shear)."""
    s = np.asarray(sig6, dtype=float).reshape(6)
    return s[_TO_VOIGT]


def matrix_to_stress(S: np.ndarray) -> np.ndarray:
    """Symmetric stress tensor -> stress Voigt6."""
    S = np.asarray(S, dtype=float).reshape(3, 3)
    return np.array(S[VOIGT_I, VOIGT_J], dtype=float)


def strain_to_matrix(eps6: np.ndarray) -> np.ndarray:
    """Engineering-strain Voigt6 -> symmetric strain tensor."""
    e = np.array(np.asarray(eps6, dtype=float).reshape(6), copy=True)
    e[3:] *= 0.5
    return e[_TO_VOIGT]


def matrix_to_strain(E: np.ndarray) -> np.ndarray:
    """Symmetric strain tensor -> engineering-strain Voigt6."""
    e = matrix_to_stress(E)
    e[3:] *= 2.0
    return e
