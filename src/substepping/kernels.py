"""Numba-compiled dense kernels used by the substeppers and the kinematics helpers.

These kernels are **stateless** (no Python objects) and operate on primitive
NumPy arrays so they compile in Numba ``nopython`` mode. All indices follow
the Voigt ordering ``[11, 22, 33, 12, 13, 23]``; the index maps are passed in
explicitly so the kernels do not depend on module globals.
"""

from __future__ import annotations

import numpy as np
from numba import njit


@njit(cache=True)
def zero_small_entries(A: np.ndarray, threshold: float) -> np.ndarray:
    """Set every entry with ``|A_ij| < threshold`` to zero, in place."""
    n, m = A.shape
    for i in range(n):
        for j in range(m):
            if abs(A[i, j]) < threshold:
                A[i, j] = 0.0
    return A


@njit(cache=True)
def rotational_stress_derivative(
    stress: np.ndarray,
    d_omega_d_l: np.ndarray,
    voigt_i: np.ndarray,
    voigt_j: np.ndarray,
) -> np.ndarray:
    """Derivative of the spin terms ``W S - S W`` w.r.t. the velocity gradient.

    Parameters
    ----------
    stress : (3,3) ndarray
        Cauchy stress matrix.
    d_omega_d_l : (3,3,3,3) ndarray
        Derivative of the spin tensor w.r.t. the velocity gradient.
    voigt_i, voigt_j : (6,) int ndarray
        Tensor indices of each Voigt component.

    Returns
    -------
    (6,3,3) ndarray
    """
    out = np.zeros((6, 3, 3), dtype=np.float64)
    for ij in range(6):
        i = voigt_i[ij]
        j = voigt_j[ij]
        for k in range(3):
            for l in range(3):
                acc = 0.0
                for m in range(3):
                    acc += d_omega_d_l[i, m, k, l] * stress[m, j] + d_omega_d_l[j, m, k, l] * stress[i, m]
                out[ij, k, l] = acc
    return out


@njit(cache=True)
def stretching_rate_contraction(C: np.ndarray, d_d_d_l: np.ndarray) -> np.ndarray:
    """``C_ij,mn * dd_mn/dl_kl`` for a Voigt tangent ``C`` (rows x 6)."""
    rows = C.shape[0]
    out = np.zeros((rows, 3, 3), dtype=np.float64)
    for ij in range(rows):
        for k in range(3):
            for l in range(3):
                acc = 0.0
                for mn in range(6):
                    acc += C[ij, mn] * d_d_d_l[mn, k, l]
                out[ij, k, l] = acc
    return out


@njit(cache=True)
def pull_back_to_deformation_gradient(dX_dl: np.ndarray, F_inv: np.ndarray) -> np.ndarray:
    """Chain ``dX/dl`` to ``dX/dF`` with ``dl_km/dF_kl = F^-1_lm``."""
    rows = dX_dl.shape[0]
    out = np.zeros((rows, 3, 3), dtype=np.float64)
    for ij in range(rows):
        for k in range(3):
            for l in range(3):
                acc = 0.0
                for m in range(3):
                    acc += dX_dl[ij, k, m] * F_inv[l, m]
                out[ij, k, l] = acc
    return out
