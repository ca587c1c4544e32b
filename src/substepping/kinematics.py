"""Continuum kinematics helpers (velocity gradient, Green-Lagrange strain).

Voigt ordering ``[11, 22, 33, 12, 13, 23]`` with engineering shear strains,
see :mod:`substepping.voigt`.
"""

from __future__ import annotations

import numpy as np

from substepping.voigt import VOIGT_I, VOIGT_J, matrix_to_strain

_I3 = np.eye(3, dtype=float)


def _d_omega_d_velocity_gradient() -> np.ndarray:
    # dW_ij/dl_kl = 1/2 (delta_ik delta_jl - delta_kj delta_il)
    d = _I3
    return np.ascontiguousarray(0.5 * (np.einsum("ik,jl->ijkl", d, d) - np.einsum("kj,il->ijkl", d, d)))


def _d_stretching_rate_d_velocity_gradient() -> np.ndarray:
    # dD_ij/dl_kl = 1/2 (delta_ik delta_jl + delta_jk delta_il), engineering factor 2 on shear rows
    d = _I3
    full = 0.5 * (np.einsum("ik,jl->ijkl", d, d) + np.einsum("jk,il->ijkl", d, d))
    out = full[VOIGT_I, VOIGT_J, :, :]
    out[3:] *= 2.0
    return np.ascontiguousarray(out)


D_OMEGA_D_L = _d_omega_d_velocity_gradient()
D_STRETCHING_RATE_D_L = _d_stretching_rate_d_velocity_gradient()


def green_lagrange(F: np.ndarray) -> np.ndarray:
    """Green-Lagrange strain ``E = 1/2 (F^T F - I)`` in engineering Voigt notation."""
    F = np.asarray(F, dtype=float).reshape(3, 3)
    H = F - _I3
    return matrix_to_strain(0.5 * (H + H.T + H.T @ H))


def d_green_lagrange_d_F(F: np.ndarray) -> np.ndarray:
    """Derivative ``dE_IJ/dF_kL`` as a ``(6, 3, 3)`` array (engineering shear rows)."""
    F = np.asarray(F, dtype=float).reshape(3, 3)
    dEdF = np.zeros((6, 3, 3), dtype=float)
    for IJ in range(6):
        I, J = int(VOIGT_I[IJ]), int(VOIGT_J[IJ])
        factor = 1.0 if I == J else 2.0
        for k in range(3):
            for L in range(3):
                dEdF[IJ, k, L] = 0.5 * (_I3[I, L] * F[k, J] + _I3[J, L] * F[k, I]) * factor
    return dEdF


def make_3d(F: np.ndarray) -> np.ndarray:
    """Embed a 1x1, 2x2 or 3x3 deformation gradient into a 3x3 one (identity padding)."""
    F = np.atleast_2d(np.asarray(F, dtype=float))
    n = F.shape[0]
    if F.shape != (n, n) or n not in (1, 2, 3):
        raise ValueError(f"deformation gradient must be 1x1, 2x2 or 3x3, got {F.shape}")
    F3 = np.eye(3, dtype=float)
    F3[:n, :n] = F
    return F3
