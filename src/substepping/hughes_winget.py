"""Hughes-Winget objective integration of a deformation increment.

Given ``F_old`` and ``F_new`` the increment is evaluated at the midpoint
configuration::

    l      = (F_new - F_old) F_mid^-1        (velocity gradient * dt)
    d_eps  = sym(l)                          (stretching * dt)
    omega  = skw(l)                          (spin * dt)
    dR     = (I - omega/2)^-1 (I + omega/2)  (Cayley transform)

The Cayley transform of a skew tensor is orthogonal to machine precision for
any step size. Stresses (and other objective tensors) carried over from the
previous increment are rotated with ``dR`` before the small-strain material
update is applied with ``d_eps``.

:meth:`HughesWinget.compute_dS_dF` turns the small-strain (Jaumann) tangent
of the material into a derivative w.r.t. the deformation gradient, which is
what a finite-strain element needs.
"""

from __future__ import annotations

import numpy as np
import scipy.linalg as sla

from substepping.kernels import (
    pull_back_to_deformation_gradient,
    rotational_stress_derivative,
    stretching_rate_contraction,
)
from substepping.kinematics import D_OMEGA_D_L, D_STRETCHING_RATE_D_L
from substepping.voigt import VOIGT_I, VOIGT_J, matrix_to_strain, matrix_to_stress, stress_to_matrix

_I3 = np.eye(3, dtype=float)


class HughesWinget:
    def __init__(self, F_old: np.ndarray, F_new: np.ndarray) -> None:
        F_old = np.asarray(F_old, dtype=float).reshape(3, 3)
        F_new = np.asarray(F_new, dtype=float).reshape(3, 3)
        F_mid = 0.5 * (F_new + F_old)

        # l = dF F_mid^-1  <=>  F_mid^T l^T = dF^T
        self.l = sla.solve(F_mid.T, (F_new - F_old).T).T
        self.d_eps_matrix = 0.5 * (self.l + self.l.T)
        self.d_omega = 0.5 * (self.l - self.l.T)
        self.d_eps = matrix_to_strain(self.d_eps_matrix)
        self.dR = sla.solve(_I3 - 0.5 * self.d_omega, _I3 + 0.5 * self.d_omega)

    def get_strain_increment(self) -> np.ndarray:
        return np.array(self.d_eps, copy=True)

    def get_rotation_increment(self) -> np.ndarray:
        """Spin increment ``omega`` (skew)."""
        return np.array(self.d_omega, copy=True)

    def get_incremental_rotation(self) -> np.ndarray:
        """Orthogonal rotation ``dR``."""
        return np.array(self.dR, copy=True)

    def rotate_tensor(self, tensor: np.ndarray) -> np.ndarray:
        """``dR T dR^T`` for a stress-like Voigt vector."""
        T = stress_to_matrix(tensor)
        return matrix_to_stress(self.dR @ T @ self.dR.T)

    def compute_dS_dF(self, stress: np.ndarray, F_inv: np.ndarray, d_cauchy_d_eps: np.ndarray) -> np.ndarray:
        """Derivative of the updated stress w.r.t. the new deformation gradient.

        Parameters
        ----------
        stress : (6,) ndarray
            Updated (rotated and integrated) stress.
        F_inv : (3,3) ndarray
            Inverse of the new deformation gradient.
        d_cauchy_d_eps : (6,6) ndarray
            Small-strain (Jaumann) tangent of the material.

        Returns
        -------
        dS_dF : (6,3,3) ndarray
        """
        S = stress_to_matrix(stress)
        C = np.ascontiguousarray(np.asarray(d_cauchy_d_eps, dtype=float).reshape(6, 6))
        F_inv = np.ascontiguousarray(np.asarray(F_inv, dtype=float).reshape(3, 3))

        dS_rot_dl = rotational_stress_derivative(S, D_OMEGA_D_L, VOIGT_I, VOIGT_J)
        dS_jaumann_dl = stretching_rate_contraction(C, D_STRETCHING_RATE_D_L)
        return pull_back_to_deformation_gradient(dS_jaumann_dl + dS_rot_dl, F_inv)

    def compute_dScalar_dF(self, F_inv: np.ndarray, d_scalar_d_eps: np.ndarray) -> np.ndarray:
        """Derivative of a scalar response (e.g. a state variable) w.r.t. the new deformation gradient."""
        g = np.ascontiguousarray(np.asarray(d_scalar_d_eps, dtype=float).reshape(1, 6))
        F_inv = np.ascontiguousarray(np.asarray(F_inv, dtype=float).reshape(3, 3))
        d_dl = stretching_rate_contraction(g, D_STRETCHING_RATE_D_L)
        return pull_back_to_deformation_gradient(d_dl, F_inv)[0]
