"""Return-mapping interface consumed by the substepping drivers.

A return mapping integrates one subincrement from a given start point and
reports whether it converged. Inelastic results carry a *local tangent*
``dX/dY``: the derivative of the resulting augmented state ``X`` (stress
first, then internal variables) w.r.t. the elastic trial state
``Y = X_start + h [C_el d_eps; 0]``. Purely elastic results carry no local
tangent.

A return mapping that wants the whole macro increment retried at a smaller
global step sets ``p_new_dt < 1``; the drivers hand that value back untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import numpy as np


@dataclass
class TrialResult:
    stress: np.ndarray
    state: np.ndarray
    local_tangent: Optional[np.ndarray] = None
    converged: bool = True
    p_new_dt: float = 1.0

    @property
    def elastic(self) -> bool:
        return self.local_tangent is None

    @classmethod
    def failed(cls, stress: np.ndarray, state: np.ndarray, p_new_dt: float = 1.0) -> "TrialResult":
        return cls(stress=stress, state=state, local_tangent=None, converged=False, p_new_dt=float(p_new_dt))


@dataclass
class StressUpdate:
    """Outcome of one macro increment.

    ``tangent`` is ``dS/d(d_eps)`` (6x6) for small-strain drivers and
    ``dS/dF`` (6x3x3) for :func:`~substepping.driver.compute_deformation`.
    """

    stress: np.ndarray
    state: np.ndarray
    tangent: np.ndarray
    p_new_dt: float = 1.0
    n_substeps: int = 0
    accuracy_degraded: bool = False
    # strain increment actually applied (differs from the input for plane/uniaxial stress)
    d_strain: Optional[np.ndarray] = None

    @property
    def converged(self) -> bool:
        return self.p_new_dt >= 1.0


class ReturnMapping(Protocol):
    tangent_size: int
    n_state: int

    def elastic_stiffness(self, time: float) -> np.ndarray:
        """Elastic stiffness (6x6) valid at ``time``."""

    def try_substep(
        self,
        stress: np.ndarray,
        state: np.ndarray,
        d_strain: np.ndarray,
        time_old: float,
        dt: float,
    ) -> TrialResult:
        """Integrate one subincrement from (stress, state); must not mutate its inputs."""


def _iso_lame(E: float, nu: float) -> Tuple[float, float]:
    """Return (lambda, mu) for 3D isotropic elasticity."""
    E = float(E)
    nu = float(nu)
    mu = E / (2.0 * (1.0 + nu))
    lam = E * nu / ((1.0 + nu) * (1.0 - 2.0 * nu))
    return lam, mu


def isotropic_stiffness(E: float, nu: float) -> np.ndarray:
    """3D isotropic stiffness in engineering-strain Voigt6."""
    lam, mu = _iso_lame(E, nu)
    C = np.zeros((6, 6), dtype=float)
    # normal-normal
    C[:3, :3] = lam
    C[0, 0] = C[1, 1] = C[2, 2] = lam + 2.0 * mu
    # shear (engineering)
    C[3, 3] = C[4, 4] = C[5, 5] = mu
    return C


@dataclass
class LinearElastic:
    """Isotropic linear elasticity; every subincrement is elastic."""

    E: float
    nu: float
    tangent_size: int = 6
    n_state: int = 0

    def __post_init__(self) -> None:
        if float(self.E) <= 0.0:
            raise ValueError(f"E must be > 0, got {self.E}")
        if not -1.0 < float(self.nu) < 0.5:
            raise ValueError(f"nu must be in (-1, 0.5), got {self.nu}")
        self.C = isotropic_stiffness(self.E, self.nu)

    def elastic_stiffness(self, time: float = 0.0) -> np.ndarray:
        return np.array(self.C, copy=True)

    def try_substep(self, stress, state, d_strain, time_old, dt) -> TrialResult:
        sig = np.asarray(stress, dtype=float) + self.C @ np.asarray(d_strain, dtype=float).reshape(6)
        return TrialResult(stress=sig, state=np.array(state, dtype=float, copy=True))
