"""Small return mappings used to drive the substeppers in tests.

They follow the :class:`substepping.materials.ReturnMapping` protocol.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from substepping.materials import TrialResult, isotropic_stiffness


@dataclass
class LinearReportedInelastic:
    """``stress = stress_old + k * d_strain`` but reported with a local tangent (identity)."""

    k: float = 1000.0
    tangent_size: int = 6
    n_state: int = 0

    def elastic_stiffness(self, time: float = 0.0) -> np.ndarray:
        return self.k * np.eye(6)

    def try_substep(self, stress, state, d_strain, time_old, dt) -> TrialResult:
        sig = np.asarray(stress, dtype=float) + self.k * np.asarray(d_strain, dtype=float)
        return TrialResult(stress=sig, state=np.array(state, dtype=float), local_tangent=np.eye(6))


@dataclass
class ExplicitMaxwell:
    """Maxwell element ``sigma' = E eps' - sigma / tau`` integrated with forward Euler.

    Components are decoupled (``C_el = E I``). The state holds the viscous
    strain of the 11 component.
    """

    E: float = 1000.0
    tau: float = 1.0
    tangent_size: int = 6
    n_state: int = 1

    def elastic_stiffness(self, time: float = 0.0) -> np.ndarray:
        return self.E * np.eye(6)

    def try_substep(self, stress, state, d_strain, time_old, dt) -> TrialResult:
        sig_old = np.asarray(stress, dtype=float)
        relax = float(dt) / self.tau
        sig = sig_old + self.E * np.asarray(d_strain, dtype=float) - relax * sig_old
        q = np.array(state, dtype=float) + relax * sig_old[0] / self.E
        return TrialResult(stress=sig, state=q, local_tangent=np.eye(6))

    def exact_stress(self, d_strain_11: float, duration: float) -> float:
        rate = d_strain_11 / duration
        return self.E * rate * self.tau * (1.0 - math.exp(-duration / self.tau))


@dataclass
class FailsAboveStrain:
    """Linear elastic, but the return mapping 'diverges' for strain increments above a limit."""

    limit: float
    E: float = 1000.0
    nu: float = 0.0
    tangent_size: int = 6
    n_state: int = 0

    def elastic_stiffness(self, time: float = 0.0) -> np.ndarray:
        return isotropic_stiffness(self.E, self.nu)

    def try_substep(self, stress, state, d_strain, time_old, dt) -> TrialResult:
        d_strain = np.asarray(d_strain, dtype=float)
        if np.max(np.abs(d_strain)) > self.limit:
            return TrialResult.failed(np.array(stress, dtype=float), np.array(state, dtype=float))
        sig = np.asarray(stress, dtype=float) + self.elastic_stiffness() @ d_strain
        return TrialResult(stress=sig, state=np.array(state, dtype=float))


@dataclass
class RequestsCutback:
    """Always asks for a smaller global time step."""

    p_new_dt: float = 0.3
    tangent_size: int = 6
    n_state: int = 0

    def elastic_stiffness(self, time: float = 0.0) -> np.ndarray:
        return np.eye(6)

    def try_substep(self, stress, state, d_strain, time_old, dt) -> TrialResult:
        return TrialResult.failed(np.array(stress, dtype=float), np.array(state, dtype=float), self.p_new_dt)


@dataclass
class AgingElastic:
    """Elastic with a stiffness growing linearly in time, ``E(t) = E0 (1 + rate t)``."""

    E0: float = 1000.0
    rate: float = 1.0
    nu: float = 0.2
    tangent_size: int = 6
    n_state: int = 0

    def elastic_stiffness(self, time: float = 0.0) -> np.ndarray:
        return isotropic_stiffness(self.E0 * (1.0 + self.rate * float(time)), self.nu)

    def try_substep(self, stress, state, d_strain, time_old, dt) -> TrialResult:
        C = self.elastic_stiffness(float(time_old) + float(dt))
        sig = np.asarray(stress, dtype=float) + C @ np.asarray(d_strain, dtype=float)
        return TrialResult(stress=sig, state=np.array(state, dtype=float))
