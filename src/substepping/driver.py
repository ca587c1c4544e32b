"""Material-integration loops around the substeppers.

Each ``integrate_*`` function runs one macro increment ``d_strain`` over
``[time_old, time_old + dt]`` with one substepping scheme and a
:class:`~substepping.materials.ReturnMapping`. They are interchangeable as the
small-strain ``compute_stress`` of :class:`SubsteppedMaterial`, which the
large-strain and reduced-stress wrappers below build on:

* :func:`compute_deformation` - Hughes-Winget objective update from ``F_old``
  to ``F_new``, tangent ``dS/dF``.
* :func:`compute_plane_stress` / :func:`compute_uniaxial_stress` - local
  Newton iteration on the unconstrained strain components.

Failures never raise: an abandoned increment comes back with
``p_new_dt < 1`` and the start stress/state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional

import numpy as np
import scipy.linalg as sla

from substepping.adaptive import AdaptiveRichardsonSubstepper
from substepping.config import AdaptiveSubstepperConfig, SubstepperConfig
from substepping.diagnostics import Diagnostics, default_diagnostics
from substepping.fixed_step import FixedStepSubstepper
from substepping.hughes_winget import HughesWinget
from substepping.materials import ReturnMapping, StressUpdate
from substepping.time_variant import TimeVariantSubstepper


def _start(stress, state, d_strain, n_state: int):
    if state is None:
        state = np.zeros(int(n_state), dtype=float)
    return (
        np.array(stress, dtype=float, copy=True).reshape(-1),
        np.array(state, dtype=float, copy=True).reshape(-1),
        np.asarray(d_strain, dtype=float).reshape(-1),
    )


def _abandon(stress, state, tangent, p_new_dt: float, n: int) -> StressUpdate:
    return StressUpdate(stress=stress, state=state, tangent=tangent, p_new_dt=float(p_new_dt), n_substeps=n)


def integrate_fixed_step(
    return_mapping: ReturnMapping,
    stress: np.ndarray,
    state: Optional[np.ndarray],
    d_strain: np.ndarray,
    time_old: float = 0.0,
    dt: float = 1.0,
    config: Optional[SubstepperConfig] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> StressUpdate:
    """Geometric substepping with the elastic stiffness frozen at ``time_old``."""
    config = config if config is not None else SubstepperConfig()
    stress0, state0, d_strain = _start(stress, state, d_strain, return_mapping.n_state)
    C = return_mapping.elastic_stiffness(time_old)
    sub = FixedStepSubstepper(C, config, return_mapping.tangent_size, diagnostics)

    stress, state = stress0, state0
    n = 0
    while not sub.is_finished():
        h = sub.get_next_substep()
        t0 = time_old + (sub.current_progress - h) * dt
        trial = return_mapping.try_substep(stress, state, h * d_strain, t0, h * dt)
        if trial.p_new_dt < 1.0:
            return _abandon(stress0, state0, C, trial.p_new_dt, n)
        if not trial.converged:
            if not sub.decrease_substep_size():
                return _abandon(stress0, state0, C, config.cutback_factor, n)
            continue

        if trial.elastic:
            sub.finish_elastic_substep()
        else:
            sub.finish_substep(trial.local_tangent)
        stress, state = trial.stress, trial.state
        n += 1

    return StressUpdate(stress=stress, state=state, tangent=sub.consistent_stiffness(), n_substeps=n)


def integrate_time_variant(
    return_mapping: ReturnMapping,
    stress: np.ndarray,
    state: Optional[np.ndarray],
    d_strain: np.ndarray,
    time_old: float = 0.0,
    dt: float = 1.0,
    config: Optional[SubstepperConfig] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> StressUpdate:
    """Geometric substepping with ``C_el`` evaluated at the end of each subincrement."""
    config = config if config is not None else SubstepperConfig()
    stress0, state0, d_strain = _start(stress, state, d_strain, return_mapping.n_state)
    sub = TimeVariantSubstepper(return_mapping.tangent_size, config, diagnostics=diagnostics)

    stress, state = stress0, state0
    n = 0
    while not sub.is_finished():
        h = sub.get_next_substep()
        t0 = time_old + sub.get_finished_progress() * dt
        trial = return_mapping.try_substep(stress, state, h * d_strain, t0, h * dt)
        if trial.p_new_dt < 1.0:
            return _abandon(stress0, state0, return_mapping.elastic_stiffness(time_old), trial.p_new_dt, n)
        if not trial.converged:
            if not sub.decrease_substep_size():
                return _abandon(
                    stress0, state0, return_mapping.elastic_stiffness(time_old), config.cutback_factor, n
                )
            continue

        sub.extend_consistent_tangent(return_mapping.elastic_stiffness(t0 + h * dt), trial.local_tangent)
        stress, state = trial.stress, trial.state
        n += 1

    return StressUpdate(stress=stress, state=state, tangent=sub.consistent_stiffness(), n_substeps=n)


def integrate_adaptive(
    return_mapping: ReturnMapping,
    stress: np.ndarray,
    state: Optional[np.ndarray],
    d_strain: np.ndarray,
    time_old: float = 0.0,
    dt: float = 1.0,
    config: Optional[AdaptiveSubstepperConfig] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> StressUpdate:
    """Error-controlled substepping (full step vs. two half steps, Richardson extrapolation)."""
    config = config if config is not None else AdaptiveSubstepperConfig()
    stress0, state0, d_strain = _start(stress, state, d_strain, return_mapping.n_state)
    C = return_mapping.elastic_stiffness(time_old)
    sub = AdaptiveRichardsonSubstepper(
        C, return_mapping.n_state, config, return_mapping.tangent_size, diagnostics
    )
    sub.set_converged_progress(stress0, state0)

    n = 0
    while not sub.is_finished():
        h = sub.get_next_substep()
        stress, state = sub.get_converged_progress()
        t0 = time_old + sub.substep_start_progress * dt
        trial = return_mapping.try_substep(stress, state, h * d_strain, t0, h * dt)
        if trial.p_new_dt < 1.0:
            return _abandon(stress0, state0, C, trial.p_new_dt, n)
        if not trial.converged:
            if not sub.discard_substep():
                return _abandon(stress0, state0, C, config.cutback_factor, n)
            continue

        n += 1
        if trial.elastic:
            ok = sub.finish_elastic_substep(trial.stress)
        else:
            ok = sub.finish_substep(trial.stress, trial.local_tangent, trial.state)
        if not ok:
            return _abandon(stress0, state0, C, config.cutback_factor, n)

    res = sub.get_results()
    return StressUpdate(
        stress=res.stress,
        state=res.state,
        tangent=res.consistent_tangent,
        n_substeps=n,
        accuracy_degraded=res.accuracy_degraded,
    )


SCHEMES: Dict[str, Callable[..., StressUpdate]] = {
    "fixed": integrate_fixed_step,
    "time-variant": integrate_time_variant,
    "adaptive": integrate_adaptive,
}


@dataclass
class SubsteppedMaterial:
    """A return mapping bound to one substepping scheme."""

    return_mapping: ReturnMapping
    scheme: str = "adaptive"
    config: Optional[SubstepperConfig] = None
    diagnostics: Optional[Diagnostics] = None

    def __post_init__(self) -> None:
        key = str(self.scheme).lower()
        if key not in SCHEMES:
            raise ValueError(f"unknown substepping scheme {self.scheme!r}; expected one of {sorted(SCHEMES)}")
        if key == "adaptive" and self.config is not None and not isinstance(self.config, AdaptiveSubstepperConfig):
            raise ValueError("the adaptive scheme needs an AdaptiveSubstepperConfig")
        self.scheme = key

    def compute_stress(self, stress, state, d_strain, time_old: float = 0.0, dt: float = 1.0) -> StressUpdate:
        return SCHEMES[self.scheme](
            self.return_mapping, stress, state, d_strain, time_old, dt, self.config, self.diagnostics
        )


# -----------------------------------------------------------------------------
# Large-strain and reduced-stress wrappers
# -----------------------------------------------------------------------------


def compute_deformation(
    material: SubsteppedMaterial,
    stress: np.ndarray,
    state: Optional[np.ndarray],
    F_old: np.ndarray,
    F_new: np.ndarray,
    time_old: float = 0.0,
    dt: float = 1.0,
) -> StressUpdate:
    """Hypoelastic large-strain update; the returned tangent is ``dS/dF`` (6x3x3)."""
    hw = HughesWinget(F_old, F_new)
    d_eps = hw.get_strain_increment()
    stress_rotated = hw.rotate_tensor(stress)

    upd = material.compute_stress(stress_rotated, state, d_eps, time_old, dt)
    if upd.p_new_dt < 1.0:
        return upd

    F_inv = sla.inv(np.asarray(F_new, dtype=float).reshape(3, 3))
    dS_dF = hw.compute_dS_dF(upd.stress, F_inv, upd.tangent)
    return replace(upd, tangent=dS_dF, d_strain=d_eps)


# converged if residual < tol, or < loose tol after MAX_TIGHT iterations; cut back after MAX_ITER
_REDUCED_TOL = 1e-10
_REDUCED_TOL_LOOSE = 1e-8
_REDUCED_MAX_TIGHT = 7
_REDUCED_MAX_ITER = 13
_REDUCED_CUTBACK = 0.25


def _reduced_cutback(stress, state, upd: StressUpdate) -> StressUpdate:
    state0 = np.zeros_like(upd.state) if state is None else np.array(state, dtype=float, copy=True)
    return replace(
        upd,
        stress=np.array(stress, dtype=float, copy=True).reshape(6),
        state=state0,
        p_new_dt=_REDUCED_CUTBACK,
        d_strain=None,
    )


def compute_plane_stress(
    material: SubsteppedMaterial,
    stress: np.ndarray,
    state: Optional[np.ndarray],
    d_strain: np.ndarray,
    time_old: float = 0.0,
    dt: float = 1.0,
    diagnostics: Optional[Diagnostics] = None,
) -> StressUpdate:
    """Find ``d_eps_33`` such that ``sigma_33 = 0`` (Voigt6 in, Voigt6 out)."""
    diagnostics = default_diagnostics(diagnostics)
    d_eps = np.array(d_strain, dtype=float, copy=True).reshape(6)
    # isochoric initial guess
    d_eps[2] = -(d_eps[0] + d_eps[1])

    count = 1
    while True:
        upd = material.compute_stress(stress, state, d_eps, time_old, dt)
        if upd.p_new_dt < 1.0:
            return upd

        residual = abs(float(upd.stress[2]))
        if residual < _REDUCED_TOL or (count > _REDUCED_MAX_TIGHT and residual < _REDUCED_TOL_LOOSE):
            break

        C22 = float(upd.tangent[2, 2])
        compliance = 1.0 / C22 if C22 != 0.0 else math.inf
        if not math.isfinite(compliance) or abs(compliance) > 1e10:
            compliance = 1e10
        d_eps[2] -= compliance * float(upd.stress[2])

        count += 1
        if count > _REDUCED_MAX_ITER:
            diagnostics.warning("PlaneStressWrapper requires cutback")
            return _reduced_cutback(stress, state, upd)

    return replace(upd, d_strain=d_eps)


def compute_uniaxial_stress(
    material: SubsteppedMaterial,
    stress: np.ndarray,
    state: Optional[np.ndarray],
    d_strain: np.ndarray,
    time_old: float = 0.0,
    dt: float = 1.0,
    diagnostics: Optional[Diagnostics] = None,
) -> StressUpdate:
    """Find ``d_eps_22, d_eps_33`` such that ``sigma_22 = sigma_33 = 0``."""
    diagnostics = default_diagnostics(diagnostics)
    d_eps = np.array(d_strain, dtype=float, copy=True).reshape(6)
    d_eps[1] = 0.0
    d_eps[2] = 0.0

    count = 1
    while True:
        upd = material.compute_stress(stress, state, d_eps, time_old, dt)
        if upd.p_new_dt < 1.0:
            return upd

        residual = float(np.sum(np.abs(upd.stress[1:3])))
        if residual < _REDUCED_TOL or (count > _REDUCED_MAX_TIGHT and residual < _REDUCED_TOL_LOOSE):
            break

        correction, *_ = sla.lstsq(np.asarray(upd.tangent, dtype=float)[1:3, 1:3], upd.stress[1:3])
        d_eps[1:3] -= correction

        count += 1
        if count > _REDUCED_MAX_ITER:
            diagnostics.warning("UniaxialStressWrapper requires cutback")
            return _reduced_cutback(stress, state, upd)

    return replace(upd, d_strain=d_eps)

