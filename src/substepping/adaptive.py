"""Adaptive substepper with step-doubling error control (Richardson extrapolation).

Every subincrement ``h`` is integrated twice: once as a single full step and
once as two half steps. The difference of the two stress estimates is the
local error estimate; it decides whether the cycle is accepted, split or
repeated, and how the next subincrement is scaled.

Cycle (phase machine)
---------------------
``FULL_STEP``        -> result stored in ``full_trial``
``FIRST_HALF_STEP``  -> result stored in ``half_trial``
``SECOND_HALF_STEP`` -> error estimate; on acceptance the progress becomes the
                        Richardson combination ``2 * fine - coarse``.

Only the material law's ordinary integration is needed (at two resolutions),
so the substepper does not depend on any law-specific error formula.

A purely elastic full step is accepted right away: the half steps would be
elastic as well and give the same answer for a linear response.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple

import numpy as np

from substepping.config import AdaptiveSubstepperConfig
from substepping.diagnostics import Diagnostics
from substepping.state import ProgressSnapshot, SubstepPhase
from substepping.stepping import Substepper
from substepping.tangent import as_square, elastic_tangent_template


class ErrorEstimate(NamedTuple):
    error: float
    error_ratio: float
    scale_factor: float


@dataclass(frozen=True)
class RichardsonErrorEstimator:
    """Euclidean stress difference between the full-step and double-half-step estimates."""

    tolerance: float
    minimum_step_size: float
    safety_factor: float = 0.9
    min_scale_factor: float = 0.1
    max_scale_factor: float = 10.0

    @classmethod
    def from_config(cls, config: AdaptiveSubstepperConfig) -> "RichardsonErrorEstimator":
        return cls(
            tolerance=float(config.integration_error_tolerance),
            minimum_step_size=float(config.minimum_step_size),
            safety_factor=float(config.safety_factor),
            min_scale_factor=float(config.min_scale_factor),
            max_scale_factor=float(config.max_scale_up_factor),
        )

    def scale_factor(self, error_ratio: float, substep_size: float) -> float:
        scale = 1.0
        if error_ratio > 1e-10:
            scale = self.safety_factor * math.sqrt(1.0 / error_ratio)

        # saturations
        if scale < self.min_scale_factor:
            scale = self.min_scale_factor
        if scale * substep_size < self.minimum_step_size:
            scale = self.minimum_step_size / substep_size
        if scale > self.max_scale_factor:
            scale = self.max_scale_factor
        return float(scale)

    def estimate(self, fine_stress: np.ndarray, coarse_stress: np.ndarray, substep_size: float) -> ErrorEstimate:
        error = float(np.linalg.norm(np.asarray(fine_stress, dtype=float) - np.asarray(coarse_stress, dtype=float)))
        ratio = error / self.tolerance
        return ErrorEstimate(error, ratio, self.scale_factor(ratio, float(substep_size)))


class SubstepResults(NamedTuple):
    stress: np.ndarray
    consistent_tangent: np.ndarray
    state: np.ndarray
    accuracy_degraded: bool


class AdaptiveRichardsonSubstepper(Substepper):
    """Error-controlled substepper.

    Parameters
    ----------
    elastic_stiffness : (ns, ns) ndarray
        Elastic stiffness, installed in the top-left block of the elastic tangent.
    n_state : int
        Length of the integration-dependent state vector (extrapolated alongside stress).
    config : AdaptiveSubstepperConfig, optional
    tangent_size : int, optional
        Size of the material tangent (augmented state); defaults to ``ns``.
    diagnostics : Diagnostics, optional
    error_estimator : RichardsonErrorEstimator, optional
        Defaults to one built from ``config``.
    """

    def __init__(
        self,
        elastic_stiffness: np.ndarray,
        n_state: int = 0,
        config: Optional[AdaptiveSubstepperConfig] = None,
        tangent_size: Optional[int] = None,
        diagnostics: Optional[Diagnostics] = None,
        error_estimator: Optional[RichardsonErrorEstimator] = None,
    ) -> None:
        config = config if config is not None else AdaptiveSubstepperConfig()
        super().__init__(config, diagnostics)
        C = np.asarray(elastic_stiffness, dtype=float)
        self.n_stress = int(C.shape[0])
        self.n_state = int(n_state)
        self.tangent_size = self.n_stress if tangent_size is None else int(tangent_size)
        self.elastic_tangent = elastic_tangent_template(C, self.tangent_size)
        self.error_estimator = error_estimator if error_estimator is not None else RichardsonErrorEstimator.from_config(config)

        self.progress = ProgressSnapshot.zeros(self.n_stress, self.n_state, self.tangent_size)
        self.full_trial = ProgressSnapshot.zeros(self.n_stress, self.n_state, self.tangent_size)
        self.half_trial = ProgressSnapshot.zeros(self.n_stress, self.n_state, self.tangent_size)

        self.phase = SubstepPhase.FULL_STEP
        self.accuracy_degraded = False
        self.last_error: Optional[ErrorEstimate] = None

    # ------------------------------------------------------------------
    # progress
    # ------------------------------------------------------------------

    def _vector(self, x: Optional[np.ndarray], n: int, what: str) -> np.ndarray:
        if x is None:
            x = np.zeros(n, dtype=float)
        v = np.array(x, dtype=float, copy=True).reshape(-1)
        if v.shape != (n,):
            raise ValueError(f"{what} must have length {n}, got {v.shape[0]}")
        return v

    def set_converged_progress(self, stress: np.ndarray, state: Optional[np.ndarray] = None) -> None:
        self.progress.stress = self._vector(stress, self.n_stress, "stress")
        self.progress.state = self._vector(state, self.n_state, "state")

    def get_converged_progress(self) -> Tuple[np.ndarray, np.ndarray]:
        """Stress and state the pending subincrement starts from."""
        src = self.half_trial if self.phase is SubstepPhase.SECOND_HALF_STEP else self.progress
        return np.array(src.stress, copy=True), np.array(src.state, copy=True)

    @property
    def substep_start_progress(self) -> float:
        if self.phase is SubstepPhase.SECOND_HALF_STEP:
            return self.state.current_progress + 0.5 * self.state.current_substep_size
        return self.state.current_progress

    def is_finished(self) -> bool:
        return self.state.is_complete() and self.phase is SubstepPhase.FULL_STEP

    def get_next_substep(self) -> float:
        st = self.state
        if self.phase is SubstepPhase.FULL_STEP:
            remaining = st.remaining_progress
            if remaining < st.current_substep_size:
                st.current_substep_size = remaining
            st.substep_index += 1
            return st.current_substep_size
        return 0.5 * st.current_substep_size

    # ------------------------------------------------------------------
    # failures
    # ------------------------------------------------------------------

    def discard_substep(self) -> bool:
        """The caller's integration of the pending subincrement did not converge."""
        self.state.passed_substeps = 0
        if self.phase is SubstepPhase.FIRST_HALF_STEP:
            self.diagnostics.warning("1st half substep has not converged after already converged full step")
            return self._accept_full_step_only(degraded=True)
        if self.phase is SubstepPhase.SECOND_HALF_STEP:
            self.diagnostics.warning("2nd half substep has not converged after already converged full step")
            return self._accept_full_step_only(degraded=True)

        self.state.current_substep_size *= float(self.config.scale_down_factor)
        if self._below_minimum():
            return self.diagnostics.warning("Minimal stepsize reached")
        return True

    def repeat_substep(self, factor: float) -> bool:
        """Restart the cycle with the subincrement scaled by ``factor``."""
        self.phase = SubstepPhase.FULL_STEP
        self.state.passed_substeps = 0
        self.state.current_substep_size *= float(factor)
        if self._below_minimum():
            return self.diagnostics.warning("Minimal stepsize reached")
        return True

    # ------------------------------------------------------------------
    # successes
    # ------------------------------------------------------------------

    def _extended(self, base_tangent: np.ndarray, weight: float, local_tangent: Optional[np.ndarray]) -> np.ndarray:
        T = base_tangent + float(weight) * self.elastic_tangent
        if local_tangent is None:
            return T
        return as_square(local_tangent, self.tangent_size, "local tangent") @ T

    def finish_substep(
        self,
        stress: np.ndarray,
        local_tangent: np.ndarray,
        state: Optional[np.ndarray] = None,
    ) -> bool:
        """Report an inelastic result for the subincrement returned by :meth:`get_next_substep`."""
        h = self.state.current_substep_size
        stress = self._vector(stress, self.n_stress, "stress")
        state = self._vector(state, self.n_state, "state")

        if self.phase is SubstepPhase.FULL_STEP:
            self.full_trial = ProgressSnapshot(stress, state, self._extended(self.progress.tangent, h, local_tangent))
            self.phase = SubstepPhase.FIRST_HALF_STEP
            return True

        if self.phase is SubstepPhase.FIRST_HALF_STEP:
            self.half_trial = ProgressSnapshot(
                stress, state, self._extended(self.progress.tangent, 0.5 * h, local_tangent)
            )
            self.phase = SubstepPhase.SECOND_HALF_STEP
            return True

        # second half step: error estimation
        self.phase = SubstepPhase.FULL_STEP
        est = self.error_estimator.estimate(stress, self.full_trial.stress, h)
        self.last_error = est

        if est.error > self.error_estimator.tolerance:
            self.state.passed_substeps = 0
            msg = f"integration error in substep {self.state.substep_index}: {est.error:.3e}, ratio: {est.error_ratio:.3g}"
            if h < 2.0 * float(self.config.minimum_step_size):
                if not self.config.ignore_error_tolerance_on_minimum_step_size:
                    return self.diagnostics.warning(msg + " --> minimal stepsize reached, tolerance not met")
                self.diagnostics.warning(msg + " --> minimal stepsize reached, accepting full step")
                return self._accept_full_step_only(degraded=True)
            if est.error_ratio < float(self.config.split_error_ratio):
                self.diagnostics.notification(msg + " --> splitting substep")
                return self._split_current_substep()
            self.diagnostics.notification(msg + " --> repeating substep")
            return self.repeat_substep(est.scale_factor)

        fine = ProgressSnapshot(stress, state, self._extended(self.half_trial.tangent, 0.5 * h, local_tangent))
        self.half_trial = fine
        self.progress = fine.extrapolate(self.full_trial)

        st = self.state
        st.current_progress += h
        st.passed_substeps += 1
        factor = est.scale_factor
        if factor > 1.0:
            if st.passed_substeps < int(self.config.n_passes_to_increase):
                factor = 1.0
            else:
                st.passed_substeps = 0
        st.current_substep_size *= factor
        return True

    def finish_elastic_substep(self, stress: np.ndarray) -> bool:
        """Report a purely elastic result for the pending subincrement."""
        h = self.state.current_substep_size
        stress = self._vector(stress, self.n_stress, "stress")

        if self.phase is SubstepPhase.FULL_STEP:
            # the two half steps would be elastic too
            self.progress.tangent = self._extended(self.progress.tangent, h, None)
            self.progress.stress = stress
            self.state.current_progress += h
            self.state.passed_substeps += 1
            return True

        if self.phase is SubstepPhase.FIRST_HALF_STEP:
            self.half_trial = ProgressSnapshot(
                stress,
                np.array(self.progress.state, copy=True),
                self._extended(self.progress.tangent, 0.5 * h, None),
            )
            self.phase = SubstepPhase.SECOND_HALF_STEP
            return True

        return self._accept_full_step_only(degraded=False)

    def _accept_full_step_only(self, degraded: bool) -> bool:
        if degraded:
            self.accuracy_degraded = True
        self.progress = self.full_trial.copy()
        self.state.current_progress += self.state.current_substep_size
        self.phase = SubstepPhase.FULL_STEP
        return True

    def _split_current_substep(self) -> bool:
        # the first half step becomes the new full step of a cycle with half the size
        self.full_trial = self.half_trial.copy()
        self.state.current_substep_size *= 0.5
        self.phase = SubstepPhase.FIRST_HALF_STEP
        return True

    # ------------------------------------------------------------------
    # results
    # ------------------------------------------------------------------

    def get_current_tangent_operator(self) -> np.ndarray:
        ns = self.n_stress
        return np.array(self.progress.tangent[:ns, :ns], copy=True)

    def consistent_stiffness(self) -> np.ndarray:
        if not self.is_finished():
            raise RuntimeError("substepping has not finished; consistent stiffness is not available")
        return self.get_current_tangent_operator()

    def get_results(self) -> SubstepResults:
        if not self.is_finished():
            raise RuntimeError("substepping has not finished; results are not available")
        return SubstepResults(
            stress=np.array(self.progress.stress, copy=True),
            consistent_tangent=self.get_current_tangent_operator(),
            state=np.array(self.progress.state, copy=True),
            accuracy_degraded=bool(self.accuracy_degraded),
        )
