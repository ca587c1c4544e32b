"""State containers owned by a single substepper instance.

Progress and step sizes are fractions of the total increment. The containers
are small and NumPy-based so trial/commit copies stay cheap.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

import numpy as np

# (1 - progress) below this counts as finished (floating-point accumulation)
FINISHED_TOLERANCE = 2e-16


@dataclass
class SubstepperState:
    current_progress: float = 0.0
    current_substep_size: float = 1.0
    # consecutive successful substeps since the last reduction/growth
    passed_substeps: int = 0
    substep_index: int = -1

    @property
    def remaining_progress(self) -> float:
        return 1.0 - self.current_progress

    def is_complete(self) -> bool:
        return (1.0 - self.current_progress) <= FINISHED_TOLERANCE

    def copy(self) -> "SubstepperState":
        return SubstepperState(
            current_progress=float(self.current_progress),
            current_substep_size=float(self.current_substep_size),
            passed_substeps=int(self.passed_substeps),
            substep_index=int(self.substep_index),
        )


class SubstepPhase(enum.Enum):
    """Phase of one Richardson cycle (full step, then two half steps)."""

    FULL_STEP = "full"
    FIRST_HALF_STEP = "first_half"
    SECOND_HALF_STEP = "second_half"


def _empty(n: int) -> np.ndarray:
    return np.zeros(int(n), dtype=float)


@dataclass
class ProgressSnapshot:
    """Stress, integration-dependent state vector and accumulated tangent at one progress point."""

    stress: np.ndarray
    state: np.ndarray
    tangent: np.ndarray

    @classmethod
    def zeros(cls, n_stress: int, n_state: int, n_tangent: int) -> "ProgressSnapshot":
        return cls(
            stress=_empty(n_stress),
            state=_empty(n_state),
            tangent=np.zeros((int(n_tangent), int(n_tangent)), dtype=float),
        )

    def copy(self) -> "ProgressSnapshot":
        return ProgressSnapshot(
            stress=np.array(self.stress, dtype=float, copy=True),
            state=np.array(self.state, dtype=float, copy=True),
            tangent=np.array(self.tangent, dtype=float, copy=True),
        )

    def extrapolate(self, coarse: "ProgressSnapshot") -> "ProgressSnapshot":
        """Richardson combination ``2 * self - coarse`` (self: fine double-half-step estimate)."""
        return ProgressSnapshot(
            stress=2.0 * self.stress - coarse.stress,
            state=2.0 * self.state - coarse.state,
            tangent=2.0 * self.tangent - coarse.tangent,
        )
