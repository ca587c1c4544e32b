"""Geometric substepper for a time-variant elastic stiffness ``C_el(t)``.

Same stepping algorithm as :class:`~substepping.fixed_step.FixedStepSubstepper`;
only the elastic contribution to the consistent tangent changes: the caller
passes the elastic stiffness valid for each subincrement, and no stiffness is
needed at construction.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from substepping.config import SubstepperConfig
from substepping.diagnostics import Diagnostics
from substepping.stepping import GeometricSubstepper
from substepping.tangent import TimeVariantElasticTangent


class TimeVariantSubstepper(GeometricSubstepper):
    def __init__(
        self,
        tangent_size: int,
        config: Optional[SubstepperConfig] = None,
        n_stress: int = 6,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        super().__init__(config if config is not None else SubstepperConfig(), diagnostics)
        self.tangent = TimeVariantElasticTangent(tangent_size, n_stress)

    @property
    def consistent_tangent(self) -> np.ndarray:
        return self.tangent.tangent

    def get_finished_progress(self) -> float:
        """Progress before the most recent subincrement (its start time fraction)."""
        return self.state.current_progress - self.state.current_substep_size

    def extend_consistent_tangent(
        self,
        elastic_stiffness: np.ndarray,
        material_tangent: Optional[np.ndarray] = None,
    ) -> None:
        """Add ``h * E(t)`` to the tangent; chain ``material_tangent`` for inelastic subincrements."""
        self.tangent.extend(self.state.current_substep_size, elastic_stiffness, material_tangent)

    def consistent_stiffness(self) -> np.ndarray:
        return self.tangent.consistent_stiffness()
