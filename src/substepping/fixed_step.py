"""Substepper for elastoplastic materials with a constant elastic stiffness.

Implicit return-mapping version: each inelastic subincrement reports the
derivative of its augmented result state w.r.t. its elastic trial state
(``local_tangent``), and the substepper chains these into the consistent
tangent of the whole increment.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from substepping.config import SubstepperConfig
from substepping.diagnostics import Diagnostics
from substepping.stepping import GeometricSubstepper
from substepping.tangent import FixedElasticTangent


class FixedStepSubstepper(GeometricSubstepper):
    """Geometric substepping with a static elastic stiffness ``C_el``.

    Parameters
    ----------
    elastic_stiffness : (ns, ns) ndarray
        Elastic stiffness, applied when :meth:`consistent_stiffness` is requested.
    config : SubstepperConfig
        Step-size policy.
    tangent_size : int, optional
        Size of the material tangent (augmented state); defaults to ``ns``.
    diagnostics : Diagnostics, optional
        Warning/notification sink.
    """

    def __init__(
        self,
        elastic_stiffness: np.ndarray,
        config: Optional[SubstepperConfig] = None,
        tangent_size: Optional[int] = None,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        super().__init__(config if config is not None else SubstepperConfig(), diagnostics)
        self.tangent = FixedElasticTangent(elastic_stiffness, tangent_size)

    @property
    def consistent_tangent(self) -> np.ndarray:
        return self.tangent.tangent

    def finish_elastic_substep(self) -> None:
        self.tangent.extend_elastic(self.state.current_substep_size)

    def finish_substep(self, local_tangent: np.ndarray) -> None:
        self.tangent.extend_inelastic(self.state.current_substep_size, local_tangent)

    def consistent_stiffness(self) -> np.ndarray:
        return self.tangent.consistent_stiffness()
