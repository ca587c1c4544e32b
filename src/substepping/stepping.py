"""Shared step-size policy for the substeppers.

Every substepper subdivides one macro increment (progress ``0 -> 1``) into
subincrements. The calling material routine drives it through a pull-based
protocol::

    while not substepper.is_finished():
        h = substepper.get_next_substep()
        ...integrate h * increment...
        if failed:
            if not substepper.decrease_substep_size():
                ...abandon the increment (request a global cutback)...
        else:
            substepper.finish_elastic_substep() / finish_substep(local_tangent)

No exceptions are raised for step adaptation; every outcome is a ``bool``
the caller inspects. Warnings and notifications go to the injected
:class:`~substepping.diagnostics.Diagnostics` sink.
"""

from __future__ import annotations

from typing import Optional

from substepping.config import SubstepperConfig
from substepping.diagnostics import Diagnostics, default_diagnostics
from substepping.state import SubstepperState


class Substepper:
    """Progress bookkeeping common to all schemes."""

    def __init__(self, config: SubstepperConfig, diagnostics: Optional[Diagnostics] = None) -> None:
        self.config = config
        self.diagnostics = default_diagnostics(diagnostics)
        self.state = SubstepperState(current_substep_size=float(config.initial_step_size))

    @property
    def current_progress(self) -> float:
        return self.state.current_progress

    @property
    def current_substep_size(self) -> float:
        return self.state.current_substep_size

    @property
    def passed_substeps(self) -> int:
        return self.state.passed_substeps

    def is_finished(self) -> bool:
        return self.state.is_complete()

    def _below_minimum(self) -> bool:
        return self.state.current_substep_size < float(self.config.minimum_step_size)


class GeometricSubstepper(Substepper):
    """Geometric growth/shrinkage of the subincrement, no error estimate.

    The subincrement grows by ``scale_up_factor`` after ``n_passes_to_increase``
    consecutive successes and shrinks by ``scale_down_factor`` on failure.
    Progress is advanced optimistically by :meth:`get_next_substep` and rolled
    back by :meth:`decrease_substep_size`.
    """

    def get_next_substep(self) -> float:
        st = self.state
        if st.passed_substeps >= int(self.config.n_passes_to_increase):
            st.current_substep_size *= float(self.config.scale_up_factor)
            st.passed_substeps = 0

        remaining = st.remaining_progress
        if remaining < st.current_substep_size:
            st.current_substep_size = remaining

        st.passed_substeps += 1
        st.substep_index += 1
        st.current_progress += st.current_substep_size
        return st.current_substep_size

    def decrease_substep_size(self) -> bool:
        st = self.state
        st.current_progress -= st.current_substep_size
        st.passed_substeps = 0
        st.current_substep_size *= float(self.config.scale_down_factor)

        if self._below_minimum():
            return self.diagnostics.warning("Minimal stepsize reached")
        return self.diagnostics.notification("Decreasing stepsize")
