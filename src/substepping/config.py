"""Substepper configuration (stable rules).

All parameters are validated at construction; an invalid configuration is a
fatal rejection (``ValueError``), never retried.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SubstepperConfig:
    """Geometric step-size policy shared by every substepper.

    Step sizes are fractions of the total increment, i.e. in ``(0, 1]``.
    """

    initial_step_size: float = 1.0
    minimum_step_size: float = 1e-4
    scale_up_factor: float = 1.2
    scale_down_factor: float = 0.5
    n_passes_to_increase: int = 10
    # global time-step scale returned to the caller when the increment is abandoned
    cutback_factor: float = 0.5

    def __post_init__(self) -> None:
        if not 0.0 < float(self.initial_step_size) <= 1.0:
            raise ValueError(f"initial_step_size must be in (0, 1], got {self.initial_step_size}")
        if not 0.0 < float(self.minimum_step_size) <= float(self.initial_step_size):
            raise ValueError(
                f"minimum_step_size must be in (0, initial_step_size], got {self.minimum_step_size}"
            )
        if float(self.scale_up_factor) < 1.0:
            raise ValueError(f"scale_up_factor must be >= 1, got {self.scale_up_factor}")
        if not 0.0 < float(self.scale_down_factor) < 1.0:
            raise ValueError(f"scale_down_factor must be in (0, 1), got {self.scale_down_factor}")
        if int(self.n_passes_to_increase) < 1:
            raise ValueError(f"n_passes_to_increase must be >= 1, got {self.n_passes_to_increase}")
        if not 0.0 < float(self.cutback_factor) < 1.0:
            raise ValueError(f"cutback_factor must be in (0, 1), got {self.cutback_factor}")


@dataclass(frozen=True)
class AdaptiveSubstepperConfig(SubstepperConfig):
    """Step-doubling (Richardson) error control on top of :class:`SubstepperConfig`.

    ``scale_up_factor`` is unused here: accepted steps are rescaled by the
    error-based factor, bounded by ``[min_scale_factor, max_scale_up_factor]``.
    ``n_passes_to_increase`` gates growth (factor > 1) only; the default of 1
    lets every accepted cycle grow the step.
    """

    integration_error_tolerance: float = 1e-6
    max_scale_up_factor: float = 10.0
    min_scale_factor: float = 0.1
    safety_factor: float = 0.9
    # error ratios below this threshold split the substep, above it the substep is repeated
    split_error_ratio: float = 2.0
    ignore_error_tolerance_on_minimum_step_size: bool = True
    n_passes_to_increase: int = 1

    def __post_init__(self) -> None:
        super().__post_init__()
        if float(self.integration_error_tolerance) <= 0.0:
            raise ValueError(
                f"integration_error_tolerance must be > 0, got {self.integration_error_tolerance}"
            )
        if not 0.0 < float(self.min_scale_factor) <= 1.0 <= float(self.max_scale_up_factor):
            raise ValueError(
                "scale factor bounds must satisfy 0 < min_scale_factor <= 1 <= max_scale_up_factor, "
                f"got [{self.min_scale_factor}, {self.max_scale_up_factor}]"
            )
        if not 0.0 < float(self.safety_factor) <= 1.0:
            raise ValueError(f"safety_factor must be in (0, 1], got {self.safety_factor}")
        if float(self.split_error_ratio) <= 1.0:
            raise ValueError(f"split_error_ratio must be > 1, got {self.split_error_ratio}")
