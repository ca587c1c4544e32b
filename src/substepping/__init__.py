"""substepping: adaptive substepping kernel for constitutive stress integration."""

from .config import SubstepperConfig, AdaptiveSubstepperConfig
from .diagnostics import (
    Diagnostics,
    DiagnosticEvent,
    RecordingDiagnostics,
    SubstepperWarning,
    WarningsDiagnostics,
)
from .state import SubstepperState, SubstepPhase, ProgressSnapshot
from .fixed_step import FixedStepSubstepper
from .time_variant import TimeVariantSubstepper
from .adaptive import AdaptiveRichardsonSubstepper, RichardsonErrorEstimator, ErrorEstimate, SubstepResults
from .hughes_winget import HughesWinget
from .materials import LinearElastic, ReturnMapping, StressUpdate, TrialResult, isotropic_stiffness
from .driver import (
    SubsteppedMaterial,
    integrate_fixed_step,
    integrate_time_variant,
    integrate_adaptive,
    compute_deformation,
    compute_plane_stress,
    compute_uniaxial_stress,
)

__all__ = [
    "SubstepperConfig", "AdaptiveSubstepperConfig",
    "Diagnostics", "DiagnosticEvent", "RecordingDiagnostics", "SubstepperWarning", "WarningsDiagnostics",
    "SubstepperState", "SubstepPhase", "ProgressSnapshot",
    "FixedStepSubstepper", "TimeVariantSubstepper",
    "AdaptiveRichardsonSubstepper", "RichardsonErrorEstimator", "ErrorEstimate", "SubstepResults",
    "HughesWinget",
    "LinearElastic", "ReturnMapping", "StressUpdate", "TrialResult", "isotropic_stiffness",
    "SubsteppedMaterial",
    "integrate_fixed_step", "integrate_time_variant", "integrate_adaptive",
    "compute_deformation", "compute_plane_stress", "compute_uniaxial_stress",
]
