"""Diagnostic sinks for substepper warnings and notifications.

Substeppers never talk to a global journal. Each instance receives a
:class:`Diagnostics` object and reports through two calls:

* ``warning(message)`` returns ``False`` so call sites can write
  ``return self.diagnostics.warning("...")`` for a failed operation.
* ``notification(message)`` returns ``True`` for an operation that went on.

The default sink routes warnings through :mod:`warnings` (category
:class:`SubstepperWarning`) and notifications to :mod:`logging` at DEBUG level,
so the host application decides what ends up on screen.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

LOG = logging.getLogger(__name__)

WARNING = "warning"
NOTIFICATION = "notification"


class SubstepperWarning(RuntimeWarning):
    """Recoverable substepping problem (minimum step size, forced acceptance, cutback)."""


class Diagnostics(Protocol):
    def warning(self, message: str) -> bool:
        """Report a warning and return ``False``."""

    def notification(self, message: str) -> bool:
        """Report a notification and return ``True``."""


@dataclass(frozen=True)
class DiagnosticEvent:
    name: str
    severity: str
    message: str


class WarningsDiagnostics:
    """Default sink: :func:`warnings.warn` for warnings, logger for notifications."""

    def __init__(self, name: str = "substepper", logger: Optional[logging.Logger] = None) -> None:
        self.name = str(name)
        self.logger = logger if logger is not None else LOG

    def warning(self, message: str) -> bool:
        warnings.warn(f"{self.name}: {message}", SubstepperWarning, stacklevel=3)
        return False

    def notification(self, message: str) -> bool:
        self.logger.debug("%s: %s", self.name, message)
        return True


@dataclass
class RecordingDiagnostics:
    """Sink that keeps every event, optionally forwarding to another sink."""

    name: str = "substepper"
    forward: Optional[Diagnostics] = None
    events: List[DiagnosticEvent] = field(default_factory=list)

    def warning(self, message: str) -> bool:
        self.events.append(DiagnosticEvent(self.name, WARNING, str(message)))
        if self.forward is not None:
            self.forward.warning(message)
        return False

    def notification(self, message: str) -> bool:
        self.events.append(DiagnosticEvent(self.name, NOTIFICATION, str(message)))
        if self.forward is not None:
            self.forward.notification(message)
        return True

    @property
    def warnings(self) -> List[DiagnosticEvent]:
        return [e for e in self.events if e.severity == WARNING]

    @property
    def notifications(self) -> List[DiagnosticEvent]:
        return [e for e in self.events if e.severity == NOTIFICATION]

    def messages(self, severity: Optional[str] = None) -> List[str]:
        return [e.message for e in self.events if severity is None or e.severity == severity]

    def clear(self) -> None:
        self.events.clear()


def default_diagnostics(diagnostics: Optional[Diagnostics] = None) -> Diagnostics:
    """Factory used by constructors (keeps call sites tidy)."""
    return diagnostics if diagnostics is not None else WarningsDiagnostics()
