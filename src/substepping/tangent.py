"""Consistent-tangent accumulation strategies.

A substepper chains the tangent of every accepted subincrement into one
operator ``T`` (square, ``n x n``, ``n >= n_stress``). The top-left
``n_stress x n_stress`` block relates stress to the driving strain; the
remaining rows/columns belong to the augmented (internal) state.

Two strategies cover the stepping schemes:

* :class:`FixedElasticTangent` accumulates ``T <- L (T + h I)`` and applies the
  static elastic stiffness at the end, ``C = T[:ns, :ns] @ C_el``.
* :class:`TimeVariantElasticTangent` accumulates ``T <- L (T + h E(t))`` where
  ``E(t)`` is the identity with the current elastic stiffness installed in the
  top-left block, so ``C = T[:ns, :ns]``.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from substepping.kernels import zero_small_entries

# tangent entries below this magnitude are numerical noise
NOISE_THRESHOLD = 1e-12


def as_square(A: np.ndarray, n: int, what: str = "operator") -> np.ndarray:
    """Return ``A`` as a float ``(n, n)`` array or raise ``ValueError``."""
    A = np.asarray(A, dtype=float)
    if A.shape != (int(n), int(n)):
        raise ValueError(f"{what} must have shape ({n}, {n}), got {A.shape}")
    return A


def elastic_tangent_template(elastic_stiffness: np.ndarray, tangent_size: int) -> np.ndarray:
    """Identity of size ``tangent_size`` with ``elastic_stiffness`` in the top-left block."""
    C = np.asarray(elastic_stiffness, dtype=float)
    ns = C.shape[0]
    if C.ndim != 2 or C.shape[1] != ns or ns > int(tangent_size):
        raise ValueError(
            f"elastic stiffness must be square and at most {tangent_size} wide, got {C.shape}"
        )
    E = np.eye(int(tangent_size), dtype=float)
    E[:ns, :ns] = C
    return E


class TangentAccumulator:
    """Running chain-ruled tangent of fixed dimension (zero at construction)."""

    def __init__(self, tangent_size: int, n_stress: int = 6) -> None:
        if int(n_stress) < 1 or int(tangent_size) < int(n_stress):
            raise ValueError(f"tangent_size ({tangent_size}) must be >= n_stress ({n_stress}) >= 1")
        self.size = int(tangent_size)
        self.n_stress = int(n_stress)
        self.tangent = np.zeros((self.size, self.size), dtype=float)

    def chain(self, local_tangent: np.ndarray, suppress_noise: bool = False) -> None:
        """Left-multiply the accumulated tangent by a subincrement's local tangent."""
        L = as_square(local_tangent, self.size, "local tangent")
        self.tangent = L @ self.tangent
        if suppress_noise:
            zero_small_entries(self.tangent, NOISE_THRESHOLD)

    def stress_block(self) -> np.ndarray:
        ns = self.n_stress
        return np.array(self.tangent[:ns, :ns], copy=True)


class FixedElasticTangent(TangentAccumulator):
    """Static elastic stiffness supplied once, applied when the stiffness is requested."""

    def __init__(self, elastic_stiffness: np.ndarray, tangent_size: Optional[int] = None) -> None:
        C = np.array(elastic_stiffness, dtype=float, copy=True)
        if C.ndim != 2 or C.shape[0] != C.shape[1]:
            raise ValueError(f"elastic stiffness must be square, got {C.shape}")
        super().__init__(C.shape[0] if tangent_size is None else tangent_size, n_stress=C.shape[0])
        self.elastic_stiffness = C
        self._identity = np.eye(self.size, dtype=float)

    def extend_elastic(self, substep_size: float) -> None:
        self.tangent += float(substep_size) * self._identity

    def extend_inelastic(self, substep_size: float, local_tangent: np.ndarray) -> None:
        self.extend_elastic(substep_size)
        self.chain(local_tangent, suppress_noise=True)

    def consistent_stiffness(self) -> np.ndarray:
        return self.stress_block() @ self.elastic_stiffness


class TimeVariantElasticTangent(TangentAccumulator):
    """Elastic stiffness supplied per subincrement (e.g. aging or temperature-dependent moduli)."""

    def __init__(self, tangent_size: int, n_stress: int = 6) -> None:
        super().__init__(tangent_size, n_stress)
        self.elastic_template = np.eye(self.size, dtype=float)

    def extend(
        self,
        substep_size: float,
        elastic_stiffness: np.ndarray,
        material_tangent: Optional[np.ndarray] = None,
    ) -> None:
        ns = self.n_stress
        self.elastic_template[:ns, :ns] = as_square(elastic_stiffness, ns, "elastic stiffness")
        self.tangent += float(substep_size) * self.elastic_template
        if material_tangent is not None:
            self.chain(material_tangent)

    def consistent_stiffness(self) -> np.ndarray:
        return self.stress_block()
