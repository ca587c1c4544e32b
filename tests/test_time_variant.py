import numpy as np
import pytest

from substepping import SubstepperConfig, TimeVariantSubstepper
from substepping.materials import isotropic_stiffness


def _cfg(h: float) -> SubstepperConfig:
    return SubstepperConfig(initial_step_size=h, minimum_step_size=1e-3, n_passes_to_increase=100)


def test_finished_progress_is_start_of_latest_substep():
    sub = TimeVariantSubstepper(6, _cfg(0.25))
    sub.get_next_substep()
    assert sub.get_finished_progress() == 0.0
    sub.extend_consistent_tangent(np.eye(6))
    sub.get_next_substep()
    assert sub.get_finished_progress() == 0.25
    assert sub.current_progress == 0.5


def test_elastic_contributions_use_current_stiffness():
    sub = TimeVariantSubstepper(6, _cfg(0.25))
    expected = np.zeros((6, 6))
    while not sub.is_finished():
        h = sub.get_next_substep()
        C_t = isotropic_stiffness(1000.0 * (1.0 + sub.current_progress), 0.25)
        sub.extend_consistent_tangent(C_t)
        expected += h * C_t
    np.testing.assert_allclose(sub.consistent_stiffness(), expected, rtol=1e-12)


def test_material_tangent_is_chained_after_elastic_update():
    n = 7
    rng = np.random.default_rng(11)
    sub = TimeVariantSubstepper(n, _cfg(0.5))
    C1 = isotropic_stiffness(1000.0, 0.2)
    C2 = isotropic_stiffness(1200.0, 0.2)
    L1 = np.eye(n) + 0.05 * rng.standard_normal((n, n))
    L2 = np.eye(n) + 0.05 * rng.standard_normal((n, n))

    E1 = np.eye(n)
    E1[:6, :6] = C1
    E2 = np.eye(n)
    E2[:6, :6] = C2

    sub.get_next_substep()
    sub.extend_consistent_tangent(C1, L1)
    sub.get_next_substep()
    sub.extend_consistent_tangent(C2, L2)
    assert sub.is_finished()

    T = L2 @ (L1 @ (0.5 * E1) + 0.5 * E2)
    np.testing.assert_allclose(sub.consistent_tangent, T, rtol=1e-12, atol=1e-9)
    np.testing.assert_allclose(sub.consistent_stiffness(), T[:6, :6], rtol=1e-12, atol=1e-9)


def test_decrease_shares_geometric_policy(recorder):
    sub = TimeVariantSubstepper(6, SubstepperConfig(initial_step_size=0.2, minimum_step_size=0.15), diagnostics=recorder)
    sub.get_next_substep()
    assert sub.decrease_substep_size() is False
    assert sub.current_progress == 0.0
    assert sub.current_substep_size == pytest.approx(0.1)
    assert recorder.messages("warning") == ["Minimal stepsize reached"]


def test_is_finished_uses_tolerance():
    sub = TimeVariantSubstepper(6)
    sub.state.current_progress = 1.0 - 1e-16
    assert sub.is_finished()


def test_wrong_stiffness_shape_is_rejected():
    sub = TimeVariantSubstepper(6)
    sub.get_next_substep()
    with pytest.raises(ValueError):
        sub.extend_consistent_tangent(np.eye(3))
