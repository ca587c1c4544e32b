import warnings

import numpy as np
import pytest

from substepping import FixedStepSubstepper, SubstepperConfig, SubstepperWarning
from substepping.state import FINISHED_TOLERANCE
from substepping.tangent import NOISE_THRESHOLD


def _local_tangents(n: int, size: int = 6, seed: int = 3):
    rng = np.random.default_rng(seed)
    return [np.eye(size) + 0.1 * rng.standard_normal((size, size)) for _ in range(n)]


def _chain(tangents, sizes, size=6):
    T = np.zeros((size, size))
    for L, h in zip(tangents, sizes):
        T = L @ (T + h * np.eye(size))
        T[np.abs(T) < NOISE_THRESHOLD] = 0.0
    return T


def test_single_inelastic_substep_gives_local_tangent_times_elastic(C_iso):
    sub = FixedStepSubstepper(C_iso, SubstepperConfig(initial_step_size=1.0))
    L = _local_tangents(1)[0]
    assert sub.get_next_substep() == 1.0
    sub.finish_substep(L)
    assert sub.is_finished()
    np.testing.assert_allclose(sub.consistent_stiffness(), L @ C_iso, rtol=1e-12, atol=1e-12)


def test_consistent_stiffness_chains_local_tangents_in_application_order(C_iso):
    cfg = SubstepperConfig(initial_step_size=0.25, minimum_step_size=1e-3, n_passes_to_increase=100)
    sub = FixedStepSubstepper(C_iso, cfg)
    tangents = _local_tangents(4)
    sizes = []
    for L in tangents:
        sizes.append(sub.get_next_substep())
        sub.finish_substep(L)
    assert sub.is_finished()
    assert sizes == [0.25, 0.25, 0.25, 0.25]

    expected = _chain(tangents, sizes)[:6, :6] @ C_iso
    np.testing.assert_allclose(sub.consistent_stiffness(), expected, rtol=1e-12, atol=1e-9)

    # the order matters (matrices do not commute)
    reversed_order = _chain(tangents[::-1], sizes)[:6, :6] @ C_iso
    assert not np.allclose(reversed_order, expected)


def test_elastic_substeps_reproduce_elastic_stiffness(C_iso):
    sub = FixedStepSubstepper(C_iso, SubstepperConfig(initial_step_size=0.3, n_passes_to_increase=100))
    while not sub.is_finished():
        sub.get_next_substep()
        sub.finish_elastic_substep()
    np.testing.assert_allclose(sub.consistent_stiffness(), C_iso, rtol=1e-12)


def test_augmented_tangent_uses_top_left_block(C_iso):
    n = 8
    sub = FixedStepSubstepper(C_iso, SubstepperConfig(), tangent_size=n)
    L = _local_tangents(1, size=n)[0]
    sub.get_next_substep()
    sub.finish_substep(L)
    np.testing.assert_allclose(sub.consistent_stiffness(), L[:6, :6] @ C_iso, rtol=1e-12, atol=1e-9)
    assert sub.consistent_tangent.shape == (n, n)


def test_noise_is_zeroed_in_accumulated_tangent(C_iso):
    sub = FixedStepSubstepper(C_iso)
    L = np.eye(6)
    L[0, 1] = 1e-14
    L[2, 3] = 5e-13
    sub.get_next_substep()
    sub.finish_substep(L)
    T = sub.consistent_tangent
    assert T[0, 1] == 0.0
    assert T[2, 3] == 0.0
    assert T[0, 0] == 1.0


def test_local_tangent_of_wrong_size_is_rejected(C_iso):
    sub = FixedStepSubstepper(C_iso)
    sub.get_next_substep()
    with pytest.raises(ValueError):
        sub.finish_substep(np.eye(5))


def test_is_finished_floating_point_tolerance(C_iso):
    sub = FixedStepSubstepper(C_iso)
    sub.state.current_progress = 1.0 - 3e-16
    assert not sub.is_finished()
    # one ulp below 1 is within the tolerance
    sub.state.current_progress = np.nextafter(1.0, 0.0)
    assert 1.0 - sub.state.current_progress <= FINISHED_TOLERANCE
    assert sub.is_finished()
    sub.state.current_progress = 1.0
    assert sub.is_finished()


def test_step_growth_needs_fresh_run_of_successes(C_iso):
    cfg = SubstepperConfig(initial_step_size=0.1, minimum_step_size=1e-3, scale_up_factor=2.0, n_passes_to_increase=2)
    sub = FixedStepSubstepper(C_iso, cfg)
    sizes = []
    while not sub.is_finished():
        sizes.append(sub.get_next_substep())
        sub.finish_elastic_substep()

    np.testing.assert_allclose(sizes, [0.1, 0.1, 0.2, 0.2, 0.4], rtol=1e-12)
    grew = [b > a * (1 + 1e-12) for a, b in zip(sizes, sizes[1:])]
    assert not any(g1 and g2 for g1, g2 in zip(grew, grew[1:]))
    assert sub.current_progress == pytest.approx(1.0, abs=1e-15)


def test_last_substep_is_clamped_to_remaining_progress(C_iso):
    sub = FixedStepSubstepper(C_iso, SubstepperConfig(initial_step_size=0.4, n_passes_to_increase=100))
    sizes = []
    while not sub.is_finished():
        sizes.append(sub.get_next_substep())
        sub.finish_elastic_substep()
    assert sizes[:2] == [0.4, 0.4]
    assert sizes[2] == pytest.approx(0.2)
    assert sub.current_progress <= 1.0 + 1e-16


def test_decrease_rolls_back_progress_and_notifies(C_iso, recorder):
    sub = FixedStepSubstepper(C_iso, SubstepperConfig(initial_step_size=0.5), diagnostics=recorder)
    sub.get_next_substep()
    assert sub.current_progress == 0.5
    assert sub.decrease_substep_size() is True
    assert sub.current_progress == 0.0
    assert sub.current_substep_size == 0.25
    assert sub.passed_substeps == 0
    assert recorder.messages("notification") == ["Decreasing stepsize"]


def test_decrease_below_minimum_warns_but_stays_continuable(C_iso, recorder):
    cfg = SubstepperConfig(initial_step_size=0.1, minimum_step_size=0.08, scale_down_factor=0.5)
    sub = FixedStepSubstepper(C_iso, cfg, diagnostics=recorder)
    sub.get_next_substep()
    assert sub.decrease_substep_size() is False
    assert recorder.messages("warning") == ["Minimal stepsize reached"]
    # still usable: the caller decides whether to abort
    assert sub.get_next_substep() == pytest.approx(0.05)


def test_default_diagnostics_issue_python_warning(C_iso):
    cfg = SubstepperConfig(initial_step_size=0.1, minimum_step_size=0.08)
    sub = FixedStepSubstepper(C_iso, cfg)
    sub.get_next_substep()
    with warnings.catch_warnings(record=True) as captured:
        warnings.simplefilter("always")
        sub.decrease_substep_size()
    assert any(issubclass(w.category, SubstepperWarning) for w in captured)
    assert any("Minimal stepsize reached" in str(w.message) for w in captured)
