import numpy as np
import pytest

from qode import QuadraticCoefficients, QuadraticIntegrator
from qode.linalg import spectral_radius_estimate


def _lotka_volterra(symmetric=True):
    lv = QuadraticCoefficients(2)
    lv.B[0, 0] = 2.0 / 3.0
    lv.B[1, 1] = -1.0
    lv.C[0, 0, 1] = -4.0 / 3.0
    lv.C[1, 0, 1] = 1.0
    return lv.symmetrize_C() if symmetric else lv


def _lv_invariant(x):
    return x[0] - np.log(x[0]) + 4.0 / 3.0 * x[1] - 2.0 / 3.0 * np.log(x[1])


def _random_coefficients(n, seed):
    rng = np.random.default_rng(seed)
    return QuadraticCoefficients(
        A=rng.uniform(-0.5, 0.5, n),
        B=rng.uniform(-0.5, 0.5, (n, n)),
        C=rng.uniform(-0.1, 0.1, (n, n, n)),
    )


def test_invariant_drift_per_step_shrinks_with_h():
    integ = QuadraticIntegrator(_lotka_volterra(), x0=[1.0, 1.0])
    # each stepsize continues from the state the previous one left
    for h in [10.0 ** -k for k in range(1, 7)]:
        I1 = _lv_invariant(integ.x)
        integ.step(h)
        I2 = _lv_invariant(integ.x)
        assert abs(I2 - I1) <= 0.01 * h * h * abs(I1)


def test_invariant_at_start_point():
    assert _lv_invariant(np.array([1.0, 1.0])) == pytest.approx(7.0 / 3.0)


def test_long_run_stays_on_orbit():
    h = 0.1
    integ = QuadraticIntegrator(_lotka_volterra(), x0=[1.0, 1.0])
    I0 = _lv_invariant(integ.x)
    prev = I0
    crossings = 0
    side = np.sign(integ.x[0] - 1.0)
    for _ in range(1000):
        integ.step(h)
        x = integ.x
        assert np.all(np.isfinite(x))
        assert np.all(x > 0.0) and np.all(x < 10.0)
        I = _lv_invariant(x)
        assert abs(I - prev) <= 0.01 * h * h * abs(prev)
        assert abs(I - I0) <= 0.01 * abs(I0)
        prev = I
        s = np.sign(x[0] - 1.0)
        if s != 0 and s != side:
            crossings += 1
            side = s
    # periodic orbit: many oscillations in 100 time units
    assert crossings >= 10
    assert integ.t == pytest.approx(100.0)
    assert integ.h == h


@pytest.mark.parametrize("n", [1, 2, 3, 5, 8])
def test_step_solves_the_implicit_relation(n):
    q = _random_coefficients(n, seed=n)
    x = np.random.default_rng(10 + n).uniform(-1.0, 1.0, n)
    h = 0.1
    integ = QuadraticIntegrator(q, x0=x)
    integ.step(h)
    xn = integ.x
    bilinear = 0.5 * (np.einsum('ijk,j,k->i', q.C, x, xn) + np.einsum('ijk,j,k->i', q.C, xn, x))
    residual = xn - x - h * (q.A + 0.5 * q.B @ (x + xn) + bilinear)
    np.testing.assert_allclose(residual, np.zeros(n), rtol=0, atol=1e-13)


def test_linear_field_gives_cayley_transform():
    rng = np.random.default_rng(5)
    B = rng.normal(size=(3, 3))
    x = rng.normal(size=3)
    h = 0.05
    integ = QuadraticIntegrator(QuadraticCoefficients(B=B), x0=x)
    integ.step(h)
    I = np.eye(3)
    expected = np.linalg.solve(I - 0.5 * h * B, (I + 0.5 * h * B) @ x)
    np.testing.assert_allclose(integ.x, expected, rtol=1e-12, atol=1e-14)


def test_constant_field_is_exact():
    integ = QuadraticIntegrator(QuadraticCoefficients(A=[1.0, -2.0]), x0=[0.0, 0.0])
    for _ in range(4):
        integ.step(0.25)
    np.testing.assert_allclose(integ.x, [1.0, -2.0], rtol=1e-15)
    assert integ.t == pytest.approx(1.0)


def test_unsymmetrized_tensor_gives_same_trajectory():
    a = QuadraticIntegrator(_lotka_volterra(symmetric=True), x0=[1.0, 1.0])
    b = QuadraticIntegrator(_lotka_volterra(symmetric=False), x0=[1.0, 1.0])
    for _ in range(100):
        a.step(0.1)
        b.step(0.1)
    np.testing.assert_allclose(a.x, b.x, rtol=1e-12)


def test_callback_field_matches_coefficients():
    def lv_field(x, builder):
        builder.add_linear_term(0, 0, 2.0 / 3.0)
        builder.add_linear_term(1, 1, -1.0)
        builder.add_quadratic_term(0, 0, 1, -4.0 / 3.0)
        builder.add_quadratic_term(1, 0, 1, 1.0)

    a = QuadraticIntegrator(lv_field, x0=[1.0, 1.0])
    b = QuadraticIntegrator(_lotka_volterra(), x0=[1.0, 1.0])
    for _ in range(50):
        a.step(0.1)
        b.step(0.1)
    np.testing.assert_allclose(a.x, b.x, rtol=1e-12)


def test_state_can_be_reassigned_between_steps():
    integ = QuadraticIntegrator(_lotka_volterra(), x0=[1.0, 1.0])
    integ.step(0.1)
    integ.x[:] = [1.0, 1.0]
    fresh = QuadraticIntegrator(_lotka_volterra(), x0=[1.0, 1.0])
    integ.step(0.1)
    fresh.step(0.1)
    np.testing.assert_array_equal(integ.x, fresh.x)


def test_construction_errors():
    with pytest.raises(TypeError):
        QuadraticIntegrator(42, x0=[1.0])
    with pytest.raises(ValueError):
        QuadraticIntegrator(lambda x, builder: None)
    integ = QuadraticIntegrator(lambda x, builder: None, n=3)
    assert integ.dim == 3
    np.testing.assert_array_equal(integ.x, np.zeros(3))
    assert QuadraticIntegrator(_lotka_volterra()).dim == 2


def test_spectral_radius_uses_field_jacobian():
    lv = _lotka_volterra()
    x = np.array([0.9, 1.4])
    integ = QuadraticIntegrator(lv, x0=x)
    omega = integ.spectral_radius()
    np.testing.assert_allclose(integ.builder.mat, lv.jacobian(x), rtol=1e-14, atol=1e-15)
    assert omega == pytest.approx(spectral_radius_estimate(lv.jacobian(x)), rel=1e-12)


def test_suggest_first_stepsize_does_not_step():
    lv = _lotka_volterra()
    integ = QuadraticIntegrator(lv, x0=[1.0, 1.0])
    omega = spectral_radius_estimate(lv.jacobian([1.0, 1.0]))
    h0 = integ.suggest_first_stepsize(1.0, 0.05)
    assert h0 == pytest.approx(min(1.0, 0.05 / omega), rel=1e-12)
    assert integ.suggest_first_stepsize(1e-3, 0.05) == pytest.approx(1e-3)
    np.testing.assert_array_equal(integ.x, [1.0, 1.0])
    assert integ.t == 0.0


def test_zero_field_saturates_stepsize_growth():
    integ = QuadraticIntegrator(QuadraticCoefficients(2), x0=[1.0, 2.0])
    assert integ.suggest_first_stepsize(0.5, 0.05) == pytest.approx(0.5)
    h = integ.step_adaptive(0.1, 0.05, 0.3, 2.0)
    assert h == pytest.approx(0.2)
    np.testing.assert_array_equal(integ.x, [1.0, 2.0])


@pytest.mark.parametrize("policy", ["symmetric", "geometric"])
def test_adaptive_ratio_stays_in_bounds(policy):
    low, high, mu = 0.5, 1.5, 0.05
    integ = QuadraticIntegrator(_lotka_volterra(), x0=[1.0, 1.0], policy=policy)
    I0 = _lv_invariant(integ.x)
    h = integ.suggest_first_stepsize(1.0, mu)
    for _ in range(300):
        h_new = integ.step_adaptive(h, mu, low, high)
        ratio = h_new / h
        assert low * (1 - 1e-12) <= ratio <= high * (1 + 1e-12)
        assert np.all(np.isfinite(integ.x))
        h = h_new
    assert abs(_lv_invariant(integ.x) - I0) <= 0.01 * I0


def test_adaptive_h_max_caps_the_step():
    integ = QuadraticIntegrator(QuadraticCoefficients(2), x0=[1.0, 1.0])
    assert integ.step_adaptive(0.1, 0.05, h_max=0.01) == 0.01
    assert integ.t == pytest.approx(0.01)


def test_attempt_log():
    integ = QuadraticIntegrator(_lotka_volterra(), x0=[1.0, 1.0])
    assert integ.get_attempt_log() is None

    integ = QuadraticIntegrator(_lotka_volterra(), x0=[1.0, 1.0], record_attempts=True)
    h = 0.01
    for _ in range(5):
        h = integ.step_adaptive(h, 0.05)
    log = integ.get_attempt_log()
    assert set(log) == {'t', 'dt', 'omega', 'ratio'}
    assert log['dt'].shape == (5,)
    assert log['t'][0] == 0.0
    assert np.all(np.diff(log['t']) > 0)
    assert np.all((log['ratio'] >= 0.3 - 1e-12) & (log['ratio'] <= 2.0 + 1e-12))
    assert log['dt'][-1] == h

    integ.reset_attempt_log()
    assert integ.get_attempt_log()['t'].size == 0


def test_verbose_prints_adaptive_diagnostics(capsys):
    integ = QuadraticIntegrator(_lotka_volterra(), x0=[1.0, 1.0], verbose=True)
    integ.step_adaptive(0.01, 0.05)
    out = capsys.readouterr().out
    assert "[adaptive]" in out


def test_changing_policy_rebuilds_controller():
    from qode import SpectralStepController

    integ = QuadraticIntegrator(_lotka_volterra(), x0=[1.0, 1.0])
    h = integ.step_adaptive(0.01, 0.05)
    assert integ.controller.policy == 'symmetric'

    integ.policy = 'geometric'
    omega = integ.spectral_radius()
    h_new = integ.step_adaptive(h, 0.05)
    assert integ.controller.policy == 'geometric'
    assert h_new == pytest.approx(SpectralStepController(0.05, policy='geometric').propose(h, omega), rel=1e-12)
