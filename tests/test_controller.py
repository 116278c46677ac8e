import math

import pytest

from qode import SpectralStepController


def test_symmetric_policy_targets_geometric_mean():
    c = SpectralStepController(mu=0.1, low_bound=0.01, high_bound=100.0)
    h_old, omega = 0.02, 2.0
    h_mid = c.mu / omega
    h_new = c.propose(h_old, omega)
    assert h_new * h_old == pytest.approx(h_mid ** 2, rel=1e-12)


def test_symmetric_policy_is_reversible():
    c = SpectralStepController(mu=0.1, low_bound=0.01, high_bound=100.0)
    omega = 3.0
    h_old = 0.01
    h_new = c.propose(h_old, omega)
    # stepping back from h_new with the same omega recovers h_old
    assert c.propose(h_new, omega) == pytest.approx(h_old, rel=1e-12)


def test_geometric_policy_relaxes_towards_target():
    c = SpectralStepController(mu=0.1, low_bound=0.01, high_bound=100.0, policy='geometric')
    omega = 2.0
    h_mid = c.mu / omega
    h_old = 0.005
    h_new = c.propose(h_old, omega)
    assert h_new == pytest.approx(math.sqrt(h_old * h_mid), rel=1e-12)
    assert h_old < h_new < h_mid


@pytest.mark.parametrize("policy", ["symmetric", "geometric"])
def test_ratio_is_clamped(policy):
    c = SpectralStepController(mu=0.05, low_bound=0.5, high_bound=1.5, policy=policy)
    for omega in (0.0, 1e-8, 0.1, 1.0, 10.0, 1e6):
        for h in (1e-6, 1e-3, 0.1, 1.0):
            r = c.ratio(h, omega)
            assert 0.5 <= r <= 1.5


@pytest.mark.parametrize("policy", ["symmetric", "geometric"])
def test_vanishing_omega_saturates_at_high_bound(policy):
    c = SpectralStepController(mu=0.05, high_bound=2.0, policy=policy)
    assert c.ratio(0.1, 0.0) == pytest.approx(2.0, rel=1e-15)
    assert c.propose(0.1, 0.0) == pytest.approx(0.2)


def test_first_stepsize():
    c = SpectralStepController(mu=0.05)
    assert c.first_stepsize(1.0, 0.0) == pytest.approx(1.0)
    assert c.first_stepsize(1.0, 10.0) == pytest.approx(0.005)
    assert c.first_stepsize(0.001, 10.0) == pytest.approx(0.001)


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(mu=0.0),
        dict(mu=-1.0),
        dict(mu=0.1, low_bound=0.0),
        dict(mu=0.1, low_bound=1.5),
        dict(mu=0.1, high_bound=0.9),
        dict(mu=0.1, policy='bogus'),
    ],
)
def test_invalid_configuration_raises(kwargs):
    with pytest.raises(ValueError):
        SpectralStepController(**kwargs)
