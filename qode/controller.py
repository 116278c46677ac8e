import math


class SpectralStepController:
    """Stepsize selection from a spectral-radius estimate.

    The dimensionless target ``mu`` fixes a reference stepsize ``h_mid`` at
    the current state through ``omega * h_mid = mu``, where ``omega`` is the
    spectral-radius estimate of the linearised field. Values of ``mu`` above
    about 1 cost accuracy rather than stability.

    Policies
    --------
    ``'symmetric'``
        Consecutive stepsizes satisfy ``h_new * h_old = h_mid**2``. The rule
        involves the two steps adjacent to the current state symmetrically, so
        it is unchanged when the integration is run backwards, which keeps the
        long-term invariant behaviour of the symmetric integrator.
    ``'geometric'``
        ``h_new**2 = h_old * h_mid``: a damped update that relaxes towards
        ``h_mid`` without the period-two oscillation of the symmetric rule, at
        the cost of time reversibility.

    In both cases the ratio ``h_new / h_old`` is clamped to
    ``[low_bound, high_bound]``. A vanishing ``omega`` saturates the ratio at
    ``high_bound``.

    Parameters
    ----------
    mu : float
        Stability target, ``> 0``.
    low_bound : float, default 0.3
        Smallest allowed ratio, ``0 < low_bound <= 1``.
    high_bound : float, default 2.0
        Largest allowed ratio, ``>= 1``.
    policy : {'symmetric', 'geometric'}
    """

    def __init__(self, mu: float, low_bound: float = 0.3, high_bound: float = 2.0, policy: str = 'symmetric'):
        self.mu = float(mu)
        self.low_bound = float(low_bound)
        self.high_bound = float(high_bound)
        if not self.mu > 0.0:
            raise ValueError("mu must be positive")
        if not (0.0 < self.low_bound <= 1.0):
            raise ValueError("low_bound must lie in (0, 1]")
        if not self.high_bound >= 1.0:
            raise ValueError("high_bound must be >= 1")
        p = policy.lower().strip()
        if p not in ('symmetric', 'geometric'):
            raise ValueError("policy must be 'symmetric' or 'geometric'")
        self.policy = p

    def ratio(self, h_old: float, omega: float) -> float:
        """Multiplicative change ``h_new / h_old`` for spectral radius ``omega``."""
        mu = self.mu
        if self.policy == 'symmetric':
            # (h_mid / h_old)**2; the floor guards omega == 0
            r = mu / max(mu / math.sqrt(self.high_bound), omega * h_old)
            r = r * r
        else:
            r = math.sqrt(mu / max(mu / (self.high_bound * self.high_bound), omega * h_old))
        return max(self.low_bound, min(self.high_bound, r))

    def propose(self, h_old: float, omega: float) -> float:
        return h_old * self.ratio(h_old, omega)

    def first_stepsize(self, h_max: float, omega: float) -> float:
        """``min(h_max, mu / omega)``, well defined for ``omega == 0``."""
        return self.mu / max(self.mu / h_max, omega)
