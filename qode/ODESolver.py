import numpy as np
from typing import Any, List, Optional, Tuple


class ODESolver:
    """Time integration driver (fixed or adaptive) for a stepping system.

    Works with any object exposing ``x``, ``t``, ``step(h)`` and
    ``step_adaptive(h, mu, low_bound, high_bound, h_max=...)``:
    :class:`~qode.QuadraticIntegrator` and :class:`~qode.ODESystem` both do.
    Histories of time, state and step size grow by one entry per step.
    """
    def __init__(self, system: Any, t_span: Tuple[float, float], h: float = 1e-2):
        """
        Initialize the ODESolver.

        Parameters:
            system: The stepping system to be integrated. Its time is reset to t0.
            t_span: A tuple (t0, tf) specifying the start and end times.
            h: The initial time step size (or first guess in adaptive mode).
        """
        self.system = system
        self.t0, self.tf = t_span
        self.h_initial = h
        self.system.t = float(self.t0)
        self.t_values: List[float] = [self.t0]
        self.x_values: List[np.ndarray] = [self.system.x.copy()]
        self.h_values: List[float] = [h]

    def _record(self, h_used):
        self.t_values.append(self.system.t)
        self.x_values.append(self.system.x.copy())
        self.h_values.append(h_used)

    def solve(self,
              adaptive: bool = False,
              mu: Optional[float] = None,
              low_bound: float = 0.3,
              high_bound: float = 2.0,
              h_max: Optional[float] = None) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Integrate from ``t0`` to ``tf``.

        Parameters
        ----------
        adaptive : bool, default False
            Use spectral-radius stepsize control; requires ``mu``.
        mu : float, optional
            Stability target for adaptive stepping.
        low_bound, high_bound : float
            Ratio limits for consecutive adaptive stepsizes.
        h_max : float, optional
            Upper limit on any adaptive stepsize.

        Returns
        -------
        t_values : ndarray (m,)
            Time points (monotone, includes final time).
        x_values : ndarray (m, n)
            State history.
        h_values : ndarray (m,)
            Step sizes used; first entry equals the initial ``h`` guess.
        """
        if adaptive and mu is None:
            raise ValueError("adaptive stepping requires mu")
        h = self.h_initial
        # Relative slack so round-off in t does not produce a sliver step.
        eps = 1e-12 * max(1.0, abs(self.tf))
        while self.system.t < self.tf - eps:
            remaining = self.tf - self.system.t
            if adaptive:
                cap = remaining if h_max is None else min(h_max, remaining)
                h_used = self.system.step_adaptive(h, mu, low_bound, high_bound, h_max=cap)
                self._record(h_used)
                h = h_used
            else:
                h_step = min(h, remaining)
                self.system.step(h_step)
                self._record(h_step)

        return np.array(self.t_values), np.array(self.x_values), np.array(self.h_values)
