"""Symmetric implicit integrator for quadratic vector fields."""

from __future__ import annotations

import numpy as np

from .builder import LinearSystemBuilder
from .controller import SpectralStepController
from .linalg import solve_fixed, spectral_radius_estimate


class QuadraticIntegrator:
    """One-step symmetric integrator for quadratic ODEs.

    For ``dx/dt = A + B x + C(x, x)`` every step solves::

        x_new = x + h * ( A + B (x + x_new)/2 + C(x, x_new) )

    where ``C(x, x_new)`` is the symmetric bilinear form evaluated between the
    old and the new state. The update is linear in ``x_new``, so one linear
    solve per step gives the exact solution of the implicit relation; there is
    no Newton iteration and no convergence failure mode.

    Parameters
    ----------
    field : VectorField
        Callable ``field(x, builder)`` accumulating its terms into a
        :class:`~qode.builder.LinearSystemBuilder`, called once per step. A
        :class:`~qode.coefficients.QuadraticCoefficients` instance qualifies;
        it is borrowed, not copied.
    x0 : array_like, optional
        Initial state. Defaults to zeros of dimension ``n``.
    n : int, optional
        Dimension, when ``x0`` is not given and ``field`` has no ``dim``.
    policy : {'symmetric', 'geometric'}, default 'symmetric'
        Stepsize policy used by :meth:`step_adaptive`, see
        :class:`~qode.controller.SpectralStepController`.
    verbose : bool, default False
        Print a line per adaptive step.
    record_attempts : bool, default False
        Keep per-step adaptive diagnostics, see :meth:`get_attempt_log`.

    Attributes
    ----------
    x : ndarray
        Current state, updated in place. May be read or assigned between
        steps (assign element-wise, e.g. ``integ.x[:] = ...``).
    t : float
        Accumulated time.
    h : float or None
        Last stepsize used.

    Notes
    -----
    The step matrix ``I - h/2 J`` is factorised without pivoting. For
    moderate ``h`` it is diagonally dominant; for very large ``h`` the result
    may be silently wrong. Dimensions are not checked against the field.
    """

    def __init__(self, field, x0=None, n=None, policy: str = 'symmetric',
                 verbose: bool = False, record_attempts: bool = False):
        if not callable(field):
            raise TypeError("field must be callable as field(x, builder)")
        self.field = field

        if x0 is not None:
            self.x = np.array(x0, dtype=float)
        else:
            if n is None:
                n = getattr(field, 'dim', None)
            if n is None:
                raise ValueError("Dimension unknown: pass x0 or n")
            self.x = np.zeros(int(n))

        self.builder = LinearSystemBuilder(self.x.shape[0])
        self.policy = policy
        self.controller = None
        self.t = 0.0
        self.h = None
        self.verbose = bool(verbose)
        self.record_attempts = bool(record_attempts)
        self.reset_attempt_log()

    @property
    def dim(self) -> int:
        return self.builder.n

    # ------------------------------------------------------------------
    # Step assembly
    # ------------------------------------------------------------------

    def _prepare_step(self):
        self.builder.reset(self.x)
        self.field(self.x, self.builder)

    def _finish_step(self, h):
        mat = self.builder.mat
        self.x += h * self.builder.vec
        mat *= -0.5 * h
        mat[np.diag_indices_from(mat)] += 1.0
        solve_fixed(mat, self.x)
        self.t += h
        self.h = h

    def _get_controller(self, mu, low_bound=None, high_bound=None):
        c = self.controller
        if low_bound is None:
            low_bound = c.low_bound if c is not None else 0.3
        if high_bound is None:
            high_bound = c.high_bound if c is not None else 2.0
        key = (mu, low_bound, high_bound, self.policy.lower().strip())
        if c is None or (c.mu, c.low_bound, c.high_bound, c.policy) != key:
            c = SpectralStepController(mu, low_bound, high_bound, policy=self.policy)
            self.controller = c
        return c

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def step(self, h: float):
        """Advance the state by one step of size ``h``."""
        self._prepare_step()
        self._finish_step(h)

    def step_adaptive(self, h: float, mu: float, low_bound: float = 0.3, high_bound: float = 2.0,
                      h_max=None) -> float:
        """Rescale ``h`` from the local spectral radius, then step.

        Parameters
        ----------
        h : float
            Previous stepsize.
        mu : float
            Stability target ``omega * h_mid``.
        low_bound, high_bound : float
            Limits on ``h_new / h``.
        h_max : float, optional
            Hard cap applied after the ratio limits, e.g. to land on a final
            time. Capped steps may fall below ``low_bound * h``.

        Returns
        -------
        h_new : float
            The stepsize actually used; pass it back in on the next call.
        """
        controller = self._get_controller(mu, low_bound, high_bound)
        self._prepare_step()
        omega = spectral_radius_estimate(self.builder.mat)
        h_new = controller.propose(h, omega)
        if h_max is not None:
            h_new = min(h_new, h_max)
        if self.verbose:
            print(f"[adaptive] t={self.t:.6g}: omega={omega:.3e}, h {h:.3e} -> {h_new:.3e}")
        if self.record_attempts:
            self._log['t'].append(self.t)
            self._log['h_prev'].append(h)
            self._log['h'].append(h_new)
            self._log['omega'].append(omega)
        self._finish_step(h_new)
        return h_new

    def spectral_radius(self) -> float:
        """Spectral-radius estimate of the linearised field at the current state."""
        self._prepare_step()
        return spectral_radius_estimate(self.builder.mat)

    def suggest_first_stepsize(self, h_max: float, mu: float) -> float:
        """Return ``min(h_max, mu / omega)`` at the current state without stepping."""
        omega = self.spectral_radius()
        h0 = self._get_controller(mu).first_stepsize(h_max, omega)
        if self.verbose:
            print(f"[qode] first stepsize {h0:.3e} (omega={omega:.3e}, h_max={h_max:.3e})")
        return h0

    # ------------------------------------------------------------------
    # Attempt logging (optional)
    # ------------------------------------------------------------------

    def reset_attempt_log(self):
        """Clear stored adaptive diagnostics."""
        self._log = {'t': [], 'h_prev': [], 'h': [], 'omega': []} if self.record_attempts else None

    def get_attempt_log(self):
        """Return recorded adaptive-step arrays, or None if logging is disabled."""
        if self._log is None:
            return None
        t = np.asarray(self._log['t'], dtype=float)
        h_prev = np.asarray(self._log['h_prev'], dtype=float)
        h = np.asarray(self._log['h'], dtype=float)
        return {
            "t": t,
            "dt": h,
            "omega": np.asarray(self._log['omega'], dtype=float),
            "ratio": h / h_prev if h.size else h,
        }
