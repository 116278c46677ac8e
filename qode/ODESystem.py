import numpy as np
from typing import Callable, Optional, Union

from .integrations import IntegrationMethod, GaussLegendre
from .jacobian import MiniJacobian
from .controller import SpectralStepController


class ODESystem:
    """Bind a general RHS ``fun(t, y)`` to an implicit Gauss-Legendre stepper.

    The system owns the current state and a :class:`MiniJacobian`, and offers
    the same stepping surface as :class:`~qode.QuadraticIntegrator` (``x``,
    ``t``, ``step``, ``step_adaptive``, ``suggest_first_stepsize``), so the
    :class:`~qode.ODESolver` driver treats both alike. The spectral-radius
    estimate used for stepsize control comes from the matrix-free estimator
    instead of an assembled matrix.

    Parameters
    ----------
    fun : callable
        ODE right-hand side ``fun(t, y) -> ndarray``.
    y0 : array_like, shape (n,)
        Initial state vector.
    method : str | IntegrationMethod, default 'gauss_legendre'
        ``'gl1'``, ``'gl2'``, ``'gl3'`` (``'gauss_legendre'`` is ``'gl2'``) or
        a pre-instantiated method whose ``step`` accepts ``jacobian=``.
    level : int, default 2
        Directions kept by the Jacobian estimator.
    policy : {'symmetric', 'geometric'}, default 'symmetric'
        Stepsize policy for :meth:`step_adaptive`.
    probe_h : float, default 1e-4
        Trial scale for the estimator when no step size is at hand
        (:meth:`suggest_first_stepsize`).
    verbose : bool, default False
        Emit basic diagnostics.
    """

    _METHODS = {'gl1': 1, 'gl2': 2, 'gl3': 3, 'gauss_legendre': 2}

    def __init__(self,
                 fun: Callable[[float, np.ndarray], np.ndarray],
                 y0: Union[np.ndarray, list],
                 method: Union[str, IntegrationMethod] = 'gauss_legendre',
                 level: int = 2,
                 policy: str = 'symmetric',
                 probe_h: float = 1e-4,
                 verbose: bool = False):
        self.fun = fun
        self.x = np.array(y0, dtype=float)
        self.t = 0.0
        self.h = None
        self.policy = policy
        self.probe_h = float(probe_h)
        self.verbose = verbose
        self.controller: Optional[SpectralStepController] = None
        self.jacobian = MiniJacobian(self.x.shape[0], level)
        self.last_info = None

        if isinstance(method, IntegrationMethod):
            self.method = method
        elif isinstance(method, str):
            stages = self._METHODS.get(method.lower())
            if stages is None:
                raise ValueError(f"Unknown integration method: {method}")
            self.method = GaussLegendre(stages=stages, level=level)
        else:
            raise ValueError("Invalid integration method specification.")

    @property
    def dim(self) -> int:
        return self.x.shape[0]

    def _evaluate_jacobian(self, h):
        t = self.t
        return self.jacobian.evaluate(lambda z: self.fun(t, z), self.x, h)

    def _advance(self, h):
        y_new, _, err, success, iterations = self.method.step(
            self.fun, self.t, self.x, h, jacobian=self.jacobian
        )
        if self.verbose and not success:
            print(f"[qode] stage sweeps did not settle @ t={self.t:.6g}: err={err:.3e} after {iterations} sweeps")
        self.x[:] = y_new
        self.t += h
        self.h = h
        self.last_info = (err, success, iterations)

    def _get_controller(self, mu, low_bound, high_bound):
        c = self.controller
        key = (mu, low_bound, high_bound, self.policy.lower().strip())
        if c is None or (c.mu, c.low_bound, c.high_bound, c.policy) != key:
            c = SpectralStepController(mu, low_bound, high_bound, policy=self.policy)
            self.controller = c
        return c

    def spectral_radius(self, h=None) -> float:
        """Estimator-based spectral radius at the current state."""
        self._evaluate_jacobian(self.probe_h if h is None else h)
        return self.jacobian.spectral_radius_estimate()

    def step(self, h: float):
        """Fixed step of size ``h``; the Jacobian estimate is refreshed first."""
        self._evaluate_jacobian(h)
        self._advance(h)

    def step_adaptive(self, h: float, mu: float, low_bound: float = 0.3, high_bound: float = 2.0,
                      h_max: Optional[float] = None) -> float:
        """Rescale ``h`` from the estimator's spectral radius, then step.

        Returns the stepsize used. ``h_max`` caps it after the ratio bounds are
        applied (the driver uses this to land on the final time).
        """
        omega = self.spectral_radius(h)
        h_new = self._get_controller(mu, low_bound, high_bound).propose(h, omega)
        if h_max is not None:
            h_new = min(h_new, h_max)
        if self.verbose:
            print(f"[adaptive] t={self.t:.6g}: omega={omega:.3e}, h {h:.3e} -> {h_new:.3e}")
        self._advance(h_new)
        return h_new

    def suggest_first_stepsize(self, h_max: float, mu: float) -> float:
        omega = self.spectral_radius()
        return SpectralStepController(mu, policy=self.policy).first_stepsize(h_max, omega)
