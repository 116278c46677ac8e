"""qode: symmetric implicit integration of quadratic ODEs.

This package advances systems of the form::

    dx_i/dt = A_i + sum_j B_ij x_j + sum_jk C_ijk x_j x_k

(Lotka-Volterra, Riccati equations, many mechanics problems) with a
symmetric implicit step. Evaluating the quadratic term between the old and
the new state makes the implicit relation linear in the new state, so each
step costs exactly one small dense linear solve and no Newton iteration.

Building blocks
---------------
* :mod:`qode.linalg` - no-pivot LU, fixed-size solves, a two-invariant
  spectral-radius estimate and projection helpers.
* :class:`QuadraticCoefficients` - constant ``A``, ``B``, ``C`` of a field.
* :class:`QuadraticIntegrator` - the symmetric integrator with fixed and
  adaptive steps; its field is any callable ``field(x, builder)``.
* :class:`SpectralStepController` - time-symmetric stepsize policy.
* :class:`MiniJacobian` and :class:`GaussLegendre` - a matrix-free Jacobian
  estimate and an implicit Gauss-Legendre stepper for general fields,
  wrapped by :class:`ODESystem`.
* :class:`ODESolver` - time loop recording histories.

Quick start
-----------
>>> import numpy as np
>>> from qode import QuadraticCoefficients, QuadraticIntegrator
>>> lv = QuadraticCoefficients(2)
>>> lv.B[0, 0], lv.B[1, 1] = 2/3, -1.0
>>> lv.C[0, 0, 1], lv.C[1, 0, 1] = -4/3, 1.0
>>> integ = QuadraticIntegrator(lv.symmetrize_C(), x0=[1.0, 1.0])
>>> for _ in range(100):
...     integ.step(0.1)
"""

from .linalg import (
  dot_product,
  lu_factor,
  solve_factored,
  solve_fixed,
  spectral_radius_estimate,
  remove_tangent_components,
)
from .coefficients import QuadraticCoefficients
from .builder import LinearSystemBuilder, VectorField
from .controller import SpectralStepController
from .integrator import QuadraticIntegrator
from .jacobian import MiniJacobian
from .integrations import IntegrationMethod, GaussLegendre
from .ODESystem import ODESystem
from .ODESolver import ODESolver

__version__ = '0.1.0'

# Curated public API
__all__ = [
  'solve_quadratic',
  # Linear kernel
  'dot_product', 'lu_factor', 'solve_factored', 'solve_fixed',
  'spectral_radius_estimate', 'remove_tangent_components',
  # Quadratic path
  'QuadraticCoefficients', 'LinearSystemBuilder', 'VectorField',
  'QuadraticIntegrator', 'SpectralStepController',
  # General-field path
  'MiniJacobian', 'IntegrationMethod', 'GaussLegendre', 'ODESystem',
  # Driver
  'ODESolver',
]


def solve_quadratic(
  field,
  t_span,
  x0,
  h0=None,
  adaptive=True,
  mu=0.05,
  adaptive_opts=None,
  policy='symmetric',
  verbose=False,
  return_attempts=False,
):
  """Integrate a quadratic field over ``t_span`` with the symmetric step.

  Parameters
  ----------
  field : VectorField or QuadraticCoefficients
    Callable ``field(x, builder)`` accumulating the field's terms.
  t_span : (float, float)
    Time interval ``(t0, tf)``.
  x0 : array_like, shape (n,)
    Initial state.
  h0 : float or None
    Fixed step size, or first guess in adaptive mode. ``None`` picks
    ``suggest_first_stepsize(h_max, mu)`` when adaptive and ``1e-2``
    otherwise.
  adaptive : bool, default True
    Enable spectral-radius stepsize control.
  mu : float, default 0.05
    Stability target ``omega * h``.
  adaptive_opts : dict or None
    Overrides for ``mu``, ``low_bound``, ``high_bound``, ``h_max`` and
    ``policy``. Unrecognized keys are ignored.
  policy : {'symmetric', 'geometric'}
    Stepsize policy, see :class:`SpectralStepController`.
  verbose : bool, default False
    Print per-step adaptive diagnostics.
  return_attempts : bool, default False
    Also return the integrator's adaptive attempt log.

  Returns
  -------
  t : ndarray, shape (m,)
  x : ndarray, shape (m, n)
  h : ndarray, shape (m,)
  attempts : dict or None, optional
    Only returned when ``return_attempts`` is True.
  """
  if adaptive_opts is None:
    adaptive_opts = {}

  opts = {'mu': mu, 'low_bound': 0.3, 'high_bound': 2.0, 'h_max': None}
  for key in opts:
    if key in adaptive_opts and adaptive_opts[key] is not None:
      opts[key] = float(adaptive_opts[key])
  policy = adaptive_opts.get('policy') or policy

  integrator = QuadraticIntegrator(
    field,
    x0=x0,
    policy=policy,
    verbose=verbose,
    record_attempts=return_attempts,
  )

  t0, tf = t_span
  if h0 is None:
    if adaptive:
      h_ceiling = opts['h_max'] if opts['h_max'] is not None else (tf - t0)
      h0 = integrator.suggest_first_stepsize(h_ceiling, opts['mu'])
    else:
      h0 = 1e-2

  solver_obj = ODESolver(integrator, t_span, h=h0)
  t, x, h = solver_obj.solve(
    adaptive=adaptive,
    mu=opts['mu'],
    low_bound=opts['low_bound'],
    high_bound=opts['high_bound'],
    h_max=opts['h_max'],
  )
  if return_attempts:
    return t, x, h, integrator.get_attempt_log()
  return t, x, h
