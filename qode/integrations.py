import numpy as np
from abc import ABC, abstractmethod

from .jacobian import MiniJacobian


class IntegrationMethod(ABC):
    """
    Abstract base class for integration methods.

    Classes derived from IntegrationMethod must implement the `step` method,
    which advances the solution of an ODE from time t to t+h.
    """

    @abstractmethod
    def step(self, fun, t, y, h):
        """
        Advance the solution of an ODE by one time step.

        Parameters:
            fun: callable
                The function defining the ODE (dy/dt = fun(t, y)).
            t: float
                The current time.
            y: np.array
                The current state vector.
            h: float
                The time step size.

        Returns:
            The 5-tuple ``(y_new, stage_data, err, success, iterations)``.
        """
        pass


_S3 = np.sqrt(3.0)
_S15 = np.sqrt(15.0)

# stages -> (A, b, c)
GAUSS_LEGENDRE_TABLES = {
    1: (
        np.array([[0.5]]),
        np.array([1.0]),
        np.array([0.5]),
    ),
    2: (
        np.array([
            [0.25, 0.25 - _S3 / 6.0],
            [0.25 + _S3 / 6.0, 0.25],
        ]),
        np.array([0.5, 0.5]),
        np.array([0.5 - _S3 / 6.0, 0.5 + _S3 / 6.0]),
    ),
    3: (
        np.array([
            [5.0 / 36.0, 2.0 / 9.0 - _S15 / 15.0, 5.0 / 36.0 - _S15 / 30.0],
            [5.0 / 36.0 + _S15 / 24.0, 2.0 / 9.0, 5.0 / 36.0 - _S15 / 24.0],
            [5.0 / 36.0 + _S15 / 30.0, 2.0 / 9.0 + _S15 / 15.0, 5.0 / 36.0],
        ]),
        np.array([5.0 / 18.0, 4.0 / 9.0, 5.0 / 18.0]),
        np.array([0.5 - _S15 / 10.0, 0.5, 0.5 + _S15 / 10.0]),
    ),
}


class GaussLegendre(IntegrationMethod):
    """
    Implicit Gauss-Legendre Runge-Kutta method with 1, 2 or 3 stages
    (orders 2, 4 and 6).

    The stage equations are solved by fixed-point sweeps over the stage
    derivatives. After stage ``j`` is re-evaluated, its change is pushed
    through an approximate Jacobian and distributed to all stages along
    column ``j`` of the Butcher matrix, which anticipates how the other stage
    states will move and speeds up the sweeps.

    Attributes:
        stages: int
            Number of stages.
        max_iter: int
            Number of sweeps performed.
        tol: float or None
            When set, sweeping stops early once the largest stage-derivative
            change falls below it; the default runs all ``max_iter`` sweeps.
        level: int
            Directions used when the method builds its own Jacobian estimate.
        order: int
            Classical order ``2 * stages``.
    """

    def __init__(self, stages=2, max_iter=100, tol=None, level=2):
        if stages not in GAUSS_LEGENDRE_TABLES:
            raise ValueError("Gauss-Legendre stages must be 1, 2 or 3")
        self.stages = int(stages)
        self.max_iter = int(max_iter)
        self.tol = tol
        self.level = int(level)
        self.order = 2 * self.stages
        self.A, self.b, self.c = GAUSS_LEGENDRE_TABLES[self.stages]

    def step(self, fun, t, y, h, jacobian=None):
        """Perform one Gauss-Legendre step.

        Parameters
        ----------
        fun : callable
            RHS ``fun(t, y)``.
        t, y, h :
            Current time, state and step size.
        jacobian : MiniJacobian, optional
            Estimator used to accelerate the sweeps. When omitted one is
            evaluated at ``(t, y)`` with trial scale ``h``.

        Returns
        -------
        y_new : ndarray
            Next state.
        k : ndarray, shape (stages, n)
            Final stage derivatives.
        err : float
            Largest stage-derivative change in the last sweep.
        success : bool
            ``y_new`` is finite and, when ``tol`` is set, the sweeps met it.
        iterations : int
            Number of sweeps executed.
        """
        y = np.asarray(y, dtype=float)
        A, b, c = self.A, self.b, self.c

        if jacobian is None:
            jacobian = MiniJacobian(y.size, self.level)
            jacobian.evaluate(lambda z: fun(t, z), y, h)

        k = np.tile(np.asarray(fun(t, y), dtype=float), (self.stages, 1))
        err = 0.0
        iterations = 0
        for _ in range(self.max_iter):
            err = 0.0
            for j in range(self.stages):
                z = y + h * (A[j] @ k)
                f_z = np.asarray(fun(t + c[j] * h, z), dtype=float)
                delta = f_z - k[j]
                err = max(err, float(np.max(np.abs(delta))))
                k[j] = f_z
                corr = jacobian.apply(h * delta)
                k += np.outer(A[:, j], corr)
            iterations += 1
            if self.tol is not None and err <= self.tol:
                break

        y_new = y + h * (b @ k)
        success = bool(np.all(np.isfinite(y_new))) and (self.tol is None or err <= self.tol)
        return y_new, k, err, success, iterations
