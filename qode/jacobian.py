"""Matrix-free estimate of the dominant part of a Jacobian."""

from __future__ import annotations

import math

import numpy as np

from .linalg import dot_product, remove_tangent_components, spectral_radius_estimate


# squared relative size below which a projected direction is round-off
_NEGLIGIBLE = (64.0 * np.finfo(float).eps) ** 2


def _euclid_covector(x):
    return np.array(x, dtype=float)


class MiniJacobian:
    """Low-rank Jacobian approximation built from central differences.

    Starting from the flow direction ``dx = h f(x)``, :meth:`evaluate` probes
    the field at ``x +/- dx`` and splits the result into the even part
    ``w = (f(x+dx) + f(x-dx))/2`` and the odd part
    ``v = (f(x+dx) - f(x-dx))/2 ~ J dx``. The next probing direction is
    whichever of ``w`` and ``v`` carries more new information after removing
    the directions already captured (in the pairing the covector defines).
    Up to ``min(level, n)`` pairs ``(u_k, v_k)`` are collected, stopping early
    once both candidates are down to round-off. The pairs are scaled so that
    ``J ~ sum_k v_k u_k^T`` on the probed subspace.

    The small matrix ``M_kl = u_k . v_l`` is the Jacobian restricted to that
    subspace; its spectral radius estimates the dominant eigenvalue magnitude
    of ``J`` without ever forming the ``n x n`` matrix.

    Parameters
    ----------
    n : int
        State dimension.
    level : int, default 2
        Maximum number of directions.
    """

    def __init__(self, n: int, level: int = 2):
        if level < 1:
            raise ValueError("level must be at least 1")
        self.n = int(n)
        self.level = int(level)
        self.u = np.zeros((self.level, self.n))
        self.v = np.zeros((self.level, self.n))
        self.M = np.zeros((self.level, self.level))
        self.rank = 0

    @property
    def dim(self) -> int:
        return self.n

    def evaluate(self, fun, x, h: float, covector=None) -> int:
        """Probe ``fun`` around ``x`` and rebuild the approximation.

        Parameters
        ----------
        fun : callable
            Autonomous field ``fun(x) -> ndarray``.
        x : ndarray, shape (n,)
            Linearisation point.
        h : float
            Trial scale; probing offsets are ``h`` times field-sized vectors.
        covector : callable, optional
            Maps a vector to its dual under the inner product used for
            scaling and orthogonalisation (``z -> z`` by default).

        Returns
        -------
        rank : int
            Number of independent directions found, at most ``min(level, n)``.
            Zero when ``f(x)`` vanishes.
        """
        cov = covector or _euclid_covector
        x = np.asarray(x, dtype=float)
        dx = h * np.asarray(fun(x), dtype=float)
        directions = []
        duals = []
        self.rank = 0
        # no more independent directions than the state has
        level = min(self.level, self.n)

        for k in range(level):
            f_plus = np.asarray(fun(x + dx), dtype=float)
            f_minus = np.asarray(fun(x - dx), dtype=float)
            w = 0.5 * (f_plus + f_minus)
            v = 0.5 * (f_plus - f_minus)

            u = np.asarray(cov(dx), dtype=float)
            denom = dot_product(u, dx)
            if not denom > 0.0:
                break
            directions.append(dx)
            duals.append(u)

            scale = 1.0 / math.sqrt(denom)
            self.u[k] = u * scale
            self.v[k] = v * scale
            self.rank = k + 1

            if k + 1 < level:
                a = self._new_component(w, directions, duals, cov)
                b = self._new_component(v, directions, duals, cov)
                if a is None and b is None:
                    break
                if b is None or (a is not None and dot_product(a, cov(a)) > dot_product(b, cov(b))):
                    dx = h * a
                else:
                    dx = h * b

        r = self.rank
        self.M[:] = 0.0
        self.M[:r, :r] = self.u[:r] @ self.v[:r].T
        return r

    @staticmethod
    def _new_component(z, directions, duals, cov):
        """Part of ``z`` not yet spanned, or None when only round-off is left."""
        before = dot_product(z, cov(z))
        r = remove_tangent_components(z.copy(), directions, duals=duals)
        after = dot_product(r, cov(r))
        if not after > _NEGLIGIBLE * before:
            return None
        return r

    def apply(self, x, out=None):
        """Approximate ``J @ x``; ``out`` may alias ``x``."""
        r = self.rank
        p = self.u[:r] @ x
        y = p @ self.v[:r] if r else np.zeros(self.n)
        if out is None:
            return y
        out[:] = y
        return out

    def spectral_radius_estimate(self) -> float:
        if self.rank == 0:
            return 0.0
        return spectral_radius_estimate(self.M[:self.rank, :self.rank])
