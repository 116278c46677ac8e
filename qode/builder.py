"""Per-step linear system assembly for the symmetric quadratic step."""

from __future__ import annotations

from typing import Protocol

import numpy as np


class LinearSystemBuilder:
    """Accumulates the terms of a quadratic field into ``mat`` and ``vec``.

    The builder is bound to the current state with :meth:`reset` at the start
    of each step. Every ``add_*`` call contributes to

    * ``vec``: the explicit part ``A + B x / 2``, and
    * ``mat``: the linearisation ``B + C(x, .) + C(., x)`` whose implicit half
      is applied by the integrator.

    Contributions are additive, so terms may be entered in any order and the
    same coefficient may be split across several calls.

    Parameters
    ----------
    n : int
        System dimension; ``mat`` (n, n) and ``vec`` (n,) are allocated once.
    """

    def __init__(self, n: int):
        self.n = int(n)
        self.mat = np.zeros((self.n, self.n))
        self.vec = np.zeros(self.n)
        self.x = None

    def reset(self, x):
        """Zero the workspace and bind the state the terms are evaluated at."""
        self.mat.fill(0.0)
        self.vec.fill(0.0)
        self.x = x
        return self

    # Single-entry terms

    def add_constant(self, i, value):
        self.vec[i] += value

    def add_linear_term(self, i, j, value):
        self.mat[i, j] += value
        self.vec[i] += 0.5 * value * self.x[j]

    def add_quadratic_term(self, i, j, k, value):
        self.mat[i, j] += value * self.x[k]
        self.mat[i, k] += value * self.x[j]

    # Bulk terms (same result as entering every entry separately)

    def add_constant_vector(self, A):
        self.vec += A

    def add_linear_matrix(self, B):
        self.mat += B
        self.vec += 0.5 * (B @ self.x)

    def add_quadratic_tensor(self, C):
        self.mat += np.einsum('ijk,k->ij', C, self.x)
        self.mat += np.einsum('ijk,j->ik', C, self.x)


class VectorField(Protocol):
    """Anything that, given the current state, accumulates its terms into a builder.

    A plain function ``field(x, builder)`` satisfies this protocol, and so does
    a :class:`~qode.coefficients.QuadraticCoefficients` instance.
    """

    def __call__(self, x: np.ndarray, builder: LinearSystemBuilder) -> None:
        ...
