"""Small dense linear algebra used by every implicit step.

All routines work in place on numpy buffers and never pivot. A matrix may be
given either as a 2-D ``(n, n)`` array or as a flat row-major buffer of length
``n*n``; the routines operate on a reshaped view, so the caller's buffer is
the one that gets overwritten.

Numerical safety relies on the matrices being diagonally dominant (which the
implicit step matrix ``I - h/2 J`` is for moderate stepsizes). A degenerate
pivot is not reported; it simply produces ``inf``/``nan`` in the output.
"""

from __future__ import annotations

import math

import numpy as np


def _square_view(A):
    """Return ``A`` as an ``(n, n)`` view sharing memory with the input."""
    if A.ndim == 2:
        return A
    n = math.isqrt(A.size)
    return A.reshape(n, n)


def dot_product(a, b) -> float:
    """Euclidean dot product of two vectors."""
    return float(np.dot(a, b))


def lu_factor(A):
    """In-place LU factorisation of ``A`` without pivoting.

    After the call the strict lower triangle holds ``L`` (unit diagonal
    implied) and the upper triangle holds ``U`` with the *reciprocal* of each
    pivot stored on the diagonal, so :func:`solve_factored` only multiplies.

    Parameters
    ----------
    A : ndarray, shape (n, n) or (n*n,)
        Matrix to factorise; overwritten with the factors.

    Returns
    -------
    A : ndarray
        The same buffer, for chaining.
    """
    M = _square_view(A)
    n = M.shape[0]
    for i in range(n):
        M[i, i] = 1.0 / M[i, i]
        if i + 1 < n:
            M[i + 1:, i] *= M[i, i]
            M[i + 1:, i + 1:] -= np.outer(M[i + 1:, i], M[i, i + 1:])
    return A


def solve_factored(A, v):
    """Forward and backward substitution with factors from :func:`lu_factor`.

    The right-hand side ``v`` is overwritten with the solution.
    """
    M = _square_view(A)
    n = M.shape[0]
    for i in range(1, n):
        v[i] -= np.dot(M[i, :i], v[:i])
    for i in range(n - 1, -1, -1):
        v[i] = M[i, i] * (v[i] - np.dot(M[i, i + 1:], v[i + 1:]))
    return v


def _solve_1(M, b):
    b[0] /= M[0, 0]


def _solve_2(M, b):
    a00, a01 = M[0, 0], M[0, 1]
    a10, a11 = M[1, 0], M[1, 1]
    invdet = 1.0 / (a00 * a11 - a01 * a10)
    x0 = (a11 * b[0] - a01 * b[1]) * invdet
    x1 = (a00 * b[1] - a10 * b[0]) * invdet
    b[0] = x0
    b[1] = x1


def _solve_3(M, b):
    # k = 0
    inv00 = 1.0 / M[0, 0]
    M[0, 0] = inv00
    f10 = M[1, 0] * inv00
    f20 = M[2, 0] * inv00
    M[1, 1] -= f10 * M[0, 1]
    M[1, 2] -= f10 * M[0, 2]
    M[2, 1] -= f20 * M[0, 1]
    M[2, 2] -= f20 * M[0, 2]
    b[1] -= f10 * b[0]
    b[2] -= f20 * b[0]

    # k = 1
    inv11 = 1.0 / M[1, 1]
    M[1, 1] = inv11
    f21 = M[2, 1] * inv11
    M[2, 2] -= f21 * M[1, 2]
    b[2] -= f21 * b[1]

    # k = 2
    M[2, 2] = 1.0 / M[2, 2]

    b[2] *= M[2, 2]
    b[1] = (b[1] - M[1, 2] * b[2]) * M[1, 1]
    b[0] = (b[0] - M[0, 1] * b[1] - M[0, 2] * b[2]) * M[0, 0]


def _solve_one_pass(M, b):
    """Single elimination sweep carrying ``b`` along, reciprocal pivots stored."""
    n = M.shape[0]
    for k in range(n):
        inv = 1.0 / M[k, k]
        M[k, k] = inv
        if k + 1 < n:
            f = M[k + 1:, k] * inv
            M[k + 1:, k + 1:] -= np.outer(f, M[k, k + 1:])
            b[k + 1:] -= f * b[k]
    for k in range(n - 1, -1, -1):
        b[k] = (b[k] - np.dot(M[k, k + 1:], b[k + 1:])) * M[k, k]


_FIXED_SOLVERS = {
    1: _solve_1,
    2: _solve_2,
    3: _solve_3,
    4: _solve_one_pass,
    5: _solve_one_pass,
    6: _solve_one_pass,
}


def solve_fixed(A, b):
    """Solve ``A x = b`` in place, specialised for small dimensions.

    Sizes 1 and 2 use closed forms, 3 a written-out elimination and 4 to 6 a
    single elimination sweep with reciprocal pivots. Any other size falls back
    to :func:`lu_factor` followed by :func:`solve_factored`.

    Both ``A`` and ``b`` are overwritten; ``b`` holds the solution.
    """
    M = _square_view(A)
    solver = _FIXED_SOLVERS.get(M.shape[0])
    if solver is None:
        lu_factor(M)
        solve_factored(M, b)
    else:
        solver(M, b)
    return b


def spectral_radius_estimate(A) -> float:
    """Estimate the dominant eigenvalue magnitude from two trace invariants.

    With ``tr1 = trace(A)`` and ``tr2 = trace(A @ A)`` the pair ``l1, l2``
    solving ``l1 + l2 = tr1`` and ``l1**2 + l2**2 = tr2`` is formed and
    ``max(|l1|, |l2|)`` returned. This is exact for a real 2x2 spectrum. When
    the discriminant ``2*tr2 - tr1**2`` is negative (complex dominant pair)
    the estimate falls back to ``sqrt(|tr2| / 2)``.

    For larger matrices this is a heuristic: squaring the matrix suppresses
    the sub-dominant eigenvalues, so the two leading invariants still track
    the dominant one well in practice. It is neither an upper nor a lower
    bound.
    """
    M = _square_view(np.asarray(A, dtype=float))
    if M.size == 0:
        return 0.0
    tr1 = float(np.trace(M))
    # trace(M @ M) without forming the product
    tr2 = float(np.sum(M * M.T))
    det2 = 2.0 * tr2 - tr1 * tr1
    if det2 < 0.0:
        return math.sqrt(abs(tr2 / 2.0))
    return 0.5 * (abs(tr1) + math.sqrt(det2))


def remove_tangent_components(x, basis, p=None, duals=None):
    """Remove from ``x`` its components along the first ``p`` basis vectors.

    Each vector ``u`` is applied in turn as ``x -= (u.x)/(u.u) u``, so the
    basis need not be normalised. For an orthogonal basis the result is the
    orthogonal complement projection; for a general basis it is one sweep of
    Gram-Schmidt style projections. Zero vectors are skipped. ``x`` is
    modified in place and returned.

    With ``duals`` (one covector ``g_j`` per basis vector) the pairing
    ``x -= (g.x)/(g.u) u`` is used instead, which orthogonalises in the inner
    product the covectors represent.
    """
    if p is None:
        p = len(basis)
    for j in range(p):
        u = basis[j]
        g = u if duals is None else duals[j]
        gu = np.dot(g, u)
        if gu == 0.0:
            continue
        x -= (np.dot(g, x) / gu) * u
    return x
