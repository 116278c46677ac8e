import numpy as np


class QuadraticCoefficients:
    """Constant coefficients of a quadratic vector field.

    Describes::

        dx_i/dt = A_i + sum_j B_ij x_j + sum_jk C_ijk x_j x_k

    Parameters
    ----------
    n : int, optional
        Dimension; creates zero-filled ``A``, ``B`` and ``C``. Ignored when
        arrays are passed.
    A, B, C : array_like, optional
        Constant vector (n,), linear matrix (n, n) and quadratic tensor
        (n, n, n). Missing parts are zero.

    Notes
    -----
    An instance is a valid vector field for :class:`qode.QuadraticIntegrator`
    (see :meth:`__call__`). The integrator only borrows it, so changing the
    arrays between steps changes the field.
    """

    def __init__(self, n=None, A=None, B=None, C=None):
        if n is None:
            for arr in (A, B, C):
                if arr is not None:
                    n = np.shape(arr)[0]
                    break
        if n is None:
            raise ValueError("QuadraticCoefficients needs a dimension or at least one coefficient array")
        n = int(n)
        self.A = np.zeros(n) if A is None else np.array(A, dtype=float)
        self.B = np.zeros((n, n)) if B is None else np.array(B, dtype=float)
        self.C = np.zeros((n, n, n)) if C is None else np.array(C, dtype=float)
        if self.A.shape != (n,) or self.B.shape != (n, n) or self.C.shape != (n, n, n):
            raise ValueError(
                f"Coefficient shapes {self.A.shape}, {self.B.shape}, {self.C.shape} "
                f"do not match dimension {n}"
            )

    @property
    def dim(self) -> int:
        return self.A.shape[0]

    def symmetrize_C(self):
        """Replace ``C_ijk`` by ``(C_ijk + C_ikj)/2``."""
        self.C = 0.5 * (self.C + self.C.transpose(0, 2, 1))
        return self

    def is_symmetric(self, atol: float = 0.0) -> bool:
        return bool(np.allclose(self.C, self.C.transpose(0, 2, 1), rtol=0.0, atol=atol))

    def rhs(self, x):
        """Evaluate the vector field at ``x``."""
        x = np.asarray(x, dtype=float)
        return self.A + self.B @ x + np.einsum('ijk,j,k->i', self.C, x, x)

    def jacobian(self, x):
        """Dense Jacobian ``B + sum_k (C_ijk + C_ikj) x_k``; valid for unsymmetrized C too."""
        x = np.asarray(x, dtype=float)
        return self.B + np.einsum('ijk,k->ij', self.C, x) + np.einsum('ikj,k->ij', self.C, x)

    def __call__(self, x, builder):
        """Accumulate all coefficients into ``builder`` at state ``x``."""
        builder.add_constant_vector(self.A)
        builder.add_linear_matrix(self.B)
        builder.add_quadratic_tensor(self.C)
