"""Matrix primitives used by the factorized filters.

All functions return new arrays and never modify their input.
"""
import numpy as np
from scipy import linalg
from ._common import SingularMatrixError, NotPositiveSemidefiniteError


def _check_square(A):
    A = np.asarray(A, dtype=float)
    if A.ndim != 2 or A.shape[0] != A.shape[1]:
        raise ValueError("Matrix must be square")
    return A


def triangular_inverse(T):
    """Invert a triangular matrix by substitution.

    Parameters
    ----------
    T : array_like, shape (n, n)
        Lower or upper triangular matrix with nonzero diagonal.

    Returns
    -------
    ndarray, shape (n, n)
        Inverse of `T`, triangular of the same kind.

    Raises
    ------
    SingularMatrixError
        If a diagonal element of `T` is zero.
    """
    T = _check_square(T)
    if not np.any(np.tril(T, -1)):
        lower = False
    elif not np.any(np.triu(T, 1)):
        lower = True
    else:
        raise ValueError("Matrix is not triangular")

    if np.any(np.diag(T) == 0):
        raise SingularMatrixError("Triangular matrix is singular")

    return linalg.solve_triangular(T, np.identity(len(T)), lower=lower)


def symmetric_sqrt(M, tol=1e-12):
    """Compute the symmetric square root of a positive semi-definite matrix.

    The root is computed from the eigen decomposition. Negative eigenvalues which
    are small relative to the largest eigenvalue magnitude (controlled by `tol`)
    are attributed to rounding errors and replaced by zeros.

    Parameters
    ----------
    M : array_like, shape (n, n)
        Symmetric positive semi-definite matrix.
    tol : float, optional
        Relative tolerance for negative eigenvalues. Default is 1e-12.

    Returns
    -------
    S : ndarray, shape (n, n)
        Symmetric matrix such that ``S @ S.T == M``.

    Raises
    ------
    NotPositiveSemidefiniteError
        If `M` has an eigenvalue below the tolerance.
    """
    M = _check_square(M)
    if len(M) == 0:
        return M.copy()
    if not np.allclose(M, M.T, rtol=1e-10, atol=1e-12 * np.max(np.abs(M))):
        raise ValueError("Matrix is not symmetric")

    s, V = linalg.eigh(M)
    if np.any(s < -tol * np.max(np.abs(s))):
        raise NotPositiveSemidefiniteError("Matrix is not positive semi-definite")
    s[s < 0] = 0
    return (V * s ** 0.5) @ V.T


def ud_factorize(P, tol=1e-12):
    """Compute U-D factorization of a covariance matrix.

    The factorization has the form ``P = U @ diag(d) @ U.T`` with ``U`` being unit
    upper triangular. The columns are processed from the last to the first as
    described in [1]_.

    Parameters
    ----------
    P : array_like, shape (n, n)
        Symmetric positive semi-definite matrix.
    tol : float, optional
        Relative tolerance for pivots. Pivots with absolute value within the
        tolerance are set to zero. Default is 1e-12.

    Returns
    -------
    U : ndarray, shape (n, n)
        Unit upper triangular matrix.
    d : ndarray, shape (n,)
        Diagonal elements of ``D``.

    Raises
    ------
    NotPositiveSemidefiniteError
        If a pivot is negative beyond the tolerance.

    References
    ----------
    .. [1] G. J. Bierman, "Factorization Methods for Discrete Sequential Estimation"
    """
    P = _check_square(P).copy()
    n = len(P)
    U = np.identity(n)
    d = np.zeros(n)
    scale = np.max(np.abs(np.diag(P)), initial=0.0)

    for j in reversed(range(n)):
        pivot = P[j, j]
        if pivot < -tol * scale:
            raise NotPositiveSemidefiniteError("Matrix is not positive semi-definite")
        if pivot <= tol * scale:
            continue
        d[j] = pivot
        U[:j, j] = P[:j, j] / pivot
        P[:j, :j] -= pivot * np.outer(U[:j, j], U[:j, j])

    return U, d


def ud_reconstruct(U, d):
    """Compute ``U @ diag(d) @ U.T``."""
    U = np.asarray(U)
    return (U * d) @ U.T


def mahalanobis_distance(x, mean, P):
    """Compute Mahalanobis distance of `x` from a distribution.

    Parameters
    ----------
    x : array_like, shape (n,)
        Point.
    mean : array_like, shape (n,)
        Distribution mean.
    P : array_like, shape (n, n)
        Positive definite distribution covariance.

    Returns
    -------
    float
    """
    e = np.asarray(x, dtype=float) - mean
    return np.dot(e, linalg.cho_solve(linalg.cho_factor(P), e)) ** 0.5


def householder_column(A):
    """Apply a Householder reflection which zeros the first column below the pivot.

    The reflection is ``I + beta * u @ u.T`` with ``u = a - s * e1`` and
    ``beta = 1 / (s * u[0])``, where ``a`` is the first column and ``s`` is its norm
    taken with the sign opposite to ``a[0]``. The remaining columns are multiplied by
    the same reflection.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Matrix to transform.

    Returns
    -------
    ndarray, shape (m, n)
        Transformed matrix with ``[s, 0, ..., 0]`` as the first column. A zero
        first column is returned unchanged.
    """
    A = np.array(A, dtype=float)
    if A.ndim != 2 or A.shape[0] == 0:
        raise ValueError("Matrix must be 2-dimensional and nonempty")

    sigma = np.linalg.norm(A[:, 0])
    if sigma == 0:
        return A
    s = -np.copysign(sigma, A[0, 0])

    if A.shape[1] > 1:
        u = A[:, 0].copy()
        u[0] -= s
        beta = 1 / (s * u[0])
        A[:, 1:] += beta * np.outer(u, u @ A[:, 1:])

    A[0, 0] = s
    A[1:, 0] = 0
    return A


def householder_triangularize(A, n_columns=None, positive_diagonal=False):
    """Reduce a matrix to upper trapezoidal form by Householder reflections.

    `householder_column` is applied to the trailing sub-blocks from left to right.

    Parameters
    ----------
    A : array_like, shape (m, n)
        Matrix to transform.
    n_columns : int or None, optional
        Number of leading columns to reduce. None (default) reduces all columns.
    positive_diagonal : bool, optional
        Whether to negate the rows with negative diagonal elements in the reduced
        part. The result stays an orthogonal transformation of `A`.
        Default is False.

    Returns
    -------
    ndarray, shape (m, n)
        Transformed matrix with zeros below the diagonal in the first
        `n_columns` columns.
    """
    A = np.array(A, dtype=float)
    m, n = A.shape
    if n_columns is None:
        n_columns = n
    n_columns = min(n_columns, n)

    for j in range(n_columns):
        if m - j < 2:
            break
        A[j:, j:] = householder_column(A[j:, j:])

    if positive_diagonal:
        k = min(n_columns, m)
        negative = np.diag(A[:k, :k]) < 0
        A[:k][negative] *= -1
    return A
