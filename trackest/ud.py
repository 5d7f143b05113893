"""U-D factorized Kalman filter.

The covariance is kept in the form ``P = U @ diag(d) @ U.T`` with ``U`` being unit
upper triangular. The time update is done by Thornton's modified weighted
Gram-Schmidt algorithm and the measurement update by Bierman's algorithm for
scalar observations, see [1]_.

References
----------
.. [1] G. J. Bierman, "Factorization Methods for Discrete Sequential Estimation"
"""
import logging
import time
import numpy as np
from scipy import linalg
from .linalg import triangular_inverse, ud_factorize, ud_reconstruct
from .util import Bunch
from ._common import check_input_arrays, check_measurements, epoch_measurements


logger = logging.getLogger(__name__)


def ud_predict(x, U, d, F, Q=None, G=None):
    """Perform U-D prediction.

    The factors of ``F @ P @ F.T + G @ Q @ G.T`` are computed directly from the
    factors of ``P`` without forming covariance matrices. The weighted
    Gram-Schmidt orthogonalization is applied to the rows of ``[F @ U, G]`` with
    weights ``[d, diag(Q)]``. A non-diagonal `Q` is factorized first.

    Parameters
    ----------
    x : ndarray, shape (n_states,)
        State vector.
    U : ndarray, shape (n_states, n_states)
        Unit upper triangular factor.
    d : ndarray, shape (n_states,)
        Diagonal factor.
    F : ndarray, shape (n_states, n_states)
        Transition matrix.
    Q : float, ndarray with shape (n_noises, n_noises) or None, optional
        Process noise covariance. Must be given together with `G`.
    G : ndarray, shape (n_states, n_noises) or (n_states,) or None, optional
        Noise input matrix. A 1-dimensional array is a single column.
        None (default) means no process noise.

    Returns
    -------
    x : ndarray, shape (n_states,)
        Predicted state ``F @ x``.
    U : ndarray, shape (n_states, n_states)
        Predicted unit upper triangular factor.
    d : ndarray, shape (n_states,)
        Predicted diagonal factor.
    """
    F = np.asarray(F, dtype=float)
    d = np.asarray(d, dtype=float)
    n = len(d)

    if G is None:
        G = np.empty((n, 0))
        q = np.empty(0)
    else:
        if Q is None:
            raise ValueError("`Q` must be provided along with `G`")
        G = np.asarray(G, dtype=float)
        if G.ndim == 1:
            G = G[:, None]
        Uq, q = ud_factorize(np.atleast_2d(Q))
        G = G @ Uq

    W = np.hstack((F @ U, G))
    w = np.hstack((d, q))

    U = np.identity(n)
    d = np.zeros(n)
    for j in reversed(range(n)):
        c = w * W[j]
        d[j] = W[j] @ c
        if d[j] > 0:
            U[:j, j] = W[:j] @ c / d[j]
            W[:j] -= np.outer(U[:j, j], W[j])

    return F @ x, U, d


def ud_update(x, U, d, h, r, variance):
    """Perform Bierman update with a scalar observation.

    Parameters
    ----------
    x : ndarray, shape (n_states,)
        State vector.
    U : ndarray, shape (n_states, n_states)
        Unit upper triangular factor.
    d : ndarray, shape (n_states,)
        Diagonal factor.
    h : ndarray, shape (n_states,)
        Measurement Jacobian row.
    r : float
        Measurement residual computed at `x`.
    variance : float
        Measurement noise variance, must be positive.

    Returns
    -------
    x : ndarray, shape (n_states,)
        Updated state.
    U : ndarray, shape (n_states, n_states)
        Updated unit upper triangular factor.
    d : ndarray, shape (n_states,)
        Updated diagonal factor.
    """
    if variance <= 0:
        raise ValueError("`variance` must be positive")

    U = np.array(U, dtype=float)
    d = np.array(d, dtype=float)
    a = U.T @ np.ravel(h)
    b = d * a

    alpha = variance
    for j in range(len(d)):
        beta = alpha
        alpha += a[j] * b[j]
        lamb = -a[j] / beta
        d[j] *= beta / alpha
        column = U[:j, j].copy()
        U[:j, j] += lamb * b[:j]
        b[:j] += b[j] * column

    return x + b * (r / alpha), U, d


def run_ud(X0, P0, f, Q, n_epochs, measurements=None):
    """Run linearized U-D factorized Kalman filter.

    Each measurement vector is linearized once about the current estimate and
    decorrelated by the inverse Cholesky factor of its noise covariance. Then its
    components are processed strictly one by one, the residual of each component
    is corrected for the state change made by the previous components.

    Parameters
    ----------
    X0 : array_like, shape (n_states,)
        Initial state estimate.
    P0 : array_like, shape (n_states, n_states)
        Initial error covariance.
    f : callable
        Process function, must follow `trackest.util.process_callable` interface.
    Q : array_like, shape (n_epochs - 1, n_noises, n_noises) or (n_noises, n_noises)
        Process noise covariance matrix.
    n_epochs : int
        Number of epochs for estimation.
    measurements : list or None, optional
        Measurements in the same format as for `trackest.run_kalman`.

    Returns
    -------
    Bunch with the following fields:

        X : ndarray, shape (n_epochs, n_states)
            State estimates.
        P : ndarray, shape (n_epochs, n_states, n_states)
            Error covariance estimates.
        U : ndarray, shape (n_epochs, n_states, n_states)
            Unit upper triangular factors.
        d : ndarray, shape (n_epochs, n_states)
            Diagonal factors.
        elapsed : float
            Wall time of the filter loop in seconds.
    """
    X0, P0, Q, n_states, n_noises = check_input_arrays(X0, P0, Q, n_epochs)
    measurements = check_measurements(measurements)

    X = np.empty((n_epochs, n_states))
    P = np.empty((n_epochs, n_states, n_states))
    U_all = np.empty((n_epochs, n_states, n_states))
    d_all = np.empty((n_epochs, n_states))
    X[0] = X0
    U, d = ud_factorize(P0)

    start = time.perf_counter()
    for k in range(n_epochs):
        for Z, h, R in epoch_measurements(measurements, k):
            Z_pred, H, *_ = h(k, X[k])
            L_inv = triangular_inverse(linalg.cholesky(R, lower=True))
            H = L_inv @ H
            r = L_inv @ (Z - Z_pred)
            x_lin = X[k].copy()
            x = x_lin
            for h_row, r_component in zip(H, r):
                x, U, d = ud_update(x, U, d, h_row,
                                    r_component - h_row @ (x - x_lin), 1.0)
            X[k] = x

        U_all[k] = U
        d_all[k] = d
        P[k] = ud_reconstruct(U, d)

        if k + 1 < n_epochs:
            X[k + 1], F, G = f(k, X[k])
            _, U, d = ud_predict(X[k], U, d, F, Q[k], G)
    elapsed = time.perf_counter() - start
    logger.debug("U-D filter processed %d epochs in %.4f s", n_epochs, elapsed)

    return Bunch(X=X, P=P, U=U_all, d=d_all, elapsed=elapsed)
