"""Square-root information filter (SRIF).

Instead of the covariance the filter maintains the information array ``(R, b)``,
where ``R`` is upper triangular with ``R.T @ R = P^-1`` and ``b = R @ dx`` for the
state differential ``dx``. Both prediction and update are done by triangularizing
an augmented array with Householder reflections, see [1]_.

The filter is linearized about the current estimate, so ``b`` represents a
differential which is zeroed after each prediction and update.

Consider parameters ``y`` are handled by carrying the cross term ``Rxy`` and the
parameters' own information array ``(Ry, by)``, such that::

    [Rx Rxy] [x]   [b ]
    [0  Ry ] [y] = [by]

The state correction is computed with ``y = 0``, the uncertainty of ``y`` is
accounted in the covariance.

References
----------
.. [1] G. J. Bierman, "Factorization Methods for Discrete Sequential Estimation"
.. [2] B. D. Tapley, B. E. Schutz, G. H. Born, "Statistical Orbit Determination"
"""
import logging
import time
import numpy as np
from scipy import linalg
from .linalg import householder_triangularize, triangular_inverse
from .util import Bunch
from ._common import (SingularMatrixError, NotPositiveSemidefiniteError,
                      check_input_arrays, check_measurements, weight_matrix,
                      check_consider_covariance, epoch_measurements)


logger = logging.getLogger(__name__)

COVARIANCE_METHODS = ('bierman', 'tapley')


def _information_root(P, tol=1e-12):
    P = np.asarray(P, dtype=float)
    s, V = linalg.eigh(P)
    scale = np.max(np.abs(s), initial=0.0)
    if np.any(s < -tol * scale):
        raise NotPositiveSemidefiniteError("Covariance matrix is not positive "
                                           "semi-definite")
    if np.any(s <= tol * scale):
        raise SingularMatrixError("Covariance matrix is singular")
    return (V * s ** -0.5) @ V.T


def _noise_information_root(Q):
    if Q.size == 0 or not np.any(Q):
        return None
    return _information_root(Q)


def srif_initialize(P, dx=None):
    """Compute information array from a covariance matrix.

    Parameters
    ----------
    P : array_like, shape (n, n)
        Positive definite covariance matrix.
    dx : array_like, shape (n,) or None, optional
        State differential. None (default) corresponds to zeros.

    Returns
    -------
    R : ndarray, shape (n, n)
        Upper triangular matrix with positive diagonal such that
        ``R.T @ R = P^-1``.
    b : ndarray, shape (n,)
        Vector ``R @ dx``.

    Raises
    ------
    SingularMatrixError
        If `P` is singular.
    NotPositiveSemidefiniteError
        If `P` has a negative eigenvalue.
    """
    P = np.asarray(P, dtype=float)
    R = householder_triangularize(_information_root(P), positive_diagonal=True)
    b = np.zeros(len(P)) if dx is None else R @ dx
    return R, b


def srif_covariance(R):
    """Compute covariance ``R^-1 @ R^-T`` from the information matrix."""
    R_inv = triangular_inverse(R)
    return R_inv @ R_inv.T


def srif_predict(R, b, F_inv, Rw=None, G=None, Rxy=None):
    """Perform SRIF prediction.

    The transition is ``x_next = F @ x + G @ w`` with ``w`` being zero-mean noise
    with the information matrix ``Rw.T @ Rw``. The array::

        [ Rw            0          0    0 ]
        [ -R F^-1 G     R F^-1     Rxy  b ]

        (columns: w, x_next, y, rhs)

    is triangularized over its first ``n_noises + n_states`` columns and the
    information array of ``x_next`` is extracted from the lower right part.

    Parameters
    ----------
    R : ndarray, shape (n_states, n_states)
        Upper triangular information matrix.
    b : ndarray, shape (n_states,)
        Information vector.
    F_inv : ndarray, shape (n_states, n_states)
        Inverse of the transition matrix.
    Rw : float, ndarray with shape (n_noises, n_noises) or None, optional
        Square root of the process noise information matrix. None (default) means
        no process noise.
    G : ndarray, shape (n_states, n_noises) or (n_states,) or None, optional
        Noise input matrix. A 1-dimensional array is a single column.
    Rxy : ndarray, shape (n_states, n_consider) or None, optional
        Cross term with constant consider parameters. If None (default), the
        filter has no consider parameters.

    Returns
    -------
    R : ndarray, shape (n_states, n_states)
        Predicted information matrix.
    b : ndarray, shape (n_states,)
        Predicted information vector.
    Rxy : ndarray, shape (n_states, n_consider)
        Predicted cross term. Returned only if `Rxy` is given.
    """
    R = np.asarray(R, dtype=float)
    b = np.asarray(b, dtype=float)
    n = len(b)
    Rd = R @ F_inv

    with_consider = Rxy is not None
    if not with_consider:
        Rxy = np.empty((n, 0))
    n_consider = Rxy.shape[1]

    if Rw is None or G is None:
        A = np.hstack((Rd, Rxy, b[:, None]))
        p = 0
    else:
        Rw = np.atleast_2d(Rw)
        G = np.asarray(G, dtype=float)
        if G.ndim == 1:
            G = G[:, None]
        p = len(Rw)
        A = np.vstack((
            np.hstack((Rw, np.zeros((p, n + n_consider + 1)))),
            np.hstack((-Rd @ G, Rd, Rxy, b[:, None]))
        ))

    A = householder_triangularize(A, p + n, positive_diagonal=True)
    R = A[p:p + n, p:p + n]
    Rxy = A[p:p + n, p + n:p + n + n_consider]
    b = A[p:p + n, -1]

    if with_consider:
        return R, b, Rxy
    return R, b


def srif_update(R, b, H, r, W_sqrt):
    """Perform SRIF update with a set of observations.

    The whitened observation rows are stacked below the information array and the
    result is triangularized::

        [ R         b        ]
        [ W_sqrt H  W_sqrt r ]

    Parameters
    ----------
    R : ndarray, shape (n_states, n_states)
        Upper triangular information matrix.
    b : ndarray, shape (n_states,)
        Information vector.
    H : ndarray, shape (n_obs, n_states) or (n_states,)
        Measurement Jacobian.
    r : float or ndarray, shape (n_obs,)
        Measurement residuals computed at the linearization point.
    W_sqrt : float or ndarray, shape (n_obs,) or (n_obs, n_obs)
        Square root of the measurement weight (inverse noise covariance) matrix.
        A scalar or a vector define a diagonal matrix.

    Returns
    -------
    dx : ndarray, shape (n_states,)
        State correction ``R^-1 @ b``.
    R : ndarray, shape (n_states, n_states)
        Updated information matrix.
    b : ndarray, shape (n_states,)
        Updated information vector.
    """
    R = np.asarray(R, dtype=float)
    b = np.asarray(b, dtype=float)
    H = np.atleast_2d(H)
    r = np.atleast_1d(r)
    W = weight_matrix(W_sqrt, len(r))
    n = len(b)

    A = np.vstack((np.hstack((R, b[:, None])),
                   np.hstack((W @ H, (W @ r)[:, None]))))
    A = householder_triangularize(A, n, positive_diagonal=True)
    R = A[:n, :n]
    b = A[:n, n]
    return triangular_inverse(R) @ b, R, b


def srif_update_bias(Rx, Rxy, b, Hx, r, W_sqrt, Ry, by, Hy):
    """Perform SRIF update with a set of observations and consider parameters.

    The array::

        [ Rx        Rxy       b        ]
        [ 0         Ry        by       ]
        [ W_sqrt Hx W_sqrt Hy W_sqrt r ]

    is triangularized in a single pass.

    Parameters
    ----------
    Rx : ndarray, shape (n_states, n_states)
        State information matrix.
    Rxy : ndarray, shape (n_states, n_consider)
        Cross term.
    b : ndarray, shape (n_states,)
        State information vector.
    Hx : ndarray, shape (n_obs, n_states) or (n_states,)
        Measurement Jacobian with respect to the state.
    r : float or ndarray, shape (n_obs,)
        Measurement residuals.
    W_sqrt : float or ndarray, shape (n_obs,) or (n_obs, n_obs)
        Square root of the measurement weight matrix.
    Ry : ndarray, shape (n_consider, n_consider)
        Consider parameters information matrix.
    by : ndarray, shape (n_consider,)
        Consider parameters information vector.
    Hy : ndarray, shape (n_obs, n_consider) or (n_consider,)
        Measurement Jacobian with respect to the consider parameters.

    Returns
    -------
    dx : ndarray, shape (n_states,)
        State correction ``Rx^-1 @ b``, the consider parameters taken as zero.
    Rx, Rxy, b, Ry, by
        Updated information arrays.
    """
    Rx = np.asarray(Rx, dtype=float)
    Rxy = np.asarray(Rxy, dtype=float)
    b = np.asarray(b, dtype=float)
    Ry = np.asarray(Ry, dtype=float)
    by = np.asarray(by, dtype=float)
    Hx = np.atleast_2d(Hx)
    Hy = np.atleast_2d(Hy)
    r = np.atleast_1d(r)
    W = weight_matrix(W_sqrt, len(r))
    n = len(b)
    ny = len(by)

    A = np.vstack((
        np.hstack((Rx, Rxy, b[:, None])),
        np.hstack((np.zeros((ny, n)), Ry, by[:, None])),
        np.hstack((W @ Hx, W @ Hy, (W @ r)[:, None]))
    ))
    A = householder_triangularize(A, n + ny, positive_diagonal=True)

    Rx = A[:n, :n]
    Rxy = A[:n, n:n + ny]
    b = A[:n, -1]
    Ry = A[n:n + ny, n:n + ny]
    by = A[n:n + ny, -1]
    return triangular_inverse(Rx) @ b, Rx, Rxy, b, Ry, by


def srif_consider_covariance(Rx, Rxy, Ry, method='bierman'):
    """Recover covariances from the information arrays with consider parameters.

    Two equivalent methods are available:

        - 'bierman' : invert `Rx` and `Ry` separately and compute
          ``P = Rx^-1 Rx^-T + S Py S^T`` with ``S = -Rx^-1 Rxy`` [1]_.
        - 'tapley' : invert the full augmented triangular matrix and partition
          the resulting covariance [2]_.

    Parameters
    ----------
    Rx : ndarray, shape (n_states, n_states)
        State information matrix.
    Rxy : ndarray, shape (n_states, n_consider)
        Cross term.
    Ry : ndarray, shape (n_consider, n_consider)
        Consider parameters information matrix.
    method : {'bierman', 'tapley'}, optional
        Covariance recovery method. Default is 'bierman'.

    Returns
    -------
    P : ndarray, shape (n_states, n_states)
        State covariance including the effect of the consider parameters.
    Pxy : ndarray, shape (n_states, n_consider)
        Cross covariance.
    Py : ndarray, shape (n_consider, n_consider)
        Consider parameters covariance.
    """
    if method not in COVARIANCE_METHODS:
        raise ValueError("`method` must be one of {}".format(COVARIANCE_METHODS))

    n = len(Rx)
    if method == 'bierman':
        Rx_inv = triangular_inverse(Rx)
        S = -Rx_inv @ Rxy
        Py = srif_covariance(Ry)
        Pxy = S @ Py
        return Rx_inv @ Rx_inv.T + Pxy @ S.T, Pxy, Py

    Rn = np.block([[Rx, Rxy], [np.zeros((len(Ry), n)), Ry]])
    Pn = srif_covariance(Rn)
    return Pn[:n, :n], Pn[:n, n:], Pn[n:, n:]


def _whitened_observations(measurements, k, X, with_consider=False):
    H_all = []
    J_all = []
    r_all = []
    for Z, h, R in epoch_measurements(measurements, k):
        if with_consider:
            Z_pred, H, J = h(k, X)
        else:
            Z_pred, H, *_ = h(k, X)
        W = triangular_inverse(linalg.cholesky(R, lower=True))
        H_all.append(W @ H)
        r_all.append(W @ (Z - Z_pred))
        if with_consider:
            J_all.append(W @ J)

    if not H_all:
        return None
    if with_consider:
        return np.vstack(H_all), np.hstack(r_all), np.vstack(J_all)
    return np.vstack(H_all), np.hstack(r_all)


def run_srif(X0, P0, f, Q, n_epochs, measurements=None):
    """Run linearized square-root information filter.

    All measurements available at an epoch are processed as a single observation
    set. The process noise covariance must be either positive definite or zero.

    Parameters
    ----------
    X0 : array_like, shape (n_states,)
        Initial state estimate.
    P0 : array_like, shape (n_states, n_states)
        Initial error covariance, must be positive definite.
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
        R : ndarray, shape (n_epochs, n_states, n_states)
            Information matrices.
        elapsed : float
            Wall time of the filter loop in seconds.
    """
    X0, P0, Q, n_states, n_noises = check_input_arrays(X0, P0, Q, n_epochs)
    measurements = check_measurements(measurements)

    X = np.empty((n_epochs, n_states))
    P = np.empty((n_epochs, n_states, n_states))
    R_all = np.empty((n_epochs, n_states, n_states))
    X[0] = X0
    R, b = srif_initialize(P0)

    start = time.perf_counter()
    for k in range(n_epochs):
        observations = _whitened_observations(measurements, k, X[k])
        if observations is not None:
            H, r = observations
            dx, R, b = srif_update(R, b, H, r, 1.0)
            X[k] += dx
            b = np.zeros(n_states)

        R_all[k] = R
        P[k] = srif_covariance(R)

        if k + 1 < n_epochs:
            X[k + 1], F, G = f(k, X[k])
            R, _ = srif_predict(R, b, linalg.inv(F),
                                _noise_information_root(Q[k]), G)
            b = np.zeros(n_states)
    elapsed = time.perf_counter() - start
    logger.debug("SRIF processed %d epochs in %.4f s", n_epochs, elapsed)

    return Bunch(X=X, P=P, R=R_all, elapsed=elapsed)


def run_srif_consider(X0, P0, f, Q, n_epochs, measurements, Py, method='bierman'):
    """Run linearized square-root information filter with consider parameters.

    The consider parameters are assumed to be constant.

    Parameters
    ----------
    X0 : array_like, shape (n_states,)
        Initial state estimate.
    P0 : array_like, shape (n_states, n_states)
        Initial error covariance, must be positive definite.
    f : callable
        Process function, must follow `trackest.util.process_callable` interface.
    Q : array_like, shape (n_epochs - 1, n_noises, n_noises) or (n_noises, n_noises)
        Process noise covariance matrix.
    n_epochs : int
        Number of epochs for estimation.
    measurements : list or None
        Measurements in the same format as for `trackest.run_kalman`, but the
        measurement functions must follow
        `trackest.util.consider_measurement_callable`.
    Py : array_like, shape (n_consider, n_consider)
        Covariance of the consider parameters, must be positive definite.
    method : {'bierman', 'tapley'}, optional
        Covariance recovery method, see `srif_consider_covariance`.
        Default is 'bierman'.

    Returns
    -------
    Bunch with the following fields:

        X : ndarray, shape (n_epochs, n_states)
            State estimates.
        P : ndarray, shape (n_epochs, n_states, n_states)
            Error covariance estimates including the effect of the consider
            parameters.
        Pxy : ndarray, shape (n_epochs, n_states, n_consider)
            Cross covariance between the state and the consider parameters.
        Py : ndarray, shape (n_epochs, n_consider, n_consider)
            Covariance of the consider parameters.
        R : ndarray, shape (n_epochs, n_states, n_states)
            State information matrices.
        elapsed : float
            Wall time of the filter loop in seconds.
    """
    if method not in COVARIANCE_METHODS:
        raise ValueError("`method` must be one of {}".format(COVARIANCE_METHODS))
    X0, P0, Q, n_states, n_noises = check_input_arrays(X0, P0, Q, n_epochs)
    measurements = check_measurements(measurements)
    Py0, n_consider = check_consider_covariance(Py)

    X = np.empty((n_epochs, n_states))
    P = np.empty((n_epochs, n_states, n_states))
    Pxy = np.empty((n_epochs, n_states, n_consider))
    Py = np.empty((n_epochs, n_consider, n_consider))
    R_all = np.empty((n_epochs, n_states, n_states))
    X[0] = X0
    Rx, b = srif_initialize(P0)
    Ry, by = srif_initialize(Py0)
    Rxy = np.zeros((n_states, n_consider))

    start = time.perf_counter()
    for k in range(n_epochs):
        observations = _whitened_observations(measurements, k, X[k],
                                              with_consider=True)
        if observations is not None:
            H, r, J = observations
            dx, Rx, Rxy, b, Ry, by = srif_update_bias(Rx, Rxy, b, H, r, 1.0,
                                                      Ry, by, J)
            X[k] += dx
            b = np.zeros(n_states)
            by = np.zeros(n_consider)

        R_all[k] = Rx
        P[k], Pxy[k], Py[k] = srif_consider_covariance(Rx, Rxy, Ry, method)

        if k + 1 < n_epochs:
            X[k + 1], F, G = f(k, X[k])
            Rx, _, Rxy = srif_predict(Rx, b, linalg.inv(F),
                                      _noise_information_root(Q[k]), G, Rxy)
            b = np.zeros(n_states)
    elapsed = time.perf_counter() - start
    logger.debug("SRIF with consider parameters processed %d epochs in %.4f s",
                 n_epochs, elapsed)

    return Bunch(X=X, P=P, Pxy=Pxy, Py=Py, R=R_all, elapsed=elapsed)
