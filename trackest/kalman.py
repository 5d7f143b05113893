"""Linearized Kalman filter and Schmidt-Kalman consider filter."""
import logging
import time
import numpy as np
from scipy import linalg
from .util import Bunch
from ._common import (check_input_arrays, check_measurements,
                      check_consider_covariance, epoch_measurements)


logger = logging.getLogger(__name__)


def _noise_matrix(sigma, n):
    return np.diag(np.broadcast_to(np.asarray(sigma, dtype=float) ** 2, (n,)))


def _kalman_update(x, P, H, r, R):
    S = H @ P @ H.T + R
    J = linalg.cho_solve(linalg.cho_factor(S), H).T
    K = P @ J
    U = np.eye(len(x)) - K @ H
    return x + K @ r, U @ P @ U.T + K @ R @ K.T


def kalman_predict(x, P, F, Q, G):
    """Perform Kalman prediction.

    Parameters
    ----------
    x : ndarray, shape (n_states,)
        State vector.
    P : ndarray, shape (n_states, n_states)
        Covariance matrix.
    F : ndarray, shape (n_states, n_states)
        Transition matrix.
    Q : float or ndarray, shape (n_noises, n_noises)
        Process noise covariance.
    G : ndarray, shape (n_states, n_noises) or (n_states,)
        Noise input matrix. A 1-dimensional array is interpreted as a single
        column.

    Returns
    -------
    x : ndarray, shape (n_states,)
        Predicted state ``F @ x``.
    P : ndarray, shape (n_states, n_states)
        Predicted covariance ``F @ P @ F.T + G @ Q @ G.T``.
    """
    G = np.asarray(G, dtype=float)
    if G.ndim == 1:
        G = G[:, None]
    Q = np.atleast_2d(Q)
    return F @ x, F @ P @ F.T + G @ Q @ G.T


def kalman_update(x, P, H, r, sigma):
    """Perform Kalman update.

    The measurement is linearized about `x`, i.e. the residual `r` is the
    difference between the observed and the predicted measurement. The covariance
    is updated in the Joseph form.

    Parameters
    ----------
    x : ndarray, shape (n_states,)
        State vector.
    P : ndarray, shape (n_states, n_states)
        Covariance matrix.
    H : ndarray, shape (n_obs, n_states) or (n_states,)
        Measurement Jacobian. A 1-dimensional array is a single observation.
    r : float or ndarray, shape (n_obs,)
        Measurement residual.
    sigma : float or ndarray, shape (n_obs,)
        Standard deviations of uncorrelated measurement errors.

    Returns
    -------
    x : ndarray, shape (n_states,)
        Updated state.
    P : ndarray, shape (n_states, n_states)
        Updated covariance.
    """
    H = np.atleast_2d(H)
    r = np.atleast_1d(r)
    return _kalman_update(np.asarray(x, dtype=float), np.asarray(P, dtype=float),
                          H, r, _noise_matrix(sigma, len(r)))


def schmidt_update(x, Px, Hx, Py, Hy, Pxy, r, R):
    """Perform Schmidt-Kalman update with consider parameters.

    The measurement depends on the state ``x`` and on the consider parameters
    ``y``. The parameters are not estimated, their covariance `Py` is left intact,
    but their uncertainty and correlation with the state are accounted in the
    innovation covariance::

        S = Hx Px Hx^T + Hx Pxy Hy^T + Hy Pxy^T Hx^T + Hy Py Hy^T + R

    Parameters
    ----------
    x : ndarray, shape (n_states,)
        State vector.
    Px : ndarray, shape (n_states, n_states)
        State covariance.
    Hx : ndarray, shape (n_obs, n_states) or (n_states,)
        Measurement Jacobian with respect to the state.
    Py : ndarray, shape (n_consider, n_consider)
        Consider parameters covariance.
    Hy : ndarray, shape (n_obs, n_consider) or (n_consider,)
        Measurement Jacobian with respect to the consider parameters.
    Pxy : ndarray, shape (n_states, n_consider)
        Cross covariance between the state and the consider parameters.
    r : float or ndarray, shape (n_obs,)
        Measurement residual.
    R : float or ndarray, shape (n_obs,) or (n_obs, n_obs)
        Measurement noise variance or covariance matrix.

    Returns
    -------
    x : ndarray, shape (n_states,)
        Updated state.
    Px : ndarray, shape (n_states, n_states)
        Updated state covariance.
    Pxy : ndarray, shape (n_states, n_consider)
        Updated cross covariance.
    """
    Hx = np.atleast_2d(Hx)
    Hy = np.atleast_2d(Hy)
    r = np.atleast_1d(r)
    R = np.asarray(R, dtype=float)
    if R.ndim < 2:
        R = np.diag(np.broadcast_to(R, r.shape))

    C = Px @ Hx.T + Pxy @ Hy.T
    S = Hx @ C + Hy @ (Pxy.T @ Hx.T + Py @ Hy.T) + R
    K = linalg.cho_solve(linalg.cho_factor(S), C.T).T

    Px = Px - K @ C.T
    Pxy = Pxy - K @ (Hx @ Pxy + Hy @ Py)
    return x + K @ r, 0.5 * (Px + Px.T), Pxy


def run_kalman(X0, P0, f, Q, n_epochs, measurements=None):
    """Run linearized Kalman filter.

    At each epoch the available measurements are processed one after another,
    each is linearized about the current estimate. Then the state is propagated
    by the process function and the covariance by its Jacobians.

    Parameters
    ----------
    X0 : array_like, shape (n_states,)
        Initial state estimate.
    P0 : array_like, shape (n_states, n_states)
        Initial error covariance.
    f : callable
        Process function, must follow `trackest.util.process_callable` interface.
    Q : array_like, shape (n_epochs - 1, n_noises, n_noises) or (n_noises, n_noises)
        Process noise covariance matrix. Either constant or specified for each
        transition.
    n_epochs : int
        Number of epochs for estimation.
    measurements : list or None, optional
        Each element defines a single independent type of measurement as a tuple
        ``(epochs, Z, h, R)``, where

            - epochs : array_like, shape (n,)
                Epoch indices at which the measurement is available.
            - Z : array_like, shape (n, m)
                Measurement vectors.
            - h : callable
                The measurement function which must follow
                `trackest.util.measurement_callable` interface.
            - R : array_like, shape (n, m, m) or (m, m)
                Measurement noise covariance matrix specified for each epoch or a
                single matrix, constant for each epoch.

        None (default) corresponds to an empty list.

    Returns
    -------
    Bunch with the following fields:

        X : ndarray, shape (n_epochs, n_states)
            State estimates.
        P : ndarray, shape (n_epochs, n_states, n_states)
            Error covariance estimates.
        elapsed : float
            Wall time of the filter loop in seconds.
    """
    X0, P0, Q, n_states, n_noises = check_input_arrays(X0, P0, Q, n_epochs)
    measurements = check_measurements(measurements)

    X = np.empty((n_epochs, n_states))
    P = np.empty((n_epochs, n_states, n_states))
    X[0] = X0
    P[0] = P0

    start = time.perf_counter()
    for k in range(n_epochs):
        for Z, h, R in epoch_measurements(measurements, k):
            Z_pred, H, *_ = h(k, X[k])
            X[k], P[k] = _kalman_update(X[k], P[k], H, Z - Z_pred, R)

        if k + 1 < n_epochs:
            X[k + 1], F, G = f(k, X[k])
            _, P[k + 1] = kalman_predict(X[k], P[k], F, Q[k], G)
    elapsed = time.perf_counter() - start
    logger.debug("Kalman filter processed %d epochs in %.4f s", n_epochs, elapsed)

    return Bunch(X=X, P=P, elapsed=elapsed)


def run_schmidt(X0, P0, f, Q, n_epochs, measurements, Py, decay=0.7,
                propagate_cross=False):
    """Run linearized Schmidt-Kalman consider filter.

    The consider parameters are assumed to be constant. Between epochs their cross
    covariance with the state is multiplied by `decay`. The decay is a heuristic
    which limits the growth of the correlation, it doesn't follow from the
    covariance propagation law. Optionally the cross covariance is propagated by
    the transition matrix before the decay.

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
    measurements : list or None
        Measurements in the same format as for `run_kalman`, but the measurement
        functions must follow `trackest.util.consider_measurement_callable`.
    Py : array_like, shape (n_consider, n_consider)
        Covariance of the consider parameters.
    decay : float, optional
        Cross covariance multiplier applied at each epoch. Default is 0.7.
    propagate_cross : bool, optional
        Whether to multiply the cross covariance by the transition matrix before
        the decay. Default is False, the cross covariance is only deflated.

    Returns
    -------
    Bunch with the following fields:

        X : ndarray, shape (n_epochs, n_states)
            State estimates.
        P : ndarray, shape (n_epochs, n_states, n_states)
            Error covariance estimates.
        Pxy : ndarray, shape (n_epochs, n_states, n_consider)
            Cross covariance between the state and the consider parameters.
        elapsed : float
            Wall time of the filter loop in seconds.
    """
    X0, P0, Q, n_states, n_noises = check_input_arrays(X0, P0, Q, n_epochs)
    measurements = check_measurements(measurements)
    Py, n_consider = check_consider_covariance(Py)

    X = np.empty((n_epochs, n_states))
    P = np.empty((n_epochs, n_states, n_states))
    Pxy = np.empty((n_epochs, n_states, n_consider))
    X[0] = X0
    P[0] = P0
    Pxy[0] = 0

    start = time.perf_counter()
    for k in range(n_epochs):
        for Z, h, R in epoch_measurements(measurements, k):
            Z_pred, H, J = h(k, X[k])
            X[k], P[k], Pxy[k] = schmidt_update(X[k], P[k], H, Py, J, Pxy[k],
                                                Z - Z_pred, R)

        if k + 1 < n_epochs:
            X[k + 1], F, G = f(k, X[k])
            _, P[k + 1] = kalman_predict(X[k], P[k], F, Q[k], G)
            Pxy[k + 1] = decay * (F @ Pxy[k] if propagate_cross else Pxy[k])
    elapsed = time.perf_counter() - start
    logger.debug("Schmidt-Kalman filter processed %d epochs in %.4f s",
                 n_epochs, elapsed)

    return Bunch(X=X, P=P, Pxy=Pxy, elapsed=elapsed)
