"""Batch position fixes used to initialize the filters."""
import numpy as np
from scipy import linalg
from .linalg import householder_triangularize, triangular_inverse
from .observation import predict_range, range_jacobian
from .srif import srif_covariance
from .util import Bunch
from ._common import weight_matrix


def _default_guess(trackers, ranges):
    guess = np.mean(trackers, axis=0)
    guess[2] -= np.mean(ranges)
    return guess


def _linearize(trackers, ranges, x):
    Z_pred = np.array([predict_range(tracker, x) for tracker in trackers])
    H = np.array([range_jacobian(tracker, x) for tracker in trackers])
    return H, ranges - Z_pred


def _check_fix_inputs(trackers, ranges, X0):
    trackers = np.asarray(trackers, dtype=float)
    ranges = np.asarray(ranges, dtype=float)
    if trackers.ndim != 2 or trackers.shape[1] != 3 or ranges.shape != (len(trackers),):
        raise ValueError("Inconsistent input shapes")
    if len(trackers) < 3:
        raise ValueError("At least 3 trackers are required")
    X0 = _default_guess(trackers, ranges) if X0 is None else np.array(X0, dtype=float)
    return trackers, ranges, X0


def locate(trackers, ranges, W, X0=None, max_iter=20, tol=1e-10):
    """Estimate position from ranges by weighted least squares.

    Gauss-Newton iterations are done on the normal equations.

    Parameters
    ----------
    trackers : array_like, shape (n_trackers, 3)
        Tracker positions.
    ranges : array_like, shape (n_trackers,)
        Measured ranges.
    W : float or array_like, shape (n_trackers,) or (n_trackers, n_trackers)
        Measurement weight matrix (inverse noise covariance). A scalar or a vector
        define a diagonal matrix.
    X0 : array_like, shape (3,) or None, optional
        Initial guess. If None (default), the centroid of the trackers shifted
        along -z by the mean range is used, which places the guess below the
        trackers.
    max_iter : int, optional
        Maximum number of iterations. Default is 20.
    tol : float, optional
        Tolerance for the step norm relative to the position norm.
        Default is 1e-10.

    Returns
    -------
    Bunch with the following fields:

        x : ndarray, shape (3,)
            Position estimate.
        P : ndarray, shape (3, 3)
            Error covariance.
        rms : float
            Root-mean-square of weighted residuals.
        n_iter : int
            Number of iterations done.
        converged : bool
            Whether the tolerance was reached within `max_iter` iterations.
    """
    trackers, ranges, x = _check_fix_inputs(trackers, ranges, X0)
    W = weight_matrix(W, len(ranges))

    converged = False
    n_iter = 0
    for n_iter in range(1, max_iter + 1):
        H, r = _linearize(trackers, ranges, x)
        dx = linalg.solve(H.T @ W @ H, H.T @ W @ r, assume_a='pos')
        x = x + dx
        if np.linalg.norm(dx) < tol * max(1.0, np.linalg.norm(x)):
            converged = True
            break

    H, r = _linearize(trackers, ranges, x)
    P = linalg.inv(H.T @ W @ H)
    return Bunch(x=x, P=0.5 * (P + P.T), rms=(r @ W @ r / len(r)) ** 0.5,
                 n_iter=n_iter, converged=converged)


def locate_householder(trackers, ranges, W_sqrt, X0=None, max_iter=20, tol=1e-10):
    """Estimate position from ranges using Householder triangularization.

    The same problem as in `locate` is solved without forming the normal equations.
    The information array of the estimate is returned as well and can be used
    to initialize a square-root information filter.

    Parameters
    ----------
    trackers : array_like, shape (n_trackers, 3)
        Tracker positions.
    ranges : array_like, shape (n_trackers,)
        Measured ranges.
    W_sqrt : float or array_like, shape (n_trackers,) or (n_trackers, n_trackers)
        Square root of the measurement weight matrix.
    X0 : array_like, shape (3,) or None, optional
        Initial guess, see `locate`.
    max_iter : int, optional
        Maximum number of iterations. Default is 20.
    tol : float, optional
        Tolerance for the step norm relative to the position norm.
        Default is 1e-10.

    Returns
    -------
    Bunch with the following fields:

        x : ndarray, shape (3,)
            Position estimate.
        P : ndarray, shape (3, 3)
            Error covariance.
        R : ndarray, shape (3, 3)
            Upper triangular information matrix.
        b : ndarray, shape (3,)
            Information vector at the last linearization point.
        rms : float
            Root-mean-square of weighted residuals.
        n_iter : int
            Number of iterations done.
        converged : bool
            Whether the tolerance was reached within `max_iter` iterations.
    """
    trackers, ranges, x = _check_fix_inputs(trackers, ranges, X0)
    W = weight_matrix(W_sqrt, len(ranges))

    def triangularize(x):
        H, r = _linearize(trackers, ranges, x)
        A = householder_triangularize(np.hstack((W @ H, (W @ r)[:, None])), 3,
                                      positive_diagonal=True)
        return A[:3, :3], A[:3, 3], A[3:, 3]

    converged = False
    n_iter = 0
    for n_iter in range(1, max_iter + 1):
        R, b, _ = triangularize(x)
        dx = triangular_inverse(R) @ b
        x = x + dx
        if np.linalg.norm(dx) < tol * max(1.0, np.linalg.norm(x)):
            converged = True
            break

    R, b, e = triangularize(x)
    rms = (np.sum(e ** 2) + np.sum(b ** 2)) / len(ranges)
    return Bunch(x=x, P=srif_covariance(R), R=R, b=b, rms=rms ** 0.5,
                 n_iter=n_iter, converged=converged)


def positions_to_velocity(dt, x1, P1, x2, P2, x3, P3):
    """Estimate velocity from three consecutive position fixes.

    The second order backward difference ``(x1 - 4 x2 + 3 x3) / (2 dt)`` is used,
    the fixes are assumed to be independent.

    Parameters
    ----------
    dt : float
        Time step between the fixes.
    x1, x2, x3 : array_like, shape (3,)
        Positions from the oldest to the latest.
    P1, P2, P3 : array_like, shape (3, 3)
        Position error covariances.

    Returns
    -------
    v : ndarray, shape (3,)
        Velocity at the time of `x3`.
    Pv : ndarray, shape (3, 3)
        Velocity error covariance.
    """
    v = (np.asarray(x1) - 4 * np.asarray(x2) + 3 * np.asarray(x3)) / (2 * dt)
    Pv = (np.asarray(P1) + 16 * np.asarray(P2) + 9 * np.asarray(P3)) / (4 * dt ** 2)
    return v, Pv


def initialize_state(trackers, Z, sigma, dt, n_init=3):
    """Compute a priori position-velocity state from the first range sets.

    A position fix is computed for each of the first `n_init` range sets, the
    velocity is computed from the last three of them by `positions_to_velocity`.
    The covariance includes the correlation between the latest position and the
    velocity.

    Parameters
    ----------
    trackers : array_like, shape (n_trackers, 3)
        Tracker positions.
    Z : array_like, shape (n_sets, n_trackers)
        Range sets, ``Z[k, j]`` is the range from tracker j at epoch k.
    sigma : float
        Standard deviation of range errors.
    dt : float
        Time step between the range sets.
    n_init : int, optional
        Number of range sets to use, at least 3. Default is 3.

    Returns
    -------
    Bunch with the following fields:

        X0 : ndarray, shape (6,)
            State at epoch ``n_init - 1``.
        P0 : ndarray, shape (6, 6)
            Error covariance.
        epoch : int
            Epoch of the state.
    """
    if n_init < 3:
        raise ValueError("`n_init` must be at least 3")
    Z = np.asarray(Z, dtype=float)
    if len(Z) < n_init:
        raise ValueError("Not enough range sets")

    fixes = []
    guess = None
    for k in range(n_init):
        fix = locate(trackers, Z[k], sigma ** -2, X0=guess)
        fixes.append(fix)
        guess = fix.x

    (x1, P1), (x2, P2), (x3, P3) = [(fix.x, fix.P) for fix in fixes[-3:]]
    v, _ = positions_to_velocity(dt, x1, P1, x2, P2, x3, P3)

    I = np.identity(3)
    Z3 = np.zeros((3, 3))
    J = np.block([[Z3, Z3, I],
                  [I / (2 * dt), -2 * I / dt, 3 * I / (2 * dt)]])
    P0 = J @ linalg.block_diag(P1, P2, P3) @ J.T
    return Bunch(X0=np.hstack((x3, v)), P0=0.5 * (P0 + P0.T), epoch=n_init - 1)
