"""Range and pointing observations from fixed trackers.

A tracker observes the line of sight ``s = r - t`` from its position ``t`` to the
target position ``r`` (the first 3 components of the state). Available
measurements are the range ``|s|`` and the pointing components, which are the
first two components of the unit vector ``s / |s|``.

The geometry is singular when the target coincides with a tracker. In this case
`DegenerateGeometryError` is raised instead of producing infinite or NaN values.
"""
import numpy as np
from ._common import DegenerateGeometryError


MIN_RANGE = 1e-12


def _line_of_sight(tracker, position):
    s = np.asarray(position, dtype=float)[:3] - np.asarray(tracker, dtype=float)
    rho = np.linalg.norm(s)
    if rho < MIN_RANGE:
        raise DegenerateGeometryError("Target coincides with the tracker")
    return s / rho, rho


def predict_range(tracker, position):
    """Compute range from `tracker` to `position`."""
    return _line_of_sight(tracker, position)[1]


def range_jacobian(tracker, position, n_states=3):
    """Compute range Jacobian with respect to the state.

    Parameters
    ----------
    tracker : array_like, shape (3,)
        Tracker position.
    position : array_like, shape (3,) or (n_states,)
        Target position or a state with position as the first 3 components.
    n_states : int, optional
        Number of states, components after the first 3 are zero. Default is 3.

    Returns
    -------
    ndarray, shape (n_states,)
    """
    u, _ = _line_of_sight(tracker, position)
    H = np.zeros(n_states)
    H[:3] = u
    return H


def range_bias_jacobian(tracker, position):
    """Compute range Jacobian with respect to the tracker position."""
    u, _ = _line_of_sight(tracker, position)
    return -u


def predict_pointing(tracker, position):
    """Compute first two components of the unit line-of-sight vector."""
    u, _ = _line_of_sight(tracker, position)
    return u[:2]


def pointing_jacobian(tracker, position, n_states=3):
    """Compute pointing Jacobian with respect to the state.

    The derivative of the unit vector ``u = s / |s|`` is ``(I - u u^T) / |s|``,
    only the first two rows are used.

    Returns
    -------
    ndarray, shape (2, n_states)
    """
    u, rho = _line_of_sight(tracker, position)
    H = np.zeros((2, n_states))
    H[:, :3] = (np.identity(3) - np.outer(u, u))[:2] / rho
    return H


def range_measurement(tracker, n_states=6):
    """Create a measurement callable for the range from a tracker.

    The returned callable follows `trackest.util.measurement_callable`.
    """
    tracker = np.asarray(tracker, dtype=float)

    def h(k, X, with_jacobian=True):
        Z = np.atleast_1d(predict_range(tracker, X))
        if not with_jacobian:
            return Z
        return Z, range_jacobian(tracker, X, n_states)[None, :]

    return h


def range_pointing_measurement(tracker, n_states=6):
    """Create a measurement callable for range and pointing from a tracker.

    The measurement vector is ``[range, u_x, u_y]``.
    """
    tracker = np.asarray(tracker, dtype=float)

    def h(k, X, with_jacobian=True):
        Z = np.hstack((predict_range(tracker, X), predict_pointing(tracker, X)))
        if not with_jacobian:
            return Z
        H = np.vstack((range_jacobian(tracker, X, n_states),
                       pointing_jacobian(tracker, X, n_states)))
        return Z, H

    return h


def range_consider_measurement(tracker, n_states=6):
    """Create a range measurement callable with the tracker bias Jacobian.

    The tracker position error is the consider parameter. The returned callable
    follows `trackest.util.consider_measurement_callable`.
    """
    tracker = np.asarray(tracker, dtype=float)

    def h(k, X, with_jacobian=True):
        Z = np.atleast_1d(predict_range(tracker, X))
        if not with_jacobian:
            return Z
        return (Z, range_jacobian(tracker, X, n_states)[None, :],
                range_bias_jacobian(tracker, X)[None, :])

    return h
