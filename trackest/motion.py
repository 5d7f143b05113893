"""Flat-earth motion models.

The state vector is ``[rx, ry, rz, vx, vy, vz]``. The filter model accounts only
for constant gravity along -z, the true motion is additionally affected by linear
drag::

    dr / dt = v
    dv / dt = -g * e_z - b * v

The unmodeled drag is represented in the filter model by a scalar process noise
which enters the state through `drag_noise_input`.
"""
import numpy as np


def transition_matrix(dt):
    """Compute the transition matrix of the position-velocity state."""
    F = np.identity(6)
    F[:3, 3:] = dt * np.identity(3)
    return F


def propagate_position(dt, r, v, gravity=1.0):
    """Propagate position over `dt` under constant gravity."""
    r = np.asarray(r, dtype=float)
    result = r + dt * np.asarray(v, dtype=float)
    result[2] -= 0.5 * gravity * dt ** 2
    return result


def propagate_velocity(dt, v, gravity=1.0):
    """Propagate velocity over `dt` under constant gravity."""
    result = np.array(v, dtype=float)
    result[2] -= gravity * dt
    return result


def drag_noise_input(dt, v):
    """Compute the input vector of a drag coefficient error.

    Returns
    -------
    ndarray, shape (6,)
        Vector ``-[0.5 * v * dt, v] * dt``.
    """
    v = np.asarray(v, dtype=float)
    return -np.hstack((0.5 * v * dt, v)) * dt


def ballistic_process(dt, gravity=1.0):
    """Create a process callable for the gravity-only model.

    The process noise is a scalar drag coefficient, its input matrix is computed
    by `drag_noise_input` using the propagated velocity. The returned callable
    follows `trackest.util.process_callable`.

    Parameters
    ----------
    dt : float
        Time step.
    gravity : float, optional
        Gravity acceleration. Default is 1.

    Returns
    -------
    callable
    """
    F = transition_matrix(dt)

    def f(k, X, W=None, with_jacobian=True):
        r = X[:3]
        v = X[3:]
        v_next = propagate_velocity(dt, v, gravity)
        X_next = np.hstack((propagate_position(dt, r, v, gravity), v_next))
        G = drag_noise_input(dt, v_next)[:, None]
        if W is not None:
            X_next += G @ np.atleast_1d(W)
        if not with_jacobian:
            return X_next
        return X_next, F, G

    return f


def static_process(n_states=3):
    """Create a process callable for a motionless target without noise."""
    F = np.identity(n_states)
    G = np.empty((n_states, 0))

    def f(k, X, W=None, with_jacobian=True):
        X_next = np.array(X, dtype=float)
        return (X_next, F, G) if with_jacobian else X_next

    return f


def drag_dynamics(gravity=1.0, drag=0.0):
    """Create the right-hand side of the true motion ODE.

    The returned function ``fun(t, X)`` is suitable for `scipy.integrate.solve_ivp`.
    """
    def fun(t, X):
        v = X[3:]
        a = -drag * v
        a[2] -= gravity
        return np.hstack((v, a))

    return fun
