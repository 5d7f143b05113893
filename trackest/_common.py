import numpy as np


class SingularMatrixError(np.linalg.LinAlgError):
    """Matrix is singular where an inverse is required."""


class NotPositiveSemidefiniteError(np.linalg.LinAlgError):
    """Matrix is expected to be positive semi-definite, but it is not."""


class DegenerateGeometryError(ValueError):
    """Tracker and target positions coincide."""


def check_input_arrays(X0, P0, Q, n_epochs):
    X0 = np.asarray(X0, dtype=float)
    P0 = np.asarray(P0, dtype=float)
    Q = np.asarray(Q, dtype=float)

    n_states = len(X0)
    if Q.ndim == 2:
        Q = np.resize(Q, (n_epochs - 1, *Q.shape))
    n_noises = Q.shape[-1]

    if (X0.shape != (n_states,) or P0.shape != (n_states, n_states) or
            Q.shape != (n_epochs - 1, n_noises, n_noises)):
        raise ValueError("Inconsistent input shapes")

    return X0, P0, Q, n_states, n_noises


def check_measurements(measurements):
    if measurements is None:
        measurements = []

    result = []
    for epochs, Z, h, R in measurements:
        epochs = np.asarray(epochs)
        Z = np.asarray(Z, dtype=float)
        R = np.asarray(R, dtype=float)
        if Z.ndim == 1:
            Z = Z[:, None]
        if R.ndim == 0:
            R = R.reshape(1, 1)
        if R.ndim == 2:
            R = np.resize(R, (len(epochs), *R.shape))

        n = len(epochs)
        m = Z.shape[-1]
        if Z.shape != (n, m) or R.shape != (n, m, m):
            raise ValueError("Inconsistent shapes in measurements")
        if np.any(np.diff(epochs) <= 0):
            raise ValueError("Measurement epochs must be strictly increasing")

        result.append((epochs, Z, h, R))

    return result


def weight_matrix(W, m):
    """Expand a scalar or a vector of weights into a diagonal matrix."""
    W = np.asarray(W, dtype=float)
    if W.ndim == 0:
        return W * np.identity(m)
    if W.ndim == 1:
        return np.diag(W)
    return W


def check_consider_covariance(Py):
    Py = np.asarray(Py, dtype=float)
    if Py.ndim != 2 or Py.shape[0] != Py.shape[1]:
        raise ValueError("Consider covariance must be a square matrix")
    return Py, len(Py)


def epoch_measurements(measurements, k):
    """Yield ``(Z, h, R)`` for each measurement type available at epoch `k`."""
    for epochs, Z, h, R in measurements:
        index = np.searchsorted(epochs, k)
        if index < len(epochs) and epochs[index] == k:
            yield Z[index], h, R[index]
