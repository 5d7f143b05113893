"""Utility functions."""
import numpy as np
from .linalg import mahalanobis_distance


#: Scale of the 3-dimensional error ellipsoid containing 95% of probability.
SF95_3D = 2.796


class Bunch(dict):
    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

    __setattr__ = dict.__setitem__
    __delattr__ = dict.__delitem__

    def __repr__(self):
        if self.keys():
            m = max(map(len, list(self.keys()))) + 1
            return '\n'.join(['{}: {}'.format(k.rjust(m), type(v))
                              for k, v in self.items()])
        else:
            return self.__class__.__name__ + "()"

    def __dir__(self):
        return list(self.keys())


def compute_rms(data):
    """Compute root-mean-square of data along 0 axis."""
    return np.mean(np.square(data), axis=0) ** 0.5


def compute_containment(X_true, X, P, scale=SF95_3D, states=slice(0, 3)):
    """Compute the fraction of estimates whose error ellipsoid contains the truth.

    Parameters
    ----------
    X_true : array_like, shape (n_points, n_states)
        True states.
    X : array_like, shape (n_points, n_states)
        State estimates.
    P : array_like, shape (n_points, n_states, n_states)
        Error covariance estimates.
    scale : float, optional
        Mahalanobis distance defining the ellipsoid. Default is `SF95_3D`.
    states : slice or array_like of int, optional
        States to use. Default is the first 3 (position).

    Returns
    -------
    float
        Fraction of points with the Mahalanobis distance below `scale`.
    """
    X_true = np.atleast_2d(X_true)
    X = np.atleast_2d(X)
    P = np.asarray(P)
    if P.ndim == 2:
        P = P[None]
    index = np.arange(X.shape[-1])[states]

    contained = [
        mahalanobis_distance(xt[index], x[index], p[np.ix_(index, index)]) < scale
        for xt, x, p in zip(X_true, X, P)
    ]
    return np.mean(contained)


def process_callable(k, X, W=None, with_jacobian=True):
    """Process callable interface.

    This function stub is included to conveniently describe the expected interface
    of process callables (denoted as ``f``) used in the filters provided
    in the package.

    Parameters
    ----------
    k : int
        Epoch index at which the function is evaluated. That is the function might
        explicitly depend on the epoch index.
    X : ndarray, shape (n_states,)
        State vector.
    W : ndarray, shape (n_noises,) or None, optional
        Noise vector. If None (default) must be interpreted as zeros with appropriate
        size.
    with_jacobian : bool, optional
        Whether to return function Jacobian with respect to X and W.
        Default is True.

    Returns
    -------
    X_next : ndarray, shape (n_states,)
        Computed value of ``f_k(X, W)``.
    F : ndarray, shape (n_states, n_states)
        Jacobian of ``f`` with respect to ``X``. Must be returned only when
        `with_jacobian` is True.
    G : ndarray, shape (n_states, n_noises)
        Jacobian of ``f`` with respect to ``W``. Must be returned only when
        `with_jacobian` is True.
    """
    pass


def measurement_callable(k, X, with_jacobian=True):
    """Measurement callable interface.

    This function stub is included to conveniently describe the expected interface
    of measurement callables (denoted as ``h``) used in the filters provided
    in the package.

    Parameters
    ----------
    k : int
        Epoch index at which the function is evaluated, that is the function might
        explicitly depend on the epoch index.
    X : ndarray, shape (n_states,)
        State vector.
    with_jacobian : bool, optional
        Whether to return function Jacobian with respect to X. Default is True.

    Returns
    -------
    Z : ndarray, shape (n_meas,)
        Compute value of ``h_k(X)``.
    H : ndarray, shape (n_meas, n_states)
        Jacobian of ``h`` with respect to ``X``. Must be returned only when
        `with_jacobian` is True.
    """
    pass


def consider_measurement_callable(k, X, with_jacobian=True):
    """Measurement callable interface for filters with consider parameters.

    Same as `measurement_callable`, but the Jacobian with respect to the consider
    parameters is returned as well. Such callables can be used by the filters
    without consider parameters, the last Jacobian is then ignored.

    Returns
    -------
    Z : ndarray, shape (n_meas,)
        Compute value of ``h_k(X)``.
    H : ndarray, shape (n_meas, n_states)
        Jacobian of ``h`` with respect to ``X``.
    J : ndarray, shape (n_meas, n_consider)
        Jacobian of ``h`` with respect to the consider parameters.
    """
    pass
