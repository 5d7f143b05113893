import numpy as np
import pytest
from numpy.testing import assert_allclose
import trackest


def test_compute_rms():
    data = np.array([[1.0, -2.0], [-1.0, 2.0], [1.0, 2.0], [-1.0, -2.0]])
    assert_allclose(trackest.util.compute_rms(data), [1.0, 2.0])


def test_compute_containment():
    X_true = np.zeros((4, 6))
    X = np.zeros((4, 6))
    X[1, 0] = 1.0
    X[2, :3] = 10.0
    X[3, 3:] = 100.0
    P = np.resize(np.identity(6), (4, 6, 6))

    assert_allclose(trackest.util.compute_containment(X_true, X, P), 0.75)
    assert_allclose(trackest.util.compute_containment(X_true, X, P, scale=0.5), 0.5)
    assert_allclose(trackest.util.compute_containment(X_true, X, P,
                                                      states=slice(3, 6)), 0.75)
    assert_allclose(trackest.util.compute_containment(X_true, X, 1e4 * P), 1.0)
    assert_allclose(trackest.util.compute_containment(X_true[0], X[1], P[1]), 1.0)


def test_containment_scale():
    rng = np.random.RandomState(0)
    n = 20000
    X_true = rng.randn(n, 3)
    P = np.resize(np.identity(3), (n, 3, 3))
    fraction = trackest.util.compute_containment(X_true, np.zeros((n, 3)), P)
    assert abs(fraction - 0.95) < 0.01


def test_bunch():
    bunch = trackest.util.Bunch(x=1, y=np.zeros(2))
    assert bunch.x == 1
    bunch.z = 3
    assert bunch['z'] == 3
    assert sorted(dir(bunch)) == ['x', 'y', 'z']
    del bunch.z
    assert 'z' not in bunch
    with pytest.raises(AttributeError):
        bunch.z
    assert repr(trackest.util.Bunch()) == "Bunch()"
