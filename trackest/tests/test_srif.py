import numpy as np
import pytest
from numpy.testing import assert_allclose
from trackest.kalman import kalman_predict, kalman_update
from trackest.linalg import symmetric_sqrt
from trackest._common import NotPositiveSemidefiniteError, SingularMatrixError
from trackest.srif import (srif_initialize, srif_covariance, srif_predict,
                           srif_update, srif_update_bias, srif_consider_covariance)


def _random_covariance(rng, n):
    A = rng.randn(n, n)
    return A @ A.T + 0.1 * np.identity(n)


def _random_information(rng, n):
    return np.triu(rng.randn(n, n), 1) + np.diag(rng.uniform(0.5, 2.0, n))


def _assert_triangular(R):
    assert np.all(np.tril(R, -1) == 0)
    assert np.all(np.diag(R) > 0)


def test_srif_initialize():
    rng = np.random.RandomState(0)
    P = _random_covariance(rng, 5)
    dx = rng.randn(5)
    R, b = srif_initialize(P, dx)
    _assert_triangular(R)
    assert_allclose(R.T @ R, np.linalg.inv(P), rtol=1e-9, atol=1e-10)
    assert_allclose(b, R @ dx)
    assert_allclose(srif_covariance(R), P, rtol=1e-9, atol=1e-10)

    _, b = srif_initialize(P)
    assert np.all(b == 0)

    with pytest.raises(SingularMatrixError):
        srif_initialize(np.zeros((3, 3)))
    with pytest.raises(SingularMatrixError):
        srif_initialize(np.diag([1.0, 1.0, 0.0]))
    with pytest.raises(NotPositiveSemidefiniteError):
        srif_initialize(np.diag([1.0, -1.0, 2.0]))
    R, _ = srif_initialize(1e-16 * np.identity(3))
    assert_allclose(R, 1e8 * np.identity(3))


def test_srif_predict():
    rng = np.random.RandomState(1)
    n = 6
    P = _random_covariance(rng, n)
    dx = rng.randn(n)
    F = np.identity(n) + 0.1 * rng.randn(n, n)
    F_inv = np.linalg.inv(F)
    R, b = srif_initialize(P, dx)

    R_pred, b_pred = srif_predict(R, b, F_inv)
    _assert_triangular(R_pred)
    _, P_pred = kalman_predict(dx, P, F, np.zeros((1, 1)), np.zeros(n))
    assert_allclose(srif_covariance(R_pred), P_pred, rtol=1e-8, atol=1e-10)
    assert_allclose(np.linalg.solve(R_pred, b_pred), F @ dx, rtol=1e-8, atol=1e-10)

    G = rng.randn(n, 2)
    Q = _random_covariance(rng, 2)
    Rw = np.linalg.inv(symmetric_sqrt(Q))
    R_pred, b_pred = srif_predict(R, b, F_inv, Rw, G)
    _assert_triangular(R_pred)
    _, P_pred = kalman_predict(dx, P, F, Q, G)
    assert_allclose(srif_covariance(R_pred), P_pred, rtol=1e-8, atol=1e-10)
    assert_allclose(np.linalg.solve(R_pred, b_pred), F @ dx, rtol=1e-8, atol=1e-10)

    G = rng.randn(n)
    _, P_pred = kalman_predict(dx, P, F, 0.25, G)
    R_pred, _ = srif_predict(R, b, F_inv, 2.0, G)
    assert_allclose(srif_covariance(R_pred), P_pred, rtol=1e-8, atol=1e-10)

    Rxy = rng.randn(n, 3)
    R_pred, b_pred, Rxy_pred = srif_predict(R, b, F_inv, Rxy=Rxy)
    assert Rxy_pred.shape == (n, 3)
    assert_allclose(R_pred.T @ Rxy_pred, F_inv.T @ R.T @ Rxy, rtol=1e-8, atol=1e-10)


def test_srif_update():
    rng = np.random.RandomState(2)
    n = 6
    x = rng.randn(n)
    P = _random_covariance(rng, n)
    H = rng.randn(3, n)
    r = rng.randn(3)
    sigma = np.array([0.1, 0.5, 1.0])
    x_kf, P_kf = kalman_update(x, P, H, r, sigma)

    R, b = srif_initialize(P)
    dx, R_new, b_new = srif_update(R, b, H, r, 1 / sigma)
    _assert_triangular(R_new)
    assert_allclose(x + dx, x_kf, rtol=1e-8, atol=1e-10)
    assert_allclose(srif_covariance(R_new), P_kf, rtol=1e-8, atol=1e-10)
    assert_allclose(R_new @ dx, b_new, rtol=1e-10, atol=1e-12)
    assert np.prod(np.diag(R_new)) >= np.prod(np.diag(R))

    dx_full, _, _ = srif_update(R, b, H, r, np.diag(1 / sigma))
    assert_allclose(dx_full, dx, rtol=1e-12, atol=1e-14)

    h = H[0]
    x_kf, P_kf = kalman_update(x, P, h, r[0], 0.3)
    dx, R_new, _ = srif_update(R, b, h, r[0], 1 / 0.3)
    assert_allclose(x + dx, x_kf, rtol=1e-8, atol=1e-10)
    assert_allclose(srif_covariance(R_new), P_kf, rtol=1e-8, atol=1e-10)


def test_srif_update_bias():
    rng = np.random.RandomState(3)
    n = 6
    ny = 3
    m = 4
    Rx = _random_information(rng, n)
    Rxy = rng.randn(n, ny)
    Ry = _random_information(rng, ny)
    b = rng.randn(n)
    by = rng.randn(ny)
    Hx = rng.randn(m, n)
    Hy = rng.randn(m, ny)
    r = rng.randn(m)
    W_sqrt = rng.uniform(1, 10, m)

    dx, Rx_new, Rxy_new, b_new, Ry_new, by_new = srif_update_bias(
        Rx, Rxy, b, Hx, r, W_sqrt, Ry, by, Hy)
    _assert_triangular(Rx_new)
    _assert_triangular(Ry_new)
    assert_allclose(Rx_new @ dx, b_new, rtol=1e-10, atol=1e-12)

    Rn = np.block([[Rx, Rxy], [np.zeros((ny, n)), Ry]])
    _, Rn_new, bn_new = srif_update(Rn, np.hstack((b, by)), np.hstack((Hx, Hy)), r,
                                    W_sqrt)
    assert_allclose(Rx_new, Rn_new[:n, :n], rtol=1e-10, atol=1e-12)
    assert_allclose(Rxy_new, Rn_new[:n, n:], rtol=1e-10, atol=1e-12)
    assert_allclose(Ry_new, Rn_new[n:, n:], rtol=1e-10, atol=1e-12)
    assert_allclose(b_new, bn_new[:n], rtol=1e-10, atol=1e-12)
    assert_allclose(by_new, bn_new[n:], rtol=1e-10, atol=1e-12)


def test_srif_consider_covariance():
    rng = np.random.RandomState(4)
    n = 6
    ny = 3
    Rx = _random_information(rng, n)
    Rxy = rng.randn(n, ny)
    Ry = _random_information(rng, ny)

    P_b, Pxy_b, Py_b = srif_consider_covariance(Rx, Rxy, Ry, 'bierman')
    P_t, Pxy_t, Py_t = srif_consider_covariance(Rx, Rxy, Ry, 'tapley')
    assert_allclose(P_b, P_t, rtol=1e-9, atol=1e-10)
    assert_allclose(Pxy_b, Pxy_t, rtol=1e-9, atol=1e-10)
    assert_allclose(Py_b, Py_t, rtol=1e-9, atol=1e-10)
    assert_allclose(Py_b, srif_covariance(Ry))

    difference = P_b - srif_covariance(Rx)
    assert np.all(np.linalg.eigvalsh(difference) > -1e-10)

    P, Pxy, _ = srif_consider_covariance(Rx, np.zeros((n, ny)), Ry)
    assert_allclose(P, srif_covariance(Rx))
    assert np.all(Pxy == 0)

    with pytest.raises(ValueError):
        srif_consider_covariance(Rx, Rxy, Ry, 'cholesky')
