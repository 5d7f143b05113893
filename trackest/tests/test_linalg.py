import numpy as np
import pytest
from numpy.testing import assert_allclose
from trackest import linalg
from trackest._common import (NotPositiveSemidefiniteError, SingularMatrixError,
                              weight_matrix)


def _random_covariance(rng, n, eigenvalues=None):
    A = rng.randn(n, n)
    Q, _ = np.linalg.qr(A)
    if eigenvalues is None:
        eigenvalues = rng.uniform(0.1, 2.0, n)
    return Q @ np.diag(eigenvalues) @ Q.T


def test_triangular_inverse():
    rng = np.random.RandomState(0)
    for n in [1, 3, 6, 9]:
        T = np.triu(rng.randn(n, n)) + 3 * np.identity(n)
        for matrix in [T, T.T]:
            inverse = linalg.triangular_inverse(matrix)
            assert_allclose(matrix @ inverse, np.identity(n), atol=1e-12)
            if n > 1:
                assert np.all(inverse[matrix == 0] == 0)

    with pytest.raises(SingularMatrixError):
        linalg.triangular_inverse(np.array([[1.0, 2.0], [0.0, 0.0]]))
    with pytest.raises(ValueError):
        linalg.triangular_inverse(np.ones((2, 2)))
    with pytest.raises(ValueError):
        linalg.triangular_inverse(np.ones((2, 3)))


def test_symmetric_sqrt():
    R, _ = np.linalg.qr(np.random.RandomState(0).randn(3, 3))
    eigenvalues = np.array([0.1, 1.0, 2.0])
    M = R @ np.diag(eigenvalues) @ R.T
    S = linalg.symmetric_sqrt(M)
    assert_allclose(S, S.T, atol=1e-15)
    assert_allclose(S @ S.T, M, atol=1e-14)

    eigenvalues[0] = -1e-17
    S = linalg.symmetric_sqrt(R @ np.diag(eigenvalues) @ R.T)
    eigenvalues[0] = 0
    assert_allclose(S @ S.T, R @ np.diag(eigenvalues) @ R.T, atol=1e-14)

    eigenvalues[0] = -0.01
    with pytest.raises(NotPositiveSemidefiniteError):
        linalg.symmetric_sqrt(R @ np.diag(eigenvalues) @ R.T)


def test_ud_factorize():
    rng = np.random.RandomState(1)
    for n in [1, 3, 6]:
        P = _random_covariance(rng, n)
        U, d = linalg.ud_factorize(P)
        assert_allclose(np.diag(U), 1)
        assert np.all(np.tril(U, -1) == 0)
        assert np.all(d > 0)
        assert_allclose(linalg.ud_reconstruct(U, d), P, rtol=1e-9, atol=1e-14)

    P = _random_covariance(rng, 4, [0.0, 0.5, 1.0, 2.0])
    U, d = linalg.ud_factorize(P)
    assert np.all(d >= 0)
    assert_allclose(linalg.ud_reconstruct(U, d), P, atol=1e-12)

    P = np.diag([1.0, 2.0, 3.0, 4.0, 5.0, 6.0]) * 1e-6
    U, d = linalg.ud_factorize(P)
    assert_allclose(U, np.identity(6))
    assert_allclose(d, np.diag(P))

    with pytest.raises(NotPositiveSemidefiniteError):
        linalg.ud_factorize(np.diag([1.0, -1.0]))


def test_mahalanobis_distance():
    x = np.array([1.0, 2.0, 2.0])
    assert_allclose(linalg.mahalanobis_distance(x, np.zeros(3), np.identity(3)), 3.0)
    assert_allclose(linalg.mahalanobis_distance(x, x, np.identity(3)), 0.0)
    P = np.diag([4.0, 1.0, 16.0])
    assert_allclose(linalg.mahalanobis_distance(x, np.zeros(3), P),
                    (0.25 + 4 + 0.25) ** 0.5)


def test_householder_column():
    rng = np.random.RandomState(2)
    A = rng.randn(7, 4)
    for a00 in [2.0, -2.0, 0.0]:
        A[0, 0] = a00
        T = linalg.householder_column(A)
        assert T is not A
        assert_allclose(T[1:, 0], 0, atol=1e-15)
        assert_allclose(abs(T[0, 0]), np.linalg.norm(A[:, 0]))
        if a00 != 0:
            assert np.sign(T[0, 0]) == -np.sign(a00)
        assert_allclose(np.linalg.norm(T, axis=0), np.linalg.norm(A, axis=0))
        assert_allclose(T.T @ T, A.T @ A, atol=1e-13)

    x = rng.randn(5, 1)
    T = linalg.householder_column(x)
    assert_allclose(T[:, 0], [-np.sign(x[0, 0]) * np.linalg.norm(x), 0, 0, 0, 0])

    A = np.zeros((3, 2))
    A[:, 1] = 1
    assert_allclose(linalg.householder_column(A), A)


def test_householder_triangularize():
    rng = np.random.RandomState(3)
    A = rng.randn(9, 6)
    T = linalg.householder_triangularize(A)
    assert_allclose(np.tril(T, -1), 0, atol=1e-14)
    assert_allclose(T.T @ T, A.T @ A, atol=1e-12)

    T = linalg.householder_triangularize(A, 2)
    assert_allclose(np.tril(T[:, :2], -1), 0, atol=1e-14)
    assert np.all(np.abs(T[3:, 2:]) > 0)
    assert_allclose(T.T @ T, A.T @ A, atol=1e-12)

    A = rng.randn(4, 4)
    T = linalg.householder_triangularize(A)
    assert_allclose(np.tril(T, -1), 0, atol=1e-14)
    assert_allclose(T.T @ T, A.T @ A, atol=1e-12)


def test_householder_triangularize_positive_diagonal():
    rng = np.random.RandomState(4)
    A = rng.randn(7, 5)
    T = linalg.householder_triangularize(A, 3, positive_diagonal=True)
    assert np.all(np.diag(T[:3, :3]) > 0)
    assert_allclose(np.tril(T[:, :3], -1), 0, atol=1e-14)
    assert_allclose(T.T @ T, A.T @ A, atol=1e-12)

    T_plain = linalg.householder_triangularize(A, 3)
    assert_allclose(np.abs(T[:3]), np.abs(T_plain[:3]))
    assert_allclose(T[3:], T_plain[3:])


def test_weight_matrix():
    assert_allclose(weight_matrix(2.0, 3), 2 * np.identity(3))
    assert_allclose(weight_matrix([1.0, 2.0], 2), np.diag([1.0, 2.0]))
    W = np.array([[1.0, 0.5], [0.0, 2.0]])
    assert_allclose(weight_matrix(W, 2), W)
