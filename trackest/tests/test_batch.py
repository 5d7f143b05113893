import numpy as np
import pytest
from numpy.testing import assert_allclose
from trackest import batch
from trackest.examples import box_trackers


TRACKERS = box_trackers()
POSITION = np.array([0.3, 0.6, 0.2])


def _ranges(position):
    return np.linalg.norm(position - TRACKERS, axis=1)


def test_locate_noiseless():
    ranges = _ranges(POSITION)
    result = batch.locate(TRACKERS, ranges, 1.0)
    assert result.converged
    assert result.n_iter < 20
    assert_allclose(result.x, POSITION, atol=1e-10)
    assert result.rms < 1e-10
    assert_allclose(result.P, result.P.T)
    assert np.all(np.linalg.eigvalsh(result.P) > 0)

    result = batch.locate_householder(TRACKERS, ranges, 1.0)
    assert result.converged
    assert_allclose(result.x, POSITION, atol=1e-10)
    assert result.rms < 1e-10
    assert np.all(np.tril(result.R, -1) == 0)


def test_locate_householder_matches_normal_equations():
    rng = np.random.RandomState(0)
    sigma = np.array([0.01, 0.02, 0.01, 0.03])
    ranges = _ranges(POSITION) + sigma * rng.randn(4)

    normal = batch.locate(TRACKERS, ranges, sigma ** -2)
    householder = batch.locate_householder(TRACKERS, ranges, 1 / sigma)
    assert normal.converged
    assert householder.converged
    assert_allclose(householder.x, normal.x, atol=1e-10)
    assert_allclose(householder.P, normal.P, rtol=1e-6)
    assert_allclose(householder.rms, normal.rms, rtol=1e-6)
    assert_allclose(householder.R.T @ householder.R, np.linalg.inv(normal.P),
                    rtol=1e-6)

    guess = normal.x + 0.05
    result = batch.locate(TRACKERS, ranges, sigma ** -2, X0=guess)
    assert_allclose(result.x, normal.x, atol=1e-10)


def test_locate_invalid_input():
    with pytest.raises(ValueError):
        batch.locate(TRACKERS[:2], _ranges(POSITION)[:2], 1.0)
    with pytest.raises(ValueError):
        batch.locate(TRACKERS, _ranges(POSITION)[:3], 1.0)
    with pytest.raises(ValueError):
        batch.locate_householder(TRACKERS[:, :2], _ranges(POSITION), 1.0)


def test_locate_max_iter():
    result = batch.locate(TRACKERS, _ranges(POSITION), 1.0, max_iter=1)
    assert not result.converged
    assert result.n_iter == 1


def test_positions_to_velocity():
    dt = 0.1
    x0 = np.array([0.1, 0.2, 0.3])
    v0 = np.array([1.0, -0.5, 0.2])
    a = np.array([0.0, 0.0, -1.0])
    x = [x0 + v0 * t + 0.5 * a * t ** 2 for t in [0, dt, 2 * dt]]
    P = [np.identity(3) * 1e-4] * 3
    v, Pv = batch.positions_to_velocity(dt, x[0], P[0], x[1], P[1], x[2], P[2])
    assert_allclose(v, v0 + 2 * dt * a, atol=1e-12)
    assert_allclose(Pv, np.identity(3) * 1e-4 * 26 / (4 * dt ** 2))


def test_initialize_state():
    dt = 0.01
    v = np.array([0.2, 0.2, 1.0])
    positions = [POSITION + v * k * dt for k in range(5)]
    Z = np.array([_ranges(p) for p in positions])

    result = batch.initialize_state(TRACKERS, Z, 0.001, dt, n_init=3)
    assert result.epoch == 2
    assert_allclose(result.X0, np.hstack((positions[2], v)), atol=1e-8)
    assert result.P0.shape == (6, 6)
    assert_allclose(result.P0, result.P0.T)
    assert np.all(np.linalg.eigvalsh(result.P0) > 0)
    assert np.any(result.P0[:3, 3:] != 0)

    fix = batch.locate(TRACKERS, Z[2], 0.001 ** -2)
    assert_allclose(result.P0[:3, :3], fix.P, rtol=1e-6)

    result = batch.initialize_state(TRACKERS, Z, 0.001, dt, n_init=5)
    assert result.epoch == 4
    assert_allclose(result.X0[:3], positions[4], atol=1e-8)

    with pytest.raises(ValueError):
        batch.initialize_state(TRACKERS, Z, 0.001, dt, n_init=2)
    with pytest.raises(ValueError):
        batch.initialize_state(TRACKERS, Z[:2], 0.001, dt)
