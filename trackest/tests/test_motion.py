import numpy as np
from numpy.testing import assert_allclose
from scipy.integrate import solve_ivp
from trackest import motion


X = np.array([0.35, 0.25, 0.25, 0.2, 0.2, 1.0])


def _integrate(X0, dt, gravity, drag):
    return solve_ivp(motion.drag_dynamics(gravity, drag), [0, dt], X0,
                     rtol=1e-12, atol=1e-14).y[:, -1]


def test_transition_matrix():
    F = motion.transition_matrix(0.1)
    assert_allclose(F @ X, np.hstack((X[:3] + 0.1 * X[3:], X[3:])))
    assert_allclose(motion.transition_matrix(0), np.identity(6))


def test_ballistic_process():
    dt = 0.01
    f = motion.ballistic_process(dt, gravity=1.0)
    X_next, F, G = f(0, X)
    assert F.shape == (6, 6)
    assert G.shape == (6, 1)
    assert_allclose(X_next, _integrate(X, dt, 1.0, 0.0), atol=1e-12)
    assert_allclose(F, motion.transition_matrix(dt))
    assert_allclose(f(0, X, with_jacobian=False), X_next)
    assert_allclose(G[:, 0], motion.drag_noise_input(dt, X_next[3:]))

    drag = 0.05
    X_true = _integrate(X, dt, 1.0, drag)
    X_noise = f(0, X, W=[drag], with_jacobian=False)
    assert_allclose(X_noise, X_true, atol=1e-5)
    assert (np.linalg.norm(X_noise - X_true) <
            0.1 * np.linalg.norm(X_next - X_true))


def test_propagation():
    dt = 0.5
    r = motion.propagate_position(dt, X[:3], X[3:], gravity=2.0)
    v = motion.propagate_velocity(dt, X[3:], gravity=2.0)
    assert_allclose(np.hstack((r, v)), _integrate(X, dt, 2.0, 0.0), atol=1e-10)
    assert_allclose(motion.drag_noise_input(dt, X[3:]),
                    -np.hstack((0.125 * X[3:], 0.5 * X[3:])))


def test_static_process():
    f = motion.static_process(3)
    X_next, F, G = f(5, X[:3])
    assert_allclose(X_next, X[:3])
    assert X_next is not X
    assert_allclose(F, np.identity(3))
    assert G.shape == (3, 0)
