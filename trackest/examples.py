"""Example tracking problems.

Trackers are placed in the upper corners of a box and observe a target inside
the box. The units are arbitrary, the box size is 1 by default.
"""
from dataclasses import dataclass
import numpy as np
from scipy._lib._util import check_random_state
from scipy.integrate import solve_ivp
from .batch import initialize_state, locate
from .motion import ballistic_process, drag_dynamics, static_process
from .observation import range_consider_measurement, range_pointing_measurement


def box_trackers(box_length=1.0):
    """Compute positions of 4 trackers at the ceiling corners of a box.

    Returns
    -------
    ndarray, shape (4, 3)
    """
    b = box_length
    return np.array([
        [0, 0, b],
        [b, 0, b],
        [b, b, b],
        [0, b, b],
    ], dtype=float)


@dataclass
class StaticProblemExample:
    """Example of a static target located by range and pointing measurements.

    Parameters
    ----------
    X0 : ndarray, shape (3,)
        Initial position estimate from the batch fix.
    P0 : ndarray, shape (3, 3)
        Initial covariance.
    f : callable
        Process function, see `trackest.util.process_callable`.
    Q : ndarray, shape (0, 0)
        Process noise covariance (no process noise).
    measurements : list
        Range and pointing measurements, one type per tracker.
        See `trackest.run_kalman` for a detailed definition.
    n_epochs : int
        Number of epochs for estimation.
    Xt : ndarray, shape (n_epochs, 3)
        True position for each epoch.
    trackers : ndarray, shape (n_trackers, 3)
        Tracker positions.
    init_ranges : ndarray, shape (n_trackers,)
        Ranges used for the batch fix.
    """
    X0 : np.ndarray
    P0 : np.ndarray
    f : callable
    Q : np.ndarray
    measurements : list
    n_epochs : int
    Xt : np.ndarray
    trackers : np.ndarray
    init_ranges : np.ndarray


@dataclass
class TrackingProblemExample:
    """Example of tracking a moving target by range measurements.

    Parameters
    ----------
    X0 : ndarray, shape (6,)
        Initial state estimate from the batch initialization.
    P0 : ndarray, shape (6, 6)
        Initial covariance.
    f : callable
        Process function, see `trackest.util.process_callable`.
    Q : ndarray, shape (1, 1)
        Covariance of the drag coefficient process noise.
    measurements : list
        Range measurements, one type per tracker. The measurement functions
        follow `trackest.util.consider_measurement_callable` with the tracker
        position error as the consider parameters.
    n_epochs : int
        Number of epochs for estimation.
    Xt : ndarray, shape (n_epochs, 6)
        True state for each epoch.
    X_ideal : ndarray, shape (n_epochs, 6)
        State computed by the filter model from the true initial state.
    t : ndarray, shape (n_epochs,)
        Time of each epoch.
    trackers : ndarray, shape (n_trackers, 3)
        Nominal tracker positions.
    tracker_bias : ndarray, shape (n_trackers, 3)
        Errors of the nominal tracker positions.
    Py : ndarray, shape (3, 3)
        Covariance of tracker position errors.
    """
    X0 : np.ndarray
    P0 : np.ndarray
    f : callable
    Q : np.ndarray
    measurements : list
    n_epochs : int
    Xt : np.ndarray
    X_ideal : np.ndarray
    t : np.ndarray
    trackers : np.ndarray
    tracker_bias : np.ndarray
    Py : np.ndarray


def generate_static_target(
    n_sets=100,
    position=np.array([0.25, 0.25, 0.0]),
    box_length=1.0,
    sigma_range=0.05,
    sigma_pointing=np.deg2rad(1.0),
    rng=0,
):
    """Generate data for an example of a static target.

    The initial position is estimated by `trackest.batch.locate` from a single
    range measurement of each tracker. Then each epoch brings range and pointing
    measurements from a single tracker, the trackers are taken in turn.

    Parameters
    ----------
    n_sets : int
        Number of range and pointing sets.
    position : array_like, shape (3,)
        True target position.
    box_length : float
        Size of the box, see `box_trackers`.
    sigma_range : float
        Standard deviation of range errors.
    sigma_pointing : float
        Standard deviation of pointing errors.
    rng : None, int or `numpy.random.RandomState`
        Seed to create or already created RandomState. None (default) corresponds to
        nondeterministic seeding.

    Returns
    -------
    StaticProblemExample
    """
    rng = check_random_state(rng)
    position = np.asarray(position, dtype=float)
    trackers = box_trackers(box_length)
    n_trackers = len(trackers)

    init_ranges = (np.linalg.norm(position - trackers, axis=1) +
                   sigma_range * rng.randn(n_trackers))
    fix = locate(trackers, init_ranges, sigma_range ** -2)

    R = np.diag([sigma_range ** 2, sigma_pointing ** 2, sigma_pointing ** 2])
    sigma = np.diag(R) ** 0.5
    measurements = []
    for j, tracker in enumerate(trackers):
        h = range_pointing_measurement(tracker, n_states=3)
        epochs = np.arange(j, n_sets, n_trackers)
        Z = [h(k, position, with_jacobian=False) + sigma * rng.randn(3)
             for k in epochs]
        measurements.append((epochs, Z, h, R))

    return StaticProblemExample(fix.x, fix.P, static_process(3), np.empty((0, 0)),
                                measurements, n_sets, np.resize(position, (n_sets, 3)),
                                trackers, init_ranges)


def generate_ballistic_trajectory(
    X0t=np.array([0.35, 0.25, 0.25, 0.2, 0.2, 1.0]),
    total_time=3.0,
    time_step=0.01,
    box_length=1.0,
    sigma_range=0.001,
    sigma_tracker=0.001,
    drag=0.05,
    gravity=1.0,
    n_init=3,
    rtol=1e-10,
    rng=0,
):
    """Generate data for an example of a thrown object in a room.

    The true trajectory is integrated with gravity and linear drag (see
    `trackest.motion.drag_dynamics`), the filter model accounts only for gravity.
    The drag is compensated by the process noise with the standard deviation
    ``2 * drag`` applied to the drag coefficient.

    Each tracker position is perturbed by a constant random error, the ranges are
    computed from the perturbed positions, while the filters use the nominal
    positions.

    The first `n_init` range sets are used to compute the initial state by
    `trackest.batch.initialize_state`. The filter epochs start at the last of
    them.

    Parameters
    ----------
    X0t : array_like, shape (6,)
        True initial state.
    total_time : float
        Total time of the simulation.
    time_step : float
        Time between the range sets.
    box_length : float
        Size of the box, see `box_trackers`.
    sigma_range : float
        Standard deviation of range errors.
    sigma_tracker : float
        Standard deviation of tracker position errors along each axis. Must be
        positive to run `trackest.run_srif_consider` with ``Py`` of the problem.
    drag : float
        Drag coefficient of the true motion.
    gravity : float
        Gravity acceleration.
    n_init : int
        Number of range sets for the initialization.
    rtol : float
        Tolerance parameter (relative) for ODE integrator.
    rng : None, int or `numpy.random.RandomState`
        Seed to create or already created RandomState. None (default) corresponds to
        nondeterministic seeding.

    Returns
    -------
    TrackingProblemExample
    """
    rng = check_random_state(rng)
    X0t = np.asarray(X0t, dtype=float)
    trackers = box_trackers(box_length)
    n_trackers = len(trackers)

    t = np.arange(0, total_time + 0.5 * time_step, time_step)
    Xt = solve_ivp(drag_dynamics(gravity, drag), [t[0], t[-1]], X0t, t_eval=t,
                   rtol=rtol, atol=rtol * 1e-2).y.T
    n_sets = len(t)

    tracker_bias = sigma_tracker * rng.randn(n_trackers, 3)
    Z = np.linalg.norm(Xt[:, None, :3] - (trackers + tracker_bias), axis=-1)
    Z += sigma_range * rng.randn(n_sets, n_trackers)

    init = initialize_state(trackers, Z, sigma_range, time_step, n_init)
    start = init.epoch
    n_epochs = n_sets - start

    f = ballistic_process(time_step, gravity)
    X_ideal = np.empty((n_epochs, 6))
    X_ideal[0] = Xt[start]
    for k in range(n_epochs - 1):
        X_ideal[k + 1] = f(k, X_ideal[k], with_jacobian=False)

    R = np.array([[sigma_range ** 2]])
    measurements = [
        (np.arange(1, n_epochs), Z[start + 1:, j, None],
         range_consider_measurement(tracker), R)
        for j, tracker in enumerate(trackers)
    ]

    return TrackingProblemExample(
        init.X0, init.P0, f, np.array([[(2 * drag) ** 2]]), measurements, n_epochs,
        Xt[start:], X_ideal, t[start:], trackers, tracker_bias,
        sigma_tracker ** 2 * np.identity(3))
