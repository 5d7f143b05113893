"""Run several filters on the same problem."""
import logging
import numpy as np
from .kalman import run_kalman, run_schmidt
from .srif import run_srif, run_srif_consider
from .ud import run_ud
from .util import Bunch
from ._common import DegenerateGeometryError


logger = logging.getLogger(__name__)

FILTERS = {
    'kalman': run_kalman,
    'ud': run_ud,
    'srif': run_srif,
    'schmidt': run_schmidt,
    'srif_consider': run_srif_consider,
}
CONSIDER_FILTERS = ('schmidt', 'srif_consider')


def run_comparison(problem, filters=None, Py=None, decay=0.7, method='bierman'):
    """Run filters one after another on the same problem.

    The filters are independent, each starts from the initial estimate of the
    problem. A numerical failure (`numpy.linalg.LinAlgError`) or degenerate
    geometry aborts only the failed filter, its result then contains the single
    field ``error`` with the exception. Other exceptions propagate.

    Parameters
    ----------
    problem : object
        Problem definition with attributes ``X0``, ``P0``, ``f``, ``Q``,
        ``n_epochs`` and ``measurements``, for example
        `trackest.examples.TrackingProblemExample`.
    filters : list of str or None, optional
        Names of filters to run, from 'kalman', 'ud', 'srif', 'schmidt' and
        'srif_consider'. None (default) runs all filters.
    Py : array_like, shape (n_consider, n_consider) or None, optional
        Covariance of the consider parameters. If None (default), taken from
        ``problem.Py``. Required only for the consider filters.
    decay : float, optional
        Cross covariance decay for 'schmidt'. Default is 0.7.
    method : {'bierman', 'tapley'}, optional
        Covariance recovery method for 'srif_consider'. Default is 'bierman'.

    Returns
    -------
    Bunch
        Results of `trackest.run_kalman` and others keyed by the filter names.
        Each successful result has the ``elapsed`` field with the filter wall
        time.
    """
    if filters is None:
        filters = list(FILTERS)
    unknown = set(filters) - set(FILTERS)
    if unknown:
        raise ValueError("Unknown filters: {}".format(sorted(unknown)))

    if Py is None and any(name in CONSIDER_FILTERS for name in filters):
        Py = problem.Py

    results = Bunch()
    for name in filters:
        args = (problem.X0, problem.P0, problem.f, problem.Q, problem.n_epochs,
                problem.measurements)
        try:
            if name == 'schmidt':
                result = run_schmidt(*args, Py, decay=decay)
            elif name == 'srif_consider':
                result = run_srif_consider(*args, Py, method=method)
            else:
                result = FILTERS[name](*args)
        except (np.linalg.LinAlgError, DegenerateGeometryError) as error:
            logger.exception("%s failed", name)
            results[name] = Bunch(error=error)
            continue
        logger.info("%s: %.4f s", name, result.elapsed)
        results[name] = result

    return results
