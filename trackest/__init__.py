"""trackest: Factorized filters for tracking with range measurements.

The package contains recursive estimators of a target state from range (and
optionally pointing) measurements of fixed trackers, whose positions may have
unknown errors. The discrete-time model is::

    X_{k + 1} = f_k(X_k, W_k)
    Z_k = h_k(X_k, Y) + V_k

Where

    - k   - integer epoch index
    - X_k - state vector, position and velocity by default
    - W_k - process noise vector
    - Y   - consider parameters (tracker position errors), not estimated
    - Z_k - measurement vector
    - V_k - measurement noise vector
    - f_k - process function
    - h_k - measurement function

The following mathematically equivalent forms of the linearized Kalman filter are
implemented:

    - `run_kalman` - covariance form
    - `run_ud` - U-D factorized form with scalar updates
    - `run_srif` - square-root information form with Householder triangularization

Consider parameters are accounted by `run_schmidt` (Schmidt-Kalman filter) and
`run_srif_consider`.

Process and measurement functions must be implemented according to
`trackest.util.process_callable` and `trackest.util.measurement_callable`
signatures. Refer to `trackest.examples` for examples of correctly defined problems.

References
----------
.. [1] G. J. Bierman, "Factorization Methods for Discrete Sequential Estimation"
.. [2] B. D. Tapley, B. E. Schutz, G. H. Born, "Statistical Orbit Determination"
"""
from . import batch, examples, linalg, motion, observation, util
from .kalman import run_kalman, run_schmidt
from .ud import run_ud
from .srif import run_srif, run_srif_consider
from .comparison import run_comparison
