"""
bootstatespace: parametric bootstrap for state-space models.

Simulates panel data from a fixed-coefficient state-space model (discrete
SSM, Ornstein-Uhlenbeck, VAR), refits the model to each simulated panel,
and provides normal, percentile and bias-corrected confidence intervals
from the resulting sampling distribution.

Submodules:
    ssm: Parameter sets, simulator, Kalman-filter ML estimator
    bootstrap: Replication engine, execution backends, results
"""

__version__ = "0.1.0"

from bootstatespace import ssm
from bootstatespace import bootstrap
from bootstatespace.bootstrap import pb_ssm, pb_ssm_ou, pb_ssm_var

__all__ = [
    "__version__",
    "ssm",
    "bootstrap",
    "pb_ssm",
    "pb_ssm_ou",
    "pb_ssm_var",
]
