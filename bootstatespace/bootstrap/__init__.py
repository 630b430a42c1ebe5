"""
Parametric bootstrap for fixed-coefficient state-space models.

Repeatedly simulates panels from one parameter set, refits the model,
and summarizes the sampling distribution of the estimates. Runs
serially, on forked workers, or on a local socket cluster.

Usage:
    from bootstatespace.bootstrap import pb_ssm_ou

    pb = pb_ssm_ou(R=1000, path=path, prefix="ou", n=5, time=50,
                   mu0=mu0, sigma0_l=sigma0_l, mu=mu, phi=phi,
                   sigma_l=sigma_l, nu=nu, lambda_=lambda_,
                   theta_l=theta_l, ncores=4, seed=42)
    print(pb)
    pb.confint(type="bc")
"""

from bootstatespace.bootstrap.solvers import (
    parametric_bootstrap,
    pb_ssm,
    pb_ssm_ou,
    pb_ssm_var,
)
from bootstatespace.bootstrap.solution import BootstrapSolution
from bootstatespace.bootstrap.design import BootstrapDesign
from bootstatespace.bootstrap.backends import (
    SerialBackend,
    ForkBackend,
    SocketClusterBackend,
    select_backend,
)

__all__ = [
    "parametric_bootstrap",
    "pb_ssm",
    "pb_ssm_ou",
    "pb_ssm_var",
    "BootstrapSolution",
    "BootstrapDesign",
    "SerialBackend",
    "ForkBackend",
    "SocketClusterBackend",
    "select_backend",
]
