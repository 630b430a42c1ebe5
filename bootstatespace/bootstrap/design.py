"""
Design class for the parametric bootstrap.

BootstrapDesign encapsulates every input of a run: the generating
parameters, panel dimensions, optimizer configuration, storage location
and execution settings. Immutable, validated at construction, and
validated without touching the filesystem.
"""

from __future__ import annotations

import numbers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import numpy as np

from bootstatespace.core.exceptions import (
    ConfigurationError,
    DimensionError,
    ValidationError,
)
from bootstatespace.core.validation import check_positive_int, check_probability
from bootstatespace.bootstrap._common import SimulationConfig
from bootstatespace.ssm.design import OptimizerConfig, ParameterSet

# Model-type discriminators currently supported (fixed parameters)
SUPPORTED_TYPES = (0,)

FUN_NAMES = {
    "ssm": "PBSSMFixed",
    "ou": "PBSSMOUFixed",
    "var": "PBSSMVARFixed",
}


def check_run(R: Any, type: Any) -> int:
    """
    Validate the replication count and the model-type discriminator.

    Returns:
        R as a Python int

    Raises:
        ConfigurationError: If R is not a positive integer or type is
            not supported.
    """
    if (
        isinstance(R, bool)
        or not isinstance(R, numbers.Real)
        or not isinstance(R, numbers.Integral) and (
            not np.isfinite(R) or int(R) != R
        )
    ):
        raise ConfigurationError(
            f"R must be a positive integer, got {R!r}", argument="R", value=R,
        )
    if R <= 0:
        raise ConfigurationError(
            f"R must be a positive integer, got {R}", argument="R", value=R,
        )
    if type not in SUPPORTED_TYPES:
        raise ConfigurationError(
            f"The function currently supports type = 0, got type = {type!r}",
            argument="type",
            value=type,
        )
    return int(R)


def _alpha_tuple(alpha_level) -> tuple[float, ...]:
    if isinstance(alpha_level, numbers.Real):
        values = [alpha_level]
    else:
        values = list(np.ravel(np.asarray(alpha_level, dtype=np.float64)))
    if not values:
        raise ValidationError("alpha_level: must contain at least one value")
    return tuple(check_probability(a, "alpha_level") for a in values)


@dataclass(frozen=True, eq=False)
class BootstrapDesign:
    """
    Frozen design for a parametric bootstrap run.

    Attributes:
        parameters: Generating (hypothesized) parameters.
        R: Number of bootstrap replications.
        path: Directory holding the per-replication artifacts.
        prefix: Filename prefix of the artifacts.
        simulation: Panel dimensions and covariates.
        optimizer: Stopping criteria and flags of every fit.
        alpha_level: Significance level(s) for intervals.
        ncores: Requested worker count (None for serial).
        seed: Master random seed, or None for fresh entropy.
        clean: Delete the artifacts after a successful run.
        type: Model-type discriminator; only 0 (fixed parameters).
        fun: Name of the entry point, e.g. "PBSSMOUFixed".
    """
    parameters: ParameterSet
    R: int
    path: Path
    prefix: str
    simulation: SimulationConfig
    optimizer: OptimizerConfig
    alpha_level: tuple[float, ...]
    ncores: int | None
    seed: int | None
    clean: bool
    type: int
    fun: str

    @classmethod
    def for_bootstrap(
        cls,
        parameters: ParameterSet,
        R: int,
        path,
        prefix: str,
        n: int,
        time: int,
        *,
        delta_t: float = 1.0,
        x=None,
        type: int = 0,
        alpha_level: float | Sequence[float] = 0.05,
        optimizer: OptimizerConfig | None = None,
        ncores: int | None = None,
        seed: int | None = None,
        clean: bool = True,
        fun: str | None = None,
    ) -> BootstrapDesign:
        """
        Create a bootstrap design with validation.

        Returns:
            Validated BootstrapDesign.

        Raises:
            ConfigurationError: If R or type is invalid.
            ValidationError / DimensionError: If any other input is invalid.
        """
        R = check_run(R, type)

        if not isinstance(parameters, ParameterSet):
            raise ValidationError(
                f"parameters: expected ParameterSet, got {parameters.__class__.__name__}"
            )
        if not isinstance(path, (str, os.PathLike)):
            raise ValidationError(
                f"path: expected a str or path-like, got {path.__class__.__name__}"
            )
        if not isinstance(prefix, str) or not prefix:
            raise ValidationError(
                f"prefix: expected a non-empty string, got {prefix!r}"
            )
        if os.sep in prefix or (os.altsep and os.altsep in prefix):
            raise ValidationError(
                f"prefix: must not contain a path separator, got {prefix!r}"
            )

        n = check_positive_int(n, "n")
        time = check_positive_int(time, "time", minimum=2)
        delta_t = float(delta_t)
        if not np.isfinite(delta_t) or delta_t <= 0:
            raise ValidationError(f"delta_t: must be positive, got {delta_t}")

        x_arr = None
        if x is not None and not parameters.j:
            raise DimensionError(
                "x: covariates were given but neither gamma nor kappa is set"
            )
        if x is not None:
            x_arr = np.array(x, dtype=np.float64)
            if x_arr.ndim == 2:
                x_arr = x_arr[:, :, None]
            if x_arr.shape[:2] != (n, time) or x_arr.ndim != 3:
                raise DimensionError(
                    f"x: expected shape ({n}, {time}, j), got {x_arr.shape}"
                )
            if x_arr.shape[2] != parameters.j:
                raise DimensionError(
                    f"x: expected {parameters.j} covariate(s) to match "
                    f"gamma/kappa, got {x_arr.shape[2]}"
                )
            if not np.all(np.isfinite(x_arr)):
                raise ValidationError("x: contains non-finite values")
            x_arr.setflags(write=False)
        elif parameters.j:
            raise DimensionError(
                f"x: covariate effects with {parameters.j} column(s) are set "
                f"but x is None"
            )

        if ncores is not None:
            ncores = check_positive_int(ncores, "ncores")
        if seed is not None:
            seed = check_positive_int(seed, "seed", minimum=0)

        if optimizer is None:
            optimizer = OptimizerConfig()

        return cls(
            parameters=parameters,
            R=R,
            path=Path(path),
            prefix=prefix,
            simulation=SimulationConfig(n=n, time=time, delta_t=delta_t, x=x_arr),
            optimizer=optimizer,
            alpha_level=_alpha_tuple(alpha_level),
            ncores=ncores,
            seed=seed,
            clean=bool(clean),
            type=int(type),
            fun=fun or FUN_NAMES[parameters.model],
        )
