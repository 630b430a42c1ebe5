"""
Solution wrapper for parametric bootstrap results.

BootstrapSolution wraps Result[BootParams] and provides the accessors
coef(), vcov(), confint(), summary(), and printing via str().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from bootstatespace.core.result import Result
from bootstatespace.bootstrap._ci import bootstrap_se, ci_labels, compute_ci
from bootstatespace.bootstrap._common import BootParams

if TYPE_CHECKING:
    from bootstatespace.bootstrap.design import BootstrapDesign


@dataclass
class BootstrapSolution:
    """
    User-facing parametric bootstrap results.

    Exposes call, args, thetahatstar, vcov,
    est, fun, method. Interval methods: "normal", "percentile", "bc".
    All accessors are pure and return copies.
    """
    _result: Result[BootParams]
    _design: 'BootstrapDesign'
    _call: str = ""
    _args: dict[str, Any] = field(default_factory=dict)

    # --- Core fields ---

    @property
    def names(self) -> tuple[str, ...]:
        """Coefficient names, in column order."""
        return self._result.params.names

    @property
    def est(self) -> NDArray[np.floating[Any]]:
        """Reference point estimate, shape (k,)."""
        return self._result.params.est.copy()

    @property
    def thetahatstar(self) -> NDArray[np.floating[Any]]:
        """Converged bootstrap estimates, shape (R_effective, k)."""
        return self._result.params.thetahatstar.copy()

    @property
    def R(self) -> int:
        """Requested number of replications."""
        return self._result.params.R

    @property
    def R_effective(self) -> int:
        """Number of converged replications used for inference."""
        return self._result.params.R_effective

    @property
    def indices(self) -> tuple[int, ...]:
        """Replication index of each thetahatstar row."""
        return self._result.params.indices

    @property
    def failed(self) -> tuple[int, ...]:
        """Indices of replications excluded for non-convergence."""
        return self._result.params.failed

    @property
    def diagnostics(self) -> dict[int, str]:
        """Failure reason per excluded replication."""
        return dict(self._result.params.diagnostics)

    @property
    def fit_details(self) -> dict[int, dict[str, Any]]:
        """
        Numeric fit diagnostics per replication index, converged or not.

        Each entry holds 'objective', 'nfev' and 'nit' as reported by the
        estimator, plus 'hessian' with hessian_flag and the objective
        'trace' with debug_flag. Replications whose fit raised have no
        entry.
        """
        return {
            index: {
                key: value.copy() if isinstance(value, np.ndarray) else value
                for key, value in details.items()
            }
            for index, details in self._result.params.fit_details.items()
        }

    @property
    def mean(self) -> NDArray[np.floating[Any]]:
        """Bootstrap mean of each coefficient."""
        return np.mean(self._result.params.thetahatstar, axis=0)

    @property
    def se(self) -> NDArray[np.floating[Any]]:
        """Bootstrap standard error of each coefficient."""
        return bootstrap_se(self._result.params.thetahatstar)

    # --- Metadata ---

    @property
    def call(self) -> str:
        """The invocation, as text."""
        return self._call

    @property
    def args(self) -> dict[str, Any]:
        """Snapshot of the arguments the run was invoked with."""
        return dict(self._args)

    @property
    def fun(self) -> str:
        """Entry point used, e.g. "PBSSMOUFixed"."""
        return self._design.fun

    @property
    def method(self) -> str:
        return "parametric"

    @property
    def model(self) -> str:
        """Model class tag: "ssm", "ou" or "var"."""
        return self._design.parameters.model

    @property
    def alpha_level(self) -> tuple[float, ...]:
        return self._design.alpha_level

    @property
    def seed(self) -> int:
        """Master seed (drawn from fresh entropy if none was given)."""
        return self._result.info['seed']

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    # --- Accessors ---

    def coef(self) -> NDArray[np.floating[Any]]:
        """Reference point estimate (the parameters the data were drawn from)."""
        return self.est

    def vcov(self) -> NDArray[np.floating[Any]]:
        """Sampling variance-covariance matrix of thetahatstar (ddof=1)."""
        return self._result.params.vcov.copy()

    def _alphas(self, alpha) -> tuple[float, ...]:
        if alpha is None:
            return self.alpha_level
        if np.isscalar(alpha):
            return (float(alpha),)
        return tuple(float(a) for a in alpha)

    def confint(
        self,
        alpha: float | None = None,
        type: str = "percentile",
    ) -> NDArray[np.floating[Any]]:
        """
        Confidence intervals, one row per coefficient.

        Args:
            alpha: Significance level; defaults to the first alpha_level
                of the run.
            type: "normal", "percentile" or "bc".

        Returns:
            NDArray of shape (k, 2): lower and upper bounds.
        """
        if alpha is None:
            alpha = self.alpha_level[0]
        params = self._result.params
        return compute_ci(params.est, params.thetahatstar, float(alpha), type)

    def summary_table(
        self,
        alpha: float | Sequence[float] | None = None,
        type: str = "percentile",
    ) -> dict[str, NDArray[np.floating[Any]]]:
        """
        Per-coefficient summary in structured form.

        Keys: 'est', 'mean', 'se', 'R', then one lower/upper pair of
        percent labels per alpha (e.g. '2.5%', '97.5%').

        Raises:
            ValueError: If two alphas give the same percent labels.
        """
        params = self._result.params
        k = len(params.names)
        table: dict[str, NDArray] = {
            'est': params.est.copy(),
            'mean': self.mean,
            'se': self.se,
            'R': np.full(k, params.R_effective, dtype=np.float64),
        }
        for a in self._alphas(alpha):
            ci = compute_ci(params.est, params.thetahatstar, a, type)
            lo_label, hi_label = ci_labels(a)
            if lo_label in table or hi_label in table:
                raise ValueError(
                    f"alpha: {a} repeats the interval labels {lo_label}, {hi_label}"
                )
            table[lo_label] = ci[:, 0]
            table[hi_label] = ci[:, 1]
        return table

    # --- Display ---

    def summary(
        self,
        alpha: float | Sequence[float] | None = None,
        type: str = "percentile",
        digits: int = 4,
    ) -> str:
        """
        Tabulated bootstrap summary.

        Produces:
            PARAMETRIC BOOTSTRAP (PBSSMOUFixed)

            Replications: 10 converged of 10 requested
            Confidence intervals: percentile

                         est       mean         se    R     2.5%    97.5%
            mu_1      5.7600     5.7031     0.2012   10   5.3711   6.0388
            ...
        """
        table = self.summary_table(alpha, type)
        columns = list(table)
        label_width = max([len(name) for name in self.names] + [8])
        col_width = max(digits + 7, 10)

        type_name = {
            "normal": "normal",
            "percentile": "percentile",
            "bc": "bias-corrected percentile",
        }[type]

        lines = [
            f"\nPARAMETRIC BOOTSTRAP ({self.fun})\n",
            f"Replications: {self.R_effective} converged of {self.R} requested",
            f"Confidence intervals: {type_name}",
            "",
        ]
        header = " " * label_width + "".join(
            f"{name:>{6 if name == 'R' else col_width}s}" for name in columns
        )
        lines.append(header)

        for i, name in enumerate(self.names):
            cells = []
            for column in columns:
                value = table[column][i]
                if column == 'R':
                    cells.append(f"{int(value):>6d}")
                else:
                    cells.append(f"{value:>{col_width}.{digits}f}")
            lines.append(f"{name:<{label_width}s}" + "".join(cells))

        if self.failed:
            lines.append("")
            lines.append(
                f"Excluded (not converged): {', '.join(map(str, self.failed))}"
            )

        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return (
            f"BootstrapSolution(fun={self.fun!r}, R={self.R}, "
            f"R_effective={self.R_effective}, k={len(self.names)}, "
            f"backend={self.backend_name!r})"
        )
