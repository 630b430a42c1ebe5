"""
Tests for BootstrapDesign validation.

Every invalid configuration must be rejected before anything touches
the filesystem.
"""

import numpy as np
import pytest

from bootstatespace.core.exceptions import (
    ConfigurationError,
    DimensionError,
    ValidationError,
)
from bootstatespace.bootstrap.design import BootstrapDesign, check_run
from bootstatespace.ssm import OptimizerConfig, ParameterSet


class TestCheckRun:

    def test_valid(self):
        assert check_run(10, 0) == 10

    def test_integral_float(self):
        result = check_run(10.0, 0)
        assert result == 10
        assert isinstance(result, int)

    @pytest.mark.parametrize("R", [0, -5, 2.5, True, float("nan"), float("inf"), "10", None])
    def test_invalid_R(self, R):
        with pytest.raises(ConfigurationError) as excinfo:
            check_run(R, 0)
        assert excinfo.value.argument == "R"

    @pytest.mark.parametrize("model_type", [1, 2, "0", None])
    def test_unsupported_type(self, model_type):
        with pytest.raises(ConfigurationError, match="supports type = 0") as excinfo:
            check_run(10, model_type)
        assert excinfo.value.argument == "type"

    def test_R_checked_before_type(self):
        with pytest.raises(ConfigurationError) as excinfo:
            check_run(0, 1)
        assert excinfo.value.argument == "R"


class TestForBootstrap:

    def _design(self, parameters, tmp_path, **kwargs):
        options = dict(R=10, path=tmp_path, prefix="pb", n=5, time=20)
        options.update(kwargs)
        return BootstrapDesign.for_bootstrap(parameters, **options)

    def test_defaults(self, ou_parameters, tmp_path):
        design = self._design(ou_parameters, tmp_path)
        assert design.R == 10
        assert design.prefix == "pb"
        assert design.simulation.n == 5
        assert design.simulation.time == 20
        assert design.simulation.delta_t == 1.0
        assert design.alpha_level == (0.05,)
        assert design.optimizer == OptimizerConfig()
        assert design.ncores is None
        assert design.seed is None
        assert design.clean is True
        assert design.fun == "PBSSMOUFixed"

    @pytest.mark.parametrize("fixture, fun", [
        ("ssm_parameters", "PBSSMFixed"),
        ("var_parameters", "PBSSMVARFixed"),
    ])
    def test_fun_from_model(self, request, tmp_path, fixture, fun):
        design = self._design(request.getfixturevalue(fixture), tmp_path)
        assert design.fun == fun

    def test_alpha_sequence(self, var_parameters, tmp_path):
        design = self._design(var_parameters, tmp_path, alpha_level=[0.05, 0.01])
        assert design.alpha_level == (0.05, 0.01)

    @pytest.mark.parametrize("alpha", [0.0, 1.0, [0.05, 1.5], []])
    def test_alpha_invalid(self, var_parameters, tmp_path, alpha):
        with pytest.raises(ValidationError, match="alpha_level"):
            self._design(var_parameters, tmp_path, alpha_level=alpha)

    def test_validation_does_not_touch_filesystem(self, var_parameters, tmp_path):
        target = tmp_path / "not_yet"
        self._design(var_parameters, target)
        assert not target.exists()

    def test_R_zero(self, var_parameters, tmp_path):
        with pytest.raises(ConfigurationError):
            self._design(var_parameters, tmp_path, R=0)

    def test_time_at_least_two(self, var_parameters, tmp_path):
        with pytest.raises(ValidationError, match="time"):
            self._design(var_parameters, tmp_path, time=1)

    def test_n_positive(self, var_parameters, tmp_path):
        with pytest.raises(ValidationError, match="n"):
            self._design(var_parameters, tmp_path, n=0)

    @pytest.mark.parametrize("delta_t", [0.0, -0.1, float("nan")])
    def test_delta_t_positive(self, var_parameters, tmp_path, delta_t):
        with pytest.raises(ValidationError, match="delta_t"):
            self._design(var_parameters, tmp_path, delta_t=delta_t)

    @pytest.mark.parametrize("prefix", ["", "a/b", 3])
    def test_prefix(self, var_parameters, tmp_path, prefix):
        with pytest.raises(ValidationError, match="prefix"):
            self._design(var_parameters, tmp_path, prefix=prefix)

    def test_path_type(self, var_parameters):
        with pytest.raises(ValidationError, match="path"):
            BootstrapDesign.for_bootstrap(var_parameters, 10, 42, "pb", 5, 20)

    def test_parameters_type(self, tmp_path):
        with pytest.raises(ValidationError, match="ParameterSet"):
            BootstrapDesign.for_bootstrap({"mu0": 0}, 10, tmp_path, "pb", 5, 20)

    def test_seed_non_negative(self, var_parameters, tmp_path):
        with pytest.raises(ValidationError, match="seed"):
            self._design(var_parameters, tmp_path, seed=-1)

    def test_ncores(self, var_parameters, tmp_path):
        assert self._design(var_parameters, tmp_path, ncores=4).ncores == 4
        with pytest.raises(ValidationError, match="ncores"):
            self._design(var_parameters, tmp_path, ncores=0)


class TestCovariates:

    @pytest.fixture
    def gamma_parameters(self):
        return ParameterSet.for_var(
            [0.0], [[1.0]], [0.0], [[0.5]], [[1.0]], gamma=[[0.3]],
        )

    def test_two_dimensional_x_expanded(self, gamma_parameters, tmp_path):
        design = BootstrapDesign.for_bootstrap(
            gamma_parameters, 5, tmp_path, "pb", 3, 4, x=np.ones((3, 4)),
        )
        assert design.simulation.x.shape == (3, 4, 1)
        assert not design.simulation.x.flags.writeable

    def test_x_shape(self, gamma_parameters, tmp_path):
        with pytest.raises(DimensionError, match="x"):
            BootstrapDesign.for_bootstrap(
                gamma_parameters, 5, tmp_path, "pb", 3, 4, x=np.ones((3, 5, 1)),
            )

    def test_x_columns_match_effects(self, gamma_parameters, tmp_path):
        with pytest.raises(DimensionError, match="covariate"):
            BootstrapDesign.for_bootstrap(
                gamma_parameters, 5, tmp_path, "pb", 3, 4, x=np.ones((3, 4, 2)),
            )

    def test_x_required(self, gamma_parameters, tmp_path):
        with pytest.raises(DimensionError, match="x is None"):
            BootstrapDesign.for_bootstrap(gamma_parameters, 5, tmp_path, "pb", 3, 4)

    def test_x_finite(self, gamma_parameters, tmp_path):
        x = np.ones((3, 4, 1))
        x[0, 0, 0] = np.nan
        with pytest.raises(ValidationError, match="non-finite"):
            BootstrapDesign.for_bootstrap(gamma_parameters, 5, tmp_path, "pb", 3, 4, x=x)

    def test_x_without_effects(self, var_parameters, tmp_path):
        with pytest.raises(DimensionError, match="neither gamma nor kappa"):
            BootstrapDesign.for_bootstrap(
                var_parameters, 5, tmp_path, "pb", 3, 4, x=np.ones((3, 4, 1)),
            )
