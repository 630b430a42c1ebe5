"""
Core infrastructure for bootstatespace.

Shared abstractions used by the model (ssm) and bootstrap subpackages.

Key components:
    protocols: Simulator, Estimator, ExecutionBackend protocols
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    timing: Section timer
"""

from bootstatespace.core.protocols import Simulator, Estimator, ExecutionBackend
from bootstatespace.core.result import Result
from bootstatespace.core.exceptions import (
    BootStateSpaceError,
    ValidationError,
    DimensionError,
    ConfigurationError,
    NumericalError,
    ConvergenceError,
    WorkerError,
    PersistenceError,
    NonConvergenceWarning,
)

__all__ = [
    # Protocols
    "Simulator",
    "Estimator",
    "ExecutionBackend",
    # Result
    "Result",
    # Exceptions
    "BootStateSpaceError",
    "ValidationError",
    "DimensionError",
    "ConfigurationError",
    "NumericalError",
    "ConvergenceError",
    "WorkerError",
    "PersistenceError",
    "NonConvergenceWarning",
]
