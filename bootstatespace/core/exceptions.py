"""
Exception hierarchy for bootstatespace.

All exceptions inherit from BootStateSpaceError to allow catching any
library-specific error. Domain-specific exceptions should inherit from
the appropriate base class here.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""


class BootStateSpaceError(Exception):
    """Base exception for all bootstatespace errors."""
    pass


class ValidationError(BootStateSpaceError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when parameter matrices have the wrong shape or disagree
    with each other (e.g. beta is 3x3 but mu0 has length 2).
    """
    pass


class ConfigurationError(ValidationError):
    """
    A run was configured in a way that cannot be executed.

    Raised before any work begins (and before any file is written) for
    a non-positive replication count or an unsupported model type.

    Attributes:
        argument: Name of the offending argument
        value: The value that was rejected
    """

    def __init__(
        self,
        message: str,
        argument: str | None = None,
        value: object = None,
    ):
        super().__init__(message)
        self.argument = argument
        self.value = value


class NumericalError(BootStateSpaceError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during computation.
    """
    pass


class ConvergenceError(NumericalError):
    """
    Iterative algorithm failed to converge.

    Raised by the estimator when optimization cannot produce a usable
    estimate, and by the orchestrator when no replication converged.

    Attributes:
        iterations: Number of iterations (or replications) completed
        reason: Why convergence failed (e.g. 'maxeval', 'all_failed')
    """

    def __init__(
        self,
        message: str,
        iterations: int = 0,
        reason: str | None = None,
    ):
        super().__init__(message)
        self.iterations = iterations
        self.reason = reason


class WorkerError(BootStateSpaceError):
    """
    A parallel worker crashed or became unreachable.

    Fatal for the whole run: silently dropping a worker's replications
    would bias the sampling distribution.

    Attributes:
        backend: Name of the execution backend
        indices: Replication indices that were assigned but not returned
    """

    def __init__(
        self,
        message: str,
        backend: str | None = None,
        indices: tuple[int, ...] = (),
    ):
        super().__init__(message)
        self.backend = backend
        self.indices = indices


class PersistenceError(BootStateSpaceError):
    """
    A replication artifact could not be written or read.

    Attributes:
        path: The file or directory involved
    """

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class NonConvergenceWarning(RuntimeWarning):
    """Some bootstrap replications failed and were excluded."""
    pass
