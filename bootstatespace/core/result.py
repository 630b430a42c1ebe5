"""
Generic result container for bootstatespace computations.

The Result class is the envelope every solver returns. It carries the
domain payload alongside the metadata shared by all runs: timing,
backend identity, warnings.

Design decisions:
    - Generic over parameter payload P for type safety
    - info dict for flexible metadata (seed, failures, backend details)
    - timing is optional (don't burden unit tests)
    - Immutable (frozen=True) for reproducibility
"""

from dataclasses import dataclass, field
from typing import TypeVar, Generic, Any

P = TypeVar('P')  # Parameter payload type


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Immutable result envelope for a bootstrap run or a single fit.

    Type Parameters:
        P: The domain-specific parameter payload type

    Attributes:
        params: Domain-specific payload (sampling distribution, estimates)
        info: Structured metadata (seed, failed replications, diagnostics)
        timing: Execution timing breakdown, or None if not measured
        backend_name: Identifier of the backend that produced this result
        warnings: Non-fatal issues encountered during computation

    Examples:
        >>> Result(
        ...     params=BootParams(...),
        ...     info={'seed': 42, 'failed': (7,)},
        ...     timing={'total_seconds': 3.2, 'replications': 3.1},
        ...     backend_name='fork'
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    backend_name: str
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def has_warning(self, substring: str) -> bool:
        """Check if any warning contains the given substring."""
        return any(substring in w for w in self.warnings)
