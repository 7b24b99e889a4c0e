"""
config.py - Configuration and errors for neighborhood_analysis

Contains:
- BootstrapConfig: Permutation test settings
- NeighborhoodError: Base exception and its subclasses
"""

from dataclasses import asdict, dataclass

VALID_METHODS = ("pval", "zscore")


class NeighborhoodError(Exception):
    """Base exception for neighborhood_analysis errors."""

    pass


class ValidationError(NeighborhoodError, ValueError):
    """Raised when an argument has the wrong type or shape."""

    def __init__(self, argument: str, expected: str):
        self.argument = argument
        self.expected = expected
        super().__init__(f"Can't resolve `{argument}`, should be {expected}.")


class ConsistencyError(NeighborhoodError):
    """Raised when a count is routed to a combination the registry lacks."""

    pass


@dataclass
class BootstrapConfig:
    """Settings shared by every permutation test."""

    times: int = 500
    pval: float = 0.05
    method: str = "pval"
    ignore_self: bool = False

    # Reproducibility / parallelism
    seed: int | None = None
    n_jobs: int = 1
    chunk_size: int | None = None  # trials per worker task; None = auto

    def __post_init__(self):
        """Validate settings."""
        if isinstance(self.times, bool) or not isinstance(self.times, int) or self.times < 1:
            raise ValidationError("times", "a positive int")
        if isinstance(self.pval, bool) or not isinstance(self.pval, (int, float)) or not 0 < self.pval <= 1:
            raise ValidationError("pval", "a float in (0, 1]")
        if self.method not in VALID_METHODS:
            raise ValidationError("method", f"one of {VALID_METHODS}")
        if not isinstance(self.ignore_self, bool):
            raise ValidationError("ignore_self", "a bool")
        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            raise ValidationError("seed", "an int or None")
        if isinstance(self.n_jobs, bool) or not isinstance(self.n_jobs, int) or self.n_jobs == 0:
            raise ValidationError("n_jobs", "a non-zero int (-1 for all cores)")
        if self.chunk_size is not None and (
            isinstance(self.chunk_size, bool) or not isinstance(self.chunk_size, int) or self.chunk_size < 1
        ):
            raise ValidationError("chunk_size", "a positive int or None")

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)
