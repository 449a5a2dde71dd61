class InvalidTermError(ValueError):
    """Raised when a term is not part of the fitted model's formula."""


class InvalidResponseError(ValueError):
    """Raised for unknown or overlapping increaser/decreaser responses."""


class DimensionMismatchError(ValueError):
    """Raised when a design or coefficient matrix does not fit the model."""


class RefitConvergenceError(RuntimeError):
    """
    Raised when a marginal GLM cannot be (re)fitted to a response.

    Inside the simulation loops this is recoverable: the replicate is
    recorded as missing and excluded from the aggregates.
    """


class InsufficientReplicatesError(RuntimeError):
    """Raised when no replicate of a simulation phase produced a statistic."""
