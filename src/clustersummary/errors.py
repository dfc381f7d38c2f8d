# src/clustersummary/errors.py
from __future__ import annotations


class ClusterSummaryError(ValueError):
    """Base class for invalid clustering requests."""


class InvalidColumnError(ClusterSummaryError):
    """A requested column is absent or holds non-numeric values."""


class MissingValueError(ClusterSummaryError):
    """A selected numeric cell is missing or not finite."""


class InvalidKError(ClusterSummaryError):
    """The requested cluster count is outside ``[1, n_observations]``."""


class InvalidIterationError(ClusterSummaryError):
    """An iteration or restart bound is not positive."""


class InvalidLinkageError(ClusterSummaryError):
    """Unknown linkage rule for hierarchical clustering."""


class InvalidAssignmentError(ClusterSummaryError):
    """Cluster labels are not contiguous or do not match the table."""


def check_k(k: int, n_observations: int) -> None:
    if k < 1 or k > n_observations:
        raise InvalidKError(
            f"Cluster count must be in [1, {n_observations}], got {k}"
        )
