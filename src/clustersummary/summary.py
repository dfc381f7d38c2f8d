from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
from pydantic import BaseModel, Field

from .errors import InvalidAssignmentError
from .models import ClusterAssignment
from .table import ObservationTable, select_numeric

logger = logging.getLogger(__name__)


class ColumnSummary(BaseModel):
    """Mean and sample standard deviation of one column within a cluster."""

    mean: float
    std: float = Field(description="Sample standard deviation; 0.0 for a single member")

    model_config = {"frozen": True}


class ClusterSummary(BaseModel):
    """Descriptive statistics for the members of one cluster."""

    label: int = Field(description="Cluster label")
    count: int = Field(description="Number of member observations")
    columns: dict[str, ColumnSummary] = Field(
        default_factory=dict,
        description="Per-column statistics keyed by column name",
    )

    model_config = {"frozen": True}

    def mean(self, column: str) -> float:
        return self.columns[column].mean

    def std(self, column: str) -> float:
        return self.columns[column].std


def within_cluster_sum_of_squares(values: np.ndarray, labels: np.ndarray | Sequence[int]) -> float:
    """Sum of squared distances of each row to its cluster mean."""
    x = np.asarray(values, dtype=float)
    labels = np.asarray(labels, dtype=int)
    total = 0.0
    for label in np.unique(labels):
        members = x[labels == label]
        total += float(((members - members.mean(axis=0)) ** 2).sum())
    return total


def total_sum_of_squares(values: np.ndarray) -> float:
    """Sum of squared distances of each row to the grand mean."""
    x = np.asarray(values, dtype=float)
    if x.shape[0] == 0:
        return 0.0
    return float(((x - x.mean(axis=0)) ** 2).sum())


def summarize(
    table: ObservationTable,
    assignment: ClusterAssignment,
    numeric_columns: Sequence[str],
) -> list[ClusterSummary]:
    """Compute count, mean and sample std per cluster for ``numeric_columns``.

    Returns one :class:`ClusterSummary` per label present in ``assignment``,
    ordered by label ascending. Summaries are reported in the units of the
    original table.
    """
    numeric = select_numeric(table, numeric_columns)
    if len(assignment) != numeric.n_observations:
        raise InvalidAssignmentError(
            f"Assignment covers {len(assignment)} observations, table has {numeric.n_observations}"
        )

    x = numeric.as_numpy()
    labels = assignment.as_numpy()

    summaries: list[ClusterSummary] = []
    for label in sorted(set(assignment.labels)):
        members = x[labels == label]
        count = int(members.shape[0])
        means = members.mean(axis=0)
        stds = members.std(axis=0, ddof=1) if count > 1 else np.zeros(members.shape[1])

        summaries.append(
            ClusterSummary(
                label=label,
                count=count,
                columns={
                    name: ColumnSummary(mean=float(means[j]), std=float(stds[j]))
                    for j, name in enumerate(numeric.columns)
                },
            )
        )

    logger.debug(f"Summarized {len(summaries)} clusters over columns {numeric.columns}")
    return summaries
