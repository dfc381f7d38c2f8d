# src/clustersummary/models.py
from __future__ import annotations

from typing import Any, Sequence

import numpy as np
from pydantic import BaseModel, Field, field_validator

from .errors import InvalidAssignmentError


class ClusterAssignment(BaseModel):
    """Cluster label for every observation, contiguous from 0."""

    labels: list[int] = Field(default_factory=list, description="Cluster label per observation")

    model_config = {"frozen": True}

    @field_validator("labels")
    @classmethod
    def _check_contiguous(cls, labels: list[int]) -> list[int]:
        if not labels:
            return labels
        used = set(labels)
        if used != set(range(len(used))):
            raise InvalidAssignmentError(
                f"Cluster labels must be contiguous from 0, got {sorted(used)}"
            )
        return labels

    @classmethod
    def from_labels(cls, labels: Sequence[Any]) -> "ClusterAssignment":
        """Renumber arbitrary labels in order of first appearance."""
        mapping: dict[Any, int] = {}
        renumbered = [mapping.setdefault(label, len(mapping)) for label in labels]
        return cls(labels=renumbered)

    def __len__(self) -> int:
        return len(self.labels)

    @property
    def n_clusters(self) -> int:
        return len(set(self.labels))

    def members(self, label: int) -> list[int]:
        """Observation indices assigned to ``label``."""
        return [i for i, lab in enumerate(self.labels) if lab == label]

    def sizes(self) -> dict[int, int]:
        """Number of observations per label, ascending by label."""
        counts: dict[int, int] = {}
        for label in sorted(self.labels):
            counts[label] = counts.get(label, 0) + 1
        return counts

    def as_numpy(self) -> np.ndarray:
        return np.asarray(self.labels, dtype=int)


class ClusterMetrics(BaseModel):
    """Quality metrics for a clustering run."""

    within_ss: float = Field(default=0.0, description="Total within-cluster sum of squares")
    between_ss: float = Field(default=0.0, description="Between-cluster sum of squares")
    total_ss: float = Field(default=0.0, description="Total sum of squares about the grand mean")
    silhouette_score: float | None = Field(
        default=None,
        description="Euclidean silhouette coefficient, None when undefined",
    )

    @property
    def between_total_ratio(self) -> float | None:
        """Share of total variance explained by the clustering."""
        if self.total_ss <= 0.0:
            return None
        return self.between_ss / self.total_ss
