"""Bottom-up hierarchical clustering over a :class:`DistanceMatrix`.

The full merge history is returned as a :class:`Dendrogram` so that any
number of clusters can be derived from it afterwards without re-running
the agglomeration.
"""

from __future__ import annotations

import logging
from typing import Literal, get_args

import numpy as np
from pydantic import BaseModel, Field, model_validator

from .errors import InvalidLinkageError, check_k
from .models import ClusterAssignment
from .table import DistanceMatrix

logger = logging.getLogger(__name__)

Linkage = Literal["complete", "single", "average", "centroid"]
LINKAGES: tuple[str, ...] = get_args(Linkage)


class Merge(BaseModel):
    """One agglomeration step.

    Cluster ids follow the scipy convention: observations are ``0..n-1``
    and the cluster created by the ``s``-th merge gets id ``n + s``.
    """

    left: int = Field(description="Smaller id of the two merged clusters")
    right: int = Field(description="Larger id of the two merged clusters")
    distance: float = Field(description="Inter-cluster distance at which the merge happened")
    size: int = Field(description="Number of observations in the merged cluster")

    model_config = {"frozen": True}


class Dendrogram(BaseModel):
    """Recorded sequence of merges produced by hierarchical clustering."""

    n_observations: int
    linkage: Linkage
    merges: list[Merge] = Field(default_factory=list)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_merge_count(self) -> "Dendrogram":
        expected = max(self.n_observations - 1, 0)
        if len(self.merges) != expected:
            raise ValueError(
                f"A dendrogram over {self.n_observations} observations needs "
                f"{expected} merges, got {len(self.merges)}"
            )
        return self

    @property
    def heights(self) -> list[float]:
        return [m.distance for m in self.merges]

    def to_linkage_matrix(self) -> np.ndarray:
        """Return the ``(n - 1, 4)`` linkage matrix used by scipy's dendrogram plots."""
        if not self.merges:
            return np.zeros((0, 4), dtype=float)
        return np.array(
            [[m.left, m.right, m.distance, m.size] for m in self.merges],
            dtype=float,
        )

    def cut(self, k: int) -> ClusterAssignment:
        return cut_dendrogram(self, k)


def _check_linkage(linkage: str) -> None:
    if linkage not in LINKAGES:
        raise InvalidLinkageError(
            f"Unsupported linkage {linkage!r}; expected one of {list(LINKAGES)}"
        )


def _updated_row(d: np.ndarray, a: int, b: int, size_a: float, size_b: float, linkage: str) -> np.ndarray:
    """Lance-Williams distances from the union of slots ``a`` and ``b`` to every slot."""
    if linkage == "single":
        return np.minimum(d[a], d[b])
    if linkage == "complete":
        return np.maximum(d[a], d[b])

    total = size_a + size_b
    row = (size_a * d[a] + size_b * d[b]) / total
    if linkage == "centroid":
        # d holds squared distances for centroid linkage
        row = row - size_a * size_b * d[a, b] / total**2
        row = np.maximum(row, 0.0)
    return row


def build_dendrogram(distances: DistanceMatrix, linkage: Linkage = "complete") -> Dendrogram:
    """Merge clusters bottom-up until a single cluster remains.

    Among candidate pairs at the same distance, the pair with the
    lexicographically smallest ``(smaller id, larger id)`` is merged first.
    """
    _check_linkage(linkage)

    d = np.array(distances.as_numpy(), dtype=float)
    n = d.shape[0]
    if linkage == "centroid":
        d = d**2

    slot_ids = list(range(n))
    sizes = np.ones(n, dtype=float)
    active = np.ones(n, dtype=bool)
    merges: list[Merge] = []

    for step in range(n - 1):
        slots = np.flatnonzero(active)
        upper_i, upper_j = np.triu_indices(slots.size, k=1)
        candidates = d[slots[upper_i], slots[upper_j]]
        best = candidates.min()

        tied = np.flatnonzero(candidates == best)
        a, b = min(
            ((int(slots[upper_i[t]]), int(slots[upper_j[t]])) for t in tied),
            key=lambda pair: tuple(sorted((slot_ids[pair[0]], slot_ids[pair[1]]))),
        )

        row = _updated_row(d, a, b, sizes[a], sizes[b], linkage)
        d[a, :] = row
        d[:, a] = row
        d[a, a] = 0.0

        left, right = sorted((slot_ids[a], slot_ids[b]))
        height = float(np.sqrt(best)) if linkage == "centroid" else float(best)
        sizes[a] += sizes[b]
        merges.append(Merge(left=left, right=right, distance=height, size=int(sizes[a])))
        logger.debug(f"Merge {step}: {left} + {right} at {height:.6g} (size {int(sizes[a])})")

        active[b] = False
        slot_ids[a] = n + step

    logger.info(f"Built {linkage}-linkage dendrogram over {n} observations")
    return Dendrogram(n_observations=n, linkage=linkage, merges=merges)


def cut_dendrogram(dendrogram: Dendrogram, k: int) -> ClusterAssignment:
    """Partition the observations into ``k`` clusters.

    The first ``n - k`` merges are applied and the last ``k - 1`` are left
    out. Labels are numbered in order of each cluster's lowest observation
    index.
    """
    n = dendrogram.n_observations
    check_k(k, n)

    members: dict[int, list[int]] = {i: [i] for i in range(n)}
    for step, merge in enumerate(dendrogram.merges[: n - k]):
        members[n + step] = members.pop(merge.left) + members.pop(merge.right)

    groups = sorted(members.values(), key=min)
    labels = [0] * n
    for label, group in enumerate(groups):
        for index in group:
            labels[index] = label
    return ClusterAssignment(labels=labels)


def cluster_hierarchical(
    distances: DistanceMatrix,
    linkage: Linkage = "complete",
    k: int = 2,
) -> ClusterAssignment:
    """Build a dendrogram with ``linkage`` and cut it into ``k`` clusters."""
    _check_linkage(linkage)
    check_k(k, distances.size)
    return cut_dendrogram(build_dendrogram(distances, linkage), k)
