"""Seeded k-means with multiple restarts.

Every restart keeps its centroid and objective history so convergence can
be inspected after the fact.
"""

from __future__ import annotations

import logging

import numpy as np
from pydantic import BaseModel, Field

from .errors import InvalidIterationError, check_k
from .models import ClusterAssignment
from .summary import within_cluster_sum_of_squares
from .table import NumericTable

logger = logging.getLogger(__name__)


class KMeansRun(BaseModel):
    """Outcome of a single randomized initialization."""

    restart: int = Field(description="Restart index, added to the seed for this run")
    initial_indices: list[int] = Field(description="Observations used as initial centroids")
    centroid_history: list[np.ndarray] = Field(
        default_factory=list,
        description="Centroids before each assignment step, starting with the initial ones",
    )
    inertia_history: list[float] = Field(
        default_factory=list,
        description="Sum of squared distances to the assigned centroid after each assignment step",
    )
    labels: list[int] = Field(description="Final labels, numbered by first appearance")
    centroids: np.ndarray = Field(description="Mean of each final cluster, indexed by label")
    inertia: float = Field(description="Within-cluster sum of squares of the final labels")
    iterations: int = Field(description="Number of assignment steps performed")
    converged: bool = Field(description="Whether the labels stopped changing")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}


class KMeansFit(BaseModel):
    """All restarts of a k-means request and the one with least inertia."""

    k: int
    seed: int
    runs: list[KMeansRun]
    best_restart: int

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @property
    def best(self) -> KMeansRun:
        return self.runs[self.best_restart]

    @property
    def assignment(self) -> ClusterAssignment:
        return ClusterAssignment(labels=self.best.labels)

    @property
    def centroids(self) -> np.ndarray:
        return self.best.centroids

    @property
    def inertia(self) -> float:
        return self.best.inertia


def _squared_distances(x: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    diffs = x[:, None, :] - centroids[None, :, :]
    return (diffs**2).sum(axis=-1)


def _update_centroids(x: np.ndarray, labels: np.ndarray, k: int) -> np.ndarray:
    """Recompute centroids as member means; every label must have members."""
    return np.stack([x[labels == j].mean(axis=0) for j in range(k)])


def _assign(x: np.ndarray, centroids: np.ndarray) -> tuple[np.ndarray, np.ndarray, float]:
    """Assign observations to their nearest centroid, filling empty clusters.

    Ties go to the lowest centroid index. Each empty cluster, in ascending
    order, takes the observation farthest from its assigned centroid among
    clusters with more than one member (lowest index on ties), and its
    centroid moves onto that observation. Returns the labels, the possibly
    moved centroids and the sum of squared distances to assigned centroids.
    """
    n, k = x.shape[0], centroids.shape[0]
    centroids = centroids.copy()
    sq = _squared_distances(x, centroids)
    labels = np.argmin(sq, axis=1)
    nearest = sq[np.arange(n), labels]
    counts = np.bincount(labels, minlength=k)

    # with n >= k, some cluster holds more than one member while any is empty
    for j in np.flatnonzero(counts == 0):
        candidates = np.where(counts[labels] > 1, nearest, -np.inf)
        moved = int(np.argmax(candidates))
        counts[labels[moved]] -= 1
        counts[j] = 1
        labels[moved] = j
        nearest[moved] = 0.0
        centroids[j] = x[moved]
        logger.debug(f"Filled empty cluster {j} with observation {moved}")

    return labels, centroids, float(nearest.sum())


def _run_once(x: np.ndarray, k: int, max_iterations: int, seed: int, restart: int) -> KMeansRun:
    n = x.shape[0]
    rng = np.random.default_rng(seed + restart)
    initial = rng.choice(n, size=k, replace=False)

    centroids = x[initial].copy()
    centroid_history = [centroids.copy()]
    labels, centroids, inertia = _assign(x, centroids)
    inertia_history = [inertia]
    converged = False
    iterations = 1

    while iterations < max_iterations:
        centroids = _update_centroids(x, labels, k)
        centroid_history.append(centroids.copy())
        new_labels, centroids, inertia = _assign(x, centroids)
        inertia_history.append(inertia)
        iterations += 1

        if np.array_equal(new_labels, labels):
            converged = True
            break
        labels = new_labels

    final = ClusterAssignment.from_labels(labels.tolist())
    final_labels = final.as_numpy()
    final_centroids = _update_centroids(x, final_labels, k)

    if not converged:
        logger.warning(
            f"k-means restart {restart} stopped after {max_iterations} iterations without converging"
        )

    return KMeansRun(
        restart=restart,
        initial_indices=[int(i) for i in initial],
        centroid_history=centroid_history,
        inertia_history=inertia_history,
        labels=final.labels,
        centroids=final_centroids,
        inertia=within_cluster_sum_of_squares(x, final_labels),
        iterations=iterations,
        converged=converged,
    )


def fit_kmeans(
    numeric_table: NumericTable | np.ndarray,
    k: int,
    restarts: int = 10,
    max_iterations: int = 100,
    seed: int = 0,
) -> KMeansFit:
    """Run ``restarts`` seeded k-means initializations and keep the best.

    Restart ``r`` draws its ``k`` distinct initial centroids from a
    generator seeded with ``seed + r``, so identical arguments always give
    identical results. The restart with the lowest within-cluster sum of
    squares wins; ties go to the earliest restart.
    """
    if isinstance(numeric_table, NumericTable):
        x = numeric_table.as_numpy()
    else:
        x = NumericTable.from_array(numeric_table).as_numpy()

    check_k(k, x.shape[0])
    if max_iterations < 1:
        raise InvalidIterationError(f"max_iterations must be at least 1, got {max_iterations}")
    if restarts < 1:
        raise InvalidIterationError(f"restarts must be at least 1, got {restarts}")

    runs = [_run_once(x, k, max_iterations, seed, restart) for restart in range(restarts)]
    best_restart = min(range(restarts), key=lambda r: (runs[r].inertia, r))

    best = runs[best_restart]
    logger.info(
        f"k-means k={k}: best restart {best_restart}/{restarts} "
        f"inertia={best.inertia:.6g} after {best.iterations} iterations"
    )
    return KMeansFit(k=k, seed=seed, runs=runs, best_restart=best_restart)


def cluster_kmeans(
    numeric_table: NumericTable | np.ndarray,
    k: int,
    restarts: int = 10,
    max_iterations: int = 100,
    seed: int = 0,
) -> ClusterAssignment:
    """Return the k-means assignment with the lowest within-cluster sum of squares."""
    return fit_kmeans(numeric_table, k, restarts, max_iterations, seed).assignment
