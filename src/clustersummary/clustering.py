from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

from .errors import check_k
from .hierarchical import Dendrogram, Linkage, build_dendrogram, cut_dendrogram
from .kmeans import KMeansFit, fit_kmeans
from .models import ClusterAssignment, ClusterMetrics
from .summary import ClusterSummary, summarize, total_sum_of_squares, within_cluster_sum_of_squares
from .table import NumericTable, ObservationTable, compute_distances, select_numeric

logger = logging.getLogger(__name__)


class ClusterConfig(BaseModel):
    """Configuration for clustering operations.

    Parameters
    ----------
    method:
        Grouping strategy, ``"kmeans"`` or ``"hierarchical"``.
    n_clusters:
        Desired number of clusters. If ``None``, a simple heuristic based on
        the number of observations is used.
    columns:
        Numeric columns to cluster on. ``None`` selects every numeric
        column of the table.
    linkage:
        Inter-cluster distance rule for hierarchical clustering.
    restarts, max_iterations, seed:
        k-means controls. Restart ``r`` is seeded with ``seed + r``.
    standardize:
        If ``True``, columns are scaled to zero mean and unit sample
        standard deviation before distances are computed. Summaries are
        always reported in the original units.
    """

    method: Literal["kmeans", "hierarchical"] = Field(
        default="kmeans", description="Clustering algorithm to use"
    )
    n_clusters: int | None = Field(
        default=None,
        ge=1,
        description="If set, use this number of clusters. If None, an internal heuristic is used.",
    )
    columns: list[str] | None = Field(
        default=None, description="Numeric columns to cluster on; None means all numeric columns"
    )
    linkage: Linkage = Field(default="complete", description="Hierarchical linkage rule")
    restarts: int = Field(default=10, ge=1, description="Number of k-means initializations")
    max_iterations: int = Field(default=100, ge=1, description="Assignment steps per k-means restart")
    seed: int = Field(default=0, ge=0, description="Base seed for k-means initialization")
    standardize: bool = Field(default=False, description="Z-score columns before clustering")


class ClusteringResult(BaseModel):
    """Result of a clustering run."""

    method: str
    columns: list[str] = Field(default_factory=list, description="Columns clustered on")
    n_clusters: int
    assignment: ClusterAssignment = Field(default_factory=ClusterAssignment)
    summaries: list[ClusterSummary] = Field(default_factory=list)
    metrics: ClusterMetrics = Field(default_factory=ClusterMetrics)
    dendrogram: Dendrogram | None = Field(default=None, description="Merge history (hierarchical only)")
    kmeans: KMeansFit | None = Field(default=None, description="Restart details (k-means only)")

    model_config = {"arbitrary_types_allowed": True}

    def summary_for(self, label: int) -> ClusterSummary:
        for summary in self.summaries:
            if summary.label == label:
                return summary
        raise KeyError(f"No cluster with label {label}")


class ClusterSummarizer(BaseModel):
    """High-level clustering façade for :class:`ObservationTable` instances."""

    config: ClusterConfig = Field(default_factory=ClusterConfig)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, table: ObservationTable) -> ClusteringResult:
        """Cluster ``table`` according to this config and summarize each cluster.

        All parameters are validated before any distance or clustering work
        starts; an invalid request raises and produces no partial result.
        """
        columns = self.config.columns if self.config.columns is not None else table.numeric_columns
        n_samples = len(table)

        if n_samples == 0 and self.config.n_clusters is None:
            return ClusteringResult(method=self.config.method, columns=list(columns), n_clusters=0)

        n_clusters = self._choose_n_clusters(n_samples)
        numeric = select_numeric(table, columns)

        features = numeric.standardized() if self.config.standardize else numeric

        dendrogram: Dendrogram | None = None
        kmeans: KMeansFit | None = None
        if self.config.method == "kmeans":
            kmeans = fit_kmeans(
                features,
                n_clusters,
                restarts=self.config.restarts,
                max_iterations=self.config.max_iterations,
                seed=self.config.seed,
            )
            assignment = kmeans.assignment
        elif self.config.method == "hierarchical":
            dendrogram = build_dendrogram(compute_distances(features), self.config.linkage)
            assignment = cut_dendrogram(dendrogram, n_clusters)
        else:  # pragma: no cover - validated by typing
            raise ValueError(f"Unsupported clustering method: {self.config.method!r}")

        summaries = summarize(table, assignment, numeric.columns)
        metrics = self._compute_metrics(features, assignment)

        logger.info(
            f"{self.config.method} clustering of {n_samples} observations into "
            f"{assignment.n_clusters} clusters, sizes {assignment.sizes()}"
        )
        return ClusteringResult(
            method=self.config.method,
            columns=numeric.columns,
            n_clusters=assignment.n_clusters,
            assignment=assignment,
            summaries=summaries,
            metrics=metrics,
            dendrogram=dendrogram,
            kmeans=kmeans,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _choose_n_clusters(self, n_samples: int) -> int:
        if self.config.n_clusters is not None:
            check_k(self.config.n_clusters, n_samples)
            return self.config.n_clusters

        heuristic = max(2, min(5, n_samples // 4))
        return max(1, min(heuristic, n_samples))

    def _compute_metrics(self, features: NumericTable, assignment: ClusterAssignment) -> ClusterMetrics:
        x = features.as_numpy()
        labels = assignment.as_numpy()

        total_ss = total_sum_of_squares(x)
        within_ss = within_cluster_sum_of_squares(x, labels)
        metrics = ClusterMetrics(
            within_ss=within_ss,
            between_ss=max(total_ss - within_ss, 0.0),
            total_ss=total_ss,
        )

        n_labels = assignment.n_clusters
        if 2 <= n_labels <= x.shape[0] - 1:
            from sklearn.metrics import silhouette_score

            metrics.silhouette_score = float(silhouette_score(x, labels, metric="euclidean"))

        return metrics
