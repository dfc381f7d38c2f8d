"""Clustering and per-cluster summaries for tables of numeric observations.

Observations are projected onto numeric columns, grouped with either
bottom-up hierarchical merging or seeded k-means, and each resulting
cluster is described by its size, means and standard deviations.
"""

# src/clustersummary/__init__.py
from clustersummary.clustering import ClusterConfig, ClusteringResult, ClusterSummarizer
from clustersummary.errors import (
    ClusterSummaryError,
    InvalidAssignmentError,
    InvalidColumnError,
    InvalidIterationError,
    InvalidKError,
    InvalidLinkageError,
    MissingValueError,
)
from clustersummary.hierarchical import (
    Dendrogram,
    Merge,
    build_dendrogram,
    cluster_hierarchical,
    cut_dendrogram,
)
from clustersummary.kmeans import KMeansFit, KMeansRun, cluster_kmeans, fit_kmeans
from clustersummary.models import ClusterAssignment, ClusterMetrics
from clustersummary.summary import ClusterSummary, ColumnSummary, summarize
from clustersummary.table import (
    DistanceMatrix,
    NumericTable,
    ObservationTable,
    compute_distances,
    select_numeric,
)

__all__ = [
    "ObservationTable",
    "NumericTable",
    "DistanceMatrix",
    "select_numeric",
    "compute_distances",
    "Merge",
    "Dendrogram",
    "build_dendrogram",
    "cut_dendrogram",
    "cluster_hierarchical",
    "KMeansRun",
    "KMeansFit",
    "fit_kmeans",
    "cluster_kmeans",
    "ClusterAssignment",
    "ClusterMetrics",
    "ColumnSummary",
    "ClusterSummary",
    "summarize",
    "ClusterConfig",
    "ClusteringResult",
    "ClusterSummarizer",
    "ClusterSummaryError",
    "InvalidColumnError",
    "MissingValueError",
    "InvalidKError",
    "InvalidIterationError",
    "InvalidLinkageError",
    "InvalidAssignmentError",
]
