"""
metrics.py

Cluster quality metrics. Pure functions of vectors + labels (+ centroids):

    silhouette(vectors, labels)            -> float in [-1, 1]
    inertia(vectors, labels, centroids)    -> float >= 0
    interpret_silhouette(score)            -> human-readable band
    cluster_sizes(labels, k)               -> members per cluster index

Silhouette needs the full pairwise distance matrix, O(n^2) in memory and
time, which is fine for the tens-to-thousands of records this engine is
meant for.
"""

from typing import List, Optional

import numpy as np
from sklearn.metrics import pairwise_distances

from .utils import as_matrix


SILHOUETTE_BANDS = [
    (0.7, "Excellent - Strong, well-separated clusters"),
    (0.5, "Good - Clear cluster structure"),
    (0.3, "Acceptable - Reasonable clustering"),
    (0.2, "Weak - Overlapping clusters"),
]
SILHOUETTE_POOR = "Poor - Reconsider clustering approach"


def _check_lengths(X: np.ndarray, labels: np.ndarray):
    if X.ndim != 2:
        raise ValueError(f"vectors must form a 2-D array, got shape {X.shape}.")
    if X.shape[0] != labels.shape[0]:
        raise ValueError(
            f"vectors and labels must have the same length; "
            f"got {X.shape[0]} vectors and {labels.shape[0]} labels."
        )


def silhouette(vectors, labels, n_jobs: Optional[int] = None) -> float:
    """
    Mean silhouette coefficient over all points.

    For point i in cluster c(i):
        a(i) = mean distance to the other members of c(i)  (0 for a singleton)
        b(i) = min over c' != c(i) of the mean distance to members of c'
        s(i) = (b(i) - a(i)) / max(a(i), b(i)),  0 when both are 0

    Returns 0.0 when fewer than two clusters are populated.

    Parameters
    ----------
    vectors : sequence of FeatureVector or array of shape (n, d)
    labels : array-like of int, one per vector
    n_jobs : int, optional
        Passed to sklearn's pairwise_distances to split the outer loop.
    """
    X, _ = as_matrix(vectors)
    labels = np.asarray(labels)
    _check_lengths(X, labels)

    if X.shape[0] == 0:
        return 0.0

    # relabel to 0..c-1 over populated clusters only
    _, inverse = np.unique(labels, return_inverse=True)
    inverse = inverse.reshape(-1)
    n_clusters = int(inverse.max()) + 1
    if n_clusters < 2:
        return 0.0

    distances = pairwise_distances(X, metric="euclidean", n_jobs=n_jobs)
    np.fill_diagonal(distances, 0.0)

    membership = np.zeros((X.shape[0], n_clusters))
    membership[np.arange(X.shape[0]), inverse] = 1.0
    counts = membership.sum(axis=0)

    # sums[i, c]: total distance from i to the members of c
    sums = distances @ membership
    rows = np.arange(X.shape[0])

    own_counts = counts[inverse] - 1
    a = np.divide(
        sums[rows, inverse], own_counts,
        out=np.zeros(X.shape[0]), where=own_counts > 0,
    )

    mean_to_cluster = sums / counts
    mean_to_cluster[rows, inverse] = np.inf
    b = mean_to_cluster.min(axis=1)

    denom = np.maximum(a, b)
    s = np.divide(b - a, denom, out=np.zeros(X.shape[0]), where=denom > 0)

    return float(np.clip(s.mean(), -1.0, 1.0))


def inertia(vectors, labels, centroids) -> float:
    """Sum of squared distances from each vector to its assigned centroid."""
    X, _ = as_matrix(vectors)
    labels = np.asarray(labels, dtype=np.int64)
    centroids = np.asarray(centroids, dtype=np.float64)
    _check_lengths(X, labels)

    if X.shape[0] == 0:
        return 0.0
    if labels.min() < 0 or labels.max() >= centroids.shape[0]:
        raise ValueError(
            f"labels must index into {centroids.shape[0]} centroids; "
            f"got range [{labels.min()}, {labels.max()}]."
        )

    diffs = X - centroids[labels]
    return float(np.einsum("ij,ij->", diffs, diffs))


def interpret_silhouette(score: float) -> str:
    """Interpretation band for logging/reporting only."""
    for threshold, text in SILHOUETTE_BANDS:
        if score >= threshold:
            return text
    return SILHOUETTE_POOR


def cluster_sizes(labels, k: int) -> List[int]:
    """Members per cluster index 0..k-1."""
    labels = np.asarray(labels, dtype=np.int64)
    return [int(c) for c in np.bincount(labels, minlength=k)[:k]]
