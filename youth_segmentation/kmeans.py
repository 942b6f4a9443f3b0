"""
kmeans.py

KMeans clustering engine for segmentation.

Lloyd's algorithm with k-means++ seeding over a pre-built feature matrix.
No feature engineering or k selection here.

Empty clusters: after each assignment step, a cluster left without members
takes the point farthest from its own centroid, drawn from a cluster that
still has at least two members. Every returned cluster is therefore
non-empty, and every centroid is the mean of its members.
"""

import logging
import time
from typing import Optional

import numpy as np

from .exceptions import ClusteringFailure
from .metrics import inertia, interpret_silhouette, silhouette
from .records import ClusterRun
from .utils import as_matrix, distances_to_centroids, log, raise_if_cancelled


DEFAULT_MAX_ITERATIONS = 100
DEFAULT_TOLERANCE = 1e-4


class KMeansEngine:
    """
    K-means clusterer. Deterministic when random_state is an int seed; a
    shared numpy Generator is advanced by every call, so repeated calls with
    the same Generator give different seedings.

    Responsibilities:
        - Seed centroids with k-means++.
        - Iterate assign / update until the centroids settle.
        - Return a ClusterRun with silhouette and inertia attached.

    Not responsible for:
        - Feature engineering or scaling.
        - Choosing k.
        - Profiling, labeling or persisting clusters.
    """

    def __init__(
        self,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        tolerance: float = DEFAULT_TOLERANCE,
        n_jobs: Optional[int] = None,
    ) -> None:
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.n_jobs = n_jobs

    def cluster(
        self,
        vectors,
        k: int,
        max_iterations: Optional[int] = None,
        tolerance: Optional[float] = None,
        random_state=None,
        cancel_event=None,
        record_ids=None,
    ) -> ClusterRun:
        """
        Cluster vectors into k groups.

        Args:
            vectors:        FeatureVectors or a 2-D float array (n, d).
            k:              Number of clusters, 1 <= k <= distinct points.
            max_iterations: Iteration cap (engine default when None).
            tolerance:      Stop once the summed centroid shift is <= this.
            random_state:   int seed, numpy Generator, or None.
            cancel_event:   Object with ``is_set()``; checked every iteration.
            record_ids:     Ids for the rows of an array input (row index
                            when omitted).

        Returns:
            ClusterRun with labels, centroids, iteration count, converged
            flag, silhouette and inertia.

        Raises:
            ValueError:         On malformed input or k < 1.
            ClusteringFailure:  On non-finite data, fewer distinct points
                                than k, or a numerical breakdown.
        """
        max_iterations = self.max_iterations if max_iterations is None else max_iterations
        tolerance = self.tolerance if tolerance is None else tolerance

        X, row_ids = as_matrix(vectors)
        self._validate(X, k, max_iterations)
        if record_ids is None:
            record_ids = row_ids
        elif len(record_ids) != X.shape[0]:
            raise ValueError(
                f"got {len(record_ids)} record ids for {X.shape[0]} vectors."
            )
        k = int(k)

        rng = np.random.default_rng(random_state)
        started = time.perf_counter()

        centroids = self._seed_kmeans_plus_plus(X, k, rng)
        labels = np.zeros(X.shape[0], dtype=np.int64)
        iterations = 0

        for iterations in range(1, max_iterations + 1):
            raise_if_cancelled(cancel_event, f"k-means iteration {iterations} (k={k})")

            labels = self._assign(X, centroids)
            labels = self._fill_empty_clusters(X, labels, centroids, k)
            new_centroids = self._update(X, labels, k)

            if not np.all(np.isfinite(new_centroids)):
                raise ClusteringFailure(
                    f"non-finite centroid after iteration {iterations} (k={k})"
                )

            shift = float(np.linalg.norm(new_centroids - centroids, axis=1).sum())
            centroids = new_centroids
            if shift <= tolerance:
                break

        converged = iterations < max_iterations
        score = silhouette(X, labels, n_jobs=self.n_jobs)
        wcss = inertia(X, labels, centroids)
        duration = time.perf_counter() - started

        log(
            f"k={k} clustered",
            logging.DEBUG,
            iterations=iterations,
            converged=converged,
            silhouette=round(score, 4),
            inertia=round(wcss, 4),
            interpretation=interpret_silhouette(score),
            duration=f"{duration:.2f}s",
        )

        return ClusterRun(
            k=k,
            centroids=centroids,
            labels=labels,
            record_ids=record_ids,
            iterations=iterations,
            converged=converged,
            silhouette=score,
            inertia=wcss,
            duration_seconds=duration,
        )

    # ------------------------------------------------------------------
    # Lloyd's algorithm steps
    # ------------------------------------------------------------------

    @staticmethod
    def _seed_kmeans_plus_plus(X: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
        """
        k-means++: first centroid uniform, each next one drawn with
        probability proportional to the squared distance to the nearest
        centroid chosen so far.
        """
        n = X.shape[0]
        chosen = [int(rng.integers(n))]
        closest_sq = np.sum((X - X[chosen[0]]) ** 2, axis=1)

        for _ in range(1, k):
            total = closest_sq.sum()
            if total > 0:
                idx = int(rng.choice(n, p=closest_sq / total))
            else:
                # every point coincides with a chosen centroid
                remaining = np.setdiff1d(np.arange(n), chosen)
                idx = int(rng.choice(remaining))
            chosen.append(idx)
            closest_sq = np.minimum(closest_sq, np.sum((X - X[idx]) ** 2, axis=1))

        return X[chosen].copy()

    @staticmethod
    def _assign(X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
        """Nearest centroid per row; argmin breaks ties to the lowest index."""
        return np.argmin(distances_to_centroids(X, centroids), axis=1).astype(np.int64)

    @staticmethod
    def _update(X: np.ndarray, labels: np.ndarray, k: int) -> np.ndarray:
        counts = np.bincount(labels, minlength=k).astype(np.float64)
        sums = np.zeros((k, X.shape[1]))
        np.add.at(sums, labels, X)
        with np.errstate(divide="ignore", invalid="ignore"):
            return sums / counts[:, None]

    @staticmethod
    def _fill_empty_clusters(
        X: np.ndarray,
        labels: np.ndarray,
        centroids: np.ndarray,
        k: int,
    ) -> np.ndarray:
        """
        Give each empty cluster the point farthest from its own centroid,
        taken from a cluster with at least two members.
        """
        counts = np.bincount(labels, minlength=k)
        empty = np.flatnonzero(counts == 0)
        if empty.size == 0:
            return labels

        labels = labels.copy()
        own_dist = np.linalg.norm(X - centroids[labels], axis=1)
        moved = np.zeros(X.shape[0], dtype=bool)

        for cluster in empty:
            donors = (counts[labels] >= 2) & ~moved
            if not donors.any():
                raise ClusteringFailure(
                    f"cluster {cluster} is empty and no cluster can donate a point"
                )
            candidate_dist = np.where(donors, own_dist, -np.inf)
            point = int(np.argmax(candidate_dist))

            counts[labels[point]] -= 1
            counts[cluster] += 1
            labels[point] = cluster
            moved[point] = True

            log(
                f"Reseeded empty cluster {cluster}",
                logging.DEBUG,
                point=point,
                distance=round(float(own_dist[point]), 6),
            )

        return labels

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(X: np.ndarray, k: int, max_iterations: int) -> None:
        """
        Sanity-check inputs before clustering.

        Raises:
            ValueError:        On malformed arguments.
            ClusteringFailure: On data that cannot support k clusters.
        """
        if X.ndim != 2:
            raise ValueError(f"features must be a 2-D array, got shape {X.shape}.")

        n_samples = X.shape[0]
        if n_samples == 0:
            raise ValueError("features array is empty (0 samples).")

        if isinstance(k, bool) or not isinstance(k, (int, np.integer)) or k < 1:
            raise ValueError(f"k must be a positive integer, got {k!r}.")

        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}.")

        if not np.all(np.isfinite(X)):
            raise ClusteringFailure("features contain NaN or infinite values.")

        distinct = np.unique(X, axis=0).shape[0]
        if k > distinct:
            raise ClusteringFailure(
                f"k ({k}) exceeds the number of distinct points ({distinct}) "
                f"among {n_samples} samples."
            )
