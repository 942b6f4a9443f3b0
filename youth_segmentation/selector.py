"""
selector.py

OptimalKSelector
----------------

Runs one trial clustering per candidate k and picks the best k:

    1. best silhouette >= silhouette_threshold      -> "silhouette"
    2. elbow on the inertia curve                   -> "elbow"
    3. best silhouette regardless of magnitude      -> "silhouette_fallback"

Datasets too small for any candidate range short-circuit to k = min_k with
method "minimum". Trials share no state, so they may run in parallel
(joblib threads, n_jobs from config).
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed

from .config import SegmentationConfig
from .exceptions import ClusteringFailure, OptimalKSelectionFailure
from .kmeans import KMeansEngine
from .metrics import interpret_silhouette
from .records import ClusterRun, KSelection
from .utils import as_matrix, log, raise_if_cancelled


def find_elbow(runs: Sequence[ClusterRun]) -> Optional[int]:
    """
    Elbow of the inertia-versus-k curve.

    First differences are the inertia drops between consecutive k; second
    differences are how much each drop shrinks. The elbow is the k just
    before the largest positive second-order drop. Needs at least three
    trials over consecutive k; returns None when a k in between is missing
    (a failed trial) or no positive second-order drop exists.
    """
    if len(runs) < 3:
        return None

    ordered = sorted(runs, key=lambda r: r.k)
    if any(b.k - a.k != 1 for a, b in zip(ordered, ordered[1:])):
        return None

    drops: List[Tuple[int, float]] = [
        (ordered[i].k, ordered[i - 1].inertia - ordered[i].inertia)
        for i in range(1, len(ordered))
    ]

    elbow_k = None
    max_change = 0.0
    for i in range(1, len(drops)):
        change = drops[i - 1][1] - drops[i][1]
        if change > max_change:
            max_change = change
            elbow_k = drops[i - 1][0]

    return elbow_k


class OptimalKSelector:
    """
    Chooses the number of clusters with a silhouette-first, elbow-fallback
    policy. Every per-k trial is kept on the returned KSelection.
    """

    def __init__(self, cfg: SegmentationConfig = None, engine: KMeansEngine = None):
        self.cfg = cfg or SegmentationConfig()
        self.engine = engine or KMeansEngine(
            max_iterations=self.cfg.max_iterations,
            tolerance=self.cfg.tolerance,
        )

    # -------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------

    def k_range(self, dataset_size: int) -> range:
        min_k, max_k = self.cfg.k_bounds(dataset_size)
        return range(min_k, max_k + 1)

    def select_k(
        self,
        vectors,
        dataset_size: Optional[int] = None,
        random_state=None,
        cancel_event=None,
    ) -> KSelection:
        """
        Try every candidate k and pick one.

        Parameters
        ----------
        vectors : sequence of FeatureVector or array of shape (n, d)
        dataset_size : int, optional
            Size used for the k range formula; defaults to len(vectors).
        random_state : int or None
            Seed from which each trial's seed is derived (config seed if None).
        cancel_event : object with is_set(), optional

        Returns
        -------
        KSelection
        """
        X, record_ids = as_matrix(vectors)
        if dataset_size is None:
            dataset_size = X.shape[0]
        if random_state is None:
            random_state = self.cfg.random_seed

        ks = list(self.k_range(dataset_size))
        log("Determining optimal k", dataset_size=dataset_size, candidates=ks)

        if not ks:
            log(
                "Dataset too small for k search",
                logging.WARNING,
                dataset_size=dataset_size,
                using_k=self.cfg.min_k,
            )
            return KSelection(
                k=self.cfg.min_k,
                method="minimum",
                reasoning="Dataset too small for analysis",
            )

        # one independent seed per trial, fixed by random_state
        seeds = np.random.default_rng(random_state).integers(0, 2**32 - 1, size=len(ks))

        outcomes = Parallel(n_jobs=self.cfg.n_jobs, prefer="threads")(
            delayed(self._trial)(X, record_ids, k, int(seed), cancel_event)
            for k, seed in zip(ks, seeds)
        )

        runs = [run for run, _ in outcomes if run is not None]
        failures = {k: error for (run, error), k in zip(outcomes, ks) if run is None}

        if not runs:
            raise OptimalKSelectionFailure(
                "Could not determine optimal K - all attempts failed", failures
            )

        selection = self._decide(runs, failures)
        log(
            "Optimal k selected",
            k=selection.k,
            method=selection.method,
            reasoning=selection.reasoning,
        )
        return selection

    # -------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------

    def _trial(self, X, record_ids, k, seed, cancel_event):
        raise_if_cancelled(cancel_event, f"k selection (k={k})")

        try:
            run = self.engine.cluster(
                X,
                k,
                record_ids=record_ids,
                random_state=seed,
                cancel_event=cancel_event,
            )
        except ClusteringFailure as exc:
            log(f"k={k} failed", logging.WARNING, k=k, error=str(exc))
            return None, str(exc)

        log(
            f"k={k} tested",
            logging.DEBUG,
            silhouette=round(run.silhouette, 4),
            inertia=round(run.inertia, 2),
        )
        return run, None

    def _decide(self, runs: List[ClusterRun], failures) -> KSelection:
        runs = sorted(runs, key=lambda r: r.k)
        # strict > keeps the smallest k on ties
        best = runs[0]
        for run in runs[1:]:
            if run.silhouette > best.silhouette:
                best = run

        elbow_k = find_elbow(runs)

        if best.silhouette >= self.cfg.silhouette_threshold:
            k = best.k
            method = "silhouette"
            reasoning = (
                f"K={k} has best Silhouette Score ({best.silhouette:.3f}): "
                f"{interpret_silhouette(best.silhouette)}"
            )
        elif elbow_k is not None:
            k = elbow_k
            method = "elbow"
            reasoning = (
                f"K={k} detected at elbow point "
                f"(balance between inertia and complexity)"
            )
        else:
            k = best.k
            method = "silhouette_fallback"
            reasoning = (
                f"K={k} has best Silhouette Score ({best.silhouette:.3f}), "
                f"but data may not cluster well"
            )

        return KSelection(
            k=k,
            method=method,
            reasoning=reasoning,
            runs=tuple(runs),
            failures=dict(failures),
        )

