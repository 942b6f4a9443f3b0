"""
pipeline.py

SegmentationPipeline
--------------------

Provides TWO entry points:

1. run(records)
   - Segments a sequence of SurveyRecords (or plain mappings)

2. run_dataframe(df)
   - Segments the rows of a DataFrame (CSV mode)

Both then:
    - Gate the dataset on completeness and size
    - Build weighted feature vectors
    - Search k and keep every trial
    - Take the selected k's run as the final clustering
    - Package a PipelineResult for profiling / persistence collaborators

submit(records) wraps run() in a SegmentationTask (future + cancel signal)
for callers that must not block.
"""

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

import pandas as pd

from .config import SegmentationConfig
from .exceptions import (
    DataQualityError,
    FeatureExtractionError,
    InsufficientDataError,
    SegmentationError,
)
from .features import FeatureEngineer
from .kmeans import KMeansEngine
from .metrics import interpret_silhouette
from .quality import DataQualityGate
from .records import KSelection, PipelineResult, SurveyRecord
from .selector import OptimalKSelector
from .utils import log, raise_if_cancelled


class SegmentationPipeline:
    """
    Orchestrates the complete segmentation run.

    Supports:
        - run(records)        -> blocking, returns PipelineResult
        - run_dataframe(df)   -> DataFrame rows -> run()
        - submit(records)     -> SegmentationTask running in a worker thread
    """

    def __init__(self, cfg: SegmentationConfig = None):
        self.cfg = cfg or SegmentationConfig()

        # Core components
        self.quality_gate = DataQualityGate(self.cfg)
        self.feature_engineer = FeatureEngineer(self.cfg)
        self.engine = KMeansEngine(
            max_iterations=self.cfg.max_iterations,
            tolerance=self.cfg.tolerance,
        )
        self.selector = OptimalKSelector(self.cfg, engine=self.engine)

    # -------------------------------------------------------------------------
    # PUBLIC API
    # -------------------------------------------------------------------------

    def run(
        self,
        records: Sequence[Any],
        context: Optional[Mapping[str, Any]] = None,
        cancel_event=None,
        random_state=None,
    ) -> PipelineResult:
        """
        Run the whole pipeline.

        Parameters
        ----------
        records : sequence of SurveyRecord or mappings
        context : mapping, optional
            Caller scope (e.g. municipality / barangay / batch); echoed in the
            result, never used by the algorithm.
        cancel_event : object with is_set(), optional
        random_state : int, optional
            Seed for k-means++ (config seed when None).

        Raises
        ------
        InsufficientDataError, DataQualityError, FeatureExtractionError,
        OptimalKSelectionFailure, ClusteringFailure, SegmentationCancelled
        """
        context = dict(context or {})
        if random_state is None:
            random_state = self.cfg.random_seed
        started = time.perf_counter()

        log("==== YOUTH SEGMENTATION PIPELINE START ====", context=context)

        try:
            result = self._run_pipeline(records, context, cancel_event, random_state, started)
        except SegmentationError as exc:
            log("PIPELINE FAILED", logging.ERROR, error=str(exc), error_type=type(exc).__name__)
            raise

        log("==== YOUTH SEGMENTATION PIPELINE COMPLETE ====")
        return result

    def run_dataframe(self, df: pd.DataFrame, **kwargs) -> PipelineResult:
        """
        Run from a DataFrame (CSV mode). Column names may be the record
        attribute names or the survey table names.
        """
        log(f"Converting {len(df)} DataFrame rows to survey records...")
        return self.run(df.to_dict(orient="records"), **kwargs)

    def submit(
        self,
        records: Sequence[Any],
        executor: Optional[Executor] = None,
        **kwargs,
    ) -> "SegmentationTask":
        """
        Start run() in the background.

        Uses a private single-worker executor when none is given; it shuts
        down once the task finishes.
        """
        cancel_event = threading.Event()
        owned = executor is None
        if owned:
            executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="segmentation")

        future = executor.submit(self.run, records, cancel_event=cancel_event, **kwargs)
        if owned:
            future.add_done_callback(lambda _: executor.shutdown(wait=False))
        return SegmentationTask(future, cancel_event)

    # -------------------------------------------------------------------------
    # INTERNAL PIPELINE
    # -------------------------------------------------------------------------

    def _run_pipeline(self, records, context, cancel_event, random_state, started):

        # ---------------------------------------------------------
        # 1. Data quality gate
        # ---------------------------------------------------------
        records = self._coerce_records(records)
        report = self.quality_gate.assess(records)

        if report.total_records < self.cfg.min_records:
            raise InsufficientDataError(
                f"Insufficient data: {report.total_records} responses "
                f"(minimum: {self.cfg.min_records} for clustering)",
                report,
            )
        if report.duplicate_ids:
            raise DataQualityError(
                f"Data quality check failed: record ids must be unique, "
                f"{len(report.duplicate_ids)} are shared "
                f"(e.g. {report.duplicate_ids[0]!r})",
                report,
            )
        if not report.can_proceed:
            raise DataQualityError(
                f"Data quality check failed: {report.recommendation}", report
            )

        raise_if_cancelled(cancel_event, "feature extraction")

        # ---------------------------------------------------------
        # 2. Feature engineering
        # ---------------------------------------------------------
        vectors, metadata = self.feature_engineer.extract(records)

        if not vectors:
            raise FeatureExtractionError(
                "Feature extraction failed: no valid features generated"
            )
        if len(vectors) < self.cfg.min_records:
            raise InsufficientDataError(
                f"Insufficient data: {len(vectors)} usable records after feature "
                f"extraction (minimum: {self.cfg.min_records} for clustering)",
                report,
            )

        # ---------------------------------------------------------
        # 3. Optimal k
        # ---------------------------------------------------------
        selection = self.selector.select_k(
            vectors,
            dataset_size=len(vectors),
            random_state=random_state,
            cancel_event=cancel_event,
        )

        # ---------------------------------------------------------
        # 4. Final clustering (the selected trial)
        # ---------------------------------------------------------
        run = selection.run_for(selection.k)
        if run is None:
            log(f"Clustering with k={selection.k}", method=selection.method)
            run = self.engine.cluster(
                vectors,
                selection.k,
                random_state=random_state,
                cancel_event=cancel_event,
            )
            selection = KSelection(
                k=selection.k,
                method=selection.method,
                reasoning=selection.reasoning,
                runs=(run,),
                failures=selection.failures,
            )

        duration = time.perf_counter() - started
        log(
            "Segmentation complete",
            k=run.k,
            method=selection.method,
            silhouette=round(run.silhouette, 4),
            interpretation=interpret_silhouette(run.silhouette),
            cluster_sizes=run.cluster_sizes,
            records=len(vectors),
            duration=f"{duration:.2f}s",
        )

        # ---------------------------------------------------------
        # 5. Package
        # ---------------------------------------------------------
        return PipelineResult(
            run=run,
            quality_report=report,
            k_selection=selection,
            vectors=tuple(vectors),
            metadata=metadata,
            context=context,
            duration_seconds=duration,
            completed_at=datetime.now(),
        )

    @staticmethod
    def _coerce_records(records) -> list:
        """
        SurveyRecords pass through; mappings are converted. A mapping that
        cannot become a record (no identifier) is skipped with a warning.
        """
        coerced = []
        for index, record in enumerate(records or []):
            if isinstance(record, SurveyRecord):
                coerced.append(record)
            elif isinstance(record, Mapping):
                try:
                    coerced.append(SurveyRecord.from_mapping(record))
                except ValueError as exc:
                    log(f"Skipping response {index}", logging.WARNING, error=str(exc))
            else:
                raise TypeError(
                    f"records must be SurveyRecord or mapping, got {type(record).__name__}"
                )
        return coerced


class SegmentationTask:
    """Handle on a background pipeline run: result channel + cancel signal."""

    def __init__(self, future: Future, cancel_event: threading.Event):
        self.future = future
        self._cancel_event = cancel_event

    def cancel(self) -> None:
        """Ask the run to stop at its next checkpoint."""
        self._cancel_event.set()
        self.future.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> PipelineResult:
        return self.future.result(timeout=timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self.future.exception(timeout=timeout)
