"""
records.py

Data model shared by every stage of the segmentation engine.

    SurveyRecord    raw respondent data (input, never mutated)
    FeatureVector   9 weighted, normalized components + originating record id
    ClusterRun      one K-means attempt with its quality scores
    QualityReport   output of the data quality gate
    KSelection      outcome of the optimal-k search
    PipelineResult  packaged output handed to downstream collaborators

All output types are created fresh per pipeline invocation and are immutable
once produced.
"""

import math
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .config import FEATURE_NAMES
from .metrics import cluster_sizes


# -------------------------------------------------------------
# Input Coercion
# -------------------------------------------------------------

_TRUE_STRINGS = {"true", "yes", "y", "1", "t"}
_FALSE_STRINGS = {"false", "no", "n", "0", "f"}

# Survey table column names accepted in place of the record attribute names.
FIELD_ALIASES: Dict[str, str] = {
    "response_id": "record_id",
    "youth_age_group": "age_group",
    "educational_background": "education",
    "youth_specific_needs": "specific_needs",
}

_FLAG_FIELDS = (
    "registered_sk_voter",
    "registered_national_voter",
    "attended_kk_assembly",
    "voted_last_sk",
    "specific_needs",
)


def _clean(value: Any) -> Any:
    """Normalize missing markers (None, NaN, NaT, blank strings) to None."""
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    if isinstance(value, float) and math.isnan(value):
        return None
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    return value


def _as_flag(value: Any) -> Optional[bool]:
    """Coerce yes/no style values to bool; None stays None (missing)."""
    value = _clean(value)
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
        # free-text answers (e.g. a described specific need) count as set
        return True
    return bool(value)


# -------------------------------------------------------------
# SurveyRecord
# -------------------------------------------------------------

@dataclass(frozen=True)
class SurveyRecord:
    """One survey respondent as supplied by the caller."""

    record_id: Any
    youth_id: Any = None
    barangay_id: Any = None
    age_group: Optional[str] = None
    education: Optional[str] = None
    work_status: Optional[str] = None
    civil_status: Optional[str] = None
    youth_classification: Optional[str] = None
    registered_sk_voter: Optional[bool] = None
    registered_national_voter: Optional[bool] = None
    attended_kk_assembly: Optional[bool] = None
    voted_last_sk: Optional[bool] = None
    times_attended: Optional[str] = None
    reason_not_attended: Optional[str] = None
    birth_date: Any = None
    gender: Optional[str] = None
    specific_needs: Optional[bool] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SurveyRecord":
        """
        Build a record from a dict or DataFrame row.

        Survey table column names (see FIELD_ALIASES) are accepted; unknown
        keys are ignored.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, raw in data.items():
            name = FIELD_ALIASES.get(key, key)
            if name not in known:
                continue
            if name in values and key != name:
                continue  # the attribute name wins over its alias
            values[name] = _clean(raw)

        for name in _FLAG_FIELDS:
            if name in values:
                values[name] = _as_flag(values[name])

        if values.get("record_id") is None:
            raise ValueError("record is missing an identifier (record_id / response_id)")
        return cls(**values)

    def get(self, name: str) -> Any:
        return getattr(self, name, None)


# -------------------------------------------------------------
# FeatureVector
# -------------------------------------------------------------

@dataclass(frozen=True)
class FeatureVector:
    """Weighted feature vector in FEATURE_NAMES order."""

    record_id: Any
    values: Tuple[float, ...]

    def __post_init__(self):
        if len(self.values) != len(FEATURE_NAMES):
            raise ValueError(
                f"feature vector must have {len(FEATURE_NAMES)} components, "
                f"got {len(self.values)}"
            )

    def as_array(self) -> np.ndarray:
        return np.asarray(self.values, dtype=np.float64)

    def as_dict(self) -> Dict[str, float]:
        return dict(zip(FEATURE_NAMES, self.values))


def _frozen_array(values, dtype) -> np.ndarray:
    arr = np.array(values, dtype=dtype, copy=True)
    arr.setflags(write=False)
    return arr


# -------------------------------------------------------------
# ClusterRun
# -------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class ClusterRun:
    """Result of one clustering attempt."""

    k: int
    centroids: np.ndarray
    labels: np.ndarray
    record_ids: Tuple[Any, ...]
    iterations: int
    converged: bool
    silhouette: float
    inertia: float
    duration_seconds: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "centroids", _frozen_array(self.centroids, np.float64))
        object.__setattr__(self, "labels", _frozen_array(self.labels, np.int64))
        object.__setattr__(self, "record_ids", tuple(self.record_ids))

    @property
    def assignments(self) -> Dict[Any, int]:
        """record id -> cluster index."""
        return {rid: int(label) for rid, label in zip(self.record_ids, self.labels)}

    @property
    def cluster_sizes(self) -> List[int]:
        return cluster_sizes(self.labels, self.k)

    def summary(self) -> Dict[str, Any]:
        return {
            "k": self.k,
            "silhouette": self.silhouette,
            "inertia": self.inertia,
            "iterations": self.iterations,
            "converged": self.converged,
            "cluster_sizes": self.cluster_sizes,
        }


# -------------------------------------------------------------
# QualityReport
# -------------------------------------------------------------

@dataclass(frozen=True)
class FieldCompleteness:
    present: int
    missing: int
    percentage: float  # percent present, 0-100


@dataclass(frozen=True)
class QualityReport:
    """Output of the data quality gate."""

    total_records: int
    valid_records: int
    quality_score: float
    field_completeness: Dict[str, FieldCompleteness]
    issues: Tuple[str, ...]
    can_proceed: bool
    recommendation: str
    duplicate_ids: Tuple[Any, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_records": self.total_records,
            "valid_records": self.valid_records,
            "quality_score": self.quality_score,
            "field_completeness": {
                name: {"present": fc.present, "missing": fc.missing, "percentage": fc.percentage}
                for name, fc in self.field_completeness.items()
            },
            "issues": list(self.issues),
            "can_proceed": self.can_proceed,
            "recommendation": self.recommendation,
            "duplicate_ids": list(self.duplicate_ids),
        }


# -------------------------------------------------------------
# KSelection
# -------------------------------------------------------------

@dataclass(frozen=True)
class KSelection:
    """Chosen k plus every trial that informed the choice."""

    k: int
    method: str
    reasoning: str
    runs: Tuple[ClusterRun, ...] = ()
    failures: Dict[int, str] = field(default_factory=dict)

    @property
    def scores(self) -> Dict[int, Dict[str, float]]:
        """k -> {"silhouette", "inertia"} for every successful trial."""
        return {
            run.k: {"silhouette": run.silhouette, "inertia": run.inertia}
            for run in self.runs
        }

    def run_for(self, k: int) -> Optional[ClusterRun]:
        for run in self.runs:
            if run.k == k:
                return run
        return None

    def to_frame(self) -> pd.DataFrame:
        """Per-k table for audit and persistence."""
        columns = ["k", "silhouette", "inertia", "iterations", "converged"]
        rows = [
            {
                "k": run.k,
                "silhouette": run.silhouette,
                "inertia": run.inertia,
                "iterations": run.iterations,
                "converged": run.converged,
            }
            for run in sorted(self.runs, key=lambda r: r.k)
        ]
        return pd.DataFrame(rows, columns=columns)


# -------------------------------------------------------------
# PipelineResult
# -------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class SegmentMembers:
    """What the segment-profiling collaborator needs for one cluster."""

    cluster: int
    record_ids: Tuple[Any, ...]
    centroid: np.ndarray
    vectors: Tuple[FeatureVector, ...]

    @property
    def size(self) -> int:
        return len(self.record_ids)


@dataclass(frozen=True, eq=False)
class PipelineResult:
    """Packaged output of one segmentation run."""

    run: ClusterRun
    quality_report: QualityReport
    k_selection: KSelection
    vectors: Tuple[FeatureVector, ...]
    metadata: pd.DataFrame
    context: Dict[str, Any] = field(default_factory=dict)
    duration_seconds: float = 0.0
    completed_at: Optional[datetime] = None

    @property
    def k(self) -> int:
        return self.run.k

    @property
    def assignments(self) -> Dict[Any, int]:
        return self.run.assignments

    @property
    def centroids(self) -> np.ndarray:
        return self.run.centroids

    @property
    def silhouette_score(self) -> float:
        return self.run.silhouette

    @property
    def inertia(self) -> float:
        return self.run.inertia

    def segments(self) -> List[SegmentMembers]:
        """Members, centroid and raw vectors per cluster index."""
        grouped: Dict[int, List[FeatureVector]] = {i: [] for i in range(self.k)}
        for vector, label in zip(self.vectors, self.run.labels):
            grouped[int(label)].append(vector)

        return [
            SegmentMembers(
                cluster=i,
                record_ids=tuple(v.record_id for v in members),
                centroid=self.run.centroids[i],
                vectors=tuple(members),
            )
            for i, members in grouped.items()
        ]

    def assignments_frame(self) -> pd.DataFrame:
        """Metadata rows with their cluster index attached (row order = vectors)."""
        frame = self.metadata.copy()
        frame["cluster"] = np.asarray(self.run.labels, dtype=np.int64)
        return frame

    def to_record(self) -> Dict[str, Any]:
        """Flat summary suitable for durable storage."""
        completed = self.completed_at or datetime.now()
        return {
            "k": self.k,
            "method": self.k_selection.method,
            "reasoning": self.k_selection.reasoning,
            "scores": {str(k): v for k, v in self.k_selection.scores.items()},
            "failed_k": {str(k): msg for k, msg in self.k_selection.failures.items()},
            "silhouette_score": self.silhouette_score,
            "inertia": self.inertia,
            "iterations": self.run.iterations,
            "converged": self.run.converged,
            "cluster_sizes": self.run.cluster_sizes,
            "total_records": self.quality_report.total_records,
            "clustered_records": len(self.vectors),
            "data_quality_score": self.quality_report.quality_score,
            "duration_seconds": self.duration_seconds,
            "completed_at": completed.isoformat(),
            "context": dict(self.context),
        }


def coerce_birth_date(value: Any) -> date:
    """
    Parse a birth date from a date, datetime, timestamp or ISO-like string.

    Raises ValueError when the value is missing or unparseable.
    """
    value = _clean(value)
    if value is None:
        raise ValueError("birth date is missing")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = pd.Timestamp(value)
    if pd.isna(parsed):
        raise ValueError(f"unparseable birth date: {value!r}")
    return parsed.date()
