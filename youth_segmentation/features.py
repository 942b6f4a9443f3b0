"""
features.py

FeatureEngineer:
----------------
Transforms raw survey records into fixed-dimension, weighted numeric vectors
for segmentation. Every categorical table and weight comes from
SegmentationConfig.

Vector layout (FEATURE_NAMES order, each normalized to [0, 1] then weighted):
    1. age                  linear over age_bounds, clamped
    2. education            education level score / education_scale
    3. work_status          work status score / work_status_scale
    4. civic_engagement     civic flags + attendance bonus / civic_max_score
    5. civil_status         single -> 0, otherwise 1
    6. youth_classification classification score / classification scale
    7. gender               male -> 0, otherwise 1
    8. special_needs        flag
    9. motivation           attended -> 1, not interested -> 0, else neutral

Outputs:
    - list of FeatureVector (one per convertible record)
    - metadata DataFrame with the raw values used by segment profiling

Records that fail conversion are skipped with a warning; the batch goes on.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import FEATURE_NAMES, SegmentationConfig
from .records import FeatureVector, SurveyRecord, coerce_birth_date
from .utils import log


METADATA_COLUMNS = [
    "record_id",
    "youth_id",
    "barangay_id",
    "raw_age",
    "raw_education",
    "raw_work_status",
    "raw_gender",
    "raw_civic_score",
    "raw_civil_status",
    "raw_classification",
    "raw_special_needs",
    "raw_times_attended",
    "raw_motivation",
]


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def calculate_age(birth_date: date, as_of: date) -> int:
    """Whole years between birth_date and as_of."""
    age = as_of.year - birth_date.year
    if (as_of.month, as_of.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


class FeatureEngineer:
    """
    Build weighted feature vectors from survey records.
    """

    def __init__(self, cfg: SegmentationConfig = None):
        self.cfg = cfg or SegmentationConfig()
        self._weights = self.cfg.weight_vector

    # -------------------------------------------------------------
    # Core Feature Engineering
    # -------------------------------------------------------------

    def extract(self, records: Sequence[SurveyRecord]) -> Tuple[List[FeatureVector], pd.DataFrame]:
        """
        Convert each record into a FeatureVector.

        Parameters
        ----------
        records : sequence of SurveyRecord

        Returns
        -------
        vectors : list of FeatureVector
            One per record that converted cleanly, in input order.
        metadata : pd.DataFrame
            Raw values per kept record (METADATA_COLUMNS).
        """
        records = list(records)
        as_of = self.cfg.reference_date or date.today()

        log("Building feature vectors...", response_count=len(records))

        vectors: List[FeatureVector] = []
        rows: List[Dict[str, Any]] = []

        for index, record in enumerate(records):
            try:
                components, raw = self._transform(record, as_of)
            except (TypeError, ValueError, AttributeError, OverflowError) as exc:
                log(
                    f"Skipping response {index}",
                    logging.WARNING,
                    record_id=getattr(record, "record_id", None),
                    error=str(exc),
                )
                continue

            vectors.append(FeatureVector(record_id=record.record_id, values=components))
            rows.append(raw)

        metadata = pd.DataFrame(rows, columns=METADATA_COLUMNS)

        log(
            f"Extracted feature vectors: {len(vectors)}",
            skipped=len(records) - len(vectors),
            dimensions=len(FEATURE_NAMES),
            weights=dict(zip(FEATURE_NAMES, self._weights)),
        )

        return vectors, metadata

    @staticmethod
    def to_matrix(vectors: Sequence[FeatureVector]) -> np.ndarray:
        """Stack vectors into an (n, 9) float matrix."""
        if not vectors:
            return np.empty((0, len(FEATURE_NAMES)))
        return np.array([v.values for v in vectors], dtype=np.float64)

    # -------------------------------------------------------------
    # Per-record transform
    # -------------------------------------------------------------

    def _transform(self, record: SurveyRecord, as_of: date):
        cfg = self.cfg

        # -------------------------
        # Age
        # -------------------------
        age = calculate_age(coerce_birth_date(record.birth_date), as_of)
        low, high = cfg.age_bounds
        age_norm = _clamp01((age - low) / (high - low))

        # -------------------------
        # Education / Work / Classification
        # -------------------------
        education_norm = self._scaled_lookup(
            cfg.education_levels, record.education, cfg.education_scale
        )
        work_norm = self._scaled_lookup(
            cfg.work_status_levels, record.work_status, cfg.work_status_scale
        )
        classification_norm = self._scaled_lookup(
            cfg.youth_classification_levels,
            record.youth_classification,
            cfg.youth_classification_scale,
        )

        # -------------------------
        # Civic engagement
        # -------------------------
        civic_score = float(sum(1 for flag in cfg.civic_flags if getattr(record, flag, None)))
        if record.times_attended:
            civic_score += cfg.attendance_bonus.get(record.times_attended, 0.0)
        civic_norm = _clamp01(civic_score / cfg.civic_max_score)

        # -------------------------
        # Binary features
        # -------------------------
        civil_score = 0.0 if record.civil_status == cfg.single_civil_status else 1.0
        gender_score = 0.0 if record.gender == cfg.male_gender else 1.0
        special_needs_score = 1.0 if record.specific_needs else 0.0

        # -------------------------
        # Motivation
        # -------------------------
        motivation = cfg.neutral_motivation
        if record.reason_not_attended == cfg.not_interested_reason:
            motivation = 0.0
        if record.attended_kk_assembly:
            motivation = 1.0

        normalized = (
            age_norm,
            education_norm,
            work_norm,
            civic_norm,
            civil_score,
            classification_norm,
            gender_score,
            special_needs_score,
            _clamp01(motivation),
        )
        components = tuple(float(v * w) for v, w in zip(normalized, self._weights))

        raw = {
            "record_id": record.record_id,
            "youth_id": record.youth_id,
            "barangay_id": record.barangay_id,
            "raw_age": age,
            "raw_education": record.education,
            "raw_work_status": record.work_status,
            "raw_gender": record.gender,
            "raw_civic_score": civic_score,
            "raw_civil_status": record.civil_status,
            "raw_classification": record.youth_classification,
            "raw_special_needs": bool(record.specific_needs),
            "raw_times_attended": record.times_attended,
            "raw_motivation": motivation,
        }
        return components, raw

    @staticmethod
    def _scaled_lookup(table: Dict[str, int], value, scale: float) -> float:
        """Mapped score / scale, clamped to [0, 1]; unmapped -> 0."""
        return _clamp01(table.get(value, 0) / scale)
