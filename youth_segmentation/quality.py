"""
quality.py

DataQualityGate
---------------

Decides whether a raw survey dataset is adequate to cluster before any
numeric work begins.

Quality thresholds (defaults from SegmentationConfig):
    - 0.9+      : Excellent
    - 0.7 - 0.9 : Good (acceptable for clustering)
    - 0.5 - 0.7 : Fair (proceed with caution)
    - < 0.5     : Poor (should not proceed)

The gate never raises: it always returns a QualityReport, even for empty
input. The pipeline turns a do-not-proceed report into a typed error.
"""

import logging
from typing import Any, Sequence

import numpy as np
import pandas as pd

from .config import SegmentationConfig
from .records import FieldCompleteness, QualityReport
from .utils import log, safe_div


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and value.strip() == "":
        return False
    if isinstance(value, float) and np.isnan(value):
        return False
    return True


class DataQualityGate:
    """
    Scores field completeness and sample size of a survey dataset.
    """

    def __init__(self, cfg: SegmentationConfig = None):
        self.cfg = cfg or SegmentationConfig()

    # -------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------

    def assess(self, records: Sequence[Any]) -> QualityReport:
        """
        Assess data quality for clustering.

        Parameters
        ----------
        records : sequence of SurveyRecord (or mappings with the same keys)

        Returns
        -------
        QualityReport
        """
        records = list(records or [])
        total = len(records)
        fields = list(self.cfg.required_fields)

        log("Assessing data quality", response_count=total)

        if total == 0:
            report = QualityReport(
                total_records=0,
                valid_records=0,
                quality_score=0.0,
                field_completeness={
                    name: FieldCompleteness(present=0, missing=0, percentage=0.0)
                    for name in fields
                },
                issues=("No responses provided",),
                can_proceed=False,
                recommendation=self.get_recommendation(0.0, 0),
            )
            self._log_report(report)
            return report

        # presence[i, j]: record i has required field j
        presence = np.array(
            [[_is_present(self._value(record, name)) for name in fields] for record in records],
            dtype=bool,
        ).reshape(total, len(fields))

        present_counts = presence.sum(axis=0)
        missing_counts = total - present_counts
        complete = int(presence.all(axis=1).sum())
        quality_score = float(safe_div(complete, total))

        percentages = safe_div(present_counts * 100.0, total)
        completeness = {
            name: FieldCompleteness(
                present=int(present_counts[j]),
                missing=int(missing_counts[j]),
                percentage=round(float(percentages[j]), 2),
            )
            for j, name in enumerate(fields)
        }

        duplicate_ids = self._duplicate_ids(records)

        issues = self._collect_issues(quality_score, total, completeness)
        if duplicate_ids:
            issues.append(
                f"Duplicate record ids: {len(duplicate_ids)} ids are shared by "
                f"more than one response"
            )
        can_proceed = (
            quality_score >= self.cfg.min_quality_score
            and total >= self.cfg.min_records
            and not duplicate_ids
        )

        report = QualityReport(
            total_records=total,
            valid_records=complete,
            quality_score=quality_score,
            field_completeness=completeness,
            issues=tuple(issues),
            can_proceed=can_proceed,
            recommendation=self.get_recommendation(quality_score, total),
            duplicate_ids=duplicate_ids,
        )
        self._log_report(report)
        return report

    def get_recommendation(self, quality_score: float, sample_size: int) -> str:
        """Look up the recommendation for a quality score and sample size."""
        for min_score, min_size, text in self.cfg.recommendation_table:
            if quality_score >= min_score and sample_size >= min_size:
                return text
        return self.cfg.poor_recommendation

    # -------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------

    @staticmethod
    def _value(record: Any, name: str) -> Any:
        if hasattr(record, "get"):
            return record.get(name)
        return getattr(record, name, None)

    def _duplicate_ids(self, records) -> tuple:
        """Record ids used by more than one record, in first-seen order."""
        ids = []
        for record in records:
            rid = self._value(record, "record_id")
            ids.append(self._value(record, "response_id") if rid is None else rid)

        ids = pd.Series(ids, dtype=object)
        shared = ids[ids.notna() & ids.duplicated(keep=False)]
        return tuple(pd.unique(shared))

    def _collect_issues(self, quality_score, total, completeness):
        issues = []

        if quality_score < self.cfg.min_quality_score:
            issues.append(
                f"Low data completeness: Only {quality_score * 100:.1f}% of records are complete"
            )

        if total < self.cfg.min_records:
            issues.append(
                f"Insufficient sample size: {total} responses "
                f"(minimum: {self.cfg.min_records})"
            )
        elif total < self.cfg.recommended_records:
            issues.append(
                f"Small sample size: {total} responses "
                f"(recommended: {self.cfg.recommended_records}+ for best results)"
            )

        for name, fc in completeness.items():
            missing_pct = fc.missing / total * 100
            if missing_pct > self.cfg.max_field_missing_pct:
                issues.append(f'Field "{name}" has {missing_pct:.1f}% missing values')

        return issues

    def _log_report(self, report: QualityReport):
        level = logging.INFO if report.can_proceed else logging.WARNING
        log(
            "Data quality results",
            level,
            total_records=report.total_records,
            valid_records=report.valid_records,
            quality_score=f"{report.quality_score * 100:.1f}%",
            can_proceed=report.can_proceed,
            issues=list(report.issues),
        )
