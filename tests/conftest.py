"""
Shared fixtures for the segmentation engine tests.

All fixtures are in-memory and deterministic: a fixed reference date for age
computation and a fixed k-means++ seed.
"""

from __future__ import annotations

from datetime import date
from typing import Callable, List

import numpy as np
import pytest

from youth_segmentation import SegmentationConfig, SurveyRecord


REFERENCE_DATE = date(2025, 6, 1)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@pytest.fixture()
def cfg() -> SegmentationConfig:
    return SegmentationConfig(reference_date=REFERENCE_DATE, random_seed=42, n_jobs=1)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def _engaged(i: int, **overrides) -> SurveyRecord:
    values = dict(
        record_id=f"R{i:03d}",
        youth_id=f"Y{i:03d}",
        barangay_id="BRG-01",
        age_group="Core Youth (18-24 yrs old)",
        education="College Grad",
        work_status="Employed",
        civil_status="Single",
        youth_classification="Working Youth",
        registered_sk_voter=True,
        registered_national_voter=True,
        attended_kk_assembly=True,
        voted_last_sk=True,
        times_attended="3-4 Times",
        reason_not_attended=None,
        birth_date=date(2005, 6, 1),
        gender="Female",
        specific_needs=False,
    )
    values.update(overrides)
    return SurveyRecord(**values)


@pytest.fixture()
def make_record() -> Callable[..., SurveyRecord]:
    """Factory for a complete record; keyword overrides replace fields."""
    return _engaged


@pytest.fixture()
def two_group_records() -> List[SurveyRecord]:
    """
    30 records in two behaviorally distinct groups of 15; ages vary within
    each group so every record is a distinct point.
    """
    records = []
    for i in range(15):
        records.append(
            _engaged(
                i,
                times_attended="5 and above",
                birth_date=date(1996 + i, 3, 15),
            )
        )
    for i in range(15, 30):
        records.append(
            _engaged(
                i,
                education="Elementary Level",
                work_status="Unemployed",
                youth_classification="Out of School Youth",
                registered_sk_voter=False,
                registered_national_voter=False,
                attended_kk_assembly=False,
                voted_last_sk=False,
                times_attended=None,
                reason_not_attended="Not interested to Attend",
                gender="Male",
                birth_date=date(1996 + (i - 15), 9, 20),
            )
        )
    return records


# ---------------------------------------------------------------------------
# Synthetic vectors
# ---------------------------------------------------------------------------


@pytest.fixture()
def separated_blobs() -> np.ndarray:
    """Two clusters of 15 points, centers 5.0 apart, spread 0.05."""
    rng = np.random.default_rng(7)
    a = rng.normal(loc=0.0, scale=0.05, size=(15, 9))
    b = rng.normal(loc=5.0 / 3.0, scale=0.05, size=(15, 9))
    return np.vstack([a, b])
