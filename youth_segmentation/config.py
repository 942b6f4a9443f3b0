"""
config.py

Central configuration for the segmentation engine.

Every constant the engine depends on lives here: the required survey fields,
feature weights, category-to-score tables, age bounds, the k search range and
the Lloyd's algorithm settings. Nothing in the algorithm modules hard-codes
these values, so the mapping is auditable and testable on its own.

Run settings can be overridden from the environment:
    - SEGMENTATION_MAX_ITERATIONS
    - SEGMENTATION_TOLERANCE
    - SEGMENTATION_RANDOM_SEED
    - SEGMENTATION_N_JOBS
"""

import os
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple


# -------------------------------------------------------------
# Feature Order
# -------------------------------------------------------------

FEATURE_NAMES: Tuple[str, ...] = (
    "age",
    "education",
    "work_status",
    "civic_engagement",
    "civil_status",
    "youth_classification",
    "gender",
    "special_needs",
    "motivation",
)


# -------------------------------------------------------------
# Environment Resolution
# -------------------------------------------------------------

def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    """Resolve an integer setting from env or default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    """Resolve a float setting from env or default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def get_max_iterations() -> int:
    return _env_int("SEGMENTATION_MAX_ITERATIONS", 100)


def get_tolerance() -> float:
    return _env_float("SEGMENTATION_TOLERANCE", 1e-4)


def get_random_seed() -> Optional[int]:
    return _env_int("SEGMENTATION_RANDOM_SEED", None)


def get_n_jobs() -> int:
    return _env_int("SEGMENTATION_N_JOBS", 1)


# -------------------------------------------------------------
# Segmentation Configuration Dataclass
# -------------------------------------------------------------

@dataclass
class SegmentationConfig:

    # -----------------------------
    # Data quality gate
    # -----------------------------
    required_fields: List[str] = field(default_factory=lambda: [
        "age_group",
        "education",
        "work_status",
        "civil_status",
        "registered_sk_voter",
        "attended_kk_assembly",
        "birth_date",
        "gender",
    ])

    min_records: int = 10           # hard floor
    recommended_records: int = 50   # soft warning below this
    min_quality_score: float = 0.7
    max_field_missing_pct: float = 20.0

    # (min quality score, min sample size, recommendation), checked in order
    recommendation_table: List[Tuple[float, int, str]] = field(default_factory=lambda: [
        (0.9, 100, "Excellent data quality. Proceed with confidence."),
        (0.7, 50, "Good data quality. Safe to proceed with clustering."),
        (0.5, 30, "Fair data quality. Proceed with caution. Results may be less reliable."),
    ])
    poor_recommendation: str = (
        "Poor data quality or insufficient sample size. "
        "Please improve data collection before clustering."
    )

    # -----------------------------
    # Feature weights [FEATURE_NAMES order]
    # -----------------------------
    feature_weights: Dict[str, float] = field(default_factory=lambda: {
        "age": 1.0,
        "education": 1.2,
        "work_status": 2.0,          # dominant feature
        "civic_engagement": 1.5,
        "civil_status": 0.8,
        "youth_classification": 1.3,
        "gender": 0.5,
        "special_needs": 1.0,
        "motivation": 1.2,
    })

    # -----------------------------
    # Age
    # -----------------------------
    age_bounds: Tuple[int, int] = (15, 30)
    reference_date: Optional[date] = None  # age "as of"; None means today

    # -----------------------------
    # Category tables
    # -----------------------------
    education_levels: Dict[str, int] = field(default_factory=lambda: {
        "Elementary Level": 1,
        "Elementary Grad": 2,
        "High School Level": 3,
        "High School Grad": 4,
        "Vocational Grad": 5,
        "College Level": 6,
        "College Grad": 7,
        "Masters Level": 8,
        "Masters Grad": 9,
        "Doctorate Level": 9,
        "Doctorate Graduate": 10,
    })
    education_scale: float = 10.0

    work_status_levels: Dict[str, int] = field(default_factory=lambda: {
        "Unemployed": 1,
        "Not interested looking for a job": 1,
        "Currently looking for a Job": 2,
        "Self-Employed": 3,
        "Employed": 4,
    })
    work_status_scale: float = 4.0

    youth_classification_levels: Dict[str, int] = field(default_factory=lambda: {
        "In School Youth": 1,
        "Out of School Youth": 2,
        "Working Youth": 3,
        "Youth w/Specific Needs": 1,
    })
    youth_classification_scale: float = 3.0

    # Civic engagement: 1 point per flag plus an attendance bonus
    civic_flags: List[str] = field(default_factory=lambda: [
        "registered_sk_voter",
        "registered_national_voter",
        "attended_kk_assembly",
        "voted_last_sk",
    ])
    attendance_bonus: Dict[str, float] = field(default_factory=lambda: {
        "1-2 Times": 0.5,
        "3-4 Times": 1.0,
        "5 and above": 2.0,
    })
    civic_max_score: float = 8.0

    single_civil_status: str = "Single"
    male_gender: str = "Male"
    not_interested_reason: str = "Not interested to Attend"
    neutral_motivation: float = 0.5

    # -----------------------------
    # K selection
    # -----------------------------
    min_k: int = 2
    max_k_cap: int = 6
    k_range_divisor: float = 2.0     # max_k = floor(sqrt(n / divisor))
    silhouette_threshold: float = 0.5

    # -----------------------------
    # Lloyd's algorithm
    # -----------------------------
    max_iterations: int = field(default_factory=get_max_iterations)
    tolerance: float = field(default_factory=get_tolerance)
    random_seed: Optional[int] = field(default_factory=get_random_seed)
    n_jobs: int = field(default_factory=get_n_jobs)

    def __post_init__(self):
        missing = [name for name in FEATURE_NAMES if name not in self.feature_weights]
        if missing:
            raise ValueError(f"feature_weights is missing entries for: {missing}")

        negative = {k: w for k, w in self.feature_weights.items() if w < 0}
        if negative:
            raise ValueError(f"feature weights must be non-negative, got {negative}")

        low, high = self.age_bounds
        if high <= low:
            raise ValueError(f"age_bounds must be increasing, got {self.age_bounds!r}")

        if self.min_k < 1 or self.max_k_cap < self.min_k:
            raise ValueError(
                f"invalid k range: min_k={self.min_k}, max_k_cap={self.max_k_cap}"
            )

        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")

        if self.tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")

    # -------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------

    @property
    def weight_vector(self) -> Tuple[float, ...]:
        """Weights in FEATURE_NAMES order."""
        return tuple(float(self.feature_weights[name]) for name in FEATURE_NAMES)

    def k_bounds(self, dataset_size: int) -> Tuple[int, int]:
        """
        Candidate k range for a dataset of the given size.

        max_k = min(floor(sqrt(dataset_size / k_range_divisor)), max_k_cap).
        The caller checks for max_k < min_k.
        """
        max_k = int((max(dataset_size, 0) / self.k_range_divisor) ** 0.5)
        return self.min_k, min(max_k, self.max_k_cap)
