"""
Youth Segmentation Module
=========================

This package provides the segmentation engine for youth survey data:
- Data quality gating before any numeric work
- Weighted 9-dimension feature vectors from categorical survey answers
- K-means (Lloyd's algorithm, k-means++ seeding)
- Silhouette / inertia quality metrics
- Silhouette-first, elbow-fallback selection of k

Public classes exposed:

    - SegmentationConfig
    - DataQualityGate
    - FeatureEngineer
    - KMeansEngine
    - OptimalKSelector
    - SegmentationPipeline

Usage example:

    from youth_segmentation import SegmentationPipeline

    pipeline = SegmentationPipeline()
    result = pipeline.run(records, context={"scope": "municipality"})
    result.assignments   # record id -> cluster index
"""

from .config import FEATURE_NAMES, SegmentationConfig
from .exceptions import (
    ClusteringFailure,
    DataQualityError,
    FeatureExtractionError,
    InsufficientDataError,
    OptimalKSelectionFailure,
    SegmentationCancelled,
    SegmentationError,
)
from .features import FeatureEngineer
from .kmeans import KMeansEngine
from .metrics import inertia, interpret_silhouette, silhouette
from .pipeline import SegmentationPipeline, SegmentationTask
from .quality import DataQualityGate
from .records import (
    ClusterRun,
    FeatureVector,
    KSelection,
    PipelineResult,
    QualityReport,
    SurveyRecord,
)
from .selector import OptimalKSelector

__all__ = [
    "FEATURE_NAMES",
    "SegmentationConfig",
    "DataQualityGate",
    "FeatureEngineer",
    "KMeansEngine",
    "OptimalKSelector",
    "SegmentationPipeline",
    "SegmentationTask",
    "SurveyRecord",
    "FeatureVector",
    "ClusterRun",
    "QualityReport",
    "KSelection",
    "PipelineResult",
    "silhouette",
    "inertia",
    "interpret_silhouette",
    "SegmentationError",
    "InsufficientDataError",
    "DataQualityError",
    "FeatureExtractionError",
    "ClusteringFailure",
    "OptimalKSelectionFailure",
    "SegmentationCancelled",
]
