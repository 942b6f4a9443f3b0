"""
exceptions.py

Error taxonomy for the segmentation engine. Every stage failure surfaces to
the pipeline caller as one of these types with a human-readable message.
"""

from typing import Dict, Optional


class SegmentationError(Exception):
    """Base exception for segmentation pipeline failures."""


class InsufficientDataError(SegmentationError):
    """Raised when fewer records than the hard minimum are available."""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


class DataQualityError(SegmentationError):
    """Raised when the quality gate recommends not proceeding."""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


class FeatureExtractionError(SegmentationError):
    """Raised when no usable feature vectors remain after extraction."""


class ClusteringFailure(SegmentationError):
    """Raised on a numerical failure inside Lloyd's algorithm."""


class OptimalKSelectionFailure(SegmentationError):
    """Raised when every candidate k failed to cluster."""

    def __init__(self, message: str, failures: Optional[Dict[int, str]] = None):
        super().__init__(message)
        self.failures = dict(failures or {})


class SegmentationCancelled(SegmentationError):
    """Raised when the caller's cancel signal is set mid-run."""
