"""
utils.py

General-purpose utilities used throughout the segmentation module:
- Safe division that avoids divide-by-zero errors
- Directory creation
- Lightweight structured logger
- JSON write convenience
- Feature matrix conversion and centroid distances
- Cooperative cancellation check
"""

import json
import logging
import os
from typing import Any, Dict, List, Tuple

import numpy as np

from .exceptions import SegmentationCancelled


logger = logging.getLogger("youth_segmentation")


# -------------------------------------------------------------
# Safe Division
# -------------------------------------------------------------

def safe_div(a, b):
    """Safe elementwise division. Returns 0 where division is not possible."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    with np.errstate(divide='ignore', invalid='ignore'):
        b_valid = np.isfinite(b) & (b > 0)
        result = np.zeros(np.broadcast(a, b).shape, dtype=float)
        np.divide(a, b, out=result, where=b_valid)
    return result


# -------------------------------------------------------------
# Directory Helpers
# -------------------------------------------------------------

def ensure_dir(path: str):
    """Create directory if it doesn't exist."""
    if path and not os.path.exists(path):
        os.makedirs(path, exist_ok=True)


# -------------------------------------------------------------
# Lightweight Logger
# -------------------------------------------------------------

def log(msg: str, level: int = logging.INFO, **fields: Any):
    """
    Log a [SEG] line for the segmentation module.

    Keyword fields are appended as compact, key-sorted JSON so the line
    stays greppable and machine-readable.
    """
    if fields:
        msg = f"{msg} {json.dumps(fields, default=str, sort_keys=True)}"
    logger.log(level, f"[SEG] {msg}")


# -------------------------------------------------------------
# JSON Helpers
# -------------------------------------------------------------

def write_json(path: str, data: Dict[str, Any]):
    """Write dictionary as JSON with pretty formatting."""
    ensure_dir(os.path.dirname(path))
    with open(path, "w") as f:
        json.dump(data, f, indent=2, default=str)


# -------------------------------------------------------------
# Feature Matrix Helpers
# -------------------------------------------------------------

def as_matrix(vectors) -> Tuple[np.ndarray, List[Any]]:
    """
    Convert feature vectors to a float matrix plus the matching record ids.

    Parameters
    ----------
    vectors : sequence of FeatureVector, or array-like of shape (n, d)
        When a plain array is given, record ids are the row indices.

    Returns
    -------
    X : np.ndarray
        Float matrix of shape (n, d).
    record_ids : list
        One identifier per row.
    """
    if isinstance(vectors, np.ndarray):
        X = np.asarray(vectors, dtype=np.float64)
        return X, list(range(X.shape[0])) if X.ndim >= 1 else []

    items = list(vectors)
    if items and hasattr(items[0], "values") and hasattr(items[0], "record_id"):
        X = np.array([v.values for v in items], dtype=np.float64)
        return X, [v.record_id for v in items]

    X = np.asarray(items, dtype=np.float64)
    return X, list(range(X.shape[0])) if X.ndim >= 1 else []


def distances_to_centroids(X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """
    Euclidean distance from every row of X to every centroid.

    Returns
    -------
    distances : np.ndarray
        Array of shape (n_samples, n_centroids).
    """
    distances = np.zeros((X.shape[0], centroids.shape[0]))
    for j, centroid in enumerate(centroids):
        distances[:, j] = np.linalg.norm(X - centroid, axis=1)
    return distances


# -------------------------------------------------------------
# Cancellation
# -------------------------------------------------------------

def raise_if_cancelled(cancel_event, where: str):
    """Raise SegmentationCancelled if the caller's signal is set."""
    if cancel_event is not None and cancel_event.is_set():
        log(f"Cancelled during {where}", logging.WARNING)
        raise SegmentationCancelled(f"Segmentation cancelled during {where}")
