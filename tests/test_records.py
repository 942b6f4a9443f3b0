"""
tests/test_records.py

Data model behavior: record coercion from survey rows, vector shape checks
and immutability of clustering output.
"""

from __future__ import annotations

from datetime import date, datetime

import numpy as np
import pandas as pd
import pytest

from youth_segmentation import ClusterRun, FeatureVector, KSelection, SurveyRecord
from youth_segmentation.records import coerce_birth_date


class TestFromMapping:
    def test_survey_aliases(self) -> None:
        record = SurveyRecord.from_mapping(
            {
                "response_id": 17,
                "youth_age_group": "Child Youth (15-17 yrs old)",
                "educational_background": "High School Level",
                "youth_specific_needs": "Person w/Disability",
                "extra_column": "ignored",
            }
        )

        assert record.record_id == 17
        assert record.age_group == "Child Youth (15-17 yrs old)"
        assert record.education == "High School Level"
        assert record.specific_needs is True

    def test_attribute_name_wins_over_alias(self) -> None:
        record = SurveyRecord.from_mapping(
            {"record_id": "A", "education": "College Grad", "educational_background": "Other"}
        )
        assert record.education == "College Grad"

    @pytest.mark.parametrize(
        "raw, expected",
        [("Yes", True), ("no", False), ("TRUE", True), (0, False), (None, None), ("", None)],
    )
    def test_flags(self, raw, expected) -> None:
        record = SurveyRecord.from_mapping({"record_id": 1, "registered_sk_voter": raw})
        assert record.registered_sk_voter is expected

    def test_nan_and_blank_become_missing(self) -> None:
        record = SurveyRecord.from_mapping(
            {"record_id": 1, "gender": float("nan"), "work_status": "   ", "birth_date": pd.NaT}
        )
        assert record.gender is None
        assert record.work_status is None
        assert record.birth_date is None

    def test_strings_are_stripped(self) -> None:
        record = SurveyRecord.from_mapping({"record_id": 1, "civil_status": " Single "})
        assert record.civil_status == "Single"

    def test_missing_id_rejected(self) -> None:
        with pytest.raises(ValueError):
            SurveyRecord.from_mapping({"education": "College Grad"})

    def test_get(self) -> None:
        record = SurveyRecord(record_id=1, gender="Female")
        assert record.get("gender") == "Female"
        assert record.get("nonexistent") is None


class TestBirthDate:
    def test_date_passthrough(self) -> None:
        assert coerce_birth_date(date(2001, 2, 3)) == date(2001, 2, 3)

    def test_datetime_and_timestamp(self) -> None:
        assert coerce_birth_date(datetime(2001, 2, 3, 10, 0)) == date(2001, 2, 3)
        assert coerce_birth_date(pd.Timestamp("2001-02-03")) == date(2001, 2, 3)

    def test_string(self) -> None:
        assert coerce_birth_date("2001-02-03") == date(2001, 2, 3)

    @pytest.mark.parametrize("value", [None, "", "not a date"])
    def test_rejected(self, value) -> None:
        with pytest.raises(ValueError):
            coerce_birth_date(value)


class TestFeatureVector:
    def test_wrong_length(self) -> None:
        with pytest.raises(ValueError):
            FeatureVector(record_id=1, values=(0.0, 1.0))

    def test_as_array(self) -> None:
        vector = FeatureVector(record_id=1, values=tuple(float(i) for i in range(9)))
        assert vector.as_array().shape == (9,)
        assert vector.as_dict()["motivation"] == 8.0


class TestClusterRun:
    def _run(self) -> ClusterRun:
        centroids = np.array([[0.0], [1.0]])
        labels = np.array([0, 1, 1])
        return ClusterRun(
            k=2,
            centroids=centroids,
            labels=labels,
            record_ids=["a", "b", "c"],
            iterations=2,
            converged=True,
            silhouette=0.8,
            inertia=0.1,
        )

    def test_arrays_are_copied_and_frozen(self) -> None:
        labels = np.array([0, 1, 1])
        run = ClusterRun(
            k=2,
            centroids=np.zeros((2, 1)),
            labels=labels,
            record_ids=["a", "b", "c"],
            iterations=1,
            converged=True,
            silhouette=0.0,
            inertia=0.0,
        )
        labels[0] = 1

        assert run.labels[0] == 0
        assert not run.labels.flags.writeable
        assert not run.centroids.flags.writeable

    def test_assignments_and_sizes(self) -> None:
        run = self._run()
        assert run.assignments == {"a": 0, "b": 1, "c": 1}
        assert run.cluster_sizes == [1, 2]
        assert run.summary()["cluster_sizes"] == [1, 2]

    def test_fields_are_frozen(self) -> None:
        with pytest.raises(AttributeError):
            self._run().k = 3  # type: ignore[misc]


class TestKSelection:
    def test_to_frame_sorted_by_k(self) -> None:
        runs = tuple(
            ClusterRun(
                k=k,
                centroids=np.zeros((k, 1)),
                labels=np.arange(k),
                record_ids=list(range(k)),
                iterations=k,
                converged=True,
                silhouette=0.1 * k,
                inertia=10.0 / k,
            )
            for k in (4, 2, 3)
        )
        selection = KSelection(k=2, method="elbow", reasoning="", runs=runs)

        frame = selection.to_frame()

        assert list(frame["k"]) == [2, 3, 4]
        assert selection.run_for(3).iterations == 3
        assert selection.run_for(9) is None
        assert selection.scores[4]["inertia"] == pytest.approx(2.5)
