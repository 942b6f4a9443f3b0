"""
tests/test_pipeline.py

End-to-end SegmentationPipeline runs: stage ordering, error taxonomy,
result packaging, DataFrame input and background submission.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from youth_segmentation import (
    DataQualityError,
    FeatureExtractionError,
    InsufficientDataError,
    PipelineResult,
    SegmentationCancelled,
    SegmentationConfig,
    SegmentationPipeline,
)


@pytest.fixture()
def pipeline(cfg) -> SegmentationPipeline:
    return SegmentationPipeline(cfg)


class TestHappyPath:
    def test_two_groups(self, pipeline, two_group_records) -> None:
        result = pipeline.run(two_group_records, context={"scope": "barangay", "batch": 7})

        assert isinstance(result, PipelineResult)
        assert result.k == 2
        assert result.k_selection.method == "silhouette"
        assert result.silhouette_score >= 0.5
        assert len(result.assignments) == 30
        assert result.context == {"scope": "barangay", "batch": 7}

        engaged = {result.assignments[f"R{i:03d}"] for i in range(15)}
        disengaged = {result.assignments[f"R{i:03d}"] for i in range(15, 30)}
        assert len(engaged) == 1
        assert len(disengaged) == 1
        assert engaged != disengaged

    def test_final_run_is_the_selected_trial(self, pipeline, two_group_records) -> None:
        result = pipeline.run(two_group_records)
        assert result.run is result.k_selection.run_for(result.k)

    def test_segments(self, pipeline, two_group_records) -> None:
        result = pipeline.run(two_group_records)
        segments = result.segments()

        assert [s.cluster for s in segments] == [0, 1]
        assert sorted(s.size for s in segments) == [15, 15]
        for segment in segments:
            members = np.array([v.values for v in segment.vectors])
            assert np.allclose(segment.centroid, members.mean(axis=0))

    def test_to_record(self, pipeline, two_group_records) -> None:
        record = pipeline.run(two_group_records, context={"scope": "municipality"}).to_record()

        assert record["k"] == 2
        assert record["method"] == "silhouette"
        assert set(record["scores"]) == {"2", "3"}
        assert record["failed_k"] == {}
        assert record["cluster_sizes"] == [15, 15]
        assert record["total_records"] == record["clustered_records"] == 30
        assert record["data_quality_score"] == 1.0
        assert record["context"] == {"scope": "municipality"}
        assert isinstance(record["completed_at"], str)

    def test_assignments_frame(self, pipeline, two_group_records) -> None:
        result = pipeline.run(two_group_records)
        frame = result.assignments_frame()

        assert len(frame) == 30
        assert "cluster" in frame.columns
        assert frame.set_index("record_id")["cluster"].to_dict() == result.assignments

    def test_assignments_frame_follows_labels(self, pipeline, two_group_records) -> None:
        result = pipeline.run(two_group_records)
        frame = result.assignments_frame()

        assert list(frame["record_id"]) == [v.record_id for v in result.vectors]
        assert list(frame["cluster"]) == result.run.labels.tolist()
        assert frame["cluster"].value_counts().sort_index().tolist() == result.run.cluster_sizes

    def test_deterministic_with_seed(self, pipeline, two_group_records) -> None:
        first = pipeline.run(two_group_records, random_state=11)
        second = pipeline.run(two_group_records, random_state=11)

        assert first.assignments == second.assignments
        assert np.array_equal(first.centroids, second.centroids)

    def test_mapping_input(self, pipeline, two_group_records) -> None:
        rows = [vars(r) for r in two_group_records]
        assert pipeline.run(rows).k == 2

    def test_minimum_path_clusters_directly(self, cfg, two_group_records) -> None:
        cfg = SegmentationConfig(
            reference_date=cfg.reference_date, random_seed=42, n_jobs=1, min_records=4
        )
        records = two_group_records[:3] + two_group_records[15:18]

        result = SegmentationPipeline(cfg).run(records)

        assert result.k == 2
        assert result.k_selection.method == "minimum"
        assert len(result.k_selection.runs) == 1
        assert sorted(result.run.cluster_sizes) == [3, 3]


class TestDataFrameInput:
    def test_survey_column_names(self, pipeline, two_group_records) -> None:
        df = pd.DataFrame([vars(r) for r in two_group_records]).rename(
            columns={
                "record_id": "response_id",
                "education": "educational_background",
                "age_group": "youth_age_group",
                "specific_needs": "youth_specific_needs",
            }
        )
        df["unrelated"] = "ignored"

        result = pipeline.run_dataframe(df)

        assert result.k == 2
        assert set(result.assignments) == {r.record_id for r in two_group_records}

    def test_row_without_id_is_skipped(self, pipeline, two_group_records) -> None:
        df = pd.DataFrame([vars(r) for r in two_group_records])
        df.loc[3, "record_id"] = None

        result = pipeline.run_dataframe(df)

        assert result.quality_report.total_records == 29
        assert len(result.assignments) == 29
        assert "R003" not in result.assignments
        assert sum(result.run.cluster_sizes) == 29


class TestFailures:
    def test_too_few_records(self, pipeline, two_group_records) -> None:
        with pytest.raises(InsufficientDataError) as excinfo:
            pipeline.run(two_group_records[:9])
        assert excinfo.value.report.total_records == 9

    def test_low_quality(self, pipeline, make_record) -> None:
        records = [make_record(i) if i < 5 else make_record(i, gender=None) for i in range(20)]
        with pytest.raises(DataQualityError, match="Data quality check failed") as excinfo:
            pipeline.run(records)
        assert excinfo.value.report.quality_score == pytest.approx(0.25)

    def test_duplicate_ids_rejected(self, pipeline, two_group_records) -> None:
        records = two_group_records[:15] + [
            replace(r, record_id=f"R{i:03d}") for i, r in enumerate(two_group_records[15:])
        ]
        with pytest.raises(DataQualityError, match="record ids must be unique") as excinfo:
            pipeline.run(records)
        assert len(excinfo.value.report.duplicate_ids) == 15

    def test_no_usable_vectors(self, pipeline, make_record) -> None:
        records = [make_record(i, birth_date="unknown") for i in range(12)]
        with pytest.raises(FeatureExtractionError):
            pipeline.run(records)

    def test_too_few_after_extraction(self, pipeline, two_group_records) -> None:
        records = list(two_group_records[:12])
        for i in (0, 1, 2):
            records[i] = replace(records[i], birth_date="unknown")
        with pytest.raises(InsufficientDataError, match="after feature extraction"):
            pipeline.run(records)

    def test_unsupported_record_type(self, pipeline) -> None:
        with pytest.raises(TypeError):
            pipeline.run([42] * 12)

    def test_cancel_before_start(self, pipeline, two_group_records) -> None:
        event = threading.Event()
        event.set()
        with pytest.raises(SegmentationCancelled):
            pipeline.run(two_group_records, cancel_event=event)


class TestSubmit:
    def test_result_matches_blocking_run(self, pipeline, two_group_records) -> None:
        expected = pipeline.run(two_group_records)
        task = pipeline.submit(two_group_records)

        result = task.result(timeout=60)

        assert task.done()
        assert result.assignments == expected.assignments
        assert task.cancelled is False

    def test_shared_executor(self, pipeline, two_group_records) -> None:
        with ThreadPoolExecutor(max_workers=2) as executor:
            tasks = [pipeline.submit(two_group_records, executor=executor) for _ in range(2)]
            results = [t.result(timeout=60) for t in tasks]

        assert results[0].assignments == results[1].assignments

    def test_failure_surfaces_on_task(self, pipeline, two_group_records) -> None:
        task = pipeline.submit(two_group_records[:5])
        assert isinstance(task.exception(timeout=60), InsufficientDataError)

    def test_cancel_sets_signal(self, pipeline, two_group_records) -> None:
        task = pipeline.submit(two_group_records)
        task.cancel()
        assert task.cancelled is True
