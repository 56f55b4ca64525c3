"""Tests for single-file analysis, rating recalculation and processing rescans."""

from datetime import datetime, timezone

import pytest

from optimarr.db import ProcessingStatus
from optimarr.db.queries import (
    get_analysis,
    insert_library_path,
    set_processing_status,
    upsert_analysis,
)
from optimarr.jobs import RecordNotFoundError
from optimarr.rating import RatingConfig, RatingConfigError, RatingWeights
from optimarr.scanner import (
    analyze_file,
    find_sidecar_subtitle,
    recalculate_all,
    recalculate_record,
    rescan_stale_processing,
)

NOW = datetime(2024, 6, 2, 12, 0, tzinfo=timezone.utc)
TWO_DAYS_AGO = "2024-05-31T12:00:00+00:00"


@pytest.fixture
def library_id(db_conn, library_dir) -> int:
    return insert_library_path(db_conn, str(library_dir), "Media")


class TestAnalyzeFile:
    """Tests for analyze_file()."""

    def test_rated_record(self, fake_extractor, library_dir):
        """Good files become rated records."""
        record = analyze_file(fake_extractor, RatingConfig, library_dir / "b.mkv", scan_id=3)

        assert record.id is None
        assert record.scan_id == 3
        assert record.score == 100
        assert record.category == "optimal"
        assert not record.is_broken

    def test_broken_record_skips_rating(self, fake_extractor_class, broken_result, library_dir):
        """Broken files are not rated, so the loader is never called."""

        def loader():
            raise AssertionError("rating config must not be loaded for broken files")

        extractor = fake_extractor_class(default=broken_result)

        record = analyze_file(extractor, loader, library_dir / "b.mkv", file_size=1024)

        assert record.is_broken
        assert record.broken_reason == broken_result.reason
        assert record.file_size == 1024
        assert record.score is None

    def test_find_sidecar(self, library_dir):
        """Sidecars are found next to the video the same way discovery pairs them."""
        assert find_sidecar_subtitle(library_dir / "a.mkv") == library_dir / "a.en.srt"
        assert find_sidecar_subtitle(library_dir / "b.mkv") is None


class TestRecalculate:
    """Tests for rating recalculation from stored attributes."""

    def test_recalculate_record(self, db_conn, fake_extractor, library_dir, library_id):
        """A record is re-rated with the new configuration without extraction."""
        record = analyze_file(
            fake_extractor, RatingConfig, library_dir / "b.mkv", library_path_id=library_id
        )
        record_id = upsert_analysis(db_conn, record)
        calls_before = len(fake_extractor.calls)

        rating = recalculate_record(
            db_conn, record_id, RatingConfig(weights=RatingWeights(hdr=50))
        )

        # HDR content is unaffected by the HDR weight; score stays
        assert rating.score == 100
        assert len(fake_extractor.calls) == calls_before

    def test_recalculate_changes_score(
        self, db_conn, fake_extractor_class, make_attributes, library_dir, library_id
    ):
        """Changed weights change the stored score."""
        extractor = fake_extractor_class(default=make_attributes(is_hdr=False, hdr_type=None))
        record_id = upsert_analysis(
            db_conn,
            analyze_file(extractor, RatingConfig, library_dir / "b.mkv", library_path_id=library_id),
        )
        assert get_analysis(db_conn, record_id).score == 92

        recalculate_record(db_conn, record_id, RatingConfig(weights=RatingWeights(hdr=20)))

        assert get_analysis(db_conn, record_id).score == 80

    def test_broken_record_not_rated(
        self, db_conn, fake_extractor_class, broken_result, library_dir, library_id
    ):
        """Broken records are skipped."""
        extractor = fake_extractor_class(default=broken_result)
        record_id = upsert_analysis(
            db_conn,
            analyze_file(extractor, RatingConfig, library_dir / "b.mkv", library_path_id=library_id),
        )

        assert recalculate_record(db_conn, record_id, RatingConfig()) is None
        assert get_analysis(db_conn, record_id).score is None

    def test_unknown_record(self, db_conn):
        """Recalculating an unknown record raises."""
        with pytest.raises(RecordNotFoundError):
            recalculate_record(db_conn, 404, RatingConfig())

    def test_recalculate_all(
        self, db_conn, fake_extractor_class, broken_result, make_attributes, library_dir, library_id
    ):
        """Every non-broken record is re-rated and changes are counted."""
        extractor = fake_extractor_class(
            results={"c.mkv": broken_result, "d.mkv": make_attributes(is_hdr=False)}
        )
        for name in ("b.mkv", "c.mkv", "d.mkv"):
            upsert_analysis(
                db_conn,
                analyze_file(extractor, RatingConfig, library_dir / name, library_path_id=library_id),
            )
        db_conn.commit()

        summary = recalculate_all(db_conn, RatingConfig(weights=RatingWeights(hdr=0)))

        assert summary.recalculated == 2
        assert summary.changed == 1


class TestProcessingRescan:
    """Tests for rescan_stale_processing()."""

    def test_stale_record_rescanned(self, db_conn, fake_extractor, library_dir, library_id):
        """Records processing for too long are re-analyzed and return to idle."""
        record_id = upsert_analysis(
            db_conn,
            analyze_file(fake_extractor, RatingConfig, library_dir / "b.mkv", library_path_id=library_id),
        )
        set_processing_status(db_conn, record_id, ProcessingStatus.PROCESSING, TWO_DAYS_AGO)
        db_conn.commit()

        summary = rescan_stale_processing(
            db_conn, fake_extractor, RatingConfig, older_than_hours=24, now=NOW
        )

        assert summary.rescanned == 1
        record = get_analysis(db_conn, record_id)
        assert record.processing_status is ProcessingStatus.IDLE
        assert record.processing_started_at is None

    def test_recent_record_untouched(self, db_conn, fake_extractor, library_dir, library_id):
        """Records within the window stay in Processing."""
        record_id = upsert_analysis(
            db_conn,
            analyze_file(fake_extractor, RatingConfig, library_dir / "b.mkv", library_path_id=library_id),
        )
        set_processing_status(
            db_conn, record_id, ProcessingStatus.PROCESSING, "2024-06-02T06:00:00+00:00"
        )
        db_conn.commit()

        summary = rescan_stale_processing(
            db_conn, fake_extractor, RatingConfig, older_than_hours=24, now=NOW
        )

        assert summary.rescanned == 0
        assert get_analysis(db_conn, record_id).processing_status is ProcessingStatus.PROCESSING

    def test_missing_file_removed(self, db_conn, fake_extractor, library_dir, library_id):
        """Records whose file is gone are deleted."""
        path = library_dir / "e.mkv"
        record_id = upsert_analysis(
            db_conn, analyze_file(fake_extractor, RatingConfig, path, library_path_id=library_id)
        )
        set_processing_status(db_conn, record_id, ProcessingStatus.PROCESSING, TWO_DAYS_AGO)
        db_conn.commit()
        path.unlink()

        summary = rescan_stale_processing(
            db_conn, fake_extractor, RatingConfig, older_than_hours=24, now=NOW
        )

        assert summary.removed == 1
        assert get_analysis(db_conn, record_id) is None

    def test_bad_rating_config_keeps_processing(
        self, db_conn, fake_extractor, library_dir, library_id
    ):
        """A rating configuration error leaves the record in Processing."""
        record_id = upsert_analysis(
            db_conn,
            analyze_file(fake_extractor, RatingConfig, library_dir / "b.mkv", library_path_id=library_id),
        )
        set_processing_status(db_conn, record_id, ProcessingStatus.PROCESSING, TWO_DAYS_AGO)
        db_conn.commit()

        def broken_loader():
            raise RatingConfigError("bad weights")

        summary = rescan_stale_processing(
            db_conn, fake_extractor, broken_loader, older_than_hours=24, now=NOW
        )

        assert summary.failed == 1
        assert get_analysis(db_conn, record_id).processing_status is ProcessingStatus.PROCESSING
