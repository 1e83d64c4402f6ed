# This project was developed with assistance from AI tools.
"""Tests for report classification, tri-merge slicing, and bureau slots."""

import hashlib

from underwrite_iq.schemas.bureau import SlotResult, SourceType
from underwrite_iq.schemas.errors import ErrorKind
from underwrite_iq.services.ingestion import (
    MIN_SLICE_CHARS,
    classify_report,
    enforce_bureau_slots,
    extract_report_date,
    extract_score,
    hash_text,
    ingest_report,
    normalize_whitespace,
    slice_tri_merge,
)

from tests.factories import make_record, profile

TRI_MERGE_TEXT = (
    "Experian credit file. FICO Score 720. Report Date: 01/10/2026. "
    "All accounts reported in good standing.\n\n"
    "Equifax credit file. FICO Score 690. Report Date: 01/11/2026. "
    "All accounts reported in good standing.\n\n"
    "TransUnion credit file. FICO Score 705. Report Date: 01/12/2026. "
    "All accounts reported in good standing."
)


class TestClassifyReport:
    def test_all_bureaus_is_tri_merge(self):
        assert classify_report(TRI_MERGE_TEXT) == SourceType.TRI_MERGE

    def test_trans_union_with_space(self):
        text = "Experian and Equifax and Trans Union"
        assert classify_report(text) == SourceType.TRI_MERGE

    def test_annual_disclosure(self):
        text = "Requested via AnnualCreditReport.com - Equifax disclosure"
        assert classify_report(text) == SourceType.ANNUAL_DISCLOSURE

    def test_single_bureau(self):
        assert classify_report("Experian personal credit report") == SourceType.SINGLE_BUREAU


class TestTextHelpers:
    def test_extract_score(self):
        assert extract_score("Your FICO Score: 712 as of today") == 712

    def test_strict_score_needs_label(self):
        assert extract_score("Account 555 opened") is None
        assert extract_score("Account 555 opened", strict=False) == 555

    def test_extract_report_date(self):
        assert extract_report_date("Report Date: January 5, 2026") == "2026-01-05"
        assert extract_report_date("printed 2025-11-30 for you") == "2025-11-30"
        assert extract_report_date("no dates here") is None

    def test_slices_start_at_each_bureau(self):
        slices = slice_tri_merge(normalize_whitespace(TRI_MERGE_TEXT))
        assert list(slices) == ["experian", "equifax", "transunion"]
        assert slices["equifax"].startswith("Equifax")
        assert all(len(s) >= MIN_SLICE_CHARS for s in slices.values())


class TestIngestTriMerge:
    def test_records_from_text_slices(self):
        result = ingest_report(TRI_MERGE_TEXT, profile())
        assert result.source_type == SourceType.TRI_MERGE
        assert set(result.bureaus) == {"experian", "equifax", "transunion"}
        assert result.bureaus["experian"].score == 720
        assert result.bureaus["equifax"].score == 690
        assert result.bureaus["transunion"].report_date == "2026-01-12"

    def test_records_tagged_with_content_hash(self):
        result = ingest_report(TRI_MERGE_TEXT, profile())
        expected = hash_text(normalize_whitespace(TRI_MERGE_TEXT))
        assert result.merged_document_id == expected
        for record in result.bureaus.values():
            assert record.source_type == SourceType.TRI_MERGE
            assert record.derived_from_merged is True
            assert record.merged_document_id == expected

    def test_llm_record_preferred_over_slice(self):
        llm = make_record("equifax", score=650).model_copy(update={"report_date": None})
        result = ingest_report(TRI_MERGE_TEXT, profile(llm))
        assert result.bureaus["equifax"].score == 650
        assert result.bureaus["equifax"].report_date == "2026-01-11"

    def test_detection_failure_falls_back_to_single(self):
        text = "Experian Equifax TransUnion"
        result = ingest_report(text, profile())
        assert result.source_type == SourceType.SINGLE_BUREAU
        assert ErrorKind.TRI_MERGE_DETECTION_FAILED.value in result.warnings
        assert list(result.bureaus) == ["experian"]

    def test_vision_output_with_two_bureaus(self):
        data = b"%PDF-1.7 fake"
        records = profile(make_record("experian"), make_record("transunion"))
        result = ingest_report("", records, data)
        assert result.source_type == SourceType.TRI_MERGE
        assert result.merged_document_id == hashlib.sha256(data).hexdigest()
        assert set(result.bureaus) == {"experian", "transunion"}


class TestIngestSingle:
    def test_record_recovered_from_text(self):
        text = "Equifax credit report for John Doe. Score 688. Report Date: 2026-01-05."
        result = ingest_report(text, profile())
        assert result.source_type == SourceType.SINGLE_BUREAU
        record = result.bureaus["equifax"]
        assert record.score == 688
        assert record.report_date == "2026-01-05"
        assert record.derived_from_merged is False

    def test_annual_disclosure_has_no_score(self):
        text = "AnnualCreditReport.com TransUnion file disclosure, no score provided."
        result = ingest_report(text, profile())
        record = result.bureaus["transunion"]
        assert record.source_type == SourceType.ANNUAL_DISCLOSURE
        assert record.score_details.available is False

    def test_llm_records_kept(self):
        text = "Experian credit report"
        result = ingest_report(text, profile(make_record("experian", score=701)))
        assert result.bureaus["experian"].score == 701

    def test_nothing_found(self):
        result = ingest_report("a blank page", profile())
        assert result.bureaus == {}


class TestEnforceBureauSlots:
    """Slot replacement is date-driven, not order-driven."""

    NEW = make_record("experian", report_date="2025-01-01")
    OLD = make_record("experian", report_date="2024-12-01")

    def test_newer_incoming_replaces(self):
        slots = enforce_bureau_slots(None, {"experian": self.OLD}, "old.pdf")
        slots = enforce_bureau_slots(slots, {"experian": self.NEW}, "new.pdf")
        assert slots.bureaus["experian"].report_date == "2025-01-01"
        assert slots.sources["experian"] == "new.pdf"
        assert len(slots.rejected) == 1
        assert slots.rejected[0].reason == ErrorKind.STALE_REPORT.value
        assert slots.rejected[0].filename == "old.pdf"

    def test_older_incoming_rejected(self):
        slots = enforce_bureau_slots(None, {"experian": self.NEW}, "new.pdf")
        slots = enforce_bureau_slots(slots, {"experian": self.OLD}, "old.pdf")
        assert slots.bureaus["experian"].report_date == "2025-01-01"
        assert slots.rejected[0].filename == "old.pdf"
        assert slots.rejected[0].bureau.value == "experian"

    def test_same_date_keeps_existing(self):
        slots = enforce_bureau_slots(None, {"experian": self.NEW}, "a.pdf")
        slots = enforce_bureau_slots(slots, {"experian": self.NEW}, "b.pdf")
        assert slots.sources["experian"] == "a.pdf"
        assert slots.rejected[0].filename == "b.pdf"

    def test_unavailable_records_ignored(self):
        slots = enforce_bureau_slots(SlotResult(), profile(make_record("equifax")), "x.pdf")
        assert list(slots.bureaus) == ["equifax"]
        assert slots.rejected == []

    def test_at_most_three_slots(self):
        slots = None
        for name, key in (("a.pdf", "experian"), ("b.pdf", "equifax"), ("c.pdf", "transunion")):
            slots = enforce_bureau_slots(slots, {key: make_record(key)}, name)
        assert len(slots.bureaus) == 3
        assert slots.rejected == []
