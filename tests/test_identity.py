# This project was developed with assistance from AI tools.
"""Tests for the post-extraction identity and recency gate."""

from datetime import date

import pytest

from underwrite_iq.schemas.errors import ErrorKind
from underwrite_iq.services.identity import check_identity, name_tokens, names_match

from tests.factories import make_record, profile

TODAY = date(2026, 2, 1)


class TestNameTokens:
    def test_accents_and_case(self):
        assert name_tokens("JOSÉ  García") == ["jose", "garcia"]

    def test_apostrophe_joins(self):
        assert name_tokens("Sean O'Brien") == ["sean", "obrien"]

    def test_hyphen_splits(self):
        assert name_tokens("Mary-Kate Olsen") == ["mary", "kate", "olsen"]

    def test_empty(self):
        assert name_tokens(None) == []


class TestNamesMatch:
    @pytest.mark.parametrize(
        "first,last,report",
        [
            ("John", "Doe", "JOHN DOE"),
            ("John", "Doe", "DOE, JOHN"),
            ("José", "García", "JOSE GARCIA"),
            ("Sean", "O'Brien", "SEAN OBRIEN"),
            ("John", "Doe", "JOHN A DOE"),
            ("Mary Jane", "Smith", "JANE SMITH"),
            ("Mary-Jane", "Smith", "MARY J SMITH"),
            ("John", "Smith Jones", "JOHN JONES"),
        ],
    )
    def test_matches(self, first, last, report):
        assert names_match(first, last, report) is True

    @pytest.mark.parametrize(
        "first,last,report",
        [
            ("Alice", "Smith", "John Doe"),
            ("John", "Smith", "John Doe"),
            ("Jane", "Doe", "John Doe"),
            ("", "Doe", "John Doe"),
            ("J", "Doe", "JOHN DOE"),
            ("John", "Doe", "J DOE"),
            ("Ann", "Lee", "ANN SMITH"),
            ("Jo", "Li", "JO MARY"),
        ],
    )
    def test_mismatches(self, first, last, report):
        assert names_match(first, last, report) is False


class TestCheckIdentity:
    def test_pass(self):
        bureaus = profile(make_record("experian", names=["JOHN DOE"], report_date="2026-01-20"))
        result = check_identity("John", "Doe", bureaus, reference_date=TODAY)
        assert result.ok is True
        assert result.matched_name == "JOHN DOE"
        assert result.age_days == 12
        assert result.warnings == []

    def test_name_mismatch(self):
        bureaus = profile(make_record("experian", names=["John Doe"], report_date="2026-01-20"))
        result = check_identity("Alice", "Smith", bureaus, reference_date=TODAY)
        assert result.ok is False
        assert result.error == ErrorKind.NAME_MISMATCH
        assert result.msg

    def test_any_bureau_name_counts(self):
        bureaus = profile(
            make_record("experian", names=["J SMITH"], report_date="2026-01-20"),
            make_record("equifax", names=["JOHN DOE"], report_date="2026-01-20"),
        )
        assert check_identity("John", "Doe", bureaus, reference_date=TODAY).ok is True

    def test_report_too_old(self):
        bureaus = profile(make_record("experian", report_date="2025-12-01"))
        result = check_identity("John", "Doe", bureaus, reference_date=TODAY)
        assert result.ok is False
        assert result.error == ErrorKind.REPORT_TOO_OLD
        assert result.age_days == 62

    def test_most_recent_date_decides(self):
        bureaus = profile(
            make_record("experian", report_date="2025-06-01"),
            make_record("transunion", report_date="2026-01-25"),
        )
        result = check_identity("John", "Doe", bureaus, reference_date=TODAY)
        assert result.ok is True
        assert result.report_date == "2026-01-25"

    def test_future_report_date_is_age_zero(self):
        bureaus = profile(make_record("experian", report_date="2026-02-10"))
        result = check_identity("John", "Doe", bureaus, reference_date=TODAY)
        assert result.ok is True
        assert result.age_days == 0

    def test_exactly_thirty_days_passes(self):
        bureaus = profile(make_record("experian", report_date="2026-01-02"))
        assert check_identity("John", "Doe", bureaus, reference_date=TODAY).ok is True

    def test_no_names_passes_with_warning(self):
        bureaus = profile(make_record("experian", names=[], report_date="2026-01-20"))
        result = check_identity("John", "Doe", bureaus, reference_date=TODAY)
        assert result.ok is True
        assert len(result.warnings) == 1

    def test_no_date_passes_with_warning(self):
        record = make_record("experian").model_copy(update={"report_date": None})
        result = check_identity("John", "Doe", profile(record), reference_date=TODAY)
        assert result.ok is True
        assert result.warnings == ["Could not verify report date"]
