# This project was developed with assistance from AI tools.
"""Tests for letter uploads and CRM field mapping.

boto3 is never reached: the storage service is a MagicMock whose
``upload_letter`` is an AsyncMock.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from underwrite_iq.core.config import settings
from underwrite_iq.services.letters import Letter
from underwrite_iq.services.storage import (
    NOT_CONFIGURED,
    URL_EXPIRATION_SECONDS,
    StorageService,
    UploadSummary,
    init_storage_service,
    map_urls_to_crm_fields,
    upload_all,
)


def _letters(*names):
    return [Letter(filename=n, bureau="experian", kind="dispute", data=b"%PDF-1.4") for n in names]


def _presign(letter, folder):
    return f"https://blob/{folder}/{letter.filename}"


def _service(side_effect=_presign):
    service = MagicMock()
    service.upload_letter = AsyncMock(side_effect=side_effect)
    return service


def test_links_valid_for_72_hours():
    assert URL_EXPIRATION_SECONDS == 259200


class TestUploadAll:
    @pytest.mark.asyncio
    async def test_unconfigured_fails_every_file(self):
        summary = await upload_all(_letters("ex_round1.pdf", "eq_round1.pdf"), "abc", None)
        assert summary.ok is False
        assert summary.failed_count == 2
        assert summary.uploaded_count == 0
        assert summary.urls == {}
        assert {e.error for e in summary.errors} == {NOT_CONFIGURED}

    @pytest.mark.asyncio
    async def test_all_uploaded(self):
        service = _service()
        summary = await upload_all(_letters("ex_round1.pdf", "inquiry_tu.pdf"), "abc", service)
        assert summary.ok is True
        assert summary.uploaded_count == 2
        assert summary.urls == {
            "ex_round1": "https://blob/abc/ex_round1.pdf",
            "inquiry_tu": "https://blob/abc/inquiry_tu.pdf",
        }
        assert summary.expires_at is not None
        assert service.upload_letter.await_count == 2

    @pytest.mark.asyncio
    async def test_partial_failure_is_recorded(self):
        def upload(letter, folder):
            if letter.filename == "eq_round2.pdf":
                raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
            return f"https://blob/{letter.filename}"

        summary = await upload_all(
            _letters("ex_round1.pdf", "eq_round2.pdf"), "abc", _service(upload)
        )
        assert summary.ok is False
        assert summary.uploaded_count == 1
        assert summary.failed_count == 1
        assert summary.errors[0].filename == "eq_round2.pdf"
        assert list(summary.urls) == ["ex_round1"]

    @pytest.mark.asyncio
    async def test_timeout_is_recorded(self):
        summary = await upload_all(_letters("tu_round3.pdf"), "abc", _service(TimeoutError()))
        assert summary.failed_count == 1
        assert "timeout" in summary.errors[0].error.lower()
        assert summary.expires_at is None

    def test_wire_aliases(self):
        dumped = UploadSummary(ok=True, uploaded_count=1).model_dump(by_alias=True)
        assert dumped["uploadedCount"] == 1
        assert dumped["failedCount"] == 0


class TestObjectKeys:
    def test_key_layout(self):
        assert StorageService.build_object_key("abc123", "ex_round1.pdf") == (
            "letters/abc123/ex_round1.pdf"
        )

    def test_path_components_stripped(self):
        key = StorageService.build_object_key("../../etc", "../passwd")
        assert key == "letters/etc/passwd"

    def test_empty_folder(self):
        assert StorageService.build_object_key("/", "x.pdf") == "letters/anonymous/x.pdf"


class TestCrmFieldMapping:
    def test_repair_fields(self):
        urls = {
            "ex_round1": "u1",
            "eq_round3": "u2",
            "personal_info_tu": "u3",
            "ex_round2": "",
        }
        fields = map_urls_to_crm_fields(urls, "repair")
        assert fields["repair_letter_round_1_ex"] == "u1"
        assert fields["repair_letter_round_3_eq"] == "u2"
        assert fields["repair_letter_personal_info_tu"] == "u3"
        assert "repair_letter_round_2_ex" not in fields
        assert fields["analyzer_path"] == "repair"
        assert fields["letters_ready"] == "true"
        assert fields["analyzer_status"] == "complete"

    def test_fundable_fields(self):
        fields = map_urls_to_crm_fields({"inquiry_eq": "u1", "personal_info_ex": "u2"}, "fundable")
        assert fields["funding_letter_inquiry_eq"] == "u1"
        assert fields["funding_letter_personal_info_ex"] == "u2"
        assert fields["analyzer_path"] == "fundable"

    def test_status_fields_without_urls(self):
        fields = map_urls_to_crm_fields({}, "repair")
        assert fields == {
            "analyzer_path": "repair",
            "letters_ready": "true",
            "analyzer_status": "complete",
        }


class TestInitStorageService:
    def test_disabled_without_token(self):
        cfg = settings.model_copy(update={"BLOB_READ_WRITE_TOKEN": None})
        assert init_storage_service(cfg) is None

    def test_enabled_with_token(self):
        cfg = settings.model_copy(update={"BLOB_READ_WRITE_TOKEN": "secret"})
        with patch("underwrite_iq.services.storage.boto3") as mock_boto:
            service = init_storage_service(cfg)
        assert isinstance(service, StorageService)
        mock_boto.client.assert_called_once()
        init_storage_service(settings.model_copy(update={"BLOB_READ_WRITE_TOKEN": None}))
