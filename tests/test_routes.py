# This project was developed with assistance from AI tools.
"""Tests for the HTTP surface: routes, error envelopes, and CORS."""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from underwrite_iq.main import app
from underwrite_iq.schemas.errors import GENERIC_MESSAGE, ErrorKind, FailureResponse
from underwrite_iq.schemas.switchboard import DedupeHitResponse
from underwrite_iq.services.dedupe import REF_PREFIX, DedupeStore, get_dedupe_store
from underwrite_iq.services.extraction import get_extraction_service
from underwrite_iq.services.switchboard import get_switchboard
from underwrite_iq.services.upload_validation import validate_uploads

from tests.factories import FakeCache, FakeExtraction, extraction_ok, make_pdf, make_record

FORM = {
    "firstName": "John",
    "lastName": "Doe",
    "email": "john@real.com",
    "phone": "(555) 123-4567",
    "deviceId": "dev-1",
    "forceReprocess": "true",
}


@pytest.fixture
def client():
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def pipeline():
    mock = MagicMock()
    mock.run = AsyncMock(
        return_value=DedupeHitResponse(source="user", redirect={"resultType": "funding"})
    )
    app.dependency_overrides[get_switchboard] = lambda: mock
    return mock


class TestHealth:
    def test_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestValidators:
    def test_valid_name(self, client):
        response = client.post("/validate-name", json={"firstName": "John", "lastName": "Doe"})
        assert response.json() == {"ok": True}

    def test_invalid_name(self, client):
        body = client.post("/validate-name", json={"firstName": "J0hn", "lastName": "Doe"}).json()
        assert body["ok"] is False
        assert body["error"]

    def test_throwaway_email(self, client):
        body = client.post("/validate-email", json={"email": "a@mailinator.com"}).json()
        assert body["ok"] is False

    def test_phone_normalized(self, client):
        body = client.post("/validate-phone", json={"phone": "(555) 123-4567"}).json()
        assert body == {"ok": True, "normalized": "5551234567"}

    def test_bad_phone_has_msg(self, client):
        body = client.post("/validate-phone", json={"phone": "123"}).json()
        assert body["ok"] is False
        assert body["msg"]

    def test_malformed_json_is_rejection(self, client):
        response = client.post(
            "/validate-name",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 200
        assert response.json()["ok"] is False


class TestErrorEnvelopes:
    @pytest.mark.parametrize("path", ["/validate-name", "/validate-email", "/validate-phone"])
    def test_wrong_method(self, client, path):
        response = client.get(path)
        assert response.status_code == 405
        assert response.json() == {"ok": False, "msg": "Method not allowed"}

    def test_unknown_path(self, client):
        response = client.get("/nope")
        assert response.status_code == 404
        assert response.json()["ok"] is False

    def test_unhandled_exception(self, client, pipeline):
        pipeline.run.side_effect = RuntimeError("boom")
        response = client.post(
            "/switchboard",
            data=FORM,
            files=[("file", ("a.pdf", b"%PDF-1.4", "application/pdf"))],
        )
        assert response.status_code == 200
        assert response.json() == {"ok": False, "msg": GENERIC_MESSAGE}
        assert response.headers["access-control-allow-origin"] == "*"

    def test_unhandled_exception_from_dependency(self, client):
        store = MagicMock()
        store.lookup_by_ref = AsyncMock(side_effect=ValueError("bad cache payload"))
        app.dependency_overrides[get_dedupe_store] = lambda: store
        response = client.get("/referral-lookup", params={"ref": "aff-7"})
        assert response.status_code == 200
        assert response.json() == {"ok": False, "msg": GENERIC_MESSAGE}
        assert response.headers["access-control-allow-origin"] == "*"


class TestCors:
    def test_preflight_post_route(self, client):
        response = client.options("/switchboard")
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"

    def test_preflight_get_route(self, client):
        response = client.options("/referral-lookup")
        assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"

    def test_origin_stamped_on_responses(self, client):
        assert client.get("/health").headers["access-control-allow-origin"] == "*"


class TestReferralLookup:
    def _store(self):
        cache = FakeCache()
        redirect = {"resultType": "repair", "resultUrl": "https://x"}
        cache.store[REF_PREFIX + "aff-7"] = ({"redirect": redirect}, time.monotonic() + 60)
        store = DedupeStore(cache)
        app.dependency_overrides[get_dedupe_store] = lambda: store
        return store

    def test_hit(self, client):
        self._store()
        response = client.get("/referral-lookup", params={"ref": "aff-7"})
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["redirect"]["resultUrl"] == "https://x"

    def test_miss(self, client):
        self._store()
        response = client.get("/referral-lookup", params={"ref": "other"})
        assert response.status_code == 404
        assert response.json() == {"ok": False}


class TestSwitchboardRoute:
    def test_form_is_sanitized_and_forwarded(self, client, pipeline):
        response = client.post(
            "/switchboard",
            data=FORM,
            files=[
                ("file", ("ex.pdf", b"%PDF-1.4 ex", "application/pdf")),
                ("file", ("eq.pdf", b"%PDF-1.4 eq", "application/pdf")),
            ],
        )
        assert response.status_code == 200
        assert response.json()["deduped"] is True

        form, candidates = pipeline.run.await_args.args
        assert form.first_name == "John"
        assert form.phone == "5551234567"
        assert form.device_id == "dev-1"
        assert form.force_reprocess is True
        assert [c.filename for c in candidates] == ["ex.pdf", "eq.pdf"]
        assert candidates[0].data == b"%PDF-1.4 ex"

    def test_invalid_form_never_runs_pipeline(self, client, pipeline):
        response = client.post("/switchboard", data={**FORM, "email": "a@test.com"})
        body = response.json()
        assert response.status_code == 200
        assert body["ok"] is False
        assert body["reason"] == ErrorKind.INVALID_INPUT.value
        pipeline.run.assert_not_awaited()

    def test_failure_passthrough(self, client, pipeline):
        pipeline.run.return_value = FailureResponse(
            reason=ErrorKind.NAME_MISMATCH, msg="nope", stage="merged"
        )
        body = client.post(
            "/switchboard",
            data=FORM,
            files=[("file", ("ex.pdf", b"%PDF-1.4", "application/pdf"))],
        ).json()
        assert body["ok"] is False
        assert body["reason"] == "name_mismatch"
        assert body["stage"] == "merged"

    def test_no_files_reaches_pipeline_empty(self, client, pipeline):
        client.post("/switchboard", data=FORM)
        _, candidates = pipeline.run.await_args.args
        assert candidates == []


class TestParseReport:
    @pytest.fixture
    def extraction(self):
        fake = FakeExtraction({"ex.pdf": extraction_ok(make_record("experian", score=712))})
        app.dependency_overrides[get_extraction_service] = lambda: fake
        return fake

    def test_single_report(self, client, extraction):
        pdf = make_pdf("Experian credit report")
        body = client.post(
            "/parse-report", files={"file": ("ex.pdf", pdf, "application/pdf")}
        ).json()
        assert body["ok"] is True
        assert body["bureaus"]["experian"]["score"] == 712
        assert body["meta"]["filename"] == "ex.pdf"
        assert body["meta"]["source_type"] == "single_bureau"
        assert extraction.calls == ["ex.pdf"]

    def test_rejected_upload(self, client, extraction):
        body = client.post(
            "/parse-report", files={"file": ("ex.pdf", b"%PDF-1.4 tiny", "application/pdf")}
        ).json()
        assert body["ok"] is False
        assert body["reason"] == ErrorKind.FILE_TOO_SMALL.value
        assert extraction.calls == []

    def test_validation_runs_in_worker_thread(self, client, extraction):
        threads = []

        def validate(files):
            try:
                asyncio.get_running_loop()
                threads.append("event loop")
            except RuntimeError:
                threads.append("worker")
            return validate_uploads(files)

        with patch("underwrite_iq.routes.parse_report.validate_uploads", side_effect=validate):
            body = client.post(
                "/parse-report",
                files={"file": ("ex.pdf", make_pdf("Experian credit report"), "application/pdf")},
            ).json()
        assert body["ok"] is True
        assert threads == ["worker"]
