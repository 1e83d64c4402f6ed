# This project was developed with assistance from AI tools.
"""Tests for repeat-submission dedupe and the Upstash REST cache."""

import hashlib
import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from underwrite_iq.core.config import settings
from underwrite_iq.services import dedupe as dedupe_module
from underwrite_iq.services.dedupe import (
    PARSE_PREFIX,
    REF_PREFIX,
    TTL_SECONDS,
    CacheUnavailable,
    DedupeStore,
    UpstashCache,
    build_dedupe_keys,
    compute_days_remaining,
    hash_user_identity,
    init_dedupe_store,
)

from tests.factories import FakeCache

NOW = datetime(2026, 2, 1, 12, 0, tzinfo=UTC)


def _redirect(days_ago=0, **extra):
    last = (datetime.now(UTC) - timedelta(days=days_ago)).isoformat()
    return {"resultType": "funding", "resultUrl": "https://x", "lastUpload": last, **extra}


class TestKeys:
    def test_user_hash(self):
        expected = hashlib.sha256(b"john@real.com|5551234567").hexdigest()
        assert hash_user_identity(" John@Real.com ", "(555) 123-4567") == expected

    def test_user_hash_needs_both(self):
        assert hash_user_identity("john@real.com", "") is None
        assert hash_user_identity(None, "5551234567") is None

    def test_all_keys(self):
        keys = build_dedupe_keys("a@b.io", "5551234567", "dev-1", "ref-9")
        assert keys.user_key.startswith("uwiq:u:")
        assert keys.device_key == "uwiq:d:dev-1"
        assert keys.ref_key == "uwiq:r:ref-9"
        assert keys.ref_id == "ref-9"

    def test_ref_defaults_to_user_hash(self):
        keys = build_dedupe_keys("a@b.io", "5551234567", "dev-1")
        assert keys.ref_id == hash_user_identity("a@b.io", "5551234567")

    def test_ref_falls_back_to_device(self):
        keys = build_dedupe_keys(None, None, "dev-1")
        assert keys.ref_id == "dev-1"
        assert keys.user_key is None

    def test_ref_key_can_be_disabled(self):
        keys = build_dedupe_keys("a@b.io", "5551234567", None, "ref-9", use_ref_key=False)
        assert keys.ref_key is None
        assert keys.present() == [keys.user_key]


class TestDaysRemaining:
    def test_counts_down(self):
        last = (NOW - timedelta(days=10)).isoformat()
        assert compute_days_remaining(last, NOW) == 20

    def test_floored_at_zero(self):
        last = (NOW - timedelta(days=45)).isoformat()
        assert compute_days_remaining(last, NOW) == 0

    def test_zulu_suffix(self):
        assert compute_days_remaining("2026-01-31T12:00:00Z", NOW) == 29

    def test_missing_or_bad(self):
        assert compute_days_remaining(None, NOW) is None
        assert compute_days_remaining("yesterday", NOW) is None


class TestDedupeStore:
    @pytest.mark.asyncio
    async def test_store_then_check(self):
        store = DedupeStore(FakeCache())
        keys = build_dedupe_keys("a@b.io", "5551234567", "dev-1")
        await store.store(keys, _redirect())

        hit = await store.check(keys)
        assert hit is not None
        assert hit.source == "user"
        assert hit.redirect["resultType"] == "funding"
        assert hit.redirect["daysRemaining"] == 30

    @pytest.mark.asyncio
    async def test_device_key_alone_hits(self):
        store = DedupeStore(FakeCache())
        await store.store(build_dedupe_keys("a@b.io", "5551234567", "dev-1"), _redirect())

        hit = await store.check(build_dedupe_keys("other@b.io", "5559999999", "dev-1"))
        assert hit.source == "device"

    @pytest.mark.asyncio
    async def test_check_order_user_first(self):
        cache = FakeCache()
        store = DedupeStore(cache)
        keys = build_dedupe_keys("a@b.io", "5551234567", "dev-1", "ref-1")
        await cache.set(keys.ref_key, {"redirect": _redirect(resultUrl="ref")}, 60)
        await cache.set(keys.device_key, {"redirect": _redirect(resultUrl="device")}, 60)
        await cache.set(keys.user_key, {"redirect": _redirect(resultUrl="user")}, 60)

        hit = await store.check(keys)
        assert hit.redirect["resultUrl"] == "user"

    @pytest.mark.asyncio
    async def test_store_writes_every_key_with_ttl(self):
        cache = FakeCache()
        store = DedupeStore(cache)
        keys = build_dedupe_keys("a@b.io", "5551234567", "dev-1", "ref-1")
        await store.store(keys, _redirect())
        assert set(cache.store) == set(keys.present())
        _, expires_at = cache.store[keys.user_key]
        assert expires_at > 0
        assert TTL_SECONDS == 30 * 24 * 60 * 60

    @pytest.mark.asyncio
    async def test_days_remaining_refreshed(self):
        store = DedupeStore(FakeCache())
        keys = build_dedupe_keys("a@b.io", "5551234567", None)
        await store.store(keys, _redirect(days_ago=12, daysRemaining=30))
        hit = await store.check(keys)
        assert hit.redirect["daysRemaining"] == 18

    @pytest.mark.asyncio
    async def test_miss(self):
        store = DedupeStore(FakeCache())
        assert await store.check(build_dedupe_keys("a@b.io", "5551234567", "d")) is None

    @pytest.mark.asyncio
    async def test_cache_failure_is_a_miss(self):
        cache = FakeCache()
        cache.fail = True
        store = DedupeStore(cache)
        keys = build_dedupe_keys("a@b.io", "5551234567", "dev-1")
        await store.store(keys, _redirect())
        assert await store.check(keys) is None
        assert await store.lookup_by_ref("abc") is None

    @pytest.mark.asyncio
    async def test_disabled_store(self):
        store = DedupeStore(None)
        assert store.enabled is False
        keys = build_dedupe_keys("a@b.io", "5551234567", "dev-1")
        await store.store(keys, _redirect())
        assert await store.check(keys) is None

    @pytest.mark.asyncio
    async def test_lookup_by_ref(self):
        store = DedupeStore(FakeCache())
        keys = build_dedupe_keys("a@b.io", "5551234567", None, "aff-7")
        await store.store(keys, _redirect())
        redirect = await store.lookup_by_ref("aff-7")
        assert redirect["resultUrl"] == "https://x"
        assert await store.lookup_by_ref("") is None
        assert await store.lookup_by_ref("unknown") is None

    @pytest.mark.asyncio
    async def test_parse_cache(self):
        cache = FakeCache()
        store = DedupeStore(cache)
        await store.set_parsed("abc", {"raw": {"bureaus": {}}}, 60)
        assert PARSE_PREFIX + "abc" in cache.store
        assert await store.get_parsed("abc") == {"raw": {"bureaus": {}}}

    @pytest.mark.asyncio
    async def test_malformed_entry_ignored(self):
        cache = FakeCache()
        await cache.set(REF_PREFIX + "x", {"no_redirect": True}, 60)
        assert await DedupeStore(cache).lookup_by_ref("x") is None


class TestUpstashCache:
    def _cache(self, handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return UpstashCache("https://upstash.example/", "tok", client=client)

    @pytest.mark.asyncio
    async def test_get_decodes_json(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"result": json.dumps({"redirect": {"a": 1}})})

        cache = self._cache(handler)
        assert await cache.get("uwiq:u:x") == {"redirect": {"a": 1}}
        assert seen == [["GET", "uwiq:u:x"]]
        await cache.aclose()

    @pytest.mark.asyncio
    async def test_get_missing(self):
        cache = self._cache(lambda request: httpx.Response(200, json={"result": None}))
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_set_sends_expiry(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"result": "OK"})

        await self._cache(handler).set("k", {"a": 1}, 600)
        assert seen == [["SET", "k", '{"a": 1}', "EX", "600"]]

    @pytest.mark.asyncio
    async def test_http_error_raises_unavailable(self):
        cache = self._cache(lambda request: httpx.Response(500, text="down"))
        with pytest.raises(CacheUnavailable):
            await cache.get("k")

    @pytest.mark.asyncio
    async def test_error_body_raises_unavailable(self):
        cache = self._cache(lambda request: httpx.Response(200, json={"error": "WRONGPASS"}))
        with pytest.raises(CacheUnavailable):
            await cache.set("k", {}, 1)

    @pytest.mark.asyncio
    async def test_store_over_unreachable_upstash_passes_through(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        store = DedupeStore(self._cache(handler))
        keys = build_dedupe_keys("a@b.io", "5551234567", "dev-1")
        await store.store(keys, _redirect())
        assert await store.check(keys) is None


class TestSingleton:
    def test_get_before_init_raises(self, monkeypatch):
        monkeypatch.setattr(dedupe_module, "_store", None)
        with pytest.raises(RuntimeError):
            dedupe_module.get_dedupe_store()

    def test_init_without_upstash(self, monkeypatch):
        monkeypatch.setattr(dedupe_module, "_store", None)
        cfg = settings.model_copy(
            update={"UPSTASH_REDIS_REST_URL": None, "UPSTASH_REDIS_REST_TOKEN": None}
        )
        store = init_dedupe_store(cfg)
        assert store.enabled is False
        assert dedupe_module.get_dedupe_store() is store


class TestCacheTtl:
    @pytest.mark.asyncio
    async def test_parse_entry_expires(self):
        clock = [1000.0]
        store = DedupeStore(FakeCache(clock=lambda: clock[0]))
        await store.set_parsed("abc", {"raw": {}}, 60)

        clock[0] += 59
        assert await store.get_parsed("abc") == {"raw": {}}
        clock[0] += 1
        assert await store.get_parsed("abc") is None
