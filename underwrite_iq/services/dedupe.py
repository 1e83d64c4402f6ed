# This project was developed with assistance from AI tools.
"""Repeat-submission short circuit.

A finished run's redirect payload is cached for 30 days under three keys:
a hash of the applicant's email and phone, the browser device id, and the
referral id. A later request matching any of them gets the cached redirect
back without re-running the pipeline. The cache also remembers extraction
output per PDF digest for a day.

The cache is optional. Every cache failure is logged and treated as a miss,
so the pipeline never fails because of it.
"""

import hashlib
import json
import logging
import re
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx
from pydantic import BaseModel

from ..core.config import Settings

logger = logging.getLogger(__name__)

TTL_SECONDS = 60 * 60 * 24 * 30
DEDUPE_WINDOW_DAYS = 30
USER_PREFIX = "uwiq:u:"
DEVICE_PREFIX = "uwiq:d:"
REF_PREFIX = "uwiq:r:"
PARSE_PREFIX = "uwiq:parse:"

_NON_DIGIT_RE = re.compile(r"\D")


class CacheUnavailable(Exception):
    """The cache backend could not be reached or returned an error."""


class DedupeCache(Protocol):
    async def get(self, key: str) -> dict | None: ...

    async def set(self, key: str, payload: dict, ttl_seconds: int) -> None: ...


class UpstashCache:
    """Minimal Upstash Redis REST client (``GET`` and ``SET ... EX``)."""

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._url = url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {token}"},
        )

    async def _command(self, *args: str) -> Any:
        try:
            resp = await self._client.post(self._url, json=list(args))
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CacheUnavailable(str(exc)) from exc
        if isinstance(body, dict) and body.get("error"):
            raise CacheUnavailable(str(body["error"]))
        return body.get("result") if isinstance(body, dict) else None

    async def get(self, key: str) -> dict | None:
        raw = await self._command("GET", key)
        if raw is None:
            return None
        try:
            value = json.loads(raw) if isinstance(raw, str) else raw
        except json.JSONDecodeError:
            logger.warning("Discarding non-JSON cache entry under %s", key)
            return None
        return value if isinstance(value, dict) else None

    async def set(self, key: str, payload: dict, ttl_seconds: int) -> None:
        await self._command("SET", key, json.dumps(payload), "EX", str(ttl_seconds))

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class DedupeKeys(BaseModel):
    user_key: str | None = None
    device_key: str | None = None
    ref_key: str | None = None
    ref_id: str | None = None

    def present(self) -> list[str]:
        return [k for k in (self.user_key, self.device_key, self.ref_key) if k]


def normalize_email(email: str | None) -> str | None:
    value = (email or "").strip().lower()
    return value or None


def normalize_phone(phone: str | None) -> str | None:
    digits = _NON_DIGIT_RE.sub("", phone or "")
    return digits or None


def hash_user_identity(email: str | None, phone: str | None) -> str | None:
    """SHA-256 of ``email|phoneDigits``; None unless both are present."""
    e = normalize_email(email)
    p = normalize_phone(phone)
    if not e or not p:
        return None
    return hashlib.sha256(f"{e}|{p}".encode()).hexdigest()


def build_dedupe_keys(
    email: str | None,
    phone: str | None,
    device_id: str | None,
    ref_id: str | None = None,
    use_ref_key: bool = True,
) -> DedupeKeys:
    """Build the user/device/ref keys for one request.

    The ref id is the one provided, else the user hash, else the device id.
    """
    user_hash = hash_user_identity(email, phone)
    device = (device_id or "").strip() or None
    derived_ref = (ref_id or "").strip() or user_hash or device

    keys = DedupeKeys(
        user_key=USER_PREFIX + user_hash if user_hash else None,
        device_key=DEVICE_PREFIX + device if device else None,
        ref_id=derived_ref,
    )
    if use_ref_key and derived_ref:
        keys.ref_key = REF_PREFIX + derived_ref
    return keys


def compute_days_remaining(last_upload: str | None, now: datetime | None = None) -> int | None:
    """Whole days left in the 30-day window, floored at zero."""
    if not last_upload:
        return None
    try:
        last = datetime.fromisoformat(last_upload.replace("Z", "+00:00"))
    except ValueError:
        return None
    if last.tzinfo is None:
        last = last.replace(tzinfo=UTC)
    elapsed = ((now or datetime.now(UTC)) - last).days
    return max(DEDUPE_WINDOW_DAYS - elapsed, 0)


class DedupeHit(BaseModel):
    source: str
    redirect: dict


def _refresh(entry: dict | None) -> dict | None:
    if not isinstance(entry, dict) or not isinstance(entry.get("redirect"), dict):
        return None
    redirect = dict(entry["redirect"])
    days = compute_days_remaining(redirect.get("lastUpload") or entry.get("lastUpload"))
    if days is not None:
        redirect["daysRemaining"] = days
    return redirect


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class DedupeStore:
    """Cache-backed dedupe and parse cache with passthrough on failure."""

    def __init__(self, cache: DedupeCache | None):
        self._cache = cache

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    async def _get(self, key: str) -> dict | None:
        if self._cache is None or not key:
            return None
        try:
            return await self._cache.get(key)
        except CacheUnavailable:
            logger.warning("Dedupe cache read failed for %s", key.split(":")[1], exc_info=True)
            return None

    async def _set(self, key: str, payload: dict, ttl: int) -> None:
        if self._cache is None or not key:
            return
        try:
            await self._cache.set(key, payload, ttl)
        except CacheUnavailable:
            logger.warning("Dedupe cache write failed for %s", key.split(":")[1], exc_info=True)

    async def check(self, keys: DedupeKeys) -> DedupeHit | None:
        """First cached redirect in user, device, ref order."""
        for source, key in (
            ("user", keys.user_key),
            ("device", keys.device_key),
            ("ref", keys.ref_key),
        ):
            if not key:
                continue
            redirect = _refresh(await self._get(key))
            if redirect is not None:
                logger.info("Dedupe hit via %s key", source)
                return DedupeHit(source=source, redirect=redirect)
        return None

    async def store(self, keys: DedupeKeys, redirect: dict) -> None:
        """Write the redirect under every present key."""
        last_upload = redirect.get("lastUpload") or datetime.now(UTC).isoformat()
        entry = {"redirect": redirect, "lastUpload": last_upload}
        for key in keys.present():
            await self._set(key, entry, TTL_SECONDS)

    async def lookup_by_ref(self, ref_id: str | None) -> dict | None:
        ref = (ref_id or "").strip()
        if not ref:
            return None
        return _refresh(await self._get(REF_PREFIX + ref))

    async def get_parsed(self, digest: str) -> dict | None:
        return await self._get(PARSE_PREFIX + digest)

    async def set_parsed(self, digest: str, payload: dict, ttl: int) -> None:
        await self._set(PARSE_PREFIX + digest, payload, ttl)

    async def aclose(self) -> None:
        if isinstance(self._cache, UpstashCache):
            await self._cache.aclose()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_store: DedupeStore | None = None


def init_dedupe_store(cfg: Settings) -> DedupeStore:
    """Initialise the singleton (called once from app lifespan)."""
    global _store  # noqa: PLW0603
    cache: DedupeCache | None = None
    if cfg.UPSTASH_REDIS_REST_URL and cfg.UPSTASH_REDIS_REST_TOKEN:
        cache = UpstashCache(cfg.UPSTASH_REDIS_REST_URL, cfg.UPSTASH_REDIS_REST_TOKEN)
        logger.info("DedupeStore initialised (upstash)")
    else:
        logger.warning("Upstash not configured, dedupe disabled")
    _store = DedupeStore(cache)
    return _store


def get_dedupe_store() -> DedupeStore:
    """Return the initialised DedupeStore singleton."""
    if _store is None:
        raise RuntimeError("DedupeStore not initialised -- call init_dedupe_store() first")
    return _store
