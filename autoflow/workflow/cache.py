"""
Fingerprint cache for generated plans.

A fingerprint identifies one (request, model, options) combination. The
cache stores plans in wire form through the store's TTL cache; the store
evicts expired entries on read.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Iterable

import structlog

from autoflow.storage import DEFAULT_TTL_SECONDS, StorageError

from .plan import Plan, PlanValidationError, validate_plan

logger = structlog.get_logger()


def normalize_request(text: str) -> str:
    """Trim and lowercase. Nothing else is folded."""
    return text.strip().lower()


def fingerprint(request: str, model: str | None, options: dict[str, Any] | None = None) -> str:
    """SHA-256 over the canonical JSON of the normalized request, model and options."""
    payload = {
        "prompt": normalize_request(request),
        "model": model,
        "options": options or {},
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class PlanCache:
    """
    Plan cache backed by a store with get_cache_value / set_cache_value.

    Store failures are logged and treated as misses; the cache never
    decides whether a request succeeds.
    """

    def __init__(self, store, default_ttl: float = DEFAULT_TTL_SECONDS):
        self.store = store
        self.default_ttl = default_ttl

    async def get(self, key: str, vocabulary: Iterable[str]) -> Plan | None:
        """Return the cached plan for key, or None on miss, expiry or invalid payload."""
        try:
            payload = await self.store.get_cache_value(key)
        except StorageError as e:
            logger.warning("plan_cache_read_failed", key=key[:12], error=str(e))
            return None

        if payload is None:
            return None

        try:
            return validate_plan(payload, vocabulary, source="cache")
        except PlanValidationError as e:
            # Written under a different action vocabulary
            logger.info("plan_cache_stale", key=key[:12], error=str(e))
            return None

    async def set(self, key: str, plan: Plan, ttl: float | None = None) -> None:
        try:
            await self.store.set_cache_value(key, plan.to_dict(), ttl or self.default_ttl)
        except StorageError as e:
            logger.warning("plan_cache_write_failed", key=key[:12], error=str(e))
