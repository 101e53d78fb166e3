"""
detector_gateway.services.cache

Content-addressed cache of classification results.

Responsibilities:
- Derive collision-resistant keys from (locator, content, mode, freshness token).
- Serve stored payloads unchanged while they are younger than the TTL.
- Evict stale entries on lookup and purge them in bulk from maintenance jobs.
- Stay off the critical path: every store error degrades to a miss / no-op.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from urllib.parse import urlsplit

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from detector_gateway.clock import Clock, from_naive_utc, utcnow
from detector_gateway.db.repositories.cache_entries import CacheEntryRepo
from detector_gateway.observability.logging import get_logger
from detector_gateway.outcome import Ok, Outcome, SoftFailure
from detector_gateway.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CacheKey:
    locator_hash: str
    content_hash: str
    mode: str
    freshness_token: str = ""

    def as_string(self) -> str:
        return "_".join(
            part
            for part in (self.locator_hash, self.content_hash, self.freshness_token, self.mode)
            if part
        )


@dataclass(frozen=True, slots=True)
class CacheLookup:
    payload: dict[str, Any] | None
    stale_evicted: bool = False

    @property
    def hit(self) -> bool:
        return self.payload is not None


@dataclass(frozen=True, slots=True)
class CacheStats:
    total_entries: int
    top_domains: list[tuple[str, int]]


def _sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def normalize_content(content: str) -> str:
    return content.strip().casefold()


def normalize_locator(locator: str) -> str:
    return locator.strip().casefold()


def derive_key(
    locator: str, content: str, mode: str, freshness_token: str | None = None
) -> CacheKey:
    freshness = (freshness_token or "").strip()
    return CacheKey(
        locator_hash=_sha256(normalize_locator(locator)),
        content_hash=_sha256(normalize_content(content)),
        mode=mode,
        freshness_token=_sha256(freshness) if freshness else "",
    )


class CacheManager:
    def __init__(self, *, session: AsyncSession, settings: Settings, clock: Clock = utcnow) -> None:
        self._session = session
        self._ttl = timedelta(seconds=settings.cache_ttl_seconds)
        self._clock = clock
        self._entries = CacheEntryRepo(session)

    derive_key = staticmethod(derive_key)

    async def lookup(self, key: CacheKey) -> Outcome[CacheLookup]:
        try:
            entry = await self._entries.get(
                locator_hash=key.locator_hash,
                content_hash=key.content_hash,
                freshness_token=key.freshness_token,
                mode=key.mode,
            )
            if entry is None:
                return Ok(CacheLookup(payload=None))

            if self._clock() - from_naive_utc(entry.created_at) > self._ttl:
                await self._entries.delete(entry)
                await self._session.commit()
                log.info("cache_entry_expired", key=key.as_string())
                return Ok(CacheLookup(payload=None, stale_evicted=True))

            return Ok(CacheLookup(payload=entry.payload))
        except SQLAlchemyError as e:
            await self._session.rollback()
            log.warning("cache_lookup_failed", key=key.as_string(), error=str(e))
            return SoftFailure(reason="cache lookup failed", value=CacheLookup(payload=None))

    async def store(self, key: CacheKey, payload: dict[str, Any], *, locator: str) -> Outcome[None]:
        try:
            await self._entries.add(
                locator_hash=key.locator_hash,
                content_hash=key.content_hash,
                freshness_token=key.freshness_token,
                mode=key.mode,
                locator=locator,
                domain=_domain_of(locator),
                payload=payload,
                now=self._clock(),
            )
            await self._session.commit()
        except IntegrityError:
            # A concurrent request stored an equivalent payload first.
            await self._session.rollback()
            log.info("cache_store_conflict", key=key.as_string())
            return Ok(None)
        except SQLAlchemyError as e:
            await self._session.rollback()
            log.warning("cache_store_failed", key=key.as_string(), error=str(e))
            return SoftFailure(reason="cache store failed", value=None)
        return Ok(None)

    async def purge_expired(self) -> int:
        try:
            deleted = await self._entries.delete_older_than(self._clock() - self._ttl)
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            log.warning("cache_purge_failed", error=str(e))
            return 0
        log.info("cache_purge", deleted=deleted)
        return deleted

    async def stats(self) -> Outcome[CacheStats]:
        try:
            return Ok(
                CacheStats(
                    total_entries=await self._entries.count(),
                    top_domains=await self._entries.top_domains(limit=10),
                )
            )
        except SQLAlchemyError as e:
            await self._session.rollback()
            log.warning("cache_stats_failed", error=str(e))
            return SoftFailure(reason="cache stats unavailable", value=CacheStats(0, []))


def _domain_of(locator: str) -> str:
    return (urlsplit(locator).hostname or "").lower()


# --- Module Notes -----------------------------------------------------------
# Every key component is a full sha256 (64 hex chars) except the mode tag, which is kept
# verbatim so different modes never share an entry.
