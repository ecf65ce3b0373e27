from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, FrozenSet, Iterable, Optional, Tuple

import httpx
from fastapi import Request

from app.core.errors import Forbidden, MissingAddress

logger = logging.getLogger(__name__)

# Checked in this order after the route's primary field.
FALLBACK_ADDRESS_FIELDS: Tuple[str, ...] = ("creator", "participant", "sender", "from", "address")


def _normalize_entries(data: Iterable[Any]) -> FrozenSet[str]:
    out = set()
    for entry in data:
        if isinstance(entry, dict):
            entry = entry.get("address")
        if isinstance(entry, str) and entry:
            out.add(entry.lower())
    return frozenset(out)


class WhitelistCache:
    """
    TTL cache over the remote whitelist.

    Refresh failures keep the previous set; with no previous set the
    whitelist is empty and every address is denied.
    """

    def __init__(
        self,
        url: str,
        ttl_seconds: float = 300,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.url = url
        self.ttl_seconds = ttl_seconds
        self._timeout = timeout
        self._transport = transport
        self._clock = clock

        self._addresses: Optional[FrozenSet[str]] = None
        self._fetched_at: float = 0.0
        self._refresh_lock = asyncio.Lock()

    def _fresh(self) -> bool:
        return self._addresses is not None and (self._clock() - self._fetched_at) < self.ttl_seconds

    async def _fetch(self) -> FrozenSet[str]:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.get(self.url)
            resp.raise_for_status()
            data = resp.json()
        if not isinstance(data, list):
            raise ValueError(f"whitelist payload must be a list, got {type(data).__name__}")
        return _normalize_entries(data)

    async def addresses(self) -> FrozenSet[str]:
        if self._fresh():
            return self._addresses

        async with self._refresh_lock:
            # another task may have refreshed while we waited
            if self._fresh():
                return self._addresses
            try:
                fetched = await self._fetch()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning("[whitelist] fetch failed: %s", exc)
                return self._addresses if self._addresses is not None else frozenset()

            self._addresses = fetched
            self._fetched_at = self._clock()
            logger.debug("[whitelist] refreshed %d addresses", len(fetched))
            return fetched

    async def is_allowed(self, address: str) -> bool:
        return address.lower() in await self.addresses()


def extract_address(body: Any, primary_field: str) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    for field in (primary_field, *FALLBACK_ADDRESS_FIELDS):
        value = body.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def require_whitelist(address_field: Optional[str] = None):
    """
    Dependency factory gating mutating routes on whitelist membership.
    Falls back to settings.whitelist_address_field for the primary field.
    """

    async def _guard(request: Request) -> str:
        field = address_field or request.app.state.settings.whitelist_address_field
        try:
            body = await request.json()
        except ValueError:
            body = {}

        addr = extract_address(body, field)
        if not addr:
            raise MissingAddress()

        whitelist: WhitelistCache = request.app.state.whitelist
        if not await whitelist.is_allowed(addr):
            logger.info("[whitelist] denied %s", addr[:10])
            raise Forbidden()

        return addr

    return _guard
