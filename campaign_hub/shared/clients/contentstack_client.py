from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from ...core.cache import LRUCache, cached
from ...core.config import Settings
from ..exceptions import UpstreamError

logger = logging.getLogger(__name__)


class ContentstackClient:
    """Contentstack delivery (CDN) and management API client.

    Delivery reads are cached for ``content_revalidate_seconds``; management
    calls are never cached.
    """

    def __init__(self, settings: Settings, http: httpx.AsyncClient):
        self.settings = settings
        self.http = http
        self.delivery_cache = LRUCache(max_size=256, ttl=settings.content_revalidate_seconds)

    def _delivery_headers(self) -> Dict[str, str]:
        self.settings.require_content_delivery()
        return {
            "api_key": self.settings.contentstack_api_key,
            "access_token": self.settings.contentstack_delivery_token,
            "environment": self.settings.contentstack_environment,
        }

    def _management_headers(self) -> Dict[str, str]:
        self.settings.require_content_management()
        return {
            "api_key": self.settings.contentstack_api_key,
            "authorization": self.settings.contentstack_management_token,
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        start_time = time.monotonic()
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.TimeoutException:
            logger.error(f"Contentstack request timed out: {method} {url}")
            raise UpstreamError("contentstack", "Content service timed out", upstream_status=504)
        except httpx.HTTPError as e:
            logger.error(f"Contentstack request failed: {method} {url}: {e}")
            raise UpstreamError("contentstack", "Content service unreachable")

        response_time = time.monotonic() - start_time
        if response.is_success:
            logger.debug(f"Contentstack {method} {url} ok ({response_time:.2f}s)")
            return response.json()

        try:
            error_body: Any = response.json()
        except ValueError:
            error_body = {"raw": response.text[:500]}
        logger.error(
            f"Contentstack API error: {response.status_code} {method} {url}",
            extra={"component": "contentstack", "details": error_body},
        )
        raise UpstreamError(
            "contentstack",
            f"Content service returned {response.status_code}",
            upstream_status=response.status_code,
            details=error_body,
        )

    # Delivery API

    @cached("delivery_cache", key_prefix="entries")
    async def get_entries(
        self,
        content_type: str,
        query: Optional[Dict[str, Any]] = None,
        include_reference: bool = False,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, str] = {}
        if query:
            params["query"] = json.dumps(query)
        if include_reference:
            params["include_reference"] = "true"
        data = await self._request(
            "GET",
            f"{self.settings.contentstack_cdn_url}/content_types/{content_type}/entries",
            headers=self._delivery_headers(),
            params=params,
        )
        return data.get("entries") or []

    @cached("delivery_cache", key_prefix="entry")
    async def get_entry(self, content_type: str, uid: str) -> Optional[Dict[str, Any]]:
        data = await self._request(
            "GET",
            f"{self.settings.contentstack_cdn_url}/content_types/{content_type}/entries/{uid}",
            headers=self._delivery_headers(),
        )
        return data.get("entry")

    # Management API

    async def create_entry(self, content_type: str, entry: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"{self.settings.contentstack_management_url}/content_types/{content_type}/entries",
            headers=self._management_headers(),
            json={"entry": entry},
        )

    async def list_management_entries(
        self,
        content_type: str,
        query: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        params = {"query": json.dumps(query)} if query else None
        data = await self._request(
            "GET",
            f"{self.settings.contentstack_management_url}/content_types/{content_type}/entries",
            headers=self._management_headers(),
            params=params,
        )
        return data.get("entries") or []
