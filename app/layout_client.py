"""HTTP layout store: the persistence collaborator for editors outside the API process."""

from __future__ import annotations

import logging
import os
from urllib.parse import quote

import httpx

from layout_reconcile import LayoutStoreError


logger = logging.getLogger("layoutdesk.client")


def _api_url() -> str:
    return os.getenv("LAYOUTDESK_API_URL", "http://localhost:8000").strip().rstrip("/")


def _api_timeout() -> float:
    return float(os.getenv("LAYOUTDESK_API_TIMEOUT", "30"))


def _error_from(res: httpx.Response) -> LayoutStoreError:
    try:
        body = res.json()
    except ValueError:
        body = None
    errors = body.get("errors") if isinstance(body, dict) else None
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        first = errors[0]
        return LayoutStoreError(
            first.get("message") or f"HTTP {res.status_code}",
            code=first.get("code") or "LAYOUT_HTTP_ERROR",
            detail={"status": res.status_code, "errors": errors},
        )
    return LayoutStoreError(f"HTTP {res.status_code}: {res.text[:200]}", code="LAYOUT_HTTP_ERROR", detail={"status": res.status_code})


class HttpLayoutStore:
    def __init__(self, base_url: str | None = None, timeout: float | None = None, client: httpx.Client | None = None) -> None:
        self.base_url = (base_url or _api_url()).rstrip("/")
        self.timeout = timeout if timeout is not None else _api_timeout()
        self._client = client

    def _layout_url(self, object_key: str) -> str:
        return f"{self.base_url}/objects/{quote(object_key, safe='')}/layout"

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return self._client.request(method, url, **kwargs)
        with httpx.Client(timeout=self.timeout) as client:
            return client.request(method, url, **kwargs)

    def fetch_layout_blocks(self, object_key: str) -> list[dict]:
        try:
            res = self._request("GET", self._layout_url(object_key))
        except httpx.HTTPError as exc:
            raise LayoutStoreError(f"layout fetch failed: {exc}", code="LAYOUT_HTTP_ERROR") from exc
        if res.status_code >= 400:
            raise _error_from(res)
        body = res.json()
        blocks = body.get("blocks") if isinstance(body, dict) else None
        return blocks if isinstance(blocks, list) else []

    def save_layout_blocks(self, object_key: str, records: list[dict]) -> list[dict] | None:
        """PUT the records; ``None`` means the server answered without a block list."""
        try:
            res = self._request("PUT", self._layout_url(object_key), json={"blocks": records})
        except httpx.HTTPError as exc:
            raise LayoutStoreError(f"layout save failed: {exc}", code="LAYOUT_HTTP_ERROR") from exc
        if res.status_code >= 400:
            raise _error_from(res)
        if not res.content:
            logger.info("layout_save_empty_body object=%s status=%s", object_key, res.status_code)
            return None
        try:
            body = res.json()
        except ValueError:
            return None
        blocks = body.get("blocks") if isinstance(body, dict) else None
        return blocks if isinstance(blocks, list) else None
