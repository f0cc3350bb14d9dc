# lazy_farms/services/directus.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Minimal Directus REST client (items API only).

Only the three calls the economy cache job needs are implemented:

    GET   /items/<collection>?fields=...&filter=<json>&limit=N
    POST  /items/<collection>
    PATCH /items/<collection>/<id>

Writes authenticate with a static token (`Authorization: Bearer ...`).
"""

import json
import logging
from typing import Any

import requests

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class DirectusError(RuntimeError):
    """Directus answered with a non-2xx status or could not be reached."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class DirectusClient:
    def __init__(
        self,
        url: str,
        token: str = "",
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if not url:
            raise ValueError("Directus URL is required (DIRECTUS_DB_URL)")
        self.base_url = url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self._headers = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.request(
                method, url, headers=self._headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise DirectusError(f"Directus request failed: {e}") from e
        if not resp.ok:
            raise DirectusError(
                f"Directus {method} {path} failed: {resp.status_code} {resp.text[:200]}",
                resp.status_code,
            )
        if not resp.content:
            return None
        return resp.json().get("data")

    def read_items(
        self,
        collection: str,
        *,
        fields: list[str] | None = None,
        filter: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {}
        if fields:
            params["fields"] = ",".join(fields)
        if filter:
            params["filter"] = json.dumps(filter)
        if limit is not None:
            params["limit"] = limit
        return self._request("GET", f"items/{collection}", params=params) or []

    def create_item(self, collection: str, item: dict[str, Any]) -> dict[str, Any] | None:
        log.debug("Creating %s item", collection)
        return self._request("POST", f"items/{collection}", json=item)

    def update_item(
        self, collection: str, item_id: Any, item: dict[str, Any]
    ) -> dict[str, Any] | None:
        log.debug("Updating %s item %s", collection, item_id)
        return self._request("PATCH", f"items/{collection}/{item_id}", json=item)
