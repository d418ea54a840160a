# src/timesync_client/pocketbase_client.py

"""
Async client for the PocketBase REST API.

Covers the record endpoints the data layer needs (list, get, create, update, delete)
and password auth for the `users` collection. Non-2xx answers become UpstreamFailure,
transport problems become NetworkException.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import settings
from .errors import NetworkException, UpstreamFailure
from .token_store import TokenStore

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


def quote_filter_value(value: str) -> str:
    """Wraps a value for interpolation into a PocketBase filter expression."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class PocketBaseClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token_store: Optional[TokenStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        page_size: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.POCKETBASE_URL).rstrip("/")
        self.auth_store = token_store if token_store is not None else TokenStore(settings.TOKEN_FILE)
        self._page_size = page_size or settings.PAGE_SIZE
        self._timeout_seconds = timeout_seconds or settings.HTTP_TIMEOUT_SECONDS
        self._http_client = http_client
        self._owns_client = http_client is None

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout_seconds)
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_store.token:
            headers["Authorization"] = self.auth_store.token
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client().request(
                method, url, params=params, json=json, headers=self._headers()
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = e.response.text
            data: Dict[str, Any] = {}
            try:
                body = e.response.json()
                if isinstance(body, dict):
                    data = body
                    message = body.get("message") or message
            except ValueError:
                pass
            logger.warning(
                "PocketBase: %s %s failed with status %s: %s",
                method, path, e.response.status_code, message,
            )
            raise UpstreamFailure(e.response.status_code, message, data) from e
        except httpx.RequestError as e:
            logger.warning("PocketBase: Request error on %s %s: %s", method, path, e)
            raise NetworkException(f"Could not connect to PocketBase: {e}") from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # --- Records ---

    async def get_full_list(
        self,
        collection: str,
        filter: Optional[str] = None,
        sort: Optional[str] = None,
        expand: Optional[str] = None,
        fields: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Fetches every record of a collection, one page at a time."""
        params: Dict[str, Any] = {"perPage": self._page_size, "skipTotal": 1}
        for key, value in (("filter", filter), ("sort", sort), ("expand", expand), ("fields", fields)):
            if value:
                params[key] = value

        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            params["page"] = page
            result = await self._request("GET", f"/api/collections/{collection}/records", params=dict(params))
            batch = (result or {}).get("items") or []
            items.extend(batch)
            if len(batch) < self._page_size:
                return items
            page += 1

    async def get_one(self, collection: str, record_id: str, expand: Optional[str] = None) -> Dict[str, Any]:
        params = {"expand": expand} if expand else None
        return await self._request("GET", f"/api/collections/{collection}/records/{record_id}", params=params)

    async def create(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", f"/api/collections/{collection}/records", json=data)

    async def update(self, collection: str, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/api/collections/{collection}/records/{record_id}", json=data)

    async def delete(self, collection: str, record_id: str) -> None:
        await self._request("DELETE", f"/api/collections/{collection}/records/{record_id}")

    # --- Auth ---

    async def auth_with_password(self, identity: str, password: str) -> Dict[str, Any]:
        result = await self._request(
            "POST",
            f"/api/collections/{USERS_COLLECTION}/auth-with-password",
            json={"identity": identity, "password": password},
        )
        self._store_auth(result)
        return result

    async def auth_refresh(self) -> Dict[str, Any]:
        result = await self._request("POST", f"/api/collections/{USERS_COLLECTION}/auth-refresh")
        self._store_auth(result)
        return result

    def _store_auth(self, result: Any) -> None:
        if not isinstance(result, dict) or not result.get("token") or not result.get("record"):
            raise UpstreamFailure(500, "Authentication failed - no data returned")
        self.auth_store.save(result["token"], result["record"])
