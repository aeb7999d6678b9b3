import logging
import threading
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from anondrop.errors import DependencyUnavailable

logger = logging.getLogger(__name__)


@runtime_checkable
class MetadataStore(Protocol):
    """
    String key -> string value store with a key listing.

    Every operation is a best-effort network call. Deleting an absent key
    counts as success. The key listing is unordered and may be stale.
    """

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> bool: ...

    def delete(self, key: str) -> bool: ...

    def list_keys(self) -> list[str]: ...


class InMemoryMetadataStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def put(self, key: str, value: str) -> bool:
        with self._lock:
            self._values[key] = value
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            self._values.pop(key, None)
        return True

    def list_keys(self) -> list[str]:
        with self._lock:
            return list(self._values)


class CloudflareKVStore:
    """
    Cloudflare Workers KV over its REST API.

    Without an account id, API token and namespace id the store is not
    configured: it logs a warning and every call degrades to a no-op or an
    empty result instead of raising.
    """

    def __init__(
        self,
        *,
        account_id: str,
        api_token: str,
        namespace_id: str,
        base_url: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.account_id = (account_id or "").strip()
        self.namespace_id = (namespace_id or "").strip()
        api_token = (api_token or "").strip()
        self.configured = bool(self.account_id and api_token and self.namespace_id)
        if not self.configured:
            logger.warning("Cloudflare KV settings are incomplete; metadata operations are disabled")

        self._client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/accounts/{self.account_id}/storage/kv/namespaces/{self.namespace_id}",
            headers={"Authorization": f"Bearer {api_token}"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _value_path(self, key: str) -> str:
        return f"/values/{quote(key, safe='')}"

    def _warn_unconfigured(self, operation: str) -> None:
        logger.warning("KV %s skipped: Cloudflare KV is not configured", operation)

    def get(self, key: str) -> str | None:
        if not self.configured:
            self._warn_unconfigured("get")
            return None
        try:
            response = self._client.get(self._value_path(key))
        except httpx.HTTPError as exc:
            raise DependencyUnavailable(f"KV get {key} failed: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.is_error:
            raise DependencyUnavailable(f"KV get {key} returned HTTP {response.status_code}")
        return response.text

    def put(self, key: str, value: str) -> bool:
        if not self.configured:
            self._warn_unconfigured("put")
            return False
        try:
            response = self._client.put(
                self._value_path(key),
                content=value.encode("utf-8"),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.error("KV put %s failed: %s", key, exc)
            return False
        if response.is_error:
            logger.error("KV put %s returned HTTP %s: %s", key, response.status_code, response.text)
            return False
        return True

    def delete(self, key: str) -> bool:
        if not self.configured:
            self._warn_unconfigured("delete")
            return False
        try:
            response = self._client.delete(self._value_path(key))
        except httpx.HTTPError as exc:
            logger.error("KV delete %s failed: %s", key, exc)
            return False
        if response.status_code == 404:
            return True
        if response.is_error:
            logger.error("KV delete %s returned HTTP %s: %s", key, response.status_code, response.text)
            return False
        return True

    def list_keys(self) -> list[str]:
        if not self.configured:
            self._warn_unconfigured("list")
            return []

        keys: list[str] = []
        cursor = ""
        while True:
            params = {"cursor": cursor} if cursor else {}
            try:
                response = self._client.get("/keys", params=params)
                response.raise_for_status()
                payload = response.json()
                names = [item["name"] for item in payload.get("result") or []]
                cursor = (payload.get("result_info") or {}).get("cursor") or ""
            except (httpx.HTTPError, ValueError) as exc:
                raise DependencyUnavailable(f"KV key listing failed: {exc}") from exc
            except (KeyError, TypeError, AttributeError) as exc:
                raise DependencyUnavailable(f"KV key listing returned an unexpected payload: {exc!r}") from exc

            keys.extend(names)
            if not cursor:
                return keys
