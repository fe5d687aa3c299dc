"""Async OpenSearch REST client.

Thin wrapper over ``httpx.AsyncClient`` exposing only the index operations the
service needs. Transport failures are translated into the two error classes
callers must tell apart: ``BackendUnavailableError`` (connection refused or
unreachable, safe to retry) and ``QueryExecutionError`` (rejected request,
incompatible backend or timeout).
"""

from typing import Any, Optional

import httpx

from scaledtest.exceptions import (
    BackendUnavailableError,
    DocumentAlreadyExistsError,
    IndexAlreadyExistsError,
    QueryExecutionError,
)
from scaledtest.utils.logger import get_logger, truncate

log = get_logger(__name__)


class OpenSearchClient:
    """Client for the OpenSearch REST API."""

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_ssl: bool = False,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        auth = httpx.BasicAuth(username, password) if username else None
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth,
            verify=verify_ssl,
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send one request, mapping transport failures onto API exceptions."""
        try:
            return await self._http.request(method, path, json=json, params=params)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            log.error("opensearch unreachable", method=method, path=path, error=str(e))
            raise BackendUnavailableError("OpenSearch is not accessible") from e
        except httpx.TimeoutException as e:
            log.error("opensearch request timed out", method=method, path=path, timeout=self.timeout)
            raise QueryExecutionError(
                f"OpenSearch request timed out after {self.timeout:g}s"
            ) from e
        except httpx.HTTPError as e:
            log.error("opensearch transport error", method=method, path=path, error=str(e))
            raise BackendUnavailableError(f"OpenSearch transport error: {e}") from e

    @staticmethod
    def _error_type(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get("type")
        return None

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        if response.status_code in (502, 503, 504):
            raise BackendUnavailableError(
                f"OpenSearch {operation} failed: cluster unavailable ({response.status_code})"
            )
        log.error(
            "opensearch request failed",
            operation=operation,
            status_code=response.status_code,
            body=truncate(response.text),
        )
        raise QueryExecutionError(
            f"OpenSearch query failed for {operation}",
            details={"status_code": response.status_code, "type": self._error_type(response)},
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def cluster_health(self) -> dict[str, Any]:
        response = await self._request("GET", "/_cluster/health")
        self._raise_for_status(response, "cluster health")
        return response.json()

    async def index_exists(self, index: str) -> bool:
        response = await self._request("HEAD", f"/{index}")
        if response.status_code == 404:
            return False
        self._raise_for_status(response, "index exists")
        return True

    async def create_index(self, index: str, body: dict[str, Any]) -> None:
        """Create an index.

        Raises:
            IndexAlreadyExistsError: If the index was created concurrently
        """
        response = await self._request("PUT", f"/{index}", json=body)
        if (
            response.status_code == 400
            and self._error_type(response) == "resource_already_exists_exception"
        ):
            raise IndexAlreadyExistsError(index)
        self._raise_for_status(response, "index creation")
        log.info("opensearch index created", index=index)

    async def count(self, index: str) -> int:
        response = await self._request("GET", f"/{index}/_count")
        self._raise_for_status(response, "count")
        return int(response.json().get("count", 0))

    async def search(self, index: str, body: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", f"/{index}/_search", json=body)
        self._raise_for_status(response, "search")
        data = response.json()
        if data.get("timed_out"):
            raise QueryExecutionError("OpenSearch query timed out")
        return data

    async def create_document(
        self,
        index: str,
        doc_id: str,
        document: dict[str, Any],
        refresh: bool = False,
    ) -> dict[str, Any]:
        """Write a document only if ``doc_id`` is not taken yet.

        Raises:
            DocumentAlreadyExistsError: If a document with that id exists
        """
        params = {"refresh": "wait_for"} if refresh else None
        response = await self._request(
            "PUT", f"/{index}/_create/{doc_id}", json=document, params=params
        )
        if response.status_code == 409:
            log.warning(
                "opensearch document conflict",
                index=index,
                doc_id=doc_id,
                type=self._error_type(response),
            )
            raise DocumentAlreadyExistsError(index, doc_id)
        self._raise_for_status(response, "create document")
        return response.json()
