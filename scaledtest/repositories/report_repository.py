"""Repository for report documents in OpenSearch."""

from typing import Any

from scaledtest.clients.opensearch_client import OpenSearchClient
from scaledtest.exceptions import DocumentAlreadyExistsError, ReportAlreadyExistsError
from scaledtest.utils.logger import get_logger

log = get_logger(__name__)


class ReportRepository:
    """Write and search access to the reports index. Documents are never updated."""

    def __init__(self, client: OpenSearchClient, index: str):
        self.client = client
        self.index = index

    async def save(self, document: dict[str, Any], refresh: bool = False) -> str:
        """Store a report under its ``reportId``.

        Raises:
            ReportAlreadyExistsError: If the ``reportId`` is already stored
        """
        report_id = str(document["reportId"])
        try:
            await self.client.create_document(self.index, report_id, document, refresh=refresh)
        except DocumentAlreadyExistsError as e:
            raise ReportAlreadyExistsError(report_id) from e
        log.debug("report_stored", report_id=report_id, refresh=refresh)
        return report_id

    async def search(self, body: dict[str, Any]) -> tuple[list[dict[str, Any]], int]:
        """Run a document search; returns (sources, total matches)."""
        response = await self.client.search(self.index, body)
        hits = response.get("hits") or {}
        total = hits.get("total") or 0
        if isinstance(total, dict):
            total = total.get("value", 0)
        sources = [hit.get("_source") or {} for hit in hits.get("hits") or []]
        log.debug("report_search", returned=len(sources), total=total)
        return sources, int(total)
