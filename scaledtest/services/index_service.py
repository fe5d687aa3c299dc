"""Lifecycle management for the CTRF reports index."""

import asyncio
from typing import Any

from scaledtest.clients.opensearch_client import OpenSearchClient
from scaledtest.exceptions import BaseAPIException, IndexAlreadyExistsError
from scaledtest.schemas.analytics import BackendHealth
from scaledtest.utils.logger import get_logger

log = get_logger(__name__)

_KEYWORD = {"type": "keyword"}
# Lucene caps a term at 32766 bytes; 8191 chars stays under it for any UTF-8 text.
KEYWORD_IGNORE_ABOVE = 8191
# Failure messages are grouped on their leading characters so long ones still bucket.
MESSAGE_PREFIX_LENGTH = 1024

_TEXT_WITH_KEYWORD = {
    "type": "text",
    "fields": {"keyword": {"type": "keyword", "ignore_above": KEYWORD_IGNORE_ABOVE}},
}
_MESSAGE = {
    "type": "text",
    "fields": {
        "keyword": {"type": "keyword", "ignore_above": KEYWORD_IGNORE_ABOVE},
        "prefix": {"type": "text", "analyzer": "message_prefix", "fielddata": True},
    },
}

# Canonical mapping for report documents. ``results.tests`` is nested so that
# per-test filters (status, name, message) match within one test only.
REPORTS_INDEX_MAPPING: dict[str, Any] = {
    "settings": {
        "analysis": {
            "filter": {
                "message_prefix_truncate": {"type": "truncate", "length": MESSAGE_PREFIX_LENGTH},
            },
            "analyzer": {
                "message_prefix": {
                    "type": "custom",
                    "tokenizer": "keyword",
                    "filter": ["message_prefix_truncate"],
                },
            },
        }
    },
    "mappings": {
        "properties": {
            "reportId": _KEYWORD,
            "reportFormat": _KEYWORD,
            "specVersion": _KEYWORD,
            "timestamp": {"type": "date"},
            "storedAt": {"type": "date"},
            "generatedBy": _KEYWORD,
            "results": {
                "properties": {
                    "tool": {
                        "properties": {
                            "name": _KEYWORD,
                            "version": _KEYWORD,
                            "url": _KEYWORD,
                            "extra": {"type": "object", "enabled": False},
                        }
                    },
                    "summary": {
                        "properties": {
                            "tests": {"type": "integer"},
                            "passed": {"type": "integer"},
                            "failed": {"type": "integer"},
                            "skipped": {"type": "integer"},
                            "pending": {"type": "integer"},
                            "other": {"type": "integer"},
                            "suites": {"type": "integer"},
                            "start": {"type": "date", "format": "epoch_millis"},
                            "stop": {"type": "date", "format": "epoch_millis"},
                            "extra": {"type": "object", "enabled": False},
                        }
                    },
                    "tests": {
                        "type": "nested",
                        "properties": {
                            "name": _TEXT_WITH_KEYWORD,
                            "status": _KEYWORD,
                            "duration": {"type": "long"},
                            "suite": _KEYWORD,
                            "message": _MESSAGE,
                            "trace": {"type": "text"},
                            "ai": {"type": "text"},
                            "line": {"type": "integer"},
                            "rawStatus": _KEYWORD,
                            "filePath": _KEYWORD,
                            "tags": _KEYWORD,
                            "flaky": {"type": "boolean"},
                            "start": {"type": "date", "format": "epoch_millis"},
                            "stop": {"type": "date", "format": "epoch_millis"},
                            "retries": {"type": "integer"},
                            "extra": {"type": "object", "enabled": False},
                        },
                    },
                    "environment": {
                        "properties": {
                            "appName": _KEYWORD,
                            "appVersion": _KEYWORD,
                            "buildName": _KEYWORD,
                            "buildNumber": _KEYWORD,
                            "branchName": _KEYWORD,
                            "testEnvironment": _KEYWORD,
                            "extra": {"type": "object", "enabled": False},
                        }
                    },
                    "extra": {"type": "object", "enabled": False},
                }
            },
            "metadata": {
                "properties": {
                    "uploadedBy": _KEYWORD,
                    "userTeams": _KEYWORD,
                    "uploadedAt": {"type": "date"},
                }
            },
            "extra": {"type": "object", "enabled": False},
        }
    }
}


class IndexService:
    """Ensures the reports index exists and reports backend health."""

    def __init__(self, client: OpenSearchClient, index: str):
        self.client = client
        self.index = index
        self._create_lock = asyncio.Lock()

    async def ensure_index_exists(self) -> bool:
        """
        Create the reports index with the canonical mapping if it is missing.

        Idempotent: concurrent callers, in this process or another, end up
        with one index and no error.

        Returns:
            True if this call created the index

        Raises:
            BackendUnavailableError: If OpenSearch cannot be reached
            QueryExecutionError: If index creation is rejected
        """
        if await self.client.index_exists(self.index):
            return False

        async with self._create_lock:
            # Re-check: a waiter may find the index created by the lock holder
            if await self.client.index_exists(self.index):
                return False

            log.info("reports index missing, creating", index=self.index)
            try:
                await self.client.create_index(self.index, REPORTS_INDEX_MAPPING)
            except IndexAlreadyExistsError:
                log.info("reports index created concurrently", index=self.index)
                return False

        return True

    async def health_status(self) -> BackendHealth:
        """Read-only snapshot of backend state. Never raises on backend failure."""
        try:
            health = await self.client.cluster_health()
            cluster_status = str(health.get("status", "unknown"))
            index_exists = await self.client.index_exists(self.index)
            document_count = await self.client.count(self.index) if index_exists else 0
        except (BaseAPIException, ValueError, AttributeError, TypeError) as e:
            # ValueError etc.: a proxy answered with a body that is not OpenSearch JSON
            log.warning(
                "opensearch health check failed",
                error_type=type(e).__name__,
                error=getattr(e, "message", str(e)),
            )
            return BackendHealth(
                connected=False,
                index_exists=False,
                document_count=0,
                cluster_status="unknown",
            )

        status = BackendHealth(
            connected=True,
            index_exists=index_exists,
            document_count=document_count,
            cluster_status=cluster_status,
        )
        log.debug(
            "opensearch health check completed",
            cluster_status=status.cluster_status,
            index_exists=status.index_exists,
            document_count=status.document_count,
        )
        return status
