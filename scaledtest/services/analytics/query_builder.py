"""OpenSearch request bodies for each analytics view.

Every builder starts from the same team-scope filter and appends only its own
aggregation clauses. Hits are suppressed (``size: 0``) for aggregation views
and every request carries the per-query timeout.
"""

from typing import Any, Optional, Sequence

TESTS_PATH = "results.tests"
DEFAULT_QUERY_TIMEOUT = "30s"

MIN_TREND_DAYS = 1
MAX_TREND_DAYS = 365
DEFAULT_TREND_DAYS = 30

SUITE_BUCKET_LIMIT = 100
ERROR_GROUP_LIMIT = 20
ERROR_TEST_NAME_LIMIT = 5
FLAKY_NAME_LIMIT = 1000
FLAKY_RUNS_REPORT_LIMIT = 1000

DURATION_RANGES: list[dict[str, Any]] = [
    {"key": "0-1s", "to": 1000},
    {"key": "1-5s", "from": 1000, "to": 5000},
    {"key": "5-10s", "from": 5000, "to": 10000},
    {"key": "10-30s", "from": 10000, "to": 30000},
    {"key": "30s+", "from": 30000},
]

REPORT_DURATION_SCRIPT = (
    "doc['results.summary.stop'].value.toInstant().toEpochMilli()"
    " - doc['results.summary.start'].value.toInstant().toEpochMilli()"
)


def team_scope(team_ids: Sequence[str], subject: str) -> dict[str, Any]:
    """
    Filter restricting documents to the caller's teams or own uploads.

    A caller without teams sees only reports they uploaded.
    """
    should: list[dict[str, Any]] = []
    if team_ids:
        should.append({"terms": {"metadata.userTeams": list(team_ids)}})
    should.append({"term": {"metadata.uploadedBy": subject}})
    return {"bool": {"should": should, "minimum_should_match": 1}}


def _scoped_query(scope: dict[str, Any], *filters: dict[str, Any]) -> dict[str, Any]:
    return {"bool": {"filter": [scope, *filters]}}


def _aggregation_body(
    scope: dict[str, Any],
    aggs: dict[str, Any],
    *filters: dict[str, Any],
    timeout: str = DEFAULT_QUERY_TIMEOUT,
) -> dict[str, Any]:
    return {
        "size": 0,
        "timeout": timeout,
        "query": _scoped_query(scope, *filters),
        "aggs": aggs,
    }


def _status_count(status: str) -> dict[str, Any]:
    return {"filter": {"term": {f"{TESTS_PATH}.status": status}}}


def _summary_sum(field: str) -> dict[str, Any]:
    return {"sum": {"field": f"results.summary.{field}"}}


def build_suite_overview_query(scope: dict[str, Any], timeout: str = DEFAULT_QUERY_TIMEOUT) -> dict[str, Any]:
    """Per-suite test counts with the average duration of the owning reports."""
    aggs = {
        "tests": {
            "nested": {"path": TESTS_PATH},
            "aggs": {
                "suites": {
                    "terms": {
                        "field": f"{TESTS_PATH}.suite",
                        "size": SUITE_BUCKET_LIMIT,
                        "missing": "Uncategorized",
                    },
                    "aggs": {
                        "passed": _status_count("passed"),
                        "failed": _status_count("failed"),
                        "skipped": _status_count("skipped"),
                        "reports": {
                            "reverse_nested": {},
                            "aggs": {
                                "avg_duration": {"avg": {"script": {"source": REPORT_DURATION_SCRIPT}}}
                            },
                        },
                    },
                }
            },
        }
    }
    return _aggregation_body(scope, aggs, timeout=timeout)


def build_trends_query(
    scope: dict[str, Any],
    days: int = DEFAULT_TREND_DAYS,
    timeout: str = DEFAULT_QUERY_TIMEOUT,
) -> dict[str, Any]:
    """Hourly summed status counts over the last ``days`` days.

    ``days`` must already be validated to lie in [1, 365].
    """
    window = {"range": {"results.summary.start": {"gte": f"now-{days}d/d"}}}
    aggs = {
        "trends": {
            "date_histogram": {
                "field": "results.summary.start",
                "calendar_interval": "hour",
                "format": "yyyy-MM-dd HH:mm",
                "min_doc_count": 0,
            },
            "aggs": {
                "total": _summary_sum("tests"),
                "passed": _summary_sum("passed"),
                "failed": _summary_sum("failed"),
                "skipped": _summary_sum("skipped"),
            },
        }
    }
    return _aggregation_body(scope, aggs, window, timeout=timeout)


def build_duration_query(scope: dict[str, Any], timeout: str = DEFAULT_QUERY_TIMEOUT) -> dict[str, Any]:
    """Histogram of individual test durations plus global avg/max/min."""
    duration_field = f"{TESTS_PATH}.duration"
    aggs = {
        "tests": {
            "nested": {"path": TESTS_PATH},
            "aggs": {
                "duration_buckets": {"range": {"field": duration_field, "ranges": DURATION_RANGES}},
                "avg_duration": {"avg": {"field": duration_field}},
                "max_duration": {"max": {"field": duration_field}},
                "min_duration": {"min": {"field": duration_field}},
            },
        }
    }
    return _aggregation_body(scope, aggs, timeout=timeout)


def build_error_query(scope: dict[str, Any], timeout: str = DEFAULT_QUERY_TIMEOUT) -> dict[str, Any]:
    """Failed tests grouped by error message, compared on its leading 1024 characters."""
    aggs = {
        "tests": {
            "nested": {"path": TESTS_PATH},
            "aggs": {
                "failed": {
                    "filter": {"term": {f"{TESTS_PATH}.status": "failed"}},
                    "aggs": {
                        "messages": {
                            "terms": {
                                "field": f"{TESTS_PATH}.message.prefix",
                                "size": ERROR_GROUP_LIMIT,
                                "missing": "Unknown error",
                            },
                            "aggs": {
                                "test_names": {
                                    "terms": {
                                        "field": f"{TESTS_PATH}.name.keyword",
                                        "size": ERROR_TEST_NAME_LIMIT,
                                    }
                                }
                            },
                        }
                    },
                }
            },
        }
    }
    return _aggregation_body(scope, aggs, timeout=timeout)


def build_flaky_query(scope: dict[str, Any], timeout: str = DEFAULT_QUERY_TIMEOUT) -> dict[str, Any]:
    """Per test name status distribution, flaky markers and run counts."""
    aggs = {
        "tests": {
            "nested": {"path": TESTS_PATH},
            "aggs": {
                "by_test_name": {
                    "terms": {"field": f"{TESTS_PATH}.name.keyword", "size": FLAKY_NAME_LIMIT},
                    "aggs": {
                        "status_distribution": {"terms": {"field": f"{TESTS_PATH}.status", "size": 10}},
                        "marked_flaky": {"filter": {"term": {f"{TESTS_PATH}.flaky": True}}},
                        "total_runs": {"value_count": {"field": f"{TESTS_PATH}.status"}},
                        "avg_duration": {"avg": {"field": f"{TESTS_PATH}.duration"}},
                    },
                }
            },
        }
    }
    return _aggregation_body(scope, aggs, timeout=timeout)


def build_flaky_runs_query(
    scope: dict[str, Any],
    test_names: Sequence[str],
    timeout: str = DEFAULT_QUERY_TIMEOUT,
) -> dict[str, Any]:
    """Most recent reports containing any of ``test_names``, newest first."""
    names_filter = {
        "nested": {
            "path": TESTS_PATH,
            "query": {"terms": {f"{TESTS_PATH}.name.keyword": list(test_names)}},
        }
    }
    return {
        "size": FLAKY_RUNS_REPORT_LIMIT,
        "timeout": timeout,
        "query": _scoped_query(scope, names_filter),
        "_source": ["reportId", "timestamp", "results.tests"],
        "sort": [{"timestamp": {"order": "desc"}}],
    }


def build_report_list_query(
    scope: dict[str, Any],
    page: int,
    size: int,
    status: Optional[str] = None,
    tool: Optional[str] = None,
    environment: Optional[str] = None,
    timeout: str = DEFAULT_QUERY_TIMEOUT,
) -> dict[str, Any]:
    """Paged report listing, newest first, with optional filters."""
    filters: list[dict[str, Any]] = []
    if status:
        filters.append(
            {"nested": {"path": TESTS_PATH, "query": {"term": {f"{TESTS_PATH}.status": status}}}}
        )
    if tool:
        filters.append({"term": {"results.tool.name": tool}})
    if environment:
        filters.append({"term": {"results.environment.testEnvironment": environment}})

    return {
        "from": (page - 1) * size,
        "size": size,
        "timeout": timeout,
        "track_total_hits": True,
        "query": _scoped_query(scope, *filters),
        "sort": [{"timestamp": {"order": "desc"}}],
    }
