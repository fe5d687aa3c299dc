"""Reshape OpenSearch aggregation responses into analytics records.

Each view pairs with a typed model of the exact response shape its query
produces. A response that does not fit the model (missing or null branches,
a backend version returning something else) yields an empty list.
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError

from scaledtest.schemas.analytics import (
    DurationBucket,
    ErrorGroup,
    FlakyTest,
    FlakyTestRun,
    FlakyTestWithRuns,
    SuiteOverview,
    TrendPoint,
)
from scaledtest.utils.logger import get_logger

log = get_logger(__name__)


# ============================================================================
# Aggregation response models
# ============================================================================


class ValueAgg(BaseModel):
    value: Optional[float] = None


class DocCountAgg(BaseModel):
    doc_count: int


class KeyBucket(BaseModel):
    key: str
    doc_count: int


B = TypeVar("B")


class Buckets(BaseModel, Generic[B]):
    buckets: list[B]


# suite-overview


class SuiteReports(BaseModel):
    avg_duration: ValueAgg


class SuiteBucket(KeyBucket):
    passed: DocCountAgg
    failed: DocCountAgg
    skipped: DocCountAgg
    reports: SuiteReports


class SuiteTests(BaseModel):
    suites: Buckets[SuiteBucket]


class SuiteOverviewAggs(BaseModel):
    tests: SuiteTests


# trends


class TrendBucket(BaseModel):
    key_as_string: str
    doc_count: int
    total: ValueAgg
    passed: ValueAgg
    failed: ValueAgg
    skipped: ValueAgg


class TrendsAggs(BaseModel):
    trends: Buckets[TrendBucket]


# duration


class DurationTests(BaseModel):
    duration_buckets: Buckets[KeyBucket]
    avg_duration: ValueAgg
    max_duration: ValueAgg
    min_duration: ValueAgg


class DurationAggs(BaseModel):
    tests: DurationTests


# errors


class MessageBucket(KeyBucket):
    test_names: Buckets[KeyBucket]


class FailedTests(BaseModel):
    messages: Buckets[MessageBucket]


class ErrorTests(BaseModel):
    failed: FailedTests


class ErrorAggs(BaseModel):
    tests: ErrorTests


# flaky-tests


class FlakyBucket(KeyBucket):
    status_distribution: Buckets[KeyBucket]
    marked_flaky: DocCountAgg
    total_runs: ValueAgg
    avg_duration: ValueAgg = Field(default_factory=ValueAgg)


class FlakyTests(BaseModel):
    by_test_name: Buckets[FlakyBucket]


class FlakyAggs(BaseModel):
    tests: FlakyTests


# flaky-test-runs (document hits, not aggregations)


class RunTest(BaseModel):
    name: str
    status: str
    duration: int = 0
    suite: Optional[str] = None
    message: Optional[str] = None
    trace: Optional[str] = None


class RunResults(BaseModel):
    tests: list[RunTest] = Field(default_factory=list)


class RunSource(BaseModel):
    reportId: Optional[str] = None
    timestamp: Optional[str] = None
    results: RunResults = Field(default_factory=RunResults)


class RunHit(BaseModel):
    source: RunSource = Field(alias="_source")


class RunHits(BaseModel):
    hits: list[RunHit]


class RunsResponse(BaseModel):
    hits: RunHits


M = TypeVar("M", bound=BaseModel)


def _parse(model: type[M], payload: Any, view: str) -> Optional[M]:
    if not isinstance(payload, dict):
        log.warning("unexpected aggregation response", view=view, payload_type=type(payload).__name__)
        return None
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        log.warning("aggregation response did not match expected shape", view=view, errors=e.error_count())
        return None


def _aggregations(response: dict[str, Any]) -> Any:
    return response.get("aggregations") if isinstance(response, dict) else None


def _pct(numerator: float, denominator: float) -> float:
    return (numerator / denominator) * 100 if denominator > 0 else 0


# ============================================================================
# Shapers
# ============================================================================


def shape_suite_overview(response: dict[str, Any]) -> list[SuiteOverview]:
    aggs = _parse(SuiteOverviewAggs, _aggregations(response), "suite-overview")
    if aggs is None:
        return []

    return [
        SuiteOverview(
            name=bucket.key,
            total=bucket.doc_count,
            passed=bucket.passed.doc_count,
            failed=bucket.failed.doc_count,
            skipped=bucket.skipped.doc_count,
            pass_rate_pct=_pct(bucket.passed.doc_count, bucket.doc_count),
            avg_duration_ms=bucket.reports.avg_duration.value or 0,
        )
        for bucket in aggs.tests.suites.buckets
    ]


def shape_trends(response: dict[str, Any]) -> list[TrendPoint]:
    """Hourly points; buckets with no tests are dropped."""
    aggs = _parse(TrendsAggs, _aggregations(response), "trends")
    if aggs is None:
        return []

    points = []
    for bucket in aggs.trends.buckets:
        total = int(bucket.total.value or 0)
        if total == 0:
            continue
        passed = int(bucket.passed.value or 0)
        points.append(
            TrendPoint(
                bucket_label=bucket.key_as_string,
                total=total,
                passed=passed,
                failed=int(bucket.failed.value or 0),
                skipped=int(bucket.skipped.value or 0),
                pass_rate_pct=_pct(passed, total),
            )
        )
    return points


def shape_duration(response: dict[str, Any]) -> list[DurationBucket]:
    aggs = _parse(DurationAggs, _aggregations(response), "duration")
    if aggs is None:
        return []

    tests = aggs.tests
    # avg/max/min are computed over all tests, not per range
    avg_ms = tests.avg_duration.value or 0
    max_ms = tests.max_duration.value or 0
    min_ms = tests.min_duration.value or 0
    return [
        DurationBucket(
            range_label=bucket.key,
            count=bucket.doc_count,
            avg_ms=avg_ms,
            max_ms=max_ms,
            min_ms=min_ms,
        )
        for bucket in tests.duration_buckets.buckets
    ]


def shape_errors(response: dict[str, Any]) -> list[ErrorGroup]:
    aggs = _parse(ErrorAggs, _aggregations(response), "errors")
    if aggs is None:
        return []

    return [
        ErrorGroup(
            message=bucket.key,
            count=bucket.doc_count,
            affected_test_names=[name.key for name in bucket.test_names.buckets],
        )
        for bucket in aggs.tests.failed.messages.buckets
    ]


def flaky_test_from_bucket(bucket: FlakyBucket) -> FlakyTest:
    """Derive flaky metrics for one test name."""
    counts = {status.key: status.doc_count for status in bucket.status_distribution.buckets}
    passed = counts.get("passed", 0)
    failed = counts.get("failed", 0)
    total_runs = int(bucket.total_runs.value or 0)

    return FlakyTest(
        test_name=bucket.key,
        total_runs=total_runs,
        passed=passed,
        failed=failed,
        skipped=counts.get("skipped", 0),
        flaky_score_pct=_pct(failed, total_runs),
        is_flaky=passed > 0 and failed > 0,
        is_marked_flaky=bucket.marked_flaky.doc_count > 0,
        avg_duration_ms=round(bucket.avg_duration.value or 0),
    )


def shape_flaky_tests(response: dict[str, Any]) -> list[FlakyTest]:
    """Tests with mixed outcomes or an explicit flaky marker, highest score first."""
    aggs = _parse(FlakyAggs, _aggregations(response), "flaky-tests")
    if aggs is None:
        return []

    candidates = [
        flaky_test_from_bucket(bucket)
        for bucket in aggs.tests.by_test_name.buckets
        if len(bucket.status_distribution.buckets) > 1 or bucket.marked_flaky.doc_count > 0
    ]
    return sorted(candidates, key=lambda t: t.flaky_score_pct, reverse=True)


def shape_flaky_test_runs(
    flaky_tests: list[FlakyTest], response: dict[str, Any]
) -> list[FlakyTestWithRuns]:
    """Attach individual runs to each flaky test; tests without runs are dropped."""
    parsed = _parse(RunsResponse, response, "flaky-test-runs")
    if parsed is None:
        return []

    names = {test.test_name for test in flaky_tests}
    runs: dict[str, list[FlakyTestRun]] = {}
    for hit in parsed.hits.hits:
        for test in hit.source.results.tests:
            if test.name not in names:
                continue
            runs.setdefault(test.name, []).append(
                FlakyTestRun(
                    test_name=test.name,
                    suite=test.suite or "Unknown",
                    status=test.status,
                    duration_ms=test.duration,
                    message=test.message,
                    trace=test.trace,
                    timestamp=hit.source.timestamp,
                    report_id=hit.source.reportId,
                )
            )

    return [
        FlakyTestWithRuns(**test.model_dump(), test_runs=runs[test.test_name])
        for test in flaky_tests
        if runs.get(test.test_name)
    ]
