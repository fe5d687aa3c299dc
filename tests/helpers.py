"""Constants and sample payloads shared by the test suite."""

TEST_ISSUER = "http://keycloak.test/realms/scaledtest"
TEST_AUDIENCE = "scaledtest-client"
TEST_KID = "test-signing-key"

SAMPLE_REPORT = {
    "reportFormat": "CTRF",
    "specVersion": "1.0.0",
    "generatedBy": "ctrf-jest-reporter",
    "results": {
        "tool": {"name": "jest", "version": "29.7.0"},
        "summary": {
            "tests": 3,
            "passed": 2,
            "failed": 1,
            "skipped": 0,
            "pending": 0,
            "other": 0,
            "start": 1700000000000,
            "stop": 1700000005000,
        },
        "tests": [
            {"name": "adds numbers", "status": "passed", "duration": 120, "suite": "math"},
            {
                "name": "divides by zero",
                "status": "failed",
                "duration": 80,
                "suite": "math",
                "message": "Expected error to be thrown",
                "trace": "at div.test.js:10:5",
            },
            {
                "name": "renders header",
                "status": "passed",
                "duration": 450,
                "suite": "ui",
                "flaky": True,
                "retries": 1,
                "tags": ["smoke"],
            },
        ],
        "environment": {"appName": "web", "testEnvironment": "staging", "branchName": "main"},
        "extra": {"ci": "github-actions"},
    },
    "extra": {"uploader": "ci"},
}
