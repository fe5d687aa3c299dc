"""Application exception hierarchy.

Every exception raised towards a client derives from ``BaseAPIException`` and
carries the HTTP status, a stable error code and the ``source`` collaborator
that failed, so the error handler can render one envelope for all of them.
"""

from typing import Any, Optional


class ErrorSource:
    """Stable tags identifying the failing collaborator."""

    API = "api"
    SEARCH_BACKEND = "search_backend"
    IDENTITY_PROVIDER = "identity_provider"
    MEMBERSHIP_STORE = "membership_store"


class BaseAPIException(Exception):
    """Base class for all API-facing exceptions."""

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    source: str = ErrorSource.API

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        source: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        if source is not None:
            self.source = source
        self.details = details


# ============================================================================
# Authentication / authorization
# ============================================================================


class MissingTokenError(BaseAPIException):
    status_code = 401
    error_code = "MISSING_TOKEN"
    source = ErrorSource.IDENTITY_PROVIDER

    def __init__(self, message: str = "Unauthorized - No valid token provided"):
        super().__init__(message)


class InvalidTokenError(BaseAPIException):
    status_code = 401
    error_code = "INVALID_TOKEN"
    source = ErrorSource.IDENTITY_PROVIDER

    def __init__(self, message: str = "Unauthorized - Invalid token"):
        super().__init__(message)


class KeySetUnavailableError(BaseAPIException):
    status_code = 503
    error_code = "KEY_SET_UNAVAILABLE"
    source = ErrorSource.IDENTITY_PROVIDER

    def __init__(self, message: str = "Signing key set could not be fetched"):
        super().__init__(message)


class ForbiddenError(BaseAPIException):
    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden - Insufficient permissions", required_roles=None):
        details = {"required_roles": sorted(required_roles)} if required_roles else None
        super().__init__(message, details=details)


# ============================================================================
# Client input
# ============================================================================


class ReportValidationError(BaseAPIException):
    """CTRF payload rejected; ``details`` lists every field-level violation."""

    status_code = 400
    error_code = "VALIDATION_FAILED"

    def __init__(self, violations: list[dict[str, Any]], message: str = "CTRF report validation failed"):
        super().__init__(message, details=violations)
        self.violations = violations


class InvalidParameterError(BaseAPIException):
    status_code = 400
    error_code = "INVALID_PARAMETER"

    def __init__(self, message: str, parameter: Optional[str] = None):
        super().__init__(message, details={"parameter": parameter} if parameter else None)


class ResourceNotFoundError(BaseAPIException):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} '{identifier}' not found")
        self.resource = resource
        self.identifier = identifier


class ResourceConflictError(BaseAPIException):
    """The write would duplicate an existing resource."""

    status_code = 409
    error_code = "CONFLICT"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, details=details)


class ReportAlreadyExistsError(ResourceConflictError):
    error_code = "REPORT_ALREADY_EXISTS"

    def __init__(self, report_id: str):
        super().__init__(f"Report '{report_id}' already exists", details={"reportId": report_id})
        self.report_id = report_id


class OperationNotAllowedError(BaseAPIException):
    status_code = 400
    error_code = "OPERATION_NOT_ALLOWED"

    def __init__(self, message: str):
        super().__init__(message)


# ============================================================================
# Collaborators
# ============================================================================


class BackendUnavailableError(BaseAPIException):
    """OpenSearch refused or could not be reached. Safe to retry."""

    status_code = 503
    error_code = "BACKEND_UNAVAILABLE"
    source = ErrorSource.SEARCH_BACKEND

    def __init__(self, message: str = "OpenSearch service is unavailable"):
        super().__init__(message)


class QueryExecutionError(BaseAPIException):
    """OpenSearch rejected or timed out on a request. Not transient."""

    status_code = 500
    error_code = "QUERY_EXECUTION_FAILED"
    source = ErrorSource.SEARCH_BACKEND

    def __init__(self, message: str = "OpenSearch query execution failed", details: Any = None):
        super().__init__(message, details=details)


class IndexAlreadyExistsError(QueryExecutionError):
    """Raised when a concurrent caller created the index first."""

    error_code = "INDEX_ALREADY_EXISTS"

    def __init__(self, index: str):
        super().__init__(f"Index '{index}' already exists")
        self.index = index


class DocumentAlreadyExistsError(QueryExecutionError):
    """Raised when a create-only write hits an existing document id."""

    status_code = 409
    error_code = "DOCUMENT_ALREADY_EXISTS"

    def __init__(self, index: str, doc_id: str):
        super().__init__(f"Document '{doc_id}' already exists in '{index}'")
        self.index = index
        self.doc_id = doc_id


class DependencyUnavailableError(BaseAPIException):
    status_code = 503
    error_code = "DEPENDENCY_UNAVAILABLE"
    source = ErrorSource.MEMBERSHIP_STORE

    def __init__(self, message: str = "Team membership store is unavailable"):
        super().__init__(message)


class InternalError(BaseAPIException):
    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
