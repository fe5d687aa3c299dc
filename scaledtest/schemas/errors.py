"""Error response schema shared by all exception handlers."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Single error envelope returned for every failure."""

    success: bool = False
    error: str
    code: str
    source: str
    details: Any = None
    request_id: Optional[str] = None
    timestamp: datetime
