from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ImageUpload(BaseModel):
    """A base64 image, optionally prefixed with a ``data:image/...;base64,`` header."""

    base64_image: str = Field(min_length=1)
    file_name: Optional[str] = None
    content_type: Optional[str] = None


class ValidationErrorOut(BaseModel):
    field: str
    rejected_value: Any = None
    message: str


class ErrorResponse(BaseModel):
    timestamp: datetime
    status: int
    error: str
    message: str
    path: str
    validation_errors: Optional[List[ValidationErrorOut]] = None
