from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body returned for unhandled server errors."""

    status: str = Field(default="error", description="Always 'error'")
    message: str = Field(..., description="Human readable summary")
    detail: Optional[str] = Field(default=None, description="Exception type and message")
