"""
Shared schema bases.
"""
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.timeutils import ensure_aware


class ORMModel(BaseModel):
    """Base for response models built from ORM rows; datetimes are always UTC-aware."""

    @field_validator("*", mode="after")
    @classmethod
    def utc_datetimes(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return ensure_aware(value)
        return value

    class Config:
        from_attributes = True


class SuccessResponse(BaseModel):
    success: bool = Field(True, description="Always true; failures use the error envelope")


class MessageResponse(SuccessResponse):
    message: Optional[str] = None


class PostIdRequest(BaseModel):
    postId: UUID = Field(..., description="ID of the post")
