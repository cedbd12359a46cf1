"""
Pydantic schemas for calendar posts and revisions.
"""
from datetime import date, datetime, time
from typing import Annotated, Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import AfterValidator, BaseModel, Field

from app.schemas.client import UploadOut
from app.schemas.common import ORMModel, SuccessResponse

MAX_CAPTION_LENGTH = 5000


def _check_image_url(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    if not value.startswith(("http://", "https://")):
        raise ValueError("image_url must be an http(s) URL")
    return value


ImageUrl = Annotated[Optional[str], AfterValidator(_check_image_url)]


class UnscheduledPostCreate(BaseModel):
    client_id: UUID
    project_id: Optional[UUID] = None
    caption: str = Field("", max_length=MAX_CAPTION_LENGTH)
    image_url: ImageUrl = None
    post_notes: Optional[str] = Field(None, max_length=MAX_CAPTION_LENGTH)


class UnscheduledPostUpdate(BaseModel):
    caption: Optional[str] = Field(None, max_length=MAX_CAPTION_LENGTH)
    image_url: ImageUrl = None
    post_notes: Optional[str] = Field(None, max_length=MAX_CAPTION_LENGTH)
    project_id: Optional[UUID] = None


class UnscheduledPostPatchRequest(BaseModel):
    postId: UUID
    updates: UnscheduledPostUpdate


class UnscheduledPostOut(ORMModel):
    id: UUID
    client_id: UUID
    project_id: Optional[UUID] = None
    caption: str
    image_url: Optional[str] = None
    post_notes: Optional[str] = None
    approval_status: str
    created_at: datetime
    updated_at: datetime


class UnscheduledPostResponse(SuccessResponse):
    post: UnscheduledPostOut


class UnscheduledPostListResponse(SuccessResponse):
    posts: List[UnscheduledPostOut]


class ScheduledPostIn(BaseModel):
    client_id: UUID
    project_id: Optional[UUID] = None
    caption: str = Field("", max_length=MAX_CAPTION_LENGTH)
    image_url: ImageUrl = None
    post_notes: Optional[str] = Field(None, max_length=MAX_CAPTION_LENGTH)
    scheduled_date: date
    scheduled_time: Optional[time] = None


class ScheduledPostCreateRequest(BaseModel):
    scheduledPost: ScheduledPostIn
    unscheduledId: Optional[UUID] = Field(None, description="Move this unscheduled post onto the calendar")


class ScheduledPostUpdate(BaseModel):
    """Fields a user may change on a scheduled post."""
    caption: Optional[str] = Field(None, max_length=MAX_CAPTION_LENGTH)
    image_url: ImageUrl = None
    post_notes: Optional[str] = Field(None, max_length=MAX_CAPTION_LENGTH)
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[time] = None
    is_confirmed: Optional[bool] = None
    approval_status: Optional[Literal["pending", "approved", "rejected", "needs_attention", "draft"]] = None
    needs_attention: Optional[bool] = None
    project_id: Optional[UUID] = None


class ScheduledPostPatchRequest(BaseModel):
    postId: UUID
    updates: ScheduledPostUpdate


class RescheduleRequest(BaseModel):
    postId: UUID
    scheduledDate: date
    clientId: UUID
    scheduledTime: Optional[time] = None


class MovePostRequest(BaseModel):
    newScheduledDate: date
    newScheduledTime: Optional[time] = None


class ConfirmPostRequest(BaseModel):
    scheduledDate: date
    scheduledTime: time


class ScheduledPostOut(ORMModel):
    id: UUID
    client_id: UUID
    project_id: Optional[UUID] = None
    caption: str
    original_caption: Optional[str] = None
    image_url: Optional[str] = None
    post_notes: Optional[str] = None
    scheduled_date: date
    scheduled_time: Optional[time] = None
    is_confirmed: bool
    approval_status: str
    needs_attention: bool
    client_feedback: Optional[str] = None
    last_edited_at: Optional[datetime] = None
    edit_count: int = 0
    needs_reapproval: bool = False
    late_post_id: Optional[str] = None
    late_status: Optional[str] = None
    platforms_scheduled: Optional[List[Any]] = None
    created_at: datetime
    updated_at: datetime
    tag_ids: List[UUID] = Field(default_factory=list)


class ScheduledPostResponse(SuccessResponse):
    post: ScheduledPostOut


class ScheduledPostListResponse(SuccessResponse):
    posts: List[ScheduledPostOut]
    uploads: List[UploadOut] = Field(default_factory=list)


# --- Revisions ---


class RevisionCreate(BaseModel):
    previous_caption: str = Field(..., min_length=1)
    new_caption: str = Field(..., min_length=1)
    edit_reason: Optional[str] = None


class RevisionOut(ORMModel):
    id: UUID
    post_id: UUID
    edited_by: UUID
    previous_caption: str
    new_caption: str
    edit_reason: Optional[str] = None
    revision_number: int
    edited_at: datetime


class RevisionPostSummary(BaseModel):
    id: UUID
    current_caption: str
    created_at: datetime


class RevisionListResponse(SuccessResponse):
    revisions: List[RevisionOut]
    totalCount: int
    hasMore: bool
    post: RevisionPostSummary


class RevisionResponse(SuccessResponse):
    revision: RevisionOut
    message: str = "Revision created successfully"


def scheduled_post_out(post, tag_ids: Optional[Dict[UUID, List[UUID]]] = None) -> ScheduledPostOut:
    out = ScheduledPostOut.model_validate(post)
    if tag_ids:
        out.tag_ids = tag_ids.get(post.id, [])
    return out
