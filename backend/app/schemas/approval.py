"""
Pydantic schemas for approval sessions and the client portal.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional, get_args
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.calendar import ScheduledPostOut
from app.schemas.client import UploadOut
from app.schemas.common import ORMModel, SuccessResponse

ClientDecision = Literal["approved", "rejected", "needs_attention"]
CLIENT_DECISIONS = get_args(ClientDecision)


class ApprovalSessionCreate(BaseModel):
    client_id: UUID
    project_id: Optional[UUID] = None
    post_ids: List[UUID] = Field(default_factory=list, description="Posts to include as pending approvals")
    expires_in_days: int = Field(30, ge=1, le=365)


class ApprovalSessionOut(ORMModel):
    id: UUID
    client_id: UUID
    project_id: Optional[UUID] = None
    share_token: str
    expires_at: datetime
    created_at: datetime


class ApprovalSessionResponse(SuccessResponse):
    session: ApprovalSessionOut
    share_url: str


class ApprovalSessionListResponse(SuccessResponse):
    sessions: List[ApprovalSessionOut]


class SubmitApprovalRequest(BaseModel):
    share_token: str = Field(..., min_length=1)
    post_id: UUID
    approval_status: ClientDecision
    client_comments: Optional[str] = Field(None, max_length=5000)
    edited_caption: Optional[str] = Field(None, max_length=5000)


class PostApprovalOut(ORMModel):
    id: UUID
    session_id: UUID
    post_id: UUID
    approval_status: str
    client_comments: Optional[str] = None
    approved_at: Optional[datetime] = None


class SubmitApprovalResponse(SuccessResponse):
    approval: PostApprovalOut
    message: str


class ApprovalPostOut(ScheduledPostOut):
    approval: Optional[PostApprovalOut] = None


class PortalClientOut(BaseModel):
    id: UUID
    name: str
    logo_url: Optional[str] = None
    portal_settings: Optional[Dict[str, Any]] = None


class PostsByTokenResponse(SuccessResponse):
    session: ApprovalSessionOut
    client: PortalClientOut
    posts: List[ApprovalPostOut]


# --- Portal ---

class PortalValidateResponse(SuccessResponse):
    client: PortalClientOut


class PortalCalendarResponse(SuccessResponse):
    client: PortalClientOut
    posts: List[ScheduledPostOut]


class PortalUploadRequest(BaseModel):
    token: str = Field(..., min_length=1)
    fileName: str = Field(..., min_length=1, max_length=255)
    fileType: str = Field(..., min_length=1)
    fileData: str = Field(..., min_length=1, description="Base64 data URL of the file")
    notes: Optional[str] = Field(None, max_length=2000)
    projectId: Optional[UUID] = None


class PortalUploadResponse(SuccessResponse):
    upload: UploadOut


class PortalProjectOut(BaseModel):
    id: UUID
    name: str


class PortalWeekOut(BaseModel):
    week_start: date
    week_label: str
    posts: List[ScheduledPostOut]


class PortalApprovalsResponse(SuccessResponse):
    client: PortalClientOut
    projects: List[PortalProjectOut]
    weeks: List[PortalWeekOut]


class PortalApprovalRequest(BaseModel):
    token: Optional[str] = None
    post_id: UUID
    approval_status: str
    client_comments: Optional[str] = Field(None, max_length=5000)
    edited_caption: Optional[str] = Field(None, max_length=5000)


class PortalApprovalResponse(SuccessResponse):
    post: ScheduledPostOut
    message: str
