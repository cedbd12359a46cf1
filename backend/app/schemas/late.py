"""
Pydantic schemas for Late scheduling and media uploads.
"""
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.schemas.calendar import ScheduledPostOut
from app.schemas.common import SuccessResponse

ConnectablePlatform = Literal["instagram", "twitter", "linkedin", "youtube", "tiktok", "threads", "facebook"]


class SelectedAccount(BaseModel):
    platform: str = Field(..., min_length=1, description="e.g. instagram, facebook, linkedin")
    accountId: Optional[str] = None
    id: Optional[str] = Field(None, alias="_id")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def require_account_id(self):
        if not (self.accountId or self.id):
            raise ValueError("Each selected account needs an accountId")
        return self

    @property
    def account_id(self) -> str:
        return self.accountId or self.id


class SchedulePostRequest(BaseModel):
    postId: UUID
    selectedAccounts: List[SelectedAccount] = Field(..., min_length=1)
    scheduledDateTime: Optional[str] = Field(None, description="ISO 8601; defaults to the post's calendar slot")
    timezone: Optional[str] = None
    mediaUrl: Optional[str] = None


class SchedulePostResponse(SuccessResponse):
    latePostId: str
    post: ScheduledPostOut
    late: Dict[str, Any] = Field(default_factory=dict)


class LateAccountsResponse(SuccessResponse):
    accounts: List[Dict[str, Any]]


class UploadImageRequest(BaseModel):
    imageData: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1, max_length=255)


class UploadImageResponse(SuccessResponse):
    url: str
    filename: str


class ConnectPlatformRequest(BaseModel):
    clientId: UUID
    platform: ConnectablePlatform
    redirectUrl: Optional[str] = Field(None, description="Where Late sends the browser after OAuth")


class ConnectPlatformResponse(SuccessResponse):
    connectUrl: str
    platform: str
    clientId: UUID
    lateProfileId: str
