"""
Pydantic schemas for clients, projects, tags and uploads.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import ORMModel, SuccessResponse


class ClientBase(BaseModel):
    email: Optional[str] = Field(None, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = None
    description: Optional[str] = None
    brand_tone: Optional[str] = None
    industry: Optional[str] = Field(None, max_length=255)
    region: Optional[str] = Field(None, max_length=100)
    timezone: Optional[str] = Field(None, max_length=64, description="IANA timezone, e.g. Pacific/Auckland")
    late_profile_id: Optional[str] = Field(None, description="Profile id in the Late scheduling API")


class ClientCreate(ClientBase):
    name: str = Field(..., min_length=1, max_length=255)
    brand_color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$", description="Late profile color")


class ClientUpdate(ClientBase):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    portal_enabled: Optional[bool] = None
    portal_settings: Optional[Dict[str, Any]] = None


class ClientOut(ORMModel):
    id: UUID
    user_id: UUID
    name: str
    email: Optional[str] = None
    company: Optional[str] = None
    website: Optional[str] = None
    description: Optional[str] = None
    brand_tone: Optional[str] = None
    industry: Optional[str] = None
    region: Optional[str] = None
    timezone: Optional[str] = None
    logo_url: Optional[str] = None
    late_profile_id: Optional[str] = None
    portal_token: Optional[str] = None
    portal_enabled: bool = True
    portal_settings: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class ClientResponse(SuccessResponse):
    client: ClientOut


class ClientListResponse(SuccessResponse):
    clients: List[ClientOut]


class UnreadCountsResponse(SuccessResponse):
    unreadCounts: Dict[str, int] = Field(..., description="Unread activity per client id")


class MarkViewedResponse(SuccessResponse):
    lastViewedAt: datetime


class LogoUploadRequest(BaseModel):
    imageData: str = Field(..., min_length=1, description="Base64 data URL of the logo")


class LogoUploadResponse(SuccessResponse):
    logoUrl: str
    client: ClientOut


# --- Projects ---

class ProjectCreate(BaseModel):
    client_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[Literal["active", "archived"]] = None


class ProjectOut(ORMModel):
    id: UUID
    client_id: UUID
    user_id: UUID
    name: str
    description: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime


class ProjectResponse(SuccessResponse):
    project: ProjectOut


class ProjectListResponse(SuccessResponse):
    projects: List[ProjectOut]


# --- Tags ---

class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field("#3B82F6", pattern=r"^#[0-9A-Fa-f]{6}$")


class TagOut(ORMModel):
    id: UUID
    client_id: UUID
    name: str
    color: str
    created_at: datetime


class TagResponse(SuccessResponse):
    tag: TagOut


class TagListResponse(SuccessResponse):
    tags: List[TagOut]


# --- Uploads ---

class UploadOut(ORMModel):
    id: UUID
    client_id: UUID
    project_id: Optional[UUID] = None
    file_name: str
    file_type: str
    file_size: int
    file_url: str
    status: str
    notes: Optional[str] = None
    created_at: datetime


class UploadResponse(SuccessResponse):
    upload: UploadOut


class UploadListResponse(SuccessResponse):
    uploads: List[UploadOut]
