"""
Client portal endpoints.

Authenticated by the client's portal token only; every call is logged as
portal activity so owners see it in their unread counts.
"""
import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden, NotAuthenticated, NotFound, ValidationFailed
from app.core.rate_limit import client_ip
from app.core.timeutils import utcnow, week_label, week_start
from app.core.validators import (
    MAX_UPLOAD_BYTES,
    decode_data_url,
    validate_file_name,
    validate_upload_type,
)
from app.crud import calendar as calendar_crud
from app.crud import client as client_crud
from app.crud import portal as portal_crud
from app.db.models.client import Client
from app.db.session import get_db
from app.schemas.approval import (
    CLIENT_DECISIONS,
    PortalApprovalRequest,
    PortalApprovalResponse,
    PortalApprovalsResponse,
    PortalCalendarResponse,
    PortalClientOut,
    PortalProjectOut,
    PortalUploadRequest,
    PortalUploadResponse,
    PortalValidateResponse,
    PortalWeekOut,
)
from app.schemas.calendar import scheduled_post_out
from app.schemas.client import UploadOut
from app.services.blob_storage import BlobStorage

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/portal",
    tags=["portal"],
)

PORTAL_CALENDAR_LIMIT = 200


def request_origin(request: Request) -> Tuple[Optional[str], Optional[str]]:
    """Caller IP (first X-Forwarded-For hop if present) and user agent."""
    return client_ip(request), request.headers.get("user-agent")


def portal_client_out(client: Client) -> PortalClientOut:
    return PortalClientOut(
        id=client.id,
        name=client.name,
        logo_url=client.logo_url,
        portal_settings=client.portal_settings,
    )


async def _client_for_token(db: AsyncSession, token: Optional[str]) -> Client:
    if not token:
        raise ValidationFailed("Portal token is required")
    client = await client_crud.get_client_by_portal_token(db, token)
    if client is None:
        logger.warning("[PORTAL] Rejected invalid portal token")
        raise NotAuthenticated("Invalid portal token")
    return client


@router.get("/validate", response_model=PortalValidateResponse)
async def validate_portal_token(
    request: Request,
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Check a portal token and return the client's public profile.

    Raises:
        ValidationFailed 400: If no token is given
        NotAuthenticated 401: If the token is unknown or the portal is disabled
    """
    client = await _client_for_token(db, token)
    ip_address, user_agent = request_origin(request)
    await portal_crud.log_activity(db, client.id, "portal_access", ip_address=ip_address, user_agent=user_agent)
    await db.commit()
    return PortalValidateResponse(client=portal_client_out(client))


@router.get("/calendar", response_model=PortalCalendarResponse)
async def get_portal_calendar(
    request: Request,
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    client = await _client_for_token(db, token)
    posts = await calendar_crud.list_scheduled_posts(db, client_id=client.id, limit=PORTAL_CALENDAR_LIMIT)

    ip_address, user_agent = request_origin(request)
    await portal_crud.log_activity(db, client.id, "calendar_view", ip_address=ip_address, user_agent=user_agent)
    await db.commit()
    return PortalCalendarResponse(client=portal_client_out(client), posts=[scheduled_post_out(p) for p in posts])


@router.post("/upload", response_model=PortalUploadResponse)
async def upload_portal_file(
    request: Request,
    request_data: PortalUploadRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Accept a file from the client and store it in blob storage.

    Raises:
        ValidationFailed 400: Bad name, disallowed type, bad data or over 50MB
        NotAuthenticated 401: Invalid portal token
    """
    client = await _client_for_token(db, request_data.token)

    ok, error = validate_file_name(request_data.fileName)
    if not ok:
        raise ValidationFailed(error)
    ok, error = validate_upload_type(request_data.fileName, request_data.fileType)
    if not ok:
        raise ValidationFailed(error)

    if request_data.projectId is not None:
        project = await client_crud.get_project(db, request_data.projectId)
        if project is None or project.client_id != client.id:
            raise ValidationFailed("Project does not belong to this client")

    try:
        _, data = decode_data_url(request_data.fileData, default_mime=request_data.fileType)
    except ValueError as e:
        raise ValidationFailed(str(e)) from e
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationFailed(f"File exceeds the {MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit")

    stored = await BlobStorage().put(
        f"client-uploads/{client.id}/{request_data.fileName}", data, request_data.fileType
    )
    upload = await portal_crud.create_upload(db, {
        "client_id": client.id,
        "project_id": request_data.projectId,
        "file_name": request_data.fileName,
        "file_type": request_data.fileType,
        "file_size": len(data),
        "file_url": stored["url"],
        "notes": request_data.notes,
    })

    ip_address, user_agent = request_origin(request)
    await portal_crud.log_activity(
        db, client.id, "content_upload",
        metadata={"upload_id": str(upload.id), "file_name": upload.file_name},
        ip_address=ip_address, user_agent=user_agent,
    )
    await db.commit()

    logger.info(f"[PORTAL] Client {client.id} uploaded {upload.file_name} ({upload.file_size} bytes)")
    return PortalUploadResponse(upload=UploadOut.model_validate(upload))


@router.get("/approvals", response_model=PortalApprovalsResponse)
async def get_portal_approvals(
    request: Request,
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    The client's project posts, grouped into weeks starting on Sunday.

    Weeks before the current one are left out.

    Raises:
        ValidationFailed 400: If no token is given
        NotAuthenticated 401: If the token is unknown or the portal is disabled
    """
    client = await _client_for_token(db, token)
    projects = await client_crud.list_client_projects(db, client.id)

    weeks = []
    if projects:
        posts = await calendar_crud.list_project_posts(
            db, client.id, from_date=week_start(utcnow().date())
        )
        grouped = {}
        for post in posts:
            grouped.setdefault(week_start(post.scheduled_date), []).append(post)
        weeks = [
            PortalWeekOut(
                week_start=start,
                week_label=week_label(start),
                posts=[scheduled_post_out(p) for p in week_posts],
            )
            for start, week_posts in sorted(grouped.items())
        ]

    ip_address, user_agent = request_origin(request)
    await portal_crud.log_activity(db, client.id, "approval_view", ip_address=ip_address, user_agent=user_agent)
    await db.commit()
    return PortalApprovalsResponse(
        client=portal_client_out(client),
        projects=[PortalProjectOut(id=p.id, name=p.name) for p in projects],
        weeks=weeks,
    )


@router.post("/approvals", response_model=PortalApprovalResponse)
async def submit_portal_approval(
    request_data: PortalApprovalRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Record a client's decision on one of its posts from the portal.

    Raises:
        ValidationFailed 400: Missing token or unknown approval status
        NotAuthenticated 401: Invalid portal token
        NotFound 404: Unknown post
        Forbidden 403: Post belongs to another client
    """
    client = await _client_for_token(db, request_data.token)

    decision = request_data.approval_status
    if decision not in CLIENT_DECISIONS:
        raise ValidationFailed(f"Invalid approval status: {decision}")

    post = await calendar_crud.get_scheduled_post(db, request_data.post_id)
    if post is None:
        raise NotFound("Post not found")
    if post.client_id != client.id:
        logger.warning(f"[PORTAL] Client {client.id} tried to decide on post {post.id} of another client")
        raise Forbidden("Post does not belong to this client")

    post = await calendar_crud.apply_client_decision(
        db, post, decision,
        client_comments=request_data.client_comments,
        edited_caption=request_data.edited_caption,
    )
    await db.commit()

    logger.info(f"[PORTAL] Post {post.id} marked {decision} by client {client.id}")
    return PortalApprovalResponse(post=scheduled_post_out(post), message="Approval submitted successfully")
