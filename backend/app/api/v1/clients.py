"""
Client management endpoints.
Handles clients, their logos, uploads, tags and unread activity counts.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import require_client
from app.auth.dependencies import CurrentUser, get_current_user
from app.core import tiers
from app.core.errors import AppError, Forbidden, NotFound, ValidationFailed
from app.core.validators import decode_data_url
from app.crud import client as client_crud
from app.crud import portal as portal_crud
from app.crud import subscription as subscription_crud
from app.db.session import get_db
from app.schemas.client import (
    ClientCreate,
    ClientListResponse,
    ClientOut,
    ClientResponse,
    ClientUpdate,
    LogoUploadRequest,
    LogoUploadResponse,
    MarkViewedResponse,
    TagCreate,
    TagListResponse,
    TagOut,
    TagResponse,
    UnreadCountsResponse,
    UploadListResponse,
    UploadOut,
)
from app.schemas.common import MessageResponse
from app.services import late as late_service
from app.services.blob_storage import BlobStorage

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/clients",
    tags=["clients"],
)


@router.get("", response_model=ClientListResponse)
async def list_clients(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List the caller's clients, newest first.
    """
    clients = await client_crud.list_clients(db, current_user.id)
    return ClientListResponse(clients=[ClientOut.model_validate(c) for c in clients])


async def _create_late_profile(request_data: ClientCreate) -> Optional[str]:
    try:
        return await late_service.get_late_client().create_profile(
            request_data.name,
            late_service.profile_description(
                request_data.name, request_data.description, request_data.brand_tone, request_data.website
            ),
            color=request_data.brand_color or late_service.DEFAULT_PROFILE_COLOR,
        )
    except AppError as e:
        logger.warning(f"[CLIENTS] Late profile not created for {request_data.name}: {e.message}")
        return None


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    request_data: ClientCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a client, subject to the plan's client limit.

    Users without a subscription get freemium limits.

    A Late profile is created for the client unless one is given; if Late
    fails the client is created without one.

    Raises:
        Forbidden 403: If the subscription is not active or the client limit is reached
    """
    subscription = await subscription_crud.get_subscription(db, current_user.id)
    if subscription is not None:
        subscription_crud.ensure_active(subscription)
    limit = subscription.max_clients if subscription else tiers.get_tier_limits(tiers.FREEMIUM).max_clients
    existing = await client_crud.list_client_ids(db, current_user.id)
    if not tiers.within_limit(len(existing), limit):
        raise Forbidden(
            f"Your plan allows {limit} client(s). Upgrade to add more.",
            extra={"limit": limit, "current": len(existing)},
        )

    data = request_data.model_dump(exclude_none=True, exclude={"brand_color"})
    if not data.get("late_profile_id"):
        late_profile_id = await _create_late_profile(request_data)
        if late_profile_id:
            data["late_profile_id"] = late_profile_id

    db_client = await client_crud.create_client(db, current_user.id, data)
    await subscription_crud.increment_clients_used(db, current_user.id, 1)
    await db.commit()

    logger.info(f"[CLIENTS] User {current_user.id} created client {db_client.id}")
    return ClientResponse(client=ClientOut.model_validate(db_client))


@router.get("/unread-counts", response_model=UnreadCountsResponse)
async def get_unread_counts(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Unread activity per client since the caller last viewed it.

    Counts uploads, approved posts and portal visits; a client never viewed
    counts everything.
    """
    counts = await portal_crud.get_unread_counts(db, current_user.id)
    return UnreadCountsResponse(unreadCounts=counts)


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    db_client = await require_client(db, client_id, current_user)
    return ClientResponse(client=ClientOut.model_validate(db_client))


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: UUID,
    request_data: ClientUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    db_client = await require_client(db, client_id, current_user)
    db_client = await client_crud.update_client(db, db_client, request_data.model_dump(exclude_unset=True))
    await db.commit()
    return ClientResponse(client=ClientOut.model_validate(db_client))


@router.delete("/{client_id}", response_model=MessageResponse)
async def delete_client(
    client_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    db_client = await require_client(db, client_id, current_user)
    await client_crud.delete_client(db, db_client)
    await subscription_crud.increment_clients_used(db, current_user.id, -1)
    await db.commit()

    logger.info(f"[CLIENTS] User {current_user.id} deleted client {client_id}")
    return MessageResponse(message="Client deleted")


@router.post("/{client_id}/mark-viewed", response_model=MarkViewedResponse)
async def mark_client_viewed(
    client_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Reset the client's unread count by moving the caller's watermark to now.
    """
    await require_client(db, client_id, current_user)
    viewed_at = await portal_crud.mark_viewed(db, current_user.id, client_id)
    await db.commit()
    return MarkViewedResponse(lastViewedAt=viewed_at)


@router.post("/{client_id}/logo", response_model=LogoUploadResponse)
async def upload_client_logo(
    client_id: UUID,
    request_data: LogoUploadRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Store a base64 logo in blob storage and save its URL on the client.
    """
    db_client = await require_client(db, client_id, current_user)
    try:
        mime, data = decode_data_url(request_data.imageData)
    except ValueError as e:
        raise ValidationFailed(str(e)) from e
    if not mime.startswith("image/"):
        raise ValidationFailed("Logo must be an image")

    extension = mime.split("/", 1)[1].split("+", 1)[0]
    stored = await BlobStorage().put(f"client-logos/{client_id}.{extension}", data, mime)

    db_client = await client_crud.update_client(db, db_client, {"logo_url": stored["url"]})
    await db.commit()
    return LogoUploadResponse(logoUrl=stored["url"], client=ClientOut.model_validate(db_client))


# --- Uploads ---

@router.get("/{client_id}/uploads", response_model=UploadListResponse)
async def list_client_uploads(
    client_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_client(db, client_id, current_user)
    uploads = await portal_crud.list_uploads(db, client_id)
    return UploadListResponse(uploads=[UploadOut.model_validate(u) for u in uploads])


@router.delete("/{client_id}/uploads/{upload_id}", response_model=MessageResponse)
async def delete_client_upload(
    client_id: UUID,
    upload_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_client(db, client_id, current_user)
    upload = await portal_crud.get_upload(db, upload_id)
    if upload is None or upload.client_id != client_id:
        raise NotFound("Upload not found")
    await portal_crud.delete_upload(db, upload)
    await db.commit()
    return MessageResponse(message="Upload deleted")


# --- Tags ---

@router.get("/{client_id}/tags", response_model=TagListResponse)
async def list_client_tags(
    client_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_client(db, client_id, current_user)
    tags = await client_crud.list_tags(db, client_id)
    return TagListResponse(tags=[TagOut.model_validate(t) for t in tags])


@router.post("/{client_id}/tags", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_client_tag(
    client_id: UUID,
    request_data: TagCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a tag; names are unique per client.

    Raises:
        Conflict 409: If the client already has a tag with this name
    """
    await require_client(db, client_id, current_user)
    tag = await client_crud.create_tag(db, client_id, request_data.name.strip(), request_data.color)
    await db.commit()
    return TagResponse(tag=TagOut.model_validate(tag))


@router.delete("/{client_id}/tags/{tag_id}", response_model=MessageResponse)
async def delete_client_tag(
    client_id: UUID,
    tag_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_client(db, client_id, current_user)
    tag = await client_crud.get_tag(db, tag_id)
    if tag is None or tag.client_id != client_id:
        raise NotFound("Tag not found")
    await client_crud.delete_tag(db, tag)
    await db.commit()
    return MessageResponse(message="Tag deleted")
