"""
CRUD operations for client uploads, portal activity and unread counts.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timeutils import utcnow
from app.crud.upsert import upsert
from app.db.models.calendar import ScheduledPost
from app.db.models.client import Client
from app.db.models.portal import (
    UNREAD_ACTIVITY_TYPES,
    ClientActivityView,
    ClientUpload,
    PortalActivity,
)

logger = logging.getLogger(__name__)


# --- Uploads ---

async def create_upload(db: AsyncSession, data: Dict[str, Any]) -> ClientUpload:
    upload = ClientUpload(**data)
    db.add(upload)
    await db.flush()
    await db.refresh(upload)
    return upload


async def get_upload(db: AsyncSession, upload_id: UUID) -> Optional[ClientUpload]:
    result = await db.execute(select(ClientUpload).where(ClientUpload.id == upload_id))
    return result.scalar_one_or_none()


async def list_uploads(db: AsyncSession, client_id: UUID, limit: int = 100) -> List[ClientUpload]:
    result = await db.execute(
        select(ClientUpload)
        .where(ClientUpload.client_id == client_id)
        .order_by(ClientUpload.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def delete_upload(db: AsyncSession, upload: ClientUpload) -> None:
    await db.delete(upload)
    await db.flush()


# --- Activity ---

async def log_activity(
    db: AsyncSession,
    client_id: UUID,
    activity_type: str,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Optional[PortalActivity]:
    """
    Record a portal activity row.

    Failures are logged and do not abort the caller's transaction.
    """
    activity = PortalActivity(
        client_id=client_id,
        activity_type=activity_type,
        activity_metadata=metadata or {},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    try:
        async with db.begin_nested():
            db.add(activity)
            await db.flush()
    except SQLAlchemyError as e:
        logger.warning(f"[PORTAL] Could not log {activity_type} for client {client_id}: {e}")
        return None
    return activity


# --- Unread counts ---

async def get_last_viewed(db: AsyncSession, user_id: UUID) -> Dict[UUID, datetime]:
    result = await db.execute(
        select(ClientActivityView.client_id, ClientActivityView.last_viewed_at)
        .where(ClientActivityView.user_id == user_id)
    )
    return {client_id: viewed_at for client_id, viewed_at in result.all()}


async def count_unread(db: AsyncSession, client_id: UUID, since: Optional[datetime]) -> int:
    """
    Activity for one client newer than ``since``; everything counts when ``since`` is None.

    The count is the sum of uploads, approved posts and counted portal
    activity types.
    """
    uploads = select(func.count()).select_from(ClientUpload).where(ClientUpload.client_id == client_id)
    approvals = (
        select(func.count())
        .select_from(ScheduledPost)
        .where(ScheduledPost.client_id == client_id, ScheduledPost.approval_status == "approved")
    )
    activity = (
        select(func.count())
        .select_from(PortalActivity)
        .where(
            PortalActivity.client_id == client_id,
            PortalActivity.activity_type.in_(UNREAD_ACTIVITY_TYPES),
        )
    )
    if since is not None:
        uploads = uploads.where(ClientUpload.created_at > since)
        approvals = approvals.where(ScheduledPost.updated_at > since)
        activity = activity.where(PortalActivity.created_at > since)

    total = 0
    for query in (uploads, approvals, activity):
        result = await db.execute(query)
        total += result.scalar_one()
    return total


async def get_unread_counts(db: AsyncSession, user_id: UUID) -> Dict[str, int]:
    """
    Unread count per client owned by the user, keyed by client id string.
    """
    result = await db.execute(select(Client.id).where(Client.user_id == user_id))
    client_ids = list(result.scalars().all())
    if not client_ids:
        return {}

    last_viewed = await get_last_viewed(db, user_id)
    counts: Dict[str, int] = {}
    for client_id in client_ids:
        counts[str(client_id)] = await count_unread(db, client_id, last_viewed.get(client_id))
    return counts


async def mark_viewed(db: AsyncSession, user_id: UUID, client_id: UUID) -> datetime:
    """
    Move the user's watermark for a client to now.

    Returns:
        datetime: The new last-viewed timestamp
    """
    viewed_at = utcnow()
    await upsert(
        db,
        ClientActivityView,
        values={"user_id": user_id, "client_id": client_id, "last_viewed_at": viewed_at},
        conflict_columns=("user_id", "client_id"),
        update_columns=("last_viewed_at",),
    )
    return viewed_at
