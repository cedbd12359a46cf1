"""
CRUD operations for approval sessions and post approvals.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timeutils import utcnow
from app.crud.upsert import upsert
from app.db.models.approval import ApprovalSession, PostApproval
from app.db.models.calendar import ScheduledPost
from app.db.models.client import Client


async def create_session(
    db: AsyncSession,
    client_id: UUID,
    project_id: Optional[UUID],
    expires_in_days: int,
    post_ids: Optional[List[UUID]] = None,
) -> ApprovalSession:
    """
    Create a shareable approval session with one pending approval per post.

    Args:
        db: Database session
        client_id: Client whose posts are being approved
        project_id: Optional project the session is limited to
        expires_in_days: Lifetime of the share link
        post_ids: Posts to attach as pending approvals

    Returns:
        ApprovalSession: Created session
    """
    session = ApprovalSession(
        client_id=client_id,
        project_id=project_id,
        expires_at=utcnow() + timedelta(days=expires_in_days),
    )
    db.add(session)
    await db.flush()

    for post_id in post_ids or []:
        db.add(PostApproval(session_id=session.id, post_id=post_id, approval_status="pending"))
    await db.flush()
    await db.refresh(session)
    return session


async def list_sessions(
    db: AsyncSession, user_id: UUID, project_id: Optional[UUID] = None
) -> List[ApprovalSession]:
    query = (
        select(ApprovalSession)
        .join(Client, Client.id == ApprovalSession.client_id)
        .where(Client.user_id == user_id)
    )
    if project_id is not None:
        query = query.where(ApprovalSession.project_id == project_id)
    result = await db.execute(query.order_by(ApprovalSession.created_at.desc()))
    return list(result.scalars().all())


async def get_session_by_token(db: AsyncSession, share_token: str) -> Optional[ApprovalSession]:
    result = await db.execute(
        select(ApprovalSession).where(ApprovalSession.share_token == share_token)
    )
    return result.scalar_one_or_none()


async def get_session_posts(db: AsyncSession, session: ApprovalSession) -> List[ScheduledPost]:
    """
    Posts selected for a session, in calendar order.
    """
    result = await db.execute(
        select(ScheduledPost)
        .join(PostApproval, PostApproval.post_id == ScheduledPost.id)
        .where(PostApproval.session_id == session.id)
        .order_by(ScheduledPost.scheduled_date.asc(), ScheduledPost.scheduled_time.asc())
    )
    return list(result.scalars().all())


async def get_session_approvals(db: AsyncSession, session_id: UUID) -> Dict[UUID, PostApproval]:
    result = await db.execute(
        select(PostApproval)
        .where(PostApproval.session_id == session_id)
        .execution_options(populate_existing=True)
    )
    return {approval.post_id: approval for approval in result.scalars().all()}


async def upsert_approval(
    db: AsyncSession,
    session_id: UUID,
    post_id: UUID,
    approval_status: str,
    client_comments: Optional[str],
    approved_at: Optional[datetime],
) -> PostApproval:
    """
    Record the client's decision for a post, replacing any earlier one.
    """
    approval_id = await upsert(
        db,
        PostApproval,
        values={
            "session_id": session_id,
            "post_id": post_id,
            "approval_status": approval_status,
            "client_comments": client_comments,
            "approved_at": approved_at,
            "updated_at": utcnow(),
        },
        conflict_columns=("session_id", "post_id"),
        update_columns=("approval_status", "client_comments", "approved_at", "updated_at"),
    )
    result = await db.execute(
        select(PostApproval)
        .where(PostApproval.id == approval_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()
