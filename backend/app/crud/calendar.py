"""
CRUD operations for calendar posts and caption revisions.
"""
from datetime import date, time
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.timeutils import utcnow
from app.db.models.calendar import PostRevision, ScheduledPost, UnscheduledPost
from app.db.models.client import Client, PostTag


def _scope(query, model, client_id: Optional[UUID], project_id: Optional[UUID], untagged_only: bool):
    if client_id is not None:
        query = query.where(model.client_id == client_id)
    if project_id is not None:
        query = query.where(model.project_id == project_id)
    elif untagged_only:
        query = query.where(model.project_id.is_(None))
    return query


# --- Unscheduled posts ---

async def get_unscheduled_post(db: AsyncSession, post_id: UUID) -> Optional[UnscheduledPost]:
    result = await db.execute(select(UnscheduledPost).where(UnscheduledPost.id == post_id))
    return result.scalar_one_or_none()


async def list_unscheduled_posts(
    db: AsyncSession,
    user_id: UUID,
    client_id: Optional[UUID] = None,
    project_id: Optional[UUID] = None,
    untagged_only: bool = False,
    limit: int = 20,
) -> List[UnscheduledPost]:
    """
    Get unscheduled posts owned by a user, newest first.

    Args:
        db: Database session
        user_id: Owner of the posts' clients
        client_id: Optional client filter
        project_id: Optional project filter
        untagged_only: Only posts without a project (ignored when project_id is given)
        limit: Maximum number of posts to return

    Returns:
        List[UnscheduledPost]: Matching posts
    """
    query = (
        select(UnscheduledPost)
        .join(Client, Client.id == UnscheduledPost.client_id)
        .where(Client.user_id == user_id)
    )
    query = _scope(query, UnscheduledPost, client_id, project_id, untagged_only)
    query = query.order_by(UnscheduledPost.created_at.desc()).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_unscheduled_post(db: AsyncSession, data: Dict[str, Any]) -> UnscheduledPost:
    db_post = UnscheduledPost(**data)
    db.add(db_post)
    await db.flush()
    await db.refresh(db_post)
    return db_post


async def update_unscheduled_post(
    db: AsyncSession, db_post: UnscheduledPost, data: Dict[str, Any]
) -> UnscheduledPost:
    for field, value in data.items():
        setattr(db_post, field, value)
    await db.flush()
    await db.refresh(db_post)
    return db_post


async def delete_unscheduled_post(db: AsyncSession, post_id: UUID) -> int:
    """
    Delete an unscheduled post.

    Returns:
        int: Number of rows deleted
    """
    result = await db.execute(delete(UnscheduledPost).where(UnscheduledPost.id == post_id))
    return result.rowcount


# --- Scheduled posts ---

async def get_scheduled_post(db: AsyncSession, post_id: UUID) -> Optional[ScheduledPost]:
    result = await db.execute(select(ScheduledPost).where(ScheduledPost.id == post_id))
    return result.scalar_one_or_none()


async def list_scheduled_posts(
    db: AsyncSession,
    client_id: Optional[UUID] = None,
    project_id: Optional[UUID] = None,
    untagged_only: bool = False,
    limit: int = 50,
    user_id: Optional[UUID] = None,
) -> List[ScheduledPost]:
    """
    Get scheduled posts in calendar order (date, then time).

    ``user_id`` restricts the result to posts of that user's clients; the
    client portal lists by client only.
    """
    query = select(ScheduledPost)
    if user_id is not None:
        query = query.join(Client, Client.id == ScheduledPost.client_id).where(Client.user_id == user_id)
    query = _scope(query, ScheduledPost, client_id, project_id, untagged_only)
    query = query.order_by(
        ScheduledPost.scheduled_date.asc(),
        ScheduledPost.scheduled_time.asc(),
    ).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_scheduled_post(db: AsyncSession, data: Dict[str, Any]) -> ScheduledPost:
    db_post = ScheduledPost(**data)
    if db_post.original_caption is None:
        db_post.original_caption = data.get("caption") or ""
    db.add(db_post)
    await db.flush()
    await db.refresh(db_post)
    return db_post


async def update_scheduled_post(
    db: AsyncSession,
    db_post: ScheduledPost,
    data: Dict[str, Any],
    edited_by: Optional[UUID] = None,
) -> ScheduledPost:
    """
    Apply whitelisted updates to a scheduled post.

    Caption changes are tracked: the first caption is kept in
    ``original_caption``, the edit counter is bumped and an approved post is
    flagged for re-approval.
    """
    new_caption = data.get("caption")
    if new_caption is not None and new_caption != db_post.caption:
        if db_post.original_caption is None:
            db_post.original_caption = db_post.caption
        db_post.edit_count = (db_post.edit_count or 0) + 1
        db_post.last_edited_at = utcnow()
        db_post.last_edited_by = edited_by
        if db_post.approval_status == "approved" and "approval_status" not in data:
            db_post.needs_reapproval = True

    for field, value in data.items():
        setattr(db_post, field, value)
    await db.flush()
    await db.refresh(db_post)
    return db_post


async def apply_client_decision(
    db: AsyncSession,
    db_post: ScheduledPost,
    decision: str,
    client_comments: Optional[str] = None,
    edited_caption: Optional[str] = None,
) -> ScheduledPost:
    """
    Write a client's approval decision onto the post.

    ``needs_attention`` is set only for that decision, so a later approve or
    reject clears it. A blank edited caption leaves the caption alone.
    """
    updates: Dict[str, Any] = {
        "approval_status": decision,
        "needs_attention": decision == "needs_attention",
        "needs_reapproval": False,
    }
    if client_comments is not None:
        updates["client_feedback"] = client_comments
    if (edited_caption or "").strip():
        updates["caption"] = edited_caption
    return await update_scheduled_post(db, db_post, updates)


async def list_project_posts(
    db: AsyncSession,
    client_id: UUID,
    from_date: Optional[date] = None,
) -> List[ScheduledPost]:
    """
    A client's scheduled posts that belong to a project, in calendar order.
    """
    query = select(ScheduledPost).where(
        ScheduledPost.client_id == client_id,
        ScheduledPost.project_id.is_not(None),
    )
    if from_date is not None:
        query = query.where(ScheduledPost.scheduled_date >= from_date)
    result = await db.execute(
        query.order_by(ScheduledPost.scheduled_date.asc(), ScheduledPost.scheduled_time.asc())
    )
    return list(result.scalars().all())


async def reschedule_post(
    db: AsyncSession,
    db_post: ScheduledPost,
    scheduled_date: date,
    scheduled_time: Optional[time] = None,
) -> ScheduledPost:
    db_post.scheduled_date = scheduled_date
    if scheduled_time is not None:
        db_post.scheduled_time = scheduled_time
    await db.flush()
    await db.refresh(db_post)
    return db_post


async def delete_scheduled_post(db: AsyncSession, db_post: ScheduledPost) -> None:
    await db.execute(delete(PostTag).where(PostTag.post_id == db_post.id))
    await db.delete(db_post)
    await db.flush()


async def move_to_schedule(
    db: AsyncSession,
    unscheduled: UnscheduledPost,
    data: Dict[str, Any],
) -> ScheduledPost:
    """
    Move an unscheduled post onto the calendar.

    Inserts the scheduled row and deletes the unscheduled one inside the
    caller's transaction; the caller rolls back if either step fails.

    Returns:
        ScheduledPost: The new calendar post
    """
    scheduled = await create_scheduled_post(db, data)
    deleted = await delete_unscheduled_post(db, unscheduled.id)
    if deleted != 1:
        raise LookupError(f"Unscheduled post {unscheduled.id} was not deleted")
    return scheduled


# --- Revisions ---

async def count_revisions(db: AsyncSession, post_id: UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(PostRevision).where(PostRevision.post_id == post_id)
    )
    return result.scalar_one()


async def list_revisions(
    db: AsyncSession, post_id: UUID, limit: int = 50, offset: int = 0
) -> Tuple[List[PostRevision], int]:
    """
    Get a page of a post's revisions, newest first, plus the total count.
    """
    result = await db.execute(
        select(PostRevision)
        .where(PostRevision.post_id == post_id)
        .order_by(PostRevision.edited_at.desc(), PostRevision.revision_number.desc())
        .offset(offset)
        .limit(limit)
    )
    revisions = list(result.scalars().all())
    return revisions, await count_revisions(db, post_id)


async def create_revision(
    db: AsyncSession,
    post_id: UUID,
    edited_by: UUID,
    previous_caption: str,
    new_caption: str,
    edit_reason: Optional[str] = None,
) -> PostRevision:
    """
    Append a revision numbered one past the post's latest revision.
    """
    result = await db.execute(
        select(func.max(PostRevision.revision_number)).where(PostRevision.post_id == post_id)
    )
    latest = result.scalar_one_or_none() or 0

    revision = PostRevision(
        post_id=post_id,
        edited_by=edited_by,
        previous_caption=previous_caption,
        new_caption=new_caption,
        edit_reason=edit_reason,
        revision_number=latest + 1,
    )
    db.add(revision)
    await db.flush()
    await db.refresh(revision)
    return revision
