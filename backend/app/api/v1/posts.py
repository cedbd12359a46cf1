"""
Per-post endpoints: caption revision history and tag assignment.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import require_scheduled_post
from app.auth.dependencies import CurrentUser, get_current_user
from app.core.errors import NotFound, ValidationFailed
from app.core.validators import clamp_limit, clamp_offset
from app.crud import calendar as calendar_crud
from app.crud import client as client_crud
from app.db.session import get_db
from app.schemas.calendar import (
    RevisionCreate,
    RevisionListResponse,
    RevisionOut,
    RevisionPostSummary,
    RevisionResponse,
)
from app.schemas.common import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/posts",
    tags=["posts"],
)

MAX_REVISIONS_PAGE = 100


@router.get("/{post_id}/revisions", response_model=RevisionListResponse)
async def list_post_revisions(
    post_id: UUID,
    limit: Optional[str] = Query(None, description="Page size, default 50"),
    offset: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Caption history of a post, newest first.

    Unparsable ``limit``/``offset`` values fall back to their defaults.
    """
    post, _ = await require_scheduled_post(db, post_id, current_user)
    page_size = clamp_limit(limit, default=50, maximum=MAX_REVISIONS_PAGE)
    start = clamp_offset(offset)

    revisions, total = await calendar_crud.list_revisions(db, post.id, page_size, start)
    return RevisionListResponse(
        revisions=[RevisionOut.model_validate(r) for r in revisions],
        totalCount=total,
        hasMore=total > start + page_size,
        post=RevisionPostSummary(id=post.id, current_caption=post.caption, created_at=post.created_at),
    )


@router.post("/{post_id}/revisions", response_model=RevisionResponse, status_code=status.HTTP_201_CREATED)
async def create_post_revision(
    post_id: UUID,
    request_data: RevisionCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Append a caption revision; the caller is recorded as the editor.
    """
    post, _ = await require_scheduled_post(db, post_id, current_user)
    revision = await calendar_crud.create_revision(
        db,
        post_id=post.id,
        edited_by=current_user.id,
        previous_caption=request_data.previous_caption,
        new_caption=request_data.new_caption,
        edit_reason=request_data.edit_reason,
    )
    await db.commit()

    logger.info(f"[REVISIONS] Post {post.id} revision {revision.revision_number} by {current_user.id}")
    return RevisionResponse(revision=RevisionOut.model_validate(revision))


@router.post("/{post_id}/tags/{tag_id}", response_model=MessageResponse)
async def add_post_tag(
    post_id: UUID,
    tag_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post, _ = await require_scheduled_post(db, post_id, current_user)
    tag = await client_crud.get_tag(db, tag_id)
    if tag is None:
        raise NotFound("Tag not found")
    if tag.client_id != post.client_id:
        raise ValidationFailed("Tag belongs to a different client")

    added = await client_crud.tag_post(db, post.id, tag.id)
    await db.commit()
    return MessageResponse(message="Tag added" if added else "Tag already assigned")


@router.delete("/{post_id}/tags/{tag_id}", response_model=MessageResponse)
async def remove_post_tag(
    post_id: UUID,
    tag_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post, _ = await require_scheduled_post(db, post_id, current_user)
    removed = await client_crud.untag_post(db, post.id, tag_id)
    if not removed:
        raise NotFound("Tag is not assigned to this post")
    await db.commit()
    return MessageResponse(message="Tag removed")
