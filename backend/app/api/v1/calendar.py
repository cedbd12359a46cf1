"""
Calendar endpoints for unscheduled and scheduled posts.
"""
import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    check_project_belongs,
    require_client,
    require_scheduled_post,
    require_unscheduled_post,
)
from app.auth.dependencies import CurrentUser, get_current_user
from app.core.errors import Forbidden, PostMoveError, ValidationFailed
from app.crud import calendar as calendar_crud
from app.crud import client as client_crud
from app.crud import portal as portal_crud
from app.db.session import get_db
from app.schemas.calendar import (
    RescheduleRequest,
    ScheduledPostCreateRequest,
    ScheduledPostListResponse,
    ScheduledPostOut,
    ScheduledPostPatchRequest,
    ScheduledPostResponse,
    UnscheduledPostCreate,
    UnscheduledPostListResponse,
    UnscheduledPostOut,
    UnscheduledPostPatchRequest,
    UnscheduledPostResponse,
    scheduled_post_out,
)
from app.schemas.client import UploadOut
from app.schemas.common import MessageResponse, PostIdRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/calendar",
    tags=["calendar"],
)


def _post_id(query_id: Optional[UUID], body: Optional[PostIdRequest]) -> UUID:
    post_id = query_id or (body.postId if body else None)
    if post_id is None:
        raise ValidationFailed("postId is required")
    return post_id


# --- Unscheduled posts ---

@router.get("/unscheduled", response_model=UnscheduledPostListResponse)
async def list_unscheduled(
    clientId: Optional[UUID] = Query(None),
    projectId: Optional[UUID] = Query(None),
    filterUntagged: bool = Query(False, description="Only posts without a project"),
    limit: int = Query(20, ge=1, le=200),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List unscheduled posts, newest first.
    """
    client = None
    if clientId is not None:
        client = await require_client(db, clientId, current_user)
    if projectId is not None:
        if client is None:
            raise ValidationFailed("clientId is required with projectId")
        await check_project_belongs(db, projectId, client, current_user)

    posts = await calendar_crud.list_unscheduled_posts(
        db,
        current_user.id,
        client_id=clientId,
        project_id=projectId,
        untagged_only=filterUntagged,
        limit=limit,
    )
    return UnscheduledPostListResponse(posts=[UnscheduledPostOut.model_validate(p) for p in posts])


@router.post("/unscheduled", response_model=UnscheduledPostResponse, status_code=status.HTTP_201_CREATED)
async def create_unscheduled(
    request_data: UnscheduledPostCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create an unscheduled post for one of the caller's clients.

    Raises:
        Forbidden 403: If the client belongs to another user
        NotFound 404: If the client does not exist
    """
    client = await require_client(db, request_data.client_id, current_user)
    await check_project_belongs(db, request_data.project_id, client, current_user)

    post = await calendar_crud.create_unscheduled_post(db, request_data.model_dump())
    await db.commit()

    logger.info(f"[CALENDAR] Created unscheduled post {post.id} for client {client.id}")
    return UnscheduledPostResponse(post=UnscheduledPostOut.model_validate(post))


@router.patch("/unscheduled", response_model=UnscheduledPostResponse)
async def update_unscheduled(
    request_data: UnscheduledPostPatchRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post, client = await require_unscheduled_post(db, request_data.postId, current_user)
    updates = request_data.updates.model_dump(exclude_unset=True)
    if "project_id" in updates:
        await check_project_belongs(db, updates["project_id"], client, current_user)
    post = await calendar_crud.update_unscheduled_post(db, post, updates)
    await db.commit()
    return UnscheduledPostResponse(post=UnscheduledPostOut.model_validate(post))


@router.delete("/unscheduled", response_model=MessageResponse)
async def delete_unscheduled(
    postId: Optional[UUID] = Query(None),
    body: Optional[PostIdRequest] = Body(None),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post, _ = await require_unscheduled_post(db, _post_id(postId, body), current_user)
    await calendar_crud.delete_unscheduled_post(db, post.id)
    await db.commit()
    return MessageResponse(message="Post deleted")


# --- Scheduled posts ---

def _strip_inline_images(posts: List[ScheduledPostOut]) -> List[ScheduledPostOut]:
    for post in posts:
        if post.image_url and post.image_url.startswith("data:"):
            post.image_url = None
    return posts


@router.get("/scheduled", response_model=ScheduledPostListResponse)
async def list_scheduled(
    clientId: UUID = Query(...),
    projectId: Optional[UUID] = Query(None),
    filterUntagged: bool = Query(False, description="Only posts without a project"),
    limit: int = Query(50, ge=1, le=200),
    includeImageData: bool = Query(False, description="Include inline base64 images"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List a client's scheduled posts by date and time, plus the client's uploads.
    """
    client = await require_client(db, clientId, current_user)
    await check_project_belongs(db, projectId, client, current_user)

    posts = await calendar_crud.list_scheduled_posts(
        db,
        client_id=client.id,
        project_id=projectId,
        untagged_only=filterUntagged,
        limit=limit,
        user_id=current_user.id,
    )
    tag_ids = await client_crud.list_post_tag_ids(db, [p.id for p in posts])
    out = [scheduled_post_out(p, tag_ids) for p in posts]
    if not includeImageData:
        out = _strip_inline_images(out)

    uploads = await portal_crud.list_uploads(db, client.id)
    return ScheduledPostListResponse(posts=out, uploads=[UploadOut.model_validate(u) for u in uploads])


@router.post("/scheduled", response_model=ScheduledPostResponse, status_code=status.HTTP_201_CREATED)
async def create_scheduled(
    request_data: ScheduledPostCreateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Put a post on the calendar.

    With ``unscheduledId`` the unscheduled post is moved: the scheduled row is
    inserted and the unscheduled row deleted in one transaction, so the post
    ends up in exactly one table.

    Raises:
        PostMoveError 500: If the move fails; nothing is changed
    """
    data = request_data.scheduledPost.model_dump()
    client = await require_client(db, request_data.scheduledPost.client_id, current_user)
    await check_project_belongs(db, request_data.scheduledPost.project_id, client, current_user)

    if request_data.unscheduledId is None:
        post = await calendar_crud.create_scheduled_post(db, data)
        await db.commit()
        logger.info(f"[CALENDAR] Scheduled new post {post.id} on {post.scheduled_date}")
        return ScheduledPostResponse(post=scheduled_post_out(post))

    unscheduled, _ = await require_unscheduled_post(db, request_data.unscheduledId, current_user)
    if unscheduled.client_id != client.id:
        raise Forbidden("Post belongs to a different client")

    try:
        post = await calendar_crud.move_to_schedule(db, unscheduled, data)
        await db.commit()
    except (SQLAlchemyError, LookupError) as e:
        logger.error(f"[CALENDAR] Moving post {unscheduled.id} failed, rolling back: {e}")
        await db.rollback()
        raise PostMoveError(details=str(e)) from e

    logger.info(f"[CALENDAR] Moved post {request_data.unscheduledId} to scheduled post {post.id}")
    return ScheduledPostResponse(post=scheduled_post_out(post))


@router.patch("/scheduled", response_model=ScheduledPostResponse)
async def update_scheduled(
    request_data: ScheduledPostPatchRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post, client = await require_scheduled_post(db, request_data.postId, current_user)
    updates = request_data.updates.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationFailed("No updates provided")
    if "project_id" in updates:
        await check_project_belongs(db, updates["project_id"], client, current_user)

    post = await calendar_crud.update_scheduled_post(db, post, updates, edited_by=current_user.id)
    await db.commit()
    return ScheduledPostResponse(post=scheduled_post_out(post))


@router.put("/scheduled", response_model=ScheduledPostResponse)
async def reschedule(
    request_data: RescheduleRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Drag-and-drop a post to a new date (and optionally time).
    """
    client = await require_client(db, request_data.clientId, current_user)
    post, _ = await require_scheduled_post(db, request_data.postId, current_user)
    if post.client_id != client.id:
        raise Forbidden("Post belongs to a different client")

    post = await calendar_crud.reschedule_post(db, post, request_data.scheduledDate, request_data.scheduledTime)
    await db.commit()
    return ScheduledPostResponse(post=scheduled_post_out(post))


@router.delete("/scheduled", response_model=MessageResponse)
async def delete_scheduled(
    postId: Optional[UUID] = Query(None),
    body: Optional[PostIdRequest] = Body(None),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post, _ = await require_scheduled_post(db, _post_id(postId, body), current_user)
    await calendar_crud.delete_scheduled_post(db, post)
    await db.commit()
    return MessageResponse(message="Post deleted")
