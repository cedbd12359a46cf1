"""
Project endpoints, including the project-scoped calendar views.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import require_client, require_project, require_scheduled_post
from app.auth.dependencies import CurrentUser, get_current_user
from app.core.errors import NotFound
from app.crud import calendar as calendar_crud
from app.crud import client as client_crud
from app.db.session import get_db
from app.schemas.calendar import (
    ConfirmPostRequest,
    MovePostRequest,
    ScheduledPostListResponse,
    ScheduledPostResponse,
    UnscheduledPostListResponse,
    UnscheduledPostOut,
    scheduled_post_out,
)
from app.schemas.client import (
    ProjectCreate,
    ProjectListResponse,
    ProjectOut,
    ProjectResponse,
    ProjectUpdate,
)
from app.schemas.common import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/projects",
    tags=["projects"],
)


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    clientId: Optional[UUID] = Query(None, description="Only projects of this client"),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if clientId is not None:
        await require_client(db, clientId, current_user)
    projects = await client_crud.list_projects(db, current_user.id, clientId)
    return ProjectListResponse(projects=[ProjectOut.model_validate(p) for p in projects])


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    request_data: ProjectCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_client(db, request_data.client_id, current_user)
    project = await client_crud.create_project(db, current_user.id, request_data.model_dump(exclude_none=True))
    await db.commit()
    logger.info(f"[PROJECTS] Created project {project.id} for client {project.client_id}")
    return ProjectResponse(project=ProjectOut.model_validate(project))


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project, _ = await require_project(db, project_id, current_user)
    return ProjectResponse(project=ProjectOut.model_validate(project))


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    request_data: ProjectUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project, _ = await require_project(db, project_id, current_user)
    project = await client_crud.update_project(db, project, request_data.model_dump(exclude_unset=True))
    await db.commit()
    return ProjectResponse(project=ProjectOut.model_validate(project))


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    project_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project, _ = await require_project(db, project_id, current_user)
    await client_crud.delete_project(db, project)
    await db.commit()
    return MessageResponse(message="Project deleted")


@router.get("/{project_id}/unscheduled-posts", response_model=UnscheduledPostListResponse)
async def list_project_unscheduled_posts(
    project_id: UUID,
    limit: int = Query(20, ge=1, le=200),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project, client = await require_project(db, project_id, current_user)
    posts = await calendar_crud.list_unscheduled_posts(
        db, current_user.id, client_id=client.id, project_id=project.id, limit=limit
    )
    return UnscheduledPostListResponse(posts=[UnscheduledPostOut.model_validate(p) for p in posts])


@router.get("/{project_id}/scheduled-posts", response_model=ScheduledPostListResponse)
async def list_project_scheduled_posts(
    project_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    project, client = await require_project(db, project_id, current_user)
    posts = await calendar_crud.list_scheduled_posts(
        db, client_id=client.id, project_id=project.id, limit=limit, user_id=current_user.id
    )
    tag_ids = await client_crud.list_post_tag_ids(db, [p.id for p in posts])
    return ScheduledPostListResponse(posts=[scheduled_post_out(p, tag_ids) for p in posts])


async def _project_post(db: AsyncSession, project_id: UUID, post_id: UUID, user: CurrentUser):
    await require_project(db, project_id, user)
    post, _ = await require_scheduled_post(db, post_id, user)
    if post.project_id != project_id:
        raise NotFound("Post not found in this project")
    return post


@router.patch("/{project_id}/scheduled-posts/{post_id}/move", response_model=ScheduledPostResponse)
async def move_project_post(
    project_id: UUID,
    post_id: UUID,
    request_data: MovePostRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Drag a scheduled post to another day.
    """
    post = await _project_post(db, project_id, post_id, current_user)
    post = await calendar_crud.reschedule_post(
        db, post, request_data.newScheduledDate, request_data.newScheduledTime
    )
    await db.commit()
    return ScheduledPostResponse(post=scheduled_post_out(post))


@router.patch("/{project_id}/scheduled-posts/{post_id}/confirm", response_model=ScheduledPostResponse)
async def confirm_project_post(
    project_id: UUID,
    post_id: UUID,
    request_data: ConfirmPostRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Pin a post to an exact date and time and mark it confirmed.
    """
    post = await _project_post(db, project_id, post_id, current_user)
    post = await calendar_crud.update_scheduled_post(
        db,
        post,
        {
            "scheduled_date": request_data.scheduledDate,
            "scheduled_time": request_data.scheduledTime,
            "is_confirmed": True,
        },
        edited_by=current_user.id,
    )
    await db.commit()
    return ScheduledPostResponse(post=scheduled_post_out(post))
