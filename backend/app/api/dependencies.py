"""
Shared dependencies for API endpoints: ownership checks.

Each guard loads the resource, answers 404 when it does not exist and 403
when its client belongs to another user. Ownership of projects, posts,
uploads and tags is checked through their client.
"""
import logging
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser
from app.core.errors import Forbidden, NotFound
from app.crud import calendar as calendar_crud
from app.crud import client as client_crud
from app.db.models.calendar import ScheduledPost, UnscheduledPost
from app.db.models.client import Client, Project

logger = logging.getLogger(__name__)


def _check_owner(client: Client, user: CurrentUser, what: str, resource_id: UUID) -> None:
    if client.user_id != user.id:
        logger.warning(f"[AUTHZ] User {user.id} denied access to {what} {resource_id}")
        raise Forbidden()


async def require_client(db: AsyncSession, client_id: UUID, user: CurrentUser) -> Client:
    """
    Load a client owned by the caller.

    Raises:
        NotFound: If the client does not exist
        Forbidden: If another user owns it
    """
    client = await client_crud.get_client(db, client_id)
    if client is None:
        raise NotFound("Client not found")
    _check_owner(client, user, "client", client_id)
    return client


async def require_project(db: AsyncSession, project_id: UUID, user: CurrentUser) -> Tuple[Project, Client]:
    project = await client_crud.get_project(db, project_id)
    if project is None:
        raise NotFound("Project not found")
    client = await client_crud.get_client(db, project.client_id)
    if client is None:
        raise NotFound("Client not found")
    _check_owner(client, user, "project", project_id)
    return project, client


async def require_scheduled_post(
    db: AsyncSession, post_id: UUID, user: CurrentUser
) -> Tuple[ScheduledPost, Client]:
    post = await calendar_crud.get_scheduled_post(db, post_id)
    if post is None:
        raise NotFound("Post not found")
    client = await client_crud.get_client(db, post.client_id)
    if client is None:
        raise NotFound("Client not found")
    _check_owner(client, user, "scheduled post", post_id)
    return post, client


async def require_unscheduled_post(
    db: AsyncSession, post_id: UUID, user: CurrentUser
) -> Tuple[UnscheduledPost, Client]:
    post = await calendar_crud.get_unscheduled_post(db, post_id)
    if post is None:
        raise NotFound("Post not found")
    client = await client_crud.get_client(db, post.client_id)
    if client is None:
        raise NotFound("Client not found")
    _check_owner(client, user, "unscheduled post", post_id)
    return post, client


async def check_project_belongs(
    db: AsyncSession, project_id: Optional[UUID], client: Client, user: CurrentUser
) -> Optional[Project]:
    """
    When a project is given, it must be the caller's and belong to ``client``.
    """
    if project_id is None:
        return None
    project, _ = await require_project(db, project_id, user)
    if project.client_id != client.id:
        raise Forbidden("Project does not belong to this client")
    return project
