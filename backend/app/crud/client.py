"""
CRUD operations for clients, projects and tags.
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict
from app.db.models.client import Client, PostTag, Project, Tag


async def get_client(db: AsyncSession, client_id: UUID) -> Optional[Client]:
    """
    Get a client by ID.

    Args:
        db: Database session
        client_id: Client ID

    Returns:
        Optional[Client]: Client if found, None otherwise
    """
    result = await db.execute(select(Client).where(Client.id == client_id))
    return result.scalar_one_or_none()


async def get_client_by_portal_token(db: AsyncSession, token: str) -> Optional[Client]:
    result = await db.execute(
        select(Client).where(Client.portal_token == token, Client.portal_enabled.is_(True))
    )
    return result.scalar_one_or_none()


async def list_clients(db: AsyncSession, user_id: UUID) -> List[Client]:
    """
    Get all clients owned by a user, newest first.
    """
    result = await db.execute(
        select(Client).where(Client.user_id == user_id).order_by(Client.created_at.desc())
    )
    return list(result.scalars().all())


async def list_client_ids(db: AsyncSession, user_id: UUID) -> List[UUID]:
    result = await db.execute(select(Client.id).where(Client.user_id == user_id))
    return list(result.scalars().all())


async def create_client(db: AsyncSession, user_id: UUID, data: Dict[str, Any]) -> Client:
    """
    Create a new client for a user.

    Args:
        db: Database session
        user_id: Owner of the client
        data: Client fields

    Returns:
        Client: Created client
    """
    db_client = Client(user_id=user_id, **data)
    db.add(db_client)
    await db.flush()
    await db.refresh(db_client)
    return db_client


async def update_client(db: AsyncSession, db_client: Client, data: Dict[str, Any]) -> Client:
    for field, value in data.items():
        setattr(db_client, field, value)
    await db.flush()
    await db.refresh(db_client)
    return db_client


async def delete_client(db: AsyncSession, db_client: Client) -> None:
    await db.delete(db_client)
    await db.flush()


# --- Projects ---

async def get_project(db: AsyncSession, project_id: UUID) -> Optional[Project]:
    result = await db.execute(select(Project).where(Project.id == project_id))
    return result.scalar_one_or_none()


async def list_projects(
    db: AsyncSession,
    user_id: UUID,
    client_id: Optional[UUID] = None,
) -> List[Project]:
    """
    Get projects owned by a user, optionally limited to one client.
    """
    query = (
        select(Project)
        .join(Client, Client.id == Project.client_id)
        .where(Client.user_id == user_id)
    )
    if client_id is not None:
        query = query.where(Project.client_id == client_id)
    result = await db.execute(query.order_by(Project.created_at.desc()))
    return list(result.scalars().all())


async def list_client_projects(db: AsyncSession, client_id: UUID) -> List[Project]:
    result = await db.execute(
        select(Project).where(Project.client_id == client_id).order_by(Project.created_at.asc())
    )
    return list(result.scalars().all())


async def create_project(db: AsyncSession, user_id: UUID, data: Dict[str, Any]) -> Project:
    db_project = Project(user_id=user_id, **data)
    db.add(db_project)
    await db.flush()
    await db.refresh(db_project)
    return db_project


async def update_project(db: AsyncSession, db_project: Project, data: Dict[str, Any]) -> Project:
    for field, value in data.items():
        setattr(db_project, field, value)
    await db.flush()
    await db.refresh(db_project)
    return db_project


async def delete_project(db: AsyncSession, db_project: Project) -> None:
    await db.delete(db_project)
    await db.flush()


# --- Tags ---

async def get_tag(db: AsyncSession, tag_id: UUID) -> Optional[Tag]:
    result = await db.execute(select(Tag).where(Tag.id == tag_id))
    return result.scalar_one_or_none()


async def list_tags(db: AsyncSession, client_id: UUID) -> List[Tag]:
    result = await db.execute(
        select(Tag).where(Tag.client_id == client_id).order_by(Tag.name)
    )
    return list(result.scalars().all())


async def create_tag(db: AsyncSession, client_id: UUID, name: str, color: str) -> Tag:
    """
    Create a tag for a client.

    Raises:
        Conflict: If the client already has a tag with this name
    """
    existing = await db.execute(
        select(Tag.id).where(Tag.client_id == client_id, Tag.name == name)
    )
    if existing.scalar_one_or_none() is not None:
        raise Conflict("A tag with this name already exists")

    db_tag = Tag(client_id=client_id, name=name, color=color)
    db.add(db_tag)
    try:
        async with db.begin_nested():
            await db.flush()
    except IntegrityError as e:
        raise Conflict("A tag with this name already exists") from e
    await db.refresh(db_tag)
    return db_tag


async def delete_tag(db: AsyncSession, db_tag: Tag) -> None:
    await db.delete(db_tag)
    await db.flush()


async def tag_post(db: AsyncSession, post_id: UUID, tag_id: UUID) -> bool:
    """
    Attach a tag to a scheduled post.

    Returns:
        bool: False if the tag was already attached
    """
    existing = await db.execute(
        select(PostTag.id).where(PostTag.post_id == post_id, PostTag.tag_id == tag_id)
    )
    if existing.scalar_one_or_none() is not None:
        return False
    db.add(PostTag(post_id=post_id, tag_id=tag_id))
    await db.flush()
    return True


async def untag_post(db: AsyncSession, post_id: UUID, tag_id: UUID) -> bool:
    result = await db.execute(
        delete(PostTag).where(PostTag.post_id == post_id, PostTag.tag_id == tag_id)
    )
    return result.rowcount > 0


async def list_post_tag_ids(db: AsyncSession, post_ids: List[UUID]) -> Dict[UUID, List[UUID]]:
    """Map each post to the ids of its tags."""
    if not post_ids:
        return {}
    result = await db.execute(
        select(PostTag.post_id, PostTag.tag_id).where(PostTag.post_id.in_(post_ids))
    )
    mapping: Dict[UUID, List[UUID]] = {}
    for post_id, tag_id in result.all():
        mapping.setdefault(post_id, []).append(tag_id)
    return mapping
