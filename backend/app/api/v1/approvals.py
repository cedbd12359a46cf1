"""
Client approval endpoints.

Owners create share links; clients open them without logging in and approve,
reject or flag posts. Every client decision re-checks that the post belongs
to the session's client and project before anything is written.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import check_project_belongs, require_client
from app.api.v1.portal import request_origin
from app.auth.dependencies import CurrentUser, get_current_user
from app.core.config import settings
from app.core.errors import Forbidden, Gone, NotFound, ValidationFailed
from app.core.timeutils import ensure_aware, utcnow
from app.crud import approval as approval_crud
from app.crud import calendar as calendar_crud
from app.crud import client as client_crud
from app.crud import portal as portal_crud
from app.db.models.approval import ApprovalSession
from app.db.models.calendar import ScheduledPost
from app.db.session import get_db
from app.schemas.approval import (
    ApprovalPostOut,
    ApprovalSessionCreate,
    ApprovalSessionListResponse,
    ApprovalSessionOut,
    ApprovalSessionResponse,
    PortalClientOut,
    PostApprovalOut,
    PostsByTokenResponse,
    SubmitApprovalRequest,
    SubmitApprovalResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/approval-sessions",
    tags=["approvals"],
)


def share_url(token: str) -> str:
    return f"{settings.APP_BASE_URL.rstrip('/')}/approval/{token}"


def post_in_scope(post: ScheduledPost, client_id: UUID, project_id: Optional[UUID]) -> bool:
    """A scope without a project covers only posts without a project."""
    if post.client_id != client_id:
        return False
    if project_id is None:
        return post.project_id is None
    return post.project_id == project_id


def post_in_session(post: ScheduledPost, session: ApprovalSession) -> bool:
    return post_in_scope(post, session.client_id, session.project_id)


async def _load_live_session(db: AsyncSession, token: Optional[str]) -> ApprovalSession:
    if not token:
        raise ValidationFailed("Share token is required")
    session = await approval_crud.get_session_by_token(db, token)
    if session is None:
        raise NotFound("Approval session not found")
    if ensure_aware(session.expires_at) < utcnow():
        raise Gone("This approval link has expired")
    return session


@router.post("", response_model=ApprovalSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_approval_session(
    request_data: ApprovalSessionCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a share link for a client (optionally one project) with the selected posts pending.
    """
    client = await require_client(db, request_data.client_id, current_user)
    await check_project_belongs(db, request_data.project_id, client, current_user)

    post_ids = list(dict.fromkeys(request_data.post_ids))
    for post_id in post_ids:
        post = await calendar_crud.get_scheduled_post(db, post_id)
        if post is None:
            raise NotFound(f"Post {post_id} not found")
        if post.client_id != client.id:
            raise ValidationFailed(f"Post {post_id} belongs to a different client")
        if not post_in_scope(post, client.id, request_data.project_id):
            if request_data.project_id is None:
                raise ValidationFailed(f"Post {post_id} belongs to a project; create the session for that project")
            raise ValidationFailed(f"Post {post_id} is not in this project")

    session = await approval_crud.create_session(
        db,
        client_id=client.id,
        project_id=request_data.project_id,
        expires_in_days=request_data.expires_in_days,
        post_ids=post_ids,
    )
    await db.commit()

    logger.info(f"[APPROVALS] Session {session.id} created for client {client.id} with {len(post_ids)} posts")
    return ApprovalSessionResponse(
        session=ApprovalSessionOut.model_validate(session),
        share_url=share_url(session.share_token),
    )


@router.get("", response_model=ApprovalSessionListResponse)
async def list_approval_sessions(
    project_id: Optional[UUID] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sessions = await approval_crud.list_sessions(db, current_user.id, project_id)
    return ApprovalSessionListResponse(sessions=[ApprovalSessionOut.model_validate(s) for s in sessions])


@router.get("/posts-by-token", response_model=PostsByTokenResponse)
async def get_posts_by_token(
    request: Request,
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Public view of a share link: the session's posts with their current decisions.

    Raises:
        ValidationFailed 400: If no token is given
        NotFound 404: If the token is unknown
        Gone 410: If the link has expired
    """
    session = await _load_live_session(db, token)
    client = await client_crud.get_client(db, session.client_id)
    if client is None:
        raise NotFound("Client not found")

    posts = await approval_crud.get_session_posts(db, session)
    approvals = await approval_crud.get_session_approvals(db, session.id)

    out = []
    for post in posts:
        item = ApprovalPostOut.model_validate(post)
        approval = approvals.get(post.id)
        item.approval = PostApprovalOut.model_validate(approval) if approval else None
        out.append(item)

    ip_address, user_agent = request_origin(request)
    await portal_crud.log_activity(
        db, client.id, "approval_view",
        metadata={"session_id": str(session.id)},
        ip_address=ip_address, user_agent=user_agent,
    )
    await db.commit()

    return PostsByTokenResponse(
        session=ApprovalSessionOut.model_validate(session),
        client=PortalClientOut(id=client.id, name=client.name, logo_url=client.logo_url,
                               portal_settings=client.portal_settings),
        posts=out,
    )


@router.post("/submit-approval", response_model=SubmitApprovalResponse)
async def submit_approval(
    request_data: SubmitApprovalRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Record a client's decision on a post.

    The post row gets the new status (``needs_attention`` set only for that
    decision, which clears it on a later approve/reject) and any edited
    caption; the session's approval row is upserted.

    Raises:
        NotFound 404: Unknown session or post
        Gone 410: Expired session
        Forbidden 403: Post outside the session's client/project
    """
    session = await _load_live_session(db, request_data.share_token)

    post = await calendar_crud.get_scheduled_post(db, request_data.post_id)
    if post is None:
        raise NotFound("Post not found")
    if not post_in_session(post, session):
        logger.warning(f"[APPROVALS] Post {post.id} is not part of session {session.id}")
        raise Forbidden("Post does not belong to this approval session")

    decision = request_data.approval_status
    await calendar_crud.apply_client_decision(
        db, post, decision,
        client_comments=request_data.client_comments,
        edited_caption=request_data.edited_caption,
    )
    approval = await approval_crud.upsert_approval(
        db,
        session_id=session.id,
        post_id=post.id,
        approval_status=decision,
        client_comments=request_data.client_comments,
        approved_at=utcnow() if decision == "approved" else None,
    )
    await db.commit()

    logger.info(f"[APPROVALS] Post {post.id} marked {decision} via session {session.id}")
    return SubmitApprovalResponse(
        approval=PostApprovalOut.model_validate(approval),
        message=f"Post {decision.replace('_', ' ')}",
    )
