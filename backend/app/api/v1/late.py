"""
Publishing through Late: connecting and listing accounts, scheduling and cancelling posts.
"""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import require_client, require_scheduled_post
from app.auth.dependencies import CurrentUser, get_current_user
from app.core.config import settings
from app.core.errors import Forbidden, NotFound, UpstreamError, ValidationFailed
from app.core.timeutils import combine_local, parse_datetime
from app.crud import calendar as calendar_crud
from app.crud import subscription as subscription_crud
from app.db.session import get_db
from app.schemas.calendar import ScheduledPostResponse, scheduled_post_out
from app.schemas.late import (
    ConnectPlatformRequest,
    ConnectPlatformResponse,
    LateAccountsResponse,
    SchedulePostRequest,
    SchedulePostResponse,
)
from app.services import late as late_service
from app.services.late import build_late_payload, extract_post_id

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/late",
    tags=["late"],
)


@router.get("/accounts/{client_id}", response_model=LateAccountsResponse)
async def list_late_accounts(
    client_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Social accounts connected to the client's Late profile; empty when none is linked.
    """
    client = await require_client(db, client_id, current_user)
    if not client.late_profile_id:
        return LateAccountsResponse(accounts=[])
    accounts = await late_service.get_late_client().list_accounts(client.late_profile_id)
    return LateAccountsResponse(accounts=accounts)


@router.post("/schedule-post", response_model=SchedulePostResponse)
async def schedule_post(
    request_data: SchedulePostRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Send a calendar post to Late for publishing.

    The post counts against the monthly posting quota; the quota is only
    spent if Late accepts the post.

    Raises:
        Forbidden 403: If the subscription is not active or the monthly posting quota is used up
        UpstreamError: If Late rejects the post or returns no id
    """
    post, client = await require_scheduled_post(db, request_data.postId, current_user)

    if request_data.scheduledDateTime:
        try:
            when = parse_datetime(request_data.scheduledDateTime)
        except ValueError as e:
            raise ValidationFailed(str(e)) from e
        scheduled_for = when.replace(tzinfo=None, microsecond=0).isoformat()
    else:
        scheduled_for = combine_local(post.scheduled_date, post.scheduled_time)

    timezone = request_data.timezone or client.timezone or settings.LATE_DEFAULT_TIMEZONE
    accounts = [
        {"platform": account.platform, "accountId": account.account_id}
        for account in request_data.selectedAccounts
    ]
    payload = build_late_payload(
        post.caption or "",
        accounts,
        scheduled_for,
        timezone,
        media_url=request_data.mediaUrl or post.image_url,
    )

    subscription_crud.ensure_active(await subscription_crud.get_subscription(db, current_user.id))
    if not await subscription_crud.consume_post_quota(db, current_user.id):
        raise Forbidden("Monthly post limit reached. Upgrade your plan to schedule more posts.")

    data = await late_service.get_late_client().create_post(payload)
    late_post_id = extract_post_id(data)
    if not late_post_id:
        logger.error(f"[LATE] No post id in Late response for post {post.id}")
        raise UpstreamError("Late did not return a post id")

    post = await calendar_crud.update_scheduled_post(db, post, {
        "late_post_id": late_post_id,
        "late_status": "scheduled",
        "platforms_scheduled": [a["platform"] for a in accounts],
    })
    await db.commit()

    logger.info(f"[LATE] Post {post.id} scheduled as {late_post_id} for {scheduled_for} {timezone}")
    return SchedulePostResponse(latePostId=late_post_id, post=scheduled_post_out(post), late=data)


@router.delete("/posts/{post_id}", response_model=ScheduledPostResponse)
async def cancel_late_post(
    post_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post, _ = await require_scheduled_post(db, post_id, current_user)
    if not post.late_post_id:
        raise ValidationFailed("Post is not scheduled in Late")

    await late_service.get_late_client().delete_post(post.late_post_id)
    post = await calendar_crud.update_scheduled_post(db, post, {"late_status": "cancelled", "late_post_id": None})
    await db.commit()
    return ScheduledPostResponse(post=scheduled_post_out(post))


@router.post("/connect", response_model=ConnectPlatformResponse)
async def connect_platform(
    request_data: ConnectPlatformRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Start connecting a social account to the client's Late profile.

    Returns the Late OAuth URL the browser should be sent to.

    Raises:
        ValidationFailed 400: Unsupported platform
        NotFound 404: Unknown client or client without a Late profile
        UpstreamError: If Late does not return a connect URL
    """
    client = await require_client(db, request_data.clientId, current_user)
    if not client.late_profile_id:
        raise NotFound("Late profile not found for this client")

    redirect_url = request_data.redirectUrl or (
        f"{settings.APP_BASE_URL.rstrip('/')}/clients/{client.id}?connected={request_data.platform}"
    )
    connect_url = await late_service.get_late_client().connect_url(
        request_data.platform, client.late_profile_id, redirect_url
    )

    logger.info(f"[LATE] Connect {request_data.platform} started for client {client.id}")
    return ConnectPlatformResponse(
        connectUrl=connect_url,
        platform=request_data.platform,
        clientId=client.id,
        lateProfileId=client.late_profile_id,
    )
