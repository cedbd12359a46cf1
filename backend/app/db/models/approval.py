"""
Client approval models.
"""
import secrets

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint

from ..base import Base, TimestampMixin, UUIDMixin, UUIDType


def generate_share_token() -> str:
    return secrets.token_urlsafe(24)


class ApprovalSession(Base, UUIDMixin, TimestampMixin):
    """
    A shareable approval link.

    Sessions without a project cover only posts that have no project either.
    """
    __tablename__ = "client_approval_sessions"

    client_id = Column(UUIDType(), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(UUIDType(), ForeignKey("projects.id", ondelete="CASCADE"), index=True)
    share_token = Column(String(64), nullable=False, unique=True, index=True, default=generate_share_token)
    expires_at = Column(DateTime(timezone=True), nullable=False)


class PostApproval(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "post_approvals"
    __table_args__ = (UniqueConstraint("session_id", "post_id", name="uq_post_approvals_session_id_post_id"),)

    session_id = Column(UUIDType(), ForeignKey("client_approval_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = Column(UUIDType(), ForeignKey("calendar_scheduled_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    approval_status = Column(String(20), nullable=False, default="pending")
    client_comments = Column(Text)
    approved_at = Column(DateTime(timezone=True))
