"""
Client portal models: uploads, activity log and per-user view watermarks.
"""
from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, String, Text, UniqueConstraint

from app.core.timeutils import utcnow
from ..base import Base, JSONType, TimestampMixin, UUIDMixin, UUIDType

# Activity types that count towards a client's unread badge
UNREAD_ACTIVITY_TYPES = ("portal_access", "content_upload", "approval_view")


class ClientUpload(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "client_uploads"

    client_id = Column(UUIDType(), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(UUIDType(), ForeignKey("projects.id", ondelete="SET NULL"), index=True)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(100), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    file_url = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="completed")
    notes = Column(Text)


class PortalActivity(Base, UUIDMixin):
    __tablename__ = "portal_activity"

    client_id = Column(UUIDType(), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_type = Column(String(50), nullable=False, index=True)
    activity_metadata = Column("metadata", JSONType, default=dict)
    ip_address = Column(String(64))
    user_agent = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)


class ClientActivityView(Base, UUIDMixin):
    """Watermark used only for unread-count computation."""
    __tablename__ = "client_activity_views"
    __table_args__ = (UniqueConstraint("user_id", "client_id", name="uq_client_activity_views_user_id_client_id"),)

    user_id = Column(UUIDType(), nullable=False, index=True)
    client_id = Column(UUIDType(), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    last_viewed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
