"""
Calendar post models.

A post starts in ``calendar_unscheduled_posts`` and moves to
``calendar_scheduled_posts`` once it has a date.
"""
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, Time, UniqueConstraint

from app.core.timeutils import utcnow
from ..base import Base, JSONType, TimestampMixin, UUIDMixin, UUIDType

APPROVAL_STATUSES = ("pending", "approved", "rejected", "needs_attention", "draft")


class UnscheduledPost(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "calendar_unscheduled_posts"

    client_id = Column(UUIDType(), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(UUIDType(), ForeignKey("projects.id", ondelete="SET NULL"), index=True)
    caption = Column(Text, nullable=False, default="")
    image_url = Column(Text)
    post_notes = Column(Text)
    approval_status = Column(String(20), nullable=False, default="pending")


class ScheduledPost(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "calendar_scheduled_posts"

    client_id = Column(UUIDType(), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(UUIDType(), ForeignKey("projects.id", ondelete="SET NULL"), index=True)
    caption = Column(Text, nullable=False, default="")
    original_caption = Column(Text)
    image_url = Column(Text)
    post_notes = Column(Text)

    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(Time)
    is_confirmed = Column(Boolean, nullable=False, default=False)

    approval_status = Column(String(20), nullable=False, default="pending", index=True)
    needs_attention = Column(Boolean, nullable=False, default=False)
    client_feedback = Column(Text)

    last_edited_at = Column(DateTime(timezone=True))
    last_edited_by = Column(UUIDType())
    edit_count = Column(Integer, nullable=False, default=0)
    needs_reapproval = Column(Boolean, nullable=False, default=False)

    late_post_id = Column(String(255), index=True)
    late_status = Column(String(50))
    platforms_scheduled = Column(JSONType, default=list)


class PostRevision(Base, UUIDMixin):
    """Append-only caption history, numbered per post from 1."""
    __tablename__ = "post_revisions"
    __table_args__ = (UniqueConstraint("post_id", "revision_number", name="uq_post_revisions_post_id_revision_number"),)

    post_id = Column(UUIDType(), ForeignKey("calendar_scheduled_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    edited_by = Column(UUIDType(), nullable=False)
    previous_caption = Column(Text, nullable=False)
    new_caption = Column(Text, nullable=False)
    edit_reason = Column(Text)
    revision_number = Column(Integer, nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
