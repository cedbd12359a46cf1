"""
Client, project and tag models.
"""
import secrets

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text, UniqueConstraint

from ..base import Base, JSONType, TimestampMixin, UUIDMixin, UUIDType


def generate_portal_token() -> str:
    return secrets.token_urlsafe(32)


class Client(Base, UUIDMixin, TimestampMixin):
    """
    A brand managed by an agency user.

    ``user_id`` is the Supabase auth user that owns the client; every project,
    post, upload and tag is scoped through it.
    """
    __tablename__ = "clients"

    user_id = Column(UUIDType(), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    company = Column(String(255))
    website = Column(Text)
    description = Column(Text)
    brand_tone = Column(Text)
    industry = Column(String(255))
    region = Column(String(100))
    timezone = Column(String(64))
    logo_url = Column(Text)

    late_profile_id = Column(String(255))

    portal_token = Column(String(128), unique=True, index=True, default=generate_portal_token)
    portal_enabled = Column(Boolean, nullable=False, default=True)
    portal_settings = Column(JSONType, default=dict)


class Project(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "projects"

    client_id = Column(UUIDType(), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUIDType(), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(20), nullable=False, default="active")
    post_count = Column(Integer, nullable=False, default=0)


class Tag(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("client_id", "name", name="uq_tags_client_id_name"),)

    client_id = Column(UUIDType(), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    color = Column(String(7), nullable=False, default="#3B82F6")


class PostTag(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "post_tags"
    __table_args__ = (UniqueConstraint("post_id", "tag_id", name="uq_post_tags_post_id_tag_id"),)

    post_id = Column(UUIDType(), ForeignKey("calendar_scheduled_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    tag_id = Column(UUIDType(), ForeignKey("tags.id", ondelete="CASCADE"), nullable=False, index=True)
