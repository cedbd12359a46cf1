"""
Import all models to ensure they are registered with SQLAlchemy.
"""
from ..base import Base
from .client import Client, Project, Tag, PostTag
from .calendar import UnscheduledPost, ScheduledPost, PostRevision
from .approval import ApprovalSession, PostApproval
from .portal import ClientUpload, PortalActivity, ClientActivityView
from .billing import Subscription, BillingHistory, AICreditUsage
