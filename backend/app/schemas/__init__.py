"""
Pydantic schemas for the application.
"""
from app.schemas import approval
from app.schemas import billing
from app.schemas import calendar
from app.schemas import client
from app.schemas import late

__all__ = ["approval", "billing", "calendar", "client", "late"]
