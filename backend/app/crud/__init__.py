"""
CRUD operations for the application.
"""
from app.crud import approval
from app.crud import calendar
from app.crud import client
from app.crud import credits
from app.crud import portal
from app.crud import subscription

__all__ = ["approval", "calendar", "client", "credits", "portal", "subscription"]
