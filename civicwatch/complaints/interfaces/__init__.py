"""
Complaints Interfaces Layer
===========================

FastAPI route handlers for the complaints module.
"""

from civicwatch.complaints.interfaces.controllers import complaints_router

__all__ = ["complaints_router"]
