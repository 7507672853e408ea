"""
Tickets Interfaces Layer
========================

FastAPI route handlers for bulk ticket operations.
"""

from caseflow.tickets.interfaces.controllers import router as tickets_router

__all__ = ["tickets_router"]
