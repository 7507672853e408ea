"""
Specializations Interfaces Layer
================================

FastAPI route handlers; delegates to application services.
"""

from caseflow.specializations.interfaces.controllers import router as assignment_router

__all__ = ["assignment_router"]
