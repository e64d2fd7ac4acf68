"""
VibePlan — Shared API dependencies.
"""

from fastapi import Request

from vibeplan.services.session_service import SessionService


def get_session_service(request: Request) -> SessionService:
    """Return the ``SessionService`` the lifespan attached to the app."""
    return request.app.state.session_service
