"""FastAPI dependencies shared by the routers."""

from fastapi import Request

from ..publishing.service import PublishingService


def get_service(request: Request) -> PublishingService:
    """Return the PublishingService attached to the application."""
    return request.app.state.service
