"""FastAPI dependencies shared by the Watson routers."""

from __future__ import annotations

from starlette.requests import Request

from watson.services.watson import WatsonService


def get_service(request: Request) -> WatsonService:
    """Return the :class:`WatsonService` attached to the app at startup."""
    return request.app.state.service
