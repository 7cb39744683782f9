"""Shared API dependencies, a single import point for all routers::

    from hospede.api.deps import get_db, get_services
"""

from fastapi import Request

from hospede.database import get_db
from hospede.services.container import EngineServices


def get_services(request: Request) -> EngineServices:
    """The process-wide services created by the application lifespan."""
    return request.app.state.services


__all__ = [
    "get_db",
    "get_services",
]
