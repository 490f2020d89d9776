"""Client identity and session registry dependencies for FastAPI."""
from typing import Annotated

from fastapi import Header, Request

from satsession.services.session_manager import SessionManager
from satsession.utils import validate_id

ANONYMOUS_CLIENT = "anonymous"


def get_client_id(
    x_client_id: Annotated[str | None, Header()] = None,
) -> str:
    """Client id from the ``X-Client-Id`` header.

    Authentication is handled upstream; requests without the header act
    as the anonymous client.
    """
    if x_client_id is None:
        return ANONYMOUS_CLIENT
    return validate_id("clientId", x_client_id)


def get_session_manager(request: Request) -> SessionManager:
    """Session registry created at application startup."""
    return request.app.state.session_manager
