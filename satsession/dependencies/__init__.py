"""FastAPI dependencies."""
from satsession.dependencies.client import get_client_id, get_session_manager

__all__ = ["get_client_id", "get_session_manager"]
