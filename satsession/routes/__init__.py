"""API route modules."""
from satsession.routes import results, sessions

__all__ = ["results", "sessions"]
