"""Conversion of engine errors to HTTP errors."""
from contextlib import contextmanager

from fastapi import HTTPException

from satsession.errors import ContentLoadError, InvalidActionError, SubmissionError


@contextmanager
def engine_errors():
    """Re-raise engine errors as HTTPException for the route layer."""
    try:
        yield
    except ContentLoadError as exc:
        status_code = 404 if exc.missing else 503
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    except InvalidActionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except SubmissionError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
