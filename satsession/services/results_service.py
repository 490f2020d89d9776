"""Collaborators that receive finished sessions and issue rewards."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

import requests
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from satsession import config
from satsession.errors import SubmissionError
from satsession.services import attempt_service

log = logging.getLogger(__name__)


@dataclass
class SubmissionAck:
    """Acknowledgment of a completed submission."""

    accepted: bool
    coins_earned: int = 0
    attempt: dict[str, object] = field(default_factory=dict)


class ResultsService:
    """Interface of the results collaborator."""

    def start_attempt(self, test_id: str) -> str:
        """Create a remote result record and return its correlation id."""
        raise NotImplementedError

    def complete_attempt(self, correlation_id: str, payload: dict[str, object]) -> SubmissionAck:
        raise NotImplementedError

    def refresh_profile(self) -> dict[str, object]:
        """Fetch updated aggregate stats after a completion."""
        raise NotImplementedError


class LocalResultsService(ResultsService):
    """Results stored in this application's own database."""

    def __init__(self, session_factory: sessionmaker, client_id: str):
        self.session_factory = session_factory
        self.client_id = client_id

    def start_attempt(self, test_id: str) -> str:
        try:
            with self.session_factory() as db:
                return attempt_service.start_attempt(db, test_id, self.client_id).id
        except SQLAlchemyError as exc:
            raise SubmissionError(f"Could not start attempt: {exc}") from exc

    def complete_attempt(self, correlation_id: str, payload: dict[str, object]) -> SubmissionAck:
        results = payload.get("questionResults")
        if not isinstance(results, list):
            raise SubmissionError("Submission payload has no questionResults")
        try:
            with self.session_factory() as db:
                attempt = attempt_service.complete_attempt(
                    db, correlation_id, results, client_id=self.client_id
                )
                return SubmissionAck(
                    accepted=True,
                    coins_earned=attempt.coins_earned,
                    attempt=attempt.to_dict(),
                )
        except HTTPException as exc:
            raise SubmissionError(f"Submission rejected: {exc.detail}") from exc
        except SQLAlchemyError as exc:
            raise SubmissionError(f"Could not store submission: {exc}") from exc

    def refresh_profile(self) -> dict[str, object]:
        with self.session_factory() as db:
            return attempt_service.profile_stats(db, self.client_id)


class HttpResultsService(ResultsService):
    """Results service reached over HTTP (``/api/results``)."""

    def __init__(
        self,
        base_url: str,
        client_id: str,
        token: str | None = None,
        timeout: int = config.RESULTS_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = requests.Session()
        self.http.headers.update({"X-Client-Id": client_id})
        if token:
            self.http.headers.update({"Authorization": f"Bearer {token}"})

    def _request(self, method: str, path: str, **kwargs) -> dict[str, object]:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            raise SubmissionError(f"{method} {url} failed: {exc}") from exc
        except ValueError as exc:
            raise SubmissionError(f"{method} {url} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise SubmissionError(f"{method} {url} returned unexpected payload")
        return data

    def start_attempt(self, test_id: str) -> str:
        data = self._request("POST", "/api/results", json={"testId": test_id})
        result = data.get("result")
        result_id = result.get("id") if isinstance(result, dict) else None
        if not result_id:
            raise SubmissionError("Results service did not return a result id")
        return str(result_id)

    def complete_attempt(self, correlation_id: str, payload: dict[str, object]) -> SubmissionAck:
        data = self._request("PUT", f"/api/results/{correlation_id}", json=payload)
        result = data.get("result")
        return SubmissionAck(
            accepted=bool(data.get("success", True)),
            coins_earned=int(data.get("coinsEarned") or 0),
            attempt=result if isinstance(result, dict) else {},
        )

    def refresh_profile(self) -> dict[str, object]:
        return self._request("GET", "/api/results/profile")


def build_results_service(session_factory: sessionmaker, client_id: str) -> ResultsService:
    """Remote service when ``RESULTS_SERVICE_URL`` is configured, local otherwise."""
    if config.RESULTS_SERVICE_URL:
        log.info("Using remote results service at %s", config.RESULTS_SERVICE_URL)
        return HttpResultsService(
            config.RESULTS_SERVICE_URL, client_id, token=config.RESULTS_SERVICE_TOKEN
        )
    return LocalResultsService(session_factory, client_id)
