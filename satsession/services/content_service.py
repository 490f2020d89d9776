"""Service layer for loading test content."""
import logging

from pydantic import ValidationError

from satsession.errors import ContentLoadError
from satsession.models.content import Test
from satsession.utils import json_load, payload_path

log = logging.getLogger(__name__)


def load_test_payload(test_id: str) -> dict[str, object]:
    """Load raw test payload from file."""
    path = payload_path(test_id)
    if not path.exists():
        raise ContentLoadError(test_id, "test not found", missing=True)
    try:
        payload = json_load(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ContentLoadError(test_id, f"unreadable payload ({exc})") from exc
    if not isinstance(payload, dict):
        raise ContentLoadError(test_id, "payload is not an object")
    # Some exports wrap the test in {"test": {...}}
    if isinstance(payload.get("test"), dict):
        payload = payload["test"]
    return payload


class ContentService:
    """Reads tests from the content directory; results are never mutated."""

    def get_test(self, test_id: str) -> Test:
        payload = load_test_payload(test_id)
        try:
            test = Test.model_validate({**payload, "id": test_id})
        except ValidationError as exc:
            raise ContentLoadError(test_id, f"invalid content ({exc.error_count()} errors)") from exc
        if not test.sections:
            raise ContentLoadError(test_id, "test has no sections")
        for index, section in enumerate(test.sections):
            if not section.questions:
                raise ContentLoadError(test_id, f"section {index + 1} has no questions")
        log.debug(
            "Loaded test %s: %d sections, %d questions",
            test_id,
            len(test.sections),
            test.total_questions,
        )
        return test
