"""Error taxonomy of the test-taking session engine."""


class SessionEngineError(Exception):
    """Base class for session engine failures."""


class ContentLoadError(SessionEngineError):
    """Test content is missing, unreadable or malformed."""

    def __init__(self, test_id: str, reason: str, missing: bool = False):
        super().__init__(f"Failed to load test {test_id}: {reason}")
        self.test_id = test_id
        self.reason = reason
        self.missing = missing


class PersistenceError(SessionEngineError):
    """A session record could not be serialized or written."""


class HighlightAnchorError(SessionEngineError):
    """A stored highlight can no longer be located in its question text."""

    def __init__(self, highlight_id: str, reason: str):
        super().__init__(f"Highlight {highlight_id} skipped: {reason}")
        self.highlight_id = highlight_id
        self.reason = reason


class SubmissionError(SessionEngineError):
    """The results service rejected or could not receive a submission."""


class InvalidActionError(SessionEngineError):
    """The requested action is not allowed in the current session state."""
