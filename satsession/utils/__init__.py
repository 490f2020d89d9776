"""Utility modules."""
from satsession.utils.json_utils import compact_dump, json_load
from satsession.utils.paths import payload_path, test_dir
from satsession.utils.time_utils import format_clock, utc_now
from satsession.utils.validation import validate_id
from satsession.utils.http_errors import engine_errors

__all__ = [
    "compact_dump",
    "json_load",
    "payload_path",
    "test_dir",
    "format_clock",
    "utc_now",
    "validate_id",
    "engine_errors",
]
