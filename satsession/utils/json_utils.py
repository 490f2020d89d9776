"""JSON serialization utilities."""
import json


def compact_dump(payload: object) -> str:
    """Serialize object to compact JSON string (for stored records)."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def json_load(data: str) -> object:
    """Deserialize JSON string to object."""
    return json.loads(data)
