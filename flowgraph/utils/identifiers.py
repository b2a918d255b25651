"""ID generation and timestamp utilities."""

import uuid
from datetime import datetime, timezone


def generate_flow_id() -> str:
    """Generate a unique flow ID (UUID4)."""
    return str(uuid.uuid4())


def next_free_slug(existing, prefix: str = "stage") -> str:
    """Lowest-numbered ``<prefix>_N`` (N >= 1) not in ``existing``."""
    index = 1
    while f"{prefix}_{index}" in existing:
        index += 1
    return f"{prefix}_{index}"


def utc_timestamp() -> str:
    """Generate an ISO8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()
