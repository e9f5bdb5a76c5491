"""File persistence for token and FHIR responses.

Only the most recent token is kept. Resource responses accumulate in a
directory, one file per response, ordered by capture time.
"""
import json
import os
import re
from pathlib import Path

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


def save_token(path: Path, body: bytes) -> Path:
    """Write the raw token response, replacing any previous token."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "wb") as f:
        f.write(body)

    # Set restrictive permissions (owner read/write only)
    os.chmod(path, 0o600)
    return path


def resource_filename(resource: str, timestamp_ms: int) -> str:
    safe_name = _UNSAFE_CHARS.sub("_", resource).strip("_") or "resource"
    return f"{timestamp_ms}-{safe_name}.json"


def save_resource_response(directory: Path, resource: str, payload, timestamp_ms: int) -> Path:
    """Write one resource response as pretty-printed JSON.

    Files are named <epoch-ms>-<resource>.json. A numeric suffix is added
    when a file with that name already exists.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / resource_filename(resource, timestamp_ms)
    counter = 1
    while path.exists():
        path = directory / resource_filename(f"{resource}-{counter}", timestamp_ms)
        counter += 1

    with open(path, "w") as f:
        json.dump(payload, f, indent=2)
    return path
