"""In-memory store for OAuth state values.

A state value ties an authorization redirect to its callback. Each value is
single use and expires after a fixed TTL. The store lives for the lifetime
of the server process and is not shared between processes.
"""

import secrets
import time
from typing import Callable, Optional


DEFAULT_STATE_TTL_SECONDS = 5 * 60


class StateStore:
    """Issues and consumes single-use, short-lived state values."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_STATE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # state -> issued at (clock seconds)
        self._pending: dict[str, float] = {}

    def generate(self) -> str:
        """Create and remember a new state value."""
        state = secrets.token_urlsafe(32)
        while state in self._pending:
            state = secrets.token_urlsafe(32)
        self._pending[state] = self._clock()
        return state

    def validate(self, state: Optional[str]) -> bool:
        """Consume a state value and report whether it was valid.

        Unknown values return False. Known values are removed whether or not
        they have expired, so a state can never be validated twice.
        """
        if not state:
            return False

        issued_at = self._pending.pop(state, None)
        if issued_at is None:
            return False

        return self._clock() - issued_at <= self.ttl_seconds

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, state: str) -> bool:
        return state in self._pending
