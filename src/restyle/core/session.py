"""Time-ordered session identifiers.

A session id names the root directory of one submission's outputs and is
returned to the client as the gallery handle.  Ids are the local time
formatted as ``YYYY-MM-DD-HH-MM-SS-mmm``; every field is zero padded and
ordered from most to least significant, so sorting ids as plain strings
sorts them chronologically.

Two ids issued by the same :class:`SessionIdentity` within one millisecond
would collide, so the second and later ones get a ``-NNN`` counter suffix.
A suffixed id sorts after the bare id of its millisecond and before any id
of the following millisecond.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime

from restyle.core.models import SessionId


def format_session_id(moment: datetime) -> SessionId:
    """Format ``moment`` as ``YYYY-MM-DD-HH-MM-SS-mmm``."""
    return f"{moment:%Y-%m-%d-%H-%M-%S}-{moment.microsecond // 1000:03d}"


class SessionIdentity:
    """Issues session ids from an injectable clock.

    Args:
        clock: Zero-argument callable returning the current local time.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._last_base: str | None = None
        self._repeat = 0

    def new_id(self) -> SessionId:
        """Return a new session id for the current clock reading."""
        base = format_session_id(self._clock())
        with self._lock:
            if base == self._last_base:
                self._repeat += 1
                return f"{base}-{self._repeat:03d}"
            self._last_base = base
            self._repeat = 0
            return base
