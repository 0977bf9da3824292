"""Timestamp source for swipe and match writes."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Union

from firebase_admin import firestore

Clock = Callable[[], datetime]
"""Zero-argument callable returning the write time (tests pass a fixed one)."""


def write_timestamp(clock: Clock | None = None) -> Union[datetime, object]:
    """Return the value to store in a ``timestamp`` field.

    Without an injected clock Firestore assigns the time on commit.
    """

    if clock is None:
        return firestore.SERVER_TIMESTAMP
    return clock()
