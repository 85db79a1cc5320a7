"""Connection ID generation and cooperative scheduling helpers."""

from __future__ import annotations

import asyncio
import random
import secrets
from collections.abc import Callable
from uuid import uuid4

IdFactory = Callable[[], str]


def create_id() -> str:
    """Return a cryptographically random connection ID."""
    return str(uuid4())


def pseudo_random_id(rng: random.Random | None = None) -> str:
    """Return a short pseudo-random connection ID.

    Intended for runtimes without a usable entropy source, or for tests that
    need reproducible IDs from a seeded ``rng``.
    """
    rng = rng or random.Random(secrets.randbits(32))
    return f"tak-{rng.getrandbits(48):012x}"


def schedule_task(
    callback: Callable[[], None],
    *,
    loop: asyncio.AbstractEventLoop | None = None,
) -> asyncio.Handle:
    """Run ``callback`` on a later turn of the event loop.

    A running loop gets ``call_soon`` so the callback runs right after the
    I/O callbacks already queued. A loop that is not running yet gets a
    zero-delay timer instead.
    """
    loop = loop or asyncio.get_running_loop()
    if loop.is_running():
        return loop.call_soon(callback)
    return loop.call_later(0, callback)
