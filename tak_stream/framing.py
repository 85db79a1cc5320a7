"""Framing of the CoT byte stream into discrete ``<event>`` messages."""

from __future__ import annotations

import re
from dataclasses import dataclass

# C0/C1 control characters, keeping tab and newline.
REGEX_CONTROL = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")

# <event ...> or <event> through the first </event>, never <events>
REGEX_EVENT = re.compile(r"(<event[ >][\s\S]*?</event>)([\s\S]*)")


@dataclass(frozen=True)
class PartialCoT:
    """One complete CoT message and the unconsumed stream that follows it."""

    event: str
    remainder: str


def find_cot(buffer: str) -> PartialCoT | None:
    """Extract the first complete CoT event from ``buffer``.

    Stray control characters are removed before scanning. Anything before
    the first event is discarded. Returns ``None`` while no complete event
    is available, in which case the caller keeps the buffer and appends
    the next chunk to it.

    Call repeatedly on ``remainder`` until ``None``: a single chunk can
    carry several events.
    """
    buffer = REGEX_CONTROL.sub("", buffer)

    match = REGEX_EVENT.search(buffer)
    if match is None:
        return None

    return PartialCoT(event=match.group(1), remainder=match.group(2))
