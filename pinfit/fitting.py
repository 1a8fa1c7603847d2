"""Step-down ladder: re-encode with smaller size/quality until a byte ceiling is met."""

import logging
from dataclasses import dataclass

from .transcode import decode, render

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LadderStep:
    index: int
    payload: object
    fits: bool


def walk_ladder(source, ladder, max_bytes):
    """
    Yield one LadderStep per profile tried, most faithful first.
    Stops after the first payload within `max_bytes`, or after the last profile.
    Each yield hands control back to the caller between encodes.
    """
    ladder = tuple(ladder)
    if not ladder:
        raise ValueError("encoding ladder is empty")

    img = decode(source)
    last = len(ladder) - 1
    for i, profile in enumerate(ladder):
        payload = render(img, profile)
        fits = payload.size <= max_bytes
        log.info("ladder step %d/%d %s: %d bytes (cap %d)%s",
                 i + 1, len(ladder), profile.name, payload.size, max_bytes,
                 "" if fits else " - too big")
        yield LadderStep(i, payload, fits)
        if fits:
            return
        if i == last:
            log.warning("no profile fits %d bytes; keeping %s at %d bytes",
                        max_bytes, profile.name, payload.size)


def fit_to_ceiling(source, ladder, max_bytes):
    """First payload that fits the ceiling, else the most degraded one."""
    step = None
    for step in walk_ladder(source, ladder, max_bytes):
        pass
    return step.payload
