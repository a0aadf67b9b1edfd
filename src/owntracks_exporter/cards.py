"""Friend cards: static images handed out to other devices.

Cards are read once from a directory at start-up.  The file name carries
the card identity::

    <tid>_<display name>.<ext>      e.g.  ab_Alice_Smith.png → tid "ab", name "Alice Smith"

``CardDistributor`` remembers when each card was last sent to each
requester and withholds it for ``resend_interval`` seconds, which keeps
repeat replies small.
"""

from __future__ import annotations

import base64
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path

from owntracks_exporter.models import Card

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".gif"})

# Minimum gap before the same card is sent to the same requester again.
RESEND_INTERVAL_SECONDS = 24 * 60 * 60


def load_cards(directory: str | Path | None) -> dict[str, Card]:
    """Read every ``<tid>_<name>.<ext>`` image in *directory* into a card."""
    cards: dict[str, Card] = {}
    if not directory:
        return cards

    path = Path(directory)
    if not path.is_dir():
        logger.warning("Card directory %s does not exist, no cards loaded", path)
        return cards

    for entry in sorted(path.iterdir()):
        if not entry.is_file() or entry.suffix.lower() not in IMAGE_SUFFIXES:
            continue
        tid, sep, name = entry.stem.partition("_")
        if not sep or not tid or not name:
            logger.warning("Skipping card %s: expected <tid>_<name>%s", entry.name, entry.suffix)
            continue
        face = base64.b64encode(entry.read_bytes()).decode("ascii")
        cards[tid] = Card(tid=tid, name=name.replace("_", " "), face=face)
        logger.debug("Loaded card for %s from %s", tid, entry.name)

    logger.info("Loaded %d cards from %s", len(cards), path)
    return cards


class CardDistributor:
    """Decides which cards a requester should receive right now.

    Parameters
    ----------
    cards:
        Card set keyed by ``tid``; immutable after start-up.
    resend_interval:
        Seconds a card stays suppressed for a requester after being sent.
    clock:
        Returns the current time in seconds; injectable for tests.
    """

    def __init__(
        self,
        cards: dict[str, Card],
        resend_interval: float = RESEND_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cards = dict(cards)
        self._resend_interval = resend_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._last_sent: dict[tuple[str, str], float] = {}

    def due_for(self, requester: str) -> list[Card]:
        """Return the cards to send to *requester* and mark them as sent.

        The requester's own card is never included.
        """
        now = self._clock()
        due: list[Card] = []
        with self._lock:
            for tid in sorted(self._cards):
                if tid == requester:
                    continue
                key = (requester, tid)
                sent_at = self._last_sent.get(key)
                if sent_at is not None and now - sent_at < self._resend_interval:
                    continue
                self._last_sent[key] = now
                due.append(self._cards[tid])
        return due
