"""Random image selection that avoids recent repeats."""
import random
import threading
from typing import Optional, Sequence

from logging_util import get_logger
from models import Image

logger = get_logger(__name__)


class RandomImageSelector:
    """Pick images uniformly at random while skipping recently shown ones.

    The recently-shown ids are kept in insertion order and capped at
    ``max_recent``; the oldest ids are evicted first. Pools no larger than
    ``max_recent`` are drawn from directly. When every pool member has been
    shown recently the history is cleared and the full pool is used.
    """

    def __init__(self, max_recent: int = 10, rng: Optional[random.Random] = None) -> None:
        self.max_recent = max_recent
        self._rng = rng or random.Random()
        # dict as an insertion-ordered set
        self._recent: dict[str, None] = {}
        self._lock = threading.Lock()

    @property
    def recently_shown(self) -> list[str]:
        with self._lock:
            return list(self._recent)

    def reset(self) -> None:
        with self._lock:
            self._recent.clear()

    def select(self, pool: Sequence[Image]) -> Image:
        if not pool:
            raise ValueError("cannot select from an empty pool")

        with self._lock:
            candidates = pool
            if len(pool) > self.max_recent:
                unseen = [img for img in pool if img.id not in self._recent]
                if unseen:
                    candidates = unseen
                else:
                    logger.info("All %d images shown recently, resetting recent list", len(pool))
                    self._recent.clear()

            index = int(self._rng.random() * len(candidates))
            chosen = candidates[index]

            self._recent[chosen.id] = None
            while len(self._recent) > self.max_recent:
                del self._recent[next(iter(self._recent))]

            logger.debug(
                "Selected %s, recently shown %d/%d", chosen.id, len(self._recent), len(pool)
            )
            return chosen
