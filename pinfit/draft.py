import logging
import time
from threading import Lock

from .errors import PinfitError, StaleResultError
from .fitting import walk_ladder
from .publisher import PinataPublisher

log = logging.getLogger(__name__)


class Draft:
    """Working state between picking an image and pinning it.

    Long operations run outside the lock. Their results are committed only if
    no new source was selected meanwhile; otherwise they are dropped with
    StaleResultError. Failures leave the previously committed state untouched.
    """

    def __init__(self, config, publisher=None, sleep=time.sleep):
        self.config = config
        self.publisher = publisher or PinataPublisher(config)
        self._sleep = sleep
        self._lock = Lock()
        self.generation = 0
        self.source = None
        self.payload = None
        self.identifier = None

    def select(self, source):
        with self._lock:
            self.generation += 1
            self.source = source
            self.payload = None
            self.identifier = None
            return self.generation

    def _current(self, generation):
        return generation == self.generation

    def encode(self, path="pixel"):
        ladder = self.config.ladder(path)
        with self._lock:
            generation, source = self.generation, self.source
        if source is None:
            raise PinfitError("no source image selected")

        step = None
        for step in walk_ladder(source, ladder, self.config.max_bytes):
            if not self._current(generation):
                break   # superseded; stop encoding early
        if self.config.settle_delay > 0:
            self._sleep(self.config.settle_delay)

        with self._lock:
            if not self._current(generation):
                log.info("discarding encode result for superseded source (gen %d)", generation)
                raise StaleResultError("source changed while encoding")
            self.payload = step.payload
            self.identifier = None
        return step.payload

    def publish(self, filename):
        """Pin the committed payload; returns `(cid, payload)` as committed."""
        with self._lock:
            generation, payload = self.generation, self.payload
        if payload is None:
            raise PinfitError("nothing encoded yet")

        # PublishError propagates; the payload stays for a manual retry
        cid = self.publisher.publish(payload, filename)

        with self._lock:
            if not self._current(generation) or self.payload is not payload:
                log.info("discarding identifier %s for superseded source", cid)
                raise StaleResultError("source changed while publishing")
            self.identifier = cid
        return cid, payload
