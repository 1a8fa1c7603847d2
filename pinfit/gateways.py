"""Gateway failover for content-addressed images.

A content identifier can be served by any IPFS gateway, but individual gateways
rate-limit, go down, or lag behind a fresh pin. A LoadAttempt walks the
configured gateway list in priority order, trying each one at most once, and
ends in `success` on the first load or `error` once the list is exhausted.
URLs that are not content addresses get a single try: there is nothing to
substitute when they fail.

Each display location owns its own LoadAttempt; attempts never share state,
even for the same identifier.
"""

import enum
import logging
from dataclasses import dataclass, replace

import requests

from .errors import GatewayExhaustedError

log = logging.getLogger(__name__)

IPFS_SCHEME = "ipfs://"
IPFS_PATH   = "ipfs/"


def extract_identifier(url):
    """Content path after `ipfs/` (or `ipfs://`), minus query and fragment."""
    if not url or url.startswith("data:"):
        return None
    if url.startswith(IPFS_SCHEME):
        rest = url[len(IPFS_SCHEME):]
        if rest.startswith(IPFS_PATH):
            rest = rest[len(IPFS_PATH):]
    elif IPFS_PATH in url:
        rest = url.split(IPFS_PATH, 1)[1]
    else:
        return None
    rest = rest.split("?", 1)[0].split("#", 1)[0].strip()
    return rest or None


class GatewayResolver:
    def __init__(self, gateways):
        self.gateways = tuple(gateways)
        if not self.gateways:
            raise ValueError("gateway list must not be empty")

    def __len__(self):
        return len(self.gateways)

    def url_at(self, index, identifier):
        return f"{self.gateways[index]}{identifier}"

    def resolve(self, identifier):
        """Optimistic first guess for initial render. No I/O."""
        return self.url_at(0, identifier)

    def candidate_urls(self, identifier):
        return [f"{base}{identifier}" for base in self.gateways]

    def fallback_urls(self, identifier):
        return self.candidate_urls(identifier)[1:]


class LoadStatus(str, enum.Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR   = "error"


@dataclass(frozen=True)
class LoadAttempt:
    identifier: object   # None for URLs that are not content addresses
    gateway_index: int
    status: LoadStatus
    url: str

    @classmethod
    def start(cls, identifier, resolver):
        return cls(identifier, 0, LoadStatus.LOADING, resolver.resolve(identifier))

    @classmethod
    def for_url(cls, url, resolver):
        """Begin from a stored URL; content addresses restart at the preferred gateway."""
        identifier = extract_identifier(url)
        if identifier is None:
            return cls(None, 0, LoadStatus.LOADING, url)
        return cls.start(identifier, resolver)

    @property
    def terminal(self):
        return self.status is not LoadStatus.LOADING

    @property
    def error(self):
        if self.status is LoadStatus.ERROR and self.identifier is not None:
            return GatewayExhaustedError(self.identifier, self.gateway_index)
        return None

    def loaded(self):
        if self.terminal:
            return self
        return replace(self, status=LoadStatus.SUCCESS)

    def failed(self, resolver):
        if self.terminal:
            return self
        if self.identifier is None:
            return replace(self, status=LoadStatus.ERROR)
        nxt = self.gateway_index + 1
        if nxt < len(resolver):
            return replace(self, gateway_index=nxt, url=resolver.url_at(nxt, self.identifier))
        return replace(self, gateway_index=nxt, status=LoadStatus.ERROR)

    def to_dict(self):
        return {
            "identifier": self.identifier,
            "gatewayIndex": self.gateway_index,
            "status": self.status.value,
            "url": self.url,
        }


def iter_load_attempt(attempt, resolver, load):
    """Feed load results into the state machine, yielding every new state."""
    while not attempt.terminal:
        if load(attempt.url):
            attempt = attempt.loaded()
        else:
            attempt = attempt.failed(resolver)
            if attempt.status is LoadStatus.LOADING:
                log.info("trying fallback gateway %d: %s", attempt.gateway_index, attempt.url)
            elif attempt.identifier is not None:
                log.warning("all IPFS gateways failed for %s", attempt.identifier)
        yield attempt


def drive_load_attempt(attempt, resolver, load, on_failure=None):
    """Run `attempt` to a terminal state; `on_failure` sees each failed try."""
    for attempt in iter_load_attempt(attempt, resolver, load):
        if on_failure is not None and attempt.status is not LoadStatus.SUCCESS:
            on_failure(attempt)
    return attempt


class HttpImageProbe:
    """`load` callable backed by an HTTP GET; any transport error is a failure."""

    def __init__(self, session=None, timeout=15.0):
        self.session = session or requests.Session()
        self.timeout = timeout

    def __call__(self, url):
        try:
            with self.session.get(url, timeout=self.timeout, stream=True) as r:
                ctype = r.headers.get("Content-Type", "")
                ok = r.ok and (ctype.startswith("image/") or ctype.startswith("application/octet-stream"))
        except requests.RequestException as e:
            log.info("load failed for %s: %s", url, e)
            return False
        if not ok:
            log.info("load failed for %s: HTTP %s %s", url, r.status_code, ctype)
        return ok
