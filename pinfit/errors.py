class PinfitError(Exception):
    """Base class for pipeline failures."""


class DecodeError(PinfitError):
    """Source bytes are not a decodable image."""


class EncodeError(PinfitError):
    """Target surface or encoder could not produce a payload."""


class FetchError(PinfitError):
    """A source image could not be downloaded."""


class PublishError(PinfitError):
    """Upload to the pinning endpoint failed."""

    def __init__(self, message, status=None, detail=None):
        super().__init__(message)
        self.status = status
        self.detail = detail

    def __str__(self):
        msg = super().__str__()
        if self.status is not None:
            msg = f"{msg} (HTTP {self.status})"
        return msg


class StaleResultError(PinfitError):
    """The input changed while an operation was in flight; its result was dropped."""


class GatewayExhaustedError(PinfitError):
    """Every configured gateway failed to load an identifier.

    Returned as the terminal state of a load attempt, not raised by the resolver.
    """

    def __init__(self, identifier, tried):
        super().__init__(f"all {tried} gateway(s) failed for {identifier}")
        self.identifier = identifier
        self.tried = tried
