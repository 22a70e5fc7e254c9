"""Error types raised by the resolvers."""


class RezkaError(Exception):
    """Base class for every error raised by this package."""


class TransportError(RezkaError):
    """Network failure, timeout or non-2xx response from the provider."""


class UpstreamError(RezkaError):
    """The provider answered but declared the request failed."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RezkaError):
    """A translator, season, episode or quality is missing from known state."""
