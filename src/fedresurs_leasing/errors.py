"""Registry error types."""


class RegistryError(RuntimeError):
    """Base class for failures talking to the registry backend."""


class ListingFetchError(RegistryError):
    """Listing endpoint answered with a non-200 status or an empty body."""

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status


class RegistryDecodeError(RegistryError):
    """Response body was not JSON, or did not match the expected shape."""
