"""Error kinds raised by the locator core.

Every lookup-path error derives from LocatorError so the HTTP layer can map
the whole family to a single not-found response.
"""


class LocatorError(RuntimeError):
    pass


class CacheUnavailable(LocatorError):
    """Redis connection or transport failure."""


class PostalNotFound(LocatorError):
    """Postal code absent from the cache or missing lat/long."""


class InvalidCoordinate(LocatorError):
    pass


class EmptyCatalog(LocatorError):
    """No store records in the cache when building a snapshot."""


class RefinementUnavailable(LocatorError):
    """Distance matrix call failed, timed out or returned a non-OK status."""


class NoRoute(LocatorError):
    """Distance matrix answered but no candidate had a usable distance."""


class LookupTimeout(LocatorError):
    pass


class IngestionFieldWriteError(LocatorError):
    """A record could not be written during ingestion (logged, not raised)."""


class SourceFileError(LocatorError):
    """A source file could not be decoded or parsed as CSV."""
