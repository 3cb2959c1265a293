"""Exception hierarchy for the Steam Catalog addon."""


class CatalogError(Exception):
    """Base exception for all addon errors."""


class ConfigurationError(CatalogError):
    """Settings could not be loaded or are invalid."""


class StoreError(CatalogError):
    """Upstream store request failed."""

    def __init__(self, message: str, app_id: "int | None" = None):
        super().__init__(message)
        self.app_id = app_id


class AppNotFoundError(StoreError):
    """Upstream has no record for the requested app id."""


class TransientFetchError(StoreError):
    """Network or upstream failure; the caller may try again later."""


class PersistenceError(CatalogError):
    """Reading or writing a local state file failed."""


class InvalidRequestError(CatalogError):
    """Host request is missing fields or has the wrong shape."""
