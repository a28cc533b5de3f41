"""Exception types raised by the HRDEM fetch pipeline."""


class HrdemError(Exception):
    """Base class for all hrdem errors."""


class InvalidGeometryError(HrdemError, ValueError):
    """AOI geometry is empty, malformed, invalid, or has no CRS."""


class ReprojectionError(HrdemError):
    """AOI could not be reprojected into a target CRS."""


class CatalogUnavailableError(HrdemError):
    """STAC catalog could not be reached or returned an API error."""


class EmptyResultError(HrdemError):
    """Catalog search intersected no items."""


class NoMatchingAssetError(EmptyResultError):
    """Catalog items were found but no asset matched the requested product/format."""


class RasterWriteError(HrdemError):
    """One or more assets could not be warped to disk."""

    def __init__(self, message: str, failures=None):
        super().__init__(message)
        self.failures = list(failures or [])


class FilesystemError(HrdemError, OSError):
    """Output directory cannot be created or written."""


class FetchCancelledError(HrdemError):
    """The caller cancelled the fetch through its cancel event."""
