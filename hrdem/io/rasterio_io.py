"""Rasterio/GDAL defaults for remote reads and warped raster writes."""

# Creation options applied per output driver.
GEOTIF_OPTIONS = {
    "compress": "LZW",
    "tiled": True,
    "BIGTIFF": "IF_SAFER",
}

_CREATION_OPTIONS = {
    "GTiff": GEOTIF_OPTIONS,
    "VRT": {},
}

# GDAL config for streaming /vsicurl reads without directory listings.
REMOTE_READ_ENV = {
    "GDAL_DISABLE_READDIR_ON_OPEN": "EMPTY_DIR",
    "GDAL_HTTP_MULTIRANGE": "YES",
    "GDAL_HTTP_MERGE_CONSECUTIVE_RANGES": "YES",
    "VSI_CACHE": "TRUE",
}


def get_creation_options(driver: str) -> dict:
    """Return a copy of the creation options for one output driver."""
    assert driver in _CREATION_OPTIONS, f"unsupported output driver '{driver}'"
    return dict(_CREATION_OPTIONS[driver])


def get_gdal_env(http_timeout: float | None = None) -> dict:
    """Return a copy of the remote-read GDAL config, with an optional HTTP timeout in seconds."""
    env = dict(REMOTE_READ_ENV)
    if http_timeout is not None:
        env["GDAL_HTTP_TIMEOUT"] = str(max(1, int(round(http_timeout))))
    return env
