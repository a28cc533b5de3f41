"""Runtime dependency diagnostics for the doctor command."""

import importlib.metadata as md


def _package_version(dist_name: str) -> str | None:
    try:
        return md.version(dist_name)
    except md.PackageNotFoundError:
        return None


def get_rasterio_info() -> dict[str, object]:
    """Return rasterio and GDAL installation diagnostics."""
    version = _package_version("rasterio")
    if version is None:
        return {
            "installed": False,
            "version": None,
            "gdal_version": None,
        }
    import rasterio

    return {
        "installed": True,
        "version": version,
        "gdal_version": rasterio.__gdal_version__,
    }


def get_package_info(dist_name: str) -> dict[str, object]:
    """Return installation diagnostics for one distribution."""
    version = _package_version(dist_name)
    return {
        "installed": version is not None,
        "version": version,
    }
