"""I/O defaults for raster reads and writes."""

from hrdem.io.rasterio_io import GEOTIF_OPTIONS, get_creation_options, get_gdal_env

__all__ = ["GEOTIF_OPTIONS", "get_creation_options", "get_gdal_env"]
