"""Pytest fixtures for hrdem tests."""

import logging, pathlib

import numpy as np
import pytest

from hrdem.errors import EmptyResultError
from hrdem.stac_catalog import CatalogClient


# Synthetic DEM in UTM zone 14N around the Manitoba sample point (-98.358, 49.351).
UTM14_CRS = "EPSG:26914"
UTM14_ORIGIN = (545000.0, 5468000.0)
LCC_CRS = "EPSG:3979"


def write_single_band_geotiff(fp: pathlib.Path, array: np.ndarray, transform, crs: str, nodata: float = -9999.0) -> pathlib.Path:
    """Write a one-band float32 GeoTIFF with deterministic defaults."""
    import rasterio

    fp.parent.mkdir(parents=True, exist_ok=True)
    profile = {
        "driver": "GTiff",
        "height": int(array.shape[0]),
        "width": int(array.shape[1]),
        "count": 1,
        "dtype": "float32",
        "crs": crs,
        "transform": transform,
        "nodata": float(nodata),
        "compress": "LZW",
    }
    with rasterio.open(fp, "w", **profile) as ds:
        ds.write(array.astype(np.float32), 1)
    return fp


class FakeCatalogClient(CatalogClient):
    """In-memory catalog returning fixed asset URLs and recording calls."""

    def __init__(self, asset_urls=None, error=None):
        self.asset_urls = list(asset_urls or [])
        self.error = error
        self.calls = []

    def search_asset_urls(self, bbox, *, collection="hrdem-lidar", cancel_event=None):
        self.calls.append({"bbox": bbox, "collection": collection})
        if self.error is not None:
            raise self.error
        return list(self.asset_urls)


class EmptyCatalogClient(FakeCatalogClient):
    """Catalog double whose search intersects no items."""

    def search_asset_urls(self, bbox, *, collection="hrdem-lidar", cancel_event=None):
        self.calls.append({"bbox": bbox, "collection": collection})
        raise EmptyResultError("STAC query returned 0 items")


#===============================================================================
# pytest custom config------------
#===============================================================================


def pytest_runtest_teardown(item, nextitem):
    """Custom teardown message."""
    test_name = item.name
    print(f"\n{'='*20} Test completed: {test_name} {'='*20}\n\n\n")


def pytest_report_header(config):
    """Show pytest invocation arguments in the test header."""
    return f"pytest arguments: {' '.join(config.invocation_params.args)}"


# -------------------
# ----- Fixtures -----
# -------------------
@pytest.fixture(scope="session")
def logger():
    """Simple logger fixture for the function under test."""
    log = logging.getLogger("pytest")
    log.setLevel(logging.DEBUG)
    # keep handlers minimal to avoid duplicate logs across runs
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter("%(levelname)s:%(name)s:%(message)s")
        handler.setFormatter(formatter)
        log.addHandler(handler)
    return log


@pytest.fixture(scope="function")
def fake_catalog():
    """Factory for in-memory catalog clients."""
    return FakeCatalogClient


@pytest.fixture(scope="function")
def empty_catalog():
    """Catalog client that finds no items."""
    return EmptyCatalogClient()


@pytest.fixture(scope="session")
def utm_aoi():
    """1 km square AOI well inside the synthetic UTM DEM."""
    from shapely.geometry import box

    x0, y0 = UTM14_ORIGIN
    return box(x0 + 1500.0, y0 - 2500.0, x0 + 2500.0, y0 - 1500.0)


@pytest.fixture(scope="session")
def synthetic_dem_dir(tmp_path_factory):
    """Write synthetic dtm/dsm GeoTIFFs in UTM 14N covering a 4 km square."""
    pytest.importorskip("rasterio")
    from rasterio.transform import from_origin

    root = tmp_path_factory.mktemp("hrdem_src")
    shape = (200, 200)
    resolution = 20.0
    x0, y0 = UTM14_ORIGIN
    dem = np.tile(np.linspace(250.0, 300.0, shape[1], dtype=np.float32), (shape[0], 1))
    transform = from_origin(x0, y0, resolution, resolution)

    write_single_band_geotiff(root / "tile_a_dtm.tif", dem, transform, UTM14_CRS)
    write_single_band_geotiff(root / "tile_b_dtm.tif", dem + 10.0, transform, UTM14_CRS)
    write_single_band_geotiff(root / "tile_a_dsm.tif", dem + 25.0, transform, UTM14_CRS)
    return root
