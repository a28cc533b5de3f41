"""fetch_elevation pipeline entrypoint."""

import logging
import threading
from pathlib import Path
from typing import Any

from hrdem.assets import RemoteReadAdapter, build_asset_pairs, validate_product_format
from hrdem.base import AssetFailure, FetchResult
from hrdem.config import FetchConfig
from hrdem.errors import InvalidGeometryError
from hrdem.geometry import normalize_aoi
from hrdem.stac_catalog import CatalogClient, StacCatalogClient
from hrdem.warp import materialize_assets, resolve_output_dir


def fetch_elevation(
    aoi: Any,
    output_dir: str | Path = ".",
    *,
    product: str,
    file_format: str,
    aoi_crs: Any = None,
    config: FetchConfig | None = None,
    catalog_client: CatalogClient | None = None,
    url_adapter: RemoteReadAdapter | None = None,
    cancel_event: threading.Event | None = None,
    dry_run: bool = False,
    logger=None,
) -> FetchResult:
    """Fetch HRDEM tiles intersecting an AOI, clipped and reprojected to it.

    Parameters
    ----------
    aoi : Any
        AOI geometry (shapely, GeoJSON mapping, WKT, or ``__geo_interface__``).
    output_dir : str or Path, default "."
        Directory for output rasters; created when missing.
    product : {"dsm", "dtm"}
        Digital surface or digital terrain model.
    file_format : {"tif", "vrt"}
        GeoTIFF or virtual raster assets.
    aoi_crs : optional
        CRS of ``aoi`` when it does not carry one.
    config : FetchConfig, optional
        Catalog endpoint, worker pool, retry and timeout settings.
    catalog_client : CatalogClient, optional
        Defaults to a StacCatalogClient built from ``config``.
    url_adapter : RemoteReadAdapter, optional
        Defaults to a signed /vsicurl adapter.
    cancel_event : threading.Event, optional
        Set from another thread to stop paging and pending warps.
    dry_run : bool, default False
        Stop after asset selection without writing rasters.

    Returns
    -------
    FetchResult
        Selected assets, written paths, and per-asset failures.
    """
    log = logger or logging.getLogger(__name__)
    cfg = config or FetchConfig()

    # Validate everything local before any network access.
    product_key, format_key = validate_product_format(product, file_format)
    search_bbox, clip_bbox = normalize_aoi(aoi, crs=aoi_crs)
    if not clip_bbox.has_area:
        raise InvalidGeometryError(
            f"AOI has no area in the clip CRS {clip_bbox.as_tuple()}; buffer point or line AOIs first"
        )
    out_dir = Path(output_dir).expanduser().resolve() if dry_run else resolve_output_dir(output_dir)

    log.info(
        "starting HRDEM fetch\n"
        f"  product={product_key}\n"
        f"  file_format={format_key}\n"
        f"  collection={cfg.collection}\n"
        f"  output_dir=\n    {out_dir}"
    )
    client = catalog_client or StacCatalogClient(
        cfg.stac_url,
        page_size=cfg.page_size,
        timeout=cfg.timeout,
        retry_attempts=cfg.retry_attempts,
        logger=log,
    )
    asset_urls = client.search_asset_urls(search_bbox, collection=cfg.collection, cancel_event=cancel_event)
    pairs, collisions = build_asset_pairs(asset_urls, product_key, format_key, url_adapter, logger=log)
    collision_failures = [
        AssetFailure(
            source_url=collision.pair.source_url,
            filename=collision.pair.filename,
            error=f"duplicate output name; already claimed by {collision.kept_url}",
        )
        for collision in collisions
    ]

    result = FetchResult(
        product=product_key,
        file_format=format_key,
        output_dir=out_dir,
        search_bbox=search_bbox,
        clip_bbox=clip_bbox,
        asset_urls=asset_urls,
        pairs=pairs,
        failures=collision_failures,
    )
    if dry_run:
        log.info(f"dry run: {len(pairs)} asset(s) selected, nothing written")
        return result

    written, failures = materialize_assets(
        pairs,
        out_dir,
        clip_bbox,
        max_workers=cfg.max_workers,
        retry_attempts=cfg.retry_attempts,
        resampling=cfg.resampling,
        http_timeout=cfg.timeout,
        fail_fast=cfg.fail_fast,
        cancel_event=cancel_event,
        progress=cfg.progress,
        logger=log,
    )
    result.written = written
    result.failures = failures + collision_failures
    log.info(f"finished HRDEM fetch: {result.summary()}")
    return result
