"""Command line interface for HRDEM fetches."""

import argparse, logging
from pathlib import Path

from hrdem.config import FILE_FORMATS, PRODUCTS, FetchConfig
from hrdem.diagnostics import get_package_info, get_rasterio_info
from hrdem.geometry import read_aoi_file
from hrdem.pipeline import fetch_elevation


log = logging.getLogger(__name__)


def _resolve_log_level(args: argparse.Namespace) -> int:
    """Resolve effective logging level from explicit level or verbosity flags."""
    if args.log_level is not None:
        return getattr(logging, args.log_level)

    # Start from INFO, then apply -v and -q offsets with DEBUG/ERROR clamp.
    level = logging.INFO - (10 * int(args.verbose)) + (10 * int(args.quiet))
    return max(logging.DEBUG, min(logging.ERROR, level))


def _configure_logging(args: argparse.Namespace) -> None:
    """Configure stdlib logging using Python default handler routing."""
    effective_level = _resolve_log_level(args)
    root_logger = logging.getLogger()
    root_logger.setLevel(effective_level)
    if not root_logger.handlers:
        logging.basicConfig(level=effective_level)


def _build_fetch_config(args: argparse.Namespace) -> FetchConfig:
    """Merge HRDEM_* environment settings with explicit fetch flags."""
    return FetchConfig.from_env(
        stac_url=args.stac_url,
        collection=args.collection,
        max_workers=args.workers,
        retry_attempts=args.retries,
        timeout=args.timeout,
        resampling=args.resampling,
        fail_fast=True if args.fail_fast else None,
    )


def main_cli(args: argparse.Namespace) -> int:
    """Run the CLI command selected by parsed arguments."""
    # Route fetch command.
    if args.command == "fetch":
        aoi = read_aoi_file(args.aoi, crs=args.aoi_crs)
        result = fetch_elevation(
            aoi,
            args.out,
            product=args.product,
            file_format=args.format,
            config=_build_fetch_config(args),
            dry_run=args.dry_run,
            logger=log,
        )
        if args.dry_run:
            for pair in result.pairs:
                print(pair.source_url)
            return 0

        for output_fp in result.written:
            print(output_fp)
        for failure in result.failures:
            log.error(f"failed {failure.filename}: {failure.error}")
        if not result.ok:
            log.error(f"fetch incomplete: {result.summary()}")
            return 1
        return 0

    # Route doctor command.
    if args.command == "doctor":
        rasterio_info = get_rasterio_info()
        print(f"rasterio_installed={rasterio_info['installed']}")
        print(f"rasterio_version={rasterio_info['version']}")
        print(f"gdal_version={rasterio_info['gdal_version']}")
        for dist_name in ("pystac-client", "shapely", "tenacity"):
            info = get_package_info(dist_name)
            key = dist_name.replace("-", "_")
            print(f"{key}_installed={info['installed']}")
            print(f"{key}_version={info['version']}")
        return 0

    raise ValueError(f"unsupported command path: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Run the hrdem CLI and return an exit code."""
    args = _parse_arguments(argv)
    _configure_logging(args)
    try:
        return main_cli(args)
    except Exception as err:
        log.error(f"{err}")
        log.debug("unhandled CLI exception", exc_info=True)
        return 1


def _parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for hrdem."""
    parser = argparse.ArgumentParser(prog="hrdem", description="Fetch HRDEM elevation tiles for an area of interest.")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (repeatable).",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease logging verbosity (repeatable).",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default=None,
        help="Explicit log level override.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Register fetch command.
    fetch_parser = subparsers.add_parser("fetch", help="Fetch, clip and reproject HRDEM tiles.")
    fetch_parser.add_argument("--aoi", type=Path, required=True, help="AOI file (.geojson/.json or .wkt/.txt).")
    fetch_parser.add_argument(
        "--aoi-crs",
        default=None,
        help="AOI CRS (e.g. EPSG:26914). Required for WKT files; overrides GeoJSON CRS.",
    )
    fetch_parser.add_argument("--product", choices=PRODUCTS, required=True, help="Elevation model type.")
    fetch_parser.add_argument("--format", choices=FILE_FORMATS, required=True, help="Asset file type.")
    fetch_parser.add_argument(
        "--out",
        type=Path,
        default=Path("."),
        help="Output directory for warped rasters. Defaults to the working directory.",
    )
    fetch_parser.add_argument("--stac-url", default=None, help="Override the STAC API base URL.")
    fetch_parser.add_argument("--collection", default=None, help="Override the STAC collection id.")
    fetch_parser.add_argument("--workers", type=int, default=None, help="Concurrent warp workers.")
    fetch_parser.add_argument("--retries", type=int, default=None, help="Attempts per network operation.")
    fetch_parser.add_argument("--timeout", type=float, default=None, help="Per-request HTTP timeout in seconds.")
    fetch_parser.add_argument(
        "--resampling",
        choices=("nearest", "bilinear", "cubic", "average"),
        default=None,
        help="Warp resampling method (default nearest).",
    )
    fetch_parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort remaining assets on the first warp failure.",
    )
    fetch_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print selected asset URLs without writing rasters.",
    )

    # Register diagnostic command.
    subparsers.add_parser("doctor", help="Report runtime dependency diagnostics.")
    return parser.parse_args(argv)


if __name__ == "__main__":
    raise SystemExit(main())
