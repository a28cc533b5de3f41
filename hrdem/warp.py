"""Raster materializer: warp each selected asset onto the clip bbox."""

import logging, math, os, sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)
from tqdm import tqdm

from hrdem.assets import AssetPair
from hrdem.base import AssetFailure
from hrdem.config import DEFAULT_MAX_WORKERS, DEFAULT_RETRY_ATTEMPTS
from hrdem.errors import FetchCancelledError, FilesystemError, RasterWriteError
from hrdem.geometry import BoundingBox
from hrdem.io.rasterio_io import get_creation_options, get_gdal_env


log = logging.getLogger(__name__)


def resolve_output_dir(output_dir: str | Path) -> Path:
    """Return the absolute, symlink-resolved output directory, creating it if needed."""
    out_dir = Path(output_dir).expanduser().resolve()
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise FilesystemError(f"cannot create output directory {out_dir}: {err}") from err
    if not out_dir.is_dir():
        raise FilesystemError(f"output path is not a directory: {out_dir}")
    if not os.access(out_dir, os.W_OK):
        raise FilesystemError(f"output directory is not writable: {out_dir}")
    log.debug(f"resolved output directory to\n    {out_dir}")
    return out_dir


# GDAL reports a dead href or missing file in the message of a RasterioIOError.
PERMANENT_READ_MARKERS = ("404", "not found", "no such file", "does not exist", "not recognized as")


def is_transient_raster_error(err: BaseException) -> bool:
    """Return True for raster read failures worth retrying."""
    from rasterio.errors import RasterioIOError

    if isinstance(err, RasterioIOError):
        msg = str(err).lower()
        return not any(marker in msg for marker in PERMANENT_READ_MARKERS)
    return isinstance(err, (ConnectionError, TimeoutError))


def warp_asset(
    pair: AssetPair,
    output_dir: Path,
    clip_bbox: BoundingBox,
    *,
    resampling: str = "nearest",
    http_timeout: float | None = None,
    logger=None,
) -> Path:
    """Reproject and clip one asset onto clip_bbox and write it under output_dir.

    The output grid covers exactly the clip bbox in the clip CRS, at the
    source resolution carried into that CRS. Any existing file at the
    destination is replaced. Only the source window under the bbox is read.
    """
    import rasterio
    from rasterio.crs import CRS
    from rasterio.drivers import driver_from_extension
    from rasterio.enums import Resampling
    from rasterio.shutil import copy as copy_dataset
    from rasterio.transform import from_bounds
    from rasterio.vrt import WarpedVRT
    from rasterio.warp import calculate_default_transform

    log = logger or logging.getLogger(__name__)
    assert clip_bbox.has_area, f"clip bbox has no area: {clip_bbox.as_tuple()}"
    assert resampling in Resampling.__members__, f"unsupported resampling '{resampling}'"
    dst_fp = pair.destination(output_dir)
    driver = driver_from_extension(dst_fp)
    dst_crs = CRS.from_wkt(clip_bbox.crs_wkt)
    left, bottom, right, top = clip_bbox.as_tuple()

    with rasterio.Env(**get_gdal_env(http_timeout)):
        with rasterio.open(pair.read_path) as src_ds:
            if src_ds.crs is None:
                raise RasterWriteError(f"source raster has no CRS: {pair.source_url}")

            # Carry the source pixel size into the clip CRS.
            default_transform, _, _ = calculate_default_transform(
                src_ds.crs,
                dst_crs,
                src_ds.width,
                src_ds.height,
                *src_ds.bounds,
            )
            res_x = abs(float(default_transform.a))
            res_y = abs(float(default_transform.e))
            assert res_x > 0 and res_y > 0, f"invalid target resolution {(res_x, res_y)}"
            out_width = max(1, int(math.ceil((right - left) / res_x)))
            out_height = max(1, int(math.ceil((top - bottom) / res_y)))
            out_transform = from_bounds(left, bottom, right, top, out_width, out_height)

            with WarpedVRT(
                src_ds,
                crs=dst_crs,
                transform=out_transform,
                width=out_width,
                height=out_height,
                resampling=Resampling[resampling],
            ) as vrt_ds:
                if dst_fp.exists():
                    dst_fp.unlink()
                try:
                    copy_dataset(vrt_ds, str(dst_fp), driver=driver, **get_creation_options(driver))
                except Exception:
                    # Do not leave a truncated raster behind.
                    if dst_fp.exists():
                        dst_fp.unlink()
                    raise

    log.debug(f"wrote {out_width}x{out_height} {driver} raster to\n    {dst_fp}")
    return dst_fp


def _build_retrying(retry_attempts: int, cancel_event: threading.Event | None, log) -> Retrying:
    stop = stop_after_attempt(retry_attempts)
    if cancel_event is not None:
        stop = stop | stop_when_event_set(cancel_event)
    return Retrying(
        stop=stop,
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(is_transient_raster_error),
        before_sleep=lambda state: log.warning(
            f"raster read failed (attempt {state.attempt_number}/{retry_attempts}); retrying"
        ),
        reraise=True,
    )


def materialize_assets(
    pairs: list[AssetPair],
    output_dir: str | Path,
    clip_bbox: BoundingBox,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    resampling: str = "nearest",
    http_timeout: float | None = None,
    fail_fast: bool = False,
    cancel_event: threading.Event | None = None,
    progress: bool | None = None,
    warp_fn=None,
    logger=None,
) -> tuple[list[Path], list[AssetFailure]]:
    """Warp every pair independently and return (written paths, failures).

    A failing pair never stops its siblings unless ``fail_fast`` is set, in
    which case the first failure raises RasterWriteError and pending pairs
    are cancelled.
    """
    log = logger or logging.getLogger(__name__)
    warp_fn = warp_fn or warp_asset
    assert max_workers > 0, f"max_workers must be > 0; got {max_workers}"
    out_dir = resolve_output_dir(output_dir)
    if not pairs:
        return [], []

    def _run(pair: AssetPair) -> Path:
        if cancel_event is not None and cancel_event.is_set():
            raise FetchCancelledError(f"cancelled before warping {pair.filename}")
        retrying = _build_retrying(retry_attempts, cancel_event, log)
        return retrying(
            warp_fn,
            pair,
            out_dir,
            clip_bbox,
            resampling=resampling,
            http_timeout=http_timeout,
            logger=log,
        )

    log.info(f"warping {len(pairs)} asset(s) into\n    {out_dir}")
    written_by_name: dict[str, Path] = {}
    failures: list[AssetFailure] = []
    use_progress = sys.stderr.isatty() if progress is None else progress
    with ThreadPoolExecutor(max_workers=min(max_workers, len(pairs))) as pool:
        futures = {pool.submit(_run, pair): pair for pair in pairs}
        completed = as_completed(futures)
        if use_progress:
            completed = tqdm(completed, total=len(futures), desc="warping assets", unit="asset")
        for future in completed:
            pair = futures[future]
            if future.cancelled():
                continue
            try:
                written_by_name[pair.filename] = future.result()
            except FetchCancelledError:
                continue
            except Exception as err:
                log.error(f"failed to warp {pair.filename}: {err}")
                log.debug(f"warp failure for {pair.source_url}", exc_info=True)
                failures.append(AssetFailure(source_url=pair.source_url, filename=pair.filename, error=f"{err}"))
                if fail_fast:
                    for pending in futures:
                        pending.cancel()
                    raise RasterWriteError(f"aborting after first failure on {pair.filename}: {err}", failures) from err

    if cancel_event is not None and cancel_event.is_set():
        raise FetchCancelledError(f"fetch cancelled after {len(written_by_name)} of {len(pairs)} asset(s)")

    # Report in selection order rather than completion order.
    order = {pair.filename: idx for idx, pair in enumerate(pairs)}
    written = [written_by_name[pair.filename] for pair in pairs if pair.filename in written_by_name]
    failures.sort(key=lambda failure: order[failure.filename])
    log.info(f"warped {len(written)} asset(s), {len(failures)} failure(s)")
    return written, failures
