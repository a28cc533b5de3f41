"""Asset selection by product/format and remote-read URL rewriting."""

import logging, re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote, urlsplit

from hrdem.config import FILE_FORMATS, PRODUCTS
from hrdem.errors import NoMatchingAssetError


log = logging.getLogger(__name__)


def validate_product_format(product: str, file_format: str) -> tuple[str, str]:
    """Normalize and check product/format against the supported values."""
    product_key = str(product).strip().lower()
    format_key = str(file_format).strip().lower().lstrip(".")
    if product_key not in PRODUCTS:
        raise ValueError(f"unsupported product='{product}'; expected one of {PRODUCTS}")
    if format_key not in FILE_FORMATS:
        raise ValueError(f"unsupported file_format='{file_format}'; expected one of {FILE_FORMATS}")
    return product_key, format_key


def build_asset_regex(product: str, file_format: str) -> re.Pattern:
    """Compile the `<product>.<format>$` filename pattern."""
    product_key, format_key = validate_product_format(product, file_format)
    return re.compile(rf"{re.escape(product_key)}\.{re.escape(format_key)}$")


def _url_path(url: str) -> str:
    """Return the path portion of a URL or plain path, without query or fragment."""
    return urlsplit(url).path


def asset_filename(url: str) -> str:
    """Return the final path segment of an asset URL."""
    path = _url_path(url)
    filename = path.rsplit("/", 1)[-1]
    assert filename, f"asset URL has no filename segment: {url}"
    return filename


def select_asset_urls(urls: list[str], product: str, file_format: str) -> list[str]:
    """Keep URLs whose path ends with `<product>.<format>`."""
    pattern = build_asset_regex(product, file_format)
    return [url for url in urls if pattern.search(_url_path(url))]


class RemoteReadAdapter:
    """Rewrite an asset URL into a path the raster library can read remotely."""

    name = "base"

    def to_read_path(self, url: str) -> str:
        raise NotImplementedError


class VsiCurlAdapter(RemoteReadAdapter):
    """GDAL /vsicurl wrapper with optional Planetary Computer style URL signing."""

    name = "vsicurl"

    def __init__(self, signing: bool = True):
        self.signing = signing

    def to_read_path(self, url: str) -> str:
        assert url, "url cannot be empty"
        options = ["pc_url_signing=yes"] if self.signing else []
        # GDAL expects each option value, url included, to be URL-encoded.
        options.append(f"url={quote(url, safe=':/')}")
        return "/vsicurl?" + "&".join(options)


class LocalPathAdapter(RemoteReadAdapter):
    """Pass URLs through unchanged (local files, or paths GDAL already understands)."""

    name = "local"

    def to_read_path(self, url: str) -> str:
        return url


@dataclass(frozen=True)
class AssetPair:
    """One selected asset: where to read it and what to call the output."""

    source_url: str
    read_path: str
    filename: str

    def destination(self, output_dir: Path) -> Path:
        return output_dir / self.filename


@dataclass(frozen=True)
class AssetCollision:
    """A selected asset dropped because its basename was already claimed."""

    pair: AssetPair
    kept_url: str


def build_asset_pairs(
    urls: list[str],
    product: str,
    file_format: str,
    adapter: RemoteReadAdapter | None = None,
    *,
    logger=None,
) -> tuple[list[AssetPair], list[AssetCollision]]:
    """Select matching URLs and build one (source, read path, filename) record each.

    Returns the kept pairs plus any basename collisions; the first URL to
    claim a filename wins.
    """
    log = logger or logging.getLogger(__name__)
    adapter = adapter or VsiCurlAdapter()
    selected = select_asset_urls(urls, product, file_format)
    if not selected:
        raise NoMatchingAssetError(
            f"none of {len(urls)} catalog asset(s) matched '{build_asset_regex(product, file_format).pattern}'"
        )

    pairs: list[AssetPair] = []
    collisions: list[AssetCollision] = []
    claimed: dict[str, str] = {}
    for url in selected:
        pair = AssetPair(source_url=url, read_path=adapter.to_read_path(url), filename=asset_filename(url))
        if pair.filename in claimed:
            log.warning(f"duplicate output name '{pair.filename}'\n    kept {claimed[pair.filename]}\n    skipped {url}")
            collisions.append(AssetCollision(pair=pair, kept_url=claimed[pair.filename]))
            continue
        claimed[pair.filename] = url
        pairs.append(pair)

    log.info(f"selected {len(pairs)} of {len(urls)} asset(s) via {adapter.name} adapter")
    return pairs, collisions
