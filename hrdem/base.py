"""Result records for one HRDEM fetch."""

from dataclasses import dataclass, field
from pathlib import Path

from hrdem.assets import AssetPair
from hrdem.errors import RasterWriteError
from hrdem.geometry import BoundingBox


@dataclass(frozen=True)
class AssetFailure:
    """One asset that could not be written."""

    source_url: str
    filename: str
    error: str


@dataclass
class FetchResult:
    """Structured output for one fetch_elevation call."""

    product: str
    file_format: str
    output_dir: Path
    search_bbox: BoundingBox
    clip_bbox: BoundingBox
    asset_urls: list[str] = field(default_factory=list)
    pairs: list[AssetPair] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)
    failures: list[AssetFailure] = field(default_factory=list)

    @property
    def n_succeeded(self) -> int:
        return len(self.written)

    @property
    def n_failed(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        return f"{self.n_succeeded} written, {self.n_failed} failed, {len(self.pairs)} selected"

    def raise_for_failures(self) -> None:
        """Raise RasterWriteError when any asset failed."""
        if self.failures:
            names = ", ".join(failure.filename for failure in self.failures)
            raise RasterWriteError(f"{self.summary()}; failed: {names}", failures=self.failures)
