"""hrdem package."""

from importlib.metadata import PackageNotFoundError, version

try:
    # Read installed package metadata so version stays tied to pyproject.toml.
    __version__ = version("hrdem")
except PackageNotFoundError:
    __version__ = "0+unknown"

from hrdem.pipeline import fetch_elevation  # noqa: E402

__all__ = ["fetch_elevation", "__version__"]
