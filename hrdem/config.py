"""Runtime configuration for HRDEM fetches."""

import logging, os
from dataclasses import dataclass, fields, replace


STAC_URL = "https://datacube.services.geo.ca/stac/api"
COLLECTION = "hrdem-lidar"
SEARCH_CRS = "EPSG:4326"
CLIP_CRS = "EPSG:3979"

PRODUCTS = ("dsm", "dtm")
FILE_FORMATS = ("tif", "vrt")

DEFAULT_PAGE_SIZE = 200
DEFAULT_MAX_WORKERS = 4
DEFAULT_RETRY_ATTEMPTS = 3

# Environment overrides and the parser applied to each raw value.
_ENV_OVERRIDES = {
    "HRDEM_STAC_URL": ("stac_url", str),
    "HRDEM_COLLECTION": ("collection", str),
    "HRDEM_MAX_WORKERS": ("max_workers", int),
    "HRDEM_RETRY_ATTEMPTS": ("retry_attempts", int),
    "HRDEM_TIMEOUT": ("timeout", float),
}

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchConfig:
    """Tunable settings shared by the catalog client and the materializer."""

    stac_url: str = STAC_URL
    collection: str = COLLECTION
    page_size: int = DEFAULT_PAGE_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    timeout: float | None = None
    resampling: str = "nearest"
    fail_fast: bool = False
    progress: bool | None = None

    def __post_init__(self):
        assert self.stac_url, "stac_url cannot be empty"
        assert self.collection, "collection cannot be empty"
        assert self.page_size > 0, f"page_size must be > 0; got {self.page_size}"
        assert self.max_workers > 0, f"max_workers must be > 0; got {self.max_workers}"
        assert self.retry_attempts > 0, f"retry_attempts must be > 0; got {self.retry_attempts}"
        assert self.timeout is None or self.timeout > 0, f"timeout must be > 0; got {self.timeout}"

    @classmethod
    def from_env(cls, environ=None, **overrides) -> "FetchConfig":
        """Build a config from HRDEM_* environment variables, then explicit overrides."""
        env = os.environ if environ is None else environ
        values = {}
        for env_var, (field_name, parse) in _ENV_OVERRIDES.items():
            raw = env.get(env_var)
            if raw is None or not str(raw).strip():
                continue
            try:
                values[field_name] = parse(str(raw).strip())
            except ValueError as err:
                raise ValueError(f"invalid value for ${env_var}: {raw!r}") from err
            log.debug(f"using {field_name} from ${env_var}")

        # Explicit overrides win; None means "not given".
        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            assert key in known, f"unknown FetchConfig field: {key}"
            if value is not None:
                values[key] = value
        return cls(**values)

    def with_overrides(self, **overrides) -> "FetchConfig":
        """Return a copy with non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
