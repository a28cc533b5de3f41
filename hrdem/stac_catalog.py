"""HRDEM STAC catalog query client."""

import logging
import threading

from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from hrdem.config import COLLECTION, DEFAULT_PAGE_SIZE, DEFAULT_RETRY_ATTEMPTS, STAC_URL
from hrdem.errors import CatalogUnavailableError, EmptyResultError, FetchCancelledError
from hrdem.geometry import BoundingBox


log = logging.getLogger(__name__)


def is_transient_catalog_error(err: BaseException) -> bool:
    """Return True for catalog failures worth retrying (transport errors, HTTP 429/5xx)."""
    from pystac_client.exceptions import APIError

    if isinstance(err, APIError):
        status_code = getattr(err, "status_code", None)
        return status_code is None or status_code == 429 or status_code >= 500
    return isinstance(err, (ConnectionError, TimeoutError, OSError))


class CatalogClient:
    """Abstract catalog client returning asset URLs for a bbox search."""

    def search_asset_urls(
        self,
        bbox: BoundingBox,
        *,
        collection: str = COLLECTION,
        cancel_event: threading.Event | None = None,
    ) -> list[str]:
        """Return every asset href of every item intersecting bbox."""
        raise NotImplementedError


class StacCatalogClient(CatalogClient):
    """Query a STAC API through pystac_client, following every result page."""

    def __init__(
        self,
        stac_url: str = STAC_URL,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        timeout: float | None = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        logger=None,
    ):
        assert stac_url, "stac_url cannot be empty"
        assert page_size > 0, f"page_size must be > 0; got {page_size}"
        assert retry_attempts > 0, f"retry_attempts must be > 0; got {retry_attempts}"
        self.stac_url = stac_url
        self.page_size = page_size
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.log = logger or log

    def _retrying(self, cancel_event: threading.Event | None) -> Retrying:
        stop = stop_after_attempt(self.retry_attempts)
        if cancel_event is not None:
            stop = stop | stop_when_event_set(cancel_event)
        return Retrying(
            stop=stop,
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception(is_transient_catalog_error),
            before_sleep=lambda state: self.log.warning(
                f"catalog request failed (attempt {state.attempt_number}/{self.retry_attempts}); retrying"
            ),
            reraise=True,
        )

    def _query_items(self, bbox: BoundingBox, collection: str, cancel_event: threading.Event | None) -> list:
        """Run one full search, draining every page."""
        from pystac_client import Client

        client = Client.open(self.stac_url, timeout=self.timeout)
        search = client.search(
            collections=[collection],
            bbox=list(bbox.as_tuple()),
            limit=self.page_size,
        )
        items = []
        for page_idx, page in enumerate(search.pages(), start=1):
            if cancel_event is not None and cancel_event.is_set():
                raise FetchCancelledError("catalog search cancelled")
            items.extend(page.items)
            self.log.debug(f"catalog page {page_idx}: {len(page.items)} item(s)")
        return items

    def search_asset_urls(
        self,
        bbox: BoundingBox,
        *,
        collection: str = COLLECTION,
        cancel_event: threading.Event | None = None,
    ) -> list[str]:
        from pystac.errors import STACError, STACTypeError
        from pystac_client.errors import ClientTypeError
        from pystac_client.exceptions import APIError

        self.log.info(
            "querying STAC catalog\n"
            f"  stac_url={self.stac_url}\n"
            f"  collection={collection}\n"
            f"  bbox={bbox.as_tuple()}"
        )
        try:
            items = self._retrying(cancel_event)(self._query_items, bbox, collection, cancel_event)
        except (APIError, OSError) as err:
            raise CatalogUnavailableError(f"STAC catalog query failed at {self.stac_url}: {err}") from err
        except (STACError, STACTypeError, ClientTypeError, NotImplementedError) as err:
            # endpoint answered but is not a conforming STAC API
            raise CatalogUnavailableError(f"STAC endpoint not usable at {self.stac_url}: {err}") from err

        if cancel_event is not None and cancel_event.is_set():
            raise FetchCancelledError("catalog search cancelled")
        if not items:
            raise EmptyResultError(
                f"STAC query returned 0 items for bbox={bbox.as_tuple()} collection={collection} at {self.stac_url}"
            )

        # Keep catalog order; the same href can appear under more than one item.
        asset_urls: list[str] = []
        seen = set()
        for item in items:
            for asset in item.assets.values():
                href = asset.href
                if href is None or href in seen:
                    continue
                seen.add(href)
                asset_urls.append(str(href))
        self.log.info(f"found {len(items)} item(s) with {len(asset_urls)} asset(s)")
        return asset_urls
