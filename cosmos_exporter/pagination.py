import logging
import time
from typing import Callable, Iterable, Optional, Sequence, TypeVar, Union

from cosmos_exporter.logging import logger as app_logger
from cosmos_exporter.utils import APIError

ItemT = TypeVar('ItemT')

PageFetcher = Callable[[int, int], Sequence[ItemT]]


class Page(list):
    """One upstream page. ``size`` counts every record the node returned, including ones dropped while parsing."""

    def __init__(self, items: Iterable = (), size: Optional[int] = None) -> None:
        super().__init__(items)
        self.size = len(self) if size is None else size


class CollectedPages(list):
    """Items of every page read, plus the error that ended the walk early (if any)."""

    error: Optional[APIError] = None

    @property
    def complete(self) -> bool:
        return self.error is None


def collect_pages(fetch_page: PageFetcher, limit: int, name: str = 'items',
                  logger: Union[logging.Logger, logging.LoggerAdapter] = app_logger) -> CollectedPages:
    """Fetch every page of an offset/limit query and return the items in upstream order.

    Stops at the first empty page. An upstream failure ends the walk early and the
    items gathered so far are returned; the caller is never raised at.
    """
    items: CollectedPages = CollectedPages()
    offset = 0
    logger.debug('Started querying %s', name)
    query_start = time.time()
    while True:
        try:
            page = fetch_page(offset, limit)
        except APIError as error:
            logger.error('Could not get %s at offset %s: %s', name, offset, error)
            items.error = error
            return items
        size = page.size if isinstance(page, Page) else len(page)
        if not size:
            break
        items.extend(page)
        offset += size
    logger.debug('Finished querying %s, request-time: %.3f', name, time.time() - query_start)
    return items
