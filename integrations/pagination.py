from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_PAGES = 10_000

# fetch_page(limit, since_id) -> list of items for that page
PageFetcher = Callable[[int, Optional[str]], List[Dict[str, Any]]]


@dataclass
class FetchResult:
    items: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    pages: int = 0

    @property
    def total(self) -> int:
        return len(self.items)


class PaginatedResourceFetcher:
    """Exhaustive listing over a ``since_id`` cursor endpoint.

    The cursor is the id of the last item of the previous page. Listing stops on a
    short or empty page. A failing page ends the walk but keeps what was already
    fetched, with the failure recorded in ``FetchResult.errors``.
    """

    def __init__(self, fetch_page: PageFetcher, id_key: str = 'id', max_pages: int = MAX_PAGES):
        self.fetch_page = fetch_page
        self.id_key = id_key
        self.max_pages = max_pages

    def fetch_all(self, page_size: int = 50) -> FetchResult:
        if page_size <= 0:
            raise ValueError('page_size must be positive')
        result = FetchResult()
        since_id: Optional[str] = None
        while True:
            if result.pages >= self.max_pages:
                msg = f'Stopped after reaching page ceiling ({self.max_pages} pages)'
                logger.error(msg)
                result.errors.append(msg)
                break
            try:
                page = self.fetch_page(page_size, since_id)
            except Exception as e:
                logger.error('Page %d failed (since_id=%s): %s', result.pages + 1, since_id, e)
                result.errors.append(str(e))
                break
            result.pages += 1
            if not page:
                break
            result.items.extend(page)
            since_id = str(page[-1].get(self.id_key))
            if len(page) < page_size:
                break
        logger.info('Fetched %d items in %d pages (%d errors)', result.total, result.pages, len(result.errors))
        return result
