import logging
from typing import Any, Callable, List, Optional

from .errors import RemoteFetchError
from .models import Page

logger = logging.getLogger(__name__)

# Spotify's maximum for the playlist and playlist-items endpoints.
DEFAULT_PAGE_SIZE = 50

PageRequest = Callable[[int, int], Page]


class PaginatedFetcher:
    """Follows an offset/limit endpoint until it stops signalling a next page.

    Page ``i`` is requested at ``offset = i * page_size``. Items keep the order
    the server returned them in.
    """

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        if int(page_size) < 1:
            raise ValueError("page_size must be >= 1")
        self.page_size = int(page_size)

    def fetch_all(
        self,
        page_request: PageRequest,
        *,
        stage: str = "page",
        on_page: Optional[Callable[[List[Any]], None]] = None,
    ) -> List[Any]:
        """Collect every item.

        ``on_page`` runs on each page's items before the next page is requested.
        A failure on any page raises RemoteFetchError with the items gathered so
        far in ``partial``.
        """
        out: List[Any] = []
        page_index = 0

        while True:
            try:
                page = page_request(page_index * self.page_size, self.page_size)
            except RemoteFetchError as e:
                raise e.with_context(stage=stage, partial=out) from e

            items = list(page.items)
            if on_page is not None:
                try:
                    on_page(items)
                except RemoteFetchError as e:
                    raise e.with_context(stage=e.stage, partial=out) from e

            out.extend(items)
            page_index += 1

            if not page.has_next:
                break
            if not items:
                logger.warning("%s: empty page %d still reports a next page; stopping", stage, page_index - 1)
                break

        return out
