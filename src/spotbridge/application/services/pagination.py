"""Follows Web API paging objects until the server says there is nothing left."""

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from spotbridge.core.cancellation import CancellationToken
from spotbridge.domain.entities import PagingObject
from spotbridge.infrastructure.integrations.webapi_schema import (
    PagingObjectModel,
    decode,
)

logger = logging.getLogger(__name__)

type PageFetcher = Callable[
    [str, dict[str, Any] | None, CancellationToken], Awaitable[dict[str, Any]]
]


def to_paging_object(payload: Any) -> PagingObject[Any]:
    """Decode a raw paging envelope.

    Raises:
        MalformedResponseError: Payload is not a paging object
    """
    model = decode(PagingObjectModel, payload, "paging object")
    return PagingObject(items=list(model.items), next=model.next, total=model.total)


class PaginationWalker:
    """Concatenates the items of every page of a paginated endpoint.

    Hey future me - there's deliberately NO page limit. A 10k-track playlist is 100
    requests, and the rate limiter + cancellation token are what keep that in check,
    not an arbitrary cap that silently truncates the playlist.
    """

    def __init__(self, fetch_page: PageFetcher) -> None:
        self._fetch_page = fetch_page

    async def walk[T](
        self,
        first_page: str | dict[str, Any],
        transform: Callable[[list[Any]], Iterable[T]],
        token: CancellationToken,
        params: dict[str, Any] | None = None,
    ) -> list[T]:
        """Fetch all pages and return the transformed items in server order.

        Args:
            first_page: Path of the first page, or an already fetched paging object
                (album tracks come embedded in the album response)
            transform: Turns the raw items of one page into results
            token: Checked before every page fetch
            params: Query parameters for the first request only (`next` links
                carry their own)

        Raises:
            Cancelled: If cancellation fires between or during page fetches
            MalformedResponseError: A page is not a paging object
        """
        results: list[T] = []
        source: str | dict[str, Any] = first_page
        pages = 0
        while True:
            if isinstance(source, str):
                token.raise_if_cancelled()
                payload = await self._fetch_page(source, params, token)
                params = None
            else:
                payload = source

            page = to_paging_object(payload)
            results.extend(transform(page.items))
            pages += 1

            if not page.next:
                break
            source = page.next

        logger.debug("Paging: %d items from %d pages", len(results), pages)
        return results
