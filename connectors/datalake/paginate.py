# connectors/datalake/paginate.py
from __future__ import annotations
from typing import AsyncIterator, Awaitable, Callable, Generic, List, Optional, TypeVar
from common.models import Page
from connectors.datalake.blocking import run_blocking

ItemT = TypeVar("ItemT")

FirstPage = Callable[[], Awaitable[Page]]
NextPage = Callable[[str], Awaitable[Page]]


class Pager(Generic[ItemT]):
    """
    Lazy sequence of items spanning every page of a list call.

    - `async for item in pager` walks all pages in order; each new iteration
      starts again from the first-page request.
    - `pager.by_page(token)` resumes from a continuation token the caller kept.
    - `await pager.collect()` / `pager.to_list()` materialise everything
      (async / blocking).

    Pages are fetched one at a time. A fault on any page stops the walk and
    propagates; items already yielded stay delivered.
    """

    def __init__(self, first: FirstPage, follow: NextPage, max_pages: Optional[int] = None):
        self._first = first
        self._follow = follow
        self.max_pages = max_pages

    async def pages(self, continuation_token: Optional[str] = None) -> AsyncIterator[Page]:
        page = await self.fetch_page(continuation_token)
        seen = 1
        yield page
        while page.next_link:
            if self.max_pages and seen >= self.max_pages:
                return
            page = await self._follow(page.next_link)
            seen += 1
            yield page

    def by_page(self, continuation_token: Optional[str] = None) -> AsyncIterator[Page]:
        return self.pages(continuation_token)

    async def items(self, continuation_token: Optional[str] = None) -> AsyncIterator[ItemT]:
        async for page in self.pages(continuation_token):
            for item in page.items:
                yield item

    def __aiter__(self) -> AsyncIterator[ItemT]:
        return self.items()

    async def fetch_page(self, continuation_token: Optional[str] = None) -> Page:
        """Exactly one page: the first one, or the one the token points at."""
        if continuation_token:
            return await self._follow(continuation_token)
        return await self._first()

    async def collect(self, continuation_token: Optional[str] = None) -> List[ItemT]:
        return [item async for item in self.items(continuation_token)]

    def to_list(self, continuation_token: Optional[str] = None) -> List[ItemT]:
        """Blocking: walks every page on the calling thread."""
        return run_blocking(self.collect(continuation_token))
