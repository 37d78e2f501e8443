"""Lazy iteration over paged result sets.

A :class:`StreamIterator` is driven by a fetch function that maps a
continuation token (or None for the start) to one :class:`Page`. Only the
current page is held in memory, so memory use is bounded by the page size,
not by the size of the result set.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from .models import Page

if TYPE_CHECKING:
    from .models import Continuation, EntityContext

T = TypeVar("T")

PageFetcher = Callable[[str | None], Page[T]]


class StreamIterator(Generic[T]):
    """Forward-only sequence of records fetched one page at a time.

    The first page is fetched on construction so that :attr:`context` is
    available before the first record is read. Once an empty page comes
    back the stream is exhausted and stays exhausted; to continue later,
    save :attr:`token` and start a new iterator from it.

    Not safe for concurrent use.
    """

    def __init__(self, fetch: PageFetcher[T], start: str | None = None) -> None:
        """Initialize the iterator and load the first page.

        Args:
            fetch: Returns the page that follows a continuation token.
            start: Continuation token to resume from, or None to start at
                the beginning.
        """
        self._fetch = fetch
        self._page: Page[T] = fetch(start)
        self._position = 0
        self._exhausted = self._page.is_empty

    @property
    def token(self) -> Continuation | None:
        """Continuation of the current page, for resuming later."""
        return self._page.continuation

    @property
    def context(self) -> EntityContext | None:
        """Namespace context delivered with the current page."""
        return self._page.context

    @property
    def exhausted(self) -> bool:
        """True once the end of the result set has been reached."""
        return self._exhausted

    def next(self) -> T | None:
        """Return the next record, or None at the end of the sequence.

        Raises:
            Whatever the fetch function raises; the iterator is left on its
            current page so the call can be repeated.
        """
        if self._exhausted:
            return None

        if self._position >= len(self._page.items):
            continuation = self._page.continuation
            if continuation is None:
                self._exhausted = True
                return None

            page = self._fetch(continuation.token)
            self._page = page
            self._position = 0
            if page.is_empty:
                self._exhausted = True
                return None

        item = self._page.items[self._position]
        self._position += 1
        return item

    def __iter__(self) -> StreamIterator[T]:
        return self

    def __next__(self) -> T:
        item = self.next()
        if item is None:
            raise StopIteration
        return item
