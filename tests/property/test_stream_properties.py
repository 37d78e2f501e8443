"""
Property-based tests for paged streaming.

For any split of a result set into pages, a stream yields every record
exactly once and in order, and never fetches after it is exhausted.
"""

from hypothesis import given, settings, strategies as st

from datahub_sdk.models import Continuation, Entity, Page
from datahub_sdk.stream import StreamIterator

# Page sizes of a result set; zero-sized pages only appear as the terminator.
page_sizes_strategy = st.lists(st.integers(min_value=1, max_value=5), max_size=8)


def paged(sizes: list[int]) -> tuple[dict, list[str]]:
    """Build a token -> page map for consecutive pages of the given sizes."""
    pages: dict[str | None, Page[Entity]] = {}
    ids: list[str] = []
    token: str | None = None
    for index, size in enumerate(sizes):
        items = [Entity(id=f"e{index}-{n}") for n in range(size)]
        ids.extend(entity.id for entity in items)
        next_token = f"t{index + 1}"
        pages[token] = Page(items=items, continuation=Continuation(token=next_token))
        token = next_token
    pages[token] = Page(items=[], continuation=Continuation(token=token or "t0"))
    return pages, ids


class TestStreamProperties:
    """Property tests for StreamIterator."""

    @given(sizes=page_sizes_strategy)
    @settings(max_examples=100)
    def test_yields_every_record_in_order(self, sizes: list[int]) -> None:
        """Every record of every page is produced once, in order."""
        pages, ids = paged(sizes)

        stream = StreamIterator(lambda token: pages[token])

        assert [entity.id for entity in stream] == ids

    @given(sizes=page_sizes_strategy, extra_calls=st.integers(min_value=1, max_value=5))
    @settings(max_examples=100)
    def test_no_fetch_after_exhaustion(self, sizes: list[int], extra_calls: int) -> None:
        """Once next() returns None, no further page is requested."""
        pages, _ = paged(sizes)
        calls: list[str | None] = []

        def fetch(token: str | None) -> Page[Entity]:
            calls.append(token)
            return pages[token]

        stream = StreamIterator(fetch)
        while stream.next() is not None:
            pass
        fetched = len(calls)

        for _ in range(extra_calls):
            assert stream.next() is None

        assert len(calls) == fetched
        assert fetched == len(sizes) + 1
