"""Queries against the Data Hub ``/query`` endpoint.

A graph query returns one JSON document. A JavaScript query streams a JSON
array whose elements are decoded one at a time with ijson, so a large
result never has to be held in memory.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from typing import Any, Self

import httpx
import ijson
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .errors import ClientProcessingError, RequestError


class Query(BaseModel):
    """Graph traversal query.

    Starts at ``entity_id`` or ``starting_entities`` and follows
    ``predicate`` references, backwards when ``inverse`` is set.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    entity_id: str = ""
    starting_entities: list[str] | None = None
    predicate: str = ""
    inverse: bool = False
    datasets: list[str] | None = None
    details: bool = False
    limit: int = 0
    continuations: list[str] | None = None
    no_partial_merging: bool = False

    def to_wire(self) -> dict[str, Any]:
        """JSON body sent to the server."""
        return self.model_dump(by_alias=True)


class QueryResultIterator(Iterator[dict[str, Any]]):
    """Iterator over the elements of a streamed JSON array.

    Owns the HTTP response and closes it when the array ends, when decoding
    fails, or when :meth:`close` is called. Use it as a context manager to
    release the connection if iteration stops early.

    Raises (from ``next``):
        ClientProcessingError: If the body is not a JSON array.
        RequestError: If reading the body fails.
    """

    def __init__(self, response: httpx.Response) -> None:
        self._response = response
        self._chunks: Iterator[bytes] = response.iter_bytes()
        self._decoded: list[Any] = ijson.sendable_list()
        self._parser = ijson.items_coro(self._decoded, "item", use_float=True)
        self._pending: deque[Any] = deque()
        self._started = False
        self._done = False

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> dict[str, Any]:
        while not self._pending:
            if self._done:
                raise StopIteration
            try:
                self._feed()
            except Exception:
                self.close()
                raise
        return self._pending.popleft()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        """Whether the underlying response has been released."""
        return self._response.is_closed

    def close(self) -> None:
        """Release the response; later calls to ``next`` stop iteration."""
        self._done = True
        self._pending.clear()
        self._response.close()

    def _feed(self) -> None:
        try:
            chunk = next(self._chunks, None)
        except httpx.HTTPError as e:
            raise RequestError("unable to read query results", cause=e) from e

        try:
            if chunk is None:
                self._finish()
            else:
                self._check_start(chunk)
                self._parser.send(chunk)
        except ijson.JSONError as e:
            raise ClientProcessingError("unable to decode data stream", cause=e) from e

        if not all(isinstance(row, dict) for row in self._decoded):
            raise ClientProcessingError("unable to decode data stream: element is not an object")
        self._pending.extend(self._decoded)
        del self._decoded[:]

    def _check_start(self, chunk: bytes) -> None:
        if self._started:
            return
        head = chunk.lstrip()
        if not head:
            return
        if not head.startswith(b"["):
            raise ClientProcessingError("expected [ at start of data stream")
        self._started = True

    def _finish(self) -> None:
        if not self._started:
            raise ClientProcessingError("unable to decode start of data stream")
        self._parser.close()
        self._done = True
        self._response.close()


def parse_query_result(data: Any) -> list[dict[str, Any]]:
    """Check a graph query response is a list of JSON objects."""
    if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
        raise ClientProcessingError("unable to decode query result")
    return data
