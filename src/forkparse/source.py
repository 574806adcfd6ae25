"""
Cursors over the input.

A parse call owns exactly one root `Source`. Anything that might need to
backtrack works on a `Fork` of it instead:

```
fork = cursor.fork()
if rule.evaluate(fork, arg):
    fork.join()     # commit into the parent
else:
    ...             # just drop the fork, the parent never saw its consumption
```

Forks can also be used as context managers, leaving the block without
joining rolls back:

```
with cursor.fork() as fork:
    if fork.read(3) == "abc":
        fork.consume(3)
        fork.join()
```
"""

from __future__ import annotations
from typing import Any, Final, Literal, Self
from types import TracebackType

from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator, Sequence
import logging

from forkparse.errors import Other, ParseError

logger = logging.getLogger(__name__)


class SequenceBuffer:
    """
    In-memory realization. Reads never wait.

    Slices keep the type of the wrapped sequence, so a `str` reads as `str`.
    """

    def __init__(self, data: Sequence[Any]) -> None:
        self.data: Final[Sequence[Any]] = data
        self.start: int = 0
        """Index of the first item the root hasn't consumed."""

    @property
    def available(self) -> int:
        return len(self.data) - self.start

    def fill(self, amount: int) -> None:
        pass

    async def fill_async(self, amount: int) -> None:
        pass

    def slice(self, begin: int, end: int) -> Sequence[Any]:
        return self.data[self.start + begin : self.start + end]

    def consume(self, amount: int) -> None:
        self.start += amount


class StreamBuffer:
    """
    Streaming realization, a growable queue in front of an item feed.

    `feed` is either an async iterable, which can only be read through the
    async path, or a plain iterable, which is pulled from in a blocking way.
    With `chunked`, every element of the feed is an iterable of items.

    Items are dropped from the front only when the root consumes past them.
    """

    TRIM_THRESHOLD: Final[int] = 1024

    def __init__(self, feed: Iterable[Any] | AsyncIterable[Any], *, chunked: bool = False) -> None:
        self.chunked: Final[bool] = chunked
        self.items: list[Any] = []
        self.head: int = 0
        """Index in `items` of the first item the root hasn't consumed."""
        self.ended: bool = False

        self._async_feed: AsyncIterator[Any] | None = None
        self._sync_feed: Iterator[Any] | None = None
        if isinstance(feed, AsyncIterable):
            self._async_feed = aiter(feed)
        else:
            self._sync_feed = iter(feed)

    @property
    def available(self) -> int:
        return len(self.items) - self.head

    def _push(self, element: Any) -> None:
        if self.chunked:
            self.items.extend(element)
        else:
            self.items.append(element)

    def _end(self) -> None:
        self.ended = True
        logger.debug("feed ended with %d items buffered", self.available)

    def fill(self, amount: int) -> None:
        """Pulls from a blocking feed until `amount` items are buffered or the feed ends."""
        if self._sync_feed is None:
            raise TypeError("A source fed by an async iterable can only be parsed asynchronously.")
        while not self.ended and self.available < amount:
            try:
                element = next(self._sync_feed)
            except StopIteration:
                self._end()
            except ParseError:
                raise
            except Exception as exc:
                logger.debug("feed failed: %r", exc)
                raise Other(exc) from exc
            else:
                self._push(element)

    async def fill_async(self, amount: int) -> None:
        """Like `fill()`, suspending while an async feed has nothing new."""
        if self._async_feed is None:
            self.fill(amount)
            return
        while not self.ended and self.available < amount:
            try:
                element = await anext(self._async_feed)
            except StopAsyncIteration:
                self._end()
            except ParseError:
                raise
            except Exception as exc:
                logger.debug("feed failed: %r", exc)
                raise Other(exc) from exc
            else:
                self._push(element)

    def slice(self, begin: int, end: int) -> list[Any]:
        return self.items[self.head + begin : self.head + end]

    def consume(self, amount: int) -> None:
        self.head += amount
        if self.head >= self.TRIM_THRESHOLD and self.head * 2 >= len(self.items):
            logger.debug("trimming %d consumed items", self.head)
            del self.items[:self.head]
            self.head = 0


Buffer = SequenceBuffer | StreamBuffer


class Source:
    """
    The root cursor of a parse. Exclusively owns its buffer.
    """

    def __init__(self, buffer: Buffer) -> None:
        self.buffer: Final[Buffer] = buffer
        self._position: int = 0

    @property
    def position(self) -> int:
        """Items consumed since the start of the input. Never decreases."""
        return self._position

    @property
    def available(self) -> int:
        """Items already buffered ahead of the cursor."""
        return self.buffer.available

    def read(self, amount: int) -> Sequence[Any]:
        """
        Retrieves the next `amount` items without consuming.

        Returns fewer only at the end of the input.
        """
        self.buffer.fill(amount)
        return self.buffer.slice(0, amount)

    async def read_async(self, amount: int) -> Sequence[Any]:
        """Same as `read()`, but may suspend while a stream delivers items."""
        await self.buffer.fill_async(amount)
        return self.buffer.slice(0, amount)

    def consume(self, amount: int) -> None:
        """Advances the position. Only items that were read can be consumed."""
        if amount > self.buffer.available:
            raise ValueError(f"Can't consume {amount} items, only {self.buffer.available} are available.")
        self._position += amount
        self.buffer.consume(amount)

    def fork(self) -> Fork:
        return Fork(self, None, 0)

    def join(self) -> None:
        """Nothing to commit on the root."""

    def __repr__(self) -> str:
        return f"<Source at {self._position}>"


class Fork:
    """
    A speculative cursor. Create using `Source.fork()` or `Fork.fork()`.

    Consumption is kept as an offset relative to the root and only becomes
    visible to the parent through `join()`.
    """

    def __init__(self, root: Source, parent: Fork | None, offset: int) -> None:
        self.root: Final[Source] = root
        self.parent: Final[Fork | None] = parent
        """`None` when the parent is the root."""
        self.offset: int = offset
        self.closed: bool = False

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError("The fork was already joined or closed.")

    @property
    def position(self) -> int:
        return self.root.position + self.offset

    @property
    def available(self) -> int:
        return self.root.buffer.available - self.offset

    def read(self, amount: int) -> Sequence[Any]:
        self._check_open()
        buffer = self.root.buffer
        buffer.fill(self.offset + amount)
        return buffer.slice(self.offset, self.offset + amount)

    async def read_async(self, amount: int) -> Sequence[Any]:
        self._check_open()
        buffer = self.root.buffer
        await buffer.fill_async(self.offset + amount)
        return buffer.slice(self.offset, self.offset + amount)

    def consume(self, amount: int) -> None:
        self._check_open()
        if self.offset + amount > self.root.buffer.available:
            raise ValueError(f"Can't consume {amount} items, only {self.available} are available.")
        self.offset += amount

    def fork(self) -> Fork:
        self._check_open()
        return Fork(self.root, self, self.offset)

    def join(self) -> None:
        """
        Commits into the parent, one level up. Valid once.
        """
        self._check_open()
        self.closed = True
        if self.parent is None:
            self.root.consume(self.offset)
        else:
            self.parent._check_open()
            self.parent.offset = self.offset

    def close(self) -> None:
        """Discards the fork. Its consumption is never seen by the parent."""
        self.closed = True

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exctype: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        self.closed = True
        return False

    def __repr__(self) -> str:
        return f"<Fork at {self.position}{' (closed)' if self.closed else ''}>"


Cursor = Source | Fork


def from_sequence(data: Sequence[Any]) -> Source:
    """An in-memory source over a `str`, `bytes`, `list`, `tuple` or any other sliceable sequence."""
    return Source(SequenceBuffer(data))

def from_iterable(iterable: Iterable[Any], *, chunked: bool = False) -> Source:
    """A source pulling lazily from a blocking iterable. Usable from both the sync and async paths."""
    return Source(StreamBuffer(iterable, chunked=chunked))

def from_stream(stream: AsyncIterable[Any], *, chunked: bool = False) -> Source:
    """A suspend-capable source over an async iterable. Only usable from the async path."""
    return Source(StreamBuffer(stream, chunked=chunked))

def to_source(obj: Any) -> Cursor:
    """
    Picks the fitting source for `obj`.

    Cursors are returned as-is, sequences are read in memory, async iterables
    are streamed and other iterables are pulled lazily.
    """
    if isinstance(obj, (Source, Fork)):
        return obj
    if isinstance(obj, memoryview):
        return from_sequence(bytes(obj))
    if isinstance(obj, Sequence):
        return from_sequence(obj)
    if isinstance(obj, AsyncIterable):
        return from_stream(obj)
    if isinstance(obj, Iterable):
        return from_iterable(obj)
    raise TypeError(f"Can't parse from {type(obj).__name__!r}.")
