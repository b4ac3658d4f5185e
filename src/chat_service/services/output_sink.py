"""Per-call channel carrying partial completion output to one consumer."""

import asyncio
from typing import Generic, TypeVar

T = TypeVar("T")

# Default queue size; publish waits once this many records are unconsumed
DEFAULT_MAXSIZE = 1


class SinkClosedError(RuntimeError):
    """Raised when publishing to a closed sink."""


class OutputSink(Generic[T]):
    """Bounded single-producer/single-consumer channel of output records.

    Records are delivered in publish order and never dropped. ``publish``
    waits while the queue is full, so a slow consumer slows the producer.
    ``close`` never blocks; iteration stops once the queued records are
    drained.

    Example:
        sink = OutputSink(maxsize=8)
        task = asyncio.create_task(orchestrator.execute(input, sink))
        async for record in sink:
            await forward(record)
        result = await task
    """

    def __init__(self, maxsize: int = DEFAULT_MAXSIZE) -> None:
        if maxsize < 1:
            raise ValueError("output sink must be bounded (maxsize >= 1)")
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def publish(self, record: T) -> None:
        """Enqueue a record, waiting while the sink is full.

        Raises:
            SinkClosedError: If the sink was closed.
        """
        if self.closed:
            raise SinkClosedError("output sink is closed")
        await self._queue.put(record)

    def close(self) -> None:
        """Mark the end of the stream. Idempotent."""
        self._closed.set()

    def __aiter__(self) -> "OutputSink[T]":
        return self

    async def __anext__(self) -> T:
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self.closed:
                raise StopAsyncIteration

            getter = asyncio.ensure_future(self._queue.get())
            closer = asyncio.ensure_future(self._closed.wait())
            try:
                await asyncio.wait(
                    {getter, closer}, return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                closer.cancel()
                if not getter.done():
                    getter.cancel()

            if getter.done() and not getter.cancelled():
                return getter.result()
