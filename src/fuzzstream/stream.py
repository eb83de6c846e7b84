"""
asyncio duplex stream around FuzzTransform.

Producers ``await write()`` and ``await end()``; consumers ``await read()`` or
iterate with ``async for``. Each write resolves when the transform completes
it, so producers naturally respect the one-write-in-flight contract.
"""

import asyncio
import random
from typing import AsyncIterable, Iterable, List, Optional, Union

from fuzzstream.config import FuzzConfig
from fuzzstream.metrics import EmissionCollector
from fuzzstream.splitter import BytesLike
from fuzzstream.transform import FuzzTransform

_EOF = object()


class FuzzStream:
    """Writable/readable byte stream that fuzzes chunking and timing."""

    def __init__(
        self,
        config: Optional[FuzzConfig] = None,
        rng: Optional[random.Random] = None,
        collector: Optional[EmissionCollector] = None,
        name: str = "fuzzstream",
    ):
        """
        Initialize the stream. Must be used from within a running event loop.

        Args:
            config: Tuning parameters
            rng: Random source (seed it for reproducible chunking)
            collector: Per-session emission records
            name: Identifier bound to log entries
        """
        self._output: asyncio.Queue = asyncio.Queue()
        self._write_lock = asyncio.Lock()
        self._pending: Optional[asyncio.Future] = None
        self._failure: Optional[Exception] = None
        self._read_error: Optional[Exception] = None
        self._eof_delivered = False
        self.transform = FuzzTransform(
            self._output.put_nowait,
            config=config,
            rng=rng,
            collector=collector,
            on_fatal=self.abort,
            name=name,
        )

    @property
    def bytes_in(self) -> int:
        """Bytes accepted from writers so far."""
        return self.transform.bytes_accepted

    @property
    def bytes_out(self) -> int:
        """Bytes made available to readers so far."""
        return self.transform.bytes_emitted

    async def write(self, chunk: BytesLike) -> None:
        """
        Write one chunk; returns when the transform has completed it.

        Raises:
            ContractViolation: If the stream was ended or has failed
            TypeError: If ``chunk`` is not a bytes-like object
        """
        async with self._write_lock:
            self._raise_if_failed()
            await self._submit(lambda done: self.transform.accept_unit(chunk, done))

    async def end(self, chunk: Optional[BytesLike] = None) -> None:
        """
        Optionally write a final chunk, then signal end of stream.

        Returns once every byte has been emitted; readers see end of stream
        right after the last chunk.
        """
        if chunk is not None:
            await self.write(chunk)
        async with self._write_lock:
            self._raise_if_failed()
            await self._submit(self.transform.finish)
            self._output.put_nowait(_EOF)

    async def read(self) -> Optional[bytes]:
        """
        Next emitted chunk, possibly empty.

        Once a failure has been delivered, every later call raises it again.

        Returns:
            The chunk, or None at end of stream

        Raises:
            ContractViolation: If the transform failed
            Exception: Whatever the stream was aborted with
        """
        if self._eof_delivered:
            return None
        if self._read_error is not None:
            raise self._read_error
        item = await self._output.get()
        if item is _EOF:
            self._eof_delivered = True
            return None
        if isinstance(item, Exception):
            self._read_error = item
            raise item
        return item

    async def __aiter__(self):
        while True:
            chunk = await self.read()
            if chunk is None:
                return
            yield chunk

    def abort(self, exc: Exception) -> None:
        """
        Fail the stream.

        The pending write, later writes and readers (after the chunks already
        emitted) all raise ``exc``. Only the first failure is kept.

        Args:
            exc: Reason for the failure
        """
        if self._failure is not None:
            return
        self._failure = exc
        if self._pending is not None and not self._pending.done():
            self._pending.set_exception(exc)
        self._output.put_nowait(exc)

    async def _submit(self, operation) -> None:
        future = asyncio.get_running_loop().create_future()
        self._pending = future

        def done():
            if not future.done():
                future.set_result(None)

        try:
            operation(done)
            await future
        finally:
            self._pending = None

    def _raise_if_failed(self) -> None:
        if self._failure is not None:
            raise self._failure


async def pipe(source: Union[Iterable[BytesLike], AsyncIterable[BytesLike]],
               stream: FuzzStream) -> None:
    """
    Write every chunk of ``source`` into ``stream``, then end it.

    If the source or a write raises, the stream is aborted with that error so
    readers stop waiting, and the error propagates.

    Args:
        source: Sync or async iterable of chunks
        stream: Destination stream
    """
    try:
        if hasattr(source, "__aiter__"):
            async for chunk in source:
                await stream.write(chunk)
        else:
            for chunk in source:
                await stream.write(chunk)
        await stream.end()
    except Exception as exc:
        stream.abort(exc)
        raise


async def fuzz_chunks(
    chunks: Union[Iterable[BytesLike], AsyncIterable[BytesLike]],
    config: Optional[FuzzConfig] = None,
    rng: Optional[random.Random] = None,
    collector: Optional[EmissionCollector] = None,
) -> List[bytes]:
    """
    Run one complete session and collect the output.

    Args:
        chunks: Input writes, in order
        config: Tuning parameters
        rng: Random source
        collector: Per-session emission records

    Returns:
        Emitted chunks in order, including empty ones

    Raises:
        ContractViolation: If the transform failed
        Exception: Whatever the source or a write raised
    """
    stream = FuzzStream(config=config, rng=rng, collector=collector)
    writer = asyncio.create_task(pipe(chunks, stream))
    try:
        output = [chunk async for chunk in stream]
    except Exception:
        writer.cancel()
        await asyncio.gather(writer, return_exceptions=True)
        raise
    await writer
    return output
