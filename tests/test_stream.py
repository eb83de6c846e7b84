"""
Tests for the asyncio FuzzStream adapter.

Covers:
- write/end/read round trips on a real event loop
- async iteration and end-of-stream behaviour
- pipe() with sync and async sources
- Failures surfacing to readers and writers
"""

import asyncio
import random

import pytest

from fuzzstream.config import FuzzConfig, DelayRange, NO_DELAY_DISTRIBUTION
from fuzzstream.errors import ContractViolation
from fuzzstream.metrics import EmissionCollector
from fuzzstream.stream import FuzzStream, fuzz_chunks, pipe
from fuzz_helpers import ScriptedRandom

FAST = FuzzConfig(delay_distribution=(
    DelayRange(p=0.6, min_ms=0, max_ms=0),
    DelayRange(min_ms=0, max_ms=3),
))


@pytest.mark.asyncio
async def test_round_trip_preserves_content():
    """Concatenated output equals concatenated input."""
    chunks = [b"What a piece of work is man. ", b"How noble in reason, ", b"", b"End."]
    for seed in range(5):
        output = await fuzz_chunks(chunks, config=FAST, rng=random.Random(seed))
        assert b"".join(output) == b"".join(chunks)


@pytest.mark.asyncio
async def test_abc_fixed_seed_is_reproducible():
    """The same seed produces the same chunk sequence."""
    first = await fuzz_chunks([b"abc"], config=FAST, rng=random.Random(7))
    second = await fuzz_chunks([b"abc"], config=FAST, rng=random.Random(7))
    assert first == second
    assert b"".join(first) == b"abc"


@pytest.mark.asyncio
async def test_abc_scripted_draws():
    """A fixed draw sequence yields a fixed chunk list."""
    rng = ScriptedRandom([
        0.5,            # not combined
        0.1,            # empty piece
        0.5, 0.5,       # two bytes
        0.9, 0.0,       # one byte
        0.3, 0.0,       # no delay for each piece
        0.2, 0.0,
        0.1, 0.0,
    ])
    output = await fuzz_chunks([b"abc"], config=FAST, rng=rng)
    assert output == [b"", b"ab", b"c"]


@pytest.mark.asyncio
async def test_empty_write_then_end():
    """No bytes flow, yet the stream still ends."""
    output = await fuzz_chunks([b""], config=FAST, rng=random.Random(1))
    assert b"".join(output) == b""


@pytest.mark.asyncio
async def test_end_with_no_writes():
    """Ending an untouched stream delivers end of stream only."""
    stream = FuzzStream(config=FAST)
    await stream.end()
    assert await stream.read() is None
    assert await stream.read() is None


@pytest.mark.asyncio
async def test_end_with_final_chunk():
    """end(chunk) writes the chunk before finishing."""
    stream = FuzzStream(config=FAST, rng=random.Random(3))
    await stream.write(b"head-")
    await stream.end(b"tail")

    received = [chunk async for chunk in stream]
    assert b"".join(received) == b"head-tail"
    assert stream.bytes_in == stream.bytes_out == 9


@pytest.mark.asyncio
async def test_concurrent_reader_and_writer():
    """A reader task sees chunks while the writer is still writing."""
    stream = FuzzStream(config=FAST, rng=random.Random(11))
    data = [bytes([i]) * 50 for i in range(20)]

    async def read_all():
        return [chunk async for chunk in stream]

    reader = asyncio.create_task(read_all())
    await pipe(data, stream)
    received = await reader
    assert b"".join(received) == b"".join(data)


@pytest.mark.asyncio
async def test_pipe_async_source():
    """pipe() accepts async iterables."""
    async def source():
        for word in (b"alpha ", b"beta ", b"gamma"):
            await asyncio.sleep(0)
            yield word

    stream = FuzzStream(config=FAST, rng=random.Random(5))
    writer = asyncio.create_task(pipe(source(), stream))
    received = [chunk async for chunk in stream]
    await writer
    assert b"".join(received) == b"alpha beta gamma"


@pytest.mark.asyncio
async def test_write_after_end_rejected():
    """Writing to an ended stream is a contract violation."""
    stream = FuzzStream(config=FAST)
    await stream.end()
    with pytest.raises(ContractViolation, match="after finish"):
        await stream.write(b"late")


@pytest.mark.asyncio
async def test_collector_populated():
    """A supplied collector receives one record per output chunk."""
    collector = EmissionCollector()
    config = FuzzConfig(p_combine=0.0, delay_distribution=NO_DELAY_DISTRIBUTION)
    output = await fuzz_chunks([b"0123456789"], config=config,
                               rng=random.Random(9), collector=collector)
    assert len(collector) == len(output)
    assert collector.get_summary()["total_bytes"] == 10


@pytest.mark.asyncio
async def test_failure_in_timer_reaches_reader_and_writer():
    """A contract violation on the timer path fails both ends of the stream."""
    config = FuzzConfig(p_combine=0.0, p_zero=0.0,
                        delay_distribution=[DelayRange(min_ms=5, max_ms=6)])
    stream = FuzzStream(config=config)
    writer = asyncio.create_task(stream.write(b"x"))
    await asyncio.sleep(0)

    # Drop the held completion so the drain finds nothing to resolve
    stream.transform._callback = None

    received = []
    with pytest.raises(ContractViolation, match="no held completion signal"):
        async for chunk in stream:
            received.append(chunk)
    assert received == [b"x"]
    with pytest.raises(ContractViolation, match="no held completion signal"):
        await asyncio.wait_for(stream.read(), 1)
    with pytest.raises(ContractViolation):
        async for chunk in stream:
            received.append(chunk)
    assert received == [b"x"]
    with pytest.raises(ContractViolation):
        await writer
    with pytest.raises(ContractViolation):
        await stream.end()


@pytest.mark.asyncio
async def test_failing_source_reaches_reader():
    """An error raised by the source ends the session instead of stalling it."""
    async def source():
        yield b"abc"
        raise RuntimeError("source broke")

    with pytest.raises(RuntimeError, match="source broke"):
        await asyncio.wait_for(fuzz_chunks(source(), config=FAST, rng=random.Random(2)), 2)


@pytest.mark.asyncio
async def test_text_write_reaches_reader():
    """A str chunk fails the session with TypeError."""
    with pytest.raises(TypeError):
        await asyncio.wait_for(fuzz_chunks(["abc"], config=FAST), 2)


@pytest.mark.asyncio
async def test_integer_write_rejected():
    """An int is not turned into a run of zero bytes."""
    stream = FuzzStream(config=FAST)
    with pytest.raises(TypeError):
        await stream.write(3)
    assert stream.bytes_in == 0


@pytest.mark.asyncio
async def test_abort_fails_both_ends():
    """abort() keeps already emitted chunks, then fails reads and writes."""
    config = FuzzConfig(p_combine=0.0, delay_distribution=NO_DELAY_DISTRIBUTION)
    stream = FuzzStream(config=config, rng=random.Random(4))
    await stream.write(b"kept")
    error = RuntimeError("upstream gone")
    stream.abort(error)
    stream.abort(RuntimeError("ignored"))

    received = []
    with pytest.raises(RuntimeError, match="upstream gone"):
        async for chunk in stream:
            received.append(chunk)
    assert b"".join(received) == b"kept"
    with pytest.raises(RuntimeError, match="upstream gone"):
        await stream.read()
    with pytest.raises(RuntimeError, match="upstream gone"):
        await stream.write(b"more")
    with pytest.raises(RuntimeError, match="upstream gone"):
        await stream.end()
