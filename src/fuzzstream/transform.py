"""
Fuzz transform core: re-chunks a byte stream and delays each output chunk.

The transform sits between a producer and a consumer. Content and order are
preserved exactly; only chunk boundaries and timing change:

- a write may be held back and combined with the next one
- each write is cut into random pieces, some of them empty
- each piece waits a random delay before it is pushed downstream

Callers hand in one write at a time together with a completion callback and
must not issue the next write (or finish) until that callback has run. The
transform never runs two operations at once; the only asynchrony is the
delay timer, scheduled on an asyncio-style loop.
"""

import asyncio
import random
import time
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from fuzzstream.config import FuzzConfig
from fuzzstream.delay import sample_delay
from fuzzstream.errors import ContractViolation, require
from fuzzstream.logging_config import get_logger
from fuzzstream.metrics import BYTES_ACCEPTED_TOTAL, EmissionCollector
from fuzzstream.splitter import BytesLike, split_chunk

Callback = Callable[[], Any]

COMPONENT = "transform"


class TransformState(Enum):
    """Observable state of a FuzzTransform."""
    IDLE = "idle"              # nothing held, nothing queued
    COMBINING = "combining"    # writes buffered for combination, nothing held
    DRAINING = "draining"      # completion callback held, emitting queued pieces
    WAITING = "waiting"        # delay timer outstanding before the next emission
    FINISHED = "finished"      # end of stream requested and fully drained


class FuzzTransform:
    """Pass-through transform that perturbs chunking and timing of a byte stream."""

    def __init__(
        self,
        push: Callable[[bytes], Any],
        config: Optional[FuzzConfig] = None,
        rng: Optional[random.Random] = None,
        loop=None,
        collector: Optional[EmissionCollector] = None,
        on_fatal: Optional[Callable[[ContractViolation], Any]] = None,
        name: str = "fuzzstream",
    ):
        """
        Initialize the transform.

        Args:
            push: Downstream sink, called once per emitted chunk
            config: Tuning parameters (defaults to FuzzConfig())
            rng: Random source; pass a seeded ``random.Random`` for
                reproducible runs
            loop: Object providing ``call_soon`` and ``call_later``; the
                running asyncio loop is used when omitted
            collector: Per-session emission records
            on_fatal: Invoked with a contract violation raised from a timer
                callback, where no caller is on the stack to receive it
            name: Identifier bound to log entries
        """
        self.config = config or FuzzConfig()
        self.rng = rng or random.Random()
        self.collector = collector or EmissionCollector()
        self.name = name
        self._push = push
        self._loop = loop
        self._on_fatal = on_fatal

        # runtime state
        self._queue: Deque[bytes] = deque()
        self._combine_buffer: List[bytes] = []
        self._callback: Optional[Callback] = None
        self._finishing = False
        self._finished = False

        # debugging state
        self._timer = None
        self._delay_ms = 0
        self._delay_start: Optional[float] = None
        self._delay_done: Optional[float] = None
        self.bytes_accepted = 0
        self.bytes_emitted = 0

        self._log = get_logger(__name__).bind(stream=name)

    @property
    def loop(self):
        """Scheduler for timers and deferred callbacks."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def state(self) -> TransformState:
        """Current state, derived from the runtime fields."""
        if self._finished:
            return TransformState.FINISHED
        if self._timer is not None:
            return TransformState.WAITING
        if self._callback is not None:
            return TransformState.DRAINING
        if self._combine_buffer:
            return TransformState.COMBINING
        return TransformState.IDLE

    @property
    def queue_length(self) -> int:
        """Number of pieces waiting to be emitted."""
        return len(self._queue)

    # ------------------------------------------------------------------
    # Upstream interface
    # ------------------------------------------------------------------

    def accept_unit(self, chunk: BytesLike, callback: Callback) -> None:
        """
        Process one upstream write.

        ``callback`` runs exactly once: right away (deferred to the next loop
        iteration) when the write is held back for combination, otherwise
        after every piece derived from it has been pushed downstream.

        Args:
            chunk: Data written by the producer, possibly empty
            callback: Completion signal for this write

        Raises:
            ContractViolation: If a previous write is still in flight or the
                stream has already been finished
            TypeError: If ``chunk`` is not a bytes-like object
        """
        require(self._callback is None,
                "accept_unit called while a completion signal is held",
                component=COMPONENT, queued=len(self._queue))
        require(not self._finishing,
                "accept_unit called after finish", component=COMPONENT)

        data = memoryview(chunk).tobytes()
        self.bytes_accepted += len(data)
        BYTES_ACCEPTED_TOTAL.inc(len(data))

        if self.rng.random() < self.config.p_combine:
            self._combine_buffer.append(data)
            self.collector.record_combine()
            self._log.debug("chunk_combined", size=len(data),
                            buffered=len(self._combine_buffer))
            self.loop.call_soon(callback)
            return

        self._flush_combine_buffer()

        pieces = split_chunk(data, self.config.p_zero, self.rng)
        require(len(pieces) > 0, "splitter returned no pieces", component=COMPONENT)
        self._queue.extend(pieces)
        self._callback = callback
        self._drain()

    def finish(self, callback: Callback) -> None:
        """
        Signal end of stream.

        Anything still buffered for combination is queued and drained first;
        ``callback`` runs once the queue is empty, never inline.

        Args:
            callback: Completion signal for end of stream

        Raises:
            ContractViolation: If a write is still in flight or finish was
                already called
        """
        require(self._callback is None,
                "finish called while a completion signal is held",
                component=COMPONENT, queued=len(self._queue))
        require(not self._finishing,
                "finish called more than once", component=COMPONENT)

        self._finishing = True
        self._flush_combine_buffer()

        if not self._queue:
            self._mark_finished()
            self.loop.call_soon(callback)
            return

        self._callback = callback
        self._drain()

    # ------------------------------------------------------------------
    # Drain loop
    # ------------------------------------------------------------------

    def _flush_combine_buffer(self) -> None:
        """Queue all held-back writes as a single chunk."""
        if not self._combine_buffer:
            return
        self._queue.append(b"".join(self._combine_buffer))
        self._combine_buffer = []

    def _drain(self) -> None:
        """Emit queued pieces until one needs a delay or the queue empties."""
        while True:
            require(self._timer is None,
                    "drain started while a delay timer is outstanding",
                    component=COMPONENT)
            require(len(self._queue) > 0,
                    "drain started with an empty queue", component=COMPONENT)

            delay = sample_delay(self.config.delay_distribution, self.rng)
            self._delay_ms = delay
            if delay > 0:
                self._delay_start = time.time()
                self._delay_done = self._delay_start + delay / 1000.0
                self._timer = self.loop.call_later(delay / 1000.0, self._on_delay_expired)
                self._log.debug("delay_scheduled", delay_ms=delay,
                                queued=len(self._queue))
                return

            if not self._emit_head():
                return

    def _on_delay_expired(self) -> None:
        self._timer = None
        self._delay_start = None
        self._delay_done = None
        try:
            if self._emit_head():
                self._drain()
        except ContractViolation as exc:
            if self._on_fatal is not None:
                self._on_fatal(exc)
            raise

    def _emit_head(self) -> bool:
        """
        Push the first queued piece downstream.

        Returns:
            True if more pieces remain; False once the queue is empty and the
            held callback has been invoked
        """
        require(len(self._queue) > 0,
                "emit requested with an empty queue", component=COMPONENT)
        piece = self._queue.popleft()
        self.bytes_emitted += len(piece)
        self.collector.record_emission(len(piece), self._delay_ms)
        self._log.debug("chunk_emitted", size=len(piece), delay_ms=self._delay_ms,
                        remaining=len(self._queue))
        self._push(piece)

        if self._queue:
            return True

        require(self._callback is not None,
                "emit requested with no held completion signal",
                component=COMPONENT)
        callback = self._callback
        self._callback = None
        if self._finishing:
            self._mark_finished()
        callback()
        return False

    def _mark_finished(self) -> None:
        self._finished = True
        self._log.info("stream_finished",
                       bytes_accepted=self.bytes_accepted,
                       bytes_emitted=self.bytes_emitted,
                       chunks_emitted=len(self.collector))
        require(self.bytes_accepted == self.bytes_emitted,
                "bytes emitted do not match bytes accepted at end of stream",
                component=COMPONENT,
                bytes_accepted=self.bytes_accepted,
                bytes_emitted=self.bytes_emitted)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_debug_info(self) -> Dict[str, Any]:
        """
        Snapshot of runtime and debugging state.

        Returns:
            Dict with state, queue depth, counters and timer details
        """
        return {
            "name": self.name,
            "state": self.state.value,
            "queued": len(self._queue),
            "combine_buffered": sum(len(c) for c in self._combine_buffer),
            "callback_held": self._callback is not None,
            "bytes_accepted": self.bytes_accepted,
            "bytes_emitted": self.bytes_emitted,
            "chunks_emitted": len(self.collector),
            "delay_ms": self._delay_ms if self._timer is not None else None,
            "delay_start": self._delay_start,
            "delay_done": self._delay_done,
        }
