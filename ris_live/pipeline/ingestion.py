#!/usr/bin/env python3
"""
RIS Live Ingestion Loop

Drives a single stream session:
1. Open the feed (local file or streaming HTTP GET)
2. Decode back-to-back JSON records incrementally with ijson
3. Digest each record's AS path
4. Optionally apply the session filter
5. Publish accepted records to a bounded queue (blocking when full)

The session ends when the feed is exhausted (CLOSED) or on a decode or
digest error (FAILED). A feed that cannot be opened is logged and treated
as empty. The queue is never sent an end marker; consumers observe
completion through `done` or the `messages()` generator.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional

import ijson
import psutil

from ..collectors.stream_source import StreamSource, create_stream_source
from ..filters import FilterEngine, RisFilter
from ..models import RisMessage
from ..processors.path_digester import digest_message
from ..utils.config import StreamConfig
from ..utils.error_handling import (
    RisLiveError, TransportError, DecodeError, DigestError, ParameterValidator
)

# Whitespace allowed between and around JSON values
_JSON_WHITESPACE = b" \t\r\n"
_MEMORY_SAMPLE_INTERVAL = 1000


class StreamState(Enum):
    """Lifecycle of a stream session"""
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class IngestionStats:
    """Counters for a stream session"""
    records_decoded: int = 0
    records_published: int = 0
    records_filtered: int = 0
    records_dropped: int = 0
    last_error: Optional[str] = None
    duration: float = 0.0
    memory_peak_mb: float = 0.0

    def to_summary(self) -> str:
        lines = [
            f"Records decoded: {self.records_decoded}",
            f"Records published: {self.records_published}",
            f"Records filtered out: {self.records_filtered}",
            f"Records dropped (undigestable): {self.records_dropped}",
            f"Duration: {self.duration:.2f}s",
            f"Peak memory: {self.memory_peak_mb:.1f} MB",
        ]
        if self.last_error:
            lines.append(f"Last error: {self.last_error}")
        return "\n".join(lines)


class _PrefetchedStream:
    """Replays bytes already read from a stream before delegating to it."""

    def __init__(self, head: bytes, stream):
        self._head = head
        self._stream = stream

    def read(self, size: int = -1) -> bytes:
        # Short reads are fine; the decoder only needs what has arrived
        if self._head:
            if size is None or size < 0:
                size = len(self._head)
            data, self._head = self._head[:size], self._head[size:]
            return data
        return self._stream.read(size)


def _skip_to_content(stream, chunk_size: int = 4096):
    """
    Read past leading whitespace.

    Each read returns whatever the source has available, up to chunk_size.
    Returns a readable positioned at the first JSON byte, or None when the
    stream holds nothing but whitespace.
    """
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            return None
        head = chunk.lstrip(_JSON_WHITESPACE)
        if head:
            return _PrefetchedStream(head, stream)


class RisLive:
    """
    One RIS Live stream session writing into a bounded output queue.

    Args:
        config: Feed location, client identifier and queue capacity
        risfilter: Filter criteria for the session (default: accept all)
        apply_filter: Apply the filter inside the loop instead of leaving
            it to the consumer (see `filtered()`)
        source: Explicit StreamSource, overriding the one derived from config
    """

    def __init__(self, config: StreamConfig, risfilter: Optional[RisFilter] = None,
                 apply_filter: bool = False, source: Optional[StreamSource] = None,
                 logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

        capacity = ParameterValidator.validate_buffer_size(config.buffer_size, "buffer_size")
        self.queue: "queue.Queue[RisMessage]" = queue.Queue(maxsize=capacity)

        self.filter = risfilter if risfilter is not None else RisFilter()
        self.engine = FilterEngine(self.filter)
        self.apply_filter = apply_filter
        self.drop_undigestable = config.on_digest_error == "drop"

        self.source = source or create_stream_source(config)
        self.state = StreamState.IDLE
        self.stats = IngestionStats()
        self.error: Optional[RisLiveError] = None

        self._thread: Optional[threading.Thread] = None
        self._process = psutil.Process()

    @property
    def done(self) -> bool:
        return self.state in (StreamState.CLOSED, StreamState.FAILED)

    def listen(self) -> StreamState:
        """
        Run the session to completion in the calling thread.

        Returns:
            Final state: CLOSED on exhaustion (or an unreachable feed),
            FAILED on a decode or digest error
        """
        if self.state is not StreamState.IDLE:
            raise RisLiveError(f"Stream session already {self.state.value}",
                               guidance="Create a new RisLive for each session")

        start_time = time.time()
        self.state = StreamState.CONNECTING
        try:
            self._run()
        except Exception as e:
            self._fail(RisLiveError(f"Unexpected error in stream session: {e}",
                                    technical_details=repr(e)))
            raise
        finally:
            self.source.close()
            self.stats.duration = time.time() - start_time
            self._sample_memory()
            self.logger.info(
                f"Stream session {self.state.value}: {self.stats.records_published} published, "
                f"{self.stats.records_filtered} filtered, {self.stats.records_dropped} dropped "
                f"in {self.stats.duration:.2f}s"
            )
        return self.state

    def start(self) -> threading.Thread:
        """Run listen() on a background producer thread."""
        if self._thread is not None:
            return self._thread
        self._thread = threading.Thread(target=self.listen, name="ris-live-ingest", daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)

    def messages(self, poll_interval: float = 0.1) -> Iterator[RisMessage]:
        """
        Yield records from the queue until the session is over and drained.

        Starts the producer thread if it is not running yet.
        """
        if self._thread is None and self.state is StreamState.IDLE:
            self.start()

        while True:
            try:
                yield self.queue.get(timeout=poll_interval)
            except queue.Empty:
                if self.done and self.queue.empty():
                    return

    def _run(self):
        try:
            stream = self.source.open()
        except TransportError as e:
            self.logger.error(f"{e.message} - treating feed as empty")
            self.stats.last_error = e.message
            self.state = StreamState.CLOSED
            return

        self.state = StreamState.STREAMING
        self.logger.info(f"Streaming from {self.source.describe()}")

        try:
            content = _skip_to_content(stream)
        except TransportError as e:
            self.logger.error(f"{e.message} - treating feed as empty")
            self.stats.last_error = e.message
            self.state = StreamState.CLOSED
            return

        if content is None:
            self.logger.info(f"No records in {self.source.describe()}")
            self.state = StreamState.CLOSED
            return

        records = ijson.items(content, "", multiple_values=True, use_float=True)
        index = 0
        while True:
            try:
                record = next(records)
            except StopIteration:
                break
            except TransportError as e:
                self.logger.error(f"{e.message} - ending stream")
                self.stats.last_error = e.message
                break
            except (ijson.JSONError, UnicodeDecodeError) as e:
                self._fail(DecodeError(f"Failed to decode record {index}: {e}",
                                       record_index=index, technical_details=repr(e)))
                return

            try:
                message = RisMessage.from_dict(record)
            except (ValueError, TypeError, AttributeError) as e:
                self.logger.error(f"Bad record content: {record!r}")
                self._fail(DecodeError(f"Record {index} is not a RIS Live message: {e}",
                                       record_index=index, technical_details=repr(e)))
                return

            self.stats.records_decoded += 1
            index += 1

            if message.data is not None:
                try:
                    digest_message(message.data)
                except DigestError as e:
                    if self.drop_undigestable:
                        self.stats.records_dropped += 1
                        self.stats.last_error = e.message
                        self.logger.warning(f"Dropping record {index - 1}: {e.message}")
                        continue
                    self._fail(e)
                    return

            if self.apply_filter:
                reason = self.engine.rejection_reason(message.data)
                if reason is not None:
                    self.stats.records_filtered += 1
                    self.logger.debug(f"Record {index - 1} rejected by {reason} filter")
                    continue

            self._publish(message, index - 1)

        self.state = StreamState.CLOSED

    def _publish(self, message: RisMessage, index: int):
        data = message.data
        if data is not None:
            self.logger.debug(
                f"Message({index}): Peer/ASN -> {data.peer}/{data.peer_asn} "
                f"Prefix1: {data.first_prefix() or ''}"
            )
        # Blocks while the consumer is behind
        self.queue.put(message)
        self.stats.records_published += 1

        if self.stats.records_published % _MEMORY_SAMPLE_INTERVAL == 0:
            self._sample_memory()

    def _fail(self, error: RisLiveError):
        self.logger.error(error.message)
        self.error = error
        self.stats.last_error = error.message
        self.state = StreamState.FAILED

    def _sample_memory(self):
        rss_mb = self._process.memory_info().rss / (1024 * 1024)
        if rss_mb > self.stats.memory_peak_mb:
            self.stats.memory_peak_mb = rss_mb


def filtered(messages: Iterable[RisMessage], engine: FilterEngine) -> Iterator[RisMessage]:
    """Consumer-side filtering for sessions that publish unfiltered records."""
    for message in messages:
        if engine.accepts(message.data):
            yield message
