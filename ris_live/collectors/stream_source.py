#!/usr/bin/env python3
"""
RIS Live Feed Sources

Opens the byte stream the ingestion loop decodes from:
- HTTPStreamSource: a single streaming GET against the RIS Live endpoint
- FileStreamSource: a single read of a local capture, for testing and replay

Failures to open or read surface as TransportError; callers decide whether
that ends the session.
"""

import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import requests
import urllib3

from ris_live.utils.config import StreamConfig
from ris_live.utils.error_handling import TransportError


class StreamSource(ABC):
    """A one-shot source of feed bytes. Use as a context manager."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._stream = None

    @abstractmethod
    def open(self):
        """
        Open the source and return a binary file-like object.

        Raises:
            TransportError: If the source cannot be opened
        """

    @abstractmethod
    def describe(self) -> str:
        """Human readable location of the feed"""

    def close(self):
        if self._stream is not None:
            try:
                self._stream.close()
            except OSError as e:
                self.logger.debug(f"Cleanup warning for {self.describe()}: {e}")
            self._stream = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class FileStreamSource(StreamSource):
    """Feed content from a local file, read in one go."""

    def __init__(self, path):
        super().__init__()
        self.path = Path(path)

    def open(self):
        try:
            content = self.path.read_bytes()
        except OSError as e:
            raise TransportError(f"Failed to read feed file {self.path}: {e}",
                                 source=str(self.path), technical_details=repr(e))

        self.logger.info(f"Read {len(content)} bytes from {self.path}")
        self._stream = io.BytesIO(content)
        return self._stream

    def describe(self) -> str:
        return f"file {self.path}"


class _ResponseReader:
    """
    Response body reader that returns whatever has arrived.

    A complete record must reach the decoder without waiting for a buffer
    to fill, so reads go through urllib3's read1 and never block for more
    than one network read. Read failures surface as TransportError.
    """

    def __init__(self, response: requests.Response, url: str):
        self._response = response
        self._raw = response.raw
        self._url = url

    def read(self, size: int = -1) -> bytes:
        if size == 0:
            return b""
        try:
            data = self._raw.read1(size if size and size > 0 else None)
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise TransportError(f"Failed reading from {self._url}: {e}",
                                 source=self._url, technical_details=repr(e))
        return data or b""

    def close(self):
        self._response.close()


class HTTPStreamSource(StreamSource):
    """Feed content from a streaming HTTP GET."""

    def __init__(self, url: str, client: str, connect_timeout: Optional[float] = 30.0,
                 session: Optional[requests.Session] = None):
        super().__init__()
        self.url = url
        self.client = client
        self.connect_timeout = connect_timeout
        self._owns_session = session is None
        self.session = session or requests.Session()

    def close(self):
        super().close()
        if self._owns_session:
            self.session.close()

    def open(self):
        headers = {"User-Agent": self.client}
        self.logger.info(f"Connecting to {self.url} as {self.client}")

        try:
            # No read timeout: the firehose can be quiet for long stretches
            response = self.session.get(self.url, headers=headers, stream=True,
                                        timeout=(self.connect_timeout, None))
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(f"Failed to connect to {self.url}: {e}",
                                 source=self.url, technical_details=repr(e))

        response.raw.decode_content = True
        self.logger.debug(f"Connected to {self.url}: HTTP {response.status_code}")
        self._stream = _ResponseReader(response, self.url)
        return self._stream

    def describe(self) -> str:
        return self.url


def create_stream_source(config: StreamConfig) -> StreamSource:
    """A local file overrides the remote feed when configured."""
    if config.use_file:
        return FileStreamSource(config.file)
    return HTTPStreamSource(config.url, config.client, config.connect_timeout)
