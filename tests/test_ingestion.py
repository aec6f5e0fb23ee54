"""
Tests for the RIS Live ingestion loop.

Feed fixtures live in tests/testdata; the remote cases serve them from a
local HTTP server.
"""

import http.server
import socket
import threading
import time
import unittest
from pathlib import Path
from unittest.mock import Mock

import requests

from ris_live.collectors.stream_source import FileStreamSource, HTTPStreamSource
from ris_live.filters import FilterEngine, RisFilter
from ris_live.models import RisAnnouncement, RisMessage, RisMessageData
from ris_live.pipeline.ingestion import RisLive, StreamState, filtered
from ris_live.utils.config import StreamConfig
from ris_live.utils.error_handling import DecodeError, DigestError, ValidationError

TESTDATA = Path(__file__).parent / "testdata"

ONE_MSG_WANT = RisMessage(
    type="ris_message",
    data=RisMessageData(
        timestamp=1.55862004708e+09,
        peer="196.60.9.165",
        peer_asn="57695",
        id="196.60.9.165-1558620047.08-11924763",
        host="rrc19",
        type="UPDATE",
        path=[57695, 37650],
        digested_path=[57695, 37650],
        community=[(57695, 12000), (57695, 12001)],
        origin="igp",
        announcements=[RisAnnouncement(next_hop="196.60.9.165", prefixes=["196.50.70.0/24"])],
        raw="FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF003E02000000234001010040020A02020000E15F"
            "00009312400304C43C09A5E00808E15F2EE0E15F2EE118C43246",
    )
)


def file_config(name: str, buffer_size: int = 10, **kwargs) -> StreamConfig:
    return StreamConfig(file=str(TESTDATA / name), buffer_size=buffer_size, **kwargs)


def drain(session: RisLive):
    return list(session.messages(poll_interval=0.05))


class _FeedHandler(http.server.BaseHTTPRequestHandler):
    body = b""
    user_agents = []

    def do_GET(self):
        type(self).user_agents.append(self.headers.get("User-Agent"))
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        self.wfile.write(self.body)

    def log_message(self, format, *args):
        pass


class FeedServer:
    """Serve a testdata file over HTTP on an ephemeral port."""

    def __init__(self, name: str):
        handler = type("Handler", (_FeedHandler,), {
            "body": (TESTDATA / name).read_bytes() + b"\n",
            "user_agents": [],
        })
        self.handler = handler
        self.server = http.server.ThreadingHTTPServer(("127.0.0.1", 0), handler)
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self.server.server_address[:2]
        return f"http://{host}:{port}/v1/stream/?format=json"

    def __enter__(self):
        self.thread.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.server.shutdown()
        self.server.server_close()
        return False


class HeldOpenFeed:
    """Serve a testdata file over a raw socket and keep the connection open until released."""

    def __init__(self, name: str):
        self.body = (TESTDATA / name).read_bytes() + b"\n"
        self.server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server.bind(("127.0.0.1", 0))
        self.server.listen(1)
        self.server.settimeout(10)
        self._release = threading.Event()
        self.thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def url(self) -> str:
        host, port = self.server.getsockname()
        return f"http://{host}:{port}/v1/stream/?format=json"

    def _serve(self):
        conn, _ = self.server.accept()
        with conn:
            request = b""
            while b"\r\n\r\n" not in request:
                chunk = conn.recv(4096)
                if not chunk:
                    return
                request += chunk
            conn.sendall(b"HTTP/1.1 200 OK\r\n"
                         b"Content-Type: application/json\r\n"
                         b"Connection: close\r\n\r\n" + self.body)
            self._release.wait(10)

    def release(self):
        self._release.set()
        self.thread.join(5)

    def __enter__(self):
        self.thread.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        self.server.close()
        return False


class TestListenLocal(unittest.TestCase):
    """Test sessions reading local feed files."""

    def test_read_one_message(self):
        session = RisLive(file_config("1-msg"))
        self.assertEqual(session.listen(), StreamState.CLOSED)

        got = session.queue.get_nowait()
        self.assertEqual(got, ONE_MSG_WANT)
        self.assertTrue(session.queue.empty())

    def test_read_sixth_message(self):
        session = RisLive(file_config("10-msg"))
        session.listen()

        messages = [session.queue.get_nowait() for _ in range(10)]
        sixth = messages[5].data
        self.assertEqual(sixth.peer, "2001:7f8:d:ff::226")
        self.assertEqual(sixth.peer_asn, "24482")
        self.assertEqual(sixth.host, "rrc07")
        self.assertEqual(sixth.digested_path, [24482, 6453, 174, 513, 513, 12654])
        self.assertEqual(len(sixth.community), 12)
        self.assertEqual([a.next_hop for a in sixth.announcements],
                         ["2001:7f8:d:ff::226", "fe80::2a0:a500:0:3e6"])
        self.assertTrue(sixth.raw.startswith("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF00AD"))

    def test_n_records_in_order(self):
        session = RisLive(file_config("10-msg"))
        got = drain(session)

        self.assertEqual(len(got), 10)
        self.assertEqual([m.data.timestamp for m in got],
                         sorted(m.data.timestamp for m in got))
        self.assertTrue(all(m.data.digested_path for m in got))
        self.assertEqual(session.stats.records_published, 10)
        self.assertEqual(session.state, StreamState.CLOSED)

    def test_raw_preserved_byte_for_byte(self):
        got = drain(RisLive(file_config("10-msg")))
        self.assertEqual(got[0].data.raw, "ffffffffffffffffffffffffffffffff00000000000000000000000000000001")
        self.assertEqual(got[1].data.raw, "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFF00000000000000000000000000000002")

    def test_as_set_record(self):
        session = RisLive(file_config("fail-as-set"))
        session.listen()

        got = session.queue.get_nowait().data
        self.assertEqual(got.path, [2497, 6453, 18705, 26281, [13340]])
        self.assertEqual(got.digested_path, [2497, 6453, 18705, 26281, 13340])
        self.assertEqual(got.origin, "incomplete")
        self.assertEqual(got.community, [])

    def test_word_path_stops_stream(self):
        session = RisLive(file_config("word-path"))
        self.assertEqual(session.listen(), StreamState.FAILED)

        # Third record is bad: two published, then nothing
        self.assertEqual(session.queue.qsize(), 2)
        self.assertIsInstance(session.error, DigestError)
        self.assertEqual(session.stats.records_published, 2)

    def test_word_path_dropped_when_configured(self):
        session = RisLive(file_config("word-path", on_digest_error="drop"))
        self.assertEqual(session.listen(), StreamState.CLOSED)

        self.assertEqual(session.queue.qsize(), 4)
        self.assertEqual(session.stats.records_dropped, 1)
        self.assertIsNone(session.error)

    def test_truncated_json_fails(self):
        session = RisLive(file_config("truncated"))
        self.assertEqual(session.listen(), StreamState.FAILED)

        self.assertEqual(session.queue.qsize(), 1)
        self.assertIsInstance(session.error, DecodeError)

    def test_records_without_separator(self):
        got = drain(RisLive(file_config("no-separator")))
        self.assertEqual([m.data.digested_path for m in got], [[1, 2], [3, 4]])

    def test_empty_file(self):
        session = RisLive(file_config("empty"))
        self.assertEqual(session.listen(), StreamState.CLOSED)
        self.assertTrue(session.queue.empty())

    def test_missing_file_treated_as_empty(self):
        session = RisLive(file_config("does-not-exist"))
        self.assertEqual(session.listen(), StreamState.CLOSED)

        self.assertTrue(session.queue.empty())
        self.assertIsNone(session.error)
        self.assertIn("does-not-exist", session.stats.last_error)

    def test_listen_only_once(self):
        session = RisLive(file_config("1-msg"))
        session.listen()
        with self.assertRaises(Exception):
            session.listen()

    def test_invalid_buffer_size(self):
        with self.assertRaises(ValidationError):
            RisLive(file_config("1-msg", buffer_size=0))
        with self.assertRaises(ValidationError):
            RisLive(file_config("1-msg", buffer_size="5"))


class TestFiltering(unittest.TestCase):
    """Test inline and wrapper filtering."""

    def test_inline_filter(self):
        risfilter = RisFilter(as_path=(3356,))
        session = RisLive(file_config("10-msg"), risfilter, apply_filter=True)
        got = drain(session)

        self.assertEqual([m.data.peer_asn for m in got], ["6939", "28260", "47692"])
        self.assertEqual(session.stats.records_filtered, 7)

    def test_filter_not_applied_by_default(self):
        session = RisLive(file_config("10-msg"), RisFilter(as_path=(3356,)))
        self.assertEqual(len(drain(session)), 10)

    def test_wrapper_filter(self):
        engine = FilterEngine(RisFilter(prefixes=frozenset({"2001:7fb::/32"})))
        got = list(filtered(drain(RisLive(file_config("10-msg"))), engine))

        self.assertEqual(len(got), 1)
        self.assertEqual(got[0].data.host, "rrc07")

    def test_inline_invalid_transit(self):
        risfilter = RisFilter(invalid_transit_as=frozenset({174}))
        got = drain(RisLive(file_config("10-msg"), risfilter, apply_filter=True))
        self.assertEqual([m.data.peer_asn for m in got], ["13335", "24482"])


class TestBackpressure(unittest.TestCase):
    """Test the bounded output queue."""

    def test_producer_blocks_when_full(self):
        session = RisLive(file_config("10-msg", buffer_size=2))
        session.start()

        deadline = time.time() + 5
        while not session.queue.full() and time.time() < deadline:
            time.sleep(0.01)
        time.sleep(0.2)

        self.assertTrue(session.queue.full())
        self.assertEqual(session.stats.records_published, 2)
        self.assertEqual(session.state, StreamState.STREAMING)
        self.assertFalse(session.done)

        got = list(session.messages(poll_interval=0.05))
        self.assertEqual(len(got), 10)
        session.join(5)
        self.assertEqual(session.state, StreamState.CLOSED)


class TestListenRemote(unittest.TestCase):
    """Test sessions reading over HTTP."""

    def test_read_one_http_message(self):
        with FeedServer("1-msg") as server:
            config = StreamConfig(url=server.url, client="ris-live-test", buffer_size=10)
            session = RisLive(config)
            self.assertEqual(session.listen(), StreamState.CLOSED)

            self.assertEqual(session.queue.get_nowait(), ONE_MSG_WANT)
            self.assertEqual(server.handler.user_agents, ["ris-live-test"])

    def test_read_many_http_messages(self):
        with FeedServer("10-msg") as server:
            session = RisLive(StreamConfig(url=server.url, buffer_size=3))
            got = drain(session)
            self.assertEqual(len(got), 10)

    def test_record_delivered_while_connection_open(self):
        with HeldOpenFeed("1-msg") as feed:
            session = RisLive(StreamConfig(url=feed.url, buffer_size=10))
            session.start()

            got = session.queue.get(timeout=5)
            self.assertEqual(got, ONE_MSG_WANT)
            self.assertEqual(session.state, StreamState.STREAMING)
            self.assertFalse(session.done)

            feed.release()
            session.join(5)
            self.assertEqual(session.state, StreamState.CLOSED)

    def test_connection_failure_treated_as_empty(self):
        session_mock = Mock()
        session_mock.get.side_effect = requests.ConnectionError("connection refused")
        source = HTTPStreamSource("http://192.0.2.1/stream", "ris-live-test", session=session_mock)

        session = RisLive(StreamConfig(buffer_size=10), source=source)
        self.assertEqual(session.listen(), StreamState.CLOSED)

        self.assertTrue(session.queue.empty())
        self.assertIsNone(session.error)
        self.assertIn("connection refused", session.stats.last_error)

    def test_http_error_status_treated_as_empty(self):
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
        session_mock = Mock()
        session_mock.get.return_value = response
        source = HTTPStreamSource("http://192.0.2.1/stream", "ris-live-test", session=session_mock)

        session = RisLive(StreamConfig(buffer_size=10), source=source)
        self.assertEqual(session.listen(), StreamState.CLOSED)
        self.assertTrue(session.queue.empty())


class TestStreamSource(unittest.TestCase):
    """Test source selection."""

    def test_file_overrides_url(self):
        session = RisLive(StreamConfig(file=str(TESTDATA / "1-msg"), url="http://unused"))
        self.assertIsInstance(session.source, FileStreamSource)

    def test_url_without_file(self):
        session = RisLive(StreamConfig(url="http://192.0.2.1/stream"))
        self.assertIsInstance(session.source, HTTPStreamSource)
        self.assertEqual(session.source.describe(), "http://192.0.2.1/stream")


if __name__ == '__main__':
    unittest.main()
