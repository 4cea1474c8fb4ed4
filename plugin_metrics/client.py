"""
Metrics HTTP client.

Serializes a payload, gzips it and POSTs it to the collector on a worker
thread. post() returns a Future immediately; there is no retry and no
queueing, a failed submission is simply lost.
"""

import gzip
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import httpx

from plugin_metrics.config import MetricsConfig
from plugin_metrics.json_value import JsonObject

logger = logging.getLogger("plugin-metrics")

API_ENDPOINT = "https://bStats.org/api/v2/data/bukkit"
METRICS_VERSION = "3.2.0"
USER_AGENT = f"MetricsService/{METRICS_VERSION}"

DEFAULT_TIMEOUT = 10.0


def compress(text: str) -> bytes:
    """Gzip the UTF-8 encoding of text.

    Unencodable characters (lone surrogates) become "?" instead of failing
    the whole submission.
    """
    return gzip.compress(text.encode("utf-8", "replace"))


class MetricsClient:
    """
    Fire-and-forget HTTP client for metrics submissions.

    Requests run on a small thread pool so the caller (the scheduler
    thread) never waits on the network. Each request uses a fixed timeout
    of DEFAULT_TIMEOUT seconds for connect, read, write and pool acquisition.
    Status codes are not interpreted: any response counts as delivered.
    """

    def __init__(
        self,
        config: MetricsConfig,
        endpoint_url: str = API_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
        max_workers: int = 1,
    ):
        """
        Initialize the metrics client.

        Args:
            config: Resolved metrics configuration
            endpoint_url: Collector URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)
            max_workers: Size of the sending thread pool
        """
        self.config = config
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self._http = httpx.Client(timeout=httpx.Timeout(timeout), transport=transport)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="metrics-sender"
        )
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def log(self) -> logging.Logger:
        return self.config.logger or logger

    def build_body(self, payload: JsonObject) -> bytes:
        """Serialize and compress a payload, logging it first if configured."""
        text = payload.to_json()
        if self.config.log_sent_data:
            self.log.info(f"Sending metrics data:\n{text}")
        return compress(text)

    def post(self, payload: JsonObject) -> "Future[httpx.Response]":
        """
        Submit a payload without blocking.

        Args:
            payload: The envelope to send

        Returns:
            Future resolving to the httpx.Response. Serialization, compression
            and transport errors all surface as a failed future.
        """
        try:
            body = self.build_body(payload)
            return self._executor.submit(self._send, body)
        except Exception as e:
            failed: Future = Future()
            failed.set_exception(e)
            return failed

    def _send(self, body: bytes) -> httpx.Response:
        return self._http.post(
            self.endpoint_url,
            content=body,
            headers={
                "Content-Type": "application/json",
                "Content-Encoding": "gzip",
                "User-Agent": USER_AGENT,
            },
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop accepting submissions and release the HTTP client.

        Does not wait for an in-flight request; it finishes (or fails) on its
        own worker thread.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=False)
        threading.Thread(target=self._close_http_when_idle, daemon=True).start()

    def _close_http_when_idle(self) -> None:
        self._executor.shutdown(wait=True)
        self._http.close()
