"""Test helpers shared across plugin-metrics test modules."""

import threading
import time

import httpx


class RecordingTransport(httpx.MockTransport):
    """httpx.MockTransport that remembers every request it served."""

    def __init__(self, status_code: int = 200, text: str = "OK", error: Exception | None = None):
        self.requests: list[httpx.Request] = []
        self.received = threading.Event()
        self.status_code = status_code
        self.text = text
        self.error = error
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        self.received.set()
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.text)


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll predicate until it returns truthy or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())
