"""In-memory request counters updated by the metrics middleware."""
from __future__ import annotations

from collections import defaultdict
from threading import Lock
from typing import Any, Dict


class RequestMetrics:
    """Thread-safe counters for requests, responses and processing time."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.total_requests_received = 0
        self.total_responses_sent = 0
        self.total_processing_time_us = 0
        self._responses_by_status: Dict[str, int] = defaultdict(int)

    def request_received(self) -> None:
        with self._lock:
            self.total_requests_received += 1

    def response_sent(self, status_code: int, duration_us: int) -> None:
        with self._lock:
            self.total_responses_sent += 1
            self._responses_by_status[str(status_code)] += 1
            self.total_processing_time_us += duration_us

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_requests_received": self.total_requests_received,
                "total_responses_sent": self.total_responses_sent,
                "total_processing_time_us": self.total_processing_time_us,
                "total_responses_by_status": dict(self._responses_by_status),
            }
