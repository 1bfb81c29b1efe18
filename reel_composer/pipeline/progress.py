"""Progress events and the sinks that deliver them.

WHY: A generation job runs for tens of seconds to minutes, and whoever
started it wants to see where it is. The orchestrator only knows that it
has something to say; how that reaches a person (HTTP polling, a webhook,
a log line, a test assertion) is the caller's choice.

HOW: ProgressEvent is a small dataclass with a JSON-ready to_dict().
ProgressSink is an ABC with one async publish() method. The adapters below
cover the transports this package ships with.

RULES:
- Sinks never raise into the job; the orchestrator logs and continues
- ``progress`` is an integer percent in 0–100
- ``composition`` is a JSON-ready dict (summary or descriptor), never a model
- Failed events carry a message, never a traceback
"""

from __future__ import annotations

import inspect
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, List, Optional

import httpx

from reel_composer.config import WEBHOOK_TIMEOUT_S
from reel_composer.pipeline.retry import RetryPolicy, retry_async

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update of a generation job.

    Attributes:
        step: Stage name ("initializing", "audio", "images", "captions",
              "finalizing", "completed" or "failed").
        message: Human-readable status line.
        progress: Percent complete, 0–100.
        composition: Composition summary or descriptor, when relevant.
        error: Failure message on "failed" events.
    """

    step: str
    message: str
    progress: int
    composition: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "step": self.step,
            "message": self.message,
            "progress": self.progress,
        }
        if self.composition is not None:
            data["composition"] = self.composition
        if self.error is not None:
            data["error"] = self.error
        return data


class ProgressSink(ABC):
    """Destination for a job's progress events."""

    @abstractmethod
    async def publish(self, event: ProgressEvent) -> None:
        """Deliver one event."""


class CallbackProgressSink(ProgressSink):
    """Forwards events to a plain or async callable."""

    def __init__(self, callback: Callable[[ProgressEvent], Any]) -> None:
        self._callback = callback

    async def publish(self, event: ProgressEvent) -> None:
        result = self._callback(event)
        if inspect.isawaitable(result):
            await result


class RecordingProgressSink(ProgressSink):
    """Keeps every event in memory; backs the HTTP polling endpoint."""

    def __init__(self) -> None:
        self._events: List[ProgressEvent] = []
        self._lock = threading.Lock()

    async def publish(self, event: ProgressEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[ProgressEvent]:
        with self._lock:
            return list(self._events)

    @property
    def latest(self) -> Optional[ProgressEvent]:
        with self._lock:
            return self._events[-1] if self._events else None


class LoggingProgressSink(ProgressSink):
    """Writes each event to the log; the API job runner mirrors progress here."""

    def __init__(self, job_label: str = "job") -> None:
        self._label = job_label

    async def publish(self, event: ProgressEvent) -> None:
        if event.step == "failed":
            logger.error("[%s] %s (%d%%): %s", self._label, event.step, event.progress, event.error)
        else:
            logger.info("[%s] %s (%d%%): %s", self._label, event.step, event.progress, event.message)


class FanOutProgressSink(ProgressSink):
    """Publishes to several sinks; one failing sink does not stop the rest."""

    def __init__(self, *sinks: ProgressSink) -> None:
        self._sinks = sinks

    async def publish(self, event: ProgressEvent) -> None:
        for sink in self._sinks:
            try:
                await sink.publish(event)
            except Exception:
                logger.exception("Progress sink %s failed", type(sink).__name__)


class WebhookProgressSink(ProgressSink):
    """POSTs each event as JSON to a listener URL.

    The listener URL is the job's listener reference. Delivery is retried
    with a short policy; a listener that stays down only loses events.
    """

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        policy: RetryPolicy | None = None,
        timeout_s: float = WEBHOOK_TIMEOUT_S,
    ) -> None:
        self._url = url
        self._client = client
        self._policy = policy or RetryPolicy(max_attempts=2, initial_delay_s=0.2)
        self._timeout_s = timeout_s

    async def _post(self, payload: dict[str, Any]) -> None:
        if self._client is not None:
            resp = await self._client.post(self._url, json=payload, timeout=self._timeout_s)
            resp.raise_for_status()
            return
        async with httpx.AsyncClient(timeout=self._timeout_s) as client:
            resp = await client.post(self._url, json=payload)
            resp.raise_for_status()

    async def publish(self, event: ProgressEvent) -> None:
        payload = event.to_dict()
        await retry_async(
            lambda: self._post(payload),
            self._policy,
            description=f"deliver progress to {self._url}",
        )
