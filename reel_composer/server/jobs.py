"""In-memory registry of generation jobs with TTL cleanup.

WHY: The HTTP API starts generation jobs in the background and returns a
job ID immediately; clients then poll for progress. The job itself is
ephemeral (the composition is the durable result), so an in-memory
registry is enough for a single-process service.

HOW: Each JobRecord owns a RecordingProgressSink that the orchestrator
publishes into, and a CancellationToken the cancel endpoint sets. The
current stage, percent and message are read from the latest recorded
event; once the orchestrator returns, its final Job is stored on the
record.

RULES:
- All store mutations are protected by threading.Lock for thread safety
- Job IDs are uuid4 hex strings generated at creation time
- Before the first event a job reports stage "pending" at 0%
- TTL expiry only removes finished jobs, measured from completion
- Default TTL comes from config (1 hour)
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from reel_composer.config import JOB_TTL_SECONDS
from reel_composer.pipeline.orchestrator import CancellationToken, Job, JobStage
from reel_composer.pipeline.progress import RecordingProgressSink

logger = logging.getLogger(__name__)

PENDING_STAGE = "pending"


@dataclass
class JobRecord:
    """Server-side view of one generation job.

    Attributes:
        id: Job ID returned to the client.
        composition_id: Composition being generated.
        listener_ref: Optional webhook URL receiving progress events.
        created_at: Epoch timestamp when the job was created.
        events: Every progress event published so far.
        cancel_token: Set by the cancel endpoint.
        result: The orchestrator's final Job, once it has returned.
        completed_at: Epoch timestamp of completion, or None.
    """

    id: str
    composition_id: str
    created_at: float
    listener_ref: Optional[str] = None
    events: RecordingProgressSink = field(default_factory=RecordingProgressSink)
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    result: Optional[Job] = None
    completed_at: Optional[float] = None

    @property
    def finished(self) -> bool:
        return self.result is not None

    @property
    def stage(self) -> str:
        if self.result is not None:
            return self.result.stage.value
        latest = self.events.latest
        return latest.step if latest else PENDING_STAGE

    @property
    def progress(self) -> int:
        if self.result is not None:
            return self.result.progress_percent
        latest = self.events.latest
        return latest.progress if latest else 0

    @property
    def message(self) -> str:
        if self.result is not None:
            return self.result.message
        latest = self.events.latest
        return latest.message if latest else "Queued"

    @property
    def error(self) -> Optional[str]:
        return self.result.error if self.result is not None else None


class JobStore:
    """Thread-safe in-memory store for generation jobs."""

    def __init__(self, ttl_seconds: int = JOB_TTL_SECONDS, max_jobs: int = 100) -> None:
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_jobs = max_jobs

    def create_job(self, composition_id: str, listener_ref: Optional[str] = None) -> JobRecord:
        """Register a new job for a composition.

        Raises:
            ValueError: If max_jobs unfinished jobs are already registered.
        """
        with self._lock:
            active = sum(1 for j in self._jobs.values() if not j.finished)
            if active >= self.max_jobs:
                raise ValueError(
                    "Maximum number of concurrent jobs ({}) reached".format(self.max_jobs)
                )
            job = JobRecord(
                id=uuid.uuid4().hex,
                composition_id=composition_id,
                created_at=time.time(),
                listener_ref=listener_ref,
            )
            self._jobs[job.id] = job

        logger.info("Created job %s for composition %s", job.id, composition_id)
        return job

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        """Return the job, or None for unknown IDs."""
        with self._lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> List[JobRecord]:
        """All jobs, oldest first."""
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def active_job_for(self, composition_id: str) -> Optional[JobRecord]:
        """The unfinished job generating ``composition_id``, if any."""
        with self._lock:
            for job in self._jobs.values():
                if job.composition_id == composition_id and not job.finished:
                    return job
        return None

    def finish_job(self, job_id: str, result: Job) -> Optional[JobRecord]:
        """Store the orchestrator's final Job on the record."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            job.result = result
            job.completed_at = time.time()
            return job

    def cancel_job(self, job_id: str) -> bool:
        """Request cancellation; False for unknown or finished jobs."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.finished:
                return False
            job.cancel_token.cancel()
        logger.info("Cancellation requested for job %s", job_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove finished jobs older than the TTL; returns how many."""
        now = time.time()
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if job.completed_at is not None and now - job.completed_at > self._ttl_seconds
            ]
            for job_id in expired:
                del self._jobs[job_id]

        for job_id in expired:
            logger.info("Expired job %s", job_id)
        return len(expired)


def failed_result(job: JobRecord, message: str) -> Job:
    """A terminal Job for a run that never reached the orchestrator."""
    return Job(
        id=job.id,
        composition_id=job.composition_id,
        listener_ref=job.listener_ref,
        stage=JobStage.FAILED,
        message=message,
        error=message,
    )
