"""Generation pipeline: collaborator boundary, store, progress and orchestration.

WHY: Everything in core/ is pure. The pipeline package is where time,
external services and durable state come in — retries, the composition
store, progress delivery and the job that ties them together.

HOW: collaborators.py and store.py define the boundaries, progress.py
the event channel, retry.py the backoff helper, orchestrator.py the job.

RULES:
- Only orchestrator.py changes composition status
- No provider-specific code lives here; providers implement the ABCs
"""

from reel_composer.pipeline.orchestrator import (
    AsyncJobOrchestrator,
    CancellationToken,
    Job,
    JobStage,
    OrchestratorSettings,
)
from reel_composer.pipeline.progress import ProgressEvent, ProgressSink
from reel_composer.pipeline.store import CompositionStore, InMemoryCompositionStore

__all__ = [
    "AsyncJobOrchestrator",
    "CancellationToken",
    "CompositionStore",
    "InMemoryCompositionStore",
    "Job",
    "JobStage",
    "OrchestratorSettings",
    "ProgressEvent",
    "ProgressSink",
]
