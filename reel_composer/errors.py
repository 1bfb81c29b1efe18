"""Exception taxonomy shared by the core, the pipeline and the adapters.

WHY: Callers must be able to tell a fatal input problem (no timing at all)
from a retryable provider outage or a terminal job failure. Typed
exceptions make those decisions explicit instead of string matching.

HOW: A single ComposerError base with one subclass per failure class.
Exceptions that describe bad input also inherit from ValueError or
LookupError so generic callers can catch them the standard way.

RULES:
- Timing violations are values (core.timing.TimingViolation), never raised
- AssetGenerationFailure is recovered by placeholder substitution
- ExternalServiceFailure is only raised after the retry budget is spent
- JobFailure is terminal and carries a human-readable message only
"""

from __future__ import annotations


class ComposerError(Exception):
    """Base class for every error raised by reel_composer."""


class EmptyTimingData(ComposerError, ValueError):
    """Raised when no usable timing can be derived from a transcript.

    Either the transcript has no words at all, or every word sits at
    zero and the total narration duration is zero.
    """


class AssetGenerationFailure(ComposerError):
    """Raised when a single visual asset cannot be produced.

    The orchestrator catches this per segment and substitutes a
    placeholder, so it never fails a whole job.
    """

    def __init__(self, segment_order: int, message: str) -> None:
        self.segment_order = segment_order
        super().__init__(f"Asset for segment {segment_order} failed: {message}")


class ExternalServiceFailure(ComposerError):
    """Raised when an external call still fails after all retry attempts.

    Attributes:
        operation: Short description of the call, e.g. "transcribe audio".
        attempts: How many attempts were made before giving up.
    """

    def __init__(self, operation: str, attempts: int, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.attempts = attempts
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed after {attempts} attempt(s){detail}")


class JobFailure(ComposerError):
    """Terminal failure of a generation job."""


class JobCancelled(JobFailure):
    """Raised between stages when the job's cancellation token is set."""


class CompositionNotFound(ComposerError, LookupError):
    """Raised when a composition ID does not exist in the store."""

    def __init__(self, composition_id: str) -> None:
        self.composition_id = composition_id
        super().__init__(f"Composition not found: {composition_id}")


class CompositionBusy(ComposerError):
    """Raised when another job already claimed the composition."""


class InvalidStatusTransition(ComposerError, ValueError):
    """Raised on a backward or skipping composition status change."""


class TimelineError(ComposerError, ValueError):
    """Raised when a segment timeline cannot be assembled."""
