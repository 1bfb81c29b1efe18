"""Asynchronous generation job: script → audio → visuals → captions → descriptor.

WHY: Generating a narrated video touches four slow, rate-limited services
and takes long enough that the caller must see progress and must be able
to retry without paying twice. The orchestrator drives those steps as one
job, owns the composition status transitions, and turns every failure into
a clean terminal state instead of a crashed worker.

HOW: run() walks the composition through its stages:

  initializing (0%)  guard against duplicate work, claim the composition
  audio (10–25%)     synthesize narration when none exists yet
  images (30–70%)    sequence segments, generate one visual per segment
                     through a small semaphore-bounded pool
  captions (75–85%)  transcribe → normalize → batch → correct → store
  finalizing (90%)   assemble the renderer descriptor, mark completed
  completed (100%)

Each external call is retried with exponential backoff. A visual that
still fails is replaced by a placeholder so the segment list stays whole.
Any other unrecovered error marks the composition failed and publishes a
terminal "failed" event.

RULES:
- run() never raises; the returned Job says how it ended
- A composition that already has segments is republished, not regenerated
- Only a draft composition can be claimed; a busy one fails the job untouched
- Partial segments and captions are kept when a later stage fails
- Cancellation is checked between stages; a started stage runs to the end
  and stores its results first
- Progress sink errors are logged and ignored
"""

from __future__ import annotations

import asyncio
import dataclasses
import enum
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from reel_composer.config import (
    ASSET_CONCURRENCY,
    DEFAULT_FPS,
    INTER_BATCH_DELAY_S,
    MAX_SEGMENTS,
    MIN_CAPTION_DURATION_MS,
    PLACEHOLDER_URL_TEMPLATE,
    dimensions_for_aspect,
)
from reel_composer.core.assembler import assemble_descriptor
from reel_composer.core.batcher import batch_words
from reel_composer.core.ir import CaptionBatch, Composition, CompositionStatus, Segment
from reel_composer.core.normalizer import estimate_word_timings, normalize_transcription
from reel_composer.core.sequencer import (
    estimate_narration_duration,
    sequence_segments,
    split_narration,
)
from reel_composer.core.timing import correct
from reel_composer.errors import (
    AssetGenerationFailure,
    ComposerError,
    CompositionBusy,
    EmptyTimingData,
    ExternalServiceFailure,
    JobCancelled,
    JobFailure,
)
from reel_composer.pipeline.collaborators import (
    AssetGenerator,
    AssetRequest,
    AssetUploader,
    NarrationSynthesizer,
    SpeechTimingProvider,
)
from reel_composer.pipeline.progress import ProgressEvent, ProgressSink
from reel_composer.pipeline.retry import RetryPolicy, retry_async
from reel_composer.pipeline.store import CompositionStore

logger = logging.getLogger(__name__)

IMAGES_START_PERCENT = 30
IMAGES_SPAN_PERCENT = 40


class JobStage(str, enum.Enum):
    """Where a generation job currently is.

    Inherits from str so values serialize cleanly to JSON.
    """

    INITIALIZING = "initializing"
    AUDIO = "audio"
    IMAGES = "images"
    CAPTIONS = "captions"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStage.COMPLETED, JobStage.FAILED)


@dataclass
class Job:
    """Ephemeral state of one orchestrator run.

    The composition is the durable result; the job only exists so callers
    can see how the run is going and how it ended.

    Attributes:
        id: Job identifier.
        composition_id: The composition this job fills in.
        listener_ref: Caller-supplied progress listener (e.g. webhook URL).
        stage: Current stage; COMPLETED or FAILED once the run is over.
        progress_percent: Last published percent.
        message: Last published status line.
        error: Failure message when stage is FAILED.
        failed_stage: The stage that was running when the job failed.
        descriptor: Renderer descriptor dict once completed.
    """

    id: str
    composition_id: str
    listener_ref: Optional[str] = None
    stage: JobStage = JobStage.INITIALIZING
    progress_percent: int = 0
    message: str = ""
    error: Optional[str] = None
    failed_stage: Optional[JobStage] = None
    descriptor: Optional[Dict[str, Any]] = None


class CancellationToken:
    """Thread-safe flag a caller sets to stop a running job."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelled("Job cancelled")


@dataclass(frozen=True)
class OrchestratorSettings:
    """Tuning knobs for one orchestrator; defaults come from config."""

    asset_concurrency: int = ASSET_CONCURRENCY
    inter_batch_delay_s: float = INTER_BATCH_DELAY_S
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    max_segments: int = MAX_SEGMENTS
    placeholder_url_template: str = PLACEHOLDER_URL_TEMPLATE
    min_caption_duration_ms: int = MIN_CAPTION_DURATION_MS
    fps: int = DEFAULT_FPS


def placeholder_url(template: str, segment: Segment, width: int, height: int) -> str:
    """Deterministic stand-in media reference for a failed visual."""
    return template.format(width=width, height=height, text=quote(segment.text, safe=""))


class AsyncJobOrchestrator:
    """Runs generation jobs against a store and a set of collaborators.

    Collaborators other than the store and the asset generator are
    optional: without a synthesizer the composition must already carry
    audio, and without a timing provider captions are estimated from the
    script.
    """

    def __init__(
        self,
        store: CompositionStore,
        asset_generator: AssetGenerator,
        synthesizer: Optional[NarrationSynthesizer] = None,
        timing_provider: Optional[SpeechTimingProvider] = None,
        uploader: Optional[AssetUploader] = None,
        settings: Optional[OrchestratorSettings] = None,
    ) -> None:
        self._store = store
        self._asset_generator = asset_generator
        self._synthesizer = synthesizer
        self._timing_provider = timing_provider
        self._uploader = uploader
        self._settings = settings or OrchestratorSettings()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(
        self,
        composition_id: str,
        sink: ProgressSink,
        cancel_token: Optional[CancellationToken] = None,
        listener_ref: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> Job:
        """Generate everything the composition is missing.

        Args:
            composition_id: The composition to fill in.
            sink: Where progress events go.
            cancel_token: Optional token checked between stages.
            listener_ref: Opaque listener reference recorded on the job.
            job_id: Job ID to use; a fresh one is generated when omitted.

        Returns:
            The finished Job, stage COMPLETED or FAILED.
        """
        job = Job(
            id=job_id or uuid.uuid4().hex,
            composition_id=composition_id,
            listener_ref=listener_ref,
        )
        token = cancel_token or CancellationToken()
        claimed = False

        try:
            composition = self._store.get(composition_id)

            if composition.segments:
                logger.info(
                    "Composition %s already has %d segments; republishing",
                    composition_id, len(composition.segments),
                )
                await self._emit(
                    job, sink, JobStage.COMPLETED, 100,
                    "Composition already generated",
                    composition=composition.to_summary(),
                )
                return job

            await self._emit(job, sink, JobStage.INITIALIZING, 0, "Starting generation")
            if not self._store.claim_for_processing(composition_id):
                current = self._store.get(composition_id).status.value
                raise CompositionBusy(f"Composition {composition_id} is {current}, not draft")
            claimed = True

            await self._generate(job, sink, composition, token)
        except Exception as exc:
            await self._fail(job, sink, exc, claimed)

        return job

    async def _generate(
        self,
        job: Job,
        sink: ProgressSink,
        composition: Composition,
        token: CancellationToken,
    ) -> None:
        token.raise_if_cancelled()
        composition, duration_s = await self._audio_stage(job, sink, composition)

        token.raise_if_cancelled()
        await self._images_stage(job, sink, composition, duration_s)

        token.raise_if_cancelled()
        await self._captions_stage(job, sink, composition, duration_s)

        token.raise_if_cancelled()
        await self._finalize(job, sink, composition.id)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _audio_stage(
        self, job: Job, sink: ProgressSink, composition: Composition
    ) -> tuple[Composition, float]:
        await self._emit(job, sink, JobStage.AUDIO, 10, "Generating narration audio...")

        if composition.audio_ref is None:
            if self._synthesizer is None:
                raise JobFailure("Composition has no audio and no narration synthesizer is configured")
            synthesizer = self._synthesizer
            audio = await retry_async(
                lambda: synthesizer.synthesize(composition.script, composition.voice),
                self._settings.retry_policy,
                description="synthesize narration",
            )
            composition = self._store.update_audio(composition.id, audio.audio_ref, audio.duration_s)

        duration_s = composition.audio_duration_s
        if not duration_s:
            duration_s = estimate_narration_duration(composition.script)
            logger.info(
                "No audio duration for %s; estimated %.1fs from the script",
                composition.id, duration_s,
            )

        await self._emit(job, sink, JobStage.AUDIO, 25, "Narration audio ready")
        return composition, duration_s

    async def _images_stage(
        self,
        job: Job,
        sink: ProgressSink,
        composition: Composition,
        duration_s: float,
    ) -> List[Segment]:
        await self._emit(job, sink, JobStage.IMAGES, IMAGES_START_PERCENT, "Generating visuals...")

        units = split_narration(composition.script)
        segments = sequence_segments(units, duration_s, max_segments=self._settings.max_segments)
        width, height = dimensions_for_aspect(composition.aspect)
        total = len(segments)
        logger.info(
            "Generating %d visuals for %s (%d sentences, %.1fs narration)",
            total, composition.id, len(units), duration_s,
        )

        results: List[Optional[str]] = [None] * total
        semaphore = asyncio.Semaphore(max(1, self._settings.asset_concurrency))
        finished = 0

        async def produce(segment: Segment) -> None:
            nonlocal finished
            async with semaphore:
                media_ref = await self._generate_asset(segment, width, height)
                if self._settings.inter_batch_delay_s > 0:
                    await asyncio.sleep(self._settings.inter_batch_delay_s)
            results[segment.order] = media_ref
            finished += 1
            percent = IMAGES_START_PERCENT + round(finished / total * IMAGES_SPAN_PERCENT)
            await self._emit(job, sink, JobStage.IMAGES, percent, f"Generated visual {finished} of {total}")

        tasks = [asyncio.ensure_future(produce(segment)) for segment in segments]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        filled = [
            dataclasses.replace(segment, media_ref=results[segment.order])
            for segment in segments
        ]
        self._store.replace_segments(composition.id, filled)
        await self._emit(job, sink, JobStage.IMAGES, 70, f"Created {len(filled)} segments")
        return filled

    async def _generate_asset(self, segment: Segment, width: int, height: int) -> str:
        request = AssetRequest(prompt=segment.text, width=width, height=height, order=segment.order)
        generator = self._asset_generator
        uploader = self._uploader

        async def attempt() -> str:
            media_ref = await generator.generate(request)
            if uploader is not None:
                media_ref = await uploader.upload(media_ref)
            return media_ref

        try:
            return await retry_async(
                attempt,
                self._settings.retry_policy,
                description=f"generate visual {segment.order + 1}",
            )
        except ExternalServiceFailure as exc:
            failure = AssetGenerationFailure(segment.order, str(exc))
            logger.warning("%s; using placeholder", failure)
            return placeholder_url(self._settings.placeholder_url_template, segment, width, height)

    async def _captions_stage(
        self,
        job: Job,
        sink: ProgressSink,
        composition: Composition,
        duration_s: float,
    ) -> List[CaptionBatch]:
        await self._emit(job, sink, JobStage.CAPTIONS, 75, "Generating word-level captions...")

        words = None
        if self._timing_provider is not None and composition.audio_ref:
            provider = self._timing_provider
            audio_ref = composition.audio_ref
            result = await retry_async(
                lambda: provider.transcribe(audio_ref),
                self._settings.retry_policy,
                description="transcribe narration",
            )
            try:
                words = normalize_transcription(result)
            except EmptyTimingData as exc:
                logger.warning(
                    "No usable timing for %s (%s); estimating from the script",
                    composition.id, exc,
                )

        if words is None:
            words = estimate_word_timings(composition.script, duration_s)

        batches = batch_words(words, composition.customization.words_per_batch)
        captions = correct(batches, self._settings.min_caption_duration_ms)
        self._store.replace_captions(composition.id, captions)

        await self._emit(job, sink, JobStage.CAPTIONS, 85, f"Created {len(captions)} captions")
        return captions

    async def _finalize(self, job: Job, sink: ProgressSink, composition_id: str) -> None:
        await self._emit(job, sink, JobStage.FINALIZING, 90, "Finalizing composition...")

        composition = self._store.get(composition_id)
        descriptor = assemble_descriptor(
            composition_id=composition.id,
            script=composition.script,
            aspect=composition.aspect,
            segments=composition.segments,
            captions=composition.captions,
            audio_ref=composition.audio_ref,
            customization=composition.customization,
            audio_duration_s=composition.audio_duration_s,
            fps=self._settings.fps,
        )
        self._store.update_status(composition_id, CompositionStatus.COMPLETED)
        job.descriptor = descriptor.to_dict()

        logger.info(
            "Composition %s completed: %d segments, %d captions",
            composition_id, len(descriptor.segments), len(descriptor.captions),
        )
        await self._emit(
            job, sink, JobStage.COMPLETED, 100,
            "Video generation completed!",
            composition=job.descriptor,
        )

    # ------------------------------------------------------------------
    # Events and failure
    # ------------------------------------------------------------------

    async def _emit(
        self,
        job: Job,
        sink: ProgressSink,
        stage: JobStage,
        percent: int,
        message: str,
        composition: Optional[Dict[str, Any]] = None,
    ) -> None:
        job.stage = stage
        job.progress_percent = percent
        job.message = message
        event = ProgressEvent(step=stage.value, message=message, progress=percent, composition=composition)
        await self._publish(job, sink, event)

    @staticmethod
    async def _publish(job: Job, sink: ProgressSink, event: ProgressEvent) -> None:
        try:
            await sink.publish(event)
        except Exception:
            logger.exception("Progress sink failed for job %s (step %s)", job.id, event.step)

    async def _fail(self, job: Job, sink: ProgressSink, exc: Exception, claimed: bool) -> None:
        message = str(exc) or type(exc).__name__
        failed_stage = job.stage

        if isinstance(exc, ComposerError):
            logger.error("Job %s failed during %s: %s", job.id, failed_stage.value, message)
        else:
            logger.exception("Job %s failed during %s", job.id, failed_stage.value)

        if claimed:
            try:
                self._store.update_status(job.composition_id, CompositionStatus.FAILED, error=message)
            except ComposerError:
                logger.exception("Could not mark composition %s failed", job.composition_id)

        job.stage = JobStage.FAILED
        job.failed_stage = failed_stage
        job.error = message
        job.message = f"Generation failed during {failed_stage.value}"

        event = ProgressEvent(
            step=JobStage.FAILED.value,
            message=job.message,
            progress=job.progress_percent,
            error=message,
        )
        await self._publish(job, sink, event)
