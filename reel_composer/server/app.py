"""FastAPI application exposing compositions, generation jobs and subtitles.

WHY: The editor front end (and scripts, n8n flows, curl) needs an HTTP API
to create a composition, start generation, watch its progress, and fetch
the renderer descriptor or subtitle files. FastAPI provides request
validation, background tasks and OpenAPI docs out of the box.

HOW: Module-level singletons hold the composition store, the job store and
the orchestrator. configure_generation() plugs in the provider adapters;
until it is called, the generate endpoint answers 503. POST
/compositions/{id}/generate registers a job and runs the orchestrator in a
background task; progress is recorded on the job and optionally POSTed to
a listener webhook.

RULES:
- All endpoints have OpenAPI descriptions and a consistent ErrorResponse
- A composition that is already processing cannot be generated again (409)
- Descriptor and subtitle endpoints only read stored state
- Finished jobs expire after the configured TTL
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import Response

from reel_composer import __version__
from reel_composer.core.assembler import assemble_descriptor, caption_to_dict, segment_to_dict
from reel_composer.core.ir import Composition, CompositionStatus, Customization
from reel_composer.errors import CompositionNotFound, TimelineError
from reel_composer.formatters import FORMATTERS
from reel_composer.formatters.styles import STYLE_PRESETS, PRESET_IDS, get_preset, style_from_customization
from reel_composer.pipeline.collaborators import (
    AssetGenerator,
    AssetUploader,
    NarrationSynthesizer,
    SpeechTimingProvider,
)
from reel_composer.pipeline.orchestrator import AsyncJobOrchestrator, OrchestratorSettings
from reel_composer.pipeline.progress import (
    FanOutProgressSink,
    LoggingProgressSink,
    ProgressSink,
    WebhookProgressSink,
)
from reel_composer.pipeline.store import InMemoryCompositionStore
from reel_composer.server.jobs import JobRecord, JobStore, failed_result
from reel_composer.server.models import (
    CompositionCreateRequest,
    CompositionResponse,
    CustomizationModel,
    ErrorResponse,
    FormatInfo,
    GenerateRequest,
    HealthResponse,
    JobCreatedResponse,
    JobResponse,
    ProgressEventModel,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

composition_store = InMemoryCompositionStore()
job_store = JobStore()
_orchestrator: Optional[AsyncJobOrchestrator] = None


def configure_generation(
    asset_generator: AssetGenerator,
    synthesizer: Optional[NarrationSynthesizer] = None,
    timing_provider: Optional[SpeechTimingProvider] = None,
    uploader: Optional[AssetUploader] = None,
    settings: Optional[OrchestratorSettings] = None,
) -> AsyncJobOrchestrator:
    """Plug provider adapters into the API and enable generation."""
    global _orchestrator
    _orchestrator = AsyncJobOrchestrator(
        store=composition_store,
        asset_generator=asset_generator,
        synthesizer=synthesizer,
        timing_provider=timing_provider,
        uploader=uploader,
        settings=settings,
    )
    logger.info("Generation enabled with %s", type(asset_generator).__name__)
    return _orchestrator


def reset_generation() -> None:
    """Disable generation again (used between tests)."""
    global _orchestrator
    _orchestrator = None


async def _periodic_cleanup() -> None:
    """Run job cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        job_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Reel Composer API",
    description=(
        "Create narrated short-video compositions: narration audio, one "
        "generated visual per sentence, word-highlighted captions, and a "
        "renderer-ready descriptor. Start a generation job, poll its "
        "progress, then fetch the descriptor or subtitle files."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_composition(composition_id: str) -> Composition:
    try:
        return composition_store.get(composition_id)
    except CompositionNotFound:
        raise HTTPException(status_code=404, detail="Composition not found: {}".format(composition_id))


def _composition_to_response(composition: Composition) -> CompositionResponse:
    return CompositionResponse(
        id=composition.id,
        script=composition.script,
        voice=composition.voice,
        audio_ref=composition.audio_ref,
        audio_duration=composition.audio_duration_s,
        aspect=composition.aspect,
        status=composition.status.value,
        error=composition.error,
        segments=[segment_to_dict(s) for s in sorted(composition.segments, key=lambda s: s.order)],
        captions=[caption_to_dict(c) for c in composition.captions],
        customization=composition.customization.to_dict(),
    )


def _job_to_response(job: JobRecord) -> JobResponse:
    result = job.result
    return JobResponse(
        id=job.id,
        composition_id=job.composition_id,
        stage=job.stage,
        progress=job.progress,
        message=job.message,
        error=job.error,
        failed_stage=result.failed_stage.value if result and result.failed_stage else None,
        created_at=job.created_at,
        descriptor=result.descriptor if result else None,
    )


def _build_sink(job: JobRecord) -> ProgressSink:
    sinks: List[ProgressSink] = [job.events, LoggingProgressSink(job.id)]
    if job.listener_ref:
        sinks.append(WebhookProgressSink(job.listener_ref))
    return FanOutProgressSink(*sinks)


async def _run_generation(job_id: str, orchestrator: AsyncJobOrchestrator, store: JobStore) -> None:
    """Run the orchestrator for a registered job and record the outcome."""
    job = store.get_job(job_id)
    if job is None:
        return
    result = await orchestrator.run(
        job.composition_id,
        _build_sink(job),
        cancel_token=job.cancel_token,
        listener_ref=job.listener_ref,
        job_id=job.id,
    )
    store.finish_job(job_id, result)


def _run_generation_sync(job_id: str, orchestrator: AsyncJobOrchestrator, store: JobStore) -> None:
    """Synchronous wrapper for the async generation job.

    FastAPI BackgroundTasks run synchronous callables in a worker thread;
    this wraps the coroutine with asyncio.run().
    """
    try:
        asyncio.run(_run_generation(job_id, orchestrator, store))
    except Exception as exc:
        logger.exception("Generation runner crashed for job %s", job_id)
        job = store.get_job(job_id)
        if job is not None and not job.finished:
            store.finish_job(job_id, failed_result(job, str(exc)))


# ---------------------------------------------------------------------------
# Endpoints: Compositions
# ---------------------------------------------------------------------------


@app.post(
    "/compositions",
    response_model=CompositionResponse,
    status_code=201,
    tags=["compositions"],
    summary="Create a draft composition",
    description=(
        "Create a composition from a narration script. Pass audioRef and "
        "audioDuration to reuse existing narration instead of synthesizing it."
    ),
    responses={422: {"model": ErrorResponse, "description": "Invalid request body"}},
)
async def create_composition(request: CompositionCreateRequest) -> CompositionResponse:
    customization = Customization.from_dict(
        request.customization.to_payload() if request.customization else None
    )
    composition = composition_store.create(
        script=request.script,
        voice=request.voice,
        aspect=request.aspect,
        audio_ref=request.audio_ref,
        audio_duration_s=request.audio_duration,
        customization=customization,
    )
    return _composition_to_response(composition)


@app.get(
    "/compositions",
    response_model=List[CompositionResponse],
    tags=["compositions"],
    summary="List compositions",
    description="Every composition this server holds, in creation order.",
)
async def list_compositions() -> List[CompositionResponse]:
    return [_composition_to_response(composition) for composition in composition_store.list_all()]


@app.get(
    "/compositions/{composition_id}",
    response_model=CompositionResponse,
    tags=["compositions"],
    summary="Get a composition",
    description="Returns the composition with its current status, segments and captions.",
    responses={404: {"model": ErrorResponse, "description": "Composition not found"}},
)
async def get_composition(composition_id: str) -> CompositionResponse:
    return _composition_to_response(_get_composition(composition_id))


@app.put(
    "/compositions/{composition_id}/customization",
    response_model=CompositionResponse,
    tags=["compositions"],
    summary="Replace the caption customization",
    description="Replaces the caption look. Takes effect in the next descriptor or subtitle export.",
    responses={404: {"model": ErrorResponse, "description": "Composition not found"}},
)
async def update_customization(composition_id: str, request: CustomizationModel) -> CompositionResponse:
    _get_composition(composition_id)
    composition = composition_store.update_customization(
        composition_id, Customization.from_dict(request.to_payload())
    )
    return _composition_to_response(composition)


@app.post(
    "/compositions/{composition_id}/generate",
    response_model=JobCreatedResponse,
    status_code=202,
    tags=["compositions"],
    summary="Start generation",
    description=(
        "Starts a background job that synthesizes narration, generates one "
        "visual per sentence and builds word-level captions. Poll "
        "GET /jobs/{id} for progress. A composition that already has "
        "segments completes immediately without new work."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Composition not found"},
        409: {"model": ErrorResponse, "description": "Composition is already being generated"},
        429: {"model": ErrorResponse, "description": "Too many concurrent jobs"},
        503: {"model": ErrorResponse, "description": "Generation is not configured"},
    },
)
async def generate_composition(
    composition_id: str,
    background_tasks: BackgroundTasks,
    request: Optional[GenerateRequest] = None,
) -> JobCreatedResponse:
    composition = _get_composition(composition_id)

    orchestrator = _orchestrator
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Generation is not configured on this server")

    if composition.status is CompositionStatus.PROCESSING or job_store.active_job_for(composition_id):
        raise HTTPException(
            status_code=409,
            detail="Composition {} is already being generated".format(composition_id),
        )

    listener_url = request.listener_url if request else None
    try:
        job = job_store.create_job(composition_id, listener_ref=listener_url)
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    background_tasks.add_task(_run_generation_sync, job.id, orchestrator, job_store)

    return JobCreatedResponse(id=job.id, composition_id=composition_id, stage=job.stage)


@app.get(
    "/compositions/{composition_id}/descriptor",
    tags=["compositions"],
    summary="Get the renderer descriptor",
    description="Returns the schema-valid descriptor the renderer consumes. Only for completed compositions.",
    responses={
        404: {"model": ErrorResponse, "description": "Composition not found"},
        409: {"model": ErrorResponse, "description": "Composition not completed"},
    },
)
async def get_descriptor(composition_id: str) -> Dict[str, Any]:
    composition = _get_composition(composition_id)
    if composition.status is not CompositionStatus.COMPLETED:
        raise HTTPException(
            status_code=409,
            detail="Composition is not completed (current status: {}).".format(composition.status.value),
        )
    try:
        descriptor = assemble_descriptor(
            composition_id=composition.id,
            script=composition.script,
            aspect=composition.aspect,
            segments=composition.segments,
            captions=composition.captions,
            audio_ref=composition.audio_ref,
            customization=composition.customization,
            audio_duration_s=composition.audio_duration_s,
        )
    except TimelineError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return descriptor.to_dict()


@app.get(
    "/compositions/{composition_id}/subtitles/{format_key}",
    tags=["compositions"],
    summary="Download subtitles",
    description=(
        "Exports the composition's captions as SRT, WebVTT or ASS karaoke. "
        "For ASS, pass ?style= with a preset name or caption ID; without it "
        "the style is derived from the composition's customization."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Composition or format not found"},
        409: {"model": ErrorResponse, "description": "Composition has no captions yet"},
    },
)
async def download_subtitles(
    composition_id: str,
    format_key: str,
    style: Optional[str] = None,
) -> Response:
    if format_key not in FORMATTERS:
        available = ", ".join(sorted(FORMATTERS.keys()))
        raise HTTPException(
            status_code=404,
            detail="Unknown subtitle format '{}'. Available: {}".format(format_key, available),
        )

    composition = _get_composition(composition_id)
    if not composition.captions:
        raise HTTPException(status_code=409, detail="Composition has no captions yet")

    if style is not None:
        subtitle_style = get_preset(style)
    else:
        subtitle_style = style_from_customization(composition.customization, composition.aspect)

    output = FORMATTERS[format_key]().format(composition.captions, subtitle_style)[0]
    filename = "{}{}".format(composition.id, output.suffix)
    return Response(
        content=output.content,
        media_type=output.media_type,
        headers={"Content-Disposition": 'attachment; filename="{}"'.format(filename)},
    )


# ---------------------------------------------------------------------------
# Endpoints: Jobs
# ---------------------------------------------------------------------------


@app.get(
    "/jobs",
    response_model=List[JobResponse],
    tags=["jobs"],
    summary="List generation jobs",
    description="All jobs still held by the server (finished jobs expire after the TTL), oldest first.",
)
async def list_jobs() -> List[JobResponse]:
    return [_job_to_response(job) for job in job_store.list_jobs()]


@app.get(
    "/jobs/{job_id}",
    response_model=JobResponse,
    tags=["jobs"],
    summary="Get generation job status",
    description="Poll this endpoint to follow a generation job's stage and percent.",
    responses={404: {"model": ErrorResponse, "description": "Job not found"}},
)
async def get_job(job_id: str) -> JobResponse:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return _job_to_response(job)


@app.get(
    "/jobs/{job_id}/events",
    response_model=List[ProgressEventModel],
    tags=["jobs"],
    summary="List progress events",
    description="Every progress event the job has published, oldest first.",
    responses={404: {"model": ErrorResponse, "description": "Job not found"}},
)
async def list_job_events(job_id: str) -> List[ProgressEventModel]:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return [ProgressEventModel(**event.to_dict()) for event in job.events.events]


@app.post(
    "/jobs/{job_id}/cancel",
    status_code=202,
    response_model=JobResponse,
    tags=["jobs"],
    summary="Cancel a generation job",
    description="Requests cancellation. The job stops at the next stage boundary and is marked failed.",
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
        409: {"model": ErrorResponse, "description": "Job already finished"},
    },
)
async def cancel_job(job_id: str) -> JobResponse:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    if not job_store.cancel_job(job_id):
        raise HTTPException(status_code=409, detail="Job already finished")
    return _job_to_response(job)


# ---------------------------------------------------------------------------
# Endpoints: Formats and health
# ---------------------------------------------------------------------------


@app.get(
    "/formats",
    response_model=List[FormatInfo],
    tags=["formats"],
    summary="List subtitle formats",
    description="All subtitle formats with their identifiers, names and file suffixes.",
)
async def list_formats() -> List[FormatInfo]:
    result = []
    for key, formatter_cls in sorted(FORMATTERS.items()):
        formatter = formatter_cls()
        outputs = formatter.format([])
        result.append(FormatInfo(
            key=key,
            name=formatter.name,
            suffix=outputs[0].suffix if outputs else "",
        ))
    return result


@app.get(
    "/styles",
    response_model=Dict[str, str],
    tags=["formats"],
    summary="List ASS style presets",
    description="Maps each preset name to its ASS style name. Numeric caption IDs are accepted as aliases.",
)
async def list_styles() -> Dict[str, str]:
    styles = {key: preset.name for key, preset in STYLE_PRESETS.items()}
    styles.update({caption_id: STYLE_PRESETS[name].name for caption_id, name in PRESET_IDS.items()})
    return styles


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check for load balancers.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__, generation_enabled=_orchestrator is not None)


def run_api(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Serve the API with uvicorn."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)
