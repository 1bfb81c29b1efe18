"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: One model per request or response body. Customization fields use
the renderer's camelCase names as aliases so clients can send the same
JSON the renderer reads; snake_case names are accepted too.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Responses expose composition data in the renderer's camelCase shape
- Response models never expose tracebacks or internal objects
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from reel_composer.config import DEFAULT_ASPECT


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CustomizationModel(BaseModel):
    """Caption look and audio mix settings.

    RULES:
    - Omitted fields fall back to the renderer defaults
    - musicVolume is on a 0–10 scale
    - background may be nested or sent as flat caption* keys
    """

    model_config = {"populate_by_name": True, "extra": "allow"}

    font_size: Optional[int] = Field(default=None, alias="fontSize", gt=0, description="Caption font size in pixels.")
    font_weight: Optional[int] = Field(default=None, alias="fontWeight", description="CSS font weight.")
    font_family: Optional[str] = Field(default=None, alias="fontFamily", description="Caption font family.")
    text_transform: Optional[str] = Field(
        default=None, alias="textTransform", description="CSS text transform, e.g. 'uppercase'."
    )
    active_word_color: Optional[str] = Field(
        default=None, alias="activeWordColor", description="Colour of the word being spoken."
    )
    inactive_word_color: Optional[str] = Field(
        default=None, alias="inactiveWordColor", description="Colour of the other words."
    )
    position_from_bottom: Optional[float] = Field(
        default=None, alias="positionFromBottom", description="Caption offset from the bottom, percent of height."
    )
    words_per_batch: Optional[int] = Field(
        default=None, alias="wordsPerBatch", ge=1, description="Words shown together in one caption."
    )
    show_emojis: Optional[bool] = Field(default=None, alias="showEmojis", description="Render emojis in captions.")
    music_volume: Optional[float] = Field(
        default=None, alias="musicVolume", ge=0, le=10, description="Soundtrack volume, 0–10."
    )
    background: Optional[Dict[str, Any]] = Field(
        default=None, description="Optional caption box styling (caption* keys)."
    )

    def to_payload(self) -> Dict[str, Any]:
        """camelCase dict accepted by Customization.from_dict."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CompositionCreateRequest(BaseModel):
    """Body of POST /compositions."""

    script: str = Field(min_length=1, description="Narration script.")
    voice: Optional[str] = Field(default=None, description="Voice identifier for narration synthesis.")
    aspect: str = Field(default=DEFAULT_ASPECT, description="Aspect ratio: '9:16', '16:9' or '1:1'.")
    audio_ref: Optional[str] = Field(
        default=None, alias="audioRef",
        description="Existing narration audio URL; skips synthesis when set.",
    )
    audio_duration: Optional[float] = Field(
        default=None, alias="audioDuration", gt=0, description="Duration of the existing audio in seconds."
    )
    customization: Optional[CustomizationModel] = Field(default=None, description="Caption look.")

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {
                    "script": "Coffee was discovered in Ethiopia. Goats found it first!",
                    "voice": "alloy",
                    "aspect": "9:16",
                    "customization": {"wordsPerBatch": 3, "activeWordColor": "#ffffff"},
                }
            ]
        },
    }


class GenerateRequest(BaseModel):
    """Body of POST /compositions/{id}/generate."""

    listener_url: Optional[str] = Field(
        default=None, alias="listenerUrl",
        description="Optional webhook URL that receives every progress event as JSON.",
    )

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class CompositionResponse(BaseModel):
    """A composition with its generated segments and captions."""

    id: str = Field(description="Composition identifier.")
    script: str = Field(description="Narration script.")
    voice: Optional[str] = Field(default=None, description="Voice identifier.")
    audio_ref: Optional[str] = Field(default=None, description="Narration audio URL.")
    audio_duration: Optional[float] = Field(default=None, description="Narration length in seconds.")
    aspect: str = Field(description="Aspect ratio.")
    status: str = Field(description="draft, processing, completed or failed.")
    error: Optional[str] = Field(default=None, description="Failure message when status is 'failed'.")
    segments: List[Dict[str, Any]] = Field(description="Segments in renderer shape.")
    captions: List[Dict[str, Any]] = Field(description="Caption batches in renderer shape.")
    customization: Dict[str, Any] = Field(description="Caption customization (camelCase).")


class JobCreatedResponse(BaseModel):
    """Returned when a generation job is accepted."""

    id: str = Field(description="Job identifier for polling.")
    composition_id: str = Field(description="Composition being generated.")
    stage: str = Field(description="Initial stage (always 'pending').")


class ProgressEventModel(BaseModel):
    """One recorded progress event."""

    step: str = Field(description="Stage name.")
    message: str = Field(description="Human-readable status line.")
    progress: int = Field(description="Percent complete, 0–100.")
    composition: Optional[Dict[str, Any]] = Field(default=None, description="Composition summary or descriptor.")
    error: Optional[str] = Field(default=None, description="Failure message on 'failed' events.")


class JobResponse(BaseModel):
    """Generation job status.

    RULES:
    - stage is 'pending' until the first progress event
    - error is only set when stage is 'failed'
    - descriptor is only set when stage is 'completed' after a full run
    """

    id: str = Field(description="Job identifier.")
    composition_id: str = Field(description="Composition being generated.")
    stage: str = Field(description="Current stage.")
    progress: int = Field(description="Percent complete, 0–100.")
    message: str = Field(description="Last status line.")
    error: Optional[str] = Field(default=None, description="Failure message.")
    failed_stage: Optional[str] = Field(default=None, description="Stage that was running when the job failed.")
    created_at: float = Field(description="Job creation timestamp (Unix epoch seconds).")
    descriptor: Optional[Dict[str, Any]] = Field(default=None, description="Renderer descriptor once completed.")


class FormatInfo(BaseModel):
    """Description of an available subtitle format."""

    key: str = Field(description="Format identifier used in URLs and CLI flags.")
    name: str = Field(description="Human-readable format name.")
    suffix: str = Field(description="File suffix produced (e.g. '-captions.srt').")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
    generation_enabled: bool = Field(description="Whether generation collaborators are configured.")
