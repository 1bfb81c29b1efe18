"""Boundary interfaces for the external services a generation job calls.

WHY: Speech-to-text, text-to-speech, image generation and object storage
are all swappable providers. The orchestrator only needs to know what each
one does, not how, so tests can plug in fakes and deployments can plug in
whatever provider they pay for.

HOW: One ABC per collaborator with a single async method. Request and
result types are small dataclasses.

RULES:
- Implementations raise on failure; retrying is the orchestrator's job
- AssetGenerator returns a media reference (URL or storage key)
- AssetUploader is optional; without it the generated reference is final
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from reel_composer.core.normalizer import TimingResult


@dataclass(frozen=True)
class SynthesizedAudio:
    """Narration audio produced by a synthesizer."""

    audio_ref: str
    duration_s: Optional[float] = None


@dataclass(frozen=True)
class AssetRequest:
    """One visual to generate for a segment.

    Attributes:
        prompt: Text describing the visual (the segment's narration text).
        width: Target width in pixels.
        height: Target height in pixels.
        order: Segment slot the asset belongs to.
        style: Optional visual style hint passed through to the provider.
    """

    prompt: str
    width: int
    height: int
    order: int
    style: Optional[str] = None


class SpeechTimingProvider(ABC):
    """Produces word-level (or block-level) timing for narration audio."""

    @abstractmethod
    async def transcribe(self, audio_ref: str) -> TimingResult:
        """Return timing for the audio at ``audio_ref``."""


class NarrationSynthesizer(ABC):
    """Turns a script into narration audio."""

    @abstractmethod
    async def synthesize(self, script: str, voice: Optional[str]) -> SynthesizedAudio:
        """Synthesize ``script`` with ``voice`` and return the stored audio."""


class AssetGenerator(ABC):
    """Generates one visual asset per request."""

    @abstractmethod
    async def generate(self, request: AssetRequest) -> str:
        """Return a media reference for the generated asset."""


class AssetUploader(ABC):
    """Copies a generated asset to durable storage."""

    @abstractmethod
    async def upload(self, media_ref: str) -> str:
        """Return the durable reference for ``media_ref``."""
