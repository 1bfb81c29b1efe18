"""Shared test fixtures for the reel_composer test suite.

WHY: The pipeline, server and CLI tests all need the same sample word
timings and the same fake collaborators. Centralizing them here keeps the
tests short and makes sure nothing ever reaches a real provider.

HOW: Plain fake classes implement the collaborator ABCs and record their
calls. Fixtures hand out fresh instances plus orchestrator settings with
zero delays so async tests run instantly.

RULES:
- No network access anywhere in the test suite
- Fakes are deterministic: the same request gives the same media reference
- Every fixture returns a new instance (no shared mutable state)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

import pytest

from reel_composer.core.ir import CaptionBatch, CaptionToken, WordTiming
from reel_composer.core.normalizer import TimingResult
from reel_composer.pipeline.collaborators import (
    AssetGenerator,
    AssetRequest,
    AssetUploader,
    NarrationSynthesizer,
    SpeechTimingProvider,
    SynthesizedAudio,
)
from reel_composer.pipeline.orchestrator import OrchestratorSettings
from reel_composer.pipeline.retry import RetryPolicy
from reel_composer.pipeline.store import InMemoryCompositionStore

# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------

SAMPLE_SCRIPT = (
    "Coffee was discovered in Ethiopia. A goat herder noticed his goats dancing. "
    "Monks turned the berries into a drink. It spread to Yemen and beyond. "
    "Today billions of cups are poured every day."
)

SAMPLE_WORDS: List[Dict[str, Any]] = [
    {"word": "Coffee", "start": 0.0, "end": 0.4, "confidence": 0.98},
    {"word": "was", "start": 0.4, "end": 0.6},
    {"word": "discovered", "start": 0.6, "end": 1.2},
    {"word": "in", "start": 1.2, "end": 1.3},
    {"word": "Ethiopia", "start": 1.3, "end": 2.0},
    {"word": "A", "start": 2.3, "end": 2.4},
    {"word": "goat", "start": 2.4, "end": 2.7},
]


@pytest.fixture
def sample_script() -> str:
    return SAMPLE_SCRIPT


@pytest.fixture
def sample_words() -> List[Dict[str, Any]]:
    return [dict(w) for w in SAMPLE_WORDS]


@pytest.fixture
def three_words() -> List[WordTiming]:
    return [
        WordTiming("Hello", 0, 500),
        WordTiming("world", 500, 1000),
        WordTiming("today", 1100, 1600),
    ]


@pytest.fixture
def make_caption():
    """Factory for single-word caption batches."""
    def _make(start_ms: int, end_ms: int, text: str = "word", index: int = 0) -> CaptionBatch:
        return CaptionBatch(
            id=f"caption-{index}",
            text=text,
            start_ms=start_ms,
            end_ms=end_ms,
            tokens=(CaptionToken(text, start_ms, end_ms),),
        )
    return _make


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeSynthesizer(NarrationSynthesizer):
    def __init__(self, duration_s: Optional[float] = 10.0, failures: int = 0) -> None:
        self.duration_s = duration_s
        self.failures = failures
        self.calls: List[tuple] = []

    async def synthesize(self, script: str, voice: Optional[str]) -> SynthesizedAudio:
        self.calls.append((script, voice))
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("TTS provider unavailable")
        return SynthesizedAudio(audio_ref="https://audio.test/narration.mp3", duration_s=self.duration_s)


class FakeAssetGenerator(AssetGenerator):
    def __init__(self, failing_orders: Optional[Set[int]] = None) -> None:
        self.failing_orders = failing_orders or set()
        self.requests: List[AssetRequest] = []

    async def generate(self, request: AssetRequest) -> str:
        self.requests.append(request)
        if request.order in self.failing_orders:
            raise RuntimeError(f"image model rejected prompt {request.order}")
        return f"https://assets.test/{request.order}.png"


class FakeUploader(AssetUploader):
    def __init__(self) -> None:
        self.uploaded: List[str] = []

    async def upload(self, media_ref: str) -> str:
        self.uploaded.append(media_ref)
        return media_ref.replace("https://assets.test/", "https://cdn.test/")


class FakeTimingProvider(SpeechTimingProvider):
    def __init__(self, result: Optional[TimingResult] = None, fail: bool = False) -> None:
        self.result = result if result is not None else TimingResult(words=[dict(w) for w in SAMPLE_WORDS])
        self.fail = fail
        self.calls: List[str] = []

    async def transcribe(self, audio_ref: str) -> TimingResult:
        self.calls.append(audio_ref)
        if self.fail:
            raise TimeoutError("transcription timed out")
        return self.result


@pytest.fixture
def store() -> InMemoryCompositionStore:
    return InMemoryCompositionStore()


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()


@pytest.fixture
def asset_generator() -> FakeAssetGenerator:
    return FakeAssetGenerator()


@pytest.fixture
def timing_provider() -> FakeTimingProvider:
    return FakeTimingProvider()


@pytest.fixture
def fast_settings() -> OrchestratorSettings:
    """Settings with no waiting between attempts or visuals."""
    return OrchestratorSettings(
        asset_concurrency=2,
        inter_batch_delay_s=0.0,
        retry_policy=RetryPolicy(max_attempts=2, initial_delay_s=0.0, attempt_timeout_s=None),
    )
