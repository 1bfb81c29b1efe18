"""Unit tests for composition descriptor assembly.

WHY: The descriptor is the only thing the renderer ever sees. A missing key,
a caption with no duration or a wrong frame count produces a broken or
truncated video, long after the job has reported success.

HOW: Tests cover each assembly rule:
  - Frame count from audio duration, segment timeline, or the fallback
  - Segment ordering and timeline errors
  - Dropping captions with an empty window
  - camelCase wire shape and JSON Schema validation

RULES:
- Every assembled descriptor must validate against the bundled schema
"""

from __future__ import annotations

import json

import jsonschema
import pytest

from reel_composer.core.assembler import (
    assemble_descriptor,
    compute_duration_in_frames,
    validate_descriptor,
)
from reel_composer.core.batcher import batch_words
from reel_composer.core.ir import CaptionBackground, Customization, Segment
from reel_composer.core.sequencer import sequence_segments
from reel_composer.errors import TimelineError


@pytest.fixture
def segments():
    return sequence_segments(["First line", "Second line"], 4.0)


@pytest.fixture
def captions(three_words):
    return batch_words(three_words, 2)


def _assemble(segments, captions, **kwargs):
    params = dict(
        composition_id="comp-1",
        script="First line. Second line.",
        aspect="9:16",
        segments=segments,
        captions=captions,
        audio_ref="https://audio.test/narration.mp3",
    )
    params.update(kwargs)
    return assemble_descriptor(**params)


class TestDurationInFrames:
    def test_from_audio_duration(self, segments):
        assert compute_duration_in_frames(10.0, segments, 30) == 300
        assert compute_duration_in_frames(10.01, segments, 30) == 301

    def test_from_last_segment_end(self, segments):
        assert compute_duration_in_frames(None, segments, 30) == 120
        long_segment = [Segment("s", "x", 0.0, 12.5)]
        assert compute_duration_in_frames(None, long_segment, 30) == 375

    def test_fallback_without_audio_or_segments(self):
        assert compute_duration_in_frames(None, [], 30) == 300


class TestAssembleDescriptor:
    def test_geometry_from_aspect(self, segments, captions):
        descriptor = _assemble(segments, captions)
        assert (descriptor.width, descriptor.height) == (1080, 1920)
        landscape = _assemble(segments, captions, aspect="16:9")
        assert (landscape.width, landscape.height) == (1920, 1080)

    def test_audio_is_music_url(self, segments, captions):
        data = _assemble(segments, captions).to_dict()
        assert data["musicUrl"] == "https://audio.test/narration.mp3"

    def test_frame_count_uses_audio_duration(self, segments, captions):
        descriptor = _assemble(segments, captions, audio_duration_s=4.0)
        assert descriptor.duration_in_frames == 120

    def test_segments_sorted_by_order(self, segments, captions):
        descriptor = _assemble(list(reversed(segments)), captions)
        assert [s.order for s in descriptor.segments] == [0, 1]

    def test_segment_without_duration_raises(self, captions):
        bad = [Segment("segment-0", "x", 2.0, 2.0)]
        with pytest.raises(TimelineError):
            _assemble(bad, captions)

    def test_negative_segment_start_raises(self, captions):
        bad = [Segment("segment-0", "x", -1.0, 2.0)]
        with pytest.raises(TimelineError):
            _assemble(bad, captions)

    def test_empty_window_captions_dropped(self, segments, captions, make_caption):
        broken = make_caption(2000, 2000, "ghost", 9)
        descriptor = _assemble(segments, list(captions) + [broken])
        assert [c.text for c in descriptor.captions] == ["Hello world", "today"]

    def test_default_customization(self, segments, captions):
        data = _assemble(segments, captions).to_dict()
        assert data["customization"]["wordsPerBatch"] == 3
        assert data["customization"]["activeWordColor"] == "#ffffff"

    def test_wire_shape(self, segments, captions):
        data = _assemble(segments, captions).to_dict()
        assert set(data) == {
            "id", "segments", "captions", "musicUrl", "script", "aspect",
            "width", "height", "fps", "durationInFrames", "customization",
        }
        assert data["segments"][0] == {
            "id": "segment-0",
            "text": "First line",
            "start": 0.0,
            "end": 2.0,
            "mediaUrl": None,
            "animation": "fade",
            "order": 0,
        }
        assert data["captions"][0]["tokens"][1] == {"text": "world", "fromMs": 500, "toMs": 1000}

    def test_background_serialized(self, segments, captions):
        customization = Customization(background=CaptionBackground(horizontal_align="left"))
        data = _assemble(segments, captions, customization=customization).to_dict()
        assert data["customization"]["background"]["captionHorizontalAlign"] == "left"

    def test_to_json_round_trips(self, segments, captions):
        descriptor = _assemble(segments, captions)
        assert json.loads(descriptor.to_json()) == descriptor.to_dict()


class TestSchema:
    def test_assembled_descriptor_is_valid(self, segments, captions):
        validate_descriptor(_assemble(segments, captions).to_dict())

    def test_missing_key_rejected(self, segments, captions):
        data = _assemble(segments, captions).to_dict()
        del data["durationInFrames"]
        with pytest.raises(jsonschema.ValidationError):
            validate_descriptor(data)

    def test_bad_music_volume_rejected(self, segments, captions):
        with pytest.raises(jsonschema.ValidationError):
            _assemble(segments, captions, customization=Customization(music_volume=11))

    def test_bad_alignment_rejected(self, segments, captions):
        customization = Customization(background=CaptionBackground(horizontal_align="diagonal"))
        with pytest.raises(jsonschema.ValidationError):
            _assemble(segments, captions, customization=customization)
