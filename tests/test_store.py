"""Tests for the in-memory composition store."""

from __future__ import annotations

import threading

import pytest

from reel_composer.core.ir import CompositionStatus, Customization, Segment
from reel_composer.errors import CompositionNotFound, InvalidStatusTransition


class TestCreateAndGet:
    def test_create_defaults(self, store):
        composition = store.create("A script.")
        assert composition.status is CompositionStatus.DRAFT
        assert composition.aspect == "9:16"
        assert composition.segments == ()
        assert len(composition.id) == 32
        assert store.get(composition.id) == composition

    def test_create_with_explicit_fields(self, store):
        composition = store.create(
            "A script.", voice="nova", aspect="16:9",
            audio_ref="https://audio.test/a.mp3", audio_duration_s=4.5,
            composition_id="fixed",
        )
        assert composition.id == "fixed"
        assert composition.aspect == "16:9"
        assert composition.audio_duration_s == 4.5

    def test_duplicate_id_rejected(self, store):
        store.create("one", composition_id="same")
        with pytest.raises(ValueError):
            store.create("two", composition_id="same")

    def test_unknown_id(self, store):
        with pytest.raises(CompositionNotFound):
            store.get("missing")
        with pytest.raises(LookupError):
            store.replace_segments("missing", [])

    def test_list_all(self, store):
        store.create("one")
        store.create("two")
        assert sorted(c.script for c in store.list_all()) == ["one", "two"]


class TestStatus:
    def test_claim_is_compare_and_set(self, store):
        composition = store.create("A script.")
        assert store.claim_for_processing(composition.id) is True
        assert store.claim_for_processing(composition.id) is False
        assert store.get(composition.id).status is CompositionStatus.PROCESSING

    def test_concurrent_claims_have_one_winner(self, store):
        composition = store.create("A script.")
        results = []
        barrier = threading.Barrier(8)

        def claim():
            barrier.wait()
            results.append(store.claim_for_processing(composition.id))

        threads = [threading.Thread(target=claim) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results.count(True) == 1

    def test_failed_records_error(self, store):
        composition = store.create("A script.")
        store.claim_for_processing(composition.id)
        failed = store.update_status(composition.id, CompositionStatus.FAILED, error="boom")
        assert failed.status is CompositionStatus.FAILED
        assert failed.error == "boom"

    def test_completed_ignores_error(self, store):
        composition = store.create("A script.")
        store.claim_for_processing(composition.id)
        done = store.update_status(composition.id, CompositionStatus.COMPLETED, error="ignored")
        assert done.error is None

    def test_cannot_skip_processing(self, store):
        composition = store.create("A script.")
        with pytest.raises(InvalidStatusTransition):
            store.update_status(composition.id, CompositionStatus.COMPLETED)

    def test_terminal_status_is_final(self, store):
        composition = store.create("A script.")
        store.claim_for_processing(composition.id)
        store.update_status(composition.id, CompositionStatus.COMPLETED)
        with pytest.raises(InvalidStatusTransition):
            store.update_status(composition.id, CompositionStatus.PROCESSING)


class TestUpdates:
    def test_replace_segments_swaps_whole_tuple(self, store):
        composition = store.create("A script.")
        store.replace_segments(composition.id, [Segment("segment-0", "a", 0.0, 1.0)])
        updated = store.replace_segments(composition.id, [Segment("segment-0", "b", 0.0, 2.0)])
        assert [s.text for s in updated.segments] == ["b"]
        assert isinstance(updated.segments, tuple)

    def test_replace_captions(self, store, make_caption):
        composition = store.create("A script.")
        updated = store.replace_captions(composition.id, [make_caption(0, 500)])
        assert len(updated.captions) == 1

    def test_update_audio(self, store):
        composition = store.create("A script.")
        updated = store.update_audio(composition.id, "https://audio.test/a.mp3", 7.5)
        assert (updated.audio_ref, updated.audio_duration_s) == ("https://audio.test/a.mp3", 7.5)

    def test_update_customization(self, store):
        composition = store.create("A script.")
        updated = store.update_customization(composition.id, Customization(words_per_batch=2))
        assert store.get(composition.id).customization.words_per_batch == 2
        assert updated.customization == store.get(composition.id).customization

    def test_stored_values_are_not_shared(self, store):
        composition = store.create("A script.")
        store.update_audio(composition.id, "https://audio.test/a.mp3", 1.0)
        assert composition.audio_ref is None
