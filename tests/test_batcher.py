"""Tests for caption batching."""

from __future__ import annotations

import random

from reel_composer.core.batcher import batch_words, flatten_batches
from reel_composer.core.ir import CaptionBatch, CaptionToken, WordTiming


class TestBatchWords:
    def test_two_word_batches(self, three_words):
        batches = batch_words(three_words, 2)
        assert [(b.text, b.start_ms, b.end_ms) for b in batches] == [
            ("Hello world", 0, 1000),
            ("today", 1100, 1600),
        ]

    def test_tokens_keep_word_windows(self, three_words):
        first = batch_words(three_words, 2)[0]
        assert first.tokens == (
            CaptionToken("Hello", 0, 500),
            CaptionToken("world", 500, 1000),
        )

    def test_every_word_in_exactly_one_batch(self, three_words):
        for size in (1, 2, 3, 10):
            batches = batch_words(three_words, size)
            assert [t.text for b in batches for t in b.tokens] == ["Hello", "world", "today"]

    def test_batch_never_exceeds_size(self):
        words = [WordTiming(f"w{i}", i * 100, i * 100 + 90) for i in range(10)]
        batches = batch_words(words, 3)
        assert [len(b.tokens) for b in batches] == [3, 3, 3, 1]

    def test_non_positive_size_means_one_word(self, three_words):
        assert len(batch_words(three_words, 0)) == 3
        assert len(batch_words(three_words, -4)) == 3

    def test_ids_are_indexed(self, three_words):
        batches = batch_words(three_words, 1)
        assert [b.id for b in batches] == ["caption-0", "caption-1", "caption-2"]

    def test_custom_id_prefix(self, three_words):
        batches = batch_words(three_words, 2, id_prefix="cap")
        assert batches[1].id == "cap-1"

    def test_deterministic(self, three_words):
        assert batch_words(three_words, 2) == batch_words(three_words, 2)

    def test_empty_input(self):
        assert batch_words([], 3) == []


class TestFlattenBatches:
    def test_recovers_word_sequence(self, three_words):
        assert flatten_batches(batch_words(three_words, 2)) == three_words

    def test_tokenless_batch_becomes_one_word(self):
        batch = CaptionBatch(id="c", text="whole line", start_ms=0, end_ms=800)
        assert flatten_batches([batch]) == [WordTiming("whole line", 0, 800)]


class TestRandomWordLists:
    """Batching partitions any word list for any batch size."""

    def test_partition_and_windows(self):
        for seed in range(200):
            rng = random.Random(seed)
            words = []
            cursor = 0
            for i in range(rng.randint(0, 40)):
                cursor += rng.randint(0, 300)
                length = rng.randint(0, 900)
                words.append(WordTiming(f"w{i}", cursor, cursor + length))
                cursor += length
            size = rng.randint(-2, 8)

            batches = batch_words(words, size)

            assert flatten_batches(batches) == words, seed
            assert all(len(b.tokens) <= max(1, size) for b in batches), seed
            assert all(b.tokens for b in batches), seed
            for batch in batches:
                assert batch.start_ms == batch.tokens[0].from_ms, seed
                assert batch.end_ms == batch.tokens[-1].to_ms, seed
