"""Core timing, sequencing and assembly modules.

WHY: The core package is the pure heart of the composer — everything that
turns word timings, a script and media references into a renderer-ready
descriptor. It has no network access and no job state, so every piece can
be tested with plain values.

HOW: ir.py defines the data structures. normalizer.py turns provider
timing into WordTimings, batcher.py groups them into captions, timing.py
validates and corrects the caption timeline, sequencer.py lays out visual
segments, and assembler.py combines everything into the descriptor.

RULES:
- Pure functions and frozen values only — no I/O, no shared state
- The descriptor shape is the renderer contract — change with care
"""
