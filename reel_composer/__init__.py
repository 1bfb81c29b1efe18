"""Reel Composer — caption timing and video-segment composition engine.

WHY: Narrated short-form videos need three things lined up on one clock:
word-highlighted captions, a subtitle timeline that never overlaps, and a
sequence of visuals spanning the narration. An external renderer only wants
one flat, immutable description of all of it.

HOW: Pure core transforms (normalize → batch → correct → serialize, and
sequence → assemble) plus an async orchestrator that drives the external
collaborators (TTS, asset generation, speech timing, storage) and reports
progress to a caller-supplied sink.

RULES:
- Core functions are pure and never mutate their inputs
- The composition descriptor is the only contract handed to the renderer
- Transports (HTTP, webhooks, CLI) are adapters outside the core
"""

__version__ = "0.1.0"
