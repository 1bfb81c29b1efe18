"""Configuration constants, aspect mappings, and .env loading.

WHY: Caption timing, segment caps, worker pool size and retry budgets are
tuning knobs that operators adjust per deployment (rate limits differ per
asset provider). Keeping them as plain module constants makes them easy to
find and override without touching logic.

HOW: python-dotenv loads the .env file on import. Every default can be
overridden by an environment variable of the same name. Aspect ratios map
to render dimensions in a plain dict.

RULES:
- All defaults can be overridden via environment variables
- ASPECT_DIMENSIONS keys are "W:H" strings; unknown aspects fall back to 9:16
- Defaults are conservative: 2 concurrent asset jobs, 3 attempts per call
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the process is started)
load_dotenv()

# ---------------------------------------------------------------------------
# Caption timing
# ---------------------------------------------------------------------------

DEFAULT_BATCH_SIZE = int(os.getenv("REEL_BATCH_SIZE", "3"))
"""Words shown together in one on-screen caption."""

MIN_CAPTION_DURATION_MS = int(os.getenv("REEL_MIN_CAPTION_MS", "500"))

SECONDS_PER_WORD_ESTIMATE = float(os.getenv("REEL_SECONDS_PER_WORD", "0.6"))
"""Narration pace used when no audio duration is known."""

MIN_ESTIMATED_DURATION_S = 2.0

# ---------------------------------------------------------------------------
# Segment timeline
# ---------------------------------------------------------------------------

MAX_SEGMENTS = int(os.getenv("REEL_MAX_SEGMENTS", "8"))
DEFAULT_ANIMATION = "fade"

# ---------------------------------------------------------------------------
# Asset generation and external calls
# ---------------------------------------------------------------------------

ASSET_CONCURRENCY = int(os.getenv("REEL_ASSET_CONCURRENCY", "2"))
INTER_BATCH_DELAY_S = float(os.getenv("REEL_INTER_BATCH_DELAY_S", "0.2"))

RETRY_MAX_ATTEMPTS = int(os.getenv("REEL_RETRY_ATTEMPTS", "3"))
RETRY_INITIAL_DELAY_S = float(os.getenv("REEL_RETRY_INITIAL_DELAY_S", "0.5"))
RETRY_BACKOFF_FACTOR = float(os.getenv("REEL_RETRY_BACKOFF", "2.0"))
RETRY_MAX_DELAY_S = float(os.getenv("REEL_RETRY_MAX_DELAY_S", "8.0"))
RETRY_ATTEMPT_TIMEOUT_S = float(os.getenv("REEL_ATTEMPT_TIMEOUT_S", "120"))
"""Upper bound on a single external call; no attempt waits forever."""

PLACEHOLDER_URL_TEMPLATE = os.getenv(
    "REEL_PLACEHOLDER_URL",
    "https://via.placeholder.com/{width}x{height}/000000/FFFFFF?text={text}",
)
"""Media reference substituted when an asset cannot be generated."""

WEBHOOK_TIMEOUT_S = float(os.getenv("REEL_WEBHOOK_TIMEOUT_S", "5.0"))

# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

JOB_TTL_SECONDS = int(os.getenv("REEL_JOB_TTL_SECONDS", "3600"))

# ---------------------------------------------------------------------------
# Render geometry
# ---------------------------------------------------------------------------

DEFAULT_ASPECT = "9:16"
DEFAULT_FPS = 30

ASPECT_DIMENSIONS: dict[str, tuple[int, int]] = {
    "9:16": (1080, 1920),
    "16:9": (1920, 1080),
    "1:1": (1080, 1080),
}


def dimensions_for_aspect(aspect: str | None) -> tuple[int, int]:
    """Return (width, height) in pixels for an aspect string.

    Unknown or missing aspects render as vertical 9:16.
    """
    if not aspect:
        return ASPECT_DIMENSIONS[DEFAULT_ASPECT]
    return ASPECT_DIMENSIONS.get(aspect, ASPECT_DIMENSIONS[DEFAULT_ASPECT])
