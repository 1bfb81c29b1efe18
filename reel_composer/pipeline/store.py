"""Composition persistence boundary and the in-memory implementation.

WHY: The composition is the durable record a job fills in. Production
deployments keep it in a database; tests and the single-process server
keep it in memory. The orchestrator needs the same operations either way,
most importantly an atomic claim so two jobs never fill the same record.

HOW: CompositionStore is an ABC. InMemoryCompositionStore keeps frozen
Composition values in a dict guarded by a threading.Lock; every update
builds a new value with dataclasses.replace() and swaps it in.

RULES:
- claim_for_processing() is compare-and-set: draft → processing or False
- Status only moves forward; anything else raises InvalidStatusTransition
- replace_segments() / replace_captions() swap the whole tuple at once
- Unknown IDs raise CompositionNotFound
- Last write wins for all other fields
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from reel_composer.core.ir import (
    CaptionBatch,
    Composition,
    CompositionStatus,
    Customization,
    Segment,
)
from reel_composer.errors import CompositionNotFound, InvalidStatusTransition

logger = logging.getLogger(__name__)


class CompositionStore(ABC):
    """Operations the generation pipeline needs from durable storage."""

    @abstractmethod
    def get(self, composition_id: str) -> Composition:
        """Return the composition or raise CompositionNotFound."""

    @abstractmethod
    def create(
        self,
        script: str,
        voice: Optional[str] = None,
        aspect: Optional[str] = None,
        audio_ref: Optional[str] = None,
        audio_duration_s: Optional[float] = None,
        customization: Optional[Customization] = None,
        composition_id: Optional[str] = None,
    ) -> Composition:
        """Create a new draft composition."""

    @abstractmethod
    def claim_for_processing(self, composition_id: str) -> bool:
        """Atomically move draft → processing; False if not in draft."""

    @abstractmethod
    def update_status(
        self,
        composition_id: str,
        status: CompositionStatus,
        error: Optional[str] = None,
        final_video_ref: Optional[str] = None,
    ) -> Composition:
        """Move the composition forward to ``status``."""

    @abstractmethod
    def update_audio(
        self, composition_id: str, audio_ref: str, duration_s: Optional[float]
    ) -> Composition:
        """Record the narration audio and its duration."""

    @abstractmethod
    def replace_segments(self, composition_id: str, segments: Sequence[Segment]) -> Composition:
        """Replace every segment of the composition."""

    @abstractmethod
    def replace_captions(self, composition_id: str, captions: Sequence[CaptionBatch]) -> Composition:
        """Replace every caption of the composition."""

    @abstractmethod
    def update_customization(
        self, composition_id: str, customization: Customization
    ) -> Composition:
        """Replace the caption customization."""


class InMemoryCompositionStore(CompositionStore):
    """Thread-safe dict-backed store used by the server and the tests."""

    def __init__(self) -> None:
        self._items: Dict[str, Composition] = {}
        self._lock = threading.Lock()

    def _require(self, composition_id: str) -> Composition:
        composition = self._items.get(composition_id)
        if composition is None:
            raise CompositionNotFound(composition_id)
        return composition

    def _apply(self, composition_id: str, **changes) -> Composition:
        with self._lock:
            updated = dataclasses.replace(self._require(composition_id), **changes)
            self._items[composition_id] = updated
            return updated

    def get(self, composition_id: str) -> Composition:
        with self._lock:
            return self._require(composition_id)

    def list_all(self) -> List[Composition]:
        """All compositions in creation order."""
        with self._lock:
            return list(self._items.values())

    def create(
        self,
        script: str,
        voice: Optional[str] = None,
        aspect: Optional[str] = None,
        audio_ref: Optional[str] = None,
        audio_duration_s: Optional[float] = None,
        customization: Optional[Customization] = None,
        composition_id: Optional[str] = None,
    ) -> Composition:
        composition = Composition(
            id=composition_id or uuid.uuid4().hex,
            script=script,
            voice=voice,
            audio_ref=audio_ref,
            audio_duration_s=audio_duration_s,
            customization=customization or Customization(),
        )
        if aspect:
            composition = dataclasses.replace(composition, aspect=aspect)
        with self._lock:
            if composition.id in self._items:
                raise ValueError(f"Composition already exists: {composition.id}")
            self._items[composition.id] = composition
        logger.info("Created composition %s", composition.id)
        return composition

    def claim_for_processing(self, composition_id: str) -> bool:
        with self._lock:
            composition = self._require(composition_id)
            if composition.status is not CompositionStatus.DRAFT:
                return False
            self._items[composition_id] = dataclasses.replace(
                composition, status=CompositionStatus.PROCESSING
            )
            return True

    def update_status(
        self,
        composition_id: str,
        status: CompositionStatus,
        error: Optional[str] = None,
        final_video_ref: Optional[str] = None,
    ) -> Composition:
        with self._lock:
            composition = self._require(composition_id)
            if not composition.status.can_transition_to(status):
                raise InvalidStatusTransition(
                    f"Composition {composition_id}: cannot move from "
                    f"{composition.status.value} to {status.value}"
                )
            changes = {"status": status}
            if status is CompositionStatus.FAILED:
                changes["error"] = error
            if final_video_ref is not None:
                changes["final_video_ref"] = final_video_ref
            updated = dataclasses.replace(composition, **changes)
            self._items[composition_id] = updated
            return updated

    def update_audio(
        self, composition_id: str, audio_ref: str, duration_s: Optional[float]
    ) -> Composition:
        return self._apply(composition_id, audio_ref=audio_ref, audio_duration_s=duration_s)

    def replace_segments(self, composition_id: str, segments: Sequence[Segment]) -> Composition:
        return self._apply(composition_id, segments=tuple(segments))

    def replace_captions(self, composition_id: str, captions: Sequence[CaptionBatch]) -> Composition:
        return self._apply(composition_id, captions=tuple(captions))

    def update_customization(
        self, composition_id: str, customization: Customization
    ) -> Composition:
        return self._apply(composition_id, customization=customization)
