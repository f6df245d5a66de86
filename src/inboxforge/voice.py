"""Summary: Voice profile construction and refinement.

Importance: Folds batches of user corrections back into the style guidance of future prompts.
Alternatives: Retrain a model per business on sent mail.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone

from inboxforge.corrections import extract_signals, strip_html
from inboxforge.errors import LearningRaceError
from inboxforge.models import (
    SIGNAL_GROUPS,
    STYLE_SIGNAL_NAMES,
    DraftCorrectionRecord,
    LearningStatus,
    StyleDelta,
    VoiceProfile,
)
from inboxforge.storage.sqlite_store import SqliteStore

logger = logging.getLogger(__name__)

DEFAULT_REFINEMENT_THRESHOLD = 10
ITERATION_WEIGHT = 0.3
SAMPLE_WEIGHT = 0.02

# Stands in for a typical untouched AI draft when measuring baseline samples.
REFERENCE_DRAFT = (
    "Hi there,\n\n"
    "Thank you for reaching out. We have received your message and will follow up "
    "with the details shortly.\n\n"
    "Best regards"
)


def profile_confidence(iteration_count: int, sample_count: int) -> float:
    """Summary: Confidence that grows with iterations and corpus size but never reaches 1.

    Importance: More data raises confidence with diminishing returns.
    Alternatives: Use a linear ramp capped at 1.
    """

    exposure = ITERATION_WEIGHT * max(0, iteration_count) + SAMPLE_WEIGHT * max(0, sample_count)
    return round(1.0 - math.exp(-exposure), 4)


def group_signals(values: dict[str, float]) -> dict[str, dict[str, float]]:
    """Summary: Split a flat signal mapping into the profile's signal groups."""

    return {
        group: {name: round(float(values.get(name, 0.0)), 4) for name in names}
        for group, names in SIGNAL_GROUPS.items()
    }


def empty_profile(business_id: str) -> VoiceProfile:
    """Summary: Neutral profile used when a business has no baseline yet."""

    groups = group_signals({})
    return VoiceProfile(
        business_id=business_id,
        tone_signals=groups["tone"],
        formality_signals=groups["formality"],
        empathy_signals=groups["empathy"],
        structure_signals=groups["structure"],
        confidence=0.0,
        iteration_count=0,
        last_refined_at=None,
        sample_count=0,
    )


def build_baseline_profile(business_id: str, samples: list[str]) -> VoiceProfile:
    """Summary: Build an onboarding profile from emails the business already sent.

    Importance: Samples are measured against a reference draft, so the baseline
    lives in the same signed-delta space as later corrections.
    Alternatives: Start every business from a neutral profile.
    """

    texts = [strip_html(sample) for sample in samples]
    texts = [text for text in texts if text]
    if not texts:
        return empty_profile(business_id)
    reference = strip_html(REFERENCE_DRAFT)
    deltas = [extract_signals(reference, text) for text in texts]
    averages = _average(deltas)
    groups = group_signals(averages)
    return VoiceProfile(
        business_id=business_id,
        tone_signals=groups["tone"],
        formality_signals=groups["formality"],
        empathy_signals=groups["empathy"],
        structure_signals=groups["structure"],
        confidence=profile_confidence(0, len(texts)),
        iteration_count=0,
        last_refined_at=None,
        sample_count=len(texts),
    )


def merge_corrections(
    current: VoiceProfile, records: list[DraftCorrectionRecord], refined_at: datetime
) -> VoiceProfile:
    """Summary: Fold a batch of corrections into running signal averages.

    Importance: Each correction carries the same weight as every earlier sample.
    Alternatives: Let the newest batch replace older signals.
    """

    previous = current.signal_values()
    prior_count = current.sample_count
    total = prior_count + len(records)
    merged: dict[str, float] = {}
    for name in STYLE_SIGNAL_NAMES:
        batch_sum = sum(getattr(record.signals, name) for record in records)
        merged[name] = (previous.get(name, 0.0) * prior_count + batch_sum) / total if total else 0.0
    groups = group_signals(merged)
    iteration_count = current.iteration_count + 1
    return VoiceProfile(
        business_id=current.business_id,
        tone_signals=groups["tone"],
        formality_signals=groups["formality"],
        empathy_signals=groups["empathy"],
        structure_signals=groups["structure"],
        confidence=profile_confidence(iteration_count, total),
        iteration_count=iteration_count,
        last_refined_at=refined_at,
        sample_count=total,
    )


class VoiceProfileRefiner:
    """Summary: Batches pending corrections into voice profile updates.

    Importance: Batching avoids thrashing the profile on single noisy edits.
    Alternatives: Refine on every correction.
    """

    def __init__(
        self,
        store: SqliteStore,
        refinement_threshold: int = DEFAULT_REFINEMENT_THRESHOLD,
        lock_timeout_seconds: int = 600,
    ) -> None:
        """Summary: Initialize the refiner.

        Importance: The lock timeout frees flags left behind by crashed runs.
        Alternatives: Require manual flag resets.
        """

        self._store = store
        self._threshold = max(1, refinement_threshold)
        self._lock_timeout = timedelta(seconds=lock_timeout_seconds)

    def maybe_refine(self, business_id: str) -> VoiceProfile | None:
        """Summary: Refine the profile when enough corrections are pending.

        Importance: Concurrent calls for one business are safe no-ops.
        Alternatives: Queue refinement requests.
        """

        pending = self._store.count_pending_corrections(business_id)
        if pending < self._threshold:
            return None
        now = datetime.now(timezone.utc)
        try:
            self._store.claim_learning(business_id, now, now - self._lock_timeout)
        except LearningRaceError:
            logger.info("Refinement already running for business %s, skipping.", business_id)
            return None
        try:
            records = self._store.list_corrections(business_id, status=LearningStatus.PENDING)
            if len(records) < self._threshold:
                return None
            current = self._store.get_voice_profile(business_id) or empty_profile(business_id)
            profile = merge_corrections(current, records, now)
            self._store.apply_refinement(profile, [record.id for record in records], now)
        finally:
            self._store.release_learning(business_id)
        logger.info(
            "Refined voice profile for business %s: iteration %s, %s corrections, confidence %.2f.",
            business_id,
            profile.iteration_count,
            len(records),
            profile.confidence,
        )
        return profile


def _average(deltas: list[StyleDelta]) -> dict[str, float]:
    if not deltas:
        return {}
    return {
        name: sum(getattr(delta, name) for delta in deltas) / len(deltas)
        for name in STYLE_SIGNAL_NAMES
    }
