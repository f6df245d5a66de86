"""Summary: Tests for voice profile refinement and baselines.

Importance: Refinement must batch corrections, stay atomic, and never double-apply a batch.
Alternatives: Verify learned style only through compiled prompts.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from inboxforge.corrections import CorrectionAnalyzer
from inboxforge.models import CorrectionContext, LearningStatus, VoiceProfile
from inboxforge.storage.sqlite_store import SqliteStore
from inboxforge.voice import (
    VoiceProfileRefiner,
    build_baseline_profile,
    profile_confidence,
)


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(str(tmp_path / "test.db"))
    store.initialize()
    return store


def _record(store: SqliteStore, count: int, business_id: str = "biz-1") -> None:
    """Summary: Record corrections that each add an apology."""

    analyzer = CorrectionAnalyzer(store)
    for index in range(count):
        analyzer.analyze(
            "Hi Sam,\n\nYour order ships Monday.",
            "Hi Sam,\n\nSorry for the wait. Your order ships Monday.",
            CorrectionContext(business_id=business_id, thread_id=f"t-{index}"),
        )


def test_refinement_waits_for_threshold(tmp_path: Path) -> None:
    """Summary: Verify nine corrections do nothing and the tenth applies all ten.

    Importance: Batching keeps single noisy edits from swinging the profile.
    Alternatives: Refine after every correction.
    """

    store = _store(tmp_path)
    refiner = VoiceProfileRefiner(store, refinement_threshold=10)
    _record(store, 9)
    assert refiner.maybe_refine("biz-1") is None
    assert store.count_pending_corrections("biz-1") == 9
    assert store.get_voice_profile("biz-1") is None

    _record(store, 1)
    profile = refiner.maybe_refine("biz-1")
    assert profile is not None
    assert profile.iteration_count == 1
    assert profile.sample_count == 10
    assert profile.tone_signals["apology"] == 1.0
    assert store.count_pending_corrections("biz-1") == 0
    statuses = {record.learning_status for record in store.list_corrections("biz-1")}
    assert statuses == {LearningStatus.APPLIED}
    assert store.get_learning_metrics("biz-1").learning_in_progress is False


def test_refinement_is_a_noop_while_locked(tmp_path: Path) -> None:
    """Summary: Verify a held learning flag makes concurrent refinement a no-op.

    Importance: Two refiners must never apply the same batch twice.
    Alternatives: Serialize refinement through a queue.
    """

    store = _store(tmp_path)
    refiner = VoiceProfileRefiner(store, refinement_threshold=10)
    _record(store, 10)
    now = datetime.now(timezone.utc)
    store.claim_learning("biz-1", now, now - timedelta(minutes=10))

    assert refiner.maybe_refine("biz-1") is None
    assert store.count_pending_corrections("biz-1") == 10

    store.release_learning("biz-1")
    assert refiner.maybe_refine("biz-1") is not None


def test_stale_lock_is_reclaimed(tmp_path: Path) -> None:
    """Summary: Verify a flag older than the timeout no longer blocks refinement."""

    store = _store(tmp_path)
    refiner = VoiceProfileRefiner(store, refinement_threshold=10, lock_timeout_seconds=600)
    _record(store, 10)
    started = datetime.now(timezone.utc) - timedelta(hours=2)
    store.claim_learning("biz-1", started, started - timedelta(minutes=10))
    assert refiner.maybe_refine("biz-1") is not None


def test_refinement_keeps_running_average(tmp_path: Path) -> None:
    """Summary: Verify new batches are averaged with earlier samples.

    Importance: Each correction carries equal weight across iterations.
    Alternatives: Replace signals with the newest batch.
    """

    store = _store(tmp_path)
    store.save_voice_profile(
        VoiceProfile(
            business_id="biz-1",
            tone_signals={"apology": -1.0, "urgency": 0.0, "enthusiasm": 0.0},
            formality_signals={"formality": 0.0, "politeness": 0.0},
            empathy_signals={"empathy": 0.0},
            structure_signals={
                "greeting": 0.0,
                "closing": 0.0,
                "sentence_length": 0.0,
                "paragraphs": 0.0,
            },
            confidence=0.2,
            iteration_count=0,
            last_refined_at=None,
            sample_count=10,
        )
    )
    _record(store, 10)
    profile = VoiceProfileRefiner(store, refinement_threshold=10).maybe_refine("biz-1")
    assert profile is not None
    assert profile.tone_signals["apology"] == 0.0
    assert profile.sample_count == 20
    assert profile.confidence == profile_confidence(1, 20)


def test_confidence_is_monotonic_and_bounded() -> None:
    """Summary: Verify confidence grows with iterations and samples but stays below 1."""

    values = [profile_confidence(iteration, iteration * 10) for iteration in range(12)]
    assert values[0] == 0.0
    assert all(earlier < later for earlier, later in zip(values, values[1:]))
    assert all(value < 1.0 for value in values)
    assert profile_confidence(1, 50) > profile_confidence(1, 10)


def test_baseline_profile_from_samples() -> None:
    """Summary: Verify sample emails seed a low-confidence baseline.

    Importance: New businesses get a starting point without style guidance yet.
    Alternatives: Start every business from a neutral profile.
    """

    samples = [
        "Hey Sam!\n\nSorry about that, we'll sort it out today!",
        "<p>Hey Jo,</p><p>Sorry for the mix-up. Cheers</p>",
    ]
    profile = build_baseline_profile("biz-1", samples)
    assert profile.iteration_count == 0
    assert profile.sample_count == 2
    assert profile.tone_signals["apology"] > 0
    assert profile.formality_signals["formality"] < 0
    assert 0.0 < profile.confidence < 0.35


def test_baseline_without_usable_samples_is_neutral() -> None:
    """Summary: Verify empty samples produce a neutral zero-confidence profile."""

    profile = build_baseline_profile("biz-1", ["", "<p> </p>"])
    assert profile.confidence == 0.0
    assert set(profile.signal_values().values()) == {0.0}
