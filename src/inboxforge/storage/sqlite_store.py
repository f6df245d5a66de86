"""Summary: SQLite storage implementation for InboxForge.

Importance: Provides local-first persistence for configurations, folders, and learning data.
Alternatives: Use an ORM or an external database immediately.
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from pydantic import ValidationError

from inboxforge.business_config import validate_document
from inboxforge.errors import ConfigurationError, LearningRaceError
from inboxforge.models import (
    CompiledPromptArtifact,
    CorrectionType,
    DepartmentTag,
    DraftCorrectionRecord,
    FolderEntry,
    LearningMetrics,
    LearningStatus,
    ProviderKind,
    StyleDelta,
    VoiceProfile,
)
from inboxforge.schemas import CONFIG_SCHEMA_VERSION, SignalGroupsSchema, StyleDeltaSchema


class SqliteStore:
    """Summary: SQLite-backed store for all business-keyed state.

    Importance: Enables local-first persistence with minimal dependencies.
    Alternatives: Use Postgres and SQLAlchemy from day one.
    """

    def __init__(self, db_path: str) -> None:
        """Summary: Initialize the storage with a database path.

        Importance: Allows configurable database location per environment.
        Alternatives: Hardcode a default path in the class.
        """

        self._db_path = Path(db_path)

    def initialize(self) -> None:
        """Summary: Create tables if they do not exist.

        Importance: Ensures the database is ready before any service runs.
        Alternatives: Run migrations using a dedicated migration tool.
        """

        with self._connection() as connection:
            cursor = connection.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS business_configs (
                    business_id TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    schema_version INTEGER NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS prompt_artifacts (
                    business_id TEXT PRIMARY KEY,
                    version TEXT NOT NULL,
                    text TEXT NOT NULL,
                    generated_at TEXT NOT NULL,
                    department_scope TEXT NOT NULL,
                    allowed_categories TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS folder_entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    business_id TEXT NOT NULL,
                    provider_kind TEXT NOT NULL,
                    path TEXT NOT NULL,
                    external_id TEXT NOT NULL,
                    last_synced_at TEXT NOT NULL,
                    deleted INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_folder_entries_business
                ON folder_entries (business_id, provider_kind, deleted)
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS draft_corrections (
                    id TEXT PRIMARY KEY,
                    business_id TEXT NOT NULL,
                    thread_id TEXT NOT NULL,
                    email_id TEXT,
                    category TEXT,
                    ai_draft_text TEXT NOT NULL,
                    user_final_text TEXT NOT NULL,
                    edit_distance INTEGER NOT NULL,
                    similarity_score REAL NOT NULL,
                    correction_type TEXT NOT NULL,
                    signals TEXT NOT NULL,
                    learning_status TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    applied_at TEXT
                )
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_draft_corrections_status
                ON draft_corrections (business_id, learning_status)
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS voice_profiles (
                    business_id TEXT PRIMARY KEY,
                    signals TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    iteration_count INTEGER NOT NULL,
                    sample_count INTEGER NOT NULL,
                    last_refined_at TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS learning_metrics (
                    business_id TEXT PRIMARY KEY,
                    total_events INTEGER NOT NULL DEFAULT 0,
                    zero_edit_count INTEGER NOT NULL DEFAULT 0,
                    correction_count INTEGER NOT NULL DEFAULT 0,
                    avg_similarity REAL NOT NULL DEFAULT 0,
                    avg_edit_distance REAL NOT NULL DEFAULT 0,
                    learning_in_progress INTEGER NOT NULL DEFAULT 0,
                    learning_started_at TEXT
                )
                """
            )
            connection.commit()

    def save_business_config(self, business_id: str, document: dict[str, Any]) -> dict[str, Any]:
        """Summary: Validate and upsert a business configuration document.

        Importance: Nothing unvalidated reaches the configuration table.
        Alternatives: Validate only when reading.
        """

        fields = {key: value for key, value in document.items() if key != "businessId"}
        schema = validate_document({**fields, "business_id": business_id})
        payload = schema.model_dump()
        with self._connection() as connection:
            connection.execute(
                """
                INSERT INTO business_configs (business_id, payload, schema_version, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(business_id) DO UPDATE SET
                    payload = excluded.payload,
                    schema_version = excluded.schema_version,
                    updated_at = excluded.updated_at
                """,
                (business_id, json.dumps(payload), CONFIG_SCHEMA_VERSION, _now().isoformat()),
            )
            connection.commit()
        return payload

    def get_business_config(self, business_id: str) -> dict[str, Any] | None:
        """Summary: Load and re-validate a stored configuration document.

        Importance: Older rows are checked against the current schema.
        Alternatives: Return the raw JSON text.
        """

        with self._connection() as connection:
            row = connection.execute(
                "SELECT payload FROM business_configs WHERE business_id = ?",
                (business_id,),
            ).fetchone()
        if not row:
            return None
        try:
            document = json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Stored configuration for {business_id} is corrupt") from exc
        return validate_document(document).model_dump()

    def list_business_ids(self) -> list[str]:
        """Summary: List businesses with a stored configuration."""

        with self._connection() as connection:
            rows = connection.execute(
                "SELECT business_id FROM business_configs ORDER BY business_id"
            ).fetchall()
        return [row[0] for row in rows]

    def save_prompt_artifact(self, artifact: CompiledPromptArtifact) -> None:
        """Summary: Store the compiled prompt, replacing any previous version.

        Importance: Full replacement keeps deployments idempotent.
        Alternatives: Keep every version as history.
        """

        with self._connection() as connection:
            connection.execute(
                """
                INSERT OR REPLACE INTO prompt_artifacts (
                    business_id, version, text, generated_at, department_scope, allowed_categories
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    artifact.business_id,
                    artifact.version,
                    artifact.text,
                    artifact.generated_at.isoformat(),
                    json.dumps([tag.value for tag in artifact.department_scope]),
                    json.dumps(list(artifact.allowed_categories)),
                ),
            )
            connection.commit()

    def get_prompt_artifact(self, business_id: str) -> CompiledPromptArtifact | None:
        """Summary: Load the currently deployed prompt artifact."""

        with self._connection() as connection:
            row = connection.execute(
                """
                SELECT business_id, version, text, generated_at, department_scope, allowed_categories
                FROM prompt_artifacts
                WHERE business_id = ?
                """,
                (business_id,),
            ).fetchone()
        if not row:
            return None
        return CompiledPromptArtifact(
            business_id=row[0],
            version=row[1],
            text=row[2],
            generated_at=datetime.fromisoformat(row[3]),
            department_scope=tuple(DepartmentTag(tag) for tag in json.loads(row[4])),
            allowed_categories=tuple(json.loads(row[5])),
        )

    def list_folder_entries(
        self,
        business_id: str,
        provider_kind: ProviderKind,
        include_deleted: bool = False,
    ) -> list[FolderEntry]:
        """Summary: List folder entries for a business and provider.

        Importance: Soft-deleted rows are kept for diagnostics but hidden by default.
        Alternatives: Hard-delete entries when folders disappear.
        """

        query = """
            SELECT id, business_id, path, external_id, provider_kind, last_synced_at, deleted
            FROM folder_entries
            WHERE business_id = ? AND provider_kind = ?
        """
        if not include_deleted:
            query += " AND deleted = 0"
        query += " ORDER BY id"
        with self._connection() as connection:
            rows = connection.execute(query, (business_id, provider_kind.value)).fetchall()
        return [_folder_entry_from_row(row) for row in rows]

    def save_folder_entry(self, entry: FolderEntry) -> FolderEntry:
        """Summary: Insert a folder entry and return it with its id."""

        with self._connection() as connection:
            cursor = connection.execute(
                """
                INSERT INTO folder_entries (
                    business_id, provider_kind, path, external_id, last_synced_at, deleted
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.business_id,
                    entry.provider_kind.value,
                    entry.path,
                    entry.external_id,
                    entry.last_synced_at.isoformat(),
                    int(entry.deleted),
                ),
            )
            entry_id = cursor.lastrowid
            connection.commit()
        return FolderEntry(
            business_id=entry.business_id,
            path=entry.path,
            external_id=entry.external_id,
            provider_kind=entry.provider_kind,
            last_synced_at=entry.last_synced_at,
            deleted=entry.deleted,
            id=int(entry_id),
        )

    def touch_folder_entry(self, entry_id: int, synced_at: datetime) -> None:
        """Summary: Record that a folder entry was confirmed upstream."""

        with self._connection() as connection:
            connection.execute(
                "UPDATE folder_entries SET last_synced_at = ? WHERE id = ?",
                (synced_at.isoformat(), entry_id),
            )
            connection.commit()

    def mark_folder_deleted(self, entry_id: int) -> None:
        """Summary: Soft-delete a folder entry that vanished upstream.

        Importance: History is retained while the path becomes eligible for recreation.
        Alternatives: Delete the row outright.
        """

        with self._connection() as connection:
            connection.execute("UPDATE folder_entries SET deleted = 1 WHERE id = ?", (entry_id,))
            connection.commit()

    def save_correction(self, record: DraftCorrectionRecord) -> None:
        """Summary: Persist a draft correction record."""

        with self._connection() as connection:
            connection.execute(
                """
                INSERT INTO draft_corrections (
                    id, business_id, thread_id, email_id, category, ai_draft_text, user_final_text,
                    edit_distance, similarity_score, correction_type, signals, learning_status,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.business_id,
                    record.thread_id,
                    record.email_id,
                    record.category,
                    record.ai_draft_text,
                    record.user_final_text,
                    record.edit_distance,
                    record.similarity_score,
                    record.correction_type.value,
                    json.dumps(record.signals.as_dict()),
                    record.learning_status.value,
                    record.created_at.isoformat(),
                ),
            )
            connection.commit()

    def count_pending_corrections(self, business_id: str) -> int:
        """Summary: Count corrections not yet folded into the voice profile."""

        with self._connection() as connection:
            row = connection.execute(
                """
                SELECT COUNT(*) FROM draft_corrections
                WHERE business_id = ? AND learning_status = ?
                """,
                (business_id, LearningStatus.PENDING.value),
            ).fetchone()
        return int(row[0]) if row else 0

    def list_corrections(
        self,
        business_id: str,
        status: LearningStatus | None = None,
        limit: int | None = None,
    ) -> list[DraftCorrectionRecord]:
        """Summary: List corrections for a business, oldest first.

        Importance: Feeds refinement batches and analytics views.
        Alternatives: Stream rows with a cursor.
        """

        query = """
            SELECT id, business_id, thread_id, ai_draft_text, user_final_text, edit_distance,
                   similarity_score, correction_type, category, created_at, learning_status,
                   signals, email_id
            FROM draft_corrections
            WHERE business_id = ?
        """
        params: list[Any] = [business_id]
        if status is not None:
            query += " AND learning_status = ?"
            params.append(status.value)
        query += " ORDER BY created_at, rowid"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._connection() as connection:
            rows = connection.execute(query, params).fetchall()
        return [_correction_from_row(row) for row in rows]

    def apply_refinement(
        self, profile: VoiceProfile, correction_ids: list[str], applied_at: datetime
    ) -> None:
        """Summary: Persist a refined profile and flip its batch to applied in one transaction.

        Importance: A crash cannot leave records applied without the profile update.
        Alternatives: Run two separate writes.
        """

        with self._connection() as connection:
            connection.executemany(
                """
                UPDATE draft_corrections SET learning_status = ?, applied_at = ?
                WHERE id = ? AND learning_status = ?
                """,
                [
                    (
                        LearningStatus.APPLIED.value,
                        applied_at.isoformat(),
                        correction_id,
                        LearningStatus.PENDING.value,
                    )
                    for correction_id in correction_ids
                ],
            )
            _upsert_voice_profile(connection, profile)
            connection.commit()

    def get_voice_profile(self, business_id: str) -> VoiceProfile | None:
        """Summary: Load the voice profile for a business."""

        with self._connection() as connection:
            row = connection.execute(
                """
                SELECT business_id, signals, confidence, iteration_count, sample_count,
                       last_refined_at
                FROM voice_profiles
                WHERE business_id = ?
                """,
                (business_id,),
            ).fetchone()
        if not row:
            return None
        try:
            groups = SignalGroupsSchema.model_validate(json.loads(row[1]))
        except (ValidationError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Stored voice profile for {business_id} is invalid") from exc
        return VoiceProfile(
            business_id=row[0],
            tone_signals=groups.tone,
            formality_signals=groups.formality,
            empathy_signals=groups.empathy,
            structure_signals=groups.structure,
            confidence=float(row[2]),
            iteration_count=int(row[3]),
            last_refined_at=datetime.fromisoformat(row[5]) if row[5] else None,
            sample_count=int(row[4]),
        )

    def save_voice_profile(self, profile: VoiceProfile) -> None:
        """Summary: Upsert a voice profile."""

        with self._connection() as connection:
            _upsert_voice_profile(connection, profile)
            connection.commit()

    def record_learning_event(
        self, business_id: str, similarity: float, edit_distance: int
    ) -> None:
        """Summary: Update running averages after a recorded correction.

        Importance: Keeps dashboard metrics current without rescanning corrections.
        Alternatives: Aggregate on read.
        """

        with self._connection() as connection:
            _ensure_metrics_row(connection, business_id)
            connection.execute(
                """
                UPDATE learning_metrics SET
                    avg_similarity =
                        (avg_similarity * correction_count + ?) / (correction_count + 1),
                    avg_edit_distance =
                        (avg_edit_distance * correction_count + ?) / (correction_count + 1),
                    correction_count = correction_count + 1,
                    total_events = total_events + 1
                WHERE business_id = ?
                """,
                (similarity, edit_distance, business_id),
            )
            connection.commit()

    def record_zero_edit(self, business_id: str) -> None:
        """Summary: Count a send event that produced no correction."""

        with self._connection() as connection:
            _ensure_metrics_row(connection, business_id)
            connection.execute(
                """
                UPDATE learning_metrics
                SET zero_edit_count = zero_edit_count + 1, total_events = total_events + 1
                WHERE business_id = ?
                """,
                (business_id,),
            )
            connection.commit()

    def get_learning_metrics(self, business_id: str) -> LearningMetrics:
        """Summary: Return learning counters, zeroed when nothing was recorded yet."""

        with self._connection() as connection:
            row = connection.execute(
                """
                SELECT total_events, zero_edit_count, correction_count, avg_similarity,
                       avg_edit_distance, learning_in_progress
                FROM learning_metrics
                WHERE business_id = ?
                """,
                (business_id,),
            ).fetchone()
        if not row:
            return LearningMetrics(business_id, 0, 0, 0, 0.0, 0.0, False)
        return LearningMetrics(
            business_id=business_id,
            total_events=int(row[0]),
            zero_edit_count=int(row[1]),
            correction_count=int(row[2]),
            avg_similarity=float(row[3]),
            avg_edit_distance=float(row[4]),
            learning_in_progress=bool(row[5]),
        )

    def claim_learning(self, business_id: str, now: datetime, stale_before: datetime) -> None:
        """Summary: Atomically set the learning flag for a business.

        Importance: Guarantees at most one refinement per business at a time.
        Alternatives: Use an in-process threading lock.
        """

        with self._connection() as connection:
            _ensure_metrics_row(connection, business_id)
            cursor = connection.execute(
                """
                UPDATE learning_metrics
                SET learning_in_progress = 1, learning_started_at = ?
                WHERE business_id = ?
                  AND (learning_in_progress = 0 OR learning_started_at IS NULL
                       OR learning_started_at < ?)
                """,
                (now.isoformat(), business_id, stale_before.isoformat()),
            )
            connection.commit()
            claimed = cursor.rowcount
        if claimed != 1:
            raise LearningRaceError(f"Refinement already running for {business_id}")

    def release_learning(self, business_id: str) -> None:
        """Summary: Clear the learning flag for a business."""

        with self._connection() as connection:
            connection.execute(
                """
                UPDATE learning_metrics
                SET learning_in_progress = 0, learning_started_at = NULL
                WHERE business_id = ?
                """,
                (business_id,),
            )
            connection.commit()

    def erase_business_learning(self, business_id: str) -> int:
        """Summary: Delete the voice profile, corrections, and metrics of a business.

        Importance: Supports data-erasure requests.
        Alternatives: Anonymize rows instead of deleting them.
        """

        with self._connection() as connection:
            cursor = connection.execute(
                "DELETE FROM draft_corrections WHERE business_id = ?", (business_id,)
            )
            removed = cursor.rowcount
            connection.execute("DELETE FROM voice_profiles WHERE business_id = ?", (business_id,))
            connection.execute("DELETE FROM learning_metrics WHERE business_id = ?", (business_id,))
            connection.commit()
        return int(removed)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Summary: Context manager for SQLite connections.

        Importance: Ensures connections are closed cleanly after use.
        Alternatives: Keep a single long-lived connection.
        """

        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
        finally:
            connection.close()


def _ensure_metrics_row(connection: sqlite3.Connection, business_id: str) -> None:
    connection.execute(
        "INSERT OR IGNORE INTO learning_metrics (business_id) VALUES (?)", (business_id,)
    )


def _upsert_voice_profile(connection: sqlite3.Connection, profile: VoiceProfile) -> None:
    signals = SignalGroupsSchema(
        tone=profile.tone_signals,
        formality=profile.formality_signals,
        empathy=profile.empathy_signals,
        structure=profile.structure_signals,
    )
    connection.execute(
        """
        INSERT INTO voice_profiles (
            business_id, signals, confidence, iteration_count, sample_count, last_refined_at,
            created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(business_id) DO UPDATE SET
            signals = excluded.signals,
            confidence = excluded.confidence,
            iteration_count = excluded.iteration_count,
            sample_count = excluded.sample_count,
            last_refined_at = excluded.last_refined_at
        """,
        (
            profile.business_id,
            signals.model_dump_json(),
            profile.confidence,
            profile.iteration_count,
            profile.sample_count,
            profile.last_refined_at.isoformat() if profile.last_refined_at else None,
            _now().isoformat(),
        ),
    )


def _folder_entry_from_row(row: tuple[Any, ...]) -> FolderEntry:
    return FolderEntry(
        id=int(row[0]),
        business_id=row[1],
        path=row[2],
        external_id=row[3],
        provider_kind=ProviderKind(row[4]),
        last_synced_at=datetime.fromisoformat(row[5]),
        deleted=bool(row[6]),
    )


def _correction_from_row(row: tuple[Any, ...]) -> DraftCorrectionRecord:
    try:
        signals = StyleDeltaSchema.model_validate(json.loads(row[11]))
    except (ValidationError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Stored correction {row[0]} has invalid signals") from exc
    return DraftCorrectionRecord(
        id=row[0],
        business_id=row[1],
        thread_id=row[2],
        ai_draft_text=row[3],
        user_final_text=row[4],
        edit_distance=int(row[5]),
        similarity_score=float(row[6]),
        correction_type=CorrectionType(row[7]),
        category=row[8],
        created_at=datetime.fromisoformat(row[9]),
        learning_status=LearningStatus(row[10]),
        signals=StyleDelta.from_dict(signals.model_dump()),
        email_id=row[12],
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)
