"""Summary: Folder and label reconciliation against a live mailbox.

Importance: Keeps a mailbox's folder set aligned with the taxonomy and heals manual deletions.
Alternatives: Create folders once at onboarding and never re-check them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone

from inboxforge.errors import DriftError, FolderExistsError, ProviderError
from inboxforge.mailbox import MailboxClient
from inboxforge.models import (
    FailedEntry,
    FolderEntry,
    ProviderKind,
    ReconciliationResult,
    RemoteFolder,
    TaxonomyNode,
)
from inboxforge.storage.sqlite_store import SqliteStore
from inboxforge.taxonomy import parent_path, required_paths, split_path

logger = logging.getLogger(__name__)


class FolderReconciler:
    """Summary: Reconciles taxonomy paths with one business's mailbox.

    Importance: Safe to re-run at any time, including against partially provisioned mailboxes.
    Alternatives: Diff and create folders inside the onboarding flow.
    """

    def __init__(self, store: SqliteStore, business_id: str) -> None:
        """Summary: Bind the reconciler to a store and business.

        Importance: All folder state is keyed by business id.
        Alternatives: Pass the business id to every call.
        """

        self._store = store
        self._business_id = business_id

    def reconcile(
        self, taxonomy: list[TaxonomyNode], mailbox: MailboxClient
    ) -> ReconciliationResult:
        """Summary: Make the mailbox contain every required taxonomy path.

        Importance: Parents are created before children and one failure never aborts the batch.
        Alternatives: Stop at the first provider error.
        """

        kind = mailbox.provider_kind
        required = required_paths(taxonomy)
        try:
            live = mailbox.list_folders()
        except ProviderError as exc:
            raise exc.with_context(self._business_id, None, "list_folders") from exc
        live_by_id = {folder.external_id: folder for folder in live}
        live_by_path = {folder.path.lower(): folder for folder in live}

        recorded: dict[str, FolderEntry] = {}
        drifted: set[str] = set()
        entries = self._store.list_folder_entries(self._business_id, kind)
        for entry in sorted(entries, key=lambda item: len(split_path(item.path))):
            live_folder = live_by_id.get(entry.external_id)
            if live_folder is not None and not self._moved(
                entry, live_folder, recorded, drifted, live_by_id
            ):
                recorded[entry.path] = entry
                continue
            drift = DriftError(entry.path, entry.external_id)
            logger.warning("Drift detected for business %s: %s", self._business_id, drift)
            if entry.id is not None:
                self._store.mark_folder_deleted(entry.id)
            drifted.add(entry.path)

        result = ReconciliationResult()
        resolved: dict[str, str] = {}
        failed: set[str] = set()
        for path in required:
            operation = "match"
            try:
                now = _now()
                existing = recorded.get(path)
                if existing is not None and existing.id is not None:
                    self._store.touch_folder_entry(existing.id, now)
                    result.matched.append(replace(existing, last_synced_at=now))
                    resolved[path] = existing.external_id
                    continue
                live_folder = live_by_path.get(path.lower())
                if live_folder is not None:
                    entry = self._record(path, live_folder, kind, now)
                    self._bucket(result, path, drifted, adopted=True).append(entry)
                    resolved[path] = entry.external_id
                    continue
                parent = parent_path(path)
                if parent is not None and parent not in resolved:
                    operation = "resolve_parent"
                    reason = "failed" if parent in failed else "is unavailable"
                    raise ProviderError(f"Parent folder {parent} {reason}")
                operation = "create"
                conflict = False
                try:
                    remote = mailbox.create_folder(path, resolved.get(parent) if parent else None)
                except FolderExistsError:
                    logger.info("Folder %s already exists, re-fetching its id.", path)
                    operation = "refetch"
                    remote = self._refetch(mailbox, path)
                    conflict = True
                entry = self._record(path, remote, kind, now)
                self._bucket(result, path, drifted, adopted=conflict).append(entry)
                resolved[path] = entry.external_id
            except ProviderError as exc:
                wrapped = exc.with_context(self._business_id, path, operation)
                logger.error("Failed to provision folder: %s", wrapped)
                failed.add(path)
                result.errors.append(FailedEntry(path=path, operation=operation, message=str(wrapped)))

        self._verify(required, result, kind)
        logger.info(
            "Reconciled %s folders for business %s: %s created, %s matched, %s recreated, %s errors.",
            len(required),
            self._business_id,
            len(result.created),
            len(result.matched),
            len(result.recreated),
            len(result.errors),
        )
        return result

    def _record(
        self, path: str, remote: RemoteFolder, kind: ProviderKind, now: datetime
    ) -> FolderEntry:
        return self._store.save_folder_entry(
            FolderEntry(
                business_id=self._business_id,
                path=path,
                external_id=remote.external_id,
                provider_kind=kind,
                last_synced_at=now,
            )
        )

    @staticmethod
    def _bucket(
        result: ReconciliationResult, path: str, drifted: set[str], adopted: bool
    ) -> list[FolderEntry]:
        if path in drifted:
            return result.recreated
        if adopted:
            return result.matched
        return result.created

    @staticmethod
    def _moved(
        entry: FolderEntry,
        live_folder: RemoteFolder,
        recorded: dict[str, FolderEntry],
        drifted: set[str],
        live_by_id: dict[str, RemoteFolder],
    ) -> bool:
        """Summary: Whether a recorded folder now lives under a different parent.

        Importance: Outlook keeps the id of a deleted folder that sits in Deleted Items,
        so only the parent path tells it apart from a rename in place.
        Alternatives: Compare full paths, which treats every rename as drift.
        """

        expected_parent = parent_path(entry.path)
        actual_parent = parent_path(live_folder.path)
        if expected_parent is None:
            return actual_parent is not None
        if expected_parent in drifted:
            return True
        parent_entry = recorded.get(expected_parent)
        if parent_entry is not None:
            expected_parent = live_by_id[parent_entry.external_id].path
        return actual_parent is None or actual_parent.lower() != expected_parent.lower()

    def _refetch(self, mailbox: MailboxClient, path: str) -> RemoteFolder:
        for folder in mailbox.list_folders():
            if folder.path.lower() == path.lower():
                return folder
        raise ProviderError(f"Folder {path} reported as existing but was not found")

    def _verify(
        self, required: list[str], result: ReconciliationResult, kind: ProviderKind
    ) -> None:
        errored = {item.path for item in result.errors}
        entries = {
            entry.path
            for entry in self._store.list_folder_entries(self._business_id, kind)
            if entry.external_id and not entry.deleted
        }
        for path in required:
            if path in entries or path in errored:
                continue
            logger.error(
                "Folder %s for business %s has no entry after reconciliation.",
                path,
                self._business_id,
            )
            result.errors.append(
                FailedEntry(path=path, operation="verify", message="No folder entry recorded")
            )


def _now() -> datetime:
    return datetime.now(timezone.utc)
