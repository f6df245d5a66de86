"""Summary: Tests for folder reconciliation.

Importance: Reconciliation must be idempotent, self-healing, and tolerant of partial failures.
Alternatives: Verify provisioning manually against a test mailbox.
"""

from __future__ import annotations

from pathlib import Path

from inboxforge.business_config import resolve_configuration
from inboxforge.mailbox import InMemoryMailboxClient
from inboxforge.models import ProviderKind, TaxonomyNode
from inboxforge.reconciler import FolderReconciler
from inboxforge.storage.sqlite_store import SqliteStore
from inboxforge.taxonomy import build_taxonomy, parent_path, required_paths


def _setup(tmp_path: Path) -> tuple[SqliteStore, list[TaxonomyNode]]:
    """Summary: Create an initialized store and a small taxonomy."""

    store = SqliteStore(str(tmp_path / "test.db"))
    store.initialize()
    config = resolve_configuration(
        {
            "businessId": "biz-1",
            "industryTypes": ["Electrician"],
            "team": [{"name": "Alice", "roles": ["sales_manager"]}],
        }
    )
    return store, build_taxonomy(config)


def test_reconcile_creates_every_path_once(tmp_path: Path) -> None:
    """Summary: Verify a first run creates all folders and a second run creates none.

    Importance: Re-running provisioning must never duplicate folders.
    Alternatives: Track a provisioned flag per business.
    """

    store, nodes = _setup(tmp_path)
    mailbox = InMemoryMailboxClient()
    reconciler = FolderReconciler(store, "biz-1")
    paths = required_paths(nodes)

    first = reconciler.reconcile(nodes, mailbox)
    assert sorted(entry.path for entry in first.created) == sorted(paths)
    assert first.errors == []

    calls_after_first = len(mailbox.create_calls)
    second = reconciler.reconcile(nodes, mailbox)
    assert second.created == []
    assert second.errors == []
    assert sorted(entry.path for entry in second.matched) == sorted(paths)
    assert len(mailbox.create_calls) == calls_after_first
    assert len(mailbox.list_folders()) == len(paths)


def test_reconcile_creates_parents_before_children(tmp_path: Path) -> None:
    """Summary: Verify creation order respects the hierarchy."""

    store, nodes = _setup(tmp_path)
    mailbox = InMemoryMailboxClient(ProviderKind.OUTLOOK)
    FolderReconciler(store, "biz-1").reconcile(nodes, mailbox)
    order = {path: index for index, path in enumerate(mailbox.create_calls)}
    for path, index in order.items():
        parent = parent_path(path)
        if parent is not None:
            assert order[parent] < index


def test_reconcile_recreates_deleted_folder(tmp_path: Path) -> None:
    """Summary: Verify a folder deleted by the user is detected and recreated.

    Importance: Users deleting folders must not break routing permanently.
    Alternatives: Require an operator to reprovision by hand.
    """

    store, nodes = _setup(tmp_path)
    mailbox = InMemoryMailboxClient()
    reconciler = FolderReconciler(store, "biz-1")
    reconciler.reconcile(nodes, mailbox)
    listed = store.list_folder_entries("biz-1", ProviderKind.GMAIL)
    entries = {entry.path: entry for entry in listed}
    old_id = entries["Support/General"].external_id
    mailbox.delete_folder(old_id)

    result = reconciler.reconcile(nodes, mailbox)
    assert [entry.path for entry in result.recreated] == ["Support/General"]
    assert result.created == []
    assert result.errors == []

    active = {entry.path: entry for entry in store.list_folder_entries("biz-1", ProviderKind.GMAIL)}
    assert active["Support/General"].external_id != old_id
    history = store.list_folder_entries("biz-1", ProviderKind.GMAIL, include_deleted=True)
    assert any(entry.external_id == old_id and entry.deleted for entry in history)


def test_reconcile_treats_conflict_as_success(tmp_path: Path) -> None:
    """Summary: Verify a concurrent creation conflict resolves to the existing folder.

    Importance: Two reconcilers racing on one mailbox must both succeed.
    Alternatives: Report conflicts as errors.
    """

    store, nodes = _setup(tmp_path)
    mailbox = InMemoryMailboxClient(conflict_paths={"Sales"})
    result = FolderReconciler(store, "biz-1").reconcile(nodes, mailbox)
    assert result.errors == []
    assert "Sales" in [entry.path for entry in result.matched]
    live = {folder.path: folder.external_id for folder in mailbox.list_folders()}
    listed = store.list_folder_entries("biz-1", ProviderKind.GMAIL)
    stored = {entry.path: entry.external_id for entry in listed}
    assert stored["Sales"] == live["Sales"]


def test_reconcile_adopts_existing_folders(tmp_path: Path) -> None:
    """Summary: Verify folders created outside the system are adopted by path."""

    store, nodes = _setup(tmp_path)
    mailbox = InMemoryMailboxClient()
    existing = mailbox.add_folder("Promo")
    result = FolderReconciler(store, "biz-1").reconcile(nodes, mailbox)
    matched = {entry.path: entry.external_id for entry in result.matched}
    assert matched["Promo"] == existing.external_id
    assert "Promo" not in mailbox.create_calls


def test_reconcile_continues_after_partial_failure(tmp_path: Path) -> None:
    """Summary: Verify one failing path does not abort the batch.

    Importance: A single provider error must not leave the whole mailbox unprovisioned.
    Alternatives: Stop at the first error.
    """

    store, nodes = _setup(tmp_path)
    mailbox = InMemoryMailboxClient(fail_paths={"Banking"})
    result = FolderReconciler(store, "biz-1").reconcile(nodes, mailbox)
    failures = {item.path: item for item in result.errors}
    assert failures["Banking"].operation == "create"
    assert "business=biz-1" in failures["Banking"].message
    assert failures["Banking/invoice"].operation == "resolve_parent"
    assert all(path == "Banking" or path.startswith("Banking/") for path in failures)
    created = {entry.path for entry in result.created}
    assert "Sales" in created and "Support/General" in created


def test_reconcile_keeps_providers_separate(tmp_path: Path) -> None:
    """Summary: Verify Gmail and Outlook entries are tracked independently."""

    store, nodes = _setup(tmp_path)
    reconciler = FolderReconciler(store, "biz-1")
    reconciler.reconcile(nodes, InMemoryMailboxClient(ProviderKind.GMAIL))
    outlook = reconciler.reconcile(nodes, InMemoryMailboxClient(ProviderKind.OUTLOOK))
    assert outlook.matched == []
    assert len(outlook.created) == len(required_paths(nodes))


def test_reconcile_keeps_renamed_folder_by_id(tmp_path: Path) -> None:
    """Summary: Verify a folder renamed upstream is still matched through its id.

    Importance: Ids are authoritative, so a user rename never spawns a duplicate.
    Alternatives: Match folders by name and recreate renamed ones.
    """

    store, nodes = _setup(tmp_path)
    mailbox = InMemoryMailboxClient()
    FolderReconciler(store, "biz-1").reconcile(nodes, mailbox)
    listed = store.list_folder_entries("biz-1", ProviderKind.GMAIL)
    promo_id = next(entry.external_id for entry in listed if entry.path == "Promo")
    mailbox.rename_folder(promo_id, "Promotions")

    result = FolderReconciler(store, "biz-1").reconcile(nodes, mailbox)
    assert result.created == []
    assert result.recreated == []
    assert "Promo" in [entry.path for entry in result.matched]
    assert len(mailbox.list_folders()) == len(required_paths(nodes))


def test_reconcile_recreates_folder_moved_to_deleted_items(tmp_path: Path) -> None:
    """Summary: Verify a folder moved under Deleted Items is treated as deleted.

    Importance: Outlook keeps the folder id after deletion, so the id alone looks healthy.
    Alternatives: Trust any live id and keep routing mail into the trash.
    """

    store, nodes = _setup(tmp_path)
    mailbox = InMemoryMailboxClient(ProviderKind.OUTLOOK)
    reconciler = FolderReconciler(store, "biz-1")
    reconciler.reconcile(nodes, mailbox)
    listed = store.list_folder_entries("biz-1", ProviderKind.OUTLOOK)
    promo_id = next(entry.external_id for entry in listed if entry.path == "Promo")
    trash = mailbox.add_folder("Deleted Items")
    mailbox.move_folder(promo_id, trash.external_id)

    result = reconciler.reconcile(nodes, mailbox)
    assert [entry.path for entry in result.recreated] == ["Promo"]
    assert result.created == []
    assert result.errors == []
    promo = next(entry for entry in result.recreated if entry.path == "Promo")
    assert promo.external_id != promo_id
    live_paths = {folder.path for folder in mailbox.list_folders()}
    assert {"Promo", "Deleted Items/Promo"} <= live_paths
