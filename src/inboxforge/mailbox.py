"""Summary: Mailbox folder and label clients.

Importance: Hides flat Gmail labels and nested Outlook folders behind one interface.
Alternatives: Branch on the provider inside the reconciler.
"""

from __future__ import annotations

import itertools
import urllib.parse
from abc import ABC, abstractmethod
from typing import Any, Callable

from inboxforge.errors import FolderExistsError, ProviderError
from inboxforge.models import ProviderKind, RemoteFolder
from inboxforge.taxonomy import join_path, parent_path, split_path
from inboxforge.transport import send_json


class MailboxClient(ABC):
    """Summary: Abstract interface for mailbox folder operations.

    Importance: Reconciliation logic only sees the normalized folder list.
    Alternatives: Use provider SDK objects directly.
    """

    provider_kind: ProviderKind

    @abstractmethod
    def list_folders(self) -> list[RemoteFolder]:
        """Summary: Return every user folder with its full path.

        Importance: Supplies the live state that the taxonomy is diffed against.
        Alternatives: Fetch folders one path at a time.
        """

    @abstractmethod
    def create_folder(self, path: str, parent_id: str | None = None) -> RemoteFolder:
        """Summary: Create a folder at a path and return it.

        Importance: Must raise FolderExistsError when the provider reports a conflict.
        Alternatives: Return None on conflicts.
        """


class GmailMailboxClient(MailboxClient):
    """Summary: Gmail labels via the Gmail REST API.

    Importance: Gmail nests labels by encoding the hierarchy in slash-delimited names.
    Alternatives: Use the google-api-python-client SDK.
    """

    provider_kind = ProviderKind.GMAIL

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://gmail.googleapis.com",
        timeout: float = 10,
        max_attempts: int = 3,
        backoff_multiplier: float = 0.5,
    ) -> None:
        """Summary: Initialize the Gmail client.

        Importance: Stores an already-valid token and request limits.
        Alternatives: Refresh tokens inside the client.
        """

        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._backoff_multiplier = backoff_multiplier

    def list_folders(self) -> list[RemoteFolder]:
        """Summary: List user labels and rebuild their hierarchy.

        Importance: System labels such as INBOX are not part of the taxonomy.
        Alternatives: Keep system labels and filter them later.
        """

        payload = self._send("GET", f"{self._base_url}/gmail/v1/users/me/labels")
        return build_gmail_folders(payload.get("labels", []))

    def create_folder(self, path: str, parent_id: str | None = None) -> RemoteFolder:
        """Summary: Create a label using its full delimited name.

        Importance: Gmail has no parent id, so parent_id is ignored.
        Alternatives: Create each segment separately.
        """

        body = {
            "name": path,
            "labelListVisibility": "labelShow",
            "messageListVisibility": "show",
        }
        label = self._send("POST", f"{self._base_url}/gmail/v1/users/me/labels", body)
        segments = split_path(label.get("name", path))
        return RemoteFolder(
            external_id=str(label.get("id", "")),
            name=segments[-1] if segments else path,
            path=join_path(*segments),
            parent_id=parent_id,
        )

    def _send(self, method: str, url: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        return send_json(
            method,
            url,
            access_token=self._access_token,
            payload=payload,
            timeout=self._timeout,
            max_attempts=self._max_attempts,
            backoff_multiplier=self._backoff_multiplier,
            provider_name="Gmail API",
        )


class OutlookMailboxClient(MailboxClient):
    """Summary: Outlook mail folders via Microsoft Graph.

    Importance: Outlook folders form a native tree linked by parent ids.
    Alternatives: Use the msgraph-sdk package.
    """

    provider_kind = ProviderKind.OUTLOOK

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://graph.microsoft.com/v1.0",
        timeout: float = 10,
        max_attempts: int = 3,
        backoff_multiplier: float = 0.5,
    ) -> None:
        """Summary: Initialize the Outlook client.

        Importance: Stores an already-valid token and request limits.
        Alternatives: Refresh tokens inside the client.
        """

        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._backoff_multiplier = backoff_multiplier

    def list_folders(self) -> list[RemoteFolder]:
        """Summary: Walk the folder tree recursively.

        Importance: Child folders are only returned by per-folder requests.
        Alternatives: Use the Graph delta API.
        """

        top_level = self._get_all(f"{self._base_url}/me/mailFolders?$top=100")
        return flatten_outlook_folders(top_level, self._children)

    def create_folder(self, path: str, parent_id: str | None = None) -> RemoteFolder:
        """Summary: Create a folder under its parent id.

        Importance: Graph nests folders by parent rather than by name.
        Alternatives: Encode the hierarchy into display names.
        """

        segments = split_path(path)
        name = segments[-1] if segments else path
        if parent_id:
            parent = urllib.parse.quote(parent_id, safe="")
            url = f"{self._base_url}/me/mailFolders/{parent}/childFolders"
        else:
            url = f"{self._base_url}/me/mailFolders"
        folder = self._send("POST", url, {"displayName": name, "isHidden": False})
        return RemoteFolder(
            external_id=str(folder.get("id", "")),
            name=folder.get("displayName", name),
            path=join_path(*segments),
            parent_id=folder.get("parentFolderId") or parent_id,
        )

    def _children(self, folder_id: str) -> list[dict[str, Any]]:
        quoted = urllib.parse.quote(folder_id, safe="")
        return self._get_all(f"{self._base_url}/me/mailFolders/{quoted}/childFolders?$top=100")

    def _get_all(self, url: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        while next_url:
            payload = self._send("GET", next_url)
            items.extend(payload.get("value", []))
            next_url = payload.get("@odata.nextLink")
        return items

    def _send(self, method: str, url: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        return send_json(
            method,
            url,
            access_token=self._access_token,
            payload=payload,
            timeout=self._timeout,
            max_attempts=self._max_attempts,
            backoff_multiplier=self._backoff_multiplier,
            provider_name="Microsoft Graph",
        )


class InMemoryMailboxClient(MailboxClient):
    """Summary: Mailbox kept in memory for local runs and tests.

    Importance: Enables offline workflows and repeatable tests.
    Alternatives: Record and replay provider HTTP traffic.
    """

    def __init__(
        self,
        provider_kind: ProviderKind = ProviderKind.GMAIL,
        conflict_paths: set[str] | None = None,
        fail_paths: set[str] | None = None,
    ) -> None:
        """Summary: Initialize an empty mailbox.

        Importance: conflict_paths simulate a concurrent creator; fail_paths simulate provider errors.
        Alternatives: Use separate stub classes per scenario.
        """

        self.provider_kind = provider_kind
        self._folders: dict[str, RemoteFolder] = {}
        self._ids = itertools.count(1)
        self._conflict_paths = set(conflict_paths or ())
        self._fail_paths = set(fail_paths or ())
        self.create_calls: list[str] = []

    def list_folders(self) -> list[RemoteFolder]:
        """Summary: Return a snapshot of the stored folders."""

        return list(self._folders.values())

    def create_folder(self, path: str, parent_id: str | None = None) -> RemoteFolder:
        """Summary: Create a folder, honoring simulated conflicts and failures.

        Importance: Mirrors provider behavior closely enough for reconciliation tests.
        Alternatives: Mock each call with unittest.mock.
        """

        self.create_calls.append(path)
        if path in self._fail_paths:
            raise ProviderError(f"Simulated failure creating {path}", status=500)
        for folder in self._folders.values():
            if folder.path.lower() == path.lower():
                raise FolderExistsError(f"Folder already exists: {path}", status=409)
        parent = parent_path(path)
        if parent is not None and not any(item.path == parent for item in self._folders.values()):
            raise ProviderError(f"Parent folder missing for {path}", status=400)
        folder = self.add_folder(path, parent_id)
        if path in self._conflict_paths:
            self._conflict_paths.discard(path)
            raise FolderExistsError(f"Folder already exists: {path}", status=409)
        return folder

    def add_folder(self, path: str, parent_id: str | None = None) -> RemoteFolder:
        """Summary: Insert a folder directly, bypassing conflict checks."""

        segments = split_path(path)
        folder = RemoteFolder(
            external_id=f"{self.provider_kind.value}-{next(self._ids)}",
            name=segments[-1],
            path=join_path(*segments),
            parent_id=parent_id,
        )
        self._folders[folder.external_id] = folder
        return folder

    def delete_folder(self, external_id: str) -> None:
        """Summary: Remove a folder as if a user deleted it by hand."""

        self._folders.pop(external_id, None)

    def rename_folder(self, external_id: str, new_path: str) -> None:
        """Summary: Rename a folder while keeping its id."""

        folder = self._folders[external_id]
        segments = split_path(new_path)
        self._folders[external_id] = RemoteFolder(
            external_id=external_id,
            name=segments[-1],
            path=join_path(*segments),
            parent_id=folder.parent_id,
        )

    def move_folder(self, external_id: str, parent_id: str) -> None:
        """Summary: Move a folder under another folder while keeping its id.

        Importance: Mirrors Outlook, where a deleted folder moves to Deleted Items.
        Alternatives: Model moves as a delete plus a create.
        """

        folder = self._folders[external_id]
        parent = self._folders[parent_id]
        self._folders[external_id] = RemoteFolder(
            external_id=external_id,
            name=folder.name,
            path=join_path(parent.path, folder.name),
            parent_id=parent_id,
        )


def build_gmail_folders(labels: list[dict[str, Any]]) -> list[RemoteFolder]:
    """Summary: Rebuild a folder hierarchy from flat Gmail labels.

    Importance: Parent ids are derived from delimiter-encoded names.
    Alternatives: Treat every label as a root folder.
    """

    user_labels = [label for label in labels if label.get("type", "user") == "user"]
    ids_by_path: dict[str, str] = {}
    for label in user_labels:
        segments = split_path(label.get("name", ""))
        if segments:
            ids_by_path[join_path(*segments)] = str(label.get("id", ""))
    folders: list[RemoteFolder] = []
    for label in user_labels:
        segments = split_path(label.get("name", ""))
        if not segments:
            continue
        path = join_path(*segments)
        parent = parent_path(path)
        folders.append(
            RemoteFolder(
                external_id=str(label.get("id", "")),
                name=segments[-1],
                path=path,
                parent_id=ids_by_path.get(parent) if parent else None,
            )
        )
    return folders


def flatten_outlook_folders(
    folders: list[dict[str, Any]],
    fetch_children: Callable[[str], list[dict[str, Any]]],
    parent: RemoteFolder | None = None,
) -> list[RemoteFolder]:
    """Summary: Flatten a nested Outlook folder tree into path-addressed folders.

    Importance: Paths are built from display names along the parent chain.
    Alternatives: Store only display names and parent ids.
    """

    flattened: list[RemoteFolder] = []
    for item in folders:
        name = item.get("displayName", "")
        if not name:
            continue
        folder = RemoteFolder(
            external_id=str(item.get("id", "")),
            name=name,
            path=join_path(parent.path, name) if parent else name,
            parent_id=item.get("parentFolderId") or (parent.external_id if parent else None),
        )
        flattened.append(folder)
        children = item.get("childFolders")
        if children is None and item.get("childFolderCount", 0):
            children = fetch_children(folder.external_id)
        if children:
            flattened.extend(flatten_outlook_folders(children, fetch_children, folder))
    return flattened
