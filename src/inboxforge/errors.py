"""Summary: Exception hierarchy for InboxForge.

Importance: Lets callers tell fatal configuration problems from recoverable provider issues.
Alternatives: Raise RuntimeError and ValueError everywhere.
"""

from __future__ import annotations


class InboxForgeError(Exception):
    """Summary: Base class for all InboxForge errors.

    Importance: Allows entrypoints to catch library errors in one place.
    Alternatives: Catch Exception at the boundary.
    """


class ConfigurationError(InboxForgeError):
    """Summary: Business configuration cannot be resolved or compiled.

    Importance: Prevents deploying an empty or misleading prompt.
    Alternatives: Fall back to a default prompt silently.
    """


class ProviderError(InboxForgeError):
    """Summary: A mailbox or AI provider call failed.

    Importance: Carries enough context to act on the failure from logs alone.
    Alternatives: Log the context separately from the exception.
    """

    def __init__(
        self,
        message: str,
        business_id: str | None = None,
        path: str | None = None,
        operation: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.business_id = business_id
        self.path = path
        self.operation = operation
        self.status = status

    def with_context(
        self,
        business_id: str | None = None,
        path: str | None = None,
        operation: str | None = None,
    ) -> "ProviderError":
        """Summary: Return a copy of the error enriched with caller context.

        Importance: Low-level HTTP code does not know which taxonomy path it serves.
        Alternatives: Wrap the error in a second exception type.
        """

        enriched = type(self)(
            str(self.args[0]) if self.args else "",
            business_id=business_id or self.business_id,
            path=path or self.path,
            operation=operation or self.operation,
            status=self.status,
        )
        enriched.__cause__ = self.__cause__
        return enriched

    def __str__(self) -> str:
        base = super().__str__()
        details = [
            f"{label}={value}"
            for label, value in (
                ("business", self.business_id),
                ("path", self.path),
                ("operation", self.operation),
                ("status", self.status),
            )
            if value is not None
        ]
        if not details:
            return base
        return f"{base} ({', '.join(details)})"


class TransientProviderError(ProviderError):
    """Summary: Provider failure that is worth retrying.

    Importance: Network errors, 5xx responses, and rate limits usually clear up.
    Alternatives: Retry every provider error regardless of cause.
    """


class FolderExistsError(ProviderError):
    """Summary: The provider reported that a folder already exists.

    Importance: Reconciliation treats this conflict as success.
    Alternatives: Pre-check existence before each create call.
    """


class DriftError(InboxForgeError):
    """Summary: A recorded folder no longer exists in the mailbox.

    Importance: Signals that the folder must be recreated.
    Alternatives: Trust local records and skip the check.
    """

    def __init__(self, path: str, external_id: str) -> None:
        super().__init__(f"Folder {path} with id {external_id} no longer exists upstream")
        self.path = path
        self.external_id = external_id


class LearningRaceError(InboxForgeError):
    """Summary: Another refinement is already running for the business.

    Importance: Guards against double-counting a pending batch.
    Alternatives: Queue refinement requests.
    """
