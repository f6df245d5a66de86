"""Summary: Domain model dataclasses for InboxForge.

Importance: Defines the typed structures shared by the compiler, reconciler, and learning loop.
Alternatives: Pass loosely-typed dictionaries between modules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NodeKind(str, Enum):
    """Summary: Depth level of a taxonomy node.

    Importance: Tertiary rules only apply to specific secondary nodes.
    Alternatives: Infer the level from the number of path segments.
    """

    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"


class DepartmentTag(str, Enum):
    """Summary: Department filters that scope a deployment.

    Importance: Drives category and manager restriction in compiled prompts.
    Alternatives: Accept free-form department strings.
    """

    ALL = "all"
    SALES = "sales"
    SUPPORT = "support"
    OPERATIONS = "operations"


class RoleId(str, Enum):
    """Summary: Closed set of manager roles.

    Importance: Avoids runtime string matching against role names.
    Alternatives: Store role names as plain strings in the team roster.
    """

    SALES_MANAGER = "sales_manager"
    SERVICE_MANAGER = "service_manager"
    OPERATIONS_MANAGER = "operations_manager"
    SUPPORT_LEAD = "support_lead"
    OWNER = "owner"


class ProviderKind(str, Enum):
    """Summary: Supported mailbox providers.

    Importance: Folder entries are tracked per provider.
    Alternatives: Keep one folder table per provider.
    """

    GMAIL = "gmail"
    OUTLOOK = "outlook"


class CorrectionType(str, Enum):
    """Summary: Severity bands for user edits of AI drafts.

    Importance: Summarizes how far a sent reply drifted from the draft.
    Alternatives: Store the raw similarity score only.
    """

    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    REWRITE = "rewrite"


class LearningStatus(str, Enum):
    """Summary: Whether a correction has been folded into a voice profile.

    Importance: Prevents corrections from being counted twice.
    Alternatives: Delete corrections after refinement.
    """

    PENDING = "pending"
    APPLIED = "applied"


@dataclass(frozen=True)
class TaxonomyNode:
    """Summary: One category in the classification taxonomy.

    Importance: Feeds both prompt compilation and folder provisioning.
    Alternatives: Represent the taxonomy as nested dictionaries.
    """

    name: str
    parent_path: str | None
    kind: NodeKind
    description: str = ""
    keywords: tuple[str, ...] = ()
    examples: tuple[str, ...] = ()
    allowed_departments: frozenset[DepartmentTag] = frozenset()

    @property
    def path(self) -> str:
        """Summary: Full slash-delimited path of the node.

        Importance: Acts as the logical key for folders and classification output.
        Alternatives: Store the full path as a separate field.
        """

        if self.parent_path:
            return f"{self.parent_path}/{self.name}"
        return self.name


@dataclass(frozen=True)
class ManagerRecord:
    """Summary: A team member who receives routed email.

    Importance: Manager roles decide which categories are forwarded to whom.
    Alternatives: Keep only a list of forwarding addresses.
    """

    name: str
    email: str
    roles: tuple[RoleId, ...] = ()
    forward_enabled: bool = False


@dataclass(frozen=True)
class SupplierRecord:
    """Summary: A known supplier and the domains it sends from.

    Importance: Lets the classifier recognize supplier correspondence.
    Alternatives: Treat suppliers as generic external senders.
    """

    name: str
    email: str = ""
    domains: tuple[str, ...] = ()


@dataclass(frozen=True)
class BusinessConfiguration:
    """Summary: Normalized configuration for a single business.

    Importance: The only input the compiler and reconciler need about a business.
    Alternatives: Read configuration rows directly inside each component.
    """

    business_id: str
    industry_types: tuple[str, ...]
    department_scope: tuple[DepartmentTag, ...] = (DepartmentTag.ALL,)
    team: tuple[ManagerRecord, ...] = ()
    suppliers: tuple[SupplierRecord, ...] = ()
    business_name: str = ""
    business_domains: tuple[str, ...] = ()

    @property
    def is_hub(self) -> bool:
        """Summary: True when the deployment is not department-restricted.

        Importance: Hub mode renders every category and manager role.
        Alternatives: Check for the all tag at each call site.
        """

        return DepartmentTag.ALL in self.department_scope


@dataclass(frozen=True)
class CompiledPromptArtifact:
    """Summary: Versioned classifier instructions for one business.

    Importance: The artifact deployed to the workflow engine as configuration.
    Alternatives: Regenerate the prompt on every classification call.
    """

    business_id: str
    version: str
    text: str
    generated_at: datetime
    department_scope: tuple[DepartmentTag, ...]
    allowed_categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class RemoteFolder:
    """Summary: A folder or label as reported by a mailbox provider.

    Importance: Normalizes flat and nested provider hierarchies into one shape.
    Alternatives: Work with raw provider payloads in the reconciler.
    """

    external_id: str
    name: str
    path: str
    parent_id: str | None = None


@dataclass(frozen=True)
class FolderEntry:
    """Summary: Local record of a provisioned folder or label.

    Importance: Keeps the authoritative external id for each taxonomy path.
    Alternatives: Look folders up by name on every run.
    """

    business_id: str
    path: str
    external_id: str
    provider_kind: ProviderKind
    last_synced_at: datetime
    deleted: bool = False
    id: int | None = None


@dataclass(frozen=True)
class FailedEntry:
    """Summary: A taxonomy path that could not be provisioned.

    Importance: Reports partial failure without aborting the batch.
    Alternatives: Raise on the first provider failure.
    """

    path: str
    operation: str
    message: str


@dataclass
class ReconciliationResult:
    """Summary: Outcome of one folder reconciliation pass.

    Importance: Machine-readable summary for dashboards and retries.
    Alternatives: Log the outcome without returning it.
    """

    created: list[FolderEntry] = field(default_factory=list)
    matched: list[FolderEntry] = field(default_factory=list)
    recreated: list[FolderEntry] = field(default_factory=list)
    errors: list[FailedEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Summary: Serialize the result for JSON responses.

        Importance: Keeps API and CLI output consistent.
        Alternatives: Let each caller pick fields manually.
        """

        def _entry(entry: FolderEntry) -> dict[str, Any]:
            return {
                "path": entry.path,
                "external_id": entry.external_id,
                "provider_kind": entry.provider_kind.value,
                "last_synced_at": entry.last_synced_at.isoformat(),
            }

        return {
            "created": [_entry(entry) for entry in self.created],
            "matched": [_entry(entry) for entry in self.matched],
            "recreated": [_entry(entry) for entry in self.recreated],
            "errors": [
                {"path": item.path, "operation": item.operation, "message": item.message}
                for item in self.errors
            ],
        }


@dataclass(frozen=True)
class StyleDelta:
    """Summary: Signed stylistic changes between an AI draft and the sent reply.

    Importance: Deltas average cleanly across many corrections.
    Alternatives: Store absolute style measurements per email.
    """

    apology: float = 0.0
    urgency: float = 0.0
    enthusiasm: float = 0.0
    politeness: float = 0.0
    formality: float = 0.0
    empathy: float = 0.0
    greeting: float = 0.0
    closing: float = 0.0
    sentence_length: float = 0.0
    paragraphs: float = 0.0

    def as_dict(self) -> dict[str, float]:
        """Summary: Convert the delta into a plain mapping.

        Importance: Used for JSON persistence and aggregation.
        Alternatives: Use dataclasses.asdict at each call site.
        """

        return {name: float(getattr(self, name)) for name in STYLE_SIGNAL_NAMES}

    @staticmethod
    def from_dict(values: dict[str, Any]) -> "StyleDelta":
        """Summary: Build a delta from a mapping, ignoring unknown keys.

        Importance: Tolerates older stored rows with fewer signals.
        Alternatives: Require an exact key match.
        """

        return StyleDelta(**{name: float(values.get(name, 0.0)) for name in STYLE_SIGNAL_NAMES})


STYLE_SIGNAL_NAMES = (
    "apology",
    "urgency",
    "enthusiasm",
    "politeness",
    "formality",
    "empathy",
    "greeting",
    "closing",
    "sentence_length",
    "paragraphs",
)

SIGNAL_GROUPS: dict[str, tuple[str, ...]] = {
    "tone": ("apology", "urgency", "enthusiasm"),
    "formality": ("formality", "politeness"),
    "empathy": ("empathy",),
    "structure": ("greeting", "closing", "sentence_length", "paragraphs"),
}


@dataclass(frozen=True)
class CorrectionContext:
    """Summary: Where a send event came from.

    Importance: Ties a correction to its business, thread, and category.
    Alternatives: Pass the identifiers as loose arguments.
    """

    business_id: str
    thread_id: str
    category: str | None = None
    email_id: str | None = None


@dataclass(frozen=True)
class DraftCorrectionRecord:
    """Summary: Difference between an AI draft and what the user sent.

    Importance: Raw material for voice profile refinement.
    Alternatives: Keep only aggregate counters.
    """

    id: str
    business_id: str
    thread_id: str
    ai_draft_text: str
    user_final_text: str
    edit_distance: int
    similarity_score: float
    correction_type: CorrectionType
    category: str | None
    created_at: datetime
    learning_status: LearningStatus
    signals: StyleDelta
    email_id: str | None = None


@dataclass(frozen=True)
class VoiceProfile:
    """Summary: Aggregated writing style for a business.

    Importance: Biases future prompts toward how the business actually writes.
    Alternatives: Ask users to describe their tone manually.
    """

    business_id: str
    tone_signals: dict[str, float]
    formality_signals: dict[str, float]
    empathy_signals: dict[str, float]
    structure_signals: dict[str, float]
    confidence: float
    iteration_count: int
    last_refined_at: datetime | None
    sample_count: int = 0

    def signal_values(self) -> dict[str, float]:
        """Summary: Flatten all signal groups into one mapping.

        Importance: Simplifies aggregation and rendering.
        Alternatives: Walk each group separately.
        """

        merged: dict[str, float] = {}
        for group in (
            self.tone_signals,
            self.formality_signals,
            self.empathy_signals,
            self.structure_signals,
        ):
            merged.update(group)
        return merged


@dataclass(frozen=True)
class LearningMetrics:
    """Summary: Running counters for the learning loop of a business.

    Importance: Surfaces learning progress without scanning every correction.
    Alternatives: Compute aggregates on demand from correction rows.
    """

    business_id: str
    total_events: int
    zero_edit_count: int
    correction_count: int
    avg_similarity: float
    avg_edit_distance: float
    learning_in_progress: bool


@dataclass(frozen=True)
class SendEvent:
    """Summary: Notification that a reply was sent from the workflow engine.

    Importance: Triggers correction analysis when an AI draft existed.
    Alternatives: Poll the mailbox for sent messages.
    """

    business_id: str
    email_id: str
    thread_id: str
    ai_draft_text: str | None
    final_text: str | None
    category: str | None = None


@dataclass(frozen=True)
class Classification:
    """Summary: Structured classification returned by the AI service.

    Importance: Normalized output consumed by routing and drafting steps.
    Alternatives: Forward the raw model JSON.
    """

    primary_category: str
    secondary_category: str | None
    tertiary_category: str | None
    confidence: float
    ai_can_reply: bool
    summary: str = ""
    reasoning: str = ""
    entities: dict[str, str | None] = field(default_factory=dict)


@dataclass(frozen=True)
class IncomingEmail:
    """Summary: Inbound email handed to the classifier.

    Importance: Carries only what classification and reply eligibility need.
    Alternatives: Pass provider message objects through.
    """

    sender: str
    subject: str
    body: str
    email_id: str | None = None
