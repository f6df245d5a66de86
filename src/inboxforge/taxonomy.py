"""Summary: Classification taxonomy built from base rules and business configuration.

Importance: Single source of categories for prompt compilation and folder provisioning.
Alternatives: Maintain prompt categories and mailbox folders as separate lists.
"""

from __future__ import annotations

from dataclasses import dataclass

from inboxforge.errors import ConfigurationError
from inboxforge.industry_templates import IndustryTemplate, SecondaryTemplate, resolve_templates
from inboxforge.models import BusinessConfiguration, DepartmentTag, NodeKind, TaxonomyNode
from inboxforge.roles import DEPARTMENT_ROLES, routed_categories

PATH_DELIMITER = "/"
UNASSIGNED_MANAGER = "Unassigned"
OUT_OF_SCOPE = "OUT_OF_SCOPE"


@dataclass(frozen=True)
class PrimaryDefinition:
    """Summary: Static description of a base primary category.

    Importance: Gives the AI enough context to tell categories apart.
    Alternatives: Send bare category names to the model.
    """

    name: str
    description: str
    keywords: tuple[str, ...] = ()
    secondaries: tuple[SecondaryTemplate, ...] = ()


BANKING_TERTIARY: dict[str, tuple[SecondaryTemplate, ...]] = {
    "e-transfer": (
        SecondaryTemplate("FromBusiness", "The business sent money to a vendor or contractor"),
        SecondaryTemplate("ToBusiness", "A customer or partner sent money to the business"),
    ),
    "receipts": (
        SecondaryTemplate("PaymentSent", "Receipt for a payment the business made"),
        SecondaryTemplate("PaymentReceived", "Receipt for a payment the business received"),
    ),
    "invoice": (
        SecondaryTemplate("BillingDocument", "Statements and billing documents without a due action"),
        SecondaryTemplate("PaymentDue", "Invoices that request payment by a due date"),
        SecondaryTemplate("FormalInvoice", "Formal invoices issued by or to the business"),
    ),
    "bank-alert": (
        SecondaryTemplate("SecurityAlert", "Login, device, or account security notices"),
        SecondaryTemplate("FraudWarning", "Suspicious activity or fraud warnings"),
        SecondaryTemplate("PasswordReset", "Password reset and verification codes"),
    ),
    "refund": (
        SecondaryTemplate("RefundIssued", "The business refunded a customer"),
        SecondaryTemplate("RefundReceived", "The business received a refund"),
    ),
}

BASE_PRIMARIES: tuple[PrimaryDefinition, ...] = (
    PrimaryDefinition(
        "Banking",
        "Financial transactions, invoices, payments, refunds, and bank notices",
        ("invoice", "payment", "e-transfer", "interac", "refund", "receipt", "bank"),
        (
            SecondaryTemplate(
                "e-transfer", "Interac e-Transfers and bank transfers", ("e-transfer", "interac")
            ),
            SecondaryTemplate("invoice", "Invoices and billing statements", ("invoice", "due date")),
            SecondaryTemplate(
                "bank-alert", "Security and account alerts from banks", ("alert", "suspicious")
            ),
            SecondaryTemplate("refund", "Refund confirmations", ("refund", "refunded")),
            SecondaryTemplate("receipts", "Proof that a payment cleared", ("receipt", "amount paid")),
        ),
    ),
    PrimaryDefinition(
        "FormSub",
        "Website and app form submissions",
        ("new submission", "form submission", "work order"),
        (
            SecondaryTemplate("NewSubmission", "Contact and quote forms submitted on the website"),
            SecondaryTemplate("WorkOrderForms", "Completed work order or service forms"),
        ),
    ),
    PrimaryDefinition(
        "GoogleReview",
        "Notifications about new Google reviews and replies",
        ("google review", "new review", "left a review"),
    ),
    PrimaryDefinition(
        "Manager",
        "Internal matters that need a specific manager's attention",
        ("manager", "escalate", "internal"),
    ),
    PrimaryDefinition(
        "Misc",
        "Anything that does not clearly fit another category",
    ),
    PrimaryDefinition(
        "Phone",
        "Voicemail, missed call, and SMS notifications from the phone provider",
        ("voicemail", "missed call", "new text message"),
    ),
    PrimaryDefinition(
        "Promo",
        "Marketing, newsletters, and promotional offers sent to the business",
        ("newsletter", "sale", "discount", "unsubscribe", "webinar"),
    ),
    PrimaryDefinition(
        "Recruitment",
        "Job applications, resumes, and hiring platform messages",
        ("resume", "application", "job posting", "candidate", "interview"),
    ),
    PrimaryDefinition(
        "Sales",
        "New leads and customers interested in buying products or services",
        ("quote", "price", "estimate", "interested in", "purchase"),
    ),
    PrimaryDefinition(
        "Socialmedia",
        "Notifications from social platforms about messages, mentions, or comments",
        ("facebook", "instagram", "linkedin", "tiktok", "mentioned you"),
    ),
    PrimaryDefinition(
        "Suppliers",
        "Correspondence from known suppliers and vendors",
        ("supplier", "order confirmation", "shipment", "backorder"),
    ),
    PrimaryDefinition(
        "Support",
        "Existing customers asking for help, service, or scheduling",
        ("help", "appointment", "repair", "question", "schedule"),
        (
            SecondaryTemplate(
                "AppointmentScheduling",
                "Booking, rescheduling, or cancelling service visits",
                ("appointment", "reschedule", "booking", "visit"),
            ),
            SecondaryTemplate(
                "General",
                "General customer questions and how-to requests",
                ("question", "how to", "help"),
            ),
        ),
    ),
    PrimaryDefinition(
        "Urgent",
        "Emergencies and time-critical problems that need immediate attention",
        ("urgent", "emergency", "asap", "immediately"),
    ),
)


def join_path(*parts: str) -> str:
    """Summary: Join path segments with the taxonomy delimiter."""

    return PATH_DELIMITER.join(part for part in parts if part)


def split_path(path: str) -> list[str]:
    """Summary: Split a taxonomy path into its segments."""

    return [part for part in path.split(PATH_DELIMITER) if part]


def parent_path(path: str) -> str | None:
    """Summary: Parent of a path, or None for primaries.

    Importance: Reconciliation creates parents before children.
    Alternatives: Store parent links on every entry.
    """

    parts = split_path(path)
    if len(parts) <= 1:
        return None
    return join_path(*parts[:-1])


def path_depth(path: str) -> int:
    """Summary: Number of segments in a path."""

    return len(split_path(path))


def folder_safe_name(name: str) -> str:
    """Summary: Make a display name safe to use as a single path segment.

    Importance: A slash in a manager name would otherwise create a nested folder.
    Alternatives: Reject such names during onboarding.
    """

    return " ".join(name.replace(PATH_DELIMITER, "-").split())


def departments_for_primary(primary: str) -> frozenset[DepartmentTag]:
    """Summary: Departments whose roles route into a primary category.

    Importance: Annotates nodes with the deployments that may classify into them.
    Alternatives: Recompute from roles wherever it is needed.
    """

    departments = {
        department
        for department, roles in DEPARTMENT_ROLES.items()
        if any(primary in routed_categories(role) for role in roles)
    }
    return frozenset(departments)


def build_taxonomy(config: BusinessConfiguration) -> list[TaxonomyNode]:
    """Summary: Build the full taxonomy for a business.

    Importance: Merges base categories, industry extensions, managers, and suppliers.
    Alternatives: Persist the taxonomy and edit it incrementally.
    """

    templates = resolve_templates(config.industry_types)
    nodes: list[TaxonomyNode] = []
    for primary in BASE_PRIMARIES:
        departments = departments_for_primary(primary.name)
        keywords = primary.keywords + _industry_primary_keywords(primary.name, templates)
        nodes.append(
            TaxonomyNode(
                name=primary.name,
                parent_path=None,
                kind=NodeKind.PRIMARY,
                description=primary.description,
                keywords=_dedupe(keywords),
                examples=_industry_primary_examples(primary.name, templates),
                allowed_departments=departments,
            )
        )
        for secondary in _secondaries_for(primary, config, templates):
            nodes.append(
                TaxonomyNode(
                    name=secondary.name,
                    parent_path=primary.name,
                    kind=NodeKind.SECONDARY,
                    description=secondary.description,
                    keywords=secondary.keywords,
                    allowed_departments=departments,
                )
            )
            if primary.name != "Banking":
                continue
            for tertiary in BANKING_TERTIARY.get(secondary.name, ()):
                nodes.append(
                    TaxonomyNode(
                        name=tertiary.name,
                        parent_path=join_path(primary.name, secondary.name),
                        kind=NodeKind.TERTIARY,
                        description=tertiary.description,
                        keywords=tertiary.keywords,
                        allowed_departments=departments,
                    )
                )
    _ensure_unique_paths(nodes)
    return nodes


def required_paths(nodes: list[TaxonomyNode]) -> list[str]:
    """Summary: Every leaf and intermediate path the mailbox must contain, parents first.

    Importance: Drives the topological creation order used by reconciliation.
    Alternatives: Rely on the provider to create missing parents.
    """

    paths: list[str] = []
    for node in nodes:
        parts = split_path(node.path)
        for index in range(1, len(parts) + 1):
            candidate = join_path(*parts[:index])
            if candidate not in paths:
                paths.append(candidate)
    return sorted(paths, key=path_depth)


def primary_names(nodes: list[TaxonomyNode]) -> list[str]:
    """Summary: Names of the primary categories in taxonomy order."""

    return [node.name for node in nodes if node.kind == NodeKind.PRIMARY]


def children_of(nodes: list[TaxonomyNode], path: str) -> list[TaxonomyNode]:
    """Summary: Direct children of a path in taxonomy order."""

    return [node for node in nodes if node.parent_path == path]


def _secondaries_for(
    primary: PrimaryDefinition,
    config: BusinessConfiguration,
    templates: tuple[IndustryTemplate, ...],
) -> list[SecondaryTemplate]:
    secondaries = list(primary.secondaries)
    if primary.name == "Manager":
        for manager in config.team:
            secondaries.append(
                SecondaryTemplate(
                    folder_safe_name(manager.name),
                    f"Emails for {manager.name}",
                    tuple(keyword for keyword in (manager.name, manager.email) if keyword),
                )
            )
        secondaries.append(
            SecondaryTemplate(UNASSIGNED_MANAGER, "Manager emails with no clear recipient")
        )
    elif primary.name == "Suppliers":
        for supplier in config.suppliers:
            secondaries.append(
                SecondaryTemplate(
                    folder_safe_name(supplier.name),
                    f"Emails from {supplier.name}",
                    supplier.domains,
                )
            )
    elif primary.name == "Sales":
        for template in templates:
            secondaries.extend(template.sales_secondaries)
    elif primary.name == "Support":
        for template in templates:
            secondaries.extend(template.support_secondaries)
    unique: list[SecondaryTemplate] = []
    seen: set[str] = set()
    for secondary in secondaries:
        if not secondary.name or secondary.name.lower() in seen:
            continue
        seen.add(secondary.name.lower())
        unique.append(secondary)
    return unique


def _industry_primary_keywords(
    primary: str, templates: tuple[IndustryTemplate, ...]
) -> tuple[str, ...]:
    if primary == "Sales":
        return tuple(keyword for template in templates for keyword in template.sales_keywords)
    if primary == "Urgent":
        return tuple(keyword for template in templates for keyword in template.urgent_keywords)
    return ()


def _industry_primary_examples(
    primary: str, templates: tuple[IndustryTemplate, ...]
) -> tuple[str, ...]:
    if primary == "Sales":
        return _dedupe(tuple(example for template in templates for example in template.sales_examples))
    if primary == "Urgent":
        return _dedupe(tuple(example for template in templates for example in template.urgent_examples))
    return ()


def _dedupe(values: tuple[str, ...]) -> tuple[str, ...]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return tuple(seen)


def _ensure_unique_paths(nodes: list[TaxonomyNode]) -> None:
    seen: set[str] = set()
    for node in nodes:
        key = node.path.lower()
        if key in seen:
            raise ConfigurationError(f"Duplicate taxonomy path: {node.path}")
        seen.add(key)
