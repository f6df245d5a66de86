"""Summary: Static manager role table and department mapping.

Importance: Role routes decide which categories a department deployment may classify into.
Alternatives: Store role definitions in the database per business.
"""

from __future__ import annotations

from dataclasses import dataclass

from inboxforge.errors import ConfigurationError
from inboxforge.models import DepartmentTag, RoleId


@dataclass(frozen=True)
class RoleDefinition:
    """Summary: Metadata for a single manager role.

    Importance: Carries the routed categories and keywords used in prompts.
    Alternatives: Keep parallel dictionaries keyed by role id.
    """

    role_id: RoleId
    label: str
    description: str
    routed_categories: tuple[str, ...]
    keywords: tuple[str, ...]


ROLE_DEFINITIONS: dict[RoleId, RoleDefinition] = {
    RoleId.SALES_MANAGER: RoleDefinition(
        role_id=RoleId.SALES_MANAGER,
        label="Sales Manager",
        description="Handles quotes, new leads, pricing inquiries",
        routed_categories=("Sales",),
        keywords=(
            "price",
            "quote",
            "buy",
            "purchase",
            "how much",
            "cost",
            "pricing",
            "estimate",
            "proposal",
            "new customer",
            "lead",
            "interested in",
        ),
    ),
    RoleId.SERVICE_MANAGER: RoleDefinition(
        role_id=RoleId.SERVICE_MANAGER,
        label="Service Manager",
        description="Handles repairs, appointments, emergencies",
        routed_categories=("Support", "Urgent"),
        keywords=(
            "repair",
            "fix",
            "broken",
            "appointment",
            "emergency",
            "service call",
            "urgent",
            "not working",
            "schedule",
            "maintenance",
            "inspection",
        ),
    ),
    RoleId.OPERATIONS_MANAGER: RoleDefinition(
        role_id=RoleId.OPERATIONS_MANAGER,
        label="Operations Manager",
        description="Handles vendors, internal ops, hiring",
        routed_categories=("Manager", "Suppliers"),
        keywords=(
            "vendor",
            "supplier",
            "hiring",
            "internal",
            "operations",
            "procurement",
            "inventory",
            "order",
            "contract",
            "staff",
            "employee",
        ),
    ),
    RoleId.SUPPORT_LEAD: RoleDefinition(
        role_id=RoleId.SUPPORT_LEAD,
        label="Support Lead",
        description="Handles general questions, parts, how-to",
        routed_categories=("Support",),
        keywords=(
            "help",
            "question",
            "parts",
            "chemicals",
            "how to",
            "support",
            "assistance",
            "information",
            "inquiry",
            "product info",
        ),
    ),
    RoleId.OWNER: RoleDefinition(
        role_id=RoleId.OWNER,
        label="Owner/CEO",
        description="Handles strategic, legal, high-priority",
        routed_categories=("Manager", "Urgent"),
        keywords=(
            "strategic",
            "legal",
            "partnership",
            "media",
            "press",
            "executive",
            "confidential",
            "high priority",
            "compliance",
            "regulation",
        ),
    ),
}

DEPARTMENT_ROLES: dict[DepartmentTag, tuple[RoleId, ...]] = {
    DepartmentTag.SALES: (RoleId.SALES_MANAGER,),
    DepartmentTag.SUPPORT: (RoleId.SERVICE_MANAGER, RoleId.SUPPORT_LEAD),
    DepartmentTag.OPERATIONS: (RoleId.OPERATIONS_MANAGER,),
}


def get_role(role_id: RoleId | str) -> RoleDefinition:
    """Summary: Look up a role definition by id.

    Importance: Rejects unknown roles instead of silently ignoring them.
    Alternatives: Return None for unknown ids.
    """

    try:
        return ROLE_DEFINITIONS[RoleId(role_id)]
    except ValueError as exc:
        raise ConfigurationError(f"Unknown role: {role_id}") from exc


def routed_categories(role_id: RoleId | str) -> tuple[str, ...]:
    """Summary: Categories a role receives.

    Importance: Basis for department allow-lists and manager filtering.
    Alternatives: Inline the lookup at each call site.
    """

    return get_role(role_id).routed_categories


def allowed_categories_for(departments: tuple[DepartmentTag, ...]) -> tuple[str, ...]:
    """Summary: Union of routed categories for the roles of the given departments.

    Importance: Defines the strict allow-list of a department deployment.
    Alternatives: Configure the allow-list per business by hand.
    """

    allowed: list[str] = []
    for department in departments:
        for role_id in DEPARTMENT_ROLES.get(department, ()):
            for category in routed_categories(role_id):
                if category not in allowed:
                    allowed.append(category)
    return tuple(allowed)


def matching_roles(
    roles: tuple[RoleId, ...], allowed_categories: tuple[str, ...]
) -> tuple[RoleId, ...]:
    """Summary: Subset of roles that route into at least one allowed category.

    Importance: Department prompts render only the relevant roles of a manager.
    Alternatives: Render every role a manager holds.
    """

    allowed = set(allowed_categories)
    return tuple(role for role in roles if allowed.intersection(routed_categories(role)))


def keywords_for_roles(roles: tuple[RoleId, ...]) -> tuple[str, ...]:
    """Summary: Deduplicated keywords across several roles."""

    seen: list[str] = []
    for role in roles:
        for keyword in get_role(role).keywords:
            if keyword not in seen:
                seen.append(keyword)
    return tuple(seen)
