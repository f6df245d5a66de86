"""Summary: Business configuration resolver.

Importance: Turns loosely-typed onboarding data into one normalized configuration object.
Alternatives: Let each component read and interpret raw configuration rows.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from inboxforge.errors import ConfigurationError
from inboxforge.industry_templates import resolve_templates
from inboxforge.models import (
    BusinessConfiguration,
    DepartmentTag,
    ManagerRecord,
    RoleId,
    SupplierRecord,
)
from inboxforge.roles import get_role
from inboxforge.schemas import BusinessConfigSchema, ManagerSchema, SupplierSchema

# Shared webmail domains never count as a business's own domain.
PUBLIC_EMAIL_DOMAINS = frozenset(
    {
        "aol.com",
        "gmail.com",
        "gmx.com",
        "googlemail.com",
        "hotmail.com",
        "icloud.com",
        "live.com",
        "me.com",
        "msn.com",
        "outlook.com",
        "proton.me",
        "protonmail.com",
        "yahoo.com",
    }
)


def validate_document(raw: dict[str, Any]) -> BusinessConfigSchema:
    """Summary: Validate a raw configuration document.

    Importance: Malformed team or role data is reported as a configuration problem.
    Alternatives: Surface pydantic errors directly to callers.
    """

    try:
        return BusinessConfigSchema.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid business configuration: {exc}") from exc


def resolve_configuration(raw: dict[str, Any]) -> BusinessConfiguration:
    """Summary: Resolve a stored configuration document into a BusinessConfiguration.

    Importance: The compiler and reconciler only ever see normalized data.
    Alternatives: Normalize lazily inside the compiler.
    """

    return configuration_from_schema(validate_document(raw))


def configuration_from_schema(schema: BusinessConfigSchema) -> BusinessConfiguration:
    """Summary: Convert a validated schema into the domain configuration.

    Importance: Applies defaults and normalization rules in a single place.
    Alternatives: Keep the pydantic model as the domain object.
    """

    industry_types = _unique(
        industry.strip() for industry in schema.industry_types if industry and industry.strip()
    )
    # Fails fast when nothing resolves, not even to the generic template.
    resolve_templates(industry_types)
    team = _resolve_team(schema.team)
    suppliers = tuple(_resolve_supplier(supplier) for supplier in schema.suppliers)
    domains = _unique(
        [_normalize_domain(domain) for domain in schema.business_domains]
        + [
            domain
            for domain in (_email_domain(manager.email) for manager in team)
            if domain not in PUBLIC_EMAIL_DOMAINS
        ]
    )
    return BusinessConfiguration(
        business_id=schema.business_id.strip(),
        industry_types=industry_types,
        department_scope=resolve_department_scope(schema.department_scope),
        team=team,
        suppliers=suppliers,
        business_name=schema.business_name.strip(),
        business_domains=domains,
    )


def resolve_department_scope(values: list[str]) -> tuple[DepartmentTag, ...]:
    """Summary: Normalize a department scope list.

    Importance: An empty scope or one containing "all" means hub mode.
    Alternatives: Require callers to always send ["all"] explicitly.
    """

    cleaned = _unique(value.strip().lower() for value in values if value and value.strip())
    if not cleaned or DepartmentTag.ALL.value in cleaned:
        return (DepartmentTag.ALL,)
    departments: list[DepartmentTag] = []
    for value in cleaned:
        try:
            departments.append(DepartmentTag(value))
        except ValueError as exc:
            raise ConfigurationError(f"Unknown department: {value}") from exc
    return tuple(departments)


def configuration_to_document(config: BusinessConfiguration) -> dict[str, Any]:
    """Summary: Serialize a configuration back into its stored document form.

    Importance: Round-trips through the same schema used for validation.
    Alternatives: Persist the dataclass with pickle.
    """

    schema = BusinessConfigSchema(
        business_id=config.business_id,
        industry_types=list(config.industry_types),
        department_scope=[tag.value for tag in config.department_scope],
        team=[
            ManagerSchema(
                name=manager.name,
                email=manager.email,
                roles=[role.value for role in manager.roles],
                forward_enabled=manager.forward_enabled,
            )
            for manager in config.team
        ],
        suppliers=[
            SupplierSchema(name=supplier.name, email=supplier.email, domains=list(supplier.domains))
            for supplier in config.suppliers
        ],
        business_name=config.business_name,
        business_domains=list(config.business_domains),
    )
    return schema.model_dump()


def _resolve_team(managers: list[ManagerSchema]) -> tuple[ManagerRecord, ...]:
    records: list[ManagerRecord] = []
    seen: set[str] = set()
    for manager in managers:
        name = " ".join(manager.name.split())
        if not name:
            raise ConfigurationError("Manager name cannot be blank")
        if name.lower() in seen:
            raise ConfigurationError(f"Duplicate manager: {name}")
        seen.add(name.lower())
        roles: list[RoleId] = []
        for role in manager.roles:
            if not role or not role.strip():
                continue
            role_id = get_role(role.strip().lower()).role_id
            if role_id not in roles:
                roles.append(role_id)
        records.append(
            ManagerRecord(
                name=name,
                email=manager.email.strip().lower(),
                roles=tuple(roles),
                forward_enabled=manager.forward_enabled,
            )
        )
    return tuple(records)


def _resolve_supplier(supplier: SupplierSchema) -> SupplierRecord:
    email = supplier.email.strip().lower()
    domains = _unique(_normalize_domain(domain) for domain in supplier.domains)
    if not domains and email:
        domains = _unique([_email_domain(email)])
    return SupplierRecord(name=" ".join(supplier.name.split()), email=email, domains=domains)


def _normalize_domain(domain: str) -> str:
    return domain.strip().lower().lstrip("@")


def _email_domain(email: str) -> str:
    if "@" not in email:
        return ""
    return email.rsplit("@", 1)[1].strip().lower()


def _unique(values: Any) -> tuple[str, ...]:
    unique: list[str] = []
    for value in values:
        if value and value not in unique:
            unique.append(value)
    return tuple(unique)
