"""Summary: Pydantic schemas for JSON crossing the storage and AI boundaries.

Importance: Internal code only sees validated, strongly-typed structures.
Alternatives: Trust stored JSON blobs and index into dictionaries directly.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_SCHEMA_VERSION = 1


class ManagerSchema(BaseModel):
    """Summary: Stored representation of a team manager.

    Importance: Rejects roster entries without a name before compilation.
    Alternatives: Skip malformed managers silently.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    email: str = ""
    roles: list[str] = Field(default_factory=list)
    forward_enabled: bool = Field(default=False, alias="forwardEnabled")

    @field_validator("roles", mode="before")
    @classmethod
    def _coerce_roles(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class SupplierSchema(BaseModel):
    """Summary: Stored representation of a supplier.

    Importance: Normalizes supplier domains for the prompt supplier section.
    Alternatives: Store suppliers as plain names.
    """

    name: str = Field(min_length=1)
    email: str = ""
    domains: list[str] = Field(default_factory=list)

    @field_validator("domains", mode="before")
    @classmethod
    def _coerce_domains(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


class BusinessConfigSchema(BaseModel):
    """Summary: Versioned business configuration document.

    Importance: Validates onboarding data at the persistence edge.
    Alternatives: Store loosely-typed nested objects.
    """

    model_config = ConfigDict(populate_by_name=True)

    business_id: str = Field(min_length=1, alias="businessId")
    industry_types: list[str] = Field(default_factory=list, alias="industryTypes")
    department_scope: list[str] = Field(default_factory=lambda: ["all"], alias="departmentScope")
    team: list[ManagerSchema] = Field(default_factory=list)
    suppliers: list[SupplierSchema] = Field(default_factory=list)
    business_name: str = Field(default="", alias="businessName")
    business_domains: list[str] = Field(default_factory=list, alias="businessDomains")
    schema_version: int = Field(default=CONFIG_SCHEMA_VERSION, alias="schemaVersion")

    @field_validator("industry_types", "department_scope", "business_domains", mode="before")
    @classmethod
    def _coerce_string_lists(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("team", "suppliers", mode="before")
    @classmethod
    def _coerce_records(cls, value: Any) -> Any:
        return [] if value is None else value


class SignalGroupsSchema(BaseModel):
    """Summary: Grouped voice signals as stored in the voice profile table.

    Importance: Guards aggregation against malformed signal values.
    Alternatives: Store each signal in its own column.
    """

    tone: dict[str, float] = Field(default_factory=dict)
    formality: dict[str, float] = Field(default_factory=dict)
    empathy: dict[str, float] = Field(default_factory=dict)
    structure: dict[str, float] = Field(default_factory=dict)


class StyleDeltaSchema(BaseModel):
    """Summary: Stored signed style deltas of one correction.

    Importance: Keeps correction rows aggregatable after schema changes.
    Alternatives: Store deltas as free-form JSON.
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


class ClassificationSchema(BaseModel):
    """Summary: Structured classification object returned by the AI service.

    Importance: Model output is untrusted and must be validated before routing.
    Alternatives: Index into the parsed JSON and hope keys exist.
    """

    primary_category: str = Field(min_length=1)
    secondary_category: str | None = None
    tertiary_category: str | None = None
    confidence: float = 0.0
    ai_can_reply: bool = False
    summary: str = ""
    reasoning: str = ""
    entities: dict[str, Any] = Field(default_factory=dict)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        return min(1.0, max(0.0, number))

    @field_validator("entities", mode="before")
    @classmethod
    def _coerce_entities(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}
