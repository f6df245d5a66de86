"""Summary: Tests for classification parsing, scope enforcement, and fallback.

Importance: Model output is untrusted and must respect the deployment's allow-list.
Alternatives: Rely on the prompt alone to restrict categories.
"""

from __future__ import annotations

import json
from typing import Any

from inboxforge.ai import MockAiProvider
from inboxforge.business_config import resolve_configuration
from inboxforge.classifier import ClassificationService, parse_classification, reply_eligible
from inboxforge.models import BusinessConfiguration, CompiledPromptArtifact, IncomingEmail
from inboxforge.prompt_compiler import compile_prompt
from inboxforge.taxonomy import OUT_OF_SCOPE, build_taxonomy

DOMAINS = ("bluelagoon.com",)


def _config(scope: list[str] | None = None) -> BusinessConfiguration:
    """Summary: Build a pool business configuration with an optional department scope."""

    return resolve_configuration(
        {
            "businessId": "biz-1",
            "industryTypes": ["Pools"],
            "departmentScope": scope or ["all"],
            "team": [
                {"name": "Alice", "email": "alice@bluelagoon.com", "roles": ["sales_manager"]}
            ],
        }
    )


def _artifact(config: BusinessConfiguration) -> CompiledPromptArtifact:
    return compile_prompt(config)


def _response(**fields: Any) -> str:
    payload: dict[str, Any] = {
        "primary_category": "Support",
        "secondary_category": "General",
        "tertiary_category": None,
        "confidence": 0.9,
        "ai_can_reply": True,
        "summary": "Customer question",
        "reasoning": "Asks how to use the product",
        "entities": {"contact_name": "Sam", "order_number": 1042},
    }
    payload.update(fields)
    return json.dumps(payload)


def test_parse_classification_handles_code_fences() -> None:
    """Summary: Verify fenced JSON is parsed and names are snapped to the taxonomy.

    Importance: Models often wrap JSON in markdown fences.
    Alternatives: Reject fenced responses.
    """

    config = _config()
    body = _response(primary_category="support", secondary_category="general")
    text = f"```json\n{body}\n```"
    result = parse_classification(
        text, _artifact(config), build_taxonomy(config), "Sam <sam@gmail.com>", DOMAINS
    )
    assert result is not None
    assert result.primary_category == "Support"
    assert result.secondary_category == "General"
    assert result.ai_can_reply is True
    assert result.entities["contact_name"] == "Sam"
    assert result.entities["order_number"] == "1042"
    assert result.entities["phone_number"] is None


def test_parse_classification_rejects_garbage() -> None:
    """Summary: Verify unparseable or invalid output yields None."""

    config = _config()
    artifact, nodes = _artifact(config), build_taxonomy(config)
    assert parse_classification("I think this is sales.", artifact, nodes) is None
    assert parse_classification("[1, 2]", artifact, nodes) is None
    assert parse_classification(json.dumps({"confidence": 0.5}), artifact, nodes) is None


def test_department_scope_coerces_out_of_scope() -> None:
    """Summary: Verify a sales deployment never emits Support.

    Importance: Department deployments must only route their own categories.
    Alternatives: Filter results in the workflow engine.
    """

    config = _config(["sales"])
    result = parse_classification(
        _response(), _artifact(config), build_taxonomy(config), "sam@gmail.com", DOMAINS
    )
    assert result is not None
    assert result.primary_category == OUT_OF_SCOPE
    assert result.secondary_category is None
    assert result.tertiary_category is None
    assert result.ai_can_reply is False


def test_hub_mode_maps_unknown_primary_to_misc() -> None:
    """Summary: Verify unknown categories fall back to Misc and unknown children are dropped."""

    config = _config()
    nodes = build_taxonomy(config)
    result = parse_classification(
        _response(primary_category="Taxes", secondary_category="General"), _artifact(config), nodes
    )
    assert result is not None
    assert result.primary_category == "Misc"
    assert result.secondary_category is None
    assert result.ai_can_reply is False

    result = parse_classification(
        _response(secondary_category="Gardening"), _artifact(config), nodes
    )
    assert result is not None
    assert result.primary_category == "Support"
    assert result.secondary_category is None


def test_reply_eligibility_rules() -> None:
    """Summary: Verify AI replies need a replyable category, confidence, and an external sender.

    Importance: Internal mail must never receive an automated reply.
    Alternatives: Trust the model's ai_can_reply flag.
    """

    assert reply_eligible("Sales", 0.8, "Jo <jo@gmail.com>", DOMAINS) is True
    assert reply_eligible("Urgent", 0.75, "jo@gmail.com", DOMAINS) is True
    assert reply_eligible("Sales", 0.74, "jo@gmail.com", DOMAINS) is False
    assert reply_eligible("Promo", 0.95, "jo@gmail.com", DOMAINS) is False
    assert reply_eligible("Support", 0.9, "Alice@BlueLagoon.com", DOMAINS) is False
    assert reply_eligible("Support", 0.9, "no-address", DOMAINS) is False


def test_model_flag_is_required_for_reply() -> None:
    """Summary: Verify the model's own refusal to reply is kept."""

    config = _config()
    result = parse_classification(
        _response(ai_can_reply=False),
        _artifact(config),
        build_taxonomy(config),
        "sam@gmail.com",
        DOMAINS,
    )
    assert result is not None
    assert result.ai_can_reply is False


def test_service_falls_back_to_keywords() -> None:
    """Summary: Verify malformed AI output is replaced by keyword classification.

    Importance: Triage keeps working when the model misbehaves.
    Alternatives: Raise and leave the email unclassified.
    """

    config = _config()
    provider = MockAiProvider("Sorry, I cannot help with that.")
    service = ClassificationService(provider)
    email = IncomingEmail(
        sender="sam@gmail.com",
        subject="Reschedule",
        body="Can we reschedule my appointment next week?",
    )
    result = service.classify(_artifact(config), build_taxonomy(config), email, DOMAINS)
    assert result.primary_category == "Support"
    assert result.secondary_category == "AppointmentScheduling"
    assert result.ai_can_reply is False
    assert result.confidence <= 0.6
    system_message, user_content = provider.calls[0]
    assert system_message == _artifact(config).text
    assert "Subject: Reschedule" in user_content


def test_service_fallback_respects_department_scope() -> None:
    """Summary: Verify keyword fallback results are also restricted by scope."""

    config = _config(["sales"])
    service = ClassificationService(MockAiProvider("not json"))
    email = IncomingEmail(sender="sam@gmail.com", subject="Appointment", body="Please schedule")
    result = service.classify(_artifact(config), build_taxonomy(config), email, DOMAINS)
    assert result.primary_category == OUT_OF_SCOPE
