"""Summary: Email classification against a compiled prompt and taxonomy.

Importance: Validates model output and enforces the department allow-list before routing.
Alternatives: Trust the model to respect the prompt restriction.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass

from pydantic import ValidationError

from inboxforge.ai import AiProvider
from inboxforge.models import Classification, CompiledPromptArtifact, IncomingEmail, TaxonomyNode
from inboxforge.prompt_compiler import REPLY_CONFIDENCE_THRESHOLD, REPLYABLE_CATEGORIES
from inboxforge.schemas import ClassificationSchema
from inboxforge.taxonomy import OUT_OF_SCOPE, children_of, join_path, primary_names

logger = logging.getLogger(__name__)

FALLBACK_PRIMARY = "Misc"
ENTITY_KEYS = ("contact_name", "email_address", "phone_number", "order_number")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


@dataclass(frozen=True)
class RuleBasedClassifier:
    """Summary: Keyword-based classifier over taxonomy nodes.

    Importance: Offers deterministic categorization when the AI output is unusable.
    Alternatives: Route unparseable responses straight to Misc.
    """

    def classify(self, email: IncomingEmail, nodes: list[TaxonomyNode]) -> Classification:
        """Summary: Pick the primary and secondary with the most keyword hits.

        Importance: Keeps triage running during AI outages.
        Alternatives: Require manual category assignment.
        """

        text = f"{email.subject} {email.body}".lower()
        best_primary = FALLBACK_PRIMARY
        best_hits = 0
        for name in primary_names(nodes):
            node = next(item for item in nodes if item.path == name)
            hits = _keyword_hits(text, node)
            if hits > best_hits:
                best_primary, best_hits = name, hits
        secondary = None
        secondary_hits = 0
        for child in children_of(nodes, best_primary):
            hits = _keyword_hits(text, child)
            if hits > secondary_hits:
                secondary, secondary_hits = child.name, hits
        confidence = 0.1 if best_hits == 0 else min(0.6, 0.2 + 0.1 * (best_hits + secondary_hits))
        return Classification(
            primary_category=best_primary,
            secondary_category=secondary,
            tertiary_category=None,
            confidence=round(confidence, 2),
            ai_can_reply=False,
            reasoning=f"Keyword fallback matched {best_hits} term(s).",
        )


def _extract_keywords(node: TaxonomyNode) -> list[str]:
    """Summary: Keywords from a node's explicit list plus its name."""

    keywords = [keyword.lower() for keyword in node.keywords if keyword]
    keywords.extend(token for token in re.split(r"\W+", node.name.lower()) if len(token) > 2)
    return keywords


def _keyword_hits(text: str, node: TaxonomyNode) -> int:
    return sum(1 for keyword in set(_extract_keywords(node)) if keyword in text)


def parse_classification(
    text: str,
    artifact: CompiledPromptArtifact,
    nodes: list[TaxonomyNode],
    sender: str = "",
    business_domains: tuple[str, ...] = (),
) -> Classification | None:
    """Summary: Parse and validate a model response, returning None when unparseable.

    Importance: Categories outside the deployment's allow-list never reach routing.
    Alternatives: Reject the whole response on any unexpected category.
    """

    payload = _load_json(text)
    if payload is None:
        return None
    try:
        schema = ClassificationSchema.model_validate(payload)
    except ValidationError as exc:
        logger.warning("AI classification failed validation: %s", exc.error_count())
        return None
    classification = Classification(
        primary_category=schema.primary_category.strip(),
        secondary_category=schema.secondary_category,
        tertiary_category=schema.tertiary_category,
        confidence=schema.confidence,
        ai_can_reply=schema.ai_can_reply,
        summary=schema.summary,
        reasoning=schema.reasoning,
        entities={key: _entity_value(schema.entities.get(key)) for key in ENTITY_KEYS},
    )
    return enforce_scope(classification, artifact, nodes, sender, business_domains)


def enforce_scope(
    classification: Classification,
    artifact: CompiledPromptArtifact,
    nodes: list[TaxonomyNode],
    sender: str = "",
    business_domains: tuple[str, ...] = (),
) -> Classification:
    """Summary: Snap a classification onto the taxonomy and the deployment allow-list.

    Importance: Department deployments only ever emit allowed primaries or OUT_OF_SCOPE.
    Alternatives: Filter classifications downstream in the workflow engine.
    """

    primaries = {name.lower(): name for name in primary_names(nodes)}
    primary = primaries.get(classification.primary_category.lower())
    allowed = set(artifact.allowed_categories)
    if allowed and (primary is None or primary not in allowed):
        if classification.primary_category != OUT_OF_SCOPE:
            logger.info(
                "Coerced %s to %s for business %s.",
                classification.primary_category,
                OUT_OF_SCOPE,
                artifact.business_id,
            )
        return Classification(
            primary_category=OUT_OF_SCOPE,
            secondary_category=None,
            tertiary_category=None,
            confidence=classification.confidence,
            ai_can_reply=False,
            summary=classification.summary,
            reasoning=classification.reasoning,
            entities=classification.entities,
        )
    if primary is None:
        primary = FALLBACK_PRIMARY
    secondary = _child_name(nodes, primary, classification.secondary_category)
    tertiary = None
    if secondary is not None:
        tertiary = _child_name(nodes, join_path(primary, secondary), classification.tertiary_category)
    can_reply = classification.ai_can_reply and reply_eligible(
        primary, classification.confidence, sender, business_domains
    )
    return Classification(
        primary_category=primary,
        secondary_category=secondary,
        tertiary_category=tertiary,
        confidence=classification.confidence,
        ai_can_reply=can_reply,
        summary=classification.summary,
        reasoning=classification.reasoning,
        entities=classification.entities,
    )


def reply_eligible(
    primary: str, confidence: float, sender: str, business_domains: tuple[str, ...]
) -> bool:
    """Summary: Whether an AI reply may be drafted for a classified email.

    Importance: Internal mail and low-confidence classifications never get AI replies.
    Alternatives: Let the model decide alone.
    """

    if primary not in REPLYABLE_CATEGORIES or confidence < REPLY_CONFIDENCE_THRESHOLD:
        return False
    domain = sender.rsplit("@", 1)[-1].strip().strip(">").lower() if "@" in sender else ""
    return bool(domain) and domain not in {item.lower() for item in business_domains}


class ClassificationService:
    """Summary: Classifies inbound emails with the compiled prompt.

    Importance: Combines the AI call, validation, scope enforcement, and fallback.
    Alternatives: Call the AI provider from the workflow engine.
    """

    def __init__(
        self, ai_provider: AiProvider, fallback: RuleBasedClassifier | None = None
    ) -> None:
        """Summary: Initialize with an AI provider and a keyword fallback.

        Importance: The fallback keeps classification available when output is malformed.
        Alternatives: Raise on malformed output.
        """

        self._ai_provider = ai_provider
        self._fallback = fallback or RuleBasedClassifier()

    def classify(
        self,
        artifact: CompiledPromptArtifact,
        nodes: list[TaxonomyNode],
        email: IncomingEmail,
        business_domains: tuple[str, ...] = (),
    ) -> Classification:
        """Summary: Classify an email, falling back to keywords on unparseable output.

        Importance: Every result respects the artifact's allow-list.
        Alternatives: Retry the model until it returns valid JSON.
        """

        user_content = f"From: {email.sender}\nSubject: {email.subject}\n\n{email.body}"
        text, latency_ms = self._ai_provider.complete(artifact.text, user_content)
        parsed = parse_classification(text, artifact, nodes, email.sender, business_domains)
        if parsed is not None:
            logger.info(
                "Classified email for business %s as %s in %sms.",
                artifact.business_id,
                parsed.primary_category,
                latency_ms,
            )
            return parsed
        logger.warning(
            "Unparseable AI classification for business %s, using keyword fallback.",
            artifact.business_id,
        )
        fallback = self._fallback.classify(email, nodes)
        return enforce_scope(fallback, artifact, nodes, email.sender, business_domains)


def _load_json(text: str) -> dict | None:
    cleaned = _CODE_FENCE.sub("", text.strip()).strip()
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        payload = json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def _child_name(nodes: list[TaxonomyNode], parent: str, name: str | None) -> str | None:
    if not name:
        return None
    for child in children_of(nodes, parent):
        if child.name.lower() == name.strip().lower():
            return child.name
    return None


def _entity_value(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
