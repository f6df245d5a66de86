"""Summary: Classifier prompt compiler.

Importance: Produces the complete instruction text the AI completion service classifies with.
Alternatives: Maintain one static prompt per industry by hand.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone

from inboxforge.industry_templates import resolve_templates
from inboxforge.models import (
    BusinessConfiguration,
    CompiledPromptArtifact,
    ManagerRecord,
    NodeKind,
    RoleId,
    TaxonomyNode,
    VoiceProfile,
)
from inboxforge.roles import allowed_categories_for, get_role, matching_roles
from inboxforge.taxonomy import BANKING_TERTIARY, OUT_OF_SCOPE, build_taxonomy, children_of

PROMPT_FORMAT_VERSION = 3
DEFAULT_MIN_VOICE_CONFIDENCE = 0.35
REPLY_CONFIDENCE_THRESHOLD = 0.75
REPLYABLE_CATEGORIES = ("Support", "Sales", "Urgent")

RULES_HEADING = "### Classification Rules:"
CONTEXT_HEADING = "### Business Context:"
CATEGORIES_HEADING = "### Categories:"
TERTIARY_HEADING = "### Tertiary Category Rules:"
MANAGERS_HEADING = "### Team Manager Information:"
SUPPLIERS_HEADING = "### Known Suppliers:"
RESTRICTION_HEADING = "### Department Scope Restriction:"
STYLE_HEADING = "### Voice and Style Guidance:"
OUTPUT_HEADING = "### JSON Output Format:"

SIGNAL_THRESHOLD = 0.2
SENTENCE_LENGTH_THRESHOLD = 2.0
PARAGRAPH_THRESHOLD = 0.5


@dataclass(frozen=True)
class PromptSection:
    """Summary: One headed block of the compiled prompt.

    Importance: Keeps the prompt structure inspectable by heading.
    Alternatives: Build a single string with concatenation only.
    """

    heading: str
    body: str

    def render(self) -> str:
        """Summary: Render the section as heading plus body."""

        return f"{self.heading}\n{self.body.rstrip()}"


def compile_prompt(
    config: BusinessConfiguration,
    voice_profile: VoiceProfile | None = None,
    min_voice_confidence: float = DEFAULT_MIN_VOICE_CONFIDENCE,
    generated_at: datetime | None = None,
) -> CompiledPromptArtifact:
    """Summary: Compile a business configuration into a versioned prompt artifact.

    Importance: Output is a full replacement text, so deployment is an idempotent overwrite.
    Alternatives: Patch the previously deployed prompt incrementally.
    """

    sections = prompt_sections(config, voice_profile, min_voice_confidence)
    text = "\n\n".join(section.render() for section in sections) + "\n"
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    allowed = () if config.is_hub else allowed_categories_for(config.department_scope)
    return CompiledPromptArtifact(
        business_id=config.business_id,
        version=f"v{PROMPT_FORMAT_VERSION}-{digest}",
        text=text,
        generated_at=generated_at or datetime.now(timezone.utc),
        department_scope=config.department_scope,
        allowed_categories=allowed,
    )


def prompt_sections(
    config: BusinessConfiguration,
    voice_profile: VoiceProfile | None = None,
    min_voice_confidence: float = DEFAULT_MIN_VOICE_CONFIDENCE,
) -> list[PromptSection]:
    """Summary: Build the ordered prompt sections for a configuration.

    Importance: Category descriptions are identical in hub and department mode.
    Alternatives: Drop disallowed categories from department prompts.
    """

    nodes = build_taxonomy(config)
    sections = [
        PromptSection(RULES_HEADING, _rules_block(config)),
        PromptSection(CONTEXT_HEADING, _context_block(config)),
        PromptSection(CATEGORIES_HEADING, _categories_block(nodes)),
        PromptSection(TERTIARY_HEADING, _tertiary_block()),
    ]
    managers = _managers_block(config)
    if managers:
        sections.append(PromptSection(MANAGERS_HEADING, managers))
    suppliers = _suppliers_block(config)
    if suppliers:
        sections.append(PromptSection(SUPPLIERS_HEADING, suppliers))
    if not config.is_hub:
        sections.append(PromptSection(RESTRICTION_HEADING, _restriction_block(config)))
    if voice_profile is not None and voice_profile.confidence >= min_voice_confidence:
        sections.append(PromptSection(STYLE_HEADING, render_style_guidance(voice_profile)))
    sections.append(PromptSection(OUTPUT_HEADING, _output_block(config)))
    return sections


def _rules_block(config: BusinessConfiguration) -> str:
    name = config.business_name or config.business_id
    domains = ", ".join(f"@{domain}" for domain in config.business_domains) or "(none configured)"
    replyable = " OR ".join(REPLYABLE_CATEGORIES)
    return "\n".join(
        [
            f'You are an expert email processing and routing system for "{name}". '
            "Analyze the provided email and return a single JSON object with a summary, "
            "precise classifications, and extracted entities. Follow all rules precisely.",
            "",
            "1. Choose exactly one primary_category from the Categories section.",
            "2. Choose a secondary_category only from the sub-categories listed under the chosen "
            "primary category. Use null when none applies.",
            "3. When a secondary category has tertiary rules, tertiary_category is mandatory.",
            '4. Set "ai_can_reply": true ONLY if:',
            f"   - primary_category is {replyable}",
            f"   - AND confidence >= {REPLY_CONFIDENCE_THRESHOLD}",
            "   - AND the sender is external to the business",
            f'5. Internal senders ({domains}) ALWAYS get "ai_can_reply": false.',
        ]
    )


def _context_block(config: BusinessConfiguration) -> str:
    templates = resolve_templates(config.industry_types)
    products = ", ".join(dict.fromkeys(template.product for template in templates))
    lines = [
        f"- Business Name: {config.business_name or config.business_id}",
        f"- Business Type(s): {', '.join(config.industry_types)}",
        f"- Offers: {products}",
    ]
    if config.business_domains:
        lines.append(f"- Email Domain(s): {', '.join(config.business_domains)}")
    return "\n".join(lines)


def _categories_block(nodes: list[TaxonomyNode]) -> str:
    blocks: list[str] = []
    for primary in (node for node in nodes if node.kind == NodeKind.PRIMARY):
        lines = [f"**{primary.name}**: {primary.description}"]
        if primary.keywords:
            lines.append(f"Keywords: {', '.join(primary.keywords)}")
        if primary.examples:
            lines.append(f"Examples: {'; '.join(primary.examples)}")
        secondaries = children_of(nodes, primary.path)
        if secondaries:
            lines.append("Secondary categories:")
        for secondary in secondaries:
            entry = f"  - {secondary.name}: {secondary.description}"
            if secondary.keywords:
                entry += f" (keywords: {', '.join(secondary.keywords)})"
            lines.append(entry)
            tertiary = children_of(nodes, secondary.path)
            if tertiary:
                lines.append(f"    Tertiary: {', '.join(node.name for node in tertiary)}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _tertiary_block() -> str:
    lines = []
    for secondary, tertiary in BANKING_TERTIARY.items():
        options = " or ".join(f"'{node.name}'" for node in tertiary)
        lines.append(f"- If secondary_category is '{secondary}', tertiary_category MUST be {options}")
    return "\n".join(lines)


def _managers_block(config: BusinessConfiguration) -> str:
    allowed = None if config.is_hub else allowed_categories_for(config.department_scope)
    rendered: list[str] = []
    for manager in config.team:
        if allowed is None:
            roles = manager.roles
        else:
            roles = matching_roles(manager.roles, allowed)
            if not roles:
                continue
        rendered.append(_manager_entry(manager, roles))
    if not rendered:
        return ""
    lines = [
        "Route emails to the Manager secondary category that matches the person best.",
        "",
        *rendered,
        "",
        "Classification Guidance for Manager Routing:",
        "- Emails that mention a manager by name belong under that manager's secondary category.",
        "- Manager emails with no clear recipient go to Manager/Unassigned.",
    ]
    if allowed is not None:
        departments = " + ".join(tag.value.title() for tag in config.department_scope)
        lines.append("")
        lines.append(
            f"**Department Mode:** Only showing managers relevant to {departments} department(s)"
        )
    return "\n".join(lines)


def _manager_entry(manager: ManagerRecord, roles: tuple[RoleId, ...]) -> str:
    header = f"**{manager.name}**"
    if manager.email:
        header += f" ({manager.email})"
    lines = [header]
    if not roles:
        lines.append("  - No roles assigned")
    for role_id in roles:
        role = get_role(role_id)
        lines.append(f"  - Role: {role.label} [{role.role_id.value}]")
        lines.append(f"    Handles: {role.description}")
        lines.append(f"    Routes: {', '.join(role.routed_categories)}")
        lines.append(f"    Keywords: {', '.join(role.keywords)}")
    return "\n".join(lines)


def _suppliers_block(config: BusinessConfiguration) -> str:
    lines = []
    for supplier in config.suppliers:
        entry = f"- {supplier.name}"
        if supplier.domains:
            entry += f" (domains: {', '.join('@' + domain for domain in supplier.domains)})"
        lines.append(entry)
    if not lines:
        return ""
    lines.append("Emails from these domains belong under Suppliers with the matching secondary category.")
    return "\n".join(lines)


def _restriction_block(config: BusinessConfiguration) -> str:
    allowed = allowed_categories_for(config.department_scope)
    departments = ", ".join(tag.value for tag in config.department_scope)
    return "\n".join(
        [
            f"This deployment serves only the following department(s): {departments}.",
            "All categories above are described so you can recognize emails that are NOT ours.",
            f"Allowed primary categories: {', '.join(allowed)}",
            "You MUST only classify into the allowed primary categories.",
            "If the email belongs to any other category, return exactly:",
            "{",
            f'  "primary_category": "{OUT_OF_SCOPE}",',
            '  "secondary_category": null,',
            '  "tertiary_category": null,',
            '  "ai_can_reply": false',
            "}",
            "with summary, reasoning, confidence, and entities filled in as usual.",
        ]
    )


def render_style_guidance(profile: VoiceProfile) -> str:
    """Summary: Turn voice profile signals into drafting instructions.

    Importance: Learned style preferences reach the AI only through this block.
    Alternatives: Dump raw signal numbers into the prompt.
    """

    signals = profile.signal_values()
    instructions: list[str] = []
    for name, positive, negative in _SIGNAL_INSTRUCTIONS:
        value = signals.get(name, 0.0)
        threshold = {
            "sentence_length": SENTENCE_LENGTH_THRESHOLD,
            "paragraphs": PARAGRAPH_THRESHOLD,
        }.get(name, SIGNAL_THRESHOLD)
        if value >= threshold:
            instructions.append(f"- {positive}")
        elif value <= -threshold:
            instructions.append(f"- {negative}")
    if not instructions:
        instructions.append("- Keep the current drafting style; recent edits show no consistent pattern.")
    header = (
        f"Learned from {profile.sample_count} reviewed replies "
        f"(confidence {profile.confidence:.2f}, iteration {profile.iteration_count}). "
        "Apply these preferences when drafting replies:"
    )
    return "\n".join([header, *instructions])


_SIGNAL_INSTRUCTIONS: tuple[tuple[str, str, str], ...] = (
    (
        "apology",
        "Include a brief apology when acknowledging a problem.",
        "Avoid apologizing unless the business is clearly at fault.",
    ),
    (
        "urgency",
        "Convey urgency and give concrete timelines when action is needed.",
        "Keep a calm tone and avoid urgency language.",
    ),
    (
        "enthusiasm",
        "Sound upbeat and enthusiastic.",
        "Tone down exclamation marks and enthusiastic phrasing.",
    ),
    (
        "politeness",
        "Use polite markers such as please and thank you.",
        "Trim extra pleasantries.",
    ),
    (
        "formality",
        "Write in a more formal register.",
        "Write in a relaxed, conversational register.",
    ),
    (
        "empathy",
        "Acknowledge the customer's situation with empathetic language.",
        "Stay factual and limit empathetic phrasing.",
    ),
    ("greeting", "Open with a greeting.", "Skip the greeting and get to the point."),
    ("closing", "End with a sign-off such as Thanks or Best regards.", "Omit formal sign-offs."),
    ("sentence_length", "Use fuller, more detailed sentences.", "Keep sentences short."),
    ("paragraphs", "Break replies into more paragraphs.", "Keep replies to fewer paragraphs."),
)


def _output_block(config: BusinessConfiguration) -> str:
    lines = [
        "Return ONLY the following JSON structure. Do not add any other text.",
        "```json",
        "{",
        '  "summary": "A concise, one-sentence summary of the email\'s purpose.",',
        '  "reasoning": "A brief explanation for the chosen categories.",',
        '  "confidence": 0.9,',
        '  "primary_category": "The chosen primary category",',
        '  "secondary_category": "The chosen secondary category, or null",',
        '  "tertiary_category": "The chosen tertiary category, or null",',
        '  "entities": {',
        '    "contact_name": "Extracted contact name, or null",',
        '    "email_address": "Extracted email address, or null",',
        '    "phone_number": "Extracted phone number, or null",',
        '    "order_number": "Extracted order or invoice number, or null"',
        "  },",
        '  "ai_can_reply": true',
        "}",
        "```",
    ]
    if not config.is_hub:
        lines.append(f'Use "{OUT_OF_SCOPE}" as primary_category for emails outside the allowed categories.')
    return "\n".join(lines)
