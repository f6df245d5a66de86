"""Summary: Per-industry taxonomy extension packs.

Importance: Tailors sales, support, and urgent categories to the trade a business works in.
Alternatives: Ask every business to define its own categories from scratch.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from inboxforge.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecondaryTemplate:
    """Summary: A secondary category contributed by an industry pack.

    Importance: Keeps description and keywords together for prompts and folders.
    Alternatives: Store secondaries as bare names.
    """

    name: str
    description: str
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class IndustryTemplate:
    """Summary: Named extension pack for one industry.

    Importance: Enables quick setup for common trades.
    Alternatives: Store templates in JSON files outside the codebase.
    """

    name: str
    aliases: tuple[str, ...]
    product: str
    sales_keywords: tuple[str, ...]
    sales_examples: tuple[str, ...]
    urgent_keywords: tuple[str, ...]
    urgent_examples: tuple[str, ...]
    sales_secondaries: tuple[SecondaryTemplate, ...] = ()
    support_secondaries: tuple[SecondaryTemplate, ...] = ()


PARTS_AND_SUPPLIES = SecondaryTemplate(
    name="PartsAndSupplies",
    description="Questions about replacement parts, materials, and supply orders",
    keywords=("parts", "supplies", "replacement", "materials", "order parts"),
)
PARTS_AND_CHEMICALS = SecondaryTemplate(
    name="PartsAndChemicals",
    description="Questions about chemicals, filters, and replacement parts",
    keywords=("chemicals", "filter", "chlorine", "bromine", "parts", "replacement"),
)
WATER_CARE = SecondaryTemplate(
    name="WaterCare",
    description="Water chemistry, testing, and balancing questions",
    keywords=("water chemistry", "ph", "alkalinity", "cloudy water", "water test", "balance"),
)
WARRANTY = SecondaryTemplate(
    name="Warranty",
    description="Warranty claims and coverage questions",
    keywords=("warranty", "coverage", "claim", "guarantee", "defect"),
)
PERMITS = SecondaryTemplate(
    name="Permits",
    description="Permit applications, inspections, and code compliance",
    keywords=("permit", "inspection", "code", "city approval", "inspector"),
)

GENERIC_TEMPLATE = IndustryTemplate(
    name="General Services",
    aliases=(),
    product="services",
    sales_keywords=("service", "installation", "repair", "maintenance"),
    sales_examples=(
        "New inquiries about services",
        "Requests for quotes",
        "Follow-up on prior communication",
    ),
    urgent_keywords=("broken", "not working", "emergency", "urgent"),
    urgent_examples=("Equipment failure", "Service emergency", "Urgent repair needed"),
    support_secondaries=(PARTS_AND_SUPPLIES,),
)


def list_templates() -> list[IndustryTemplate]:
    """Summary: Return the known industry templates.

    Importance: Powers CLI discovery and industry resolution.
    Alternatives: Use a plugin system to discover templates dynamically.
    """

    return [
        IndustryTemplate(
            name="Hot tub & Spa",
            aliases=("hot tub", "spa", "hot tubs", "spas"),
            product="hot tubs",
            sales_keywords=(
                "hot tub",
                "spa",
                "jacuzzi",
                "whirlpool",
                "installation",
                "water care",
                "winterization",
            ),
            sales_examples=(
                "New inquiries about hot tubs or installation services",
                "Requests for quotes on spa models",
                "Replies to promotions where the sender shows purchase intent",
            ),
            urgent_keywords=(
                "broken",
                "not working",
                "leaking",
                "won't start",
                "no power",
                "error code",
                "won't heat",
            ),
            urgent_examples=(
                "My spa heater isn't heating",
                "Spa is leaking water",
                "Control panel won't light up",
            ),
            sales_secondaries=(
                SecondaryTemplate(
                    "InstallationInquiry",
                    "Inquiries about hot tub installation services",
                    ("installation", "install", "delivery", "site preparation"),
                ),
                SecondaryTemplate(
                    "ModelSelection",
                    "Questions about specific hot tub models and features",
                    ("model", "features", "size", "jets"),
                ),
            ),
            support_secondaries=(PARTS_AND_CHEMICALS, WATER_CARE),
        ),
        IndustryTemplate(
            name="Pools",
            aliases=("pool", "swimming pool", "pools and spas"),
            product="pools",
            sales_keywords=(
                "pool",
                "swimming pool",
                "inground",
                "above ground",
                "installation",
                "cleaning",
            ),
            sales_examples=(
                "New inquiries about pool installation",
                "Requests for pool maintenance quotes",
            ),
            urgent_keywords=(
                "broken",
                "not working",
                "leaking",
                "pump failure",
                "no power",
                "equipment failure",
            ),
            urgent_examples=("Pool pump not working", "Pool is leaking", "Pool equipment failure"),
            sales_secondaries=(
                SecondaryTemplate(
                    "PoolDesign",
                    "Inquiries about pool design and construction",
                    ("design", "construction", "inground", "shape"),
                ),
                SecondaryTemplate(
                    "EquipmentSelection",
                    "Questions about pool equipment and accessories",
                    ("equipment", "pump", "filter", "heater", "automation"),
                ),
            ),
            support_secondaries=(PARTS_AND_CHEMICALS, WATER_CARE),
        ),
        IndustryTemplate(
            name="Electrician",
            aliases=("electrical", "electric", "electrical services"),
            product="electrical services",
            sales_keywords=("electrical", "wiring", "panel", "lighting", "outlet", "breaker"),
            sales_examples=(
                "New inquiries about electrical services",
                "Requests for electrical installation quotes",
            ),
            urgent_keywords=(
                "no power",
                "tripping breaker",
                "electrical emergency",
                "sparking",
                "fire risk",
            ),
            urgent_examples=("Power outage", "Breaker keeps tripping", "No power to outlets"),
            sales_secondaries=(
                SecondaryTemplate(
                    "ServiceUpgrade",
                    "Inquiries about electrical service upgrades and panel work",
                    ("service upgrade", "panel upgrade", "main breaker", "capacity"),
                ),
                SecondaryTemplate(
                    "WiringProject",
                    "Questions about wiring projects and installations",
                    ("wiring", "outlets", "switches", "lighting"),
                ),
            ),
            support_secondaries=(PARTS_AND_SUPPLIES, PERMITS),
        ),
        IndustryTemplate(
            name="HVAC",
            aliases=("heating and cooling", "heating", "air conditioning"),
            product="HVAC services",
            sales_keywords=("heating", "cooling", "air conditioning", "furnace", "duct"),
            sales_examples=(
                "New inquiries about HVAC services",
                "Requests for heating or cooling quotes",
            ),
            urgent_keywords=("no heat", "no cooling", "emergency", "equipment failure"),
            urgent_examples=("No heat", "Furnace not working", "AC unit failure"),
            support_secondaries=(PARTS_AND_SUPPLIES, WARRANTY),
        ),
        IndustryTemplate(
            name="Plumber",
            aliases=("plumbing", "plumbing services"),
            product="plumbing services",
            sales_keywords=("plumbing", "pipe", "fixture", "water heater", "drain"),
            sales_examples=("New inquiries about plumbing work", "Requests for fixture quotes"),
            urgent_keywords=("leaking", "burst pipe", "no water", "water damage", "emergency"),
            urgent_examples=("Water leak", "Burst pipe", "Water heater failure"),
            support_secondaries=(PARTS_AND_SUPPLIES,),
        ),
        IndustryTemplate(
            name="General Contractor",
            aliases=("general construction", "construction", "contractor", "renovation"),
            product="construction services",
            sales_keywords=("construction", "renovation", "remodel", "building", "permit"),
            sales_examples=("Requests for renovation quotes", "New building project inquiries"),
            urgent_keywords=("structural", "water damage", "safety hazard", "emergency"),
            urgent_examples=("Site safety issue", "Water damage during renovation"),
            support_secondaries=(PARTS_AND_SUPPLIES, PERMITS),
        ),
        IndustryTemplate(
            name="Roofing",
            aliases=("roofer", "roof"),
            product="roofing services",
            sales_keywords=("roof", "shingle", "gutter", "replacement", "inspection"),
            sales_examples=("Requests for roof replacement quotes", "Roof inspection inquiries"),
            urgent_keywords=("roof leak", "storm damage", "missing shingles", "emergency"),
            urgent_examples=("Roof is leaking into the house", "Storm tore off shingles"),
            support_secondaries=(PARTS_AND_SUPPLIES, WARRANTY),
        ),
        IndustryTemplate(
            name="Landscaping",
            aliases=("landscaper", "lawn care"),
            product="landscaping services",
            sales_keywords=("landscaping", "lawn", "garden", "tree", "irrigation", "design"),
            sales_examples=("Requests for landscape design quotes", "Seasonal lawn care inquiries"),
            urgent_keywords=("fallen tree", "flooding", "irrigation leak", "emergency"),
            urgent_examples=("Tree fell on the driveway", "Irrigation line burst"),
            support_secondaries=(PARTS_AND_SUPPLIES,),
        ),
    ]


def _industry_key(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


def find_template(industry: str) -> IndustryTemplate | None:
    """Summary: Find the template for an industry name or alias.

    Importance: Matching ignores case and punctuation so onboarding input variants resolve.
    Alternatives: Require exact template names.
    """

    key = _industry_key(industry)
    if not key:
        return None
    for template in list_templates():
        names = (template.name,) + template.aliases
        if key in {_industry_key(name) for name in names}:
            return template
    return None


def resolve_templates(industry_types: tuple[str, ...]) -> tuple[IndustryTemplate, ...]:
    """Summary: Resolve industry names to templates, falling back to the generic pack.

    Importance: Unknown industries still produce a usable taxonomy.
    Alternatives: Reject unknown industries outright.
    """

    cleaned = [industry.strip() for industry in industry_types if industry and industry.strip()]
    if not cleaned:
        raise ConfigurationError("Business configuration has no industry type")
    resolved: list[IndustryTemplate] = []
    for industry in cleaned:
        template = find_template(industry)
        if template is None:
            logger.info("Unknown industry %s, using generic template.", industry)
            template = GENERIC_TEMPLATE
        if template not in resolved:
            resolved.append(template)
    return tuple(resolved)
