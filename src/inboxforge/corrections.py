"""Summary: Correction analysis between AI drafts and sent replies.

Importance: Turns each user edit into a measurable correction record for the learning loop.
Alternatives: Ask users to rate drafts explicitly.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from bs4 import BeautifulSoup
from rapidfuzz.distance import Levenshtein

from inboxforge.models import (
    CorrectionContext,
    CorrectionType,
    DraftCorrectionRecord,
    LearningStatus,
    StyleDelta,
)
from inboxforge.storage.sqlite_store import SqliteStore

logger = logging.getLogger(__name__)

APOLOGY_TERMS = ("sorry", "apologize", "apologise", "apologies", "my mistake", "regret")
URGENCY_TERMS = (
    "urgent",
    "immediately",
    "asap",
    "right away",
    "as soon as possible",
    "critical",
    "priority",
)
ENTHUSIASM_TERMS = ("great", "awesome", "excited", "fantastic", "wonderful", "happy to")
POLITENESS_TERMS = ("please", "thank you", "thanks", "appreciate", "kindly", "would you mind")
FORMAL_TERMS = ("please", "thank you", "appreciate", "sincerely", "respectfully", "regards")
CASUAL_TERMS = ("hey", "thanks", "no worries", "cool", "awesome", "cheers")
EMPATHY_TERMS = ("sorry", "understand", "frustrating", "apologize", "empathize", "feel")

GREETING_PATTERN = re.compile(
    r"^(hi|hello|hey|dear|good morning|good afternoon|good evening|greetings)\b", re.IGNORECASE
)
CLOSING_PATTERN = re.compile(
    r"\b(thanks|thank you|best|regards|sincerely|cheers|warmly)\b", re.IGNORECASE
)
_BLOCK_TAGS = ("p", "div", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6")


@dataclass(frozen=True)
class CorrectionThresholds:
    """Summary: Similarity thresholds separating correction bands.

    Importance: Product-tuned values, so they stay configurable.
    Alternatives: Hardcode the bands in the classifier.
    """

    minor: float = 0.9
    moderate: float = 0.7
    major: float = 0.4


def strip_html(text: str) -> str:
    """Summary: Convert HTML email bodies into plain text with line breaks.

    Importance: Drafts and sent replies are often stored in different formats.
    Alternatives: Strip tags with regular expressions.
    """

    soup = BeautifulSoup(text, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    for tag in soup.find_all("br"):
        tag.replace_with("\n")
    for tag in soup.find_all(list(_BLOCK_TAGS)):
        tag.append("\n\n")
    plain = soup.get_text().replace("\r\n", "\n")
    lines = [" ".join(line.split()) for line in plain.split("\n")]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


def collapse_whitespace(plain: str) -> str:
    """Summary: Collapse all whitespace runs in already-plain text to single spaces."""

    return " ".join(plain.split())


def normalize_text(text: str) -> str:
    """Summary: Normalize text for similarity comparison.

    Importance: Formatting-only differences must not count as edits.
    Alternatives: Compare raw strings.
    """

    return collapse_whitespace(strip_html(text))


def levenshtein_distance(source: str, target: str) -> int:
    """Summary: Character-level edit distance between two strings.

    Importance: Core measurement behind similarity scores.
    Alternatives: Use difflib ratios, which are not true edit distances.
    """

    return Levenshtein.distance(source, target)


def similarity_score(distance: int, source: str, target: str) -> float:
    """Summary: Similarity in [0, 1] derived from an edit distance.

    Importance: 1.0 means identical after normalization.
    Alternatives: Use token overlap ratios.
    """

    longest = max(len(source), len(target))
    if longest == 0:
        return 1.0
    return max(0.0, min(1.0, 1.0 - distance / longest))


def classify_correction(
    similarity: float, thresholds: CorrectionThresholds = CorrectionThresholds()
) -> CorrectionType:
    """Summary: Map a similarity score onto a correction band.

    Importance: Each band includes its lower threshold, so 0.70 is moderate.
    Alternatives: Store similarity without banding.
    """

    if similarity >= thresholds.minor:
        return CorrectionType.MINOR
    if similarity >= thresholds.moderate:
        return CorrectionType.MODERATE
    if similarity >= thresholds.major:
        return CorrectionType.MAJOR
    return CorrectionType.REWRITE


def count_terms(text: str, terms: tuple[str, ...]) -> int:
    """Summary: Count whole-word occurrences of any term, case-insensitively."""

    lowered = text.lower()
    return sum(len(re.findall(rf"\b{re.escape(term)}\b", lowered)) for term in terms)


def has_greeting(text: str) -> bool:
    """Summary: True when the first non-empty line opens with a greeting."""

    for line in text.splitlines():
        if line.strip():
            return bool(GREETING_PATTERN.match(line.strip()))
    return False


def has_closing(text: str) -> bool:
    """Summary: True when one of the last three non-empty lines is a sign-off."""

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return any(CLOSING_PATTERN.search(line) for line in lines[-3:])


def average_sentence_length(text: str) -> float:
    """Summary: Mean number of words per sentence."""

    sentences = [part for part in re.split(r"[.!?]+", text) if part.strip()]
    if not sentences:
        return 0.0
    return sum(len(sentence.split()) for sentence in sentences) / len(sentences)


def paragraph_count(text: str) -> int:
    """Summary: Number of blank-line separated paragraphs."""

    return len([block for block in re.split(r"\n\s*\n", text) if block.strip()])


def extract_signals(draft: str, final: str) -> StyleDelta:
    """Summary: Signed stylistic deltas from the draft to the sent reply.

    Importance: Positive values mean the user added the trait, negative that they removed it.
    Alternatives: Run a full NLP pipeline for tone detection.
    """

    def delta(terms: tuple[str, ...]) -> float:
        return float(count_terms(final, terms) - count_terms(draft, terms))

    formality_final = count_terms(final, FORMAL_TERMS) - count_terms(final, CASUAL_TERMS)
    formality_draft = count_terms(draft, FORMAL_TERMS) - count_terms(draft, CASUAL_TERMS)
    enthusiasm = delta(ENTHUSIASM_TERMS) + float(final.count("!") - draft.count("!"))
    return StyleDelta(
        apology=delta(APOLOGY_TERMS),
        urgency=delta(URGENCY_TERMS),
        enthusiasm=enthusiasm,
        politeness=delta(POLITENESS_TERMS),
        formality=float(formality_final - formality_draft),
        empathy=delta(EMPATHY_TERMS),
        greeting=float(int(has_greeting(final)) - int(has_greeting(draft))),
        closing=float(int(has_closing(final)) - int(has_closing(draft))),
        sentence_length=round(average_sentence_length(final) - average_sentence_length(draft), 3),
        paragraphs=float(paragraph_count(final) - paragraph_count(draft)),
    )


class CorrectionAnalyzer:
    """Summary: Records how users change AI drafts before sending.

    Importance: Single responsibility: it never touches the voice profile.
    Alternatives: Update the profile directly on every send.
    """

    def __init__(
        self, store: SqliteStore, thresholds: CorrectionThresholds = CorrectionThresholds()
    ) -> None:
        """Summary: Initialize the analyzer with storage and thresholds.

        Importance: Thresholds come from configuration.
        Alternatives: Read thresholds from globals.
        """

        self._store = store
        self._thresholds = thresholds

    def analyze(
        self, ai_draft_text: str, user_final_text: str | None, context: CorrectionContext
    ) -> DraftCorrectionRecord | None:
        """Summary: Compare a draft with the sent reply and persist a pending correction.

        Importance: Empty final text is not a correction; only the zero-edit counter moves.
        Alternatives: Record empty sends as full rewrites.
        """

        final_plain = strip_html(user_final_text or "")
        if not final_plain:
            self._store.record_zero_edit(context.business_id)
            logger.info("No final text for thread %s, counted as zero-edit.", context.thread_id)
            return None
        draft_plain = strip_html(ai_draft_text)
        draft_normalized = collapse_whitespace(draft_plain)
        final_normalized = collapse_whitespace(final_plain)
        distance = levenshtein_distance(draft_normalized, final_normalized)
        similarity = similarity_score(distance, draft_normalized, final_normalized)
        record = DraftCorrectionRecord(
            id=uuid.uuid4().hex,
            business_id=context.business_id,
            thread_id=context.thread_id,
            ai_draft_text=ai_draft_text,
            user_final_text=user_final_text or "",
            edit_distance=distance,
            similarity_score=round(similarity, 4),
            correction_type=classify_correction(similarity, self._thresholds),
            category=context.category,
            created_at=datetime.now(timezone.utc),
            learning_status=LearningStatus.PENDING,
            signals=extract_signals(draft_plain, final_plain),
            email_id=context.email_id,
        )
        self._store.save_correction(record)
        self._store.record_learning_event(context.business_id, record.similarity_score, distance)
        logger.info(
            "Recorded %s correction for business %s (similarity %.2f).",
            record.correction_type.value,
            context.business_id,
            record.similarity_score,
        )
        return record
