from __future__ import annotations

import logging
import re
from typing import List, Tuple

from ..errors import ExtractionError
from ..lexicon import TOPIC_TERMS, detect_population, primary_topic, treatment_risk_tags
from ..llm_client import LLMClient
from ..models import ClaimDraft
from ..observability import observe_claims_extracted
from ..prompts.extraction import CLAIM_EXTRACTION_SYSTEM_PROMPT, CLAIM_EXTRACTION_USER_PROMPT
from ..safety import detect_red_flags
from ..text_utils import content_terms, normalize_quotes, normalize_whitespace, split_sentences, truncate_chars

logger = logging.getLogger("misinfo_guard.claim_extractor")

MAX_CLAIM_CHARS = 300
_MIN_LLM_OVERLAP = 0.6

CLAIM_TYPES = ("medical_advice", "causal_claim", "efficacy_claim", "conspiracy", "anecdote", "factual")
POPULATIONS = ("general", "infant", "child", "pregnancy", "elderly", "chronic_condition")

_STRONG_PREDICATE_RE = re.compile(
    r"\b(?:cure[sd]?|curing|cause[sd]?|causing|prevent(?:s|ed|ing)?|treat(?:s|ed|ing)?"
    r"|heal(?:s|ed|ing)?|fix(?:es|ed)?|works?|help(?:s|ed)?|boost(?:s|ed)?|reverse[sd]?"
    r"|kills?|protect(?:s|ed)?|leads? to|led to|trigger(?:s|ed)?|stop(?:s|ped)?|should|must"
    r"|needs?|avoid|take|modif(?:y|ies)|alters?|linked to|contains?|eliminate[sd]?"
    r"|destroys?|damages?|give[sn]?|gave|giving|makes?|made|making|weaken(?:s|ed)?|spread(?:s|ing)?)\b"
)
_WEAK_PREDICATE_RE = re.compile(r"\b(?:is|are|was|were|can|will|won't|does|do|has|have)\b")
_FEELING_RE = re.compile(
    r"^(?:i|i'm|i am|i've|i have)\b.*\b(?:feel|feeling|felt|tired|sad|sick|think|believe)\b"
)

_CLAIM_TYPE_PATTERNS: Tuple[Tuple[str, re.Pattern[str]], ...] = (
    (
        "conspiracy",
        re.compile(
            r"\b(?:cover(?:ing)?[- ]up|covered up|hiding|hide the truth|don't want you to know"
            r"|big pharma|suppress(?:ed|ing)?|secretly)\b"
        ),
    ),
    (
        "medical_advice",
        re.compile(
            r"^(?:take|stop|avoid|give|use|drink|eat|don't|do not|never|always|skip|quit)\b"
            r"|\b(?:should|must|need to|needs to|ought to|have to|has to|stop taking|can stop"
            r"|don't need|do not need|no need)\b"
        ),
    ),
    (
        "causal_claim",
        re.compile(
            r"\b(?:cause[sd]?|causing|leads? to|led to|trigger(?:s|ed)?|results? in"
            r"|linked to|responsible for|gives? (?:you|people|kids|children|babies)"
            r"|makes? (?:you|people) (?:sick|ill)"
            r"|weaken(?:s|ed)?|spread(?:s|ing)?)\b"
        ),
    ),
    (
        "efficacy_claim",
        re.compile(
            r"\b(?:cure[sd]?|curing|treat(?:s|ed)?|prevent(?:s|ed)?|heal(?:s|ed)?|fix(?:es|ed)?"
            r"|works?|reverse[sd]?|boost(?:s|ed)?|kills?|help(?:s|ed)?|protect(?:s|ed)?"
            r"|effective)\b"
        ),
    ),
)
_FIRST_PERSON_RE = re.compile(r"\b(?:i|my|we|our|me)\b")
_EXPERIENCE_RE = re.compile(r"\b(?:noticed|experienced|tried|happened|felt|got|took|saw|gave)\b")

_BOOSTER_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"\bproven\b",
        r"\balways\b",
        r"\bdefinitely\b",
        r"\bguaranteed?\b",
        r"100\s?%",
        r"\bany\b",
        r"\bcompletely\b",
        r"\bevery\b",
    )
)
_HEDGE_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"\bmay\b",
        r"\bmight\b",
        r"\bcould\b",
        r"\bsome\b",
        r"\bpossibly\b",
        r"\bperhaps\b",
        r"\bsometimes\b",
    )
)


async def extract_claims(text: str, llm: LLMClient | None = None, max_claims: int = 12) -> List[ClaimDraft]:
    if llm is not None and llm.enabled:
        claims = await extract_claims_llm(text, llm, max_claims)
        observe_claims_extracted("llm", len(claims))
        return claims
    claims = extract_claims_heuristic(text, max_claims)
    observe_claims_extracted("heuristic", len(claims))
    return claims


def extract_claims_heuristic(text: str, max_claims: int = 12) -> List[ClaimDraft]:
    collected: List[ClaimDraft] = []
    seen: set[str] = set()
    for sentence in split_sentences(text):
        if not is_checkable(sentence):
            continue
        claim_text = truncate_chars(normalize_whitespace(sentence), MAX_CLAIM_CHARS)
        key = claim_text.casefold()
        if key in seen:
            continue
        seen.add(key)
        collected.append(build_draft(claim_text))
        if len(collected) >= max_claims:
            break
    logger.info("claims extracted extractor=heuristic total=%s", len(collected))
    return collected


async def extract_claims_llm(text: str, llm: LLMClient, max_claims: int = 12) -> List[ClaimDraft]:
    try:
        data = await llm.generate_json(
            CLAIM_EXTRACTION_SYSTEM_PROMPT.format(max_claims=max_claims),
            CLAIM_EXTRACTION_USER_PROMPT.format(text=text),
            trace={"stage": "claims"},
        )
    except Exception as exc:
        logger.exception("llm claim extraction failed")
        raise ExtractionError("the claim extraction model did not return a usable answer") from exc
    claims = coerce_llm_claims(data, text, max_claims)
    logger.info("claims extracted extractor=llm total=%s", len(claims))
    return claims


def coerce_llm_claims(data: object, source_text: str, max_claims: int = 12) -> List[ClaimDraft]:
    """Validate model output; drop claims the source text does not contain."""
    if isinstance(data, dict):
        data = data.get("claims")
    if not isinstance(data, list):
        raise ExtractionError("the claim extraction model returned malformed output")
    source_terms = set(content_terms(source_text))
    claims: List[ClaimDraft] = []
    seen: set[str] = set()
    for item in data:
        if not isinstance(item, dict):
            continue
        claim_text = normalize_whitespace(str(item.get("claim_text") or item.get("claim") or ""))
        if not claim_text:
            continue
        claim_text = truncate_chars(claim_text, MAX_CLAIM_CHARS)
        terms = content_terms(claim_text)
        if not terms:
            continue
        overlap = sum(1 for term in terms if term in source_terms) / len(terms)
        if overlap < _MIN_LLM_OVERLAP:
            logger.warning("dropping llm claim without support in input overlap=%.2f", overlap)
            continue
        key = claim_text.casefold()
        if key in seen:
            continue
        seen.add(key)
        claims.append(
            build_draft(
                claim_text,
                claim_type=_choice(item.get("claim_type"), CLAIM_TYPES),
                topic=_choice(item.get("topic"), tuple(TOPIC_TERMS)),
                target_population=_choice(item.get("target_population"), POPULATIONS),
                certainty=_int_or_none(item.get("certainty_in_text")),
            )
        )
        if len(claims) >= max_claims:
            break
    return claims


def is_checkable(sentence: str) -> bool:
    lowered = normalize_quotes(sentence).lower().strip()
    if not lowered or lowered.endswith("?"):
        return False
    if primary_topic(lowered) is None:
        return False
    if _STRONG_PREDICATE_RE.search(lowered):
        return True
    if _FEELING_RE.search(lowered):
        return False
    return bool(_WEAK_PREDICATE_RE.search(lowered))


def build_draft(
    claim_text: str,
    *,
    claim_type: str | None = None,
    topic: str | None = None,
    target_population: str | None = None,
    certainty: int | None = None,
) -> ClaimDraft:
    lowered = normalize_quotes(claim_text).lower()
    resolved_type = claim_type or classify_claim_type(lowered)
    population = target_population or detect_population(lowered)
    harm, red_flags = assess_harm(lowered, resolved_type, population)
    return ClaimDraft(
        claim_text=claim_text,
        claim_type=resolved_type,
        topic=topic or primary_topic(lowered),
        target_population=population,
        urgency_hint=_urgency(harm, bool(red_flags)),
        potential_harm=harm,
        certainty_in_text=certainty if certainty is not None else score_certainty(lowered),
    )


def classify_claim_type(text: str) -> str:
    lowered = normalize_quotes(text).lower().strip()
    for name, pattern in _CLAIM_TYPE_PATTERNS:
        if pattern.search(lowered):
            return name
    if _FIRST_PERSON_RE.search(lowered) and _EXPERIENCE_RE.search(lowered):
        return "anecdote"
    return "factual"


def score_certainty(text: str) -> int:
    lowered = normalize_quotes(text).lower()
    score = 50
    score += 15 * sum(len(pattern.findall(lowered)) for pattern in _BOOSTER_PATTERNS)
    score -= 15 * sum(len(pattern.findall(lowered)) for pattern in _HEDGE_PATTERNS)
    return max(5, min(100, score))


def assess_harm(text: str, claim_type: str, population: str) -> tuple[str, List[str]]:
    red_flags = detect_red_flags(text)
    tags = treatment_risk_tags(text)
    treatment_advice = claim_type in {"medical_advice", "efficacy_claim"}
    if (
        "delays_proven_treatment" in tags
        or "stops_medication" in tags
        or red_flags
        or (population in {"infant", "pregnancy"} and treatment_advice)
    ):
        return "high", red_flags
    if claim_type in {"medical_advice", "causal_claim", "efficacy_claim"}:
        return "medium", red_flags
    return "low", red_flags


def _urgency(harm: str, emergency: bool) -> str:
    if emergency:
        return "high"
    if harm == "high":
        return "medium"
    if harm == "medium":
        return "low"
    return "none"


def _choice(value: object, allowed: Tuple[str, ...]) -> str | None:
    if value is None:
        return None
    text = str(value).strip().lower()
    return text if text in allowed else None


def _int_or_none(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return max(0, min(100, int(value)))
    return None
