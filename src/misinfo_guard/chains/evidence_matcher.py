"""Evidence retrieval, stance and severity for a single claim.

Retrieval scores every corpus document by idf-weighted coverage of the claim's
terms (topic concept terms count at half weight) plus a category bonus.

Stance is read per cited document. A sentence is pertinent when it shares a
claim term and reaches two matched units, counting core terms as one,
concept terms as a half and core terms of the preceding sentence as one.
A document whose pertinent sentences include a negated one reads as negative,
otherwise positive; it affirms the claim when that polarity equals the claim's
own polarity. Documents without a pertinent sentence are neutral.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Sequence, Tuple

from ..errors import CorpusUnavailableError, EvidenceUnavailableError
from ..lexicon import TOPIC_CONCEPTS, VULNERABLE_POPULATIONS, topic_counts, treatment_risk_tags
from ..models import SEVERITY_LEVELS, SEVERITY_RANK, ClaimAssessment, ClaimDraft, CitationDraft, SourceDocument
from ..observability import observe_corpus_retry
from ..safety import detect_red_flags
from ..services.corpus import EvidenceCorpus
from ..text_utils import content_terms, is_negated, split_sentences, stem, truncate_words, words

logger = logging.getLogger("misinfo_guard.evidence_matcher")

SNIPPET_MAX_WORDS = 40
EXPANSION_WEIGHT = 0.5
CATEGORY_SHARE = 0.25
SECONDARY_CATEGORY_BONUS = 0.6
UNCERTAIN_CONFIDENCE_CAP = 35
NO_EVIDENCE_CONFIDENCE = 10

RISK_TAG_ORDER = (
    "delays_proven_treatment",
    "stops_medication",
    "antibiotic_misuse",
    "vaccine_hesitancy",
    "vulnerable_population",
    "emergency_symptoms",
)
_CRITICAL_TAGS = frozenset({"delays_proven_treatment", "stops_medication", "emergency_symptoms"})
_TAG_REASONS = {
    "delays_proven_treatment": "it could lead someone to delay or replace proven treatment",
    "stops_medication": "it encourages stopping prescribed medication without medical guidance",
    "antibiotic_misuse": "it promotes antibiotic use where antibiotics do not help, which drives resistance",
    "vaccine_hesitancy": "it may discourage vaccination",
    "vulnerable_population": "it is aimed at a group that is more vulnerable to harm",
    "emergency_symptoms": "it mentions symptoms that can signal a medical emergency",
}

# Words that describe evidence rather than the health assertion itself.
_META_WORDS = frozenset(
    {
        "study", "studies", "research", "researchers", "evidence", "proven", "prove", "proves",
        "shown", "show", "shows", "expert", "experts", "scientist", "scientists", "fact",
        "facts", "people", "say", "says",
    }
)


@dataclass(frozen=True)
class _Sentence:
    text: str
    terms: FrozenSet[str]
    negated: bool


@dataclass(frozen=True)
class _IndexedDocument:
    document: SourceDocument
    terms: FrozenSet[str]
    sentences: Tuple[_Sentence, ...]


@dataclass(frozen=True)
class _ClaimQuery:
    core: Dict[str, float]
    expansion: Dict[str, float]
    topics: Tuple[str, ...]
    primary_topic: str | None
    negated: bool

    @property
    def total_weight(self) -> float:
        return sum(self.core.values()) + sum(self.expansion.values())


@dataclass(frozen=True)
class DocumentMatch:
    document: SourceDocument
    relevance: int
    snippet: str
    vote: str  # affirms | refutes | neutral


class EvidenceMatcher:
    def __init__(
        self,
        corpus: EvidenceCorpus,
        top_k: int = 5,
        min_relevance: int = 25,
        max_retries: int = 2,
        backoff_seconds: float = 0.25,
    ) -> None:
        self._corpus = corpus
        self._top_k = top_k
        self._min_relevance = min_relevance
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds

    async def classify(self, claim: ClaimDraft) -> ClaimAssessment:
        documents = await self._fetch_documents()
        matches = self.match(claim, documents)
        return assess(claim, matches)

    def match(self, claim: ClaimDraft, documents: Sequence[SourceDocument]) -> List[DocumentMatch]:
        indexed = [_index_document(document) for document in documents]
        idf = _inverse_document_frequency(indexed)
        query = _build_query(claim, idf, len(indexed))
        if not query.core:
            return []
        scored: List[DocumentMatch] = []
        for entry in indexed:
            relevance = _relevance(query, entry)
            if relevance < self._min_relevance:
                continue
            vote, snippet = _document_vote(query, entry)
            scored.append(
                DocumentMatch(
                    document=entry.document,
                    relevance=relevance,
                    snippet=truncate_words(snippet, SNIPPET_MAX_WORDS),
                    vote=vote,
                )
            )
        scored.sort(key=lambda item: (-item.relevance, item.document.id))
        return scored[: self._top_k]

    async def _fetch_documents(self) -> List[SourceDocument]:
        for attempt in range(self._max_retries + 1):
            try:
                return await self._corpus.documents()
            except CorpusUnavailableError as exc:
                if attempt < self._max_retries:
                    observe_corpus_retry()
                    logger.warning(
                        "evidence corpus unavailable, retrying",
                        extra={"attempt": attempt + 1},
                    )
                    await asyncio.sleep(self._backoff_seconds * (2**attempt))
                    continue
                logger.error(
                    "evidence corpus retries exhausted",
                    extra={"attempt": attempt + 1},
                )
                raise EvidenceUnavailableError("the trusted evidence corpus is unavailable") from exc
        raise EvidenceUnavailableError("the trusted evidence corpus is unavailable")


def assess(claim: ClaimDraft, matches: Sequence[DocumentMatch]) -> ClaimAssessment:
    affirming = [match for match in matches if match.vote == "affirms"]
    refuting = [match for match in matches if match.vote == "refutes"]
    if len(refuting) > len(affirming):
        stance, winners = "contradicted", refuting
    elif len(affirming) > len(refuting):
        stance, winners = "supported", affirming
    else:
        stance, winners = "uncertain", []

    confidence = _confidence(stance, winners, len(affirming) + len(refuting), matches)
    tags = risk_tags(claim)
    severity = score_severity(stance, claim.potential_harm, tags, claim.target_population)
    citations = [
        CitationDraft(
            source_org=match.document.organization,
            source_title=match.document.title,
            source_url=match.document.url,
            snippet=match.snippet or None,
            relevance=match.relevance,
        )
        for match in matches
    ]
    return ClaimAssessment(
        stance=stance,
        stance_confidence=confidence,
        stance_explanation=_explanation(stance, winners, matches),
        severity=severity,
        risk_reason=_risk_reason(stance, severity, tags),
        risk_tags=tags,
        citations=citations,
    )


def risk_tags(claim: ClaimDraft) -> List[str]:
    found = set(treatment_risk_tags(claim.claim_text))
    if claim.target_population in VULNERABLE_POPULATIONS:
        found.add("vulnerable_population")
    if detect_red_flags(claim.claim_text):
        found.add("emergency_symptoms")
    return [tag for tag in RISK_TAG_ORDER if tag in found]


def score_severity(stance: str, harm: str, tags: Sequence[str], population: str) -> str:
    """Severity from stance and harm; confidence never feeds in."""
    if stance == "supported":
        return "low"
    if stance == "contradicted":
        if harm == "high":
            level = "critical" if _CRITICAL_TAGS.intersection(tags) else "high"
        elif harm == "medium":
            level = "high"
        else:
            level = "medium"
    else:
        level = "medium" if harm in {"medium", "high"} else "low"
    if population in VULNERABLE_POPULATIONS and SEVERITY_RANK[level] < SEVERITY_RANK["high"]:
        level = SEVERITY_LEVELS[SEVERITY_RANK[level] + 1]
    return level


def claim_terms(text: str) -> List[str]:
    """Distinct content terms of a claim, without words about evidence itself."""
    stripped = " ".join(word for word in words(text) if word not in _META_WORDS)
    return list(dict.fromkeys(content_terms(stripped)))


def _index_document(document: SourceDocument) -> _IndexedDocument:
    sentences = tuple(
        _Sentence(text=sentence, terms=frozenset(content_terms(sentence)), negated=is_negated(sentence))
        for sentence in split_sentences(document.content)
    )
    terms = frozenset(content_terms(document.title)) | frozenset(
        term for sentence in sentences for term in sentence.terms
    )
    return _IndexedDocument(document=document, terms=terms, sentences=sentences)


def _inverse_document_frequency(indexed: Sequence[_IndexedDocument]) -> Dict[str, float]:
    total = len(indexed)
    frequency: Dict[str, int] = {}
    for entry in indexed:
        for term in entry.terms:
            frequency[term] = frequency.get(term, 0) + 1
    return {term: math.log((total + 1) / (count + 1)) + 1.0 for term, count in frequency.items()}


def _build_query(claim: ClaimDraft, idf: Dict[str, float], document_count: int) -> _ClaimQuery:
    unseen = math.log(document_count + 1) + 1.0
    core: Dict[str, float] = {}
    for term in claim_terms(claim.claim_text):
        core[term] = idf.get(term, unseen)
    topics = tuple(topic_counts(claim.claim_text))
    expansion: Dict[str, float] = {}
    for topic in topics:
        for concept in TOPIC_CONCEPTS.get(topic, ()):
            term = stem(concept)
            if term in core or term in expansion:
                continue
            expansion[term] = EXPANSION_WEIGHT * idf.get(term, unseen)
    return _ClaimQuery(
        core=core,
        expansion=expansion,
        topics=topics,
        primary_topic=claim.topic,
        negated=is_negated(claim.claim_text),
    )


def _relevance(query: _ClaimQuery, entry: _IndexedDocument) -> int:
    total = query.total_weight
    if total <= 0:
        return 0
    matched = sum(weight for term, weight in query.core.items() if term in entry.terms)
    if matched == 0:
        return 0
    matched += sum(weight for term, weight in query.expansion.items() if term in entry.terms)
    coverage = matched / total
    category = entry.document.category
    if category and category == query.primary_topic:
        bonus = 1.0
    elif category and category in query.topics:
        bonus = SECONDARY_CATEGORY_BONUS
    else:
        bonus = 0.0
    score = (1.0 - CATEGORY_SHARE) * coverage + CATEGORY_SHARE * bonus
    return int(round(100 * min(1.0, score)))


def _document_vote(query: _ClaimQuery, entry: _IndexedDocument) -> Tuple[str, str]:
    needed = min(2.0, float(len(query.core)))
    pertinent: List[Tuple[float, int, _Sentence]] = []
    best_overall: Tuple[float, int, str] | None = None
    previous: FrozenSet[str] = frozenset()
    for position, sentence in enumerate(entry.sentences):
        own_core = [term for term in query.core if term in sentence.terms]
        own_expansion = [term for term in query.expansion if term in sentence.terms]
        context_core = [term for term in query.core if term in previous and term not in sentence.terms]
        weight = sum(query.core[term] for term in own_core) + sum(
            query.expansion[term] for term in own_expansion
        )
        if best_overall is None or weight > best_overall[0]:
            best_overall = (weight, position, sentence.text)
        units = len(own_core) + EXPANSION_WEIGHT * len(own_expansion) + len(context_core)
        if own_core and units >= needed:
            pertinent.append((weight, position, sentence))
        previous = sentence.terms

    if not pertinent:
        snippet = best_overall[2] if best_overall and best_overall[0] > 0 else ""
        return "neutral", snippet

    negated = [item for item in pertinent if item[2].negated]
    document_negative = bool(negated)
    voting = negated if document_negative else pertinent
    _, _, lead = max(voting, key=lambda item: (item[0], -item[1]))
    vote = "affirms" if document_negative == query.negated else "refutes"
    return vote, lead.text


def _confidence(
    stance: str,
    winners: Sequence[DocumentMatch],
    voting_count: int,
    matches: Sequence[DocumentMatch],
) -> int:
    if not matches:
        return NO_EVIDENCE_CONFIDENCE
    if stance == "uncertain":
        mean_relevance = sum(match.relevance for match in matches) / len(matches)
        return min(UNCERTAIN_CONFIDENCE_CAP, int(round(20 + 15 * mean_relevance / 100)))
    agreement = len(winners) / voting_count
    coverage = min(1.0, len(winners) / 3)
    mean_relevance = sum(match.relevance for match in winners) / len(winners) / 100
    return int(round(100 * (0.6 * agreement + 0.2 * coverage + 0.2 * mean_relevance)))


def _organizations(matches: Sequence[DocumentMatch]) -> str:
    seen: List[str] = []
    for match in matches:
        if match.document.organization not in seen:
            seen.append(match.document.organization)
    return ", ".join(seen)


def _explanation(stance: str, winners: Sequence[DocumentMatch], matches: Sequence[DocumentMatch]) -> str:
    if not matches:
        return "No trusted source in the evidence corpus addresses this claim."
    if stance == "uncertain":
        return (
            f"Trusted sources reviewed ({_organizations(matches)}) do not clearly confirm or "
            "refute this claim."
        )
    lead = winners[0]
    count = len(winners)
    sources = "source" if count == 1 else "sources"
    verb = "Contradicted by" if stance == "contradicted" else "Consistent with"
    return f'{verb} {count} trusted {sources} ({_organizations(winners)}): "{lead.snippet}"'


def _risk_reason(stance: str, severity: str, tags: Sequence[str]) -> str:
    reasons = [_TAG_REASONS[tag] for tag in tags if tag in _TAG_REASONS]
    if stance == "supported":
        return "Consistent with trusted guidance, so the risk of harm is low."
    if reasons:
        return f"{severity.capitalize()} risk because " + "; ".join(reasons) + "."
    if stance == "contradicted":
        return f"{severity.capitalize()} risk because the claim conflicts with trusted guidance."
    return (
        f"{severity.capitalize()} risk because the evidence is inconclusive and the claim "
        "should not guide health decisions on its own."
    )
