"""Health vocabulary shared by claim extraction and evidence matching.

Topic keys double as evidence corpus categories, so a claim's topic can be
compared directly with ``SourceDocument.category``.
"""

from __future__ import annotations

import re
from typing import Dict, List, Pattern, Tuple

from .text_utils import normalize_quotes

TOPIC_TERMS: Dict[str, Tuple[str, ...]] = {
    "antibiotics": ("antibiotic", "antibiotics", "amoxicillin", "penicillin", "azithromycin"),
    "vaccines": (
        "vaccine",
        "vaccines",
        "vaccination",
        "vaccinations",
        "vaccinated",
        "immunization",
        "immunisation",
        "mmr",
        "jab",
        "jabs",
        "mrna",
    ),
    "viral": (
        "cold",
        "colds",
        "flu",
        "influenza",
        "virus",
        "viruses",
        "viral",
        "covid",
        "covid-19",
        "coronavirus",
        "sore throat",
        "bronchitis",
    ),
    "cancer": (
        "cancer",
        "cancers",
        "tumor",
        "tumour",
        "tumors",
        "chemotherapy",
        "chemo",
        "radiation",
        "leukemia",
    ),
    "chronic": (
        "diabetes",
        "diabetic",
        "insulin",
        "blood pressure",
        "hypertension",
        "cholesterol",
        "heart disease",
        "asthma",
        "blood sugar",
    ),
    "pediatrics": (
        "baby",
        "babies",
        "infant",
        "infants",
        "newborn",
        "newborns",
        "toddler",
        "breastfeeding",
        "breastfed",
        "breast milk",
    ),
    "alternative": (
        "essential oil",
        "essential oils",
        "homeopathy",
        "homeopathic",
        "herbal",
        "detox",
        "alkaline",
        "vitamin",
        "vitamins",
        "supplement",
        "supplements",
        "natural remedy",
        "natural remedies",
        "colloidal silver",
    ),
    "mental_health": (
        "depression",
        "anxiety",
        "antidepressant",
        "antidepressants",
        "mental health",
    ),
}

# Related vocabulary a trusted source uses when it talks about a topic.
TOPIC_CONCEPTS: Dict[str, Tuple[str, ...]] = {
    "antibiotics": ("bacteria", "bacterial", "infection", "resistance"),
    "vaccines": ("vaccine", "safety", "immune"),
    "viral": ("virus", "viral", "infection"),
    "cancer": ("treatment", "proven", "chemotherapy"),
    "chronic": ("medication", "insulin", "condition"),
    "pediatrics": ("infant", "breastfed", "formula"),
    "alternative": ("proven", "treatment", "substitute"),
    "mental_health": ("treatment", "medication"),
}

VULNERABLE_POPULATIONS = frozenset({"infant", "child", "pregnancy", "elderly", "chronic_condition"})

_POPULATION_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("infant", r"\b(?:baby|babies|infants?|newborns?|under (?:6|six|12|twelve) months)\b"),
    ("pregnancy", r"\b(?:pregnant|pregnancy|expecting mothers?|unborn)\b"),
    ("child", r"\b(?:child|children|childhood|kids?|toddlers?|teens?|teenagers?|adolescents?)\b"),
    ("elderly", r"\b(?:elderly|older adults?|older people|seniors?|over 65|grandparents?)\b"),
    (
        "chronic_condition",
        r"\b(?:diabetics?|asthmatics?|hypertensives?|immunocompromised"
        r"|(?:cancer|diabetes|heart|kidney|hiv) (?:patients?|survivors?)"
        r"|(?:people|patients?|anyone|someone|those|adults|persons?) (?:with|who have|living with)"
        r" (?:[a-z'-]+ ){0,2}(?:diabetes|hypertension|high blood pressure|heart disease|asthma"
        r"|cancer|copd|kidney disease|hiv|a chronic|chronic)"
        r"|(?:your|my|their|his|her) (?:diabetes|blood pressure|blood sugar|heart disease|asthma"
        r"|cancer|copd|kidney disease|hiv|chronic))\b",
    ),
)

_SERIOUS_DISEASE_RE = re.compile(
    r"\b(?:cancers?|tumou?rs?|diabetes|hypertension|blood pressure|heart disease|hiv|aids"
    r"|tuberculosis|epilepsy|asthma|multiple sclerosis|kidney disease|leukemia)\b"
)
_CURE_VERB_RE = re.compile(r"\b(?:cure[sd]?|curing|reverse[sd]?|heal(?:s|ed)?|eliminate[sd]?)\b")
_NATURAL_CUE_RE = re.compile(
    r"\b(?:natural|naturally|diet|alkaline|vitamins?|herbal|herbs|oils?|juice|fasting"
    r"|supplements?|detox|remed(?:y|ies)|water|baking soda|turmeric)\b"
)
_STOP_TREATMENT_RE = re.compile(
    r"\b(?:stop|stopping|quit|quitting|discontinue|discontinuing|skip|skipping|come off)\s+"
    r"(?:(?:taking|using|your|their|the|my|all)\s+)*"
    r"(?:(?:[a-z'-]+\s+){0,3}(?:medications?|medicines?|meds|insulin|pills|tablets|inhalers?|treatments?)"
    r"|it|them)\b"
)
_AVOID_TREATMENT_RE = re.compile(
    r"\b(?:instead of|rather than|without|no need for|don't need|do not need|doesn't need"
    r"|avoid|avoiding|refuse|refusing|replace|replaces)\b[^.]{0,40}?"
    r"\b(?:chemotherapy|chemo|radiation|surgery|medications?|medicines?|insulin|treatment"
    r"|vaccines?|vaccination|doctors?)\b"
)
_ANTIBIOTIC_USE_RE = re.compile(r"\b(?:take|taking|use|using|ask for|should|need)\b")
_VACCINE_HARM_RE = re.compile(
    r"\b(?:cause[sd]?|causing|dangerous|harmful|toxic|poison(?:ous)?|autism|dna|alters?"
    r"|modif(?:y|ies)|infertility|unsafe|kills?|don't need|do not need|avoid|skip|refuse"
    r"|gives? you|weaken(?:s|ed)?)\b"
)


def _term_pattern(term: str) -> Pattern[str]:
    return re.compile(r"(?<![a-z0-9])" + re.escape(term) + r"(?![a-z0-9])")


_TOPIC_PATTERNS: Dict[str, Tuple[Pattern[str], ...]] = {
    topic: tuple(_term_pattern(term) for term in terms) for topic, terms in TOPIC_TERMS.items()
}
_COMPILED_POPULATIONS = tuple((name, re.compile(pattern)) for name, pattern in _POPULATION_PATTERNS)


def _lower(text: str) -> str:
    return normalize_quotes(text).lower()


def topic_counts(text: str) -> Dict[str, int]:
    """Matched term occurrences per topic, in lexicon order, zero counts omitted."""
    lowered = _lower(text)
    counts: Dict[str, int] = {}
    for topic, patterns in _TOPIC_PATTERNS.items():
        count = sum(len(pattern.findall(lowered)) for pattern in patterns)
        if count:
            counts[topic] = count
    return counts


def primary_topic(text: str) -> str | None:
    counts = topic_counts(text)
    if not counts:
        return None
    best = max(counts.values())
    for topic, count in counts.items():
        if count == best:
            return topic
    return None


def detect_population(text: str) -> str:
    lowered = _lower(text)
    for name, pattern in _COMPILED_POPULATIONS:
        if pattern.search(lowered):
            return name
    return "general"


def treatment_risk_tags(text: str) -> List[str]:
    """Risk tags derived from what the claim tells people to do about treatment."""
    lowered = _lower(text)
    tags: List[str] = []
    alternative_cure = bool(
        _SERIOUS_DISEASE_RE.search(lowered)
        and _CURE_VERB_RE.search(lowered)
        and _NATURAL_CUE_RE.search(lowered)
    )
    if alternative_cure or _AVOID_TREATMENT_RE.search(lowered):
        tags.append("delays_proven_treatment")
    if _STOP_TREATMENT_RE.search(lowered):
        tags.append("stops_medication")
    counts = topic_counts(lowered)
    if "antibiotics" in counts and ("viral" in counts or _ANTIBIOTIC_USE_RE.search(lowered)):
        tags.append("antibiotic_misuse")
    if "vaccines" in counts and _VACCINE_HARM_RE.search(lowered):
        tags.append("vaccine_hesitancy")
    return tags
