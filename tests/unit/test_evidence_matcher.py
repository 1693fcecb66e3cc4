from __future__ import annotations

import asyncio

import pytest

from misinfo_guard.chains.claim_extractor import build_draft
from misinfo_guard.chains.evidence_matcher import (
    NO_EVIDENCE_CONFIDENCE,
    UNCERTAIN_CONFIDENCE_CAP,
    DocumentMatch,
    EvidenceMatcher,
    assess,
    score_severity,
)
from misinfo_guard.errors import CorpusUnavailableError, EvidenceUnavailableError
from misinfo_guard.models import SourceDocument
from misinfo_guard.services.corpus import InMemoryEvidenceCorpus


class _FlakyCorpus(InMemoryEvidenceCorpus):
    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.calls = 0

    async def documents(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise CorpusUnavailableError("connection reset")
        return await super().documents()


def _classify(text: str, corpus=None):
    matcher = EvidenceMatcher(corpus or InMemoryEvidenceCorpus(), backoff_seconds=0.0)
    return asyncio.run(matcher.classify(build_draft(text)))


def test_antibiotics_cure_colds_is_contradicted() -> None:
    assessment = _classify("Antibiotics cure colds.")
    assert assessment.stance == "contradicted"
    assert assessment.severity == "high"
    assert assessment.risk_tags == ["antibiotic_misuse"]
    organizations = [citation.source_org for citation in assessment.citations]
    assert organizations[:2] == ["CDC", "NHS"]
    relevances = [citation.relevance for citation in assessment.citations]
    assert relevances == sorted(relevances, reverse=True)
    assert all(relevance >= 25 for relevance in relevances)
    assert assessment.stance_confidence > UNCERTAIN_CONFIDENCE_CAP
    assert assessment.stance_explanation.startswith("Contradicted by")


def test_vaccine_autism_claim_is_contradicted_by_two_sources() -> None:
    assessment = _classify("Vaccines cause autism in children.")
    assert assessment.stance == "contradicted"
    assert assessment.severity == "high"
    assert "vulnerable_population" in assessment.risk_tags
    assert {"WHO", "CDC"} <= {citation.source_org for citation in assessment.citations}


def test_negated_accurate_claim_is_supported() -> None:
    assessment = _classify("Antibiotics do not work against viruses.")
    assert assessment.stance == "supported"
    assert assessment.severity == "low"
    assert assessment.citations[0].source_org == "CDC"


def test_stopping_blood_pressure_medication_is_critical() -> None:
    assessment = _classify(
        "Once your blood pressure is normal on medication, you can stop taking it because you're cured."
    )
    assert assessment.stance == "contradicted"
    assert assessment.severity == "critical"
    assert "stops_medication" in assessment.risk_tags


def test_no_matching_evidence_is_uncertain() -> None:
    corpus = InMemoryEvidenceCorpus(
        documents=[
            SourceDocument(
                id=1,
                title="Sun Safety",
                organization="WHO",
                content="Wear a hat and use sunscreen when the sun is strong.",
                category="skin",
            )
        ]
    )
    assessment = _classify("Antibiotics cure colds.", corpus)
    assert assessment.stance == "uncertain"
    assert assessment.stance_confidence == NO_EVIDENCE_CONFIDENCE
    assert assessment.citations == []
    assert assessment.severity == "medium"


def test_tied_votes_are_uncertain() -> None:
    draft = build_draft("Antibiotics cure colds.")
    document = SourceDocument(id=1, title="A", organization="CDC", content="text", category="antibiotics")
    matches = [
        DocumentMatch(document=document, relevance=80, snippet="Antibiotics help.", vote="affirms"),
        DocumentMatch(document=document, relevance=70, snippet="Antibiotics do not help.", vote="refutes"),
    ]
    assessment = assess(draft, matches)
    assert assessment.stance == "uncertain"
    assert assessment.stance_confidence <= UNCERTAIN_CONFIDENCE_CAP
    assert len(assessment.citations) == 2


@pytest.mark.parametrize(
    "stance, harm, tags, population, expected",
    [
        ("contradicted", "high", ["stops_medication"], "general", "critical"),
        ("contradicted", "high", ["emergency_symptoms"], "general", "critical"),
        ("contradicted", "high", [], "general", "high"),
        ("contradicted", "medium", [], "general", "high"),
        ("contradicted", "low", [], "general", "medium"),
        ("contradicted", "low", [], "infant", "high"),
        ("contradicted", "medium", [], "child", "high"),
        ("uncertain", "medium", [], "general", "medium"),
        ("uncertain", "low", [], "general", "low"),
        ("uncertain", "low", [], "elderly", "medium"),
        ("supported", "high", ["stops_medication"], "infant", "low"),
    ],
)
def test_score_severity(stance, harm, tags, population, expected) -> None:
    assert score_severity(stance, harm, tags, population) == expected


def test_transient_corpus_failures_are_retried() -> None:
    corpus = _FlakyCorpus(failures=1)
    assessment = _classify("Antibiotics cure colds.", corpus)
    assert corpus.calls == 2
    assert assessment.stance == "contradicted"


def test_corpus_outage_exhausts_retries() -> None:
    corpus = _FlakyCorpus(failures=10)
    with pytest.raises(EvidenceUnavailableError) as excinfo:
        _classify("Antibiotics cure colds.", corpus)
    assert corpus.calls == 3
    assert excinfo.value.step == "risk"


def test_stopping_named_medication_with_modifiers_is_critical() -> None:
    assessment = _classify("Stop taking your blood pressure medication once you feel better.")
    assert assessment.stance == "contradicted"
    assert assessment.severity == "critical"
    assert "stops_medication" in assessment.risk_tags
