from __future__ import annotations

import asyncio
import itertools
import re
from datetime import datetime, timezone
from uuid import uuid4

import pytest

from misinfo_guard.chains import report_generator
from misinfo_guard.chains.claim_extractor import build_draft
from misinfo_guard.chains.evidence_matcher import EvidenceMatcher
from misinfo_guard.chains.report_generator import DISCLAIMER, NO_CLAIMS_MESSAGE, generate_response
from misinfo_guard.errors import GenerationError
from misinfo_guard.models import OUTPUT_FORMATS, OUTPUT_LENGTHS, Analysis, Claim
from misinfo_guard.services.corpus import InMemoryEvidenceCorpus
from misinfo_guard.storage import apply_assessment


def _analysis(**overrides) -> Analysis:
    values = {
        "id": uuid4(),
        "input_type": "text",
        "input_text": "Antibiotics cure colds.",
        "created_at": datetime.now(timezone.utc),
    }
    values.update(overrides)
    return Analysis(**values)


def _assessed_claim(analysis: Analysis, text: str) -> Claim:
    draft = build_draft(text)
    matcher = EvidenceMatcher(InMemoryEvidenceCorpus())
    assessment = asyncio.run(matcher.classify(draft))
    claim = Claim(id=uuid4(), analysis_id=analysis.id, **draft.model_dump())
    claim, _ = apply_assessment(claim, assessment)
    return claim


def _by_cell(bundle):
    return {(output.format, output.length): output.content for output in bundle.outputs}


def test_contradicted_claim_response() -> None:
    analysis = _analysis()
    claim = _assessed_claim(analysis, "Antibiotics cure colds.")
    bundle = asyncio.run(generate_response(analysis, [claim]))

    cells = _by_cell(bundle)
    assert set(cells) == set(itertools.product(OUTPUT_FORMATS, OUTPUT_LENGTHS))
    assert len(bundle.outputs) == 9
    assert all(content.strip() for content in cells.values())

    summary = bundle.summary
    assert summary.disclaimer == DISCLAIMER
    assert "contradicted" in summary.what_is_wrong
    assert "[1]" in summary.what_we_know
    assert "local emergency number" in summary.when_to_seek_care
    assert "Only take antibiotics" in summary.what_to_do
    assert summary.uncertainty_notes is None

    long_note = cells[("clinician_note", "long")]
    assert "References:" in long_note
    assert "[1] CDC. Antibiotics: When they can and can't help." in long_note
    assert "[1]" in cells[("social_reply", "short")]


@pytest.mark.parametrize("region, emergency", [("US", "911"), ("UK", "999"), ("WHO", "local emergency number")])
def test_region_sets_emergency_guidance(region: str, emergency: str) -> None:
    analysis = _analysis(region=region)
    claim = _assessed_claim(analysis, "Antibiotics cure colds.")
    bundle = asyncio.run(generate_response(analysis, [claim]))
    assert emergency in bundle.summary.when_to_seek_care


def test_tone_does_not_change_clinician_register() -> None:
    analysis = _analysis(tone="empathetic", platform="email")
    claim = _assessed_claim(analysis, "Antibiotics cure colds.")
    bundle = asyncio.run(generate_response(analysis, [claim]))
    cells = _by_cell(bundle)

    assert bundle.summary.what_to_do.startswith("It is completely understandable")
    assert cells[("social_reply", "medium")].startswith("Hi,")
    for length in OUTPUT_LENGTHS:
        assert "understandable" not in cells[("clinician_note", length)]


def test_no_claims_produces_generic_outputs() -> None:
    analysis = _analysis(input_text="I feel tired today.")
    bundle = asyncio.run(generate_response(analysis, []))

    assert len(bundle.outputs) == 9
    assert bundle.summary.what_is_wrong == NO_CLAIMS_MESSAGE
    assert bundle.summary.uncertainty_notes
    for output in bundle.outputs:
        assert "[1]" not in output.content


def test_dosage_is_removed_from_every_output() -> None:
    analysis = _analysis()
    claim = Claim(
        id=uuid4(),
        analysis_id=analysis.id,
        claim_text="Take 500mg of vitamin C to cure a cold.",
        claim_type="medical_advice",
        topic="alternative",
        stance="uncertain",
        stance_confidence=20,
        stance_explanation="No clear evidence.",
        severity="medium",
        risk_reason="Medium risk.",
    )
    bundle = asyncio.run(generate_response(analysis, [claim]))

    assert "500mg" not in bundle.summary.what_is_wrong
    for output in bundle.outputs:
        assert "500mg" not in output.content
    assert "could not be confirmed" in bundle.summary.uncertainty_notes


def test_missing_variant_is_a_generation_error(monkeypatch) -> None:
    original = report_generator._render_cell

    async def _render_cell(context, fmt, length):
        if (fmt, length) == ("handout", "long"):
            return ""
        return await original(context, fmt, length)

    monkeypatch.setattr(report_generator, "_render_cell", _render_cell)
    with pytest.raises(GenerationError) as excinfo:
        asyncio.run(generate_response(_analysis(), []))
    assert excinfo.value.step == "response"
    assert excinfo.value.details["missing"] == ["handout/long"]


def test_every_output_lists_the_references_it_cites() -> None:
    analysis = _analysis(input_text="Mixed claims.")
    claims = [
        _assessed_claim(analysis, "Antibiotics cure colds."),
        _assessed_claim(analysis, "Vaccines cause autism in children."),
        _assessed_claim(analysis, "Babies under 6 months should drink extra water."),
    ]
    bundle = asyncio.run(generate_response(analysis, claims))

    assert len(bundle.outputs) == 9
    for output in bundle.outputs:
        used = set(report_generator.cited_numbers(output.content))
        listed = {int(number) for number in re.findall(r"^\[(\d+)\] ", output.content, re.MULTILINE)}
        assert used, (output.format, output.length)
        assert used <= listed, (output.format, output.length)
