from __future__ import annotations

import asyncio
import itertools
import logging
import re
from dataclasses import dataclass, replace
from typing import Dict, List, Sequence, Tuple
from uuid import UUID

from ..errors import GenerationError
from ..models import (
    OUTPUT_FORMATS,
    OUTPUT_LENGTHS,
    SEVERITY_RANK,
    Analysis,
    AnalysisSummary,
    Claim,
    OutputDraft,
    max_severity,
)
from ..safety import filter_dosage

logger = logging.getLogger("misinfo_guard.report_generator")

DISCLAIMER = (
    "This information is for educational purposes only and is not a substitute for "
    "professional medical advice. Talk to a qualified healthcare provider about your own situation."
)
NO_CLAIMS_MESSAGE = "No specific health claims were found in this text."

_MARKER_RE = re.compile(r"\[(\d+)\]")


@dataclass(frozen=True)
class RegionGuidance:
    authority: str
    short_name: str
    emergency: str
    non_urgent: str


REGIONS: Dict[str, RegionGuidance] = {
    "WHO": RegionGuidance(
        authority="the World Health Organization",
        short_name="WHO",
        emergency="your local emergency number",
        non_urgent="a doctor or local health clinic",
    ),
    "US": RegionGuidance(
        authority="the CDC",
        short_name="CDC",
        emergency="911",
        non_urgent="your doctor or an urgent care clinic",
    ),
    "UK": RegionGuidance(
        authority="the NHS",
        short_name="NHS",
        emergency="999",
        non_urgent="NHS 111 or your GP",
    ),
}

_TONE_OPENERS = {
    "neutral": "",
    "empathetic": "It is completely understandable to look for answers about your health. ",
    "direct": "Bottom line: ",
}
_ADVICE_BY_TAG = (
    ("stops_medication", "Do not stop or change prescribed medication without talking to the prescriber."),
    ("delays_proven_treatment", "Keep following the treatment plan agreed with the care team."),
    ("antibiotic_misuse", "Only take antibiotics when a clinician prescribes them for a bacterial infection."),
    ("vaccine_hesitancy", "Bring vaccination questions to {non_urgent} and follow the schedule recommended by {short_name}."),
    ("vulnerable_population", "Extra care is needed for babies, children, pregnant people, older adults and people with long-term conditions."),
)


@dataclass(frozen=True)
class Reference:
    number: int
    organization: str
    title: str
    url: str | None
    snippet: str | None


@dataclass(frozen=True)
class ResponseBundle:
    summary: AnalysisSummary
    outputs: List[OutputDraft]


@dataclass(frozen=True)
class _Context:
    analysis: Analysis
    claims: Tuple[Claim, ...]
    region: RegionGuidance
    references: Tuple[Reference, ...]
    claim_refs: Dict[UUID, int]
    severity: str
    tags: Tuple[str, ...]
    summary: AnalysisSummary

    @property
    def escalate(self) -> bool:
        return SEVERITY_RANK[self.severity] >= SEVERITY_RANK["high"]


async def generate_response(analysis: Analysis, claims: Sequence[Claim]) -> ResponseBundle:
    region = REGIONS.get(analysis.region, REGIONS["WHO"])
    references, claim_refs = build_references(claims)
    severity = max_severity(claim.severity or "low" for claim in claims)
    tags = _ordered_tags(claims)
    base = _Context(
        analysis=analysis,
        claims=tuple(claims),
        region=region,
        references=references,
        claim_refs=claim_refs,
        severity=severity,
        tags=tags,
        summary=AnalysisSummary(
            disclaimer=DISCLAIMER,
            what_is_wrong="",
            what_we_know="",
            what_to_do="",
            when_to_seek_care="",
        ),
    )
    summary = _build_summary(base)
    context = replace(base, summary=summary)

    cells = list(itertools.product(OUTPUT_FORMATS, OUTPUT_LENGTHS))
    contents = await asyncio.gather(*(_render_cell(context, fmt, length) for fmt, length in cells))
    outputs = [
        OutputDraft(format=fmt, length=length, content=content)
        for (fmt, length), content in zip(cells, contents)
        if content.strip()
    ]
    _check_complete(outputs)
    logger.info("response generated outputs=%s references=%s", len(outputs), len(references))
    return ResponseBundle(summary=summary, outputs=outputs)


def build_references(claims: Sequence[Claim]) -> Tuple[Tuple[Reference, ...], Dict[UUID, int]]:
    """Number unique citations in claim order; map each claim to its lead citation."""
    references: List[Reference] = []
    numbers: Dict[Tuple[str, str], int] = {}
    claim_refs: Dict[UUID, int] = {}
    for claim in claims:
        for citation in claim.citations:
            key = (citation.source_org, citation.source_title)
            if key not in numbers:
                numbers[key] = len(references) + 1
                references.append(
                    Reference(
                        number=numbers[key],
                        organization=citation.source_org,
                        title=citation.source_title,
                        url=citation.source_url,
                        snippet=citation.snippet,
                    )
                )
            claim_refs.setdefault(claim.id, numbers[key])
    return tuple(references), claim_refs


def _check_complete(outputs: Sequence[OutputDraft]) -> None:
    expected = set(itertools.product(OUTPUT_FORMATS, OUTPUT_LENGTHS))
    produced = [(output.format, output.length) for output in outputs]
    if len(produced) != len(expected) or set(produced) != expected:
        missing = sorted(expected - set(produced))
        raise GenerationError(
            "response variants are incomplete",
            {"missing": [f"{fmt}/{length}" for fmt, length in missing]},
        )


def _ordered_tags(claims: Sequence[Claim]) -> Tuple[str, ...]:
    ordered: List[str] = []
    for claim in claims:
        for tag in claim.risk_tags:
            if tag not in ordered:
                ordered.append(tag)
    return tuple(ordered)


def _marker(context: _Context, claim: Claim) -> str:
    number = context.claim_refs.get(claim.id)
    return f" [{number}]" if number else ""


def _quote(claim: Claim) -> str:
    return claim.claim_text.rstrip(" .!;")


def _problem_claims(context: _Context) -> List[Claim]:
    return [claim for claim in context.claims if claim.stance in {"contradicted", "uncertain"}]


def _correction(context: _Context, claim: Claim) -> str:
    marker = _marker(context, claim)
    if claim.stance == "contradicted":
        return f'The claim "{_quote(claim)}" is contradicted by trusted health guidance{marker}.'
    if claim.stance == "supported":
        return f'The claim "{_quote(claim)}" is consistent with trusted health guidance{marker}.'
    return f'The evidence for "{_quote(claim)}" is unclear{marker}.'


def _facts(context: _Context, limit: int) -> List[str]:
    facts: List[str] = []
    for reference in context.references[:limit]:
        if reference.snippet:
            facts.append(f"{reference.organization}: {reference.snippet} [{reference.number}]")
    return facts


def _advice(context: _Context) -> List[str]:
    region = context.region
    advice: List[str] = []
    for tag, template in _ADVICE_BY_TAG:
        if tag in context.tags:
            advice.append(template.format(non_urgent=region.non_urgent, short_name=region.short_name))
    return advice


def _build_summary(context: _Context) -> AnalysisSummary:
    region = context.region
    problems = _problem_claims(context)
    if not context.claims:
        what_is_wrong = NO_CLAIMS_MESSAGE
    elif problems:
        what_is_wrong = " ".join(_correction(context, claim) for claim in problems[:3])
    else:
        what_is_wrong = "None of the claims reviewed conflict with trusted health guidance."

    facts = _facts(context, 3)
    if facts:
        what_we_know = " ".join(facts)
    else:
        what_we_know = (
            "We could not find trusted guidance that addresses this text directly. "
            f"Health information from {region.authority} is a reliable place to start."
        )

    opener = _TONE_OPENERS.get(context.analysis.tone, "")
    if context.analysis.audience == "clinician":
        steps = [
            "Address the misconception directly with the patient, cite the guidance above and document the discussion."
        ]
    else:
        steps = [f"Check health advice with {region.non_urgent} before acting on it."]
    steps.extend(_advice(context))
    what_to_do = opener + " ".join(steps)

    if "emergency_symptoms" in context.tags:
        when_to_seek_care = (
            f"Call {region.emergency} now if there are signs of an emergency such as chest pain, "
            "difficulty breathing, stroke symptoms or a seizure. Do not wait to see whether they pass."
        )
    elif context.escalate:
        when_to_seek_care = (
            f"Contact {region.non_urgent} promptly if this claim has led anyone to stop, delay or change "
            f"treatment, or if symptoms get worse. Call {region.emergency} for severe symptoms such as "
            "difficulty breathing, chest pain or confusion."
        )
    else:
        when_to_seek_care = (
            f"See {region.non_urgent} if symptoms last, get worse or you are unsure what to do. "
            f"In an emergency call {region.emergency}."
        )

    uncertain = [claim for claim in context.claims if claim.stance == "uncertain"]
    if not context.claims:
        uncertainty_notes = "No checkable health claims were found, so this response is general guidance only."
    elif uncertain:
        count = len(uncertain)
        noun = "claim" if count == 1 else "claims"
        uncertainty_notes = (
            f"{count} {noun} could not be confirmed or refuted with the trusted sources available. "
            "Absence of evidence here is not proof either way."
        )
    else:
        uncertainty_notes = None

    return AnalysisSummary(
        disclaimer=DISCLAIMER,
        what_is_wrong=filter_dosage(what_is_wrong),
        what_we_know=filter_dosage(what_we_know),
        what_to_do=filter_dosage(what_to_do),
        when_to_seek_care=filter_dosage(when_to_seek_care),
        uncertainty_notes=filter_dosage(uncertainty_notes) if uncertainty_notes else None,
    )


async def _render_cell(context: _Context, fmt: str, length: str) -> str:
    if fmt == "social_reply":
        content = _social_reply(context, length)
    elif fmt == "handout":
        content = _handout(context, length)
    elif fmt == "clinician_note":
        content = _clinician_note(context, length)
    else:
        raise GenerationError(f"unknown output format {fmt}")
    return filter_dosage(content.strip())


def cited_numbers(text: str) -> List[int]:
    """Reference numbers used by inline [n] markers, ascending."""
    return sorted({int(number) for number in _MARKER_RE.findall(text)})


def _listed(context: _Context, body: str, everything: bool) -> List[Reference]:
    if everything:
        return list(context.references)
    wanted = set(cited_numbers(body))
    return [reference for reference in context.references if reference.number in wanted]


def _reference_lines(references: Sequence[Reference]) -> List[str]:
    lines = []
    for reference in references:
        line = f"[{reference.number}] {reference.organization}. {reference.title}."
        if reference.url:
            line += f" {reference.url}"
        lines.append(line)
    return lines


def _lead_claim(context: _Context) -> Claim | None:
    problems = _problem_claims(context)
    if problems:
        return max(problems, key=lambda claim: SEVERITY_RANK.get(claim.severity or "low", 0))
    return context.claims[0] if context.claims else None


def _social_reply(context: _Context, length: str) -> str:
    analysis = context.analysis
    region = context.region
    opener = _TONE_OPENERS.get(analysis.tone, "")
    lead = _lead_claim(context)
    parts: List[str] = []
    if analysis.platform == "email":
        parts.append("Hi,")

    if lead is None:
        body = (
            f"{opener}We did not find specific health claims to check here. "
            f"For reliable information, see {region.authority}."
        )
    else:
        body = opener + _correction(context, lead)
    parts.append(body)

    if length in {"medium", "long"}:
        facts = _facts(context, 1 if length == "medium" else 3)
        parts.extend(facts)
        if length == "long" or analysis.tone != "neutral":
            parts.append(context.summary.what_to_do)
        else:
            steps = [f"Check health advice with {region.non_urgent} before acting on it."]
            parts.append(" ".join(steps + _advice(context)[:1]))
    if length == "long":
        parts.append(context.summary.when_to_seek_care)

    separator = " " if analysis.platform == "social" and length == "short" else "\n\n"
    text = separator.join(part for part in parts if part)
    references = _listed(context, text, everything=length == "long")
    if references:
        text += "\n\nSources:\n" + "\n".join(_reference_lines(references))
    if analysis.platform == "email":
        text += "\n\nBest wishes"
    return text


def _handout(context: _Context, length: str) -> str:
    summary = context.summary
    lead = _lead_claim(context)
    title = f"Health fact check: {_quote(lead)}" if lead else "Health information guide"
    sections: List[str] = [title.upper() if length == "short" else title]
    sections.append(f"What is wrong\n{summary.what_is_wrong}")
    if length in {"medium", "long"}:
        sections.append(f"What we know\n{summary.what_we_know}")
    sections.append(f"What to do\n{summary.what_to_do}")
    sections.append(f"When to seek care\n{summary.when_to_seek_care}")
    if length == "long":
        claim_lines = [
            f"- {_quote(claim)}: {claim.stance or 'not assessed'}, {claim.severity or 'low'} risk"
            for claim in context.claims
        ]
        if claim_lines:
            sections.append("Claims reviewed\n" + "\n".join(claim_lines))
        if summary.uncertainty_notes:
            sections.append(f"What is still uncertain\n{summary.uncertainty_notes}")
    references = _listed(context, "\n".join(sections), everything=length != "short")
    if references:
        sections.append("Sources\n" + "\n".join(_reference_lines(references)))
    sections.append(summary.disclaimer)
    return "\n\n".join(sections)


def _clinician_note(context: _Context, length: str) -> str:
    region = context.region
    claims = context.claims
    if not claims:
        lines = [
            "CLINICAL NOTE",
            "Content reviewed: no discrete checkable health claims identified.",
            f"Plan: provide general health information per {region.short_name} guidance; no specific correction required.",
        ]
        return "\n".join(lines if length != "short" else lines[1:])

    lead = _lead_claim(context) or claims[0]
    if length == "short":
        note = (
            f"Pt-facing content claim: \"{_quote(lead)}\". Assessment: {lead.stance or 'not assessed'}, "
            f"severity {lead.severity or 'low'}{_marker(context, lead)}. "
            f"Plan: education per {region.short_name} guidance; return precautions given."
        )
        references = _listed(context, note, everything=False)
        if references:
            note += "\nRef:\n" + "\n".join(_reference_lines(references))
        return note

    lines = ["CLINICAL NOTE: health misinformation review", ""]
    lines.append(f"Overall severity: {context.severity}.")
    lines.append("Claims reviewed:")
    for index, claim in enumerate(claims, start=1):
        confidence = claim.stance_confidence if claim.stance_confidence is not None else 0
        lines.append(
            f"{index}. \"{_quote(claim)}\" | stance {claim.stance or 'not assessed'} "
            f"(confidence {confidence}/100), severity {claim.severity or 'low'}, "
            f"population {claim.target_population}{_marker(context, claim)}"
        )
        if length == "long" and claim.risk_reason:
            lines.append(f"   Risk: {claim.risk_reason}")
    facts = _facts(context, 2 if length == "medium" else len(context.references))
    if facts:
        lines.append("")
        lines.append("Evidence summary:")
        lines.extend(f"- {fact}" for fact in facts)
    lines.append("")
    lines.append(
        "Recommendation: correct the misconception explicitly, confirm current treatment adherence "
        "and document patient education."
    )
    if context.escalate:
        lines.append(
            f"Return precautions: advise urgent review if treatment was stopped or delayed; "
            f"{region.emergency} for red-flag symptoms."
        )
    if length == "long":
        if context.tags:
            lines.append(f"Risk tags: {', '.join(context.tags)}.")
        if context.summary.uncertainty_notes:
            lines.append(f"Uncertainty: {context.summary.uncertainty_notes}")
    references = _listed(context, "\n".join(lines), everything=length == "long")
    if references:
        lines.append("")
        lines.append("References:")
        lines.extend(_reference_lines(references))
    return "\n".join(lines)
