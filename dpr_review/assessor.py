import re
from dataclasses import dataclass, field
from typing import List

from .schemas import AssessmentResult

DPR_SECTIONS = (
    "Executive Summary",
    "Project Background",
    "Project Objectives",
    "Scope of Work",
    "Technical Specifications",
    "Budget Estimate",
    "Timeline/Schedule",
    "Risk Assessment",
    "Feasibility Analysis",
    "Environmental Impact",
    "Social Impact Assessment",
    "Implementation Strategy",
    "Monitoring & Evaluation",
    "Sustainability Plan",
    "Stakeholder Analysis",
    "Resource Requirements",
    "Quality Assurance",
    "Legal & Regulatory Compliance",
)

TIMELINE_SECTION = "Timeline/Schedule"
BUDGET_SECTION = "Budget Estimate"
RISK_SECTION = "Risk Assessment"

# A found section is weak when the text starting at its heading is this thin
SECTION_WINDOW_CHARS = 500
MIN_SECTION_WORDS = 50

MAX_MISSING_LISTED = 5

_BUDGET_RE = re.compile(
    r"budget|cost|expenditure|financial|crore|lakh|rupee|inr|₹", re.IGNORECASE
)
_TIMELINE_RE = re.compile(
    r"timeline|schedule|duration|month|year|phase|milestone", re.IGNORECASE
)
_RISK_RE = re.compile(r"risk|challenge|mitigation|contingency", re.IGNORECASE)
_FEASIBILITY_RE = re.compile(
    r"feasibility|viability|assessment|analysis", re.IGNORECASE
)
_WHITESPACE_RE = re.compile(r"\s+")

_RISK_PENALTY = {"low": 0, "medium": 5, "high": 10}


@dataclass
class SectionScan:
    found: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    weak: List[str] = field(default_factory=list)


def _word_count(text: str) -> int:
    # Leading or trailing whitespace counts as an empty token; blank text
    # has no words at all.
    if not text.strip():
        return 0
    return len(_WHITESPACE_RE.split(text))


def _variants(section: str) -> List[str]:
    lowered = section.lower()
    return [
        lowered,
        lowered.replace(" ", ""),
        lowered.replace("&", "and"),
        lowered.split(" ")[0],
    ]


def scan_sections(lowered: str) -> SectionScan:
    """Check every catalog section against already lower-cased text.

    A section counts as present when any of its spelling variants occurs,
    with hyphens and spaces treated alike. The weakness check only looks
    at the exact heading, so a section matched through a variant alone
    never gets flagged as weak.
    """
    scan = SectionScan()
    for section in DPR_SECTIONS:
        found = any(
            v in lowered or v.replace("-", " ") in lowered
            for v in _variants(section)
        )
        if not found:
            scan.missing.append(section)
            continue

        scan.found.append(section)
        index = lowered.find(section.lower())
        if index != -1:
            window = lowered[index:index + SECTION_WINDOW_CHARS]
            if _word_count(window) < MIN_SECTION_WORDS:
                scan.weak.append(section)
    return scan


def _clamp(value: int) -> int:
    return max(0, min(100, value))


def _explain(
    scan: SectionScan,
    score: int,
    delay_risk: str,
    cost_overrun_risk: str,
    implementation_risk: str,
) -> str:
    sentences = []

    if scan.missing:
        listed = ", ".join(scan.missing[:MAX_MISSING_LISTED])
        more = "..." if len(scan.missing) > MAX_MISSING_LISTED else ""
        sentences.append(
            f"The DPR is missing {len(scan.missing)} critical section(s): "
            f"{listed}{more}."
        )

    if scan.weak:
        sentences.append(
            f"The following sections need more detail: {', '.join(scan.weak)}."
        )

    if delay_risk == "high":
        sentences.append(
            "High delay risk detected due to inadequate timeline planning "
            "or missing schedule details."
        )

    if cost_overrun_risk == "high":
        sentences.append(
            "High cost overrun risk identified due to insufficient budget "
            "breakdown or financial planning."
        )

    if implementation_risk == "high":
        sentences.append(
            "High implementation risk due to missing risk assessment "
            "or feasibility analysis."
        )

    if score >= 80:
        sentences.append(
            "Overall, the DPR demonstrates good quality with comprehensive "
            "coverage of key areas."
        )
    elif score >= 60:
        sentences.append(
            "The DPR meets basic requirements but would benefit from "
            "additional detail in certain areas."
        )
    else:
        sentences.append(
            "The DPR requires significant improvement before it can be "
            "considered for approval."
        )

    return " ".join(sentences)


def assess(text: str) -> AssessmentResult:
    """Score a DPR's plain text against the section catalog.

    Pure and total: any string, including the empty one, yields a complete
    assessment.
    """
    lowered = text.lower()
    word_count = _word_count(text)
    scan = scan_sections(lowered)

    section_score = max(0, 100 - 5 * len(scan.missing))
    weakness_deduction = 3 * len(scan.weak)
    length_bonus = min(10, word_count // 1000)
    score = _clamp(section_score - weakness_deduction + length_bonus)

    has_budget = _BUDGET_RE.search(text) is not None
    has_timeline = _TIMELINE_RE.search(text) is not None
    has_risk = _RISK_RE.search(text) is not None
    has_feasibility = _FEASIBILITY_RE.search(text) is not None

    # Branch order decides precedence in each of these chains.
    if not has_timeline or TIMELINE_SECTION in scan.missing:
        delay_risk = "high"
    elif TIMELINE_SECTION in scan.weak:
        delay_risk = "medium"
    else:
        delay_risk = "low"

    if not has_budget or BUDGET_SECTION in scan.missing:
        cost_overrun_risk = "high"
    elif BUDGET_SECTION in scan.weak:
        cost_overrun_risk = "medium"
    else:
        cost_overrun_risk = "low"

    if not has_risk or RISK_SECTION in scan.missing:
        implementation_risk = "high"
    elif not has_feasibility or len(scan.weak) > 3:
        implementation_risk = "medium"
    else:
        implementation_risk = "low"

    penalty = (
        _RISK_PENALTY[delay_risk]
        + _RISK_PENALTY[cost_overrun_risk]
        + _RISK_PENALTY[implementation_risk]
    )
    score = _clamp(score - penalty)

    if score >= 70 and delay_risk != "high" and cost_overrun_risk != "high":
        recommendation = "approve"
    elif score < 40 or (delay_risk == "high" and cost_overrun_risk == "high"):
        recommendation = "reject"
    else:
        recommendation = "revise"

    return AssessmentResult(
        quality_score=score,
        delay_risk=delay_risk,
        cost_overrun_risk=cost_overrun_risk,
        implementation_risk=implementation_risk,
        missing_sections=scan.missing,
        weak_sections=scan.weak,
        explanation=_explain(
            scan, score, delay_risk, cost_overrun_risk, implementation_risk
        ),
        recommendation=recommendation,
    )
