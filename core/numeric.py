# core/numeric.py
"""
Numeric consistency between a claim and its evidence.

Numbers are pulled out with a regex, normalized to one magnitude
("$96.8 billion" == "96.8B" == "$96.8bn" == 96.8e9, "18.5%" == 18.5) and
compared exactly.
Floating rounding is the only tolerance.
"""
import math
import re
from typing import List, Optional, Sequence
from model.claim import NumericCheck

_CURRENCY = "$€£¥"

_NUMBER = re.compile(
    r"(?<![\w.,])"
    rf"(?:[{_CURRENCY}]\s?)?"
    r"\d+(?:,\d{3})*(?:\.\d+)?"
    r"(?:\s?(?:%|percent\b)|\s(?:thousand|million|billion|trillion)\b|\s?(?:bn|mn)\b|[kmbt]\b)?",
    re.IGNORECASE,
)

_NORMAL_FORM = re.compile(
    r"^(-?\d+(?:\.\d+)?)\s*(%|percent|k|m|b|t|bn|mn|thousand|million|billion|trillion)?$"
)

_SCALE = {
    "k": 1e3,
    "thousand": 1e3,
    "m": 1e6,
    "million": 1e6,
    "mn": 1e6,
    "b": 1e9,
    "billion": 1e9,
    "bn": 1e9,
    "t": 1e12,
    "trillion": 1e12,
}


def extract_numbers(text: str) -> List[str]:
    """Raw numeric tokens in order of appearance, e.g. ['$96.8 billion', '18.5%']."""
    if not text:
        return []
    return [m.group(0).strip() for m in _NUMBER.finditer(text)]


def normalize_number(token: str) -> Optional[float]:
    """
    Canonical magnitude of one token, or None when it is not a number.
    Percentages keep their scale; K/M/B/T and word scales are multiplied out.
    """
    s = token.strip().lower()
    for sym in _CURRENCY:
        s = s.replace(sym, "")
    s = s.replace(",", "").strip()
    if not s:
        return None

    m = _NORMAL_FORM.match(s)
    if not m:
        return None
    value = float(m.group(1))
    unit = m.group(2)
    if unit and unit in _SCALE:
        value *= _SCALE[unit]
    return value


def _same(a: float, b: float) -> bool:
    return math.isclose(a, b, rel_tol=1e-9, abs_tol=1e-9)


def check_numeric_consistency(
    claim_numbers: Sequence[str], evidence_numbers: Sequence[str]
) -> NumericCheck:
    """
    match=True when every claim-side number has an equal evidence-side number.
    A claim without numbers is vacuously consistent.
    """
    claim_values = [v for v in (normalize_number(n) for n in claim_numbers) if v is not None]
    if not claim_values:
        return NumericCheck(
            claimNumbers=list(claim_numbers),
            evidenceNumbers=list(evidence_numbers),
            match=True,
        )

    evidence_values = [
        v for v in (normalize_number(n) for n in evidence_numbers) if v is not None
    ]
    match = all(any(_same(c, e) for e in evidence_values) for c in claim_values)
    return NumericCheck(
        claimNumbers=list(claim_numbers),
        evidenceNumbers=list(evidence_numbers),
        match=match,
    )
